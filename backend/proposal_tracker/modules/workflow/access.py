from __future__ import annotations

from typing import Any

from ..identity.roles import Role
from .models import Actor, Proposal, ProposalStatus

# BDMs may read estimation files once the director has signed off.
ESTIMATION_VISIBLE_TO_BDM = frozenset(
    {
        ProposalStatus.APPROVED,
        ProposalStatus.SUBMITTED_TO_CLIENT,
        ProposalStatus.WON,
        ProposalStatus.LOST,
    }
)

FILE_TYPES = ("project", "estimation", "link")


def can_view_proposal(actor: Actor, proposal: Proposal) -> bool:
    if actor.role is Role.BDM:
        return proposal.created_by_uid == actor.uid
    return True


def can_access_file(actor: Actor, file: dict[str, Any], proposal: Proposal | None) -> bool:
    """
    - Files not linked to a proposal are visible to every authenticated user.
    - BDMs only see files of their own proposals.
    - Project files and links are visible to every role.
    - Estimation files: estimator/coo/director always; BDM after approval.
    """
    if not file.get("proposalId"):
        return True
    if proposal is None:
        # Orphaned record (proposal removed out of band): directors only.
        return actor.role is Role.DIRECTOR

    if not can_view_proposal(actor, proposal):
        return False

    file_type = str(file.get("fileType") or "project")
    if file_type in ("project", "link"):
        return True
    if file_type == "estimation":
        if actor.role in (Role.ESTIMATOR, Role.COO, Role.DIRECTOR):
            return True
        return proposal.status in ESTIMATION_VISIBLE_TO_BDM
    return False


def can_delete_file(actor: Actor, file: dict[str, Any]) -> bool:
    return file.get("uploadedByUid") == actor.uid or actor.role is Role.DIRECTOR


def can_upload_file(actor: Actor, file_type: str, proposal: Proposal | None) -> bool:
    if proposal is not None and not can_view_proposal(actor, proposal):
        return False
    if file_type == "estimation":
        return actor.role is Role.ESTIMATOR
    if file_type == "project":
        return actor.role is Role.BDM
    if file_type == "link":
        return actor.role in (Role.BDM, Role.ESTIMATOR)
    return False


def can_read_notification(actor: Actor, notification: dict[str, Any]) -> bool:
    # BDM notifications are personal; everything else is addressed by role.
    if actor.role is Role.BDM:
        return notification.get("recipientUid") == actor.uid
    return notification.get("recipientRole") == actor.role.value
