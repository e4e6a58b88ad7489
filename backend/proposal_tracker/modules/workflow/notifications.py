from __future__ import annotations

from dataclasses import dataclass

from ..identity.roles import Role
from .models import Actor, NotificationSpec, Proposal, ProposalStatus

S = ProposalStatus

# Recipient markers besides plain roles.
CREATOR = "creator"
REVISION_OWNER = "revision_owner"


@dataclass(frozen=True, slots=True)
class _Template:
    type: str
    recipients: tuple[Role | str, ...]
    message: str


# (old status, new status) -> template. Anything not listed notifies nobody.
FAN_OUT: dict[tuple[ProposalStatus, ProposalStatus], _Template] = {
    (S.PENDING_DIRECTOR_APPROVAL, S.APPROVED): _Template(
        type="proposal_approved",
        recipients=(CREATOR, Role.ESTIMATOR, Role.COO),
        message="Proposal '{project}' for {client} was approved by {actor}.",
    ),
    (S.PENDING_DIRECTOR_APPROVAL, S.REVISION_REQUIRED): _Template(
        type="revision_required",
        recipients=(REVISION_OWNER,),
        message="Revision required on '{project}' for {client}: {reason}",
    ),
    (S.PENDING_DIRECTOR_APPROVAL, S.REJECTED): _Template(
        type="proposal_rejected",
        recipients=(CREATOR,),
        message="Proposal '{project}' for {client} was rejected by {actor}: {reason}",
    ),
    (S.REVISION_REQUIRED, S.PENDING_DIRECTOR_APPROVAL): _Template(
        type="revision_resubmitted",
        recipients=(Role.DIRECTOR,),
        message="Proposal '{project}' for {client} was revised by {actor} and awaits approval.",
    ),
    (S.SUBMITTED_TO_CLIENT, S.WON): _Template(
        type="job_won",
        recipients=(Role.COO, Role.DIRECTOR),
        message="Job won: '{project}' for {client}.",
    ),
    (S.SUBMITTED_TO_CLIENT, S.LOST): _Template(
        type="job_lost",
        recipients=(Role.COO, Role.DIRECTOR),
        message="Job lost: '{project}' for {client}. Reason: {reason}",
    ),
}


def _reason(proposal: Proposal, new_status: ProposalStatus) -> str:
    if new_status in (S.REVISION_REQUIRED, S.REJECTED) and proposal.director_approval:
        return proposal.director_approval.rejection_reason or "no reason given"
    if new_status is S.LOST and proposal.job_outcome:
        return proposal.job_outcome.reason or "not specified"
    return ""


def _address(recipient: Role | str, proposal: Proposal) -> tuple[Role, str | None]:
    if recipient == REVISION_OWNER:
        da = proposal.director_approval
        recipient = (da.requires_revision_by if da else None) or Role.ESTIMATOR
    if recipient == CREATOR:
        recipient = Role.BDM
    role = Role(recipient)
    # BDMs read notifications addressed to them personally.
    return role, (proposal.created_by_uid if role is Role.BDM else None)


def notifications_for(
    *,
    old_status: ProposalStatus | None,
    new_status: ProposalStatus,
    proposal: Proposal,
    actor: Actor,
) -> list[NotificationSpec]:
    """Pure lookup of the notifications a status change produces."""
    if old_status is None or old_status == new_status:
        return []
    template = FAN_OUT.get((old_status, new_status))
    if template is None:
        return []

    message = template.message.format(
        project=proposal.project_name,
        client=proposal.client_company,
        actor=actor.name,
        reason=_reason(proposal, new_status),
    )

    out: list[NotificationSpec] = []
    seen: set[tuple[Role, str | None]] = set()
    for r in template.recipients:
        role, uid = _address(r, proposal)
        if (role, uid) in seen:
            continue
        seen.add((role, uid))
        out.append(
            NotificationSpec(
                type=template.type,
                message=message,
                proposal_id=proposal.id,
                recipient_role=role,
                recipient_uid=uid,
            )
        )
    return out
