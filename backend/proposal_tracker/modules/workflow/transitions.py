from __future__ import annotations

from dataclasses import dataclass

from ..identity.roles import Role
from .models import Action, ProposalStatus

S = ProposalStatus


@dataclass(frozen=True, slots=True)
class Transition:
    """
    One row of the workflow table.

    - `required_statuses`: statuses the proposal must be in (empty = no record yet).
    - `roles`: roles allowed to trigger the action. Empty means "the role the
      director designated in `directorApproval.requiresRevisionBy`".
    - `target_status`: status after the action (None = unchanged / record removed).
    - `creator_only`: only the proposal's creator may act.
    - `privileged_roles`: roles exempt from the creator and status checks.
    """

    action: Action
    required_statuses: frozenset[ProposalStatus]
    roles: frozenset[Role]
    target_status: ProposalStatus | None
    label: str
    creator_only: bool = False
    privileged_roles: frozenset[Role] = frozenset()


def _t(action: Action, required: set[ProposalStatus], roles: set[Role], target: ProposalStatus | None, label: str, **kw) -> Transition:
    return Transition(
        action=action,
        required_statuses=frozenset(required),
        roles=frozenset(roles),
        target_status=target,
        label=label,
        **kw,
    )


TRANSITIONS: dict[Action, Transition] = {
    t.action: t
    for t in (
        _t(Action.CREATE, set(), {Role.BDM}, S.PENDING_ESTIMATION, "Proposal created"),
        _t(
            Action.EDIT_PROPOSAL,
            {S.PENDING_ESTIMATION},
            {Role.BDM},
            None,
            "Proposal details edited",
            creator_only=True,
        ),
        _t(Action.ADD_ESTIMATION, {S.PENDING_ESTIMATION}, {Role.ESTIMATOR}, S.PENDING_PRICING, "Estimation added"),
        _t(Action.SET_PRICING, {S.PENDING_PRICING}, {Role.COO}, S.PENDING_DIRECTOR_APPROVAL, "Pricing set"),
        _t(
            Action.DIRECTOR_APPROVE,
            {S.PENDING_DIRECTOR_APPROVAL},
            {Role.DIRECTOR},
            S.APPROVED,
            "Approved by director",
        ),
        # Final rejections land in REJECTED instead; see engine.
        _t(
            Action.DIRECTOR_REJECT,
            {S.PENDING_DIRECTOR_APPROVAL},
            {Role.DIRECTOR},
            S.REVISION_REQUIRED,
            "Rejected by director",
        ),
        _t(
            Action.RESUBMIT_AFTER_REVISION,
            {S.REVISION_REQUIRED},
            set(),
            S.PENDING_DIRECTOR_APPROVAL,
            "Resubmitted after revision",
        ),
        _t(
            Action.SUBMIT_TO_CLIENT,
            {S.APPROVED},
            {Role.BDM},
            S.SUBMITTED_TO_CLIENT,
            "Submitted to client",
            creator_only=True,
        ),
        _t(Action.MARK_JOB_WON, {S.SUBMITTED_TO_CLIENT}, {Role.BDM}, S.WON, "Job won", creator_only=True),
        _t(Action.MARK_JOB_LOST, {S.SUBMITTED_TO_CLIENT}, {Role.BDM}, S.LOST, "Job lost", creator_only=True),
        _t(
            Action.DELETE,
            {S.PENDING_ESTIMATION},
            {Role.BDM, Role.DIRECTOR},
            None,
            "Proposal deleted",
            creator_only=True,
            privileged_roles=frozenset({Role.DIRECTOR}),
        ),
    )
}

# Actions accepted by `PUT /proposals` (create/delete have their own verbs).
UPDATE_ACTIONS: frozenset[Action] = frozenset(TRANSITIONS) - {Action.CREATE, Action.DELETE}
