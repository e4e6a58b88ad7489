from __future__ import annotations

from typing import Any

from .models import Action, ActivityRecord, Actor, ChangeLogEntry, Proposal
from .transitions import TRANSITIONS


def action_label(action: Action | str) -> str:
    """Human label from the transition table; `foo_bar` -> `foo bar` otherwise."""
    if isinstance(action, Action) and action in TRANSITIONS:
        return TRANSITIONS[action].label
    raw = action.value if isinstance(action, Action) else str(action)
    return raw.replace("_", " ")


def activity_type(action: Action) -> str:
    if action is Action.CREATE:
        return "proposal_created"
    if action is Action.DELETE:
        return "proposal_deleted"
    return f"proposal_{action.value}"


def change_log_entry(*, action: Action, actor: Actor, now: str, details: str | None = None) -> ChangeLogEntry:
    return ChangeLogEntry(
        timestamp=now,
        action="created" if action is Action.CREATE else action.value,
        performed_by=actor.uid,
        performed_by_name=actor.name,
        performed_by_role=actor.role.value,
        details=details or action_label(action),
    )


def activity_record(
    *,
    action: Action,
    actor: Actor,
    proposal: Proposal,
    now: str,
    metadata: dict[str, Any] | None = None,
) -> ActivityRecord:
    if action is Action.CREATE:
        details = f"New proposal created for {proposal.client_company}: {proposal.project_name}"
    else:
        details = f"{action_label(action)}: {proposal.project_name}"

    return ActivityRecord(
        type=activity_type(action),
        proposal_id=proposal.id,
        project_name=proposal.project_name,
        client_company=proposal.client_company,
        performed_by_uid=actor.uid,
        performed_by_name=actor.name,
        performed_by_role=actor.role.value,
        details=details,
        timestamp=now,
        metadata=dict(metadata or {}),
    )
