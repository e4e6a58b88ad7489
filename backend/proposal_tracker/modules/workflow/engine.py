"""
Proposal workflow engine.

Pure functions over a single `Proposal`: given the current record, an action,
the actor and the action payload, validate the transition and compute the new
record plus its audit and notification side effects. Nothing here touches
storage; `workflow_service` persists the result.

Checks run in a fixed order so the error a caller sees is deterministic:
role (403) -> ownership (403) -> status precondition (400) -> payload (400).
A rejected action raises before anything is computed, so the caller's record
is never partially modified.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any, Callable

from ...errors import AuthorizationError, ConflictError, ValidationError
from ..identity.roles import Role, normalize_role, parse_role
from .audit import activity_record, change_log_entry
from .models import (
    EDITABLE_FIELDS,
    REQUIRED_FIELDS,
    Action,
    ActivityRecord,
    Actor,
    DirectorApproval,
    Estimation,
    JobOutcome,
    Pricing,
    Proposal,
    ProposalStatus,
    RevisionEntry,
    TransitionResult,
)
from .notifications import notifications_for
from .transitions import TRANSITIONS, UPDATE_ACTIONS, Transition

REVISION_OWNERS = frozenset({Role.ESTIMATOR, Role.COO, Role.BDM})
PRICING_FIELDS = ("hourlyRate", "materialsCost", "quoteValue", "profitMargin", "currency")

_FIELD_ATTRS = {
    "projectName": "project_name",
    "clientCompany": "client_company",
    "projectType": "project_type",
    "scopeOfWork": "scope_of_work",
    "priority": "priority",
    "country": "country",
    "timeline": "timeline",
}


@dataclass(frozen=True, slots=True)
class WorkflowDefaults:
    currency: str = "USD"
    revision_owner: Role = Role.ESTIMATOR


# --- parsing helpers ---


def parse_action(value: Any) -> Action:
    try:
        return Action(str(value or "").strip().lower())
    except ValueError:
        raise ValidationError(
            "Invalid action",
            details={"allowed": sorted(a.value for a in UPDATE_ACTIONS)},
        ) from None


def parse_update_action(value: Any) -> Action:
    action = parse_action(value)
    if action not in UPDATE_ACTIONS:
        raise ValidationError(
            "Invalid action",
            details={"allowed": sorted(a.value for a in UPDATE_ACTIONS)},
        )
    return action


def _number(data: dict[str, Any], key: str, *, required: bool = False, minimum: float | None = 0.0) -> float | int | None:
    raw = data.get(key)
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        if required:
            raise ValidationError(f"{key} is required")
        return None
    if isinstance(raw, bool):
        raise ValidationError(f"{key} must be a number")
    try:
        n = float(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be a number") from None
    if not math.isfinite(n):
        raise ValidationError(f"{key} must be a finite number")
    if minimum is not None and n < minimum:
        raise ValidationError(f"{key} must be >= {minimum:g}")
    return int(n) if n.is_integer() else n


def _text(data: dict[str, Any], key: str, default: str = "") -> str:
    raw = data.get(key)
    if raw is None:
        return default
    return str(raw).strip()


def _collect_edits(data: dict[str, Any]) -> dict[str, Any]:
    edits: dict[str, Any] = {}
    for k in EDITABLE_FIELDS:
        if k not in data:
            continue
        v = data.get(k)
        v = str(v).strip() if v is not None else None
        if k in REQUIRED_FIELDS and not v:
            raise ValidationError(f"{k} cannot be empty")
        if k == "priority":
            v = v or "Medium"
        edits[_FIELD_ATTRS[k]] = v or None
    return edits


# --- authorization ---


def designated_revision_owner(proposal: Proposal, defaults: WorkflowDefaults) -> Role:
    da = proposal.director_approval
    return (da.requires_revision_by if da else None) or defaults.revision_owner


def authorize(
    transition: Transition,
    proposal: Proposal | None,
    actor: Actor,
    *,
    defaults: WorkflowDefaults = WorkflowDefaults(),
) -> None:
    allowed = transition.roles
    if not allowed and proposal is not None:
        allowed = frozenset({designated_revision_owner(proposal, defaults)})
    if actor.role not in allowed:
        raise AuthorizationError(
            f"Role '{actor.role.value}' cannot perform '{transition.action.value}'",
            details={"allowedRoles": sorted(r.value for r in allowed)},
        )

    if proposal is None:
        return

    privileged = actor.role in transition.privileged_roles
    if not privileged:
        is_creator = proposal.created_by_uid == actor.uid
        if (actor.role is Role.BDM or transition.creator_only) and not is_creator:
            raise AuthorizationError("Only the proposal's creator can perform this action")

        if transition.required_statuses and proposal.status not in transition.required_statuses:
            raise ConflictError(
                f"Cannot {transition.action.value.replace('_', ' ')} a proposal in status '{proposal.status.value}'",
                details={
                    "status": proposal.status.value,
                    "requiredStatus": sorted(s.value for s in transition.required_statuses),
                },
            )


# --- action handlers: (proposal, actor, data, now, defaults) -> (changes, target override, details) ---

_Changes = tuple[dict[str, Any], ProposalStatus | None, str | None]


def _build_estimation(actor: Actor, data: dict[str, Any], now: str) -> Estimation:
    return Estimation(
        total_hours=_number(data, "totalHours", required=True),
        quote_type=_text(data, "quoteType") or None,
        notes=_text(data, "notes"),
        estimated_by=actor.uid,
        estimated_by_name=actor.name,
        estimated_at=now,
    )


def _build_pricing(proposal: Proposal, actor: Actor, data: dict[str, Any], now: str, defaults: WorkflowDefaults) -> Pricing:
    hourly_rate = _number(data, "hourlyRate")
    materials_cost = _number(data, "materialsCost")
    profit_margin = _number(data, "profitMargin", minimum=None)
    quote_value = _number(data, "quoteValue")

    if quote_value is None:
        if hourly_rate is None or proposal.estimation is None:
            raise ValidationError("quoteValue is required (or hourlyRate with an existing estimation)")
        quote_value = round(proposal.estimation.total_hours * hourly_rate + (materials_cost or 0), 2)

    return Pricing(
        hourly_rate=hourly_rate,
        materials_cost=materials_cost,
        quote_value=quote_value,
        profit_margin=profit_margin,
        currency=(_text(data, "currency") or defaults.currency).upper(),
        priced_by=actor.uid,
        priced_by_name=actor.name,
        priced_at=now,
    )


def _edit_proposal(proposal: Proposal, actor: Actor, data: dict[str, Any], now: str, defaults: WorkflowDefaults) -> _Changes:
    edits = _collect_edits(data)
    if not edits:
        raise ValidationError("No editable fields supplied", details={"editable": list(EDITABLE_FIELDS)})
    changed = [k for k in EDITABLE_FIELDS if _FIELD_ATTRS[k] in edits]
    return edits, None, "Updated " + ", ".join(changed)


def _add_estimation(proposal: Proposal, actor: Actor, data: dict[str, Any], now: str, defaults: WorkflowDefaults) -> _Changes:
    est = _build_estimation(actor, data, now)
    return {"estimation": est}, None, f"Estimated {est.total_hours} hours"


def _set_pricing(proposal: Proposal, actor: Actor, data: dict[str, Any], now: str, defaults: WorkflowDefaults) -> _Changes:
    pricing = _build_pricing(proposal, actor, data, now, defaults)
    return {"pricing": pricing}, None, f"Quote set to {pricing.quote_value} {pricing.currency}"


def _director_approve(proposal: Proposal, actor: Actor, data: dict[str, Any], now: str, defaults: WorkflowDefaults) -> _Changes:
    approval = DirectorApproval(
        approved=True,
        decided_by=actor.uid,
        decided_by_name=actor.name,
        decided_at=now,
        notes=_text(data, "notes"),
    )
    return {"directorApproval": approval}, None, None


def _director_reject(proposal: Proposal, actor: Actor, data: dict[str, Any], now: str, defaults: WorkflowDefaults) -> _Changes:
    reason = _text(data, "rejectionReason") or _text(data, "reason")
    final = data.get("final") is True

    owner: Role | None = None
    if not final:
        raw_owner = data.get("requiresRevisionBy")
        owner = parse_role(raw_owner) if raw_owner not in (None, "") else defaults.revision_owner
        if owner not in REVISION_OWNERS:
            raise ValidationError(
                "requiresRevisionBy must be one of: " + ", ".join(sorted(r.value for r in REVISION_OWNERS))
            )

    approval = DirectorApproval(
        approved=False,
        decided_by=actor.uid,
        decided_by_name=actor.name,
        decided_at=now,
        notes=_text(data, "notes"),
        rejection_reason=reason,
        requires_revision_by=owner,
    )
    if final:
        return {"directorApproval": approval}, ProposalStatus.REJECTED, "Rejected by director (final)"
    return {"directorApproval": approval}, None, f"Revision requested from {owner.value}"


def _resubmit_after_revision(proposal: Proposal, actor: Actor, data: dict[str, Any], now: str, defaults: WorkflowDefaults) -> _Changes:
    changes: dict[str, Any] = {}
    revised: list[str] = []

    if actor.role is Role.ESTIMATOR and data.get("totalHours") is not None:
        changes["estimation"] = _build_estimation(actor, data, now)
        revised.append("estimation")
    elif actor.role is Role.COO and any(k in data for k in PRICING_FIELDS):
        changes["pricing"] = _build_pricing(proposal, actor, data, now, defaults)
        revised.append("pricing")
    elif actor.role is Role.BDM:
        edits = _collect_edits(data)
        changes.update(edits)
        if edits:
            revised.append("details")

    da = proposal.director_approval
    entry = RevisionEntry(
        revision_number=len(proposal.revision_history) + 1,
        requested_by_role=designated_revision_owner(proposal, defaults),
        requested_by_name=da.decided_by_name if da else "",
        requested_at=da.decided_at if da else "",
        reason=da.rejection_reason if da else "",
        resolved_by=actor.uid,
        resolved_by_name=actor.name,
        resolved_at=now,
        notes=_text(data, "notes"),
    )
    changes["revisionHistory"] = (*proposal.revision_history, entry)

    details = f"Revision {entry.revision_number} resubmitted"
    if revised:
        details += " (revised " + ", ".join(revised) + ")"
    return changes, None, details


def _submit_to_client(proposal: Proposal, actor: Actor, data: dict[str, Any], now: str, defaults: WorkflowDefaults) -> _Changes:
    return {}, None, None


def _mark_job_won(proposal: Proposal, actor: Actor, data: dict[str, Any], now: str, defaults: WorkflowDefaults) -> _Changes:
    outcome = JobOutcome(
        outcome="won",
        notes=_text(data, "notes"),
        contract_value=_number(data, "contractValue"),
        recorded_by=actor.uid,
        recorded_by_name=actor.name,
        recorded_at=now,
    )
    return {"jobOutcome": outcome}, None, None


def _mark_job_lost(proposal: Proposal, actor: Actor, data: dict[str, Any], now: str, defaults: WorkflowDefaults) -> _Changes:
    reason = _text(data, "reason")
    if not reason:
        raise ValidationError("reason is required")
    outcome = JobOutcome(
        outcome="lost",
        reason=reason,
        notes=_text(data, "notes"),
        recorded_by=actor.uid,
        recorded_by_name=actor.name,
        recorded_at=now,
    )
    return {"jobOutcome": outcome}, None, f"Job lost: {reason}"


_HANDLERS: dict[Action, Callable[..., _Changes]] = {
    Action.EDIT_PROPOSAL: _edit_proposal,
    Action.ADD_ESTIMATION: _add_estimation,
    Action.SET_PRICING: _set_pricing,
    Action.DIRECTOR_APPROVE: _director_approve,
    Action.DIRECTOR_REJECT: _director_reject,
    Action.RESUBMIT_AFTER_REVISION: _resubmit_after_revision,
    Action.SUBMIT_TO_CLIENT: _submit_to_client,
    Action.MARK_JOB_WON: _mark_job_won,
    Action.MARK_JOB_LOST: _mark_job_lost,
}

# camelCase change keys produced by handlers -> Proposal attribute names.
_CHANGE_ATTRS = {
    "estimation": "estimation",
    "pricing": "pricing",
    "directorApproval": "director_approval",
    "jobOutcome": "job_outcome",
    "revisionHistory": "revision_history",
}


# --- entrypoints ---


def create_proposal(
    *,
    proposal_id: str,
    actor: Actor,
    data: dict[str, Any],
    now: str,
) -> TransitionResult:
    authorize(TRANSITIONS[Action.CREATE], None, actor)

    body = data or {}
    missing = [k for k in REQUIRED_FIELDS if not _text(body, k)]
    if missing:
        raise ValidationError(
            "Missing required fields",
            details={"required": list(REQUIRED_FIELDS), "missing": missing},
        )

    entry = change_log_entry(action=Action.CREATE, actor=actor, now=now)
    proposal = Proposal(
        id=proposal_id,
        project_name=_text(body, "projectName"),
        client_company=_text(body, "clientCompany"),
        project_type=_text(body, "projectType"),
        scope_of_work=_text(body, "scopeOfWork"),
        priority=_text(body, "priority") or "Medium",
        country=_text(body, "country") or None,
        timeline=_text(body, "timeline") or None,
        status=ProposalStatus.PENDING_ESTIMATION,
        created_by_uid=actor.uid,
        created_by_name=actor.name,
        created_by_email=actor.email,
        created_at=now,
        updated_at=now,
        change_log=(entry,),
    )
    return TransitionResult(
        proposal=proposal,
        previous_status=None,
        change_entry=entry,
        activity=activity_record(action=Action.CREATE, actor=actor, proposal=proposal, now=now),
    )


def apply_action(
    proposal: Proposal,
    action: Action,
    actor: Actor,
    data: dict[str, Any] | None,
    *,
    now: str,
    defaults: WorkflowDefaults = WorkflowDefaults(),
) -> TransitionResult:
    if action not in _HANDLERS:
        raise ValidationError("Invalid action")

    transition = TRANSITIONS[action]
    authorize(transition, proposal, actor, defaults=defaults)

    changes, target_override, details = _HANDLERS[action](proposal, actor, dict(data or {}), now, defaults)

    new_status = target_override or transition.target_status or proposal.status
    entry = change_log_entry(action=action, actor=actor, now=now, details=details)

    updated = replace(
        proposal,
        **{_CHANGE_ATTRS.get(k, k): v for k, v in changes.items()},
        status=new_status,
        updated_at=now,
        change_log=(*proposal.change_log, entry),
    )

    activity = activity_record(
        action=action,
        actor=actor,
        proposal=updated,
        now=now,
        metadata={"fromStatus": proposal.status.value, "toStatus": new_status.value},
    )
    notes = notifications_for(
        old_status=proposal.status,
        new_status=new_status,
        proposal=updated,
        actor=actor,
    )
    return TransitionResult(
        proposal=updated,
        previous_status=proposal.status,
        change_entry=entry,
        activity=activity,
        notifications=tuple(notes),
    )


def authorize_delete(proposal: Proposal, actor: Actor, *, now: str) -> ActivityRecord:
    """Raises unless `actor` may delete `proposal`; returns the activity to log."""
    authorize(TRANSITIONS[Action.DELETE], proposal, actor)
    return activity_record(
        action=Action.DELETE,
        actor=actor,
        proposal=proposal,
        now=now,
        metadata={"status": proposal.status.value},
    )


def actor_from_claims(uid: str, name: str, role: Any, email: str | None = None) -> Actor:
    r = normalize_role(role)
    if r is None:
        raise AuthorizationError("User has no workflow role")
    return Actor(uid=uid, name=name or (email or uid), role=r, email=email)
