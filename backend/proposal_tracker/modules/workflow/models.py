from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..identity.roles import Role, normalize_role


class ProposalStatus(str, Enum):
    PENDING_ESTIMATION = "pending_estimation"
    PENDING_PRICING = "pending_pricing"
    PENDING_DIRECTOR_APPROVAL = "pending_director_approval"
    APPROVED = "approved"
    # Terminal director rejection (no revision requested).
    REJECTED = "rejected"
    REVISION_REQUIRED = "revision_required"
    SUBMITTED_TO_CLIENT = "submitted_to_client"
    WON = "won"
    LOST = "lost"


class Action(str, Enum):
    CREATE = "create"
    EDIT_PROPOSAL = "edit_proposal"
    ADD_ESTIMATION = "add_estimation"
    SET_PRICING = "set_pricing"
    DIRECTOR_APPROVE = "director_approve"
    DIRECTOR_REJECT = "director_reject"
    RESUBMIT_AFTER_REVISION = "resubmit_after_revision"
    SUBMIT_TO_CLIENT = "submit_to_client"
    MARK_JOB_WON = "mark_job_won"
    MARK_JOB_LOST = "mark_job_lost"
    DELETE = "delete"


STAGE_BY_STATUS: dict[ProposalStatus, str] = {
    ProposalStatus.PENDING_ESTIMATION: "estimation",
    ProposalStatus.PENDING_PRICING: "pricing",
    ProposalStatus.PENDING_DIRECTOR_APPROVAL: "director_approval",
    ProposalStatus.APPROVED: "approved",
    ProposalStatus.REJECTED: "rejected",
    ProposalStatus.REVISION_REQUIRED: "revision",
    ProposalStatus.SUBMITTED_TO_CLIENT: "client_review",
    ProposalStatus.WON: "won",
    ProposalStatus.LOST: "lost",
}

# Fields a BDM supplies on create and may change through edit_proposal.
EDITABLE_FIELDS = (
    "projectName",
    "clientCompany",
    "projectType",
    "scopeOfWork",
    "priority",
    "country",
    "timeline",
)
REQUIRED_FIELDS = ("projectName", "clientCompany", "projectType", "scopeOfWork")


@dataclass(frozen=True, slots=True)
class Actor:
    uid: str
    name: str
    role: Role
    email: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"uid": self.uid, "email": self.email, "name": self.name, "role": self.role.value}


@dataclass(frozen=True, slots=True)
class Estimation:
    total_hours: float
    estimated_by: str
    estimated_by_name: str
    estimated_at: str
    quote_type: str | None = None
    notes: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalHours": self.total_hours,
            "quoteType": self.quote_type,
            "notes": self.notes,
            "estimatedBy": self.estimated_by,
            "estimatedByName": self.estimated_by_name,
            "estimatedAt": self.estimated_at,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Estimation:
        return cls(
            total_hours=d.get("totalHours") or 0,
            quote_type=d.get("quoteType"),
            notes=str(d.get("notes") or ""),
            estimated_by=str(d.get("estimatedBy") or ""),
            estimated_by_name=str(d.get("estimatedByName") or ""),
            estimated_at=str(d.get("estimatedAt") or ""),
        )


@dataclass(frozen=True, slots=True)
class Pricing:
    quote_value: float
    currency: str
    priced_by: str
    priced_by_name: str
    priced_at: str
    hourly_rate: float | None = None
    materials_cost: float | None = None
    profit_margin: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "hourlyRate": self.hourly_rate,
            "materialsCost": self.materials_cost,
            "quoteValue": self.quote_value,
            "profitMargin": self.profit_margin,
            "currency": self.currency,
            "pricedBy": self.priced_by,
            "pricedByName": self.priced_by_name,
            "pricedAt": self.priced_at,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Pricing:
        return cls(
            hourly_rate=d.get("hourlyRate"),
            materials_cost=d.get("materialsCost"),
            quote_value=d.get("quoteValue") or 0,
            profit_margin=d.get("profitMargin"),
            currency=str(d.get("currency") or ""),
            priced_by=str(d.get("pricedBy") or ""),
            priced_by_name=str(d.get("pricedByName") or ""),
            priced_at=str(d.get("pricedAt") or ""),
        )


@dataclass(frozen=True, slots=True)
class DirectorApproval:
    approved: bool
    decided_by: str
    decided_by_name: str
    decided_at: str
    notes: str = ""
    rejection_reason: str = ""
    requires_revision_by: Role | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.approved:
            return {
                "approved": True,
                "approvedBy": self.decided_by,
                "approvedByName": self.decided_by_name,
                "approvedAt": self.decided_at,
                "notes": self.notes,
            }
        return {
            "approved": False,
            "rejectedBy": self.decided_by,
            "rejectedByName": self.decided_by_name,
            "rejectedAt": self.decided_at,
            "rejectionReason": self.rejection_reason,
            "requiresRevisionBy": self.requires_revision_by.value if self.requires_revision_by else None,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> DirectorApproval:
        approved = bool(d.get("approved"))
        prefix = "approved" if approved else "rejected"
        return cls(
            approved=approved,
            decided_by=str(d.get(f"{prefix}By") or ""),
            decided_by_name=str(d.get(f"{prefix}ByName") or ""),
            decided_at=str(d.get(f"{prefix}At") or ""),
            notes=str(d.get("notes") or ""),
            rejection_reason=str(d.get("rejectionReason") or ""),
            requires_revision_by=normalize_role(d.get("requiresRevisionBy")),
        )


@dataclass(frozen=True, slots=True)
class JobOutcome:
    outcome: str  # "won" | "lost"
    recorded_by: str
    recorded_by_name: str
    recorded_at: str
    reason: str = ""
    notes: str = ""
    contract_value: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome,
            "reason": self.reason,
            "notes": self.notes,
            "contractValue": self.contract_value,
            "recordedBy": self.recorded_by,
            "recordedByName": self.recorded_by_name,
            "recordedAt": self.recorded_at,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> JobOutcome:
        return cls(
            outcome=str(d.get("outcome") or ""),
            reason=str(d.get("reason") or ""),
            notes=str(d.get("notes") or ""),
            contract_value=d.get("contractValue"),
            recorded_by=str(d.get("recordedBy") or ""),
            recorded_by_name=str(d.get("recordedByName") or ""),
            recorded_at=str(d.get("recordedAt") or ""),
        )


@dataclass(frozen=True, slots=True)
class RevisionEntry:
    revision_number: int
    requested_by_role: Role
    requested_by_name: str
    requested_at: str
    reason: str = ""
    resolved_by: str | None = None
    resolved_by_name: str | None = None
    resolved_at: str | None = None
    notes: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "revisionNumber": self.revision_number,
            "requiresRevisionBy": self.requested_by_role.value,
            "requestedByName": self.requested_by_name,
            "requestedAt": self.requested_at,
            "reason": self.reason,
            "resolvedBy": self.resolved_by,
            "resolvedByName": self.resolved_by_name,
            "resolvedAt": self.resolved_at,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> RevisionEntry:
        return cls(
            revision_number=int(d.get("revisionNumber") or 0),
            requested_by_role=normalize_role(d.get("requiresRevisionBy")) or Role.ESTIMATOR,
            requested_by_name=str(d.get("requestedByName") or ""),
            requested_at=str(d.get("requestedAt") or ""),
            reason=str(d.get("reason") or ""),
            resolved_by=d.get("resolvedBy"),
            resolved_by_name=d.get("resolvedByName"),
            resolved_at=d.get("resolvedAt"),
            notes=str(d.get("notes") or ""),
        )


@dataclass(frozen=True, slots=True)
class ChangeLogEntry:
    timestamp: str
    action: str
    performed_by: str
    performed_by_name: str
    performed_by_role: str
    details: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "action": self.action,
            "performedBy": self.performed_by,
            "performedByName": self.performed_by_name,
            "performedByRole": self.performed_by_role,
            "details": self.details,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ChangeLogEntry:
        return cls(
            timestamp=str(d.get("timestamp") or ""),
            action=str(d.get("action") or ""),
            performed_by=str(d.get("performedBy") or ""),
            performed_by_name=str(d.get("performedByName") or ""),
            performed_by_role=str(d.get("performedByRole") or ""),
            details=str(d.get("details") or ""),
        )


@dataclass(frozen=True, slots=True)
class Proposal:
    id: str
    project_name: str
    client_company: str
    project_type: str
    scope_of_work: str
    status: ProposalStatus
    created_by_uid: str
    created_by_name: str
    created_at: str
    updated_at: str
    priority: str = "Medium"
    country: str | None = None
    timeline: str | None = None
    created_by_email: str | None = None
    estimation: Estimation | None = None
    pricing: Pricing | None = None
    director_approval: DirectorApproval | None = None
    job_outcome: JobOutcome | None = None
    revision_history: tuple[RevisionEntry, ...] = ()
    change_log: tuple[ChangeLogEntry, ...] = ()
    version: int = 1

    @property
    def current_stage(self) -> str:
        return STAGE_BY_STATUS[self.status]

    def summary(self) -> dict[str, Any]:
        return {
            "proposalId": self.id,
            "projectName": self.project_name,
            "clientCompany": self.client_company,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "projectName": self.project_name,
            "clientCompany": self.client_company,
            "projectType": self.project_type,
            "scopeOfWork": self.scope_of_work,
            "priority": self.priority,
            "country": self.country,
            "timeline": self.timeline,
            "status": self.status.value,
            "currentStage": self.current_stage,
            "createdByUid": self.created_by_uid,
            "createdByName": self.created_by_name,
            "createdByEmail": self.created_by_email,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "estimation": self.estimation.to_dict() if self.estimation else None,
            "pricing": self.pricing.to_dict() if self.pricing else None,
            "directorApproval": self.director_approval.to_dict() if self.director_approval else None,
            "jobOutcome": self.job_outcome.to_dict() if self.job_outcome else None,
            "revisionHistory": [r.to_dict() for r in self.revision_history],
            "changeLog": [c.to_dict() for c in self.change_log],
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Proposal:
        def _sub(key: str, kind: Any) -> Any:
            raw = d.get(key)
            return kind.from_dict(raw) if isinstance(raw, dict) else None

        return cls(
            id=str(d.get("id") or ""),
            project_name=str(d.get("projectName") or ""),
            client_company=str(d.get("clientCompany") or ""),
            project_type=str(d.get("projectType") or ""),
            scope_of_work=str(d.get("scopeOfWork") or ""),
            priority=str(d.get("priority") or "Medium"),
            country=d.get("country"),
            timeline=d.get("timeline"),
            status=ProposalStatus(str(d.get("status") or ProposalStatus.PENDING_ESTIMATION.value)),
            created_by_uid=str(d.get("createdByUid") or ""),
            created_by_name=str(d.get("createdByName") or ""),
            created_by_email=d.get("createdByEmail"),
            created_at=str(d.get("createdAt") or ""),
            updated_at=str(d.get("updatedAt") or ""),
            estimation=_sub("estimation", Estimation),
            pricing=_sub("pricing", Pricing),
            director_approval=_sub("directorApproval", DirectorApproval),
            job_outcome=_sub("jobOutcome", JobOutcome),
            revision_history=tuple(
                RevisionEntry.from_dict(r) for r in (d.get("revisionHistory") or []) if isinstance(r, dict)
            ),
            change_log=tuple(
                ChangeLogEntry.from_dict(c) for c in (d.get("changeLog") or []) if isinstance(c, dict)
            ),
            version=int(d.get("version") or 1),
        )


@dataclass(frozen=True, slots=True)
class ActivityRecord:
    type: str
    performed_by_uid: str
    performed_by_name: str
    performed_by_role: str
    details: str
    timestamp: str
    proposal_id: str | None = None
    project_name: str | None = None
    client_company: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "proposalId": self.proposal_id,
            "projectName": self.project_name,
            "clientCompany": self.client_company,
            "performedByUid": self.performed_by_uid,
            "performedByName": self.performed_by_name,
            "performedByRole": self.performed_by_role,
            "details": self.details,
            "metadata": dict(self.metadata),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True, slots=True)
class NotificationSpec:
    """One notification to create; addressed to a role, a user, or both (BDM)."""

    type: str
    message: str
    proposal_id: str
    recipient_role: Role | None = None
    recipient_uid: str | None = None


@dataclass(frozen=True, slots=True)
class TransitionResult:
    proposal: Proposal
    previous_status: ProposalStatus | None
    change_entry: ChangeLogEntry
    activity: ActivityRecord
    notifications: tuple[NotificationSpec, ...] = ()
