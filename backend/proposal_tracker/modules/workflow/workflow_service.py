from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from ...errors import AuthorizationError, NotFoundError, ValidationError
from ...observability.logging import get_logger
from ...repositories.base_repository import new_id, now_iso
from ...settings import Settings
from ...store import Store
from ..identity.roles import Role, normalize_role
from . import engine
from .access import can_view_proposal
from .models import ActivityRecord, Actor, NotificationSpec, Proposal, ProposalStatus

log = get_logger("workflow")


def defaults_from_settings(s: Settings) -> engine.WorkflowDefaults:
    owner = normalize_role(s.default_revision_owner)
    if owner not in engine.REVISION_OWNERS:
        owner = Role.ESTIMATOR
    return engine.WorkflowDefaults(
        currency=(s.default_currency or "USD").strip().upper(),
        revision_owner=owner,
    )


def _require_id(proposal_id: str | None) -> str:
    pid = str(proposal_id or "").strip()
    if not pid:
        raise ValidationError("Proposal id is required")
    return pid


@dataclass
class WorkflowService:
    """
    Runs one workflow action end to end: load, decide (pure engine), persist
    with a version check, then record side effects.

    Activity and notification writes happen after the proposal is stored and
    are best-effort: a failure is logged and never undoes the transition.
    """

    store: Store
    defaults: engine.WorkflowDefaults = engine.WorkflowDefaults()

    # --- side effects ---

    def record_activity(self, record: ActivityRecord) -> str | None:
        try:
            return str(self.store.activities.create(record).get("id") or "") or None
        except Exception:
            log.warning(
                "activity_write_failed",
                activity_type=record.type,
                proposal_id=record.proposal_id,
                exc_info=True,
            )
            return None

    def send_notifications(self, specs: Iterable[NotificationSpec], *, now: str) -> int:
        sent = 0
        for spec in specs:
            try:
                self.store.notifications.create(spec, now=now)
                sent += 1
            except Exception:
                log.warning(
                    "notification_write_failed",
                    notification_type=spec.type,
                    proposal_id=spec.proposal_id,
                    recipient_role=spec.recipient_role.value if spec.recipient_role else None,
                    exc_info=True,
                )
        return sent

    # --- reads ---

    def load(self, proposal_id: str) -> Proposal:
        proposal = self.store.proposals.get_proposal(_require_id(proposal_id))
        if proposal is None:
            raise NotFoundError("Proposal not found", details={"proposalId": proposal_id})
        return proposal

    def get_for(self, actor: Actor, proposal_id: str) -> Proposal:
        proposal = self.load(proposal_id)
        if not can_view_proposal(actor, proposal):
            raise AuthorizationError("You can only view your own proposals")
        return proposal

    def list_for(
        self,
        actor: Actor,
        *,
        status: str | None = None,
        limit: int = 50,
        next_token: str | None = None,
    ) -> tuple[list[Proposal], str | None]:
        status_filter = None
        if status:
            try:
                status_filter = ProposalStatus(str(status).strip().lower())
            except ValueError:
                raise ValidationError(
                    "Invalid status",
                    details={"allowed": [s.value for s in ProposalStatus]},
                ) from None

        return self.store.proposals.list_proposals(
            owner_uid=actor.uid if actor.role is Role.BDM else None,
            status=status_filter,
            limit=limit,
            next_token=next_token,
        )

    # --- writes ---

    def create(self, actor: Actor, data: dict[str, Any] | None) -> Proposal:
        now = now_iso()
        result = engine.create_proposal(
            proposal_id=new_id("prop"),
            actor=actor,
            data=dict(data or {}),
            now=now,
        )
        proposal = self.store.proposals.create(result.proposal)
        log.info(
            "proposal_created",
            proposal_id=proposal.id,
            actor_uid=actor.uid,
            status=proposal.status.value,
        )
        self.record_activity(result.activity)
        return proposal

    def apply(self, actor: Actor, proposal_id: str | None, action: Any, data: dict[str, Any] | None) -> Proposal:
        act = engine.parse_update_action(action)
        current = self.load(proposal_id)
        now = now_iso()

        result = engine.apply_action(current, act, actor, data, now=now, defaults=self.defaults)
        stored = self.store.proposals.save(result.proposal, expected_version=current.version)

        log.info(
            "proposal_transition",
            proposal_id=stored.id,
            action=act.value,
            actor_uid=actor.uid,
            actor_role=actor.role.value,
            from_status=current.status.value,
            to_status=stored.status.value,
            version=stored.version,
        )
        self.record_activity(result.activity)
        self.send_notifications(result.notifications, now=now)
        return stored

    def delete(self, actor: Actor, proposal_id: str | None) -> dict[str, Any]:
        """Delete a proposal and cascade to its files. Returns a small summary."""
        proposal = self.load(proposal_id)
        activity = engine.authorize_delete(proposal, actor, now=now_iso())

        files = list(self.store.files.iter_for_proposal(proposal.id))
        self.store.proposals.delete(proposal.id, expected_version=proposal.version)

        # The proposal is gone; leftovers are logged, not raised.
        removed = 0
        for f in files:
            try:
                self.store.files.delete(str(f.get("id")))
            except Exception:
                log.warning("file_record_delete_failed", file_id=f.get("id"), proposal_id=proposal.id, exc_info=True)
                continue
            removed += 1
            blob_key = f.get("fileName")
            if f.get("fileType") == "link" or not blob_key:
                continue
            try:
                self.store.blobs.delete(key=str(blob_key))
            except Exception:
                log.warning("file_blob_delete_failed", file_id=f.get("id"), exc_info=True)

        log.info(
            "proposal_deleted",
            proposal_id=proposal.id,
            actor_uid=actor.uid,
            status=proposal.status.value,
            files_deleted=removed,
            files_left=len(files) - removed,
        )
        self.record_activity(activity)
        return {"proposalId": proposal.id, "filesDeleted": removed}
