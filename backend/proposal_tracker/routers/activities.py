from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query

from ..dependencies import get_current_actor
from ..errors import InternalError, ValidationError
from ..modules.identity.roles import Role
from ..modules.workflow.models import ActivityRecord, Actor
from ..repositories.base_repository import now_iso
from ..responses import ok
from ..store import Store, get_store

router = APIRouter(tags=["activities"])


@router.get("")
def list_activities(
    type: str | None = Query(default=None),
    proposal_id: str | None = Query(default=None, alias="proposalId"),
    limit: int = Query(default=20, ge=1, le=200),
    next_token: str | None = Query(default=None, alias="nextToken"),
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    # BDMs only see what they did themselves.
    items, token = store.activities.list_activities(
        performed_by_uid=actor.uid if actor.role is Role.BDM else None,
        activity_type=type,
        proposal_id=proposal_id,
        limit=limit,
        next_token=next_token,
    )
    return ok(items, count=len(items), nextToken=token)


@router.post("", status_code=201)
def create_activity(
    body: dict[str, Any] | None = Body(default=None),
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    payload = body or {}
    kind = str(payload.get("type") or "").strip()
    details = str(payload.get("details") or "").strip()
    if not kind or not details:
        raise ValidationError("Missing required fields: type, details", details={"required": ["type", "details"]})

    metadata = payload.get("metadata")
    record = ActivityRecord(
        type=kind,
        proposal_id=payload.get("proposalId") or None,
        project_name=payload.get("projectName") or None,
        client_company=payload.get("clientCompany") or None,
        performed_by_uid=actor.uid,
        performed_by_name=actor.name,
        performed_by_role=actor.role.value,
        details=details,
        timestamp=now_iso(),
        metadata=metadata if isinstance(metadata, dict) else {},
    )
    try:
        created = store.activities.create(record)
    except Exception as e:
        raise InternalError("Failed to create activity") from e
    return ok(created, message="Activity logged successfully", activityId=created.get("id"))
