from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query

from ..dependencies import get_current_actor, get_workflow_service
from ..errors import ValidationError
from ..modules.workflow.models import Actor
from ..modules.workflow.workflow_service import WorkflowService
from ..responses import ok
from ..settings import settings

router = APIRouter(tags=["proposals"])


@router.get("")
def get_proposals(
    id: str | None = Query(default=None),
    status: str | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1, le=200),
    next_token: str | None = Query(default=None, alias="nextToken"),
    actor: Actor = Depends(get_current_actor),
    service: WorkflowService = Depends(get_workflow_service),
):
    if id:
        return ok(service.get_for(actor, id).to_dict())

    proposals, token = service.list_for(
        actor,
        status=status,
        limit=limit or settings.default_list_limit,
        next_token=next_token,
    )
    return ok([p.to_dict() for p in proposals], count=len(proposals), nextToken=token)


@router.post("", status_code=201)
def create_proposal(
    body: dict[str, Any] | None = Body(default=None),
    actor: Actor = Depends(get_current_actor),
    service: WorkflowService = Depends(get_workflow_service),
):
    proposal = service.create(actor, body or {})
    return ok(proposal.to_dict(), message="Proposal created successfully")


@router.put("")
def update_proposal(
    id: str | None = Query(default=None),
    body: dict[str, Any] | None = Body(default=None),
    actor: Actor = Depends(get_current_actor),
    service: WorkflowService = Depends(get_workflow_service),
):
    payload = body or {}
    data = payload.get("data")
    if data is not None and not isinstance(data, dict):
        raise ValidationError("data must be an object")

    proposal = service.apply(actor, id, payload.get("action"), data)
    return ok(proposal.to_dict(), message="Proposal updated successfully")


@router.delete("")
def delete_proposal(
    id: str | None = Query(default=None),
    actor: Actor = Depends(get_current_actor),
    service: WorkflowService = Depends(get_workflow_service),
):
    summary = service.delete(actor, id)
    return ok(summary, message="Proposal deleted successfully")
