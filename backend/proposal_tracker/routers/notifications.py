from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..dependencies import get_current_actor
from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..modules.identity.roles import Role
from ..modules.workflow.access import can_read_notification
from ..modules.workflow.models import Actor
from ..observability.logging import get_logger
from ..responses import ok
from ..store import Store, get_store

router = APIRouter(tags=["notifications"])
log = get_logger("notifications")


def _inbox(store: Store, actor: Actor, *, include_read: bool, limit: int) -> list[dict]:
    if actor.role is Role.BDM:
        return store.notifications.list_for_recipient(uid=actor.uid, include_read=include_read, limit=limit)
    return store.notifications.list_for_recipient(role=actor.role, include_read=include_read, limit=limit)


@router.get("")
def list_notifications(
    include_read: bool = Query(default=False, alias="includeRead"),
    limit: int = Query(default=20, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    items = _inbox(store, actor, include_read=include_read, limit=limit)
    return ok(items, count=len(items))


@router.put("")
def mark_read(
    id: str | None = Query(default=None),
    all: bool = Query(default=False),
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    if all:
        if actor.role is Role.BDM:
            updated = store.notifications.mark_all_read(uid=actor.uid)
        else:
            updated = store.notifications.mark_all_read(role=actor.role)
        log.info("notifications_marked_read", actor_uid=actor.uid, count=updated)
        return ok({"updated": updated}, message="All notifications marked as read.")

    if not id:
        raise ValidationError("Notification ID required")
    notification = store.notifications.get(id)
    if not notification:
        raise NotFoundError("Notification not found", details={"notificationId": id})
    if not can_read_notification(actor, notification):
        raise AuthorizationError("Access denied to this notification")

    updated = store.notifications.mark_read(id)
    return ok(updated, message="Notification marked as read.")
