from __future__ import annotations

from typing import Any

from boto3.dynamodb.conditions import Attr, Key

from ..modules.identity.roles import Role
from ..modules.workflow.models import NotificationSpec
from .base_repository import Repository, new_id, now_iso, strip_internal


def recipient_pk(*, role: Role | str | None = None, uid: str | None = None) -> str:
    # BDM notifications are personal; the uid wins when both are set.
    if uid:
        return f"RECIPIENT#uid:{uid}"
    if role:
        return f"RECIPIENT#role:{Role(role).value}"
    raise ValueError("notification needs a recipient role or uid")


class NotificationsRepository(Repository):
    entity_type = "Notification"
    key_prefix = "NOTIFICATION"

    def create(self, spec: NotificationSpec, *, now: str | None = None) -> dict[str, Any]:
        notification_id = new_id("ntf")
        created_at = now or now_iso()
        item = {
            **self.key(notification_id),
            "entityType": self.entity_type,
            "gsi1pk": recipient_pk(role=spec.recipient_role, uid=spec.recipient_uid),
            "gsi1sk": f"{created_at}#{notification_id}",
            "id": notification_id,
            "type": spec.type,
            "recipientRole": spec.recipient_role.value if spec.recipient_role else None,
            "recipientUid": spec.recipient_uid,
            "proposalId": spec.proposal_id,
            "message": spec.message,
            "isRead": False,
            "readAt": None,
            "createdAt": created_at,
        }
        self.table.put_item(item=item, condition_expression="attribute_not_exists(pk)")
        return strip_internal(item) or {}

    def list_for_recipient(
        self,
        *,
        role: Role | None = None,
        uid: str | None = None,
        include_read: bool = False,
        limit: int = 20,
    ) -> list[dict[str, Any]]:
        # Limit applies before the filter in DynamoDB, so keep reading until
        # enough unread items are collected.
        out: list[dict[str, Any]] = []
        for it in self.table.query_all(
            index_name="GSI1",
            key_condition_expression=Key("gsi1pk").eq(recipient_pk(role=role, uid=uid)),
            scan_index_forward=False,
            filter_expression=None if include_read else Attr("isRead").eq(False),
        ):
            item = strip_internal(it)
            if item:
                out.append(item)
            if len(out) >= limit:
                break
        return out

    def mark_read(self, notification_id: str, *, now: str | None = None) -> dict[str, Any] | None:
        raw = self.get_raw(notification_id)
        if not raw:
            return None
        if raw.get("isRead"):
            return strip_internal(raw)
        updated = {**raw, "isRead": True, "readAt": now or now_iso()}
        self.table.put_item(item=updated, condition_expression="attribute_exists(pk)")
        return strip_internal(updated)

    def mark_all_read(self, *, role: Role | None = None, uid: str | None = None, now: str | None = None) -> int:
        """Mark every unread notification in one inbox read; returns how many changed."""
        unread = [
            str(it["id"])
            for it in self.table.query_all(
                index_name="GSI1",
                key_condition_expression=Key("gsi1pk").eq(recipient_pk(role=role, uid=uid)),
                filter_expression=Attr("isRead").eq(False),
            )
        ]
        read_at = now or now_iso()
        for notification_id in unread:
            self.mark_read(notification_id, now=read_at)
        return len(unread)
