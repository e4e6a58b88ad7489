from __future__ import annotations

from typing import Any

from ..modules.identity.roles import parse_role
from .base_repository import Repository, now_iso, strip_internal


class UsersRepository(Repository):
    """User profiles: `USER#<uid>` holds the display name and workflow role."""

    entity_type = "User"
    key_prefix = "USER"

    def upsert(self, *, uid: str, name: str, role: str, email: str | None = None, status: str = "active") -> dict[str, Any]:
        existing = self.get_raw(uid) or {}
        now = now_iso()
        item = {
            **self.key(uid),
            "entityType": self.entity_type,
            "uid": uid,
            "name": str(name or "").strip() or (email or uid),
            "email": email,
            "role": parse_role(role).value,
            "status": status,
            "createdAt": existing.get("createdAt") or now,
            "updatedAt": now,
        }
        self.table.put_item(item=item)
        return strip_internal(item) or {}
