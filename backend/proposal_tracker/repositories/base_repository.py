"""
Base repository.

Repositories wrap one entity type stored in the single DynamoDB table. The
table is injected so the same code runs against `DynamoTable` in production
and an in-memory fake in tests.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Protocol

from ..db.dynamodb.table import Page

INTERNAL_KEYS = ("pk", "sk", "gsi1pk", "gsi1sk", "gsi2pk", "gsi2sk", "entityType")


class Table(Protocol):
    table_name: str

    def get_item(self, *, key: dict[str, Any]) -> dict[str, Any] | None: ...

    def put_item(self, *, item: dict[str, Any], **kwargs: Any) -> dict[str, Any]: ...

    def delete_item(self, *, key: dict[str, Any], **kwargs: Any) -> dict[str, Any]: ...

    def query_page(self, **kwargs: Any) -> Page: ...

    def query_all(self, **kwargs: Any) -> Any: ...


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4()}"


def strip_internal(item: dict[str, Any] | None) -> dict[str, Any] | None:
    if not item:
        return None
    return {k: v for k, v in item.items() if k not in INTERNAL_KEYS}


class Repository:
    """Base repository: holds the table and the entity's key prefix."""

    entity_type: str = ""
    key_prefix: str = ""

    def __init__(self, table: Table):
        self.table = table

    def key(self, entity_id: str) -> dict[str, str]:
        eid = str(entity_id or "").strip()
        if not eid:
            raise ValueError(f"{self.entity_type} id is required")
        return {"pk": f"{self.key_prefix}#{eid}", "sk": "PROFILE"}

    def get_raw(self, entity_id: str) -> dict[str, Any] | None:
        return self.table.get_item(key=self.key(entity_id))

    def get(self, entity_id: str) -> dict[str, Any] | None:
        return strip_internal(self.get_raw(entity_id))

    def query_newest_page(
        self,
        *,
        index_name: str,
        key_condition_expression: Any,
        filter_expression: Any | None = None,
        limit: int = 50,
        next_token: str | None = None,
    ) -> Page:
        """
        One newest-first page of up to `limit` items.

        DynamoDB applies Limit before FilterExpression, so a filtered query
        keeps reading until `limit` items match or the index is exhausted.
        Each read asks only for the items still missing, so the returned
        cursor never skips a match.
        """
        want = max(1, int(limit))
        items: list[dict[str, Any]] = []
        token = next_token
        while True:
            page = self.table.query_page(
                index_name=index_name,
                key_condition_expression=key_condition_expression,
                scan_index_forward=False,
                filter_expression=filter_expression,
                limit=want - len(items),
                next_token=token,
            )
            items.extend(page.items)
            token = page.next_token
            if filter_expression is None or len(items) >= want or not token:
                return Page(items=items, next_token=token)
