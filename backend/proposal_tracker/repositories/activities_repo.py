from __future__ import annotations

from typing import Any

from boto3.dynamodb.conditions import Attr, Key

from ..modules.workflow.models import ActivityRecord
from .base_repository import Repository, new_id, strip_internal


class ActivitiesRepository(Repository):
    """Write-once activity facts, read newest first."""

    entity_type = "Activity"
    key_prefix = "ACTIVITY"

    def create(self, record: ActivityRecord) -> dict[str, Any]:
        activity_id = new_id("act")
        sort = f"{record.timestamp}#{activity_id}"
        item = {
            **self.key(activity_id),
            "entityType": self.entity_type,
            "gsi1pk": "TYPE#ACTIVITY",
            "gsi1sk": sort,
            "gsi2pk": f"ACTOR#{record.performed_by_uid}",
            "gsi2sk": sort,
            "id": activity_id,
            **record.to_dict(),
        }
        self.table.put_item(item=item, condition_expression="attribute_not_exists(pk)")
        return strip_internal(item) or {}

    def list_activities(
        self,
        *,
        performed_by_uid: str | None = None,
        activity_type: str | None = None,
        proposal_id: str | None = None,
        limit: int = 20,
        next_token: str | None = None,
    ) -> tuple[list[dict[str, Any]], str | None]:
        if performed_by_uid:
            index, cond = "GSI2", Key("gsi2pk").eq(f"ACTOR#{performed_by_uid}")
        else:
            index, cond = "GSI1", Key("gsi1pk").eq("TYPE#ACTIVITY")

        filt = None
        if activity_type:
            filt = Attr("type").eq(activity_type)
        if proposal_id:
            by_proposal = Attr("proposalId").eq(proposal_id)
            filt = by_proposal if filt is None else filt & by_proposal

        page = self.query_newest_page(
            index_name=index,
            key_condition_expression=cond,
            filter_expression=filt,
            limit=limit,
            next_token=next_token,
        )
        return [a for a in (strip_internal(it) for it in page.items) if a], page.next_token
