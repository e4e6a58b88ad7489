from __future__ import annotations

from typing import Any, Iterator

from boto3.dynamodb.conditions import Key

from .base_repository import Repository, new_id, now_iso, strip_internal


def files_for_pk(proposal_id: str | None) -> str:
    return f"FILES_FOR#{proposal_id or 'general'}"


class FilesRepository(Repository):
    """Attachment metadata; bytes live in the blob store under `fileName`."""

    entity_type = "File"
    key_prefix = "FILE"

    def create(self, payload: dict[str, Any]) -> dict[str, Any]:
        file_id = new_id("file")
        uploaded_at = str(payload.get("uploadedAt") or now_iso())
        sort = f"{uploaded_at}#{file_id}"
        item = {
            **self.key(file_id),
            "entityType": self.entity_type,
            "gsi1pk": "TYPE#FILE",
            "gsi1sk": sort,
            "gsi2pk": files_for_pk(payload.get("proposalId")),
            "gsi2sk": sort,
            "status": "active",
            **payload,
            "id": file_id,
            "uploadedAt": uploaded_at,
        }
        self.table.put_item(item=item, condition_expression="attribute_not_exists(pk)")
        return strip_internal(item) or {}

    def list_files(self, *, proposal_id: str | None = None, limit: int = 100) -> list[dict[str, Any]]:
        if proposal_id:
            index, cond = "GSI2", Key("gsi2pk").eq(files_for_pk(proposal_id))
        else:
            index, cond = "GSI1", Key("gsi1pk").eq("TYPE#FILE")
        page = self.table.query_page(
            index_name=index,
            key_condition_expression=cond,
            scan_index_forward=False,
            limit=limit,
        )
        return [f for f in (strip_internal(it) for it in page.items) if f]

    def iter_for_proposal(self, proposal_id: str) -> Iterator[dict[str, Any]]:
        for it in self.table.query_all(
            index_name="GSI2",
            key_condition_expression=Key("gsi2pk").eq(files_for_pk(proposal_id)),
        ):
            item = strip_internal(it)
            if item:
                yield item

    def delete(self, file_id: str) -> None:
        self.table.delete_item(key=self.key(file_id))
