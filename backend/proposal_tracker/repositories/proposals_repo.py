from __future__ import annotations

from dataclasses import replace
from typing import Any

from boto3.dynamodb.conditions import Attr, Key

from ..db.dynamodb.errors import DdbConflict
from ..errors import ConcurrentModificationError
from ..modules.workflow.models import Proposal, ProposalStatus
from .base_repository import Repository, strip_internal

_VERSION_CONDITION = "attribute_exists(pk) AND #version = :expected"


def type_pk() -> str:
    return "TYPE#PROPOSAL"


def owner_pk(uid: str) -> str:
    return f"OWNER#{uid}"


class ProposalsRepository(Repository):
    entity_type = "Proposal"
    key_prefix = "PROPOSAL"

    def _to_item(self, proposal: Proposal) -> dict[str, Any]:
        sort = f"{proposal.created_at}#{proposal.id}"
        return {
            **self.key(proposal.id),
            "entityType": self.entity_type,
            "gsi1pk": type_pk(),
            "gsi1sk": sort,
            "gsi2pk": owner_pk(proposal.created_by_uid),
            "gsi2sk": sort,
            **proposal.to_dict(),
        }

    def get_proposal(self, proposal_id: str) -> Proposal | None:
        item = strip_internal(self.get_raw(proposal_id))
        return Proposal.from_dict(item) if item else None

    def create(self, proposal: Proposal) -> Proposal:
        # Never overwrite an existing record.
        self.table.put_item(
            item=self._to_item(proposal),
            condition_expression="attribute_not_exists(pk) AND attribute_not_exists(sk)",
        )
        return proposal

    def save(self, proposal: Proposal, *, expected_version: int) -> Proposal:
        """
        Persist a transition with a compare-and-swap on `version`.
        Raises ConcurrentModificationError if someone else wrote first.
        """
        stored = replace(proposal, version=int(expected_version) + 1)
        try:
            self.table.put_item(
                item=self._to_item(stored),
                condition_expression=_VERSION_CONDITION,
                expression_attribute_names={"#version": "version"},
                expression_attribute_values={":expected": int(expected_version)},
            )
        except DdbConflict as e:
            raise ConcurrentModificationError(
                "Proposal was modified by another request; reload and retry",
                details={"proposalId": proposal.id, "expectedVersion": int(expected_version)},
            ) from e
        return stored

    def delete(self, proposal_id: str, *, expected_version: int) -> None:
        try:
            self.table.delete_item(
                key=self.key(proposal_id),
                condition_expression=_VERSION_CONDITION,
                expression_attribute_names={"#version": "version"},
                expression_attribute_values={":expected": int(expected_version)},
            )
        except DdbConflict as e:
            raise ConcurrentModificationError(
                "Proposal was modified by another request; reload and retry",
                details={"proposalId": proposal_id, "expectedVersion": int(expected_version)},
            ) from e

    def list_proposals(
        self,
        *,
        owner_uid: str | None = None,
        status: ProposalStatus | None = None,
        limit: int = 50,
        next_token: str | None = None,
    ) -> tuple[list[Proposal], str | None]:
        """Newest first. `owner_uid` restricts to one creator (BDM scoping)."""
        if owner_uid:
            index, cond = "GSI2", Key("gsi2pk").eq(owner_pk(owner_uid))
        else:
            index, cond = "GSI1", Key("gsi1pk").eq(type_pk())

        page = self.query_newest_page(
            index_name=index,
            key_condition_expression=cond,
            filter_expression=Attr("status").eq(status.value) if status else None,
            limit=limit,
            next_token=next_token,
        )
        out: list[Proposal] = []
        for it in page.items:
            item = strip_internal(it)
            if item:
                out.append(Proposal.from_dict(item))
        return out, page.next_token
