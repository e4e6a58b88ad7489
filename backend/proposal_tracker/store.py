from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from .db.dynamodb import get_main_table
from .infrastructure.storage.blob_store import BlobStore, S3BlobStore
from .repositories.activities_repo import ActivitiesRepository
from .repositories.base_repository import Table
from .repositories.files_repo import FilesRepository
from .repositories.notifications_repo import NotificationsRepository
from .repositories.proposals_repo import ProposalsRepository
from .repositories.users_repo import UsersRepository


@dataclass
class Store:
    proposals: ProposalsRepository
    activities: ActivitiesRepository
    notifications: NotificationsRepository
    files: FilesRepository
    users: UsersRepository
    blobs: BlobStore

    @classmethod
    def from_table(cls, table: Table, *, blobs: BlobStore) -> "Store":
        return cls(
            proposals=ProposalsRepository(table),
            activities=ActivitiesRepository(table),
            notifications=NotificationsRepository(table),
            files=FilesRepository(table),
            users=UsersRepository(table),
            blobs=blobs,
        )


@lru_cache(maxsize=1)
def get_store() -> Store:
    return Store.from_table(get_main_table(), blobs=S3BlobStore())
