from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..db.store import RecordStore
from ..models.file_record import FileRecord
from .storage import FileStorage

"""Oversight queries and owner clean-up for the admin panel."""

__all__ = [
    "OwnerStats",
    "PlatformStats",
    "owner_stats",
    "platform_stats",
    "delete_owner_data",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OwnerStats:
    owner_id: str
    total_files: int
    total_charts: int


@dataclass(frozen=True)
class PlatformStats:
    total_owners: int
    total_files: int     # processed only
    failed_files: int
    total_charts: int
    recent_files: list[FileRecord] = field(default_factory=list)


def owner_stats(store: RecordStore, owner_id: str) -> OwnerStats:
    return OwnerStats(
        owner_id=owner_id,
        total_files=store.count_files(owner_id),
        total_charts=store.count_charts(owner_id),
    )


def platform_stats(store: RecordStore, recent_limit: int = 10) -> PlatformStats:
    total = store.count_files()
    return PlatformStats(
        total_owners=len(store.owner_ids()),
        total_files=total,
        failed_files=store.count_files(processed_only=False) - total,
        total_charts=store.count_charts(),
        recent_files=store.recent_files(recent_limit),
    )


def delete_owner_data(store: RecordStore, storage: FileStorage, owner_id: str) -> int:
    """Remove every file (bytes + record) and chart of an owner account.

    Returns the number of file records removed.
    """
    removed = store.delete_owner_data(owner_id)
    for record in removed:
        storage.delete(record.storage_path)
    logger.info(f"deleted {len(removed)} files of owner {owner_id}")
    return len(removed)
