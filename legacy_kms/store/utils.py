"""
Maintenance helpers for a knowledge store: statistics, substring search,
backups, structural validation and storage usage.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .knowledge_store import CORE_COLLECTIONS, KnowledgeStore, utc_timestamp

logger = logging.getLogger(__name__)

DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024
# Usage above this share of the quota is reported as "limit reached"
LIMIT_WARNING_PERCENT = 80

# collection -> record fields searched by global_search()
SEARCH_FIELDS: dict[str, tuple[str, ...]] = {
    "code_docs": ("filename", "summary"),
    "query_library": ("query_text", "category"),
    "error_logs": ("filename", "summary"),
    "sop_library": ("title",),
    "flows": ("title",),
}


@dataclass
class StoreStats:
    """Record counts of the core collections and the snapshot size."""

    counts: dict[str, int] = field(default_factory=dict)
    total_items: int = 0
    storage_size_kb: float = 0.0


@dataclass
class SearchHit:
    collection: str
    item: dict[str, Any]


@dataclass
class Backup:
    """A serialized copy of the store ready to be written to disk."""

    filename: str
    data: str
    timestamp: str
    item_count: int


@dataclass
class StorageInfo:
    bytes: int
    kilobytes: float
    megabytes: float
    percent_of_limit: int
    limit_reached: bool


def _snapshot_size(store: KnowledgeStore) -> int:
    return len(json.dumps(store.get_all(), ensure_ascii=False).encode("utf-8"))


def get_stats(store: KnowledgeStore) -> StoreStats:
    """Count the records of every core collection."""
    data = store.get_all()
    counts = {name: len(data[name]) for name in CORE_COLLECTIONS}
    return StoreStats(
        counts=counts,
        total_items=sum(counts.values()),
        storage_size_kb=round(_snapshot_size(store) / 1024, 2),
    )


def global_search(store: KnowledgeStore, keyword: str) -> list[SearchHit]:
    """
    Case-insensitive substring search over the core collections.

    Only the fields listed in ``SEARCH_FIELDS`` are inspected; results are
    grouped by collection in ``SEARCH_FIELDS`` order, unranked.
    """
    needle = keyword.lower()
    hits: list[SearchHit] = []
    data = store.get_all()

    for collection, fields in SEARCH_FIELDS.items():
        for item in data[collection]:
            for name in fields:
                value = item.get(name)
                if isinstance(value, str) and needle in value.lower():
                    hits.append(SearchHit(collection=collection, item=item))
                    break
    return hits


def create_backup(store: KnowledgeStore) -> Backup:
    """Serialize the store as a dated backup."""
    date = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    return Backup(
        filename=f"kms-backup-{date}.json",
        data=store.export(),
        timestamp=utc_timestamp(),
        item_count=get_stats(store).total_items,
    )


def validate_data(store: KnowledgeStore) -> tuple[bool, list[str]]:
    """
    Check the stored snapshot's structure.

    Returns
    -------
    tuple[bool, list[str]]
        ``(valid, errors)``; *errors* names each problem found.
    """
    errors: list[str] = []
    data = store.get_all()

    for name in CORE_COLLECTIONS:
        if name not in data:
            errors.append(f"Missing table: {name}")
        elif not isinstance(data[name], list):
            errors.append(f"Table {name} is not an array")

    for idx, doc in enumerate(data.get("code_docs") or []):
        if not isinstance(doc, dict):
            errors.append(f"code_docs[{idx}] is not an object")
            continue
        if doc.get("id") is None:
            errors.append(f"code_docs[{idx}] missing id")
        if not doc.get("filename"):
            errors.append(f"code_docs[{idx}] missing filename")

    for error in errors:
        logger.debug("[validate] %s", error)
    return not errors, errors


def get_storage_info(
    store: KnowledgeStore, quota_bytes: int = DEFAULT_QUOTA_BYTES,
) -> StorageInfo:
    """Report the snapshot size against *quota_bytes*."""
    size = _snapshot_size(store)
    kilobytes = round(size / 1024, 2)
    percent = round(size * 100 / quota_bytes) if quota_bytes else 0
    return StorageInfo(
        bytes=size,
        kilobytes=kilobytes,
        megabytes=round(kilobytes / 1024, 2),
        percent_of_limit=min(percent, 100),
        limit_reached=percent > LIMIT_WARNING_PERCENT,
    )
