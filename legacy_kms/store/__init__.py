"""
Local knowledge store — typed records across named collections, persisted
as one JSON snapshot per storage key.
"""

from .backends import JsonFileMedium, MemoryMedium, StorageMedium
from .knowledge_store import (
    COLLECTIONS,
    CORE_COLLECTIONS,
    STORAGE_KEY,
    KnowledgeStore,
    QueryResult,
)

__all__ = [
    "COLLECTIONS",
    "CORE_COLLECTIONS",
    "STORAGE_KEY",
    "JsonFileMedium",
    "KnowledgeStore",
    "MemoryMedium",
    "QueryResult",
    "StorageMedium",
]
