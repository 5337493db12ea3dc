"""
legacy_kms — Legacy Knowledge Management System.

Turns uploaded legacy artifacts (VB source, SQL scripts, logs, SOPs,
documents, diagrams) into structured knowledge records kept in a local
multi-collection store.

Public API for library usage::

    from legacy_kms import KnowledgeStore, MemoryMedium, ingest, load_upload

    with KnowledgeStore(MemoryMedium()) as store:
        report = ingest(store, load_upload("batch.log"))
"""

from .ingest import ingest, load_upload
from .store import JsonFileMedium, KnowledgeStore, MemoryMedium

__version__ = "0.1.0"

__all__ = [
    "KnowledgeStore",
    "MemoryMedium",
    "JsonFileMedium",
    "ingest",
    "load_upload",
]
