"""
Error taxonomy for the knowledge store and the extractors.

Store failures are exceptions and always propagate to the caller.
Extraction problems are never exceptions: they are reported as
:class:`ExtractionDegraded` notices alongside the derived record.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class KMSError(Exception):
    """Base class for all legacy_kms errors."""


class PersistenceError(KMSError):
    """The storage medium is unavailable or full; nothing was written."""


class NotFound(KMSError, KeyError):
    """No record with the requested id exists in the collection."""

    def __init__(self, collection: str, record_id: str) -> None:
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"Record {record_id!r} not found in {collection}")

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return self.args[0]


class InvalidFormat(KMSError, ValueError):
    """An imported snapshot is unparsable or missing required collections."""


class StoreClosedError(KMSError):
    """The store handle was used before open() or after close()."""


@dataclass
class ExtractionDegraded:
    """A non-fatal notice: an extractor fell back to a default value."""

    field: str
    fallback: Any
    reason: str

    def __str__(self) -> str:
        return f"{self.field}: {self.reason} (using {self.fallback!r})"
