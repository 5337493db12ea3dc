"""
KnowledgeStore — multi-collection record store over a persistence medium.

The whole store is one snapshot (collection name → ordered list of record
dicts) serialized under a single key.  Every mutation builds a new
snapshot, writes it in one medium call and only then replaces the
in-memory copy, so a failed write leaves the store exactly as it was.

Usage::

    with KnowledgeStore(JsonFileMedium(".legacykms")) as store:
        rec = store.insert("flows", {"title": "t", "source": "manual",
                                     "mermaid_text": "sequenceDiagram\\n"})
        store.update("flows", rec["id"], {"title": "renamed"})
"""

from __future__ import annotations

import copy
import json
import logging
import os
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Union

from ..errors import InvalidFormat, NotFound, StoreClosedError
from .backends import StorageMedium

logger = logging.getLogger(__name__)

STORAGE_KEY = "kms_prototype_data"

# Required in every imported snapshot
CORE_COLLECTIONS: tuple[str, ...] = (
    "code_docs",
    "query_library",
    "error_logs",
    "sop_library",
    "flows",
)

COLLECTIONS: tuple[str, ...] = CORE_COLLECTIONS + (
    "documents",
    "diagrams",
    "images",
    "media",
    "spreadsheets",
    "archives",
    "other_files",
)

# Assigned at insert time, never changed by update()
IMMUTABLE_FIELDS = frozenset({"id", "created_at"})

Record = dict[str, Any]
Predicate = Callable[[Record], bool]


def empty_snapshot() -> dict[str, list[Record]]:
    return {name: [] for name in COLLECTIONS}


def generate_id() -> str:
    """Return a unique id: millisecond timestamp plus a random suffix."""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


def _is_valid_id(value: Any) -> bool:
    if isinstance(value, str):
        return value != ""
    # bool is an int subclass but never a record id
    return isinstance(value, int) and not isinstance(value, bool)


def utc_timestamp() -> str:
    """Return the current UTC time as ISO-8601 with millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class QueryResult:
    """Records returned by select()/query(), with their count."""

    records: list[Record] = field(default_factory=list)
    count: int = 0


class KnowledgeStore:
    """
    Named-collection record store with CRUD, predicate query, snapshot
    export/import and dedup-aware merge.

    Parameters
    ----------
    medium:
        Where the serialized snapshot lives.
    key:
        The single medium key holding the snapshot.
    """

    def __init__(self, medium: StorageMedium, key: str = STORAGE_KEY) -> None:
        self._medium = medium
        self._key = key
        self._data: Optional[dict[str, list[Record]]] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> "KnowledgeStore":
        """Load the snapshot from the medium.  Idempotent."""
        if self._data is None:
            self._data = self._load()
        return self

    def close(self) -> None:
        self._data = None

    @property
    def is_open(self) -> bool:
        return self._data is not None

    def __enter__(self) -> "KnowledgeStore":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load(self) -> dict[str, list[Record]]:
        blob = self._medium.read(self._key)
        if blob is None:
            return empty_snapshot()
        try:
            raw = json.loads(blob)
        except json.JSONDecodeError as exc:
            logger.warning("Stored snapshot %r is unreadable, starting empty: %s",
                           self._key, exc)
            return empty_snapshot()
        if not isinstance(raw, dict):
            logger.warning("Stored snapshot %r is not an object, starting empty",
                           self._key)
            return empty_snapshot()
        return self._normalise(raw)

    @staticmethod
    def _normalise(raw: dict[str, Any]) -> dict[str, list[Record]]:
        """Ensure every known collection exists and holds a list of records."""
        data: dict[str, list[Record]] = dict(raw)
        for name in COLLECTIONS:
            value = data.get(name)
            if value is None:
                data[name] = []
            elif not isinstance(value, list):
                logger.warning("Collection %s is not a list, resetting it", name)
                data[name] = []
            else:
                records = [item for item in value if isinstance(item, dict)]
                if len(records) != len(value):
                    logger.warning("Dropping %d non-object entries from %s",
                                   len(value) - len(records), name)
                data[name] = records
        return data

    def _snapshot(self) -> dict[str, list[Record]]:
        if self._data is None:
            raise StoreClosedError("KnowledgeStore is not open")
        return self._data

    def _collection(self, collection: str) -> list[Record]:
        if collection not in COLLECTIONS:
            raise ValueError(
                f"Unknown collection {collection!r}. "
                f"Available: {', '.join(COLLECTIONS)}"
            )
        return self._snapshot()[collection]

    def _commit(self, data: dict[str, list[Record]]) -> None:
        """Write *data* as the new snapshot, then adopt it."""
        blob = json.dumps(data, ensure_ascii=False)
        self._medium.write(self._key, blob)
        self._data = data

    def _replace_collection(self, collection: str, items: list[Record]) -> None:
        data = dict(self._snapshot())
        data[collection] = items
        self._commit(data)

    @staticmethod
    def _index_of(items: list[Record], record_id: str) -> int:
        for i, item in enumerate(items):
            if item.get("id") == record_id:
                return i
        return -1

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def select(self, collection: str, newest_first: bool = False) -> QueryResult:
        """
        Return every record of *collection*.

        Records come back in insertion order, or sorted by ``created_at``
        descending when *newest_first* is set.  Records sharing a
        timestamp keep reverse insertion order.
        """
        items = copy.deepcopy(self._collection(collection))
        if newest_first:
            # Stable sort: pre-reversing puts later inserts first among ties
            items.reverse()
            items.sort(key=lambda r: r.get("created_at", ""), reverse=True)
        return QueryResult(records=items, count=len(items))

    def get(self, collection: str, record_id: str) -> Record:
        """Return one record by id; raises ``NotFound`` if absent."""
        items = self._collection(collection)
        index = self._index_of(items, record_id)
        if index == -1:
            raise NotFound(collection, record_id)
        return copy.deepcopy(items[index])

    def insert(self, collection: str, record: Record) -> Record:
        """
        Store *record* with a fresh ``id`` and ``created_at``.

        Raises
        ------
        PersistenceError
            The medium is unavailable or over quota; nothing was stored.
        """
        return self.insert_many([(collection, record)])[0]

    def insert_many(self, entries: list[tuple[str, Record]]) -> list[Record]:
        """
        Store several records, possibly across collections, in one write.

        Parameters
        ----------
        entries:
            ``(collection, record)`` pairs, stored in order.

        Returns
        -------
        list[dict]
            The stored records, in the order of *entries*.

        Raises
        ------
        PersistenceError
            The medium is unavailable or over quota; none of the records
            were stored.
        """
        data = dict(self._snapshot())
        stored_records: list[Record] = []
        for collection, record in entries:
            self._collection(collection)
            stored = {**copy.deepcopy(record), "id": generate_id(), "created_at": utc_timestamp()}
            data[collection] = data[collection] + [stored]
            stored_records.append(stored)

        if stored_records:
            self._commit(data)
        for stored, (collection, _) in zip(stored_records, entries):
            logger.debug("Inserted %s into %s", stored["id"], collection)
        return copy.deepcopy(stored_records)

    def update(self, collection: str, record_id: str, patch: Record) -> Record:
        """
        Shallow-merge *patch* into the record with *record_id*.

        ``id`` and ``created_at`` in *patch* are ignored.

        Raises
        ------
        NotFound
            No record with that id; the store is unchanged.
        """
        items = list(self._collection(collection))
        index = self._index_of(items, record_id)
        if index == -1:
            raise NotFound(collection, record_id)

        ignored = IMMUTABLE_FIELDS & patch.keys()
        if ignored:
            logger.debug("Ignoring immutable fields in update: %s", sorted(ignored))
        changes = {k: v for k, v in patch.items() if k not in IMMUTABLE_FIELDS}

        items[index] = {**items[index], **changes}
        self._replace_collection(collection, items)
        return copy.deepcopy(items[index])

    def delete(self, collection: str, record_id: str) -> None:
        """Remove the record with *record_id*; raises ``NotFound`` if absent."""
        items = self._collection(collection)
        remaining = [item for item in items if item.get("id") != record_id]
        if len(remaining) == len(items):
            raise NotFound(collection, record_id)
        self._replace_collection(collection, remaining)
        logger.debug("Deleted %s from %s", record_id, collection)

    def query(self, collection: str, predicate: Optional[Predicate] = None) -> QueryResult:
        """Return the records of *collection* for which *predicate* is true."""
        items = self._collection(collection)
        if predicate is not None:
            items = [item for item in items if predicate(item)]
        items = copy.deepcopy(items)
        return QueryResult(records=items, count=len(items))

    # ------------------------------------------------------------------
    # Whole-store operations
    # ------------------------------------------------------------------

    def get_all(self) -> dict[str, list[Record]]:
        """Return a deep copy of the full snapshot."""
        return copy.deepcopy(self._snapshot())

    def export(self) -> str:
        """Serialize every collection to a pretty-printed JSON snapshot."""
        return json.dumps(self._snapshot(), ensure_ascii=False, indent=2)

    def export_to_file(self, directory: str = ".", filename: Optional[str] = None) -> str:
        """
        Write :meth:`export` output to ``kms-data-YYYY-MM-DD.json`` (or
        *filename*) inside *directory* and return the path.
        """
        if filename is None:
            filename = f"kms-data-{datetime.now(timezone.utc).strftime('%Y-%m-%d')}.json"
        path = os.path.join(directory, filename)
        os.makedirs(os.path.abspath(directory), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.export())
        logger.info("Exported knowledge store to %s", path)
        return path

    @staticmethod
    def _decode(snapshot: Union[str, bytes, dict]) -> dict[str, Any]:
        if isinstance(snapshot, (str, bytes)):
            try:
                snapshot = json.loads(snapshot)
            except (json.JSONDecodeError, UnicodeDecodeError) as exc:
                raise InvalidFormat(f"Failed to parse JSON snapshot: {exc}") from exc
        if not isinstance(snapshot, dict):
            raise InvalidFormat("Snapshot must be a JSON object of collections")
        return snapshot

    @classmethod
    def parse_snapshot(cls, snapshot: Union[str, bytes, dict]) -> dict[str, Any]:
        """
        Decode and validate an external snapshot for import.

        Raises
        ------
        InvalidFormat
            Unparsable JSON, not an object, a required collection missing,
            a collection that is not a list, or an entry that is not an
            object.
        """
        snapshot = cls._decode(snapshot)
        missing = [name for name in CORE_COLLECTIONS if name not in snapshot]
        if missing:
            raise InvalidFormat(f"Invalid data format: missing {', '.join(missing)}")

        for name in COLLECTIONS:
            if name not in snapshot:
                continue
            if not isinstance(snapshot[name], list):
                raise InvalidFormat(f"Invalid data format: {name} is not a list")
            for idx, item in enumerate(snapshot[name]):
                if not isinstance(item, dict):
                    raise InvalidFormat(
                        f"Invalid data format: {name}[{idx}] is not an object"
                    )
        return snapshot

    def import_data(self, snapshot: Union[str, bytes, dict]) -> None:
        """
        Replace the entire store with *snapshot* (no merging).

        On ``InvalidFormat`` the current data is left untouched.
        """
        self._snapshot()
        parsed = self.parse_snapshot(snapshot)
        self._commit(self._normalise(copy.deepcopy(parsed)))
        logger.info("Imported snapshot (%d records)",
                    sum(len(self._data[name]) for name in COLLECTIONS))

    def import_file(self, path: str) -> None:
        """Read a snapshot file and :meth:`import_data` it."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                text = f.read()
        except (OSError, UnicodeDecodeError) as exc:
            raise InvalidFormat(f"Cannot read snapshot file {path}: {exc}") from exc
        self.import_data(text)

    def merge(self, snapshot: Union[str, bytes, dict]) -> int:
        """
        Append external records whose id is not yet present.

        Existing records are never overwritten.  External records whose id
        is missing or not a non-empty string or integer are skipped.  Unlike
        import, the snapshot may hold any subset of the collections.

        Returns
        -------
        int
            Number of records added across all collections.
        """
        external = self._decode(snapshot)
        data = dict(self._snapshot())
        added = 0

        for name in COLLECTIONS:
            incoming = external.get(name)
            if not isinstance(incoming, list) or not incoming:
                continue
            items = list(data[name])
            seen = {item.get("id") for item in items}
            for item in incoming:
                if not isinstance(item, dict) or not _is_valid_id(item.get("id")):
                    logger.warning("Skipping %s record without a usable id during merge",
                                   name)
                    continue
                if item["id"] in seen:
                    continue
                items.append(copy.deepcopy(item))
                seen.add(item["id"])
                added += 1
            data[name] = items

        if added:
            self._commit(data)
        logger.info("Merged %d new records", added)
        return added

    def clear(self) -> None:
        """Reset every collection to empty."""
        self._snapshot()
        self._commit(empty_snapshot())
        logger.info("Cleared knowledge store")

    def clear_collection(self, collection: str) -> None:
        """Empty one collection, leaving the others as they are."""
        self._collection(collection)
        self._replace_collection(collection, [])
        logger.info("Cleared collection %s", collection)
