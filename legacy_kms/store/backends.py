"""
Persistence media for the knowledge store.

A medium maps one opaque key to one serialized snapshot string.  There is
no partial-key addressing: every write replaces the whole snapshot.
"""

from __future__ import annotations

import logging
import os
import re
from abc import ABC, abstractmethod
from typing import Optional

from ..errors import PersistenceError

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class StorageMedium(ABC):
    """
    Key → snapshot string storage with an optional byte quota.

    Parameters
    ----------
    quota_bytes:
        Maximum encoded size of one snapshot.  ``None`` disables the check.
    """

    def __init__(self, quota_bytes: Optional[int] = None) -> None:
        self.quota_bytes = quota_bytes

    def _check_quota(self, key: str, blob: str) -> None:
        if self.quota_bytes is None:
            return
        size = len(blob.encode("utf-8"))
        if size > self.quota_bytes:
            raise PersistenceError(
                f"Storage quota exceeded for {key!r}: "
                f"{size} bytes > {self.quota_bytes} bytes"
            )

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        """Return the snapshot stored under *key*, or None if absent."""

    @abstractmethod
    def write(self, key: str, blob: str) -> None:
        """
        Replace the snapshot under *key*.

        Raises ``PersistenceError`` when the medium is unavailable or full;
        in that case the previous snapshot is left as it was.
        """


class MemoryMedium(StorageMedium):
    """In-process medium, isolated per instance."""

    def __init__(self, quota_bytes: Optional[int] = None) -> None:
        super().__init__(quota_bytes)
        self._blobs: dict[str, str] = {}

    def read(self, key: str) -> Optional[str]:
        return self._blobs.get(key)

    def write(self, key: str, blob: str) -> None:
        self._check_quota(key, blob)
        self._blobs[key] = blob


class JsonFileMedium(StorageMedium):
    """
    One ``<key>.json`` file per key under *directory*.

    Writes go to a temporary file that is then renamed over the target, so
    a reader never sees a half-written snapshot.
    """

    def __init__(self, directory: str, quota_bytes: Optional[int] = None) -> None:
        super().__init__(quota_bytes)
        self._directory = os.path.abspath(directory)

    @property
    def directory(self) -> str:
        return self._directory

    def path_for(self, key: str) -> str:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return os.path.join(self._directory, f"{key}.json")

    def read(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not os.path.isfile(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except OSError as exc:
            raise PersistenceError(f"Cannot read {path}: {exc}") from exc

    def write(self, key: str, blob: str) -> None:
        self._check_quota(key, blob)
        path = self.path_for(key)
        tmp = path + ".tmp"
        try:
            os.makedirs(self._directory, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(blob)
            os.replace(tmp, path)
        except OSError as exc:
            try:
                if os.path.exists(tmp):
                    os.remove(tmp)
            except OSError:
                logger.debug("Could not remove temporary file %s", tmp)
            raise PersistenceError(f"Cannot write {path}: {exc}") from exc
        logger.debug("Wrote snapshot %s (%d chars)", path, len(blob))
