"""
Inbox watcher — ingests files dropped into a directory.

Uses watchdog to monitor the inbox; the kind of each new file is inferred
from its extension.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from ..errors import KMSError, NotFound
from ..store import KnowledgeStore
from .kinds import load_upload
from .orchestrator import IngestReport, ingest

logger = logging.getLogger(__name__)

# Editor swap files and partial downloads
_IGNORED_SUFFIXES = (".tmp", ".part", ".crdownload", ".swp", "~")


class InboxHandler(FileSystemEventHandler):
    """
    Watchdog event handler that ingests files written into the inbox.

    A file is ingested once its content settles: every create, modify,
    close-after-write or move-in event restarts a per-path timer, and the
    file is read when the timer fires.  A file whose size and mtime did not
    change since its last ingestion is skipped; a file that changed has the
    records of its previous ingestion replaced.

    Parameters
    ----------
    store:
        Open knowledge store receiving the records.
    inbox_dir:
        Watched directory.
    debounce_seconds:
        Quiet period after the last event for a path before it is read.
        ``0`` processes every event immediately.
    preview_chars:
        Passed through to :func:`~legacy_kms.ingest.orchestrator.ingest`.
    """

    def __init__(
        self,
        store: KnowledgeStore,
        inbox_dir: str,
        debounce_seconds: float = 0.5,
        preview_chars: Optional[int] = None,
    ) -> None:
        super().__init__()
        self._store = store
        self._inbox_dir = os.path.abspath(inbox_dir)
        self._debounce = debounce_seconds
        self._preview_chars = preview_chars
        self._pending: dict[str, threading.Timer] = {}
        # path -> ((size, mtime_ns), report of the last ingestion)
        self._ingested: dict[str, tuple[tuple[int, int], IngestReport]] = {}
        self._lock = threading.Lock()
        self.reports: list[IngestReport] = []

    # ------------------------------------------------------------------
    # Watchdog event dispatch
    # ------------------------------------------------------------------

    def on_created(self, event) -> None:  # type: ignore[override]
        if not event.is_directory:
            self._handle_change(event.src_path)

    def on_modified(self, event) -> None:  # type: ignore[override]
        if not event.is_directory:
            self._handle_change(event.src_path)

    def on_closed(self, event) -> None:  # type: ignore[override]
        """Handle a close-after-write event (inotify only)."""
        if not event.is_directory:
            self._handle_change(event.src_path)

    def on_moved(self, event) -> None:  # type: ignore[override]
        if not event.is_directory:
            self._handle_change(event.dest_path)

    def cancel_pending(self) -> None:
        """Drop every scheduled ingestion."""
        with self._lock:
            timers = list(self._pending.values())
            self._pending.clear()
        for timer in timers:
            timer.cancel()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _should_ignore(self, abs_path: str) -> bool:
        name = os.path.basename(abs_path)
        return name.startswith(".") or name.endswith(_IGNORED_SUFFIXES)

    def _handle_change(self, abs_path: str) -> None:
        if self._should_ignore(abs_path):
            return
        if self._debounce <= 0:
            self._process(abs_path)
            return

        timer = threading.Timer(self._debounce, self._process, args=(abs_path,))
        timer.daemon = True
        with self._lock:
            previous = self._pending.get(abs_path)
            self._pending[abs_path] = timer
        if previous is not None:
            previous.cancel()
        timer.start()

    def _process(self, abs_path: str) -> None:
        with self._lock:
            self._pending.pop(abs_path, None)

        try:
            st = os.stat(abs_path)
        except OSError as exc:
            logger.warning("[inbox] Cannot read %s: %s", abs_path, exc)
            return
        if st.st_size == 0:
            # Still being written; a later event carries the content
            logger.debug("[inbox] %s is empty, waiting", abs_path)
            return
        signature = (st.st_size, st.st_mtime_ns)

        with self._lock:
            previous = self._ingested.get(abs_path)
        if previous is not None and previous[0] == signature:
            return

        try:
            upload = load_upload(abs_path)
        except OSError as exc:
            logger.warning("[inbox] Cannot read %s: %s", abs_path, exc)
            return

        kwargs = {}
        if self._preview_chars is not None:
            kwargs["preview_chars"] = self._preview_chars

        # The store has a single writer
        with self._lock:
            try:
                if previous is not None:
                    self._forget(previous[1])
                report = ingest(self._store, upload, **kwargs)
            except KMSError as exc:
                logger.warning("[inbox] Failed to ingest %s: %s", abs_path, exc)
                return
            self._ingested[abs_path] = (signature, report)
            self.reports.append(report)
        logger.info("[inbox] %s -> %s", os.path.basename(abs_path), report.summary)

    def _forget(self, report: IngestReport) -> None:
        """Delete the records stored by an earlier ingestion of the same file."""
        for collection, ids in report.inserted.items():
            for record_id in ids:
                try:
                    self._store.delete(collection, record_id)
                except NotFound:
                    logger.debug("[inbox] %s already removed from %s", record_id, collection)


class InboxWatcher:
    """
    Watch *inbox_dir* and ingest every file that appears in it.

    Usage::

        watcher = InboxWatcher(store, "inbox/")
        watcher.start()   # blocking; or start_background()
        watcher.stop()
    """

    def __init__(
        self,
        store: KnowledgeStore,
        inbox_dir: str,
        debounce_seconds: float = 0.5,
        preview_chars: Optional[int] = None,
    ) -> None:
        self._inbox_dir = os.path.abspath(inbox_dir)
        self._observer: Optional[Observer] = None
        self.handler = InboxHandler(
            store, inbox_dir,
            debounce_seconds=debounce_seconds,
            preview_chars=preview_chars,
        )

    def _schedule(self) -> Observer:
        os.makedirs(self._inbox_dir, exist_ok=True)
        observer = Observer()
        observer.schedule(self.handler, self._inbox_dir, recursive=False)
        observer.start()
        self._observer = observer
        logger.info("[inbox] Watching %s", self._inbox_dir)
        return observer

    def start(self) -> None:
        """Watch until :meth:`stop` is called or the process is interrupted."""
        observer = self._schedule()
        try:
            while observer.is_alive():
                observer.join(timeout=1)
        except KeyboardInterrupt:
            observer.stop()
        observer.join()
        self.handler.cancel_pending()

    def start_background(self) -> None:
        """Start watching without blocking the caller."""
        self._schedule()

    def stop(self) -> None:
        self.handler.cancel_pending()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
            logger.info("[inbox] Stopped")
