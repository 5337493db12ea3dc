"""
Ingestion orchestrator — routes an upload to its extractor and persists
the derived records.

Extraction never aborts an upload.  The records derived from one upload
are stored in a single write; store errors (``PersistenceError``)
propagate unchanged and are not retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, get_args

from ..errors import ExtractionDegraded
from ..extract import (
    extract_archive,
    extract_diagram,
    extract_document,
    extract_image,
    extract_media,
    extract_other,
    extract_pdf,
    extract_sop,
    extract_spreadsheet,
    generate_flow,
    parse_code,
    parse_log,
    parse_sql,
)
from ..extract.documents import PREVIEW_CHARS
from ..extract.results import Extraction
from ..store import KnowledgeStore
from .kinds import (
    ArchiveUpload,
    CodeUpload,
    DiagramUpload,
    DocumentUpload,
    ImageUpload,
    LogUpload,
    MediaUpload,
    OtherUpload,
    PdfUpload,
    SopUpload,
    SpreadsheetUpload,
    SqlUpload,
    Upload,
)

logger = logging.getLogger(__name__)


@dataclass
class IngestReport:
    """What one upload produced."""

    kind: str
    filename: str
    summary: str = ""
    inserted: dict[str, list[str]] = field(default_factory=dict)
    notices: list[ExtractionDegraded] = field(default_factory=list)

    def record(self, collection: str, stored: dict) -> None:
        self.inserted.setdefault(collection, []).append(stored["id"])

    @property
    def total_inserted(self) -> int:
        return sum(len(ids) for ids in self.inserted.values())


Entry = tuple[str, dict]


# ---------------------------------------------------------------------------
# Handlers: build the records for one upload without touching the store
# ---------------------------------------------------------------------------

def _ingest_code(upload: CodeUpload, report: IngestReport, preview_chars: int) -> list[Entry]:
    parsed = parse_code(upload.content)
    entries: list[Entry] = [("code_docs", parsed.to_record(upload.filename, upload.content))]
    entries.extend(
        ("query_library", query.to_library_record(upload.filename))
        for query in parsed.queries
    )
    report.summary = parsed.summary
    report.notices.extend(parsed.notices)
    return entries


def _ingest_sql(upload: SqlUpload, report: IngestReport, preview_chars: int) -> list[Entry]:
    parsed = parse_sql(upload.content)
    entries: list[Entry] = [
        ("query_library", query.to_library_record(
            upload.filename, f"Line {query.line} from {upload.filename}"))
        for query in parsed.queries
    ]
    report.summary = parsed.summary
    report.notices.extend(parsed.notices)
    return entries


def _ingest_log(upload: LogUpload, report: IngestReport, preview_chars: int) -> list[Entry]:
    parsed = parse_log(upload.content)
    report.summary = parsed.summary
    report.notices.extend(parsed.notices)
    return [
        ("error_logs", parsed.to_record(upload.filename, upload.content)),
        ("flows", {
            "title": f"Flow from {upload.filename}",
            "source": upload.filename,
            "mermaid_text": generate_flow(upload.content),
        }),
    ]


def _single(collection: str) -> Callable[[Extraction, IngestReport], list[Entry]]:
    def _entries(extraction: Extraction, report: IngestReport) -> list[Entry]:
        report.summary = extraction.summary
        report.notices.extend(extraction.notices)
        return [(collection, extraction.record)]
    return _entries


_to_sops = _single("sop_library")
_to_documents = _single("documents")
_to_diagrams = _single("diagrams")
_to_images = _single("images")
_to_media = _single("media")
_to_spreadsheets = _single("spreadsheets")
_to_archives = _single("archives")
_to_other_files = _single("other_files")


_HANDLERS: dict[type, Callable[[Upload, IngestReport, int], list[Entry]]] = {
    CodeUpload: _ingest_code,
    SqlUpload: _ingest_sql,
    LogUpload: _ingest_log,
    SopUpload: lambda u, r, n: _to_sops(
        extract_sop(u.content, u.filename), r),
    DocumentUpload: lambda u, r, n: _to_documents(
        extract_document(u.content, u.filename, u.size, u.mime_type, n), r),
    DiagramUpload: lambda u, r, n: _to_diagrams(
        extract_diagram(u.content, u.filename, u.size), r),
    PdfUpload: lambda u, r, n: _to_documents(
        extract_pdf(u.filename, u.size, u.mime_type, u.text, n), r),
    ImageUpload: lambda u, r, n: _to_images(
        extract_image(u.filename, u.size, u.mime_type), r),
    MediaUpload: lambda u, r, n: _to_media(
        extract_media(u.filename, u.size, u.mime_type), r),
    SpreadsheetUpload: lambda u, r, n: _to_spreadsheets(
        extract_spreadsheet(u.filename, u.size, u.mime_type, u.text, n), r),
    ArchiveUpload: lambda u, r, n: _to_archives(
        extract_archive(u.filename, u.size, u.mime_type), r),
    OtherUpload: lambda u, r, n: _to_other_files(
        extract_other(u.filename, u.size, u.mime_type, u.text, n), r),
}

_unhandled = set(get_args(Upload)) - set(_HANDLERS)
if _unhandled:
    raise RuntimeError(
        "No ingest handler for upload kinds: "
        + ", ".join(sorted(cls.__name__ for cls in _unhandled))
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def ingest(
    store: KnowledgeStore,
    upload: Upload,
    preview_chars: int = PREVIEW_CHARS,
) -> IngestReport:
    """
    Extract *upload* and insert the resulting records into *store*.

    Parameters
    ----------
    store:
        An open knowledge store.
    upload:
        Any member of the ``Upload`` union.
    preview_chars:
        Length of content previews kept for document-like records.

    Returns
    -------
    IngestReport
        Summary, ids inserted per collection and degradation notices.

    Raises
    ------
    TypeError
        *upload* is not an ``Upload``.
    PersistenceError
        The store could not persist the records.  All records of one
        upload are written together, so none of them were stored.
    """
    handler = _HANDLERS.get(type(upload))
    if handler is None:
        raise TypeError(f"Unsupported upload type: {type(upload).__name__}")

    report = IngestReport(kind=upload.kind, filename=upload.filename)
    entries = handler(upload, report, preview_chars)
    for (collection, _), stored in zip(entries, store.insert_many(entries)):
        report.record(collection, stored)

    logger.info("Ingested %s as %s: %s", upload.filename, upload.kind, report.summary)
    for notice in report.notices:
        logger.debug("[%s] degraded: %s", upload.filename, notice)
    return report


def add_manual_flow(store: KnowledgeStore, title: str, mermaid_text: str) -> dict:
    """Store a hand-written flow diagram; returns the stored record."""
    return store.insert("flows", {
        "title": title,
        "source": "manual",
        "mermaid_text": mermaid_text,
    })
