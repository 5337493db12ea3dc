"""
Metadata-only extractors for files whose content is not mined.

PDFs (with optional pre-extracted text), images, media, spreadsheets,
archives and anything unrecognised are described by size, MIME type and a
title derived from the filename.  These never fail.
"""

from __future__ import annotations

import csv
import io
import logging
from typing import Optional

from ..errors import ExtractionDegraded
from .documents import PREVIEW_CHARS, file_stem, first_line_title, preview
from .results import Extraction

logger = logging.getLogger(__name__)

# kind -> (category, tags)
KIND_DEFAULTS: dict[str, tuple[str, list[str]]] = {
    "pdf": ("Document", ["pdf"]),
    "image": ("Image", ["image"]),
    "media": ("Media", ["media"]),
    "spreadsheet": ("Spreadsheet", ["spreadsheet", "data"]),
    "archive": ("Archive", ["archive"]),
    "other": ("Other", []),
}

_SIZE_UNITS = ("B", "KB", "MB", "GB")


def human_size(size: int) -> str:
    """Format a byte count, e.g. ``1536 -> '1.5 KB'``."""
    value = float(size)
    for unit in _SIZE_UNITS:
        if value < 1024 or unit == _SIZE_UNITS[-1]:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def _base_record(
    kind: str,
    filename: str,
    size: int,
    mime_type: Optional[str],
    notices: list[ExtractionDegraded],
) -> dict:
    category, tags = KIND_DEFAULTS[kind]
    if not mime_type:
        mime_type = "application/octet-stream"
        notices.append(ExtractionDegraded("mime_type", mime_type, "unknown MIME type"))
    title = file_stem(filename)
    if not title:
        title = f"Untitled {kind}"
        notices.append(ExtractionDegraded("title", title, "filename has no stem"))
    return {
        "title": title,
        "category": category,
        "tags": list(tags),
        "description": f"{category} file ({human_size(size)})",
        "filename": filename,
        "size": size,
        "mime_type": mime_type,
    }


def _finish(kind: str, record: dict, notices: list[ExtractionDegraded]) -> Extraction:
    for notice in notices:
        logger.debug("[%s] %s", kind, notice)
    return Extraction(
        record=record,
        summary=f"{record['category']} '{record['title']}' ({human_size(record['size'])}).",
        notices=notices,
    )


def extract_pdf(
    filename: str,
    size: int = 0,
    mime_type: Optional[str] = "application/pdf",
    text: Optional[str] = None,
    preview_chars: int = PREVIEW_CHARS,
) -> Extraction:
    """
    Describe a PDF; when its text layer is supplied, the first line becomes
    the title and the head of the text the preview.
    """
    notices: list[ExtractionDegraded] = []
    record = _base_record("pdf", filename, size, mime_type, notices)
    if text:
        record["title"] = first_line_title(text) or record["title"]
        record["content_preview"] = preview(text, preview_chars)
    else:
        record["content_preview"] = ""
        notices.append(ExtractionDegraded("content_preview", "", "no text layer"))
    return _finish("pdf", record, notices)


def extract_image(
    filename: str, size: int = 0, mime_type: Optional[str] = None,
) -> Extraction:
    notices: list[ExtractionDegraded] = []
    record = _base_record("image", filename, size, mime_type, notices)
    return _finish("image", record, notices)


def extract_media(
    filename: str, size: int = 0, mime_type: Optional[str] = None,
) -> Extraction:
    notices: list[ExtractionDegraded] = []
    record = _base_record("media", filename, size, mime_type, notices)
    record["media_type"] = (record["mime_type"].split("/", 1)[0]
                            if "/" in record["mime_type"] else "unknown")
    return _finish("media", record, notices)


def extract_spreadsheet(
    filename: str,
    size: int = 0,
    mime_type: Optional[str] = None,
    text: Optional[str] = None,
    preview_chars: int = PREVIEW_CHARS,
) -> Extraction:
    """
    Describe a spreadsheet.  Delimited text (CSV/TSV) additionally reports
    its row and column counts.
    """
    notices: list[ExtractionDegraded] = []
    record = _base_record("spreadsheet", filename, size, mime_type, notices)
    if text:
        delimiter = "\t" if filename.lower().endswith(".tsv") else ","
        try:
            rows = [row for row in csv.reader(io.StringIO(text), delimiter=delimiter) if row]
        except csv.Error as exc:
            rows = []
            notices.append(ExtractionDegraded("row_count", 0, f"unreadable rows: {exc}"))
        record["row_count"] = len(rows)
        record["column_count"] = max((len(r) for r in rows), default=0)
        record["content_preview"] = preview(text, preview_chars)
    else:
        record["content_preview"] = ""
        notices.append(ExtractionDegraded("content_preview", "", "binary workbook"))
    return _finish("spreadsheet", record, notices)


def extract_archive(
    filename: str, size: int = 0, mime_type: Optional[str] = None,
) -> Extraction:
    notices: list[ExtractionDegraded] = []
    record = _base_record("archive", filename, size, mime_type, notices)
    return _finish("archive", record, notices)


def extract_other(
    filename: str,
    size: int = 0,
    mime_type: Optional[str] = None,
    text: Optional[str] = None,
    preview_chars: int = PREVIEW_CHARS,
) -> Extraction:
    notices: list[ExtractionDegraded] = []
    record = _base_record("other", filename, size, mime_type, notices)
    record["content_preview"] = preview(text, preview_chars) if text else ""
    return _finish("other", record, notices)
