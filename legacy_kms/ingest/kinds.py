"""
Upload kinds — one frozen dataclass per kind of input the extractors accept.

``Upload`` is the closed union of all kinds; the orchestrator refuses to
import if any member lacks a handler.
"""

from __future__ import annotations

import logging
import mimetypes
import os
from dataclasses import dataclass
from typing import ClassVar, Optional, Union, get_args

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Text kinds: content is mined
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CodeUpload:
    """A legacy VB module (.vb, .bas, .cls, .frm)."""
    kind: ClassVar[str] = "code"
    filename: str
    content: str


@dataclass(frozen=True)
class SqlUpload:
    kind: ClassVar[str] = "sql"
    filename: str
    content: str


@dataclass(frozen=True)
class LogUpload:
    kind: ClassVar[str] = "log"
    filename: str
    content: str


@dataclass(frozen=True)
class SopUpload:
    kind: ClassVar[str] = "sop"
    filename: str
    content: str


@dataclass(frozen=True)
class DocumentUpload:
    kind: ClassVar[str] = "document"
    filename: str
    content: str
    size: int = 0
    mime_type: str = "text/plain"


@dataclass(frozen=True)
class DiagramUpload:
    kind: ClassVar[str] = "diagram"
    filename: str
    content: str
    size: int = 0


# ---------------------------------------------------------------------------
# Metadata kinds: described, not mined
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PdfUpload:
    """A PDF, optionally with its text layer already extracted."""
    kind: ClassVar[str] = "pdf"
    filename: str
    size: int = 0
    mime_type: Optional[str] = "application/pdf"
    text: Optional[str] = None


@dataclass(frozen=True)
class ImageUpload:
    kind: ClassVar[str] = "image"
    filename: str
    size: int = 0
    mime_type: Optional[str] = None


@dataclass(frozen=True)
class MediaUpload:
    kind: ClassVar[str] = "media"
    filename: str
    size: int = 0
    mime_type: Optional[str] = None


@dataclass(frozen=True)
class SpreadsheetUpload:
    kind: ClassVar[str] = "spreadsheet"
    filename: str
    size: int = 0
    mime_type: Optional[str] = None
    text: Optional[str] = None


@dataclass(frozen=True)
class ArchiveUpload:
    kind: ClassVar[str] = "archive"
    filename: str
    size: int = 0
    mime_type: Optional[str] = None


@dataclass(frozen=True)
class OtherUpload:
    kind: ClassVar[str] = "other"
    filename: str
    size: int = 0
    mime_type: Optional[str] = None
    text: Optional[str] = None


Upload = Union[
    CodeUpload,
    SqlUpload,
    LogUpload,
    SopUpload,
    DocumentUpload,
    DiagramUpload,
    PdfUpload,
    ImageUpload,
    MediaUpload,
    SpreadsheetUpload,
    ArchiveUpload,
    OtherUpload,
]

UPLOAD_TYPES: dict[str, type] = {cls.kind: cls for cls in get_args(Upload)}

KINDS: tuple[str, ...] = tuple(UPLOAD_TYPES)


# ---------------------------------------------------------------------------
# Kind detection
# ---------------------------------------------------------------------------

EXTENSION_TO_KIND: dict[str, str] = {
    ".vb": "code",
    ".bas": "code",
    ".cls": "code",
    ".frm": "code",
    ".sql": "sql",
    ".log": "log",
    ".txt": "document",
    ".md": "document",
    ".rst": "document",
    ".doc": "document",
    ".docx": "document",
    ".rtf": "document",
    ".mmd": "diagram",
    ".mermaid": "diagram",
    ".puml": "diagram",
    ".plantuml": "diagram",
    ".pu": "diagram",
    ".drawio": "diagram",
    ".bpmn": "diagram",
    ".svg": "diagram",
    ".xml": "diagram",
    ".pdf": "pdf",
    ".png": "image",
    ".jpg": "image",
    ".jpeg": "image",
    ".gif": "image",
    ".bmp": "image",
    ".webp": "image",
    ".tif": "image",
    ".tiff": "image",
    ".mp3": "media",
    ".wav": "media",
    ".ogg": "media",
    ".mp4": "media",
    ".avi": "media",
    ".mov": "media",
    ".mkv": "media",
    ".webm": "media",
    ".csv": "spreadsheet",
    ".tsv": "spreadsheet",
    ".xls": "spreadsheet",
    ".xlsx": "spreadsheet",
    ".ods": "spreadsheet",
    ".zip": "archive",
    ".tar": "archive",
    ".gz": "archive",
    ".tgz": "archive",
    ".bz2": "archive",
    ".7z": "archive",
    ".rar": "archive",
}

_TEXT_KINDS = frozenset({"code", "sql", "log", "sop", "document", "diagram"})
_DELIMITED_EXTENSIONS = frozenset({".csv", ".tsv"})


def detect_kind(filename: str) -> str:
    """Return the upload kind for *filename* by extension (``"other"`` if unknown)."""
    ext = os.path.splitext(filename)[1].lower()
    return EXTENSION_TO_KIND.get(ext, "other")


def _strict_text(raw: bytes) -> Optional[str]:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return None


def load_upload(path: str, kind: Optional[str] = None) -> Upload:
    """
    Read *path* and wrap it in the upload type for *kind*.

    Parameters
    ----------
    path:
        File to read.
    kind:
        Declared kind (one of ``KINDS``).  Inferred from the extension when
        omitted.

    Raises
    ------
    ValueError
        *kind* is not a known upload kind.
    OSError
        The file cannot be read.
    """
    kind = kind or detect_kind(path)
    if kind not in UPLOAD_TYPES:
        raise ValueError(f"Unknown upload kind {kind!r}. Available: {', '.join(KINDS)}")

    filename = os.path.basename(path)
    with open(path, "rb") as f:
        raw = f.read()
    size = len(raw)
    mime_type, _ = mimetypes.guess_type(filename)
    ext = os.path.splitext(filename)[1].lower()
    logger.debug("Loaded %s (%d bytes) as %s", path, size, kind)

    if kind in _TEXT_KINDS:
        content = raw.decode("utf-8", errors="replace")
        if kind == "document":
            return DocumentUpload(filename, content, size=size,
                                  mime_type=mime_type or "text/plain")
        if kind == "diagram":
            return DiagramUpload(filename, content, size=size)
        return UPLOAD_TYPES[kind](filename, content)

    if kind == "spreadsheet":
        text = _strict_text(raw) if ext in _DELIMITED_EXTENSIONS else None
        return SpreadsheetUpload(filename, size=size, mime_type=mime_type, text=text)
    if kind == "other":
        return OtherUpload(filename, size=size, mime_type=mime_type, text=_strict_text(raw))
    if kind == "pdf":
        return PdfUpload(filename, size=size, mime_type=mime_type or "application/pdf")
    return UPLOAD_TYPES[kind](filename, size=size, mime_type=mime_type)
