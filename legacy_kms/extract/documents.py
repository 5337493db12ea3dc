"""
Document extractors — SOPs, free-form documents and diagram markup.

Every function here is best-effort: missing structure falls back to a
default value and is reported as an ``ExtractionDegraded`` notice.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import asdict
from typing import Optional

from ..errors import ExtractionDegraded
from .patterns import (
    DURATION_PATTERN,
    LEADING_MARKUP,
    METADATA_LINE,
    SOP_STEP_PATTERN,
)
from .results import Extraction, SopStep

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "General"
DEFAULT_DESCRIPTION = "No description provided"
DEFAULT_DURATION = "N/A"
PREVIEW_CHARS = 500


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def file_stem(filename: str) -> str:
    """Return *filename* without directory and extension."""
    return os.path.splitext(os.path.basename(filename))[0]


def strip_markup(line: str) -> str:
    """Remove leading heading/list markup from *line*."""
    return LEADING_MARKUP.sub("", line).strip()


def first_line_title(content: str) -> Optional[str]:
    """Return the first non-blank line with markup stripped, or None."""
    for line in content.split("\n"):
        title = strip_markup(line)
        if title:
            return title
    return None


def read_metadata_lines(content: str) -> dict[str, str]:
    """
    Collect ``key: value`` lines; keys are lowercased, first occurrence wins.
    """
    found: dict[str, str] = {}
    for line in content.split("\n"):
        m = METADATA_LINE.match(line)
        if m:
            found.setdefault(m.group(1).lower(), m.group(2))
    return found


def preview(content: str, limit: int = PREVIEW_CHARS) -> str:
    return content[:limit]


def _log_notices(kind: str, notices: list[ExtractionDegraded]) -> None:
    for notice in notices:
        logger.debug("[%s] %s", kind, notice)


# ---------------------------------------------------------------------------
# SOP
# ---------------------------------------------------------------------------

def _step_from_block(number: int, lines: list[str]) -> SopStep:
    description = "\n".join(lines).strip()
    title = description.split("\n", 1)[0].strip()
    duration = DURATION_PATTERN.search(description)
    return SopStep(
        step_number=number,
        title=title,
        description=description,
        duration=duration.group(1) if duration else DEFAULT_DURATION,
    )


def parse_sop_steps(content: str) -> list[SopStep]:
    """
    Split *content* into numbered steps.

    A line such as ``Step 2: ...`` or ``2. ...`` opens a step; the lines
    that follow belong to it until the next step marker.  Steps are
    renumbered sequentially from 1.
    """
    blocks: list[list[str]] = []
    for line in content.split("\n"):
        m = SOP_STEP_PATTERN.match(line)
        if m:
            blocks.append([m.group(2)])
        elif blocks:
            blocks[-1].append(line)
    return [_step_from_block(i, block) for i, block in enumerate(blocks, 1)]


def extract_sop(content: str, filename: str) -> Extraction:
    """
    Build a ``sop_library`` record from a procedure document.

    A document without any step marker yields a single step wrapping the
    whole content, so a procedure is never stored without steps.
    """
    notices: list[ExtractionDegraded] = []
    meta = read_metadata_lines(content)

    title = first_line_title(content)
    if title is None:
        title = file_stem(filename) or "Untitled SOP"
        notices.append(ExtractionDegraded("title", title, "no non-blank line"))

    category = meta.get("category")
    if category is None:
        category = DEFAULT_CATEGORY
        notices.append(ExtractionDegraded("category", category, "no category line"))

    steps = parse_sop_steps(content)
    if not steps:
        steps = [SopStep(
            step_number=1,
            title=title,
            description=content,
            duration=DEFAULT_DURATION,
        )]
        notices.append(ExtractionDegraded(
            "steps", "single step", "no numbered step markers found",
        ))

    record = {
        "title": title,
        "category": category,
        "steps": [asdict(s) for s in steps],
        "total_steps": len(steps),
        "content": content,
        "filename": filename,
    }
    _log_notices("sop", notices)
    return Extraction(
        record=record,
        summary=f"SOP '{title}' contains {len(steps)} steps.",
        notices=notices,
    )


# ---------------------------------------------------------------------------
# Generic documents
# ---------------------------------------------------------------------------

def extract_document(
    content: str,
    filename: str,
    size: int = 0,
    mime_type: str = "text/plain",
    preview_chars: int = PREVIEW_CHARS,
) -> Extraction:
    """
    Build a ``documents`` record from free-form text.

    ``category:``, ``tags:`` and ``description:`` (or ``summary:``) lines
    are honoured when present.
    """
    notices: list[ExtractionDegraded] = []
    meta = read_metadata_lines(content)

    title = first_line_title(content)
    if title is None:
        title = file_stem(filename)
        notices.append(ExtractionDegraded("title", title, "document is empty"))

    category = meta.get("category")
    if category is None:
        category = DEFAULT_CATEGORY
        notices.append(ExtractionDegraded("category", category, "no category line"))

    tags: list[str] = []
    if "tags" in meta:
        tags = [t.strip() for t in meta["tags"].split(",") if t.strip()]

    description = meta.get("description") or meta.get("summary")
    if description is None:
        description = DEFAULT_DESCRIPTION
        notices.append(ExtractionDegraded(
            "description", description, "no description or summary line",
        ))

    record = {
        "title": title,
        "category": category,
        "tags": tags,
        "description": description,
        "filename": filename,
        "size": size,
        "mime_type": mime_type,
        "content_preview": preview(content, preview_chars),
    }
    _log_notices("document", notices)
    return Extraction(
        record=record,
        summary=f"Document '{title}' filed under {category}.",
        notices=notices,
    )


# ---------------------------------------------------------------------------
# Diagrams
# ---------------------------------------------------------------------------

_MERMAID_TOKENS = re.compile(
    r"-->>|->>|-->|---|==>|-\.->|\bparticipant\b|\bactor\b|\bclass\b"
    r"|\bstate\b|\bsubgraph\b|\bnote\b",
    re.IGNORECASE,
)
_PLANTUML_TOKENS = re.compile(
    r"-->|->|<--|<-|\bparticipant\b|\bactor\b|\bclass\b|\binterface\b"
    r"|\bcomponent\b|\busecase\b|\bnote\b|\bdatabase\b",
    re.IGNORECASE,
)
_XML_OPEN_TAG = re.compile(r"<[A-Za-z][\w:.-]*")

DIAGRAM_FORMATS: dict[str, str] = {
    ".mmd": "Mermaid",
    ".mermaid": "Mermaid",
    ".puml": "PlantUML",
    ".plantuml": "PlantUML",
    ".pu": "PlantUML",
    ".drawio": "Draw.io",
    ".xml": "XML",
    ".bpmn": "BPMN",
    ".svg": "SVG",
}

_TOKENS_BY_FORMAT = {
    "Mermaid": _MERMAID_TOKENS,
    "PlantUML": _PLANTUML_TOKENS,
}


def extract_diagram(content: str, filename: str, size: int = 0) -> Extraction:
    """
    Build a ``diagrams`` record from diagram markup.

    Mermaid and PlantUML sources are measured by keyword and arrow tokens,
    XML-based formats by opening tags.
    """
    notices: list[ExtractionDegraded] = []
    ext = os.path.splitext(filename)[1].lower()

    diagram_format = DIAGRAM_FORMATS.get(ext)
    if diagram_format is None:
        # Unknown extension: sniff for markup before giving up on structure
        diagram_format = "XML" if content.lstrip().startswith("<") else "Mermaid"
        notices.append(ExtractionDegraded(
            "diagram_type", diagram_format, f"unrecognised extension {ext or '(none)'}",
        ))

    tokens = _TOKENS_BY_FORMAT.get(diagram_format, _XML_OPEN_TAG)
    element_count = len(tokens.findall(content))
    description = f"{diagram_format} diagram with {element_count} elements"

    record = {
        "title": file_stem(filename) or "Untitled diagram",
        "diagram_type": diagram_format,
        "element_count": element_count,
        "description": description,
        "category": DEFAULT_CATEGORY,
        "tags": [diagram_format.lower()],
        "filename": filename,
        "size": size,
        "content": content,
    }
    _log_notices("diagram", notices)
    return Extraction(record=record, summary=description + ".", notices=notices)
