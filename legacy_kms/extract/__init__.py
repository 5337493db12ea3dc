"""
Extraction engine — turns raw uploaded text into knowledge records.

Pattern matching only; no grammar is parsed.  Extractors never raise on
unexpected input: fallbacks are reported as degradation notices.
"""

from .documents import extract_diagram, extract_document, extract_sop
from .flow import generate_flow
from .logs import parse_log
from .metadata import (
    extract_archive,
    extract_image,
    extract_media,
    extract_other,
    extract_pdf,
    extract_spreadsheet,
)
from .results import Extraction
from .source import parse_code, parse_sql

__all__ = [
    "Extraction",
    "parse_code",
    "parse_sql",
    "parse_log",
    "generate_flow",
    "extract_sop",
    "extract_document",
    "extract_diagram",
    "extract_pdf",
    "extract_image",
    "extract_media",
    "extract_spreadsheet",
    "extract_archive",
    "extract_other",
]
