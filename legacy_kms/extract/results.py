"""
Data classes returned by the extractors.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from ..errors import ExtractionDegraded


@dataclass
class ParsedFunction:
    """A Sub or Function declaration found in a VB module."""
    name: str
    type: str           # "Sub" | "Function"
    line: int


@dataclass
class ParsedQuery:
    """A SQL statement found in a module or script."""
    query: str
    type: str           # uppercased leading keyword
    line: int

    def to_library_record(
        self, source_file: str, example_usage: Optional[str] = None,
    ) -> dict[str, Any]:
        """Return the ``query_library`` record for this statement."""
        record: dict[str, Any] = {
            "query_text": self.query,
            "category": self.type.lower(),
            "source_file": source_file,
        }
        if example_usage is not None:
            record["example_usage"] = example_usage
        return record


@dataclass
class ParsedError:
    """A classified log line."""
    pattern: str
    line: int
    category: str
    root_cause: str


@dataclass
class SopStep:
    """One numbered step of a procedure."""
    step_number: int
    title: str
    description: str
    duration: str = "N/A"


@dataclass
class CodeParse:
    """Result of :func:`~legacy_kms.extract.source.parse_code`."""
    functions: list[ParsedFunction] = field(default_factory=list)
    queries: list[ParsedQuery] = field(default_factory=list)
    summary: str = ""
    notices: list[ExtractionDegraded] = field(default_factory=list)

    def to_record(self, filename: str, content: str) -> dict[str, Any]:
        """Return the ``code_docs`` record for the parsed module."""
        return {
            "filename": filename,
            "content": content,
            "functions": [asdict(f) for f in self.functions],
            "queries": [asdict(q) for q in self.queries],
            "summary": self.summary,
        }


@dataclass
class SqlParse:
    """Result of :func:`~legacy_kms.extract.source.parse_sql`."""
    queries: list[ParsedQuery] = field(default_factory=list)
    summary: str = ""
    notices: list[ExtractionDegraded] = field(default_factory=list)


@dataclass
class LogParse:
    """Result of :func:`~legacy_kms.extract.logs.parse_log`."""
    errors: list[ParsedError] = field(default_factory=list)
    summary: str = ""
    notices: list[ExtractionDegraded] = field(default_factory=list)

    def to_record(self, filename: str, content: str) -> dict[str, Any]:
        """Return the ``error_logs`` record for the parsed log."""
        return {
            "filename": filename,
            "content": content,
            "errors": [asdict(e) for e in self.errors],
            "summary": self.summary,
        }


@dataclass
class Extraction:
    """A single derived record plus a readable summary and any fallbacks used."""
    record: dict[str, Any]
    summary: str
    notices: list[ExtractionDegraded] = field(default_factory=list)
