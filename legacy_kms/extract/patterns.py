"""
Pattern library — fixed detectors shared by the extractors.

Log error patterns are evaluated top-to-bottom and the first match wins,
so the domain-specific categories must stay ahead of ``general_error``.
All patterns are case-insensitive.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

# ---------------------------------------------------------------------------
# Log error categories
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ErrorPattern:
    """A log line detector with its category and probable root cause."""

    pattern: re.Pattern
    category: str
    root_cause: str

    def matches(self, line: str) -> bool:
        return self.pattern.search(line) is not None


ERROR_PATTERNS: tuple[ErrorPattern, ...] = (
    ErrorPattern(
        re.compile(r"price.*mismatch|harga.*tidak.*sesuai", re.IGNORECASE),
        "price_mismatch",
        "Price synchronization issue between systems",
    ),
    ErrorPattern(
        re.compile(r"bkp.*missing|bkp.*tidak.*ditemukan", re.IGNORECASE),
        "bkp_missing",
        "BKP record not found in database",
    ),
    ErrorPattern(
        re.compile(r"plu.*not.*found|plu.*tidak.*ditemukan", re.IGNORECASE),
        "plu_not_found",
        "PLU code missing or not synchronized",
    ),
    ErrorPattern(
        re.compile(r"ppn.*error|ppn.*salah", re.IGNORECASE),
        "ppn_error",
        "Tax calculation error or missing configuration",
    ),
    ErrorPattern(
        re.compile(r"gudang.*mismatch|warehouse.*error", re.IGNORECASE),
        "gudang_mismatch",
        "Warehouse data inconsistency",
    ),
    # Catch-all, must stay last
    ErrorPattern(
        re.compile(r"error|exception|failed", re.IGNORECASE),
        "general_error",
        "General system error",
    ),
)


def classify_line(line: str) -> Optional[ErrorPattern]:
    """Return the first error pattern matching *line*, or None."""
    for candidate in ERROR_PATTERNS:
        if candidate.matches(line):
            return candidate
    return None


# ---------------------------------------------------------------------------
# Code constructs
# ---------------------------------------------------------------------------

# Applied to the stripped line: optional visibility, routine kind, name
ROUTINE_PATTERN = re.compile(
    r"^(Public|Private|Protected)?\s*(Sub|Function)\s+(\w+)", re.IGNORECASE
)

# Statements embedded in VB string literals
EMBEDDED_SQL_PATTERN = re.compile(
    r"(SELECT|INSERT|UPDATE|DELETE|EXEC)\s+", re.IGNORECASE
)

# Statements starting a line of a standalone SQL script
SQL_STATEMENT_START = re.compile(
    r"^(SELECT|INSERT|UPDATE|DELETE|CREATE|ALTER|DROP)", re.IGNORECASE
)


# ---------------------------------------------------------------------------
# Log lifecycle phases (flow synthesis)
# ---------------------------------------------------------------------------

PHASE_START = re.compile(r"start|begin|init", re.IGNORECASE)
PHASE_DATA_ACCESS = re.compile(r"select|query|fetch", re.IGNORECASE)
PHASE_FAILURE = re.compile(r"error|exception|fail", re.IGNORECASE)
PHASE_COMPLETE = re.compile(r"response|return|complete", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Document structure
# ---------------------------------------------------------------------------

# Leading markdown / wiki markup stripped from titles
LEADING_MARKUP = re.compile(r"^[\s#*>=\-]+")

# "Step 3: ...", "3. ...", "step 12 : ..."; at most three digits and a
# separator followed by whitespace, so "2023: budget" and "10.5 percent"
# are not steps
SOP_STEP_PATTERN = re.compile(
    r"^\s*(?:Step\s*)?(\d{1,3})\s*[.:](?:\s+|$)(.*)$", re.IGNORECASE
)

DURATION_PATTERN = re.compile(
    r"\b(\d+\s*(?:minutes?|mins?|hours?|hrs?))\b", re.IGNORECASE
)

# "category: Operations", "Tags: a, b"
METADATA_LINE = re.compile(r"^\s*([A-Za-z_]+)\s*:\s*(.+?)\s*$")
