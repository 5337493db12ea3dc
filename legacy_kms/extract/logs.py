"""
Log extractor — classifies log lines against the error pattern table.
"""

from __future__ import annotations

import logging

from ..errors import ExtractionDegraded
from .patterns import classify_line
from .results import LogParse, ParsedError

logger = logging.getLogger(__name__)


def parse_log(content: str) -> LogParse:
    """
    Classify every line of *content*; each line yields at most one error.

    Parameters
    ----------
    content:
        Full log text.

    Returns
    -------
    LogParse
        Errors with the stripped line text, 1-based line number, category
        and root cause of the first matching pattern.
    """
    result = LogParse()

    for index, line in enumerate(content.split("\n")):
        match = classify_line(line)
        if match is None:
            continue
        result.errors.append(ParsedError(
            pattern=line.strip(),
            line=index + 1,
            category=match.category,
            root_cause=match.root_cause,
        ))

    if not content.strip():
        result.notices.append(ExtractionDegraded(
            field="errors", fallback=[], reason="log file is empty",
        ))

    result.summary = f"Log contains {len(result.errors)} error patterns detected."
    for notice in result.notices:
        logger.debug("[log] %s", notice)
    return result
