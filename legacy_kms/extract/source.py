"""
Source extractors — VB modules and standalone SQL scripts.

Both are line-oriented pattern matchers, not parsers.  Known limitations:

* a string literal spanning several VB lines is not reconstructed; only the
  line carrying the keyword is inspected;
* quotes and semicolons inside SQL string literals are not escaped, so a
  statement containing them may be split early.
"""

from __future__ import annotations

import logging
import re

from ..errors import ExtractionDegraded
from .patterns import EMBEDDED_SQL_PATTERN, ROUTINE_PATTERN, SQL_STATEMENT_START
from .results import CodeParse, ParsedFunction, ParsedQuery, SqlParse

logger = logging.getLogger(__name__)

# The closing quote is searched this many characters past the keyword end
_QUOTE_SEARCH_OFFSET = 10

_LEADING_WORD = re.compile(r"^(\w+)")


def parse_code(content: str) -> CodeParse:
    """
    Extract routine declarations and embedded SQL from a VB module.

    Parameters
    ----------
    content:
        Full module text.

    Returns
    -------
    CodeParse
        Functions and queries with 1-based line numbers, in source order.
    """
    result = CodeParse()

    for index, line in enumerate(content.split("\n")):
        line_no = index + 1
        trimmed = line.strip()

        routine = ROUTINE_PATTERN.match(trimmed)
        if routine:
            kind = routine.group(2).capitalize()
            result.functions.append(
                ParsedFunction(name=routine.group(3), type=kind, line=line_no)
            )

        statement = EMBEDDED_SQL_PATTERN.search(line)
        if statement:
            keyword = statement.group(1)
            start = statement.start(1)
            end = line.find('"', start + len(keyword) + _QUOTE_SEARCH_OFFSET)
            if end > 0:
                query_text = line[start:end]
            else:
                query_text = line
                result.notices.append(ExtractionDegraded(
                    field=f"queries[{len(result.queries)}]",
                    fallback="whole line",
                    reason=f"no closing quote after {keyword.upper()} on line {line_no}",
                ))
            result.queries.append(
                ParsedQuery(query=query_text.strip(), type=keyword.upper(), line=line_no)
            )

    result.summary = (
        f"Module contains {len(result.functions)} functions/subs "
        f"and {len(result.queries)} SQL operations."
    )
    for notice in result.notices:
        logger.debug("[code] %s", notice)
    return result


def parse_sql(content: str) -> SqlParse:
    """
    Split a SQL script into statements.

    A line starting with a statement keyword opens a new statement (any
    statement still open is emitted first); following non-empty lines are
    appended; a line ending in ``;`` closes the statement.  A statement
    still open at end of file is dropped.

    Parameters
    ----------
    content:
        Full script text.

    Returns
    -------
    SqlParse
        Statements in source order, each tagged with its leading keyword
        and the line it started on.
    """
    result = SqlParse()
    buffer = ""
    start_line = 0

    def _emit() -> None:
        statement = buffer.strip()
        word = _LEADING_WORD.match(statement)
        result.queries.append(ParsedQuery(
            query=statement,
            type=word.group(1).upper() if word else "UNKNOWN",
            line=start_line,
        ))

    for index, line in enumerate(content.split("\n")):
        trimmed = line.strip()

        if SQL_STATEMENT_START.match(trimmed):
            if buffer:
                _emit()
            buffer = line
            start_line = index + 1
        elif buffer and trimmed:
            buffer += "\n" + line

        if trimmed.endswith(";") and buffer:
            _emit()
            buffer = ""

    if buffer.strip():
        result.notices.append(ExtractionDegraded(
            field="queries",
            fallback="dropped",
            reason=f"statement starting on line {start_line} has no terminating ';'",
        ))

    result.summary = f"SQL file contains {len(result.queries)} queries."
    for notice in result.notices:
        logger.debug("[sql] %s", notice)
    return result
