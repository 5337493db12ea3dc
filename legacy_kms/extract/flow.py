"""
Flow synthesizer — derives a Mermaid sequence diagram from log activity.

Output grammar::

    sequenceDiagram
        participant User
        participant System
        participant Database

        User->>System: <label>
        Database-->>System: Return data
"""

from __future__ import annotations

from .patterns import (
    PHASE_COMPLETE,
    PHASE_DATA_ACCESS,
    PHASE_FAILURE,
    PHASE_START,
)

# Only the head of the log is charted
MAX_INSPECTED_LINES = 10
LABEL_CHARS = 40
ERROR_LABEL_CHARS = 30

PARTICIPANTS = ("User", "System", "Database")
_INDENT = "    "


def _step(source: str, target: str, label: str, dashed: bool = False) -> str:
    arrow = "-->>" if dashed else "->>"
    return f"{_INDENT}{source}{arrow}{target}: {label}"


def flow_steps(content: str) -> list[str]:
    """Return the step lines for the first inspected lines of *content*."""
    lines = [line.strip() for line in content.split("\n") if line.strip()]
    steps: list[str] = []

    for line in lines[:MAX_INSPECTED_LINES]:
        if PHASE_START.search(line):
            steps.append(_step("User", "System", line[:LABEL_CHARS]))
        elif PHASE_DATA_ACCESS.search(line):
            steps.append(_step("System", "Database", line[:LABEL_CHARS]))
            steps.append(_step("Database", "System", "Return data", dashed=True))
        elif PHASE_FAILURE.search(line):
            steps.append(_step("System", "System", f"Error: {line[:ERROR_LABEL_CHARS]}"))
        elif PHASE_COMPLETE.search(line):
            steps.append(_step("System", "User", line[:LABEL_CHARS], dashed=True))
        # anything else carries no lifecycle signal

    return steps


def generate_flow(content: str) -> str:
    """
    Build the sequence diagram script for a log.

    Parameters
    ----------
    content:
        Full log text.  Only the first ``MAX_INSPECTED_LINES`` non-blank
        lines are charted.

    Returns
    -------
    str
        Diagram text: header, participant declarations, a blank line and
        one line per step.
    """
    out = ["sequenceDiagram"]
    out.extend(f"{_INDENT}participant {name}" for name in PARTICIPANTS)
    out.append("")
    out.extend(flow_steps(content))
    return "\n".join(out) + "\n"
