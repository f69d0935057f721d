"""Report parsing — turn an AI edit report into structured issues.

A report holds zero or more suggestion blocks, each shaped like::

    ORIGINAL TEXT: <verbatim passage>
    ISSUES IDENTIFIED: <what is wrong>
    SUGGESTED CHANGES: <replacement text>
    EXPLANATION: <why it helps>

Blocks are split on ``ORIGINAL TEXT:`` so each chunk is one complete
suggestion and the explanation naturally ends at the next block.
"""

from __future__ import annotations

import re

from manuscript_review.models import Issue, IssueStatus

ORIGINAL_MARKER = "ORIGINAL TEXT:"
ISSUES_MARKER = "ISSUES IDENTIFIED:"
CHANGES_MARKER = "SUGGESTED CHANGES:"
EXPLANATION_MARKER = "EXPLANATION:"
NO_EDITS_MARKER = "No edits suggested"

_DASH_RULE = re.compile(r"^-{3,}$")
_EQUALS_HEADER = re.compile(r"^={3,}")
_BLOCK_SPLIT = re.compile(re.escape(ORIGINAL_MARKER) + r"\s*")


def clean_report_text(text: str) -> str:
    """Drop separator lines (``---`` rules and ``=== SECTION ===`` headers)."""
    kept = []
    for line in text.split("\n"):
        stripped = line.strip()
        if _DASH_RULE.match(stripped) or _EQUALS_HEADER.match(stripped):
            continue
        kept.append(line)
    return "\n".join(kept)


def _before(text: str, marker: str) -> str:
    index = text.find(marker)
    if index == -1:
        return text.strip()
    return text[:index].strip()


def _between(text: str, start_marker: str, end_marker: str) -> str | None:
    start = text.find(start_marker)
    if start == -1:
        return None
    content_start = start + len(start_marker)
    end = text.find(end_marker, content_start)
    if end == -1:
        return text[content_start:].strip()
    return text[content_start:end].strip()


def _after(text: str, marker: str) -> str | None:
    index = text.find(marker)
    if index == -1:
        return None
    return text[index + len(marker):].strip()


def is_valid_tool_report(report: str | None) -> bool:
    """Structural pre-check: at least one passage block with suggested changes."""
    if not report:
        return False
    return ORIGINAL_MARKER in report and CHANGES_MARKER in report


def parse_tool_report(report: str) -> list[Issue]:
    """Extract one pending Issue per suggestion block, in document order."""
    issues: list[Issue] = []
    chunks = _BLOCK_SPLIT.split(clean_report_text(report or ""))

    # chunks[0] is whatever precedes the first block (report header)
    for chunk in chunks[1:]:
        if not chunk.strip():
            continue
        if NO_EDITS_MARKER in chunk or CHANGES_MARKER not in chunk:
            continue

        passage = _before(chunk, ISSUES_MARKER)
        replacement = _between(chunk, CHANGES_MARKER, EXPLANATION_MARKER)
        if not passage or not replacement:
            continue

        issues.append(Issue(
            id=len(issues),
            passage=passage,
            issues=_between(chunk, ISSUES_MARKER, CHANGES_MARKER) or "",
            replacement=replacement,
            explanation=_after(chunk, EXPLANATION_MARKER) or "",
            status=IssueStatus.PENDING,
        ))

    return issues


def count_parseable_issues(report: str) -> int:
    return len(parse_tool_report(report))
