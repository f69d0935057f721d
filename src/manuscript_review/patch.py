"""Deferred patch application — fold review decisions over the original text."""

from __future__ import annotations

import logging

from manuscript_review.models import FinalContent, Issue, IssueStatus

logger = logging.getLogger(__name__)

DEFAULT_EXCERPT_LENGTH = 40

_APPLIED = (IssueStatus.ACCEPTED, IssueStatus.CUSTOM)


def not_found_message(passage: str, excerpt_length: int = DEFAULT_EXCERPT_LENGTH) -> str:
    return f'Could not find: "{passage[:excerpt_length]}..."'


def apply_decisions(
    original_content: str,
    issues: list[Issue],
    *,
    excerpt_length: int = DEFAULT_EXCERPT_LENGTH,
) -> FinalContent:
    """Apply accepted and custom issues, in report order, to *original_content*.

    Each replacement targets the first occurrence of the issue's passage in the
    progressively edited text. A passage that is no longer present (consumed by
    an earlier edit, or never matched) is recorded as an error and skipped;
    edits already applied are kept. Pure: neither argument is modified.
    """
    changes = [issue for issue in issues if issue.status in _APPLIED]
    if not changes:
        return FinalContent(success=True, content=original_content)

    content = original_content
    errors: list[str] = []

    for issue in changes:
        if issue.passage not in content:
            errors.append(not_found_message(issue.passage, excerpt_length))
            continue
        content = content.replace(issue.passage, issue.effective_replacement, 1)

    if errors:
        logger.warning("%d of %d edits could not be applied", len(errors), len(changes))

    return FinalContent(
        success=not errors,
        content=content,
        errors=errors or None,
    )
