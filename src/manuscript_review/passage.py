"""Passage location: exact, literal substring queries over manuscript text."""

from __future__ import annotations

from manuscript_review.models import PassagePosition, ReplaceResult


def find_passage_position(content: str, passage: str) -> PassagePosition | None:
    """Return the span of the first exact occurrence of *passage*, or None."""
    if not passage or not content:
        return None
    index = content.find(passage)
    if index == -1:
        return None
    return PassagePosition(start=index, end=index + len(passage))


def count_occurrences(content: str, passage: str) -> int:
    """Count non-overlapping literal occurrences of *passage*."""
    if not passage:
        return 0
    return content.count(passage)


def validate_passage_uniqueness(content: str, passage: str) -> tuple[bool, int]:
    if not passage:
        return False, 0
    count = count_occurrences(content, passage)
    return count == 1, count


def safe_replace(content: str, passage: str, replacement: str) -> ReplaceResult:
    """Replace *passage* only when it occurs exactly once in *content*."""
    if not passage:
        return ReplaceResult(success=False, error="Passage cannot be empty")
    if not content:
        return ReplaceResult(success=False, error="Content cannot be empty")

    match_count = count_occurrences(content, passage)
    if match_count == 0:
        return ReplaceResult(success=False, error="Passage not found in manuscript")
    if match_count > 1:
        return ReplaceResult(
            success=False,
            error=f"Passage appears {match_count} times - not unique enough",
            match_count=match_count,
        )

    return ReplaceResult(
        success=True,
        new_content=content.replace(passage, replacement, 1),
        match_count=1,
    )


def line_of_offset(content: str, offset: int) -> int:
    """0-based line number containing *offset* (used for scroll positioning)."""
    return content.count("\n", 0, max(0, offset))
