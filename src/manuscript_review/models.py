"""Data models for the manuscript review engine."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field


class IssueStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    CUSTOM = "custom"


class ReviewErrorKind(str, enum.Enum):
    REPORT_INVALID = "report_invalid"
    NO_ISSUES_FOUND = "no_issues_found"
    SESSION_NOT_FOUND = "session_not_found"
    PASSAGE_NOT_FOUND = "passage_not_found"
    PERSISTENCE_FAILURE = "persistence_failure"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> str:
    return uuid.uuid4().hex


# --- Issue ---


class Issue(BaseModel):
    id: int = 0
    passage: str = Field(min_length=1)
    issues: str = ""
    replacement: str
    explanation: str = ""
    status: IssueStatus = IssueStatus.PENDING
    custom_replacement: str | None = None  # only meaningful when status is CUSTOM

    @property
    def effective_replacement(self) -> str:
        """Text that will replace the passage when this issue is applied."""
        if self.status == IssueStatus.CUSTOM and self.custom_replacement:
            return self.custom_replacement
        return self.replacement


class ReviewStats(BaseModel):
    total: int = 0
    accepted: int = 0
    custom: int = 0
    pending: int = 0


def compute_stats(issues: list[Issue]) -> ReviewStats:
    """Count issues per status. Always derived, never stored."""
    return ReviewStats(
        total=len(issues),
        accepted=sum(1 for i in issues if i.status == IssueStatus.ACCEPTED),
        custom=sum(1 for i in issues if i.status == IssueStatus.CUSTOM),
        pending=sum(1 for i in issues if i.status == IssueStatus.PENDING),
    )


# --- Passage location ---


class PassagePosition(BaseModel):
    start: int
    end: int


class ReplaceResult(BaseModel):
    success: bool
    new_content: str | None = None
    error: str | None = None
    match_count: int = 0


# --- Commit ---


class FinalContent(BaseModel):
    success: bool
    content: str
    errors: list[str] | None = None


# --- Session ---


class ReviewSession(BaseModel):
    id: str = Field(default_factory=_uuid)
    project_name: str
    file_name: str
    file_path: str
    original_content: str
    working_content: str
    issues: list[Issue] = Field(default_factory=list)
    current_index: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def touch(self) -> None:
        self.updated_at = _utcnow()
