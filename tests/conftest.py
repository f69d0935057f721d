"""Shared fixtures for manuscript review tests."""

import pytest

from manuscript_review.models import Issue, IssueStatus, ReviewSession
from manuscript_review.session_manager import SessionManager
from manuscript_review.store import InMemorySessionStore

MANUSCRIPT = "The cat sat on the mat. The dog ran fast."


def _make_report(*blocks: tuple[str, str]) -> str:
    """Build a report with one block per (passage, replacement) pair."""
    parts = ["=== LINE EDITING REPORT ===", "Overview of the chapter.", ""]
    for passage, replacement in blocks:
        parts.extend([
            f"ORIGINAL TEXT: {passage}",
            "ISSUES IDENTIFIED: Flat verb.",
            f"SUGGESTED CHANGES: {replacement}",
            "EXPLANATION: Livelier.",
            "---",
        ])
    return "\n".join(parts)


@pytest.fixture(autouse=True)
def _isolate_session_storage(tmp_path, monkeypatch):
    """Prevent tests from writing sessions to the real project .manuscript-review/ directory."""
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def manuscript() -> str:
    return MANUSCRIPT


@pytest.fixture
def sample_report() -> str:
    return _make_report(
        ("The cat sat on the mat.", "The cat napped on the mat."),
        ("The dog ran fast.", "The dog sprinted."),
    )


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def manager(store) -> SessionManager:
    return SessionManager(store)


@pytest.fixture
def sample_session() -> ReviewSession:
    return ReviewSession(
        project_name="novel",
        file_name="chapter1.txt",
        file_path="novel/chapter1.txt",
        original_content=MANUSCRIPT,
        working_content=MANUSCRIPT,
        issues=[
            Issue(id=0, passage="The cat sat on the mat.", replacement="The cat napped on the mat."),
            Issue(id=1, passage="The dog ran fast.", replacement="The dog sprinted.", status=IssueStatus.ACCEPTED),
        ],
    )


@pytest.fixture
def make_report():
    return _make_report
