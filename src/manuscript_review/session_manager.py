"""Session management: review lifecycle, issue decisions, best-effort persistence."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from manuscript_review.config import ReviewConfig, default_state_dir, load_config
from manuscript_review.models import (
    FinalContent,
    Issue,
    IssueStatus,
    PassagePosition,
    ReviewErrorKind,
    ReviewSession,
    ReviewStats,
    compute_stats,
)
from manuscript_review.passage import count_occurrences, find_passage_position, line_of_offset
from manuscript_review.patch import apply_decisions
from manuscript_review.report_parser import is_valid_tool_report, parse_tool_report
from manuscript_review.state import transition
from manuscript_review.store import InMemorySessionStore, JsonFileSessionStore, SessionStore

logger = logging.getLogger(__name__)

REPORT_INVALID_MESSAGE = "Report does not contain readable issues"
NO_ISSUES_MESSAGE = "No issues found in report"
SESSION_NOT_FOUND_MESSAGE = "Session not found"
RESUME_FAILED_MESSAGE = "Failed to resume session"
PASSAGE_NOT_FOUND_MESSAGE = "Passage not found in manuscript"


class SessionManager:
    """Owns the single active review session and its state transitions.

    Every mutation changes in-memory state first and then schedules a
    best-effort save to the store. Save failures are logged and never reach
    the caller; the in-memory session is authoritative.
    """

    def __init__(
        self,
        store: SessionStore | None = None,
        *,
        config: ReviewConfig | None = None,
        state_dir: str | Path | None = None,
    ) -> None:
        self.state_dir = Path(state_dir) if state_dir else default_state_dir()
        self.config = config or load_config(self.state_dir)
        self.store = store or self._default_store()
        self.session: ReviewSession | None = None
        self.error: str | None = None
        self.error_kind: ReviewErrorKind | None = None
        self._pending_saves: set[asyncio.Task] = set()

    def _default_store(self) -> SessionStore:
        if self.config.storage == "memory":
            return InMemorySessionStore()
        return JsonFileSessionStore.for_state_dir(self.state_dir)

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def _fail(self, message: str, kind: ReviewErrorKind) -> bool:
        self.error = message
        self.error_kind = kind
        return False

    def _clear_error(self) -> None:
        self.error = None
        self.error_kind = None

    def _error_kind_value(self) -> str | None:
        return self.error_kind.value if self.error_kind else None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def _save(self, snapshot: ReviewSession) -> None:
        try:
            await self.store.save_session(snapshot)
        except Exception:
            logger.exception("Failed to persist review session %s", snapshot.id)

    def persist(self) -> None:
        """Schedule a background save of the current session.

        Falls back to a synchronous save when no event loop is running
        (e.g. in synchronous tests or scripts).
        """
        if self.session is None:
            return
        snapshot = self.session.model_copy(deep=True)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._save(snapshot))
            return
        task = loop.create_task(self._save(snapshot))
        self._pending_saves.add(task)
        task.add_done_callback(self._pending_saves.discard)

    async def flush(self) -> None:
        """Wait for every scheduled save to finish."""
        while self._pending_saves:
            await asyncio.gather(*list(self._pending_saves), return_exceptions=True)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def init_session(
        self,
        project_name: str,
        file_name: str,
        file_path: str,
        manuscript_content: str,
        report_content: str,
    ) -> bool:
        """Parse a report and start reviewing it against the manuscript."""
        self._clear_error()

        if not is_valid_tool_report(report_content):
            return self._fail(REPORT_INVALID_MESSAGE, ReviewErrorKind.REPORT_INVALID)

        issues = parse_tool_report(report_content)
        if not issues:
            return self._fail(NO_ISSUES_MESSAGE, ReviewErrorKind.NO_ISSUES_FOUND)

        session = ReviewSession(
            project_name=project_name,
            file_name=file_name,
            file_path=file_path,
            original_content=manuscript_content,
            working_content=manuscript_content,
            issues=issues,
            current_index=0,
        )
        self.session = session
        logger.info(
            "Started review session %s for %s/%s with %d issues",
            session.id, project_name, file_path, len(issues),
        )
        await self._save(session.model_copy(deep=True))
        return True

    async def resume_session(self, session_id: str) -> bool:
        """Reload a previously persisted session by id."""
        self._clear_error()
        try:
            existing = await self.store.get_session(session_id)
        except Exception:
            logger.exception("Failed to load review session %s", session_id)
            return self._fail(RESUME_FAILED_MESSAGE, ReviewErrorKind.PERSISTENCE_FAILURE)

        if existing is None:
            return self._fail(SESSION_NOT_FOUND_MESSAGE, ReviewErrorKind.SESSION_NOT_FOUND)

        if existing.issues:
            existing.current_index = min(max(existing.current_index, 0), len(existing.issues) - 1)
        else:
            existing.current_index = 0
        self.session = existing
        logger.info("Resumed review session %s", session_id)
        return True

    async def check_for_existing_session(self, project_name: str, file_path: str) -> ReviewSession | None:
        """Look up a cached session for the file. Best effort: failures yield None."""
        try:
            return await self.store.get_session_for_file(project_name, file_path)
        except Exception:
            logger.exception("Failed to look up cached session for %s/%s", project_name, file_path)
            return None

    async def close_and_cleanup(self) -> None:
        """Wipe the whole session cache and reset in-memory state."""
        await self.flush()
        try:
            await self.store.clear_all_sessions()
        except Exception:
            logger.exception("Failed to clear cached review sessions")
        if self.session is not None:
            logger.info("Closed review session %s", self.session.id)
        self.session = None
        self._clear_error()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def current_issue(self) -> Issue | None:
        session = self.session
        if session and 0 <= session.current_index < len(session.issues):
            return session.issues[session.current_index]
        return None

    @property
    def stats(self) -> ReviewStats:
        return compute_stats(self.session.issues if self.session else [])

    @property
    def current_highlight(self) -> PassagePosition | None:
        """Span of the current issue's passage in the working buffer."""
        issue = self.current_issue
        if self.session is None or issue is None:
            return None
        return find_passage_position(self.session.working_content, issue.passage)

    @property
    def can_apply_current(self) -> bool:
        """False with no current issue or when its passage is absent from the working buffer."""
        return self.current_highlight is not None

    def scroll_line(self) -> int | None:
        position = self.current_highlight
        if position is None or self.session is None:
            return None
        return line_of_offset(self.session.working_content, position.start)

    def ambiguous_passages(self) -> list[int]:
        """Ids of issues whose passage does not occur exactly once in the original.

        The applier always targets the first occurrence, so these are the
        issues whose edit may land somewhere other than intended.
        """
        if self.session is None:
            return []
        original = self.session.original_content
        return [i.id for i in self.session.issues if count_occurrences(original, i.passage) != 1]

    def get_working_content(self) -> str:
        return self.session.working_content if self.session else ""

    def get_state(self) -> dict[str, Any]:
        """JSON-ready view of the active review."""
        session = self.session
        if session is None:
            return {"session": None, "error": self.error, "error_kind": self._error_kind_value()}
        issue = self.current_issue
        highlight = self.current_highlight
        return {
            "session_id": session.id,
            "project_name": session.project_name,
            "file_name": session.file_name,
            "file_path": session.file_path,
            "current_index": session.current_index,
            "current_issue": issue.model_dump(mode="json") if issue else None,
            "issues": [i.model_dump(mode="json") for i in session.issues],
            "stats": self.stats.model_dump(),
            "highlight": highlight.model_dump() if highlight else None,
            "scroll_line": self.scroll_line(),
            "can_apply": self.can_apply_current,
            "ambiguous_issue_ids": self.ambiguous_passages(),
            "error": self.error,
            "error_kind": self._error_kind_value(),
            "created_at": session.created_at.isoformat(),
            "updated_at": session.updated_at.isoformat(),
        }

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def _decide(self, status: IssueStatus, custom_replacement: str | None = None) -> bool:
        issue = self.current_issue
        if self.session is None or issue is None:
            return False
        if status != IssueStatus.PENDING and not self.can_apply_current:
            return self._fail(PASSAGE_NOT_FOUND_MESSAGE, ReviewErrorKind.PASSAGE_NOT_FOUND)
        transition(issue, status, custom_replacement)
        self.session.touch()
        self._clear_error()
        self.persist()
        return True

    def accept_current_issue(self) -> bool:
        """Mark the current issue accepted. Applied only at finalize time."""
        return self._decide(IssueStatus.ACCEPTED)

    def apply_custom_replacement(self, text: str) -> bool:
        """Record the reviewer's own replacement for the current issue."""
        return self._decide(IssueStatus.CUSTOM, text)

    def reset_current_issue(self) -> bool:
        """Return the current issue to pending, dropping any decision."""
        issue = self.current_issue
        if issue is not None and issue.status == IssueStatus.PENDING:
            return True
        return self._decide(IssueStatus.PENDING)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def go_to_issue(self, index: int) -> None:
        session = self.session
        if session is None or index < 0 or index >= len(session.issues):
            return
        if index == session.current_index:
            return
        session.current_index = index
        session.touch()
        self.persist()

    def go_to_next_issue(self) -> None:
        if self.session is None:
            return
        self.go_to_issue(min(self.session.current_index + 1, len(self.session.issues) - 1))

    def go_to_prev_issue(self) -> None:
        if self.session is None:
            return
        self.go_to_issue(max(self.session.current_index - 1, 0))

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def generate_final_content(self) -> FinalContent:
        """Fold every accepted/custom decision over the original text."""
        if self.session is None:
            return FinalContent(success=False, content="", errors=["No session"])
        return apply_decisions(
            self.session.original_content,
            self.session.issues,
            excerpt_length=self.config.error_excerpt_length,
        )
