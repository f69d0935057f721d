"""Session persistence: async key-value cache for review sessions."""

from __future__ import annotations

import abc
import asyncio
import json
import logging
from pathlib import Path

from manuscript_review.models import ReviewSession

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """A cache read or write failed."""


class SessionStore(abc.ABC):
    """Abstract base class for session caches.

    A store holds a single slot of cached sessions: ``clear_all_sessions``
    wipes everything at once.
    """

    @abc.abstractmethod
    async def save_session(self, session: ReviewSession) -> None:
        ...

    @abc.abstractmethod
    async def get_session(self, session_id: str) -> ReviewSession | None:
        ...

    @abc.abstractmethod
    async def get_session_for_file(self, project_name: str, file_path: str) -> ReviewSession | None:
        """Most recently updated session for the file, if any."""
        ...

    @abc.abstractmethod
    async def delete_session(self, session_id: str) -> None:
        ...

    @abc.abstractmethod
    async def delete_sessions_for_project(self, project_name: str) -> None:
        ...

    @abc.abstractmethod
    async def clear_all_sessions(self) -> None:
        ...


def _latest_for_file(sessions: list[ReviewSession], project_name: str, file_path: str) -> ReviewSession | None:
    matches = [s for s in sessions if s.project_name == project_name and s.file_path == file_path]
    if not matches:
        return None
    return max(matches, key=lambda s: s.updated_at)


class InMemorySessionStore(SessionStore):
    """Dict-backed store. Keeps copies so cached state can lag the live session."""

    def __init__(self) -> None:
        self._sessions: dict[str, ReviewSession] = {}

    async def save_session(self, session: ReviewSession) -> None:
        self._sessions[session.id] = session.model_copy(deep=True)

    async def get_session(self, session_id: str) -> ReviewSession | None:
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def get_session_for_file(self, project_name: str, file_path: str) -> ReviewSession | None:
        session = _latest_for_file(list(self._sessions.values()), project_name, file_path)
        return session.model_copy(deep=True) if session else None

    async def delete_session(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    async def delete_sessions_for_project(self, project_name: str) -> None:
        self._sessions = {k: s for k, s in self._sessions.items() if s.project_name != project_name}

    async def clear_all_sessions(self) -> None:
        self._sessions.clear()


class JsonFileSessionStore(SessionStore):
    """Single JSON file store; writes go through a temp file and an atomic replace."""

    def __init__(self, state_file: str | Path) -> None:
        self._state_file = Path(state_file)
        self._lock = asyncio.Lock()

    @property
    def state_file(self) -> Path:
        return self._state_file

    @classmethod
    def for_state_dir(cls, state_dir: str | Path) -> JsonFileSessionStore:
        return cls(Path(state_dir) / "runtime" / "sessions.json")

    def _read_all(self) -> dict[str, ReviewSession]:
        if not self._state_file.exists():
            return {}
        try:
            raw = json.loads(self._state_file.read_text(encoding="utf-8"))
            return {
                item["id"]: ReviewSession.model_validate(item)
                for item in raw.get("sessions", [])
            }
        except Exception as e:
            raise PersistenceError(f"Failed to read sessions from {self._state_file}: {e}") from e

    def _write_all(self, sessions: dict[str, ReviewSession]) -> None:
        payload = {"sessions": [s.model_dump(mode="json") for s in sessions.values()]}
        try:
            self._state_file.parent.mkdir(parents=True, exist_ok=True)
            temp = self._state_file.with_suffix(".tmp")
            temp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
            temp.replace(self._state_file)
        except OSError as e:
            raise PersistenceError(f"Failed to write sessions to {self._state_file}: {e}") from e

    def _save_sync(self, session: ReviewSession) -> None:
        sessions = self._read_all()
        sessions[session.id] = session
        self._write_all(sessions)

    def _delete_sync(self, predicate) -> None:
        sessions = self._read_all()
        kept = {k: s for k, s in sessions.items() if not predicate(s)}
        if len(kept) != len(sessions):
            self._write_all(kept)

    def _clear_sync(self) -> None:
        try:
            self._state_file.unlink(missing_ok=True)
            self._state_file.with_suffix(".tmp").unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Failed to clear {self._state_file}: {e}") from e

    async def save_session(self, session: ReviewSession) -> None:
        # Snapshot on the loop thread; the live session may keep changing.
        snapshot = session.model_copy(deep=True)
        async with self._lock:
            await asyncio.to_thread(self._save_sync, snapshot)

    async def get_session(self, session_id: str) -> ReviewSession | None:
        async with self._lock:
            sessions = await asyncio.to_thread(self._read_all)
        return sessions.get(session_id)

    async def get_session_for_file(self, project_name: str, file_path: str) -> ReviewSession | None:
        async with self._lock:
            sessions = await asyncio.to_thread(self._read_all)
        return _latest_for_file(list(sessions.values()), project_name, file_path)

    async def delete_session(self, session_id: str) -> None:
        async with self._lock:
            await asyncio.to_thread(self._delete_sync, lambda s: s.id == session_id)

    async def delete_sessions_for_project(self, project_name: str) -> None:
        async with self._lock:
            await asyncio.to_thread(self._delete_sync, lambda s: s.project_name == project_name)

    async def clear_all_sessions(self) -> None:
        async with self._lock:
            await asyncio.to_thread(self._clear_sync)
        logger.info("Cleared all cached review sessions (%s)", self._state_file)
