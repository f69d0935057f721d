"""FastMCP tool definitions for manuscript review."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastmcp import FastMCP

if TYPE_CHECKING:
    from manuscript_review.session_manager import SessionManager

mcp = FastMCP("manuscript-review", instructions="One-by-one review of AI-suggested manuscript edits")

# Will be set by server.py at startup
_manager: SessionManager | None = None


def set_manager(manager: SessionManager | None) -> None:
    global _manager
    _manager = manager


def _get_manager() -> SessionManager:
    if _manager is None:
        raise RuntimeError("SessionManager not initialized")
    return _manager


def _no_session() -> dict:
    return {"error": "No active session"}


def _decision_error(mgr: SessionManager) -> dict:
    if mgr.session is None or mgr.error is None:
        return _no_session()
    return {"error": mgr.error, "error_kind": mgr.error_kind.value if mgr.error_kind else None}


@mcp.tool()
async def start_review(
    project_name: str,
    file_name: str,
    file_path: str,
    manuscript: str,
    report: str,
) -> dict:
    """Start reviewing an edit report against a manuscript. Returns the review state."""
    mgr = _get_manager()
    if not await mgr.init_session(project_name, file_name, file_path, manuscript, report):
        return {"error": mgr.error, "error_kind": mgr.error_kind.value if mgr.error_kind else None}
    return mgr.get_state()


@mcp.tool()
async def get_review_state() -> dict:
    """Return the current issue, progress stats and highlight span."""
    mgr = _get_manager()
    if mgr.session is None:
        return _no_session()
    return mgr.get_state()


@mcp.tool()
async def accept_issue() -> dict:
    """Accept the suggested replacement for the current issue."""
    mgr = _get_manager()
    if not mgr.accept_current_issue():
        return _decision_error(mgr)
    return mgr.get_state()


@mcp.tool()
async def customize_issue(text: str) -> dict:
    """Use your own replacement text for the current issue."""
    mgr = _get_manager()
    if not text.strip():
        return {"error": "Replacement text is required"}
    if not mgr.apply_custom_replacement(text):
        return _decision_error(mgr)
    return mgr.get_state()


@mcp.tool()
async def reset_issue() -> dict:
    """Undo the decision on the current issue."""
    mgr = _get_manager()
    if not mgr.reset_current_issue():
        return _no_session()
    return mgr.get_state()


@mcp.tool()
async def navigate(direction: str = "next", index: int | None = None) -> dict:
    """Move to another issue. direction: next/prev, or pass an explicit index."""
    mgr = _get_manager()
    if mgr.session is None:
        return _no_session()
    if index is not None:
        mgr.go_to_issue(index)
    elif direction == "prev":
        mgr.go_to_prev_issue()
    else:
        mgr.go_to_next_issue()
    return mgr.get_state()


@mcp.tool()
async def finalize_review() -> dict:
    """Apply every accepted/custom decision and return the final text."""
    return _get_manager().generate_final_content().model_dump()


@mcp.tool()
async def close_review() -> dict:
    """Discard the session and clear the session cache."""
    await _get_manager().close_and_cleanup()
    return {"closed": True}
