"""FastAPI server with MCP integration and the review REST API."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from manuscript_review.report_parser import count_parseable_issues, is_valid_tool_report
from manuscript_review.session_manager import SessionManager
from manuscript_review.store import SessionStore
from manuscript_review.tools import mcp, set_manager


def create_app(state_dir: str | Path | None = None, store: SessionStore | None = None) -> FastAPI:
    """Create the FastAPI application."""
    manager = SessionManager(store, state_dir=state_dir)
    set_manager(manager)

    mcp_http_app = mcp.http_app(path="")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with mcp_http_app.lifespan(app):
            yield
        await manager.flush()

    app = FastAPI(title="Manuscript Review", version="0.1.0", lifespan=lifespan)
    app.state.manager = manager

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_session() -> None:
        if manager.session is None:
            raise HTTPException(status_code=404, detail="No active session")

    async def _json_body(request: Request) -> dict:
        body = await request.json() if await request.body() else {}
        if not isinstance(body, dict):
            raise HTTPException(status_code=400, detail="JSON object body is required")
        return body

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    @app.get("/api/health")
    async def api_health():
        return JSONResponse({"ok": True})

    @app.post("/api/reports/validate")
    async def api_validate_report(request: Request):
        body = await _json_body(request)
        report = str(body.get("report", ""))
        valid = is_valid_tool_report(report)
        return JSONResponse({
            "valid": valid,
            "issue_count": count_parseable_issues(report) if valid else 0,
        })

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    @app.post("/api/sessions")
    async def api_init_session(request: Request):
        body = await _json_body(request)
        ok = await manager.init_session(
            str(body.get("project_name", "")),
            str(body.get("file_name", "")),
            str(body.get("file_path", "")),
            str(body.get("manuscript", "")),
            str(body.get("report", "")),
        )
        if not ok:
            raise HTTPException(status_code=400, detail=manager.error)
        return JSONResponse(manager.get_state())

    @app.get("/api/sessions/lookup")
    async def api_lookup_session(project_name: str = "", file_path: str = ""):
        if not project_name or not file_path:
            raise HTTPException(status_code=400, detail="project_name and file_path are required")
        existing = await manager.check_for_existing_session(project_name, file_path)
        if existing is None:
            return JSONResponse({"session": None})
        return JSONResponse({
            "session": {
                "session_id": existing.id,
                "file_name": existing.file_name,
                "issue_count": len(existing.issues),
                "updated_at": existing.updated_at.isoformat(),
            },
        })

    @app.post("/api/sessions/{session_id}/resume")
    async def api_resume_session(session_id: str):
        if not await manager.resume_session(session_id):
            raise HTTPException(status_code=404, detail=manager.error)
        return JSONResponse(manager.get_state())

    @app.get("/api/session")
    async def api_get_session():
        _require_session()
        return JSONResponse(manager.get_state())

    @app.delete("/api/session")
    async def api_close_session():
        await manager.close_and_cleanup()
        return JSONResponse({"status": "closed"})

    @app.get("/api/session/working-content")
    async def api_working_content():
        _require_session()
        return JSONResponse({"content": manager.get_working_content()})

    # ------------------------------------------------------------------
    # Decisions & navigation
    # ------------------------------------------------------------------

    @app.post("/api/session/accept")
    async def api_accept():
        _require_session()
        if not manager.accept_current_issue():
            raise HTTPException(status_code=409, detail=manager.error or "No current issue")
        return JSONResponse(manager.get_state())

    @app.post("/api/session/custom")
    async def api_custom(request: Request):
        _require_session()
        body = await _json_body(request)
        text = body.get("text")
        if not isinstance(text, str) or not text.strip():
            raise HTTPException(status_code=400, detail="Please enter replacement text")
        if not manager.apply_custom_replacement(text):
            raise HTTPException(status_code=409, detail=manager.error or "No current issue")
        return JSONResponse(manager.get_state())

    @app.post("/api/session/reset")
    async def api_reset():
        _require_session()
        if not manager.reset_current_issue():
            raise HTTPException(status_code=409, detail="No current issue")
        return JSONResponse(manager.get_state())

    @app.post("/api/session/navigate")
    async def api_navigate(request: Request):
        _require_session()
        body = await _json_body(request)
        index = body.get("index")
        direction = body.get("direction")
        if index is not None:
            if isinstance(index, bool) or not isinstance(index, int):
                raise HTTPException(status_code=400, detail="index must be an integer")
            manager.go_to_issue(index)
        elif direction == "next":
            manager.go_to_next_issue()
        elif direction == "prev":
            manager.go_to_prev_issue()
        else:
            raise HTTPException(status_code=400, detail="index or direction (next|prev) is required")
        return JSONResponse(manager.get_state())

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    @app.post("/api/session/finalize")
    async def api_finalize():
        _require_session()
        return JSONResponse(manager.generate_final_content().model_dump())

    # --- MCP mount ---
    app.mount("/mcp", mcp_http_app)

    return app
