"""Fix diff and healing session API routes."""

from typing import Any

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException

from ...diff import compute_diff, diff_file_change, summarize
from ...logging_config import get_logger
from ...models import DiffLine
from ...session import DashboardSession

logger = get_logger(__name__)


class DiffRequest(BaseModel):
    """Request model for an ad-hoc diff."""

    old_content: str = ""
    new_content: str
    file_path: str | None = None


class DiffLineResponse(BaseModel):
    """Response model for one diff line."""

    type: str
    content: str
    old_line_num: int | None = None
    new_line_num: int | None = None


class FileDiffResponse(BaseModel):
    """Response model for a file diff."""

    file_path: str | None = None
    action: str = "MODIFY"
    added: int
    removed: int
    lines: list[DiffLineResponse]


class AuditEntryResponse(BaseModel):
    """Response model for one healing audit trail entry."""

    id: int | None = None
    action: str
    details: str = ""
    performed_by: str = ""
    created_at: str | None = None


class FixDiffResponse(BaseModel):
    """Response model for a fix plan rendered as diffs."""

    session_id: int
    failure_summary: str
    root_cause: str
    fix_explanation: str
    fix_type: str
    confidence_score: float
    files: list[FileDiffResponse]


def _file_diff(lines: list[DiffLine], file_path: str | None, action: str) -> dict:
    summary = summarize(lines)
    return {
        "file_path": file_path,
        "action": action,
        "added": summary.added,
        "removed": summary.removed,
        "lines": [
            {
                "type": line.type.value,
                "content": line.content,
                "old_line_num": line.old_line_num,
                "new_line_num": line.new_line_num,
            }
            for line in lines
        ],
    }


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)


def create_fixes_router(session: DashboardSession) -> APIRouter:
    """Create fix diff router."""
    router = APIRouter(prefix="/api", tags=["fixes"])

    @router.post("/diff", response_model=FileDiffResponse)
    async def diff_texts(request: DiffRequest) -> dict:
        """Line diff between two texts."""
        lines = compute_diff(request.old_content, request.new_content)
        return _file_diff(lines, request.file_path, "MODIFY")

    @router.get("/fixes/{session_id}", response_model=dict[str, Any])
    async def get_healing_session(session_id: int) -> dict:
        """Current state of one healing session."""
        event = await session.client.fetch_healing_session(session_id)
        if event is None:
            raise HTTPException(status_code=404, detail="Healing session not found")
        return event.to_dict()

    @router.get("/fixes/{session_id}/audit-log", response_model=list[AuditEntryResponse])
    async def get_audit_log(session_id: int) -> list[dict]:
        """Audit trail of a healing session (empty when unavailable)."""
        entries = await session.client.fetch_audit_log(session_id)
        return [
            {
                "id": entry.get("id") if isinstance(entry.get("id"), int) else None,
                "action": str(entry.get("action") or "UNKNOWN"),
                "details": str(entry.get("details") or ""),
                "performed_by": str(entry.get("performedBy") or ""),
                "created_at": _optional_str(entry.get("createdAt")),
            }
            for entry in entries
        ]

    @router.get("/fixes/{session_id}/diff", response_model=FixDiffResponse)
    async def get_fix_diff(session_id: int) -> dict:
        """Fix plan of a healing session with one diff per file change."""
        plan = await session.client.fetch_fix_plan(session_id)
        if plan is None:
            raise HTTPException(status_code=404, detail="No fix plan for session")

        return {
            "session_id": session_id,
            "failure_summary": plan.failure_summary,
            "root_cause": plan.root_cause,
            "fix_explanation": plan.fix_explanation,
            "fix_type": plan.fix_type,
            "confidence_score": plan.confidence_score,
            "files": [
                _file_diff(diff_file_change(c), c.file_path, c.action.value)
                for c in plan.file_changes
            ],
        }

    return router
