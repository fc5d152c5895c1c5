"""Live state API routes."""

import asyncio
from typing import Any

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect

from ...logging_config import get_logger
from ...models import Category
from ...session import DashboardSession

logger = get_logger(__name__)


class ConnectionResponse(BaseModel):
    """Response model for push channel state."""

    state: str
    connected: bool


class StatsResponse(BaseModel):
    """Response model for dashboard stats (zeros when unavailable)."""

    available: bool
    total_pipelines: int = 0
    failed_pipelines: int = 0
    healed_pipelines: int = 0
    total_healing_sessions: int = 0
    pending_approval: int = 0
    successful_heals: int = 0
    average_mttr: float = 0.0


class PatternResponse(BaseModel):
    """Response model for one knowledge base pattern."""

    error_signature: str
    failure_type: str
    hit_count: int
    fixes_available: int
    best_confidence: float


class KnowledgeResponse(BaseModel):
    """Response model for knowledge base stats."""

    available: bool
    total_patterns: int = 0
    total_fixes: int = 0
    average_confidence: float = 0.0
    fast_path_rate: int = 0
    breakdown: dict[str, int] = {}
    top_patterns: list[PatternResponse] = []


class SecurityStatsResponse(BaseModel):
    """Response model for security finding counts."""

    available: bool
    repo: str | None = None
    open_total: int = 0
    suppressed_total: int = 0
    fixed_total: int = 0
    critical_open: int = 0
    high_open: int = 0
    open_by_severity: dict[str, int] = {}


class FiltersRequest(BaseModel):
    """Request model for repo/branch scope."""

    repo: str | None = None
    branch: str | None = None


def create_live_router(session: DashboardSession) -> APIRouter:
    """Create live state router."""
    router = APIRouter(tags=["live"])

    @router.get("/api/live/connection", response_model=ConnectionResponse)
    async def get_connection() -> dict:
        """Current push channel state."""
        state = session.connection_state()
        return {"state": state.value, "connected": state.value == "connected"}

    @router.get("/api/live/events/{category}", response_model=list[dict[str, Any]])
    async def get_events(
        category: Category,
        repo: str | None = Query(None, description="Repository full name"),
        branch: str | None = Query(None, description="Branch name"),
    ) -> list[dict]:
        """Newest-first merged live + snapshot events for one category."""
        try:
            return [e.to_dict() for e in session.events(category, repo, branch)]
        except Exception as e:
            logger.error("Reading %s events failed: %s", category.value, e, exc_info=True)
            raise HTTPException(status_code=500, detail="Events unavailable")

    @router.get("/api/live/stats", response_model=StatsResponse)
    async def get_stats() -> dict:
        """Latest polled dashboard stats."""
        stats = session.stats
        if stats is None:
            return {"available": False}
        return {
            "available": True,
            "total_pipelines": stats.total_pipelines,
            "failed_pipelines": stats.failed_pipelines,
            "healed_pipelines": stats.healed_pipelines,
            "total_healing_sessions": stats.total_healing_sessions,
            "pending_approval": stats.pending_approval,
            "successful_heals": stats.successful_heals,
            "average_mttr": stats.average_mttr,
        }

    @router.get("/api/live/security/stats", response_model=SecurityStatsResponse)
    async def get_security_stats(
        repo: str | None = Query(None, description="Repository full name"),
    ) -> dict:
        """Security finding counts for a repo (the current filter by default)."""
        stats = await session.fetch_security_stats(repo)
        if stats is None:
            return {"available": False, "repo": repo or session.repo}
        return {
            "available": True,
            "repo": stats.repo,
            "open_total": stats.open_total,
            "suppressed_total": stats.suppressed_total,
            "fixed_total": stats.fixed_total,
            "critical_open": stats.critical_open,
            "high_open": stats.high_open,
            "open_by_severity": stats.open_by_severity,
        }

    @router.get("/api/live/knowledge", response_model=KnowledgeResponse)
    async def get_knowledge() -> dict:
        """Latest polled knowledge base stats."""
        kb = session.knowledge
        if kb is None:
            return {"available": False}
        return {
            "available": True,
            "total_patterns": kb.total_patterns,
            "total_fixes": kb.total_fixes,
            "average_confidence": kb.average_confidence,
            "fast_path_rate": kb.fast_path_rate,
            "breakdown": kb.breakdown(),
            "top_patterns": [
                {
                    "error_signature": p.error_signature,
                    "failure_type": p.failure_type,
                    "hit_count": p.hit_count,
                    "fixes_available": p.fixes_available,
                    "best_confidence": p.best_confidence,
                }
                for p in kb.top_patterns()
            ],
        }

    @router.post("/api/live/filters", response_model=FiltersRequest)
    async def set_filters(request: FiltersRequest) -> dict:
        """Rescope the session to a repo and/or branch."""
        await session.set_filters(request.repo, request.branch)
        return {"repo": session.repo, "branch": session.branch}

    @router.get("/api/live/repos/{owner}/{repo}/branches", response_model=list[str])
    async def get_branches(owner: str, repo: str) -> list[str]:
        """Branches of a monitored repository (empty when unavailable)."""
        return await session.fetch_branches(f"{owner}/{repo}")

    @router.websocket("/ws/repos/{owner}/{repo}")
    async def repo_feed(websocket: WebSocket, owner: str, repo: str) -> None:
        """Push every live event for one repository to the client."""
        resource_key = f"{owner}/{repo}"
        await websocket.accept()
        stream = session.stream(resource_key)

        async def forward() -> None:
            async for event in stream:
                await websocket.send_json(event.to_dict())

        sender = asyncio.create_task(forward())
        try:
            # Client messages are ignored; receiving only detects the disconnect
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.info("Feed client for %s disconnected", resource_key)
        finally:
            stream.close()
            sender.cancel()
            await asyncio.gather(sender, return_exceptions=True)

    return router
