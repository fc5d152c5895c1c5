"""REST snapshot client for the dashboard backend."""

from typing import Any, Protocol
from urllib.parse import quote

import httpx

from ..logging_config import get_logger
from ..models import (
    Category,
    DashboardStats,
    Event,
    FixPlan,
    SecurityStats,
    event_from_dict,
)

logger = get_logger(__name__)


class ISnapshotClient(Protocol):
    """Read-only access to the dashboard REST endpoints."""

    async def fetch_dashboard_stats(self, repo: str | None = None) -> DashboardStats | None:
        ...

    async def fetch_pipeline_events(
        self, repo: str | None = None, branch: str | None = None
    ) -> list[Event]:
        ...

    async def fetch_healing_sessions(self, repo: str | None = None) -> list[Event]:
        ...

    async def fetch_security_scans(
        self, repo: str | None = None, branch: str | None = None
    ) -> list[Event]:
        ...

    async def fetch_branches(self, repo_full_name: str) -> list[str]:
        ...

    async def fetch_knowledge_stats(self) -> dict | None:
        ...

    async def fetch_knowledge_patterns(self, failure_type: str | None = None) -> list[dict]:
        ...

    async def fetch_security_stats(self, repo: str | None = None) -> SecurityStats | None:
        ...

    async def fetch_healing_session(self, session_id: int) -> Event | None:
        ...

    async def fetch_fix_plan(self, session_id: int) -> FixPlan | None:
        ...

    async def fetch_audit_log(self, session_id: int) -> list[dict]:
        ...

    async def close(self) -> None:
        ...


def _params(**kwargs: str | None) -> dict[str, str]:
    return {k: v for k, v in kwargs.items() if v}


class SnapshotClient:
    """httpx-based client. Non-2xx answers and transport errors mean "no data"."""

    def __init__(
        self,
        api_base: str = "http://localhost:8080",
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_base = api_base
        self._timeout_s = timeout_s
        self._transport = transport
        self._client = self._new_client()

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._api_base,
            timeout=self._timeout_s,
            transport=self._transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: dict[str, str] | None = None) -> Any:
        """GET ``path`` and decode JSON. Returns None when no data is available."""
        # A session restarted after stop() gets a fresh connection pool
        if self._client.is_closed:
            self._client = self._new_client()
        try:
            response = await self._client.get(path, params=params)
        except httpx.HTTPError as e:
            logger.warning("GET %s failed: %s", path, e)
            return None

        if response.status_code == 204 or not response.is_success:
            if not response.is_success:
                logger.warning("GET %s returned %s", path, response.status_code)
            return None

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            logger.warning("GET %s returned a non-JSON body", path)
            return None

    async def _get_list(self, path: str, params: dict[str, str] | None = None) -> list:
        data = await self._get(path, params)
        return data if isinstance(data, list) else []

    async def _get_dict(self, path: str, params: dict[str, str] | None = None) -> dict | None:
        data = await self._get(path, params)
        return data if isinstance(data, dict) else None

    async def _get_events(
        self, category: Category, path: str, params: dict[str, str]
    ) -> list[Event]:
        events = []
        for item in await self._get_list(path, params):
            if not isinstance(item, dict):
                continue
            event = event_from_dict(category, item)
            if event is not None:
                events.append(event)
        return events

    # Dashboard
    async def fetch_dashboard_stats(self, repo: str | None = None) -> DashboardStats | None:
        data = await self._get_dict("/api/dashboard/stats", _params(repo=repo))
        return DashboardStats.from_dict(data) if data is not None else None

    async def fetch_pipeline_events(
        self, repo: str | None = None, branch: str | None = None
    ) -> list[Event]:
        return await self._get_events(
            Category.PIPELINE,
            "/api/dashboard/pipeline-events",
            _params(repo=repo, branch=branch),
        )

    async def fetch_healing_sessions(self, repo: str | None = None) -> list[Event]:
        return await self._get_events(
            Category.HEALING, "/api/dashboard/healing-sessions", _params(repo=repo)
        )

    async def fetch_branches(self, repo_full_name: str) -> list[str]:
        path = f"/api/dashboard/repos/{quote(repo_full_name, safe='/')}/branches"
        return [str(b) for b in await self._get_list(path) if b]

    # Security
    async def fetch_security_scans(
        self, repo: str | None = None, branch: str | None = None
    ) -> list[Event]:
        return await self._get_events(
            Category.SECURITY, "/api/security/scans", _params(repo=repo, branch=branch)
        )

    async def fetch_security_stats(self, repo: str | None = None) -> SecurityStats | None:
        data = await self._get_dict("/api/security/stats", _params(repo=repo))
        return SecurityStats.from_dict(data) if data is not None else None

    # Knowledge base
    async def fetch_knowledge_stats(self) -> dict | None:
        return await self._get_dict("/api/knowledge/stats")

    async def fetch_knowledge_patterns(self, failure_type: str | None = None) -> list[dict]:
        items = await self._get_list(
            "/api/knowledge/patterns", _params(failureType=failure_type)
        )
        return [item for item in items if isinstance(item, dict)]

    # Healing
    async def fetch_healing_session(self, session_id: int) -> Event | None:
        data = await self._get_dict(f"/api/healing/sessions/{int(session_id)}")
        return event_from_dict(Category.HEALING, data) if data is not None else None

    async def fetch_fix_plan(self, session_id: int) -> FixPlan | None:
        data = await self._get_dict(f"/api/healing/sessions/{int(session_id)}/fix-plan")
        return FixPlan.from_dict(data) if data is not None else None

    async def fetch_audit_log(self, session_id: int) -> list[dict]:
        items = await self._get_list(f"/api/healing/sessions/{int(session_id)}/audit-log")
        return [item for item in items if isinstance(item, dict)]
