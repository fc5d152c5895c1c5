"""Pytest configuration and fixtures."""

import asyncio
import sys
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from healwatch.channel.stomp import Frame  # noqa: E402
from healwatch.config import DashboardConfig  # noqa: E402
from healwatch.models import Category, event_from_dict  # noqa: E402


def make_event(category: Category, event_id, repo: str | None = "org/repoA", **fields):
    """Build a typed Event from camelCase fields."""
    body = {"id": event_id, **fields}
    if repo is not None:
        body["repoName"] = repo
    return event_from_dict(category, body)


def message_frame(destination: str, body: str) -> Frame:
    return Frame(command="MESSAGE", headers={"destination": destination}, body=body)


@pytest.fixture
def buffers():
    """One small buffer per category."""
    from healwatch.buffer import EventBuffer

    return {
        Category.PIPELINE: EventBuffer(Category.PIPELINE, 5),
        Category.HEALING: EventBuffer(Category.HEALING, 5),
        Category.SECURITY: EventBuffer(Category.SECURITY, 10),
    }


@pytest.fixture
def router(buffers):
    """TopicRouter writing into the test buffers."""
    from healwatch.router import TopicRouter

    return TopicRouter(buffers)


@pytest.fixture
def mock_client():
    """Snapshot client returning no data by default."""
    client = Mock()
    client.fetch_pipeline_events = AsyncMock(return_value=[])
    client.fetch_healing_sessions = AsyncMock(return_value=[])
    client.fetch_security_scans = AsyncMock(return_value=[])
    client.fetch_dashboard_stats = AsyncMock(return_value=None)
    client.fetch_knowledge_stats = AsyncMock(return_value=None)
    client.fetch_knowledge_patterns = AsyncMock(return_value=[])
    client.fetch_branches = AsyncMock(return_value=[])
    client.fetch_fix_plan = AsyncMock(return_value=None)
    client.fetch_healing_session = AsyncMock(return_value=None)
    client.fetch_audit_log = AsyncMock(return_value=[])
    client.fetch_security_stats = AsyncMock(return_value=None)
    client.close = AsyncMock()
    return client


@pytest.fixture
def config():
    """Config with long poll intervals so tests drive ticks explicitly."""
    return DashboardConfig(
        pipeline_capacity=5,
        healing_capacity=5,
        security_capacity=10,
        events_poll_interval_s=3600,
        stats_poll_interval_s=3600,
        knowledge_poll_interval_s=3600,
        reconnect_delay_ms=5000,
    )


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Yield to the loop until ``predicate()`` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)
