"""Tests for DashboardSession."""

import asyncio
import json
from dataclasses import replace

import pytest

from healwatch.models import Category, ConnectionState, DashboardStats
from healwatch.router import HEALING_TOPIC, PIPELINE_TOPIC
from healwatch.session import DashboardSession
from sim import SimChannel, demo_script, scripted_channel_factory

from conftest import make_event, message_frame, wait_until


def channel_factory(channels: list):
    async def factory():
        channel = SimChannel()
        channels.append(channel)
        return channel

    return factory


@pytest.fixture
def channels():
    return []


@pytest.fixture
def session(config, mock_client, channels):
    return DashboardSession(config, client=mock_client, channel_factory=channel_factory(channels))


async def started(session: DashboardSession, mock_client) -> None:
    """Acquire and wait for the push channel and the first poll round."""
    await session.acquire()
    await wait_until(lambda: session.connection_state() is ConnectionState.CONNECTED)
    await wait_until(lambda: mock_client.fetch_healing_sessions.await_count >= 1)
    await asyncio.sleep(0.01)


class TestLifecycle:
    """Tests for acquire/release reference counting."""

    @pytest.mark.asyncio
    async def test_first_acquire_starts_last_release_stops(self, session, mock_client, channels):
        """Test the session runs while at least one consumer holds it."""
        await started(session, mock_client)
        await session.acquire()

        assert session.consumers == 2
        assert len(channels) == 1
        assert session.poller(Category.PIPELINE).running

        await session.release()
        assert session.connection_state() is ConnectionState.CONNECTED

        await session.release()
        assert session.consumers == 0
        assert session.connection_state() is ConnectionState.DISCONNECTED
        assert not session.poller(Category.PIPELINE).running
        mock_client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_release_without_acquire(self, session):
        """Test an unmatched release is ignored."""
        await session.release()

        assert session.consumers == 0

    @pytest.mark.asyncio
    async def test_start_polls_every_source(self, session, mock_client):
        """Test starting polls events, stats and knowledge once each."""
        mock_client.fetch_pipeline_events.return_value = [make_event(Category.PIPELINE, 1)]
        mock_client.fetch_dashboard_stats.return_value = DashboardStats(total_pipelines=4)
        mock_client.fetch_knowledge_stats.return_value = {"totalPatterns": 1}
        mock_client.fetch_knowledge_patterns.return_value = [
            {"errorSignature": "NPE", "fixesAvailable": 1}
        ]

        await started(session, mock_client)
        await wait_until(lambda: session.knowledge is not None and session.stats is not None)
        await wait_until(lambda: len(session.events(Category.PIPELINE)) == 1)

        assert [e.id for e in session.events(Category.PIPELINE)] == ["1"]
        assert session.stats.total_pipelines == 4
        assert session.knowledge.fast_path_rate == 100
        mock_client.fetch_pipeline_events.assert_awaited_with(None, None)
        mock_client.fetch_security_scans.assert_awaited_with(None, None)

        await session.release()

    def test_from_config_sim_mode(self, config):
        """Test sim mode builds a session on the scripted channel."""
        session = DashboardSession.from_config(replace(config, sim_mode=True))

        assert session.connection_state() is ConnectionState.DISCONNECTED
        assert session.connection._channel_factory.__qualname__.startswith(
            "scripted_channel_factory"
        )


class TestLiveEvents:
    """Tests for push-delivered events."""

    @pytest.mark.asyncio
    async def test_push_events_reach_buffers_and_listeners(self, session, mock_client, channels):
        """Test routed frames are stored and fanned out per repository."""
        await started(session, mock_client)
        received = []
        unsubscribe = session.subscribe("acme/backend", received.append)

        channels[0].push(PIPELINE_TOPIC, {"id": 1, "repoName": "acme/backend", "status": "FAILED"})
        channels[0].push(PIPELINE_TOPIC, {"id": 2, "repoName": "acme/web"})
        await wait_until(lambda: len(session.events(Category.PIPELINE)) == 2)

        assert [e.id for e in received] == ["1"]
        assert [e.id for e in session.events(Category.PIPELINE, repo="acme/web")] == ["2"]

        unsubscribe()
        await session.release()

    @pytest.mark.asyncio
    async def test_healing_event_triggers_session_poll(self, session, mock_client, channels):
        """Test a healing push refreshes the healing session snapshot."""
        await started(session, mock_client)
        assert mock_client.fetch_healing_sessions.await_count == 1

        channels[0].push(HEALING_TOPIC, {"sessionId": 501, "healingStatus": "APPROVED"})
        await wait_until(lambda: mock_client.fetch_healing_sessions.await_count == 2)

        assert session.events(Category.HEALING)[0].id == "501"
        await session.release()

    @pytest.mark.asyncio
    async def test_demo_script_end_to_end(self, config, mock_client):
        """Test the scripted broker drives every category buffer."""
        session = DashboardSession(
            config,
            client=mock_client,
            channel_factory=scripted_channel_factory(demo_script(), delay_s=0.0),
        )
        await session.acquire()
        await wait_until(lambda: len(session.events(Category.PIPELINE)) == 2)
        await wait_until(lambda: len(session.events(Category.SECURITY)) == 1)

        assert [e.id for e in session.events(Category.PIPELINE)] == ["9002", "9001"]
        healing = session.events(Category.HEALING)
        assert len(healing) == 1
        assert healing[0].payload.healing_status == "PENDING_APPROVAL"
        assert session.events(Category.SECURITY, repo="acme/web", branch="develop")[0].id == "77"

        await session.release()


class TestFilters:
    """Tests for repo/branch rescoping."""

    @pytest.mark.asyncio
    async def test_repo_change_resets_everything(self, session, mock_client, channels):
        """Test a repo change clears every buffer and refetches with the new scope."""
        await started(session, mock_client)
        channels[0].push(PIPELINE_TOPIC, {"id": 1, "repoName": "acme/backend"})
        channels[0].push(HEALING_TOPIC, {"sessionId": 5, "repoName": "acme/backend"})
        await wait_until(lambda: len(session.events(Category.HEALING)) == 1)
        session.stats = DashboardStats(total_pipelines=9)

        await session.set_filters("acme/web", None)

        assert session.events(Category.PIPELINE) == ()
        assert session.events(Category.HEALING) == ()
        assert session.stats is None
        await wait_until(lambda: mock_client.fetch_dashboard_stats.await_count == 2)
        mock_client.fetch_pipeline_events.assert_awaited_with("acme/web", None)
        mock_client.fetch_healing_sessions.assert_awaited_with("acme/web")
        mock_client.fetch_dashboard_stats.assert_awaited_with("acme/web")

        await session.release()

    @pytest.mark.asyncio
    async def test_branch_change_keeps_healing(self, session, mock_client, channels):
        """Test a branch change leaves the healing buffer alone."""
        await started(session, mock_client)
        channels[0].push(HEALING_TOPIC, {"sessionId": 5, "repoName": "acme/backend"})
        await wait_until(lambda: mock_client.fetch_healing_sessions.await_count == 2)
        healing_calls = mock_client.fetch_healing_sessions.await_count

        await session.set_filters(None, "develop")
        await asyncio.sleep(0.01)

        assert len(session.events(Category.HEALING)) == 1
        mock_client.fetch_security_scans.assert_awaited_with(None, "develop")
        assert mock_client.fetch_healing_sessions.await_count == healing_calls

        await session.release()

    @pytest.mark.asyncio
    async def test_unchanged_filters_are_noop(self, session):
        """Test re-applying the same scope does nothing."""
        await session.set_filters("acme/web", "main")
        epoch = session.poller(Category.PIPELINE).epoch

        await session.set_filters("acme/web", "main")

        assert session.poller(Category.PIPELINE).epoch == epoch

    @pytest.mark.asyncio
    async def test_stale_snapshot_discarded_after_filter_change(self, session, mock_client):
        """Test a snapshot requested for the old repo never lands in the buffer."""
        gate = asyncio.Event()

        async def slow_fetch(repo, branch):
            if repo is None:
                await gate.wait()
                return [make_event(Category.PIPELINE, 1, repo="acme/old")]
            return [make_event(Category.PIPELINE, 2, repo="acme/web")]

        mock_client.fetch_pipeline_events.side_effect = slow_fetch
        await started(session, mock_client)

        await session.set_filters("acme/web", None)
        await wait_until(lambda: len(session.events(Category.PIPELINE)) == 1)
        gate.set()
        await asyncio.sleep(0.01)

        assert [e.id for e in session.events(Category.PIPELINE)] == ["2"]
        assert session.poller(Category.PIPELINE).discarded == 1

        await session.release()

    @pytest.mark.asyncio
    async def test_live_events_outside_repo_filter_not_stored(self, session):
        """Test a push event for another repository stays out of the scoped buffer."""
        await session.set_filters("acme/web", None)

        session.router.route(
            message_frame(PIPELINE_TOPIC, json.dumps({"id": 1, "repoName": "acme/api"}))
        )
        session.router.route(
            message_frame(PIPELINE_TOPIC, json.dumps({"id": 2, "repoName": "acme/web"}))
        )

        assert [e.id for e in session.events(Category.PIPELINE)] == ["2"]

    @pytest.mark.asyncio
    async def test_branch_filter_scopes_pipeline_not_healing(self, session):
        """Test a branch filter applies to pipeline events and not to healing sessions."""
        await session.set_filters("acme/web", "main")

        session.router.route(
            message_frame(
                PIPELINE_TOPIC,
                json.dumps({"id": 1, "repoName": "acme/web", "branch": "develop"}),
            )
        )
        session.router.route(
            message_frame(
                HEALING_TOPIC,
                json.dumps({"sessionId": 7, "repoName": "acme/web", "branch": "develop"}),
            )
        )

        assert session.events(Category.PIPELINE) == ()
        assert [e.id for e in session.events(Category.HEALING)] == ["7"]
        assert [e.id for e in session.events(Category.HEALING, branch="main")] == ["7"]
        assert session.buffer(Category.HEALING).scope == ("acme/web", None)

    @pytest.mark.asyncio
    async def test_filtered_read_not_starved_by_other_repos(self, session, mock_client):
        """Test a per-repo read finds snapshot entries behind a full live head."""
        mock_client.fetch_pipeline_events.return_value = [
            make_event(Category.PIPELINE, i, repo="org/A") for i in (1, 2, 3)
        ]
        await started(session, mock_client)
        await wait_until(lambda: len(session.events(Category.PIPELINE)) == 3)
        for i in range(10, 15):
            session.router.route(
                message_frame(PIPELINE_TOPIC, json.dumps({"id": i, "repoName": "org/B"}))
            )

        assert [e.id for e in session.events(Category.PIPELINE, repo="org/A")] == ["1", "2", "3"]

        await session.release()
