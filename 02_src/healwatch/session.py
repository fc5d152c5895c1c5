"""Dashboard session bootstrap and lifecycle management."""

import asyncio
from typing import Protocol

from .buffer import EventBuffer
from .channel import ChannelFactory, ConnectionManager, Frame
from .config import DashboardConfig
from .logging_config import get_logger
from .models import (
    Category,
    ConnectionState,
    DashboardStats,
    Event,
    KnowledgeBaseStats,
    SecurityStats,
)
from .poller import PollScheduler
from .router import ResourceStream, TopicRouter, Unsubscribe
from .snapshots import ISnapshotClient, SnapshotClient

logger = get_logger(__name__)


class IDashboardSession(Protocol):
    """Single owned live-sync session shared by every dashboard consumer."""

    async def acquire(self) -> None:
        """Register a consumer; the first one starts the session."""
        ...

    async def release(self) -> None:
        """Drop a consumer; the last one tears the session down."""
        ...

    async def set_filters(self, repo: str | None, branch: str | None) -> None:
        """Change repo/branch scope, resetting the affected buffers."""
        ...

    def events(
        self,
        category: Category,
        repo: str | None = None,
        branch: str | None = None,
    ) -> tuple[Event, ...]:
        """Read-only snapshot of one category."""
        ...

    def connection_state(self) -> ConnectionState:
        """Current push channel state."""
        ...


class DashboardSession:
    """Owns buffers, router, push connection and pollers for one dashboard."""

    def __init__(
        self,
        config: DashboardConfig | None = None,
        client: ISnapshotClient | None = None,
        channel_factory: ChannelFactory | None = None,
    ):
        self._config = config or DashboardConfig.from_env()
        cfg = self._config

        self._client = client or SnapshotClient(cfg.api_base, timeout_s=cfg.http_timeout_s)

        # 1. Buffers (no dependencies)
        self._buffers: dict[Category, EventBuffer] = {
            Category.PIPELINE: EventBuffer(Category.PIPELINE, cfg.pipeline_capacity),
            Category.HEALING: EventBuffer(Category.HEALING, cfg.healing_capacity),
            Category.SECURITY: EventBuffer(Category.SECURITY, cfg.security_capacity),
        }

        # 2. Router (writes push events into buffers)
        self._router = TopicRouter(self._buffers)

        # 3. Connection (feeds frames to the router)
        if channel_factory is None:
            self._connection = ConnectionManager.for_url(
                cfg.ws_url,
                self._handle_frame,
                self._router.topics,
                reconnect_delay_s=cfg.reconnect_delay_s,
            )
        else:
            self._connection = ConnectionManager(
                channel_factory,
                self._handle_frame,
                self._router.topics,
                reconnect_delay_s=cfg.reconnect_delay_s,
            )

        # 4. Pollers (write snapshot merges into buffers)
        self._pollers: dict[Category, PollScheduler] = {
            Category.PIPELINE: PollScheduler(
                "pipeline-events",
                lambda: self._client.fetch_pipeline_events(self.repo, self.branch),
                self._buffers[Category.PIPELINE].apply_snapshot,
            ),
            Category.HEALING: PollScheduler(
                "healing-sessions",
                lambda: self._client.fetch_healing_sessions(self.repo),
                self._buffers[Category.HEALING].apply_snapshot,
            ),
            Category.SECURITY: PollScheduler(
                "security-scans",
                lambda: self._client.fetch_security_scans(self.repo, self.branch),
                self._buffers[Category.SECURITY].apply_snapshot,
            ),
        }
        self._stats_poller = PollScheduler(
            "dashboard-stats",
            lambda: self._client.fetch_dashboard_stats(self.repo),
            self._set_stats,
        )
        self._knowledge_poller = PollScheduler(
            "knowledge-base", self._fetch_knowledge, self._set_knowledge
        )

        self.repo: str | None = None
        self.branch: str | None = None
        self.stats: DashboardStats | None = None
        self.knowledge: KnowledgeBaseStats | None = None

        self._consumers = 0
        self._started = False

    @classmethod
    def from_config(cls, config: DashboardConfig) -> "DashboardSession":
        """Session for ``config``, using the scripted channel in sim mode."""
        if config.sim_mode:
            from sim import scripted_channel_factory

            return cls(config, channel_factory=scripted_channel_factory())
        return cls(config)

    # Lifecycle
    async def acquire(self) -> None:
        self._consumers += 1
        if self._consumers == 1:
            await self.start()

    async def release(self) -> None:
        if self._consumers == 0:
            return
        self._consumers -= 1
        if self._consumers == 0:
            await self.stop()

    async def start(self) -> None:
        """Start components in dependency order."""
        if self._started:
            return
        logger.info("Starting dashboard session")
        self._started = True
        cfg = self._config

        await self._connection.connect()
        for poller in self._pollers.values():
            await poller.start(cfg.events_poll_interval_s)
        await self._stats_poller.start(cfg.stats_poll_interval_s)
        await self._knowledge_poller.start(cfg.knowledge_poll_interval_s)
        logger.info("Dashboard session started")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if not self._started:
            return
        self._started = False
        await self._knowledge_poller.stop()
        await self._stats_poller.stop()
        for poller in self._pollers.values():
            await poller.stop()
        await self._connection.disconnect()
        await self._client.close()
        logger.info("Dashboard session stopped")

    async def set_filters(self, repo: str | None, branch: str | None) -> None:
        """Rescope to ``repo``/``branch``; stale buffers and in-flight fetches are dropped."""
        repo = repo or None
        branch = branch or None
        if repo == self.repo and branch == self.branch:
            return
        repo_changed = repo != self.repo
        self.repo, self.branch = repo, branch
        logger.info("Filters changed: repo=%s branch=%s", repo, branch)

        for category, buffer in self._buffers.items():
            buffer.set_scope(repo, self._branch_scope(category, branch))

        affected = list(Category) if repo_changed else [Category.PIPELINE, Category.SECURITY]
        for category in affected:
            self._pollers[category].invalidate()
            self._buffers[category].reset()
            if self._started:
                self._pollers[category].trigger()

        if repo_changed:
            self._stats_poller.invalidate()
            self.stats = None
            if self._started:
                self._stats_poller.trigger()

    # Read side
    def events(
        self,
        category: Category,
        repo: str | None = None,
        branch: str | None = None,
    ) -> tuple[Event, ...]:
        buffer = self._buffers[category]
        branch = self._branch_scope(category, branch)
        if repo or branch:
            return buffer.filter(repo, branch)
        return buffer.snapshot()

    def connection_state(self) -> ConnectionState:
        return self._connection.current_state()

    def subscribe(self, resource_key: str, callback) -> Unsubscribe:
        return self._router.subscribe(resource_key, callback)

    def stream(self, resource_key: str, maxsize: int = 100) -> ResourceStream:
        return ResourceStream(self._router, resource_key, maxsize=maxsize)

    async def fetch_branches(self, repo_full_name: str) -> list[str]:
        return await self._client.fetch_branches(repo_full_name)

    async def fetch_security_stats(self, repo: str | None = None) -> SecurityStats | None:
        """Finding counts for ``repo``, defaulting to the current repo filter."""
        return await self._client.fetch_security_stats(repo or self.repo)

    @property
    def client(self) -> ISnapshotClient:
        return self._client

    @property
    def connection(self) -> ConnectionManager:
        return self._connection

    @property
    def router(self) -> TopicRouter:
        return self._router

    @property
    def consumers(self) -> int:
        return self._consumers

    def buffer(self, category: Category) -> EventBuffer:
        return self._buffers[category]

    def poller(self, category: Category) -> PollScheduler:
        return self._pollers[category]

    # Internals
    def _handle_frame(self, frame: Frame) -> None:
        event = self._router.route(frame)
        # A healing status change means the session list is stale
        if event is not None and event.category is Category.HEALING and self._started:
            self._pollers[Category.HEALING].trigger()

    @staticmethod
    def _branch_scope(category: Category, branch: str | None) -> str | None:
        # Healing sessions are listed per repository only
        return None if category is Category.HEALING else branch

    def _set_stats(self, stats: DashboardStats | None) -> None:
        self.stats = stats

    async def _fetch_knowledge(self) -> KnowledgeBaseStats | None:
        stats, patterns = await asyncio.gather(
            self._client.fetch_knowledge_stats(),
            self._client.fetch_knowledge_patterns(),
        )
        if stats is None:
            return None
        return KnowledgeBaseStats.from_dict(stats, patterns)

    def _set_knowledge(self, knowledge: KnowledgeBaseStats | None) -> None:
        self.knowledge = knowledge
