"""ConnectionManager implementation for the STOMP push channel."""

import asyncio
from typing import Awaitable, Callable, Protocol
from urllib.parse import urlparse

import websockets

from ..logging_config import get_logger
from ..models import ConnectionState
from .stomp import (
    HEARTBEAT,
    Frame,
    FrameError,
    connect_frame,
    disconnect_frame,
    is_heartbeat,
    negotiate_heartbeat,
    parse_frame,
    subscribe_frame,
)

logger = get_logger(__name__)


class ChannelClosed(Exception):
    """The remote side closed the channel normally."""


class HandshakeError(Exception):
    """The broker did not answer CONNECT with CONNECTED."""


class BrokerError(Exception):
    """The broker sent an ERROR frame on an established session."""


class HeartbeatTimeout(Exception):
    """The broker went silent for longer than the agreed heart-beat allows."""


class IChannel(Protocol):
    """A bidirectional text transport (one STOMP frame per message)."""

    async def send(self, data: str) -> None:
        ...

    async def recv(self) -> str | bytes:
        """Next message; raises ChannelClosed on a normal close."""
        ...

    async def close(self) -> None:
        ...


ChannelFactory = Callable[[], Awaitable[IChannel]]
MessageHandler = Callable[[Frame], object]
StateListener = Callable[[ConnectionState], None]
Sleep = Callable[[float], Awaitable[None]]


class WebSocketChannel:
    """IChannel over a ``websockets`` client connection."""

    def __init__(self, ws):
        self._ws = ws

    @classmethod
    async def open(cls, url: str, open_timeout: float = 10.0) -> "WebSocketChannel":
        ws = await websockets.connect(
            url,
            subprotocols=["v12.stomp"],
            open_timeout=open_timeout,
        )
        return cls(ws)

    async def send(self, data: str) -> None:
        await self._ws.send(data)

    async def recv(self) -> str | bytes:
        try:
            return await self._ws.recv()
        except websockets.exceptions.ConnectionClosedOK as e:
            raise ChannelClosed(str(e)) from e

    async def close(self) -> None:
        await self._ws.close()


def websocket_factory(url: str, open_timeout: float = 10.0) -> ChannelFactory:
    """Channel factory opening a new WebSocket to ``url`` per attempt."""

    async def factory() -> IChannel:
        return await WebSocketChannel.open(url, open_timeout=open_timeout)

    return factory


class IConnectionManager(Protocol):
    """Owns the single push-channel session."""

    async def connect(self) -> None:
        """Start the connect/reconnect loop."""
        ...

    async def disconnect(self) -> None:
        """Stop reconnecting and tear down the session."""
        ...

    def on_state_change(self, callback: StateListener) -> Callable[[], None]:
        """Register a state listener; returns an unsubscribe function."""
        ...

    def current_state(self) -> ConnectionState:
        """Current connection state."""
        ...


class ConnectionManager:
    """Keeps one STOMP subscription session alive, reconnecting after failures.

    Nothing raised by the transport, the handshake or the frame handler
    escapes this class: failures are logged and turned into state changes.
    """

    def __init__(
        self,
        channel_factory: ChannelFactory,
        on_message: MessageHandler,
        topics: list[str],
        host: str = "localhost",
        reconnect_delay_s: float = 5.0,
        handshake_timeout_s: float = 10.0,
        heartbeat_ms: tuple[int, int] = (10000, 10000),
        sleep: Sleep = asyncio.sleep,
    ):
        self._channel_factory = channel_factory
        self._on_message = on_message
        self._topics = list(topics)
        self._host = host
        self._reconnect_delay_s = reconnect_delay_s
        self._handshake_timeout_s = handshake_timeout_s
        self._heartbeat_ms = heartbeat_ms
        self._sleep = sleep

        self._state = ConnectionState.DISCONNECTED
        self._listeners: list[StateListener] = []
        self._channel: IChannel | None = None
        self._task: asyncio.Task | None = None
        self._heartbeat_task: asyncio.Task | None = None
        self._stopping = False
        self.attempts = 0

    @classmethod
    def for_url(cls, url: str, on_message: MessageHandler, topics: list[str], **kwargs) -> "ConnectionManager":
        """Manager connecting over WebSocket; the STOMP host is the URL's hostname."""
        host = urlparse(url).hostname or "localhost"
        return cls(websocket_factory(url), on_message, topics, host=host, **kwargs)

    def current_state(self) -> ConnectionState:
        return self._state

    def on_state_change(self, callback: StateListener) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    async def connect(self) -> None:
        """Start the session loop. No-op while a loop is already running."""
        if self._task and not self._task.done():
            return
        self._stopping = False
        self._task = asyncio.create_task(self._run())

    async def disconnect(self) -> None:
        """Cancel any pending reconnect and close the session. Idempotent."""
        self._stopping = True
        task, self._task = self._task, None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._close_channel()
        self._set_state(ConnectionState.DISCONNECTED)

    async def _run(self) -> None:
        while not self._stopping:
            self.attempts += 1
            self._set_state(ConnectionState.CONNECTING)
            try:
                await self._session()
                next_state = ConnectionState.DISCONNECTED
                logger.info("Push channel closed by remote")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                next_state = ConnectionState.ERROR
                logger.error("Push channel failure: %s", e, exc_info=True)
            finally:
                await self._close_channel()

            if self._stopping:
                break
            self._set_state(next_state)
            logger.info("Reconnecting in %.1fs", self._reconnect_delay_s)
            await self._sleep(self._reconnect_delay_s)

    async def _session(self) -> None:
        self._channel = await self._channel_factory()
        channel = self._channel

        await channel.send(connect_frame(self._host, self._heartbeat_ms))
        try:
            reply = await asyncio.wait_for(
                self._next_frame(channel), self._handshake_timeout_s
            )
        except FrameError as e:
            raise HandshakeError(f"Malformed handshake reply: {e}") from e
        if reply.command == "ERROR":
            raise HandshakeError(reply.headers.get("message", "broker refused CONNECT"))
        if reply.command != "CONNECTED":
            raise HandshakeError(f"Expected CONNECTED, got {reply.command}")

        for index, topic in enumerate(self._topics):
            await channel.send(subscribe_frame(f"sub-{index}", topic))
        send_ms, expect_ms = negotiate_heartbeat(
            self._heartbeat_ms, reply.headers.get("heart-beat")
        )
        if send_ms:
            self._heartbeat_task = asyncio.create_task(
                self._send_heartbeats(channel, send_ms / 1000)
            )
        # Allow one missed beat before declaring the broker dead
        read_timeout = expect_ms * 2 / 1000 if expect_ms else None

        self._set_state(ConnectionState.CONNECTED)
        logger.info(
            "Push channel connected, subscribed to %d topics (heart-beat %d,%d ms)",
            len(self._topics),
            send_ms,
            expect_ms,
        )

        while True:
            try:
                raw = await asyncio.wait_for(channel.recv(), read_timeout)
            except ChannelClosed:
                return
            except asyncio.TimeoutError as e:
                raise HeartbeatTimeout(f"No data from broker for {read_timeout:.1f}s") from e
            if is_heartbeat(raw):
                continue
            try:
                frame = parse_frame(raw)
            except FrameError as e:
                logger.warning("Dropping malformed frame: %s", e)
                continue

            if frame.command == "MESSAGE":
                self._dispatch(frame)
            elif frame.command == "ERROR":
                raise BrokerError(frame.headers.get("message", frame.body))
            else:
                logger.debug("Ignoring %s frame", frame.command)

    async def _send_heartbeats(self, channel: IChannel, interval_s: float) -> None:
        while True:
            await asyncio.sleep(interval_s)
            try:
                await channel.send(HEARTBEAT)
            except Exception as e:
                logger.warning("Heart-beat send failed: %s", e)
                return

    async def _next_frame(self, channel: IChannel) -> Frame:
        while True:
            raw = await channel.recv()
            if not is_heartbeat(raw):
                return parse_frame(raw)

    def _dispatch(self, frame: Frame) -> None:
        try:
            self._on_message(frame)
        except Exception as e:
            logger.error(
                "Error handling frame from %s: %s",
                frame.destination,
                e,
                exc_info=True,
                extra={"topic": frame.destination},
            )

    async def _close_channel(self) -> None:
        heartbeat, self._heartbeat_task = self._heartbeat_task, None
        if heartbeat is not None:
            heartbeat.cancel()
            try:
                await heartbeat
            except asyncio.CancelledError:
                pass

        channel, self._channel = self._channel, None
        if channel is None:
            return
        try:
            if self._state is ConnectionState.CONNECTED:
                await channel.send(disconnect_frame())
            await channel.close()
        except Exception as e:
            logger.debug("Error closing push channel: %s", e)

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        self._state = state
        logger.info("Connection state -> %s", state.value, extra={"state": state.value})
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error("Error in state listener: %s", e, exc_info=True)
