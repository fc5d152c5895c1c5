"""SIM implementation - scripted in-memory STOMP broker for demos and tests."""

import asyncio
import itertools
import json
import random

from healwatch.channel import ChannelClosed, ChannelFactory
from healwatch.logging_config import get_logger
from healwatch.router import HEALING_TOPIC, PIPELINE_TOPIC, SECURITY_TOPIC

logger = get_logger(__name__)

_CLOSE = object()


def server_frame(command: str, headers: dict[str, str], body: str = "") -> str:
    """Encode a broker-side frame (headers are assumed escape-free)."""
    head = "\n".join([command, *(f"{k}:{v}" for k, v in headers.items())])
    return f"{head}\n\n{body}\x00"


class SimChannel:
    """IChannel that plays the broker side of a STOMP session.

    Answers CONNECT with CONNECTED (or ERROR when ``refuse`` is set), records
    SUBSCRIBE frames, then replays ``script`` as MESSAGE frames. ``heartbeat``
    is the broker side of the heart-beat header; it never sends beats itself.
    """

    def __init__(
        self,
        script: list[tuple[str, dict]] | None = None,
        delay_s: float | tuple[float, float] = 0.0,
        refuse: bool = False,
        close_after_script: bool = False,
        heartbeat: str = "0,0",
    ):
        self._script = list(script or [])
        self._delay_s = delay_s
        self._refuse = refuse
        self._close_after_script = close_after_script
        self._heartbeat = heartbeat
        self._queue: asyncio.Queue = asyncio.Queue()
        self._feed_task: asyncio.Task | None = None
        self._message_ids = itertools.count(1)
        self.sent: list[str] = []
        self.subscriptions: dict[str, str] = {}
        self.closed = False

    async def send(self, data: str) -> None:
        if self.closed:
            raise ConnectionError("SIM channel closed")
        self.sent.append(data)
        lines = data.rstrip("\x00").split("\n")
        command = lines[0]
        headers = dict(line.split(":", 1) for line in lines[1:] if ":" in line)

        if command == "CONNECT":
            if self._refuse:
                self._queue.put_nowait(
                    server_frame("ERROR", {"message": "Access refused"})
                )
            else:
                self._queue.put_nowait(
                    server_frame("CONNECTED", {"version": "1.2", "heart-beat": self._heartbeat})
                )
        elif command == "SUBSCRIBE":
            self.subscriptions[headers["destination"]] = headers["id"]
            # Replay starts after the first SUBSCRIBE
            if self._feed_task is None:
                self._feed_task = asyncio.create_task(self._feed())

    async def recv(self) -> str:
        item = await self._queue.get()
        if item is _CLOSE:
            raise ChannelClosed("SIM script finished")
        return item

    async def close(self) -> None:
        self.closed = True
        if self._feed_task:
            self._feed_task.cancel()

    def push(self, destination: str, body: dict | str) -> None:
        """Deliver one MESSAGE frame immediately."""
        text = body if isinstance(body, str) else json.dumps(body)
        self._queue.put_nowait(
            server_frame(
                "MESSAGE",
                {
                    "destination": destination,
                    "subscription": self.subscriptions.get(destination, "sub-0"),
                    "message-id": str(next(self._message_ids)),
                    "content-type": "application/json",
                },
                text,
            )
        )

    def push_raw(self, raw: str) -> None:
        self._queue.put_nowait(raw)

    def close_remote(self) -> None:
        """Simulate a normal close from the broker."""
        self._queue.put_nowait(_CLOSE)

    async def _feed(self) -> None:
        await asyncio.sleep(0)
        for destination, body in self._script:
            delay = self._delay_s
            if isinstance(delay, tuple):
                delay = random.uniform(*delay)
            if delay:
                await asyncio.sleep(delay)
            self.push(destination, body)
            logger.info("SIM: %s -> %s", destination, body.get("repoName"))
        if self._close_after_script:
            self.close_remote()


def demo_script() -> list[tuple[str, dict]]:
    """Hardcoded scenario: a failing build is healed and a finding is reported."""
    return [
        (
            PIPELINE_TOPIC,
            {
                "id": 9001,
                "repoName": "acme/backend",
                "branch": "main",
                "commitSha": "3f9c2a1d7e",
                "provider": "GITHUB",
                "status": "FAILED",
                "failureType": "BUILD_COMPILE",
                "workflowName": "ci",
            },
        ),
        (
            HEALING_TOPIC,
            {
                "sessionId": 501,
                "repoName": "acme/backend",
                "healingStatus": "ANALYZING",
                "failureType": "BUILD_COMPILE",
            },
        ),
        (
            HEALING_TOPIC,
            {
                "sessionId": 501,
                "repoName": "acme/backend",
                "healingStatus": "PENDING_APPROVAL",
                "failureType": "BUILD_COMPILE",
                "confidenceScore": 0.87,
            },
        ),
        (
            SECURITY_TOPIC,
            {
                "id": 77,
                "repoName": "acme/web",
                "branch": "develop",
                "severity": "HIGH",
                "vulnerabilityType": "HARDCODED_CREDENTIAL",
                "title": "AWS key committed in config",
                "filePath": "config/settings.py",
                "lineNumber": 12,
            },
        ),
        (
            PIPELINE_TOPIC,
            {
                "id": 9002,
                "repoName": "acme/backend",
                "branch": "main",
                "commitSha": "8b1e04c2aa",
                "provider": "GITHUB",
                "status": "HEALED",
                "workflowName": "ci",
            },
        ),
    ]


def scripted_channel_factory(
    script: list[tuple[str, dict]] | None = None,
    delay_s: float | tuple[float, float] = (1.0, 3.0),
) -> ChannelFactory:
    """Factory handing out a fresh SimChannel per connection attempt."""

    async def factory() -> SimChannel:
        return SimChannel(script if script is not None else demo_script(), delay_s=delay_s)

    return factory
