"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_LOG_PATH = LOGS_DIR / "healwatch.log"

LOGS_DIR.mkdir(parents=True, exist_ok=True)

DEFAULT_API_BASE = "http://localhost:8080"
DEFAULT_WS_URL = "ws://localhost:8083/ws/websocket"
DEFAULT_RECONNECT_DELAY_MS = 5000


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    return float(value)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class DashboardConfig:
    """Runtime settings for the live dashboard session."""

    api_base: str = DEFAULT_API_BASE
    ws_url: str = DEFAULT_WS_URL
    reconnect_delay_ms: int = DEFAULT_RECONNECT_DELAY_MS
    http_timeout_s: float = 10.0

    # Buffer capacities per category
    pipeline_capacity: int = 50
    healing_capacity: int = 50
    security_capacity: int = 200

    # Poll cadences (seconds)
    events_poll_interval_s: float = 30.0
    stats_poll_interval_s: float = 10.0
    knowledge_poll_interval_s: float = 30.0

    sim_mode: bool = False

    @property
    def reconnect_delay_s(self) -> float:
        return self.reconnect_delay_ms / 1000

    @classmethod
    def from_env(cls) -> "DashboardConfig":
        """Build config from HEALWATCH_* environment variables."""
        return cls(
            api_base=os.getenv("HEALWATCH_API_BASE", DEFAULT_API_BASE).rstrip("/"),
            ws_url=os.getenv("HEALWATCH_WS_URL", DEFAULT_WS_URL),
            reconnect_delay_ms=_env_int(
                "HEALWATCH_RECONNECT_DELAY_MS", DEFAULT_RECONNECT_DELAY_MS
            ),
            http_timeout_s=_env_float("HEALWATCH_HTTP_TIMEOUT", 10.0),
            pipeline_capacity=_env_int("HEALWATCH_PIPELINE_CAPACITY", 50),
            healing_capacity=_env_int("HEALWATCH_HEALING_CAPACITY", 50),
            security_capacity=_env_int("HEALWATCH_SECURITY_CAPACITY", 200),
            events_poll_interval_s=_env_float("HEALWATCH_EVENTS_POLL_INTERVAL", 30.0),
            stats_poll_interval_s=_env_float("HEALWATCH_STATS_POLL_INTERVAL", 10.0),
            knowledge_poll_interval_s=_env_float(
                "HEALWATCH_KNOWLEDGE_POLL_INTERVAL", 30.0
            ),
            sim_mode=_env_bool("HEALWATCH_SIM_MODE"),
        )
