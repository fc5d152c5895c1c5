"""Live event data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union


class Category(str, Enum):
    """Event categories, one per push topic."""

    PIPELINE = "pipeline"
    HEALING = "healing"
    SECURITY = "security"


class ConnectionState(str, Enum):
    """Push channel connection state."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


def _str(data: dict, key: str, default: str | None = None) -> str | None:
    value = data.get(key)
    if value is None:
        return default
    return str(value)


def _int(data: dict, key: str, default: int | None = None) -> int | None:
    value = data.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _float(data: dict, key: str, default: float = 0.0) -> float:
    value = data.get(key)
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class PipelinePayload:
    """A CI pipeline run as reported by the event normalizer."""

    repo_name: str | None = None
    repo_url: str | None = None
    branch: str | None = None
    commit_sha: str | None = None
    provider: str | None = None
    status: str = "QUEUED"  # QUEUED, RUNNING, SUCCESS, FAILED, HEALING, HEALED, ESCALATED
    failure_type: str | None = None
    workflow_name: str | None = None
    workflow_run_id: int | None = None
    triggered_at: str | None = None
    completed_at: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "PipelinePayload":
        return cls(
            repo_name=_str(data, "repoName"),
            repo_url=_str(data, "repoUrl"),
            branch=_str(data, "branch"),
            commit_sha=_str(data, "commitSha"),
            provider=_str(data, "provider"),
            status=_str(data, "status", "QUEUED"),
            failure_type=_str(data, "failureType"),
            workflow_name=_str(data, "workflowName"),
            workflow_run_id=_int(data, "workflowRunId"),
            triggered_at=_str(data, "triggeredAt"),
            completed_at=_str(data, "completedAt"),
        )


@dataclass(frozen=True)
class HealingPayload:
    """A healing session status update."""

    session_id: int | None = None
    repo_name: str | None = None
    healing_status: str = "ANALYZING"
    failure_type: str = "UNKNOWN"
    failure_summary: str = ""
    fix_type: str | None = None
    confidence_score: float = 0.0
    attempt_number: int = 1

    @classmethod
    def from_dict(cls, data: dict) -> "HealingPayload":
        return cls(
            session_id=_int(data, "sessionId", _int(data, "id")),
            repo_name=_str(data, "repoName"),
            # REST sessions use "status", push updates use "healingStatus"
            healing_status=_str(
                data, "healingStatus", _str(data, "status", "ANALYZING")
            ),
            failure_type=_str(data, "failureType", "UNKNOWN"),
            failure_summary=_str(data, "failureSummary", ""),
            fix_type=_str(data, "fixType"),
            confidence_score=_float(data, "confidenceScore"),
            attempt_number=_int(data, "attemptNumber", 1),
        )


@dataclass(frozen=True)
class SecurityPayload:
    """A single security scan finding."""

    repo_name: str | None = None
    branch: str | None = None
    commit_sha: str | None = None
    severity: str = "INFO"  # CRITICAL, HIGH, MEDIUM, LOW, INFO
    vulnerability_id: str | None = None
    vulnerability_type: str | None = None
    title: str = ""
    file_path: str | None = None
    line_number: int | None = None
    status: str = "OPEN"  # OPEN, SUPPRESSED, FIXED, FALSE_POSITIVE

    @classmethod
    def from_dict(cls, data: dict) -> "SecurityPayload":
        return cls(
            repo_name=_str(data, "repoName"),
            branch=_str(data, "branch"),
            commit_sha=_str(data, "commitSha"),
            severity=_str(data, "severity", "INFO"),
            vulnerability_id=_str(data, "vulnerabilityId"),
            vulnerability_type=_str(data, "vulnerabilityType"),
            title=_str(data, "title", ""),
            file_path=_str(data, "filePath"),
            line_number=_int(data, "lineNumber"),
            status=_str(data, "status", "OPEN"),
        )


EventPayload = Union[PipelinePayload, HealingPayload, SecurityPayload]

PAYLOAD_TYPES: dict[Category, type] = {
    Category.PIPELINE: PipelinePayload,
    Category.HEALING: HealingPayload,
    Category.SECURITY: SecurityPayload,
}


@dataclass(frozen=True)
class Event:
    """A live or historical dashboard event. Identity is ``id`` within a category."""

    id: str
    category: Category
    payload: EventPayload
    resource_key: str | None = None  # repository full name, e.g. "org/repo"
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    raw: dict = field(default_factory=dict, compare=False, repr=False)

    @property
    def branch(self) -> str | None:
        return getattr(self.payload, "branch", None)

    def to_dict(self) -> dict[str, Any]:
        """Wire representation for the rendering layer (original body + metadata)."""
        return {
            **self.raw,
            "id": self.raw.get("id", self.id),
            "category": self.category.value,
            "resourceKey": self.resource_key,
            "receivedAt": self.received_at.isoformat(),
        }


def event_id_for(category: Category, data: dict) -> str | None:
    """Extract the identity of a raw event body, or None if it has none."""
    value = data.get("id")
    if value is None and category is Category.HEALING:
        value = data.get("sessionId")
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    return str(value)


def event_from_dict(
    category: Category,
    data: dict,
    received_at: datetime | None = None,
) -> Event | None:
    """Decode a raw JSON object into a typed Event. Returns None when it has no id."""
    event_id = event_id_for(category, data)
    if event_id is None:
        return None

    payload = PAYLOAD_TYPES[category].from_dict(data)
    return Event(
        id=event_id,
        category=category,
        payload=payload,
        resource_key=payload.repo_name or None,
        received_at=received_at or datetime.now(timezone.utc),
        raw=dict(data),
    )
