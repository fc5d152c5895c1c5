"""Snapshot statistics models."""

from dataclasses import dataclass, field


def _num(data: dict, key: str, cast=int):
    try:
        return cast(data.get(key) or 0)
    except (TypeError, ValueError):
        return cast(0)


@dataclass(frozen=True)
class DashboardStats:
    """Pipeline and healing counters for the stats cards."""

    total_pipelines: int = 0
    failed_pipelines: int = 0
    healed_pipelines: int = 0
    total_healing_sessions: int = 0
    pending_approval: int = 0
    successful_heals: int = 0
    average_mttr: float = 0.0  # seconds

    @classmethod
    def from_dict(cls, data: dict | None) -> "DashboardStats":
        data = data or {}
        return cls(
            total_pipelines=_num(data, "totalPipelines"),
            failed_pipelines=_num(data, "failedPipelines"),
            healed_pipelines=_num(data, "healedPipelines"),
            total_healing_sessions=_num(data, "totalHealingSessions"),
            pending_approval=_num(data, "pendingApproval"),
            successful_heals=_num(data, "successfulHeals"),
            average_mttr=_num(data, "averageMTTR", float),
        )


SEVERITIES = ("CRITICAL", "HIGH", "MEDIUM", "LOW", "INFO")


@dataclass(frozen=True)
class SecurityStats:
    """Open, suppressed and fixed finding counts for one repo, or "ALL"."""

    repo: str = "ALL"
    open_total: int = 0
    suppressed_total: int = 0
    fixed_total: int = 0
    open_by_severity: dict[str, int] = field(default_factory=dict)

    @property
    def critical_open(self) -> int:
        return self.open_by_severity.get("CRITICAL", 0)

    @property
    def high_open(self) -> int:
        return self.open_by_severity.get("HIGH", 0)

    @classmethod
    def from_dict(cls, data: dict | None) -> "SecurityStats":
        data = data or {}
        by_severity = data.get("openBySeverity")
        if not isinstance(by_severity, dict):
            by_severity = {}
        return cls(
            repo=str(data.get("repo") or "ALL"),
            open_total=_num(data, "openTotal"),
            suppressed_total=_num(data, "suppressedTotal"),
            fixed_total=_num(data, "fixedTotal"),
            open_by_severity={s: _num(by_severity, s) for s in SEVERITIES},
        )


@dataclass(frozen=True)
class FailurePattern:
    """A learned failure pattern in the knowledge base."""

    error_signature: str = ""
    failure_type: str = "UNKNOWN"
    hit_count: int = 0
    fixes_available: int = 0
    best_confidence: float = 0.0

    @classmethod
    def from_dict(cls, data: dict) -> "FailurePattern":
        return cls(
            error_signature=str(data.get("errorSignature") or ""),
            failure_type=str(data.get("failureType") or "UNKNOWN"),
            hit_count=_num(data, "hitCount"),
            fixes_available=_num(data, "fixesAvailable"),
            best_confidence=_num(data, "bestConfidence", float),
        )


@dataclass(frozen=True)
class KnowledgeBaseStats:
    """Knowledge base totals plus the current pattern list."""

    total_patterns: int = 0
    total_fixes: int = 0
    average_confidence: float = 0.0
    patterns: list[FailurePattern] = field(default_factory=list)

    @classmethod
    def from_dict(
        cls, data: dict | None, patterns: list[dict] | None = None
    ) -> "KnowledgeBaseStats":
        data = data or {}
        return cls(
            total_patterns=_num(data, "totalPatterns"),
            total_fixes=_num(data, "totalFixes"),
            average_confidence=_num(data, "averageConfidence", float),
            patterns=[
                FailurePattern.from_dict(p)
                for p in (patterns or [])
                if isinstance(p, dict)
            ],
        )

    @property
    def fast_path_rate(self) -> int:
        """Percentage of patterns that already have at least one fix."""
        if self.total_patterns <= 0:
            return 0
        with_fixes = sum(1 for p in self.patterns if p.fixes_available >= 1)
        return round(with_fixes / self.total_patterns * 100)

    def top_patterns(self, limit: int = 10) -> list[FailurePattern]:
        return sorted(self.patterns, key=lambda p: p.hit_count, reverse=True)[:limit]

    def breakdown(self) -> dict[str, int]:
        """Pattern count per failure type."""
        counts: dict[str, int] = {}
        for pattern in self.patterns:
            counts[pattern.failure_type] = counts.get(pattern.failure_type, 0) + 1
        return counts
