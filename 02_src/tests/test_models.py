"""Tests for data models."""

from datetime import datetime, timezone

import pytest

from healwatch.models import (
    Category,
    DashboardStats,
    FileAction,
    FileChange,
    FixPlan,
    HealingPayload,
    KnowledgeBaseStats,
    PipelinePayload,
    SecurityPayload,
    SecurityStats,
    event_from_dict,
)


class TestEventFromDict:
    """Tests for event decoding."""

    def test_pipeline_event(self):
        """Test a pipeline body becomes a typed event keyed by repo."""
        event = event_from_dict(
            Category.PIPELINE,
            {
                "id": 9001,
                "repoName": "acme/backend",
                "branch": "main",
                "status": "FAILED",
                "workflowRunId": "42",
            },
        )

        assert event.id == "9001"
        assert event.resource_key == "acme/backend"
        assert isinstance(event.payload, PipelinePayload)
        assert event.payload.workflow_run_id == 42
        assert event.branch == "main"

    def test_healing_event_falls_back_to_session_id(self):
        """Test push healing updates without "id" use "sessionId"."""
        event = event_from_dict(
            Category.HEALING,
            {"sessionId": 501, "healingStatus": "ANALYZING", "confidenceScore": "0.5"},
        )

        assert event.id == "501"
        assert isinstance(event.payload, HealingPayload)
        assert event.payload.session_id == 501
        assert event.payload.confidence_score == 0.5
        assert event.payload.attempt_number == 1
        assert event.resource_key is None
        assert event.branch is None

    def test_security_defaults(self):
        """Test missing security fields get their defaults."""
        event = event_from_dict(Category.SECURITY, {"id": "77"})

        assert isinstance(event.payload, SecurityPayload)
        assert event.payload.severity == "INFO"
        assert event.payload.status == "OPEN"

    @pytest.mark.parametrize("body", [{}, {"id": None}, {"id": {"nested": 1}}, {"id": True}])
    def test_missing_or_invalid_id(self, body):
        """Test bodies without a usable id are rejected."""
        assert event_from_dict(Category.PIPELINE, body) is None

    def test_to_dict_keeps_original_fields(self):
        """Test the wire form carries the raw body plus metadata."""
        received = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        event = event_from_dict(
            Category.SECURITY,
            {"id": 7, "repoName": "acme/web", "severity": "HIGH"},
            received_at=received,
        )

        data = event.to_dict()

        assert data["id"] == 7
        assert data["severity"] == "HIGH"
        assert data["category"] == "security"
        assert data["resourceKey"] == "acme/web"
        assert data["receivedAt"] == "2026-01-02T03:04:05+00:00"

    def test_raw_is_ignored_for_equality(self):
        """Test events compare on decoded fields, not the raw body."""
        received = datetime.now(timezone.utc)
        a = event_from_dict(Category.PIPELINE, {"id": 1, "extra": "a"}, received_at=received)
        b = event_from_dict(Category.PIPELINE, {"id": 1, "extra": "b"}, received_at=received)

        assert a == b


class TestFixPlan:
    """Tests for fix plan decoding."""

    def test_none_gives_empty_plan(self):
        """Test a missing plan decodes to an empty one."""
        plan = FixPlan.from_dict(None)

        assert plan.file_changes == []
        assert plan.confidence_score == 0.0

    def test_confidence_clamped(self):
        """Test confidence is clamped into 0..1."""
        assert FixPlan.from_dict({"confidenceScore": 1.7}).confidence_score == 1.0
        assert FixPlan.from_dict({"confidenceScore": -2}).confidence_score == 0.0
        assert FixPlan.from_dict({"confidenceScore": "n/a"}).confidence_score == 0.0

    def test_file_changes_key(self):
        """Test the dashboard "fileChanges"/"action" shape."""
        plan = FixPlan.from_dict(
            {
                "fileChanges": [
                    {"filePath": "Dockerfile", "action": "CREATE", "newContent": "FROM x"},
                    "junk",
                ]
            }
        )

        assert plan.file_changes == [
            FileChange(file_path="Dockerfile", action=FileAction.CREATE, new_content="FROM x")
        ]

    def test_unknown_action_is_modify(self):
        """Test an unrecognised action falls back to MODIFY."""
        change = FileChange.from_dict({"filePath": "a.py", "action": "RENAME"})

        assert change.action is FileAction.MODIFY


class TestStats:
    """Tests for dashboard and knowledge base stats."""

    def test_dashboard_stats_defaults(self):
        """Test missing or invalid counters become zero."""
        stats = DashboardStats.from_dict({"totalPipelines": "5", "failedPipelines": "x"})

        assert stats.total_pipelines == 5
        assert stats.failed_pipelines == 0
        assert stats.average_mttr == 0.0

    def test_fast_path_rate(self):
        """Test the share of patterns with at least one fix, rounded."""
        kb = KnowledgeBaseStats.from_dict(
            {"totalPatterns": 3},
            [
                {"errorSignature": "a", "fixesAvailable": 1},
                {"errorSignature": "b", "fixesAvailable": 0},
                {"errorSignature": "c", "fixesAvailable": 2},
            ],
        )

        assert kb.fast_path_rate == 67

    def test_fast_path_rate_without_patterns(self):
        """Test the rate is zero when there are no patterns."""
        assert KnowledgeBaseStats.from_dict({}).fast_path_rate == 0

    def test_top_patterns_and_breakdown(self):
        """Test top patterns are ordered by hits and counted per failure type."""
        patterns = [
            {"errorSignature": f"sig-{i}", "failureType": "TEST" if i % 2 else "BUILD", "hitCount": i}
            for i in range(12)
        ]
        kb = KnowledgeBaseStats.from_dict({"totalPatterns": 12}, patterns)

        top = kb.top_patterns()

        assert len(top) == 10
        assert top[0].hit_count == 11
        assert kb.breakdown() == {"BUILD": 6, "TEST": 6}

    def test_security_stats_global(self):
        """Test global security stats default to "ALL" with every severity counted."""
        stats = SecurityStats.from_dict({"openTotal": 2, "openBySeverity": {"MEDIUM": 2}})

        assert stats.repo == "ALL"
        assert stats.open_by_severity["MEDIUM"] == 2
        assert stats.critical_open == 0
        assert list(stats.open_by_severity) == ["CRITICAL", "HIGH", "MEDIUM", "LOW", "INFO"]
