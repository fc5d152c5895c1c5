"""Diff and fix-plan data models."""

from dataclasses import dataclass, field
from enum import Enum


class DiffType(str, Enum):
    """Kind of a single diff line."""

    ADDED = "added"
    REMOVED = "removed"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class DiffLine:
    """One line of a line-level edit script."""

    type: DiffType
    content: str
    old_line_num: int | None = None  # set for removed/unchanged
    new_line_num: int | None = None  # set for added/unchanged


@dataclass(frozen=True)
class DiffSummary:
    """Added/removed counts shown in a diff header."""

    added: int
    removed: int


class FileAction(str, Enum):
    """What a fix does to a file."""

    MODIFY = "MODIFY"
    CREATE = "CREATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class FileChange:
    """A single file edit proposed by a fix plan."""

    file_path: str
    action: FileAction
    new_content: str = ""
    old_content: str | None = None
    reason: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "FileChange":
        # Backend DTO says "changeType", the dashboard API says "action"
        raw_action = str(data.get("action") or data.get("changeType") or "MODIFY")
        try:
            action = FileAction(raw_action.upper())
        except ValueError:
            action = FileAction.MODIFY
        return cls(
            file_path=str(data.get("filePath") or ""),
            action=action,
            new_content=data.get("newContent") or "",
            old_content=data.get("oldContent"),
            reason=data.get("reason"),
        )


@dataclass(frozen=True)
class FixPlan:
    """AI-generated fix plan for a healing session."""

    failure_summary: str = ""
    root_cause: str = ""
    fix_explanation: str = ""
    fix_type: str = ""
    confidence_score: float = 0.0
    file_changes: list[FileChange] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict | None) -> "FixPlan":
        """Build a plan, defaulting every missing field. ``None`` gives an empty plan."""
        if not data:
            return cls()
        changes = data.get("fileChanges")
        if changes is None:
            changes = data.get("filesToModify")
        try:
            confidence = float(data.get("confidenceScore") or 0.0)
        except (TypeError, ValueError):
            confidence = 0.0
        return cls(
            failure_summary=data.get("failureSummary") or "",
            root_cause=data.get("rootCause") or "",
            fix_explanation=data.get("fixExplanation") or "",
            fix_type=data.get("fixType") or "",
            confidence_score=min(max(confidence, 0.0), 1.0),
            file_changes=[
                FileChange.from_dict(c) for c in (changes or []) if isinstance(c, dict)
            ],
        )
