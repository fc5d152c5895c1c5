"""Line-level diff engine for rendering proposed fixes.

The edit script is derived from a longest-common-subsequence table over whole
lines, compared with exact string equality. Building the table costs
O(m * n) time and memory for texts of m and n lines, so this engine is meant
for source files of a few thousand lines at most; very large files should not
be passed to it.
"""

from typing import Iterable

from ..models import DiffLine, DiffSummary, DiffType, FileAction, FileChange


def _lcs_table(old_lines: list[str], new_lines: list[str]) -> list[list[int]]:
    m, n = len(old_lines), len(new_lines)
    dp = [[0] * (n + 1) for _ in range(m + 1)]
    for i in range(1, m + 1):
        old_line = old_lines[i - 1]
        row, prev = dp[i], dp[i - 1]
        for j in range(1, n + 1):
            if old_line == new_lines[j - 1]:
                row[j] = prev[j - 1] + 1
            else:
                row[j] = max(prev[j], row[j - 1])
    return dp


def compute_diff(old_text: str, new_text: str) -> list[DiffLine]:
    """
    Compute a minimal line-level edit script turning old_text into new_text.

    When removing and adding score the same in the table, the added line is
    emitted first while backtracking, which places removals before additions
    in the final script. Keep this order stable: rendered diffs depend on it.

    Args:
        old_text: Original file content.
        new_text: Proposed file content.

    Returns:
        DiffLine sequence with 1-based old/new line numbers.
    """
    old_lines = old_text.split("\n")
    new_lines = new_text.split("\n")
    dp = _lcs_table(old_lines, new_lines)

    # Backtrack from the bottom-right corner, collecting ops in reverse
    ops: list[tuple[DiffType, str]] = []
    i, j = len(old_lines), len(new_lines)
    while i > 0 or j > 0:
        if i > 0 and j > 0 and old_lines[i - 1] == new_lines[j - 1]:
            ops.append((DiffType.UNCHANGED, old_lines[i - 1]))
            i -= 1
            j -= 1
        elif j > 0 and (i == 0 or dp[i][j - 1] >= dp[i - 1][j]):
            ops.append((DiffType.ADDED, new_lines[j - 1]))
            j -= 1
        else:
            ops.append((DiffType.REMOVED, old_lines[i - 1]))
            i -= 1
    ops.reverse()

    result: list[DiffLine] = []
    old_num = new_num = 0
    for op, content in ops:
        if op is DiffType.UNCHANGED:
            old_num += 1
            new_num += 1
            result.append(DiffLine(op, content, old_num, new_num))
        elif op is DiffType.REMOVED:
            old_num += 1
            result.append(DiffLine(op, content, old_line_num=old_num))
        else:
            new_num += 1
            result.append(DiffLine(op, content, new_line_num=new_num))
    return result


def diff_file_change(change: FileChange) -> list[DiffLine]:
    """Diff a fix-plan file change. A missing old side diffs from the empty text."""
    old_text = change.old_content or ""
    new_text = "" if change.action is FileAction.DELETE else change.new_content
    if change.action is FileAction.CREATE:
        old_text = ""
    return compute_diff(old_text, new_text)


def summarize(lines: Iterable[DiffLine]) -> DiffSummary:
    added = removed = 0
    for line in lines:
        if line.type is DiffType.ADDED:
            added += 1
        elif line.type is DiffType.REMOVED:
            removed += 1
    return DiffSummary(added=added, removed=removed)


def apply_script(lines: Iterable[DiffLine]) -> str:
    """Rebuild the new-side text from an edit script."""
    return "\n".join(
        line.content for line in lines if line.type is not DiffType.REMOVED
    )
