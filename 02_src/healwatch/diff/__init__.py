"""Diff module."""

from .engine import apply_script, compute_diff, diff_file_change, summarize

__all__ = ["apply_script", "compute_diff", "diff_file_change", "summarize"]
