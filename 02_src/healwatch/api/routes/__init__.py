"""API routes."""

from . import fixes, live

__all__ = ["fixes", "live"]
