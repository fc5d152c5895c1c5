"""Poller module."""

from .scheduler import IPollScheduler, PollScheduler

__all__ = ["IPollScheduler", "PollScheduler"]
