"""SIM module."""

from .sim import SimChannel, demo_script, scripted_channel_factory, server_frame

__all__ = ["SimChannel", "demo_script", "scripted_channel_factory", "server_frame"]
