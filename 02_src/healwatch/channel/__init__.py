"""Push channel module."""

from .connection import (
    BrokerError,
    ChannelClosed,
    ChannelFactory,
    ConnectionManager,
    HandshakeError,
    HeartbeatTimeout,
    IChannel,
    IConnectionManager,
    WebSocketChannel,
    websocket_factory,
)
from .stomp import Frame, FrameError, encode_frame, negotiate_heartbeat, parse_frame

__all__ = [
    "BrokerError",
    "ChannelClosed",
    "ChannelFactory",
    "ConnectionManager",
    "HandshakeError",
    "HeartbeatTimeout",
    "IChannel",
    "IConnectionManager",
    "WebSocketChannel",
    "websocket_factory",
    "Frame",
    "FrameError",
    "encode_frame",
    "negotiate_heartbeat",
    "parse_frame",
]
