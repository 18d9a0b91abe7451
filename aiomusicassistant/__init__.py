"""Music Assistant: async client for the Music Assistant WebSocket API."""

from __future__ import annotations

# Re-export client library for easy import
from aiomusicassistant.client import (
    BuiltinPlayer,
    BuiltinPlayerStatus,
    ConnectionState,
    EventPublisher,
    MusicAssistantClient,
    NullRenderer,
    Renderer,
    WebSocketConnection,
)
from aiomusicassistant.errors import (
    CommandTimeout,
    ConnectionFailed,
    DecodingFailed,
    InvalidResponse,
    MusicAssistantError,
    NotConnected,
    ServerError,
)
from aiomusicassistant.models import ServerInfo, StreamURL

__all__ = [
    "BuiltinPlayer",
    "BuiltinPlayerStatus",
    "CommandTimeout",
    "ConnectionFailed",
    "ConnectionState",
    "DecodingFailed",
    "EventPublisher",
    "InvalidResponse",
    "MusicAssistantClient",
    "MusicAssistantError",
    "NotConnected",
    "NullRenderer",
    "Renderer",
    "ServerError",
    "ServerInfo",
    "StreamURL",
    "WebSocketConnection",
]
