"""Public interface for the Music Assistant client package."""

from .audio import NullRenderer, Renderer
from .builtin_player import BuiltinPlayer, BuiltinPlayerStatus
from .client import COMMAND_TIMEOUT, MusicAssistantClient
from .connection import DEFAULT_PORT, ConnectionState, WebSocketConnection, backoff_delay
from .events import EventPublisher, Topic

__all__ = [
    "COMMAND_TIMEOUT",
    "DEFAULT_PORT",
    "BuiltinPlayer",
    "BuiltinPlayerStatus",
    "ConnectionState",
    "EventPublisher",
    "MusicAssistantClient",
    "NullRenderer",
    "Renderer",
    "Topic",
    "WebSocketConnection",
    "backoff_delay",
]
