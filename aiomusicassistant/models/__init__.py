"""Models for the Music Assistant WebSocket protocol."""

from __future__ import annotations

__all__ = [
    "AudioFormat",
    "BuiltinPlayerCommand",
    "BuiltinPlayerEvent",
    "BuiltinPlayerState",
    "Command",
    "ConnectionStatus",
    "ErrorResponseMessage",
    "EventMessage",
    "InboundMessage",
    "MediaItemAction",
    "MediaItemEvent",
    "MediaType",
    "PlayerUpdateEvent",
    "QueueOption",
    "QueueUpdateEvent",
    "RepeatMode",
    "ResultMessage",
    "ServerInfo",
    "StreamFormat",
    "StreamProtocol",
    "StreamURL",
    "StreamingInfo",
    "classify_message",
    "classify_payload",
    "events",
    "messages",
    "player",
    "stream_url",
    "streaming",
    "types",
]

from . import events, messages, player, stream_url, streaming, types
from .events import BuiltinPlayerEvent, MediaItemEvent, PlayerUpdateEvent, QueueUpdateEvent
from .messages import (
    Command,
    ErrorResponseMessage,
    EventMessage,
    InboundMessage,
    ResultMessage,
    ServerInfo,
    classify_message,
    classify_payload,
)
from .player import BuiltinPlayerState
from .stream_url import StreamURL
from .streaming import AudioFormat, StreamingInfo
from .types import (
    BuiltinPlayerCommand,
    ConnectionStatus,
    MediaItemAction,
    MediaType,
    QueueOption,
    RepeatMode,
    StreamFormat,
    StreamProtocol,
)
