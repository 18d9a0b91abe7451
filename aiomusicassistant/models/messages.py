"""Wire messages exchanged with a Music Assistant server.

The server speaks JSON over a WebSocket. Messages carry no explicit type tag;
they are told apart by which keys are present:

- the handshake banner has a ``server_version`` key,
- events have an ``event`` key,
- command responses echo the ``message_id`` of the command and carry either
  an ``error`` or a ``result`` key.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import orjson
from mashumaro.exceptions import InvalidFieldValue, MissingField

from .types import ClientMessage, ServerMessage

logger = logging.getLogger(__name__)


# Client -> Server command
@dataclass
class Command(ClientMessage):
    """A command sent to the server."""

    message_id: int
    """Correlates the command with its result or error response."""
    command: str
    """Command path, e.g. ``players/cmd/play``."""
    args: dict[str, Any] | None = None
    """Command arguments, omitted from the message when not set."""


# Server -> Client handshake
@dataclass
class ServerInfo(ServerMessage):
    """Banner the server sends once, right after the connection opens."""

    server_version: str
    schema_version: int | None = None
    min_supported_schema_version: int | None = None
    server_id: str | None = None
    homeassistant_addon: bool | None = None
    capabilities: list[str] | None = None
    """Feature flags, e.g. ``resonate``."""
    base_url: str | None = None
    """Base URL for stream and image endpoints."""
    onboard_done: bool | None = None


# Server -> Client command responses
@dataclass
class ResultMessage(ServerMessage):
    """Successful response to a command."""

    message_id: int
    result: Any = None


@dataclass
class ErrorResponseMessage(ServerMessage):
    """Error response to a command."""

    message_id: int
    error: str
    error_code: int | None = None
    details: dict[str, Any] | None = None
    exception: str | None = None
    stacktrace: str | None = None


# Server -> Client event
@dataclass
class EventMessage(ServerMessage):
    """Event pushed by the server."""

    event: str
    object_id: str | None = None
    data: Any = None


InboundMessage = ServerInfo | ResultMessage | ErrorResponseMessage | EventMessage


def classify_payload(data: Any) -> InboundMessage | None:
    """Turn a decoded JSON object into a typed message.

    Returns None for anything that is not a recognised message. Malformed
    messages are logged and dropped, never raised.
    """
    if not isinstance(data, dict):
        logger.debug("Ignoring non-object message: %r", data)
        return None
    try:
        if "server_version" in data:
            return ServerInfo.from_dict(data)
        if "event" in data:
            return EventMessage.from_dict(data)
        if "message_id" in data:
            if "error" in data:
                return ErrorResponseMessage.from_dict(data)
            if "result" in data:
                return ResultMessage.from_dict(data)
    except (MissingField, InvalidFieldValue, TypeError, ValueError):
        logger.warning("Dropping malformed message: %s", data)
        return None
    logger.debug("Ignoring unknown message: %s", data)
    return None


def classify_message(raw: str | bytes) -> InboundMessage | None:
    """Parse a raw text frame and classify it, see classify_payload()."""
    try:
        data = orjson.loads(raw)
    except orjson.JSONDecodeError:
        logger.warning("Dropping message that is not valid JSON: %.200r", raw)
        return None
    return classify_payload(data)
