"""Error types raised by the Music Assistant client."""

from __future__ import annotations

from typing import Any


class MusicAssistantError(Exception):
    """Base class for all errors raised by this library."""


class NotConnected(MusicAssistantError):
    """The client has no established connection to the server."""

    def __init__(self) -> None:
        """Initialize the error."""
        super().__init__("Not connected to Music Assistant server")


class ConnectionFailed(MusicAssistantError):
    """Opening the connection or completing the handshake failed."""

    def __init__(self, underlying: BaseException) -> None:
        """Initialize the error wrapping the original failure."""
        super().__init__(f"Connection failed: {underlying}")
        self.underlying = underlying


class CommandTimeout(MusicAssistantError):
    """No response arrived for a command within the timeout."""

    def __init__(self, message_id: int, timeout: float = 30.0) -> None:
        """Initialize the error for the given message id."""
        super().__init__(f"Command {message_id} timed out after {timeout:g} seconds")
        self.message_id = message_id
        self.timeout = timeout


class ServerError(MusicAssistantError):
    """The server answered a command with an error response."""

    def __init__(
        self,
        message: str,
        code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the error from the fields of an error response."""
        if code is not None:
            text = f"Server error {code}: {message}"
        else:
            text = f"Server error: {message}"
        super().__init__(text)
        self.message = message
        self.code = code
        self.details = details


class InvalidResponse(MusicAssistantError):
    """A response did not have the expected shape."""

    def __init__(self, reason: str | None = None) -> None:
        """Initialize the error."""
        super().__init__("Received invalid response from server")
        self.reason = reason


class DecodingFailed(MusicAssistantError):
    """A response could not be decoded into the expected model."""

    def __init__(self, underlying: BaseException) -> None:
        """Initialize the error wrapping the decoder failure."""
        super().__init__(f"Failed to decode response: {underlying}")
        self.underlying = underlying
