"""Audio renderer interface driven by the built-in player."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class Renderer(Protocol):
    """Something that can load and play an audio URL.

    Implementations bind to whatever media stack the platform offers. All
    methods except seek() must return without blocking the event loop.
    """

    def load(self, url: str) -> None:
        """Replace the current media with the stream at url."""

    def play(self) -> None:
        """Start or resume playback."""

    def pause(self) -> None:
        """Pause playback, keeping the current media."""

    def stop(self) -> None:
        """Stop playback and release the current media."""

    def set_volume(self, level: float) -> None:
        """Set output volume, 0.0 to 1.0."""

    def set_muted(self, muted: bool) -> None:
        """Mute or unmute output."""

    async def seek(self, position: float) -> bool:
        """Seek to position in seconds, return True on success."""

    def position(self) -> float:
        """Return the playback position in seconds."""

    def duration(self) -> float | None:
        """Return the media duration in seconds, if known."""

    def rate(self) -> float:
        """Return the playback rate, greater than 0 while playing."""


class NullRenderer:
    """Renderer that produces no sound but keeps time like a real one.

    Position advances with the event loop clock while playing, which is
    enough for the server to show a live built-in player.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Initialize the renderer."""
        self._loop = loop
        self._url: str | None = None
        self._offset = 0.0
        self._started_at: float | None = None
        self.volume = 1.0
        self.muted = False

    @property
    def url(self) -> str | None:
        """Return the loaded URL."""
        return self._url

    def _now(self) -> float:
        loop = self._loop or asyncio.get_running_loop()
        return loop.time()

    def load(self, url: str) -> None:
        """Load a new URL, resetting the position."""
        logger.info("Loading %s", url)
        self._url = url
        self._offset = 0.0
        self._started_at = None

    def play(self) -> None:
        """Start advancing the position."""
        if self._url is None or self._started_at is not None:
            return
        self._started_at = self._now()

    def pause(self) -> None:
        """Freeze the position."""
        if self._started_at is None:
            return
        self._offset += self._now() - self._started_at
        self._started_at = None

    def stop(self) -> None:
        """Unload the current URL."""
        self._url = None
        self._offset = 0.0
        self._started_at = None

    def set_volume(self, level: float) -> None:
        """Record the volume."""
        self.volume = level

    def set_muted(self, muted: bool) -> None:
        """Record the mute state."""
        self.muted = muted

    async def seek(self, position: float) -> bool:
        """Jump to position."""
        if self._url is None:
            return False
        self._offset = max(0.0, position)
        if self._started_at is not None:
            self._started_at = self._now()
        return True

    def position(self) -> float:
        """Return the current position."""
        if self._started_at is None:
            return self._offset
        return self._offset + self._now() - self._started_at

    def duration(self) -> float | None:
        """Return None, streams have no known duration here."""
        return None

    def rate(self) -> float:
        """Return 1.0 while playing, else 0.0."""
        return 1.0 if self._started_at is not None else 0.0
