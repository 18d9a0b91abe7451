"""Built-in player state reported to the server."""

from __future__ import annotations

from dataclasses import dataclass

from mashumaro.mixins.orjson import DataClassORJSONMixin


@dataclass
class BuiltinPlayerState(DataClassORJSONMixin):
    """Snapshot sent with ``builtin_player/update_state``."""

    powered: bool
    playing: bool
    paused: bool
    position: float
    """Playback position in seconds."""
    volume: float
    """Volume range 0-100."""
    muted: bool

    def __post_init__(self) -> None:
        """Validate the snapshot."""
        if self.playing and self.paused:
            raise ValueError("playing and paused are mutually exclusive")
        if not 0 <= self.volume <= 100:
            raise ValueError("volume must be between 0 and 100")
