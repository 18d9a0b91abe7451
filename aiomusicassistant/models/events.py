"""Typed events derived from raw server events."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from mashumaro.mixins.orjson import DataClassORJSONMixin

from .types import BuiltinPlayerCommand, MediaItemAction, MediaType


@dataclass(slots=True)
class PlayerUpdateEvent:
    """State of a player changed."""

    player_id: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class QueueUpdateEvent:
    """A queue or its items changed."""

    queue_id: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class MediaItemEvent:
    """A library item was added, updated, deleted or played."""

    action: MediaItemAction
    item_id: str | None
    media_type: MediaType
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class BuiltinPlayerEvent(DataClassORJSONMixin):
    """Command the server sends to a built-in player."""

    command: BuiltinPlayerCommand
    media_url: str | None = None
    """Stream path relative to the server base URL (PLAY_MEDIA)."""
    volume: float | None = None
    """Target volume 0-100 (SET_VOLUME)."""
    queue_id: str | None = None
    queue_item_id: str | None = None

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        """Accept the legacy ``type`` key in place of ``command``."""
        if "command" not in d and "type" in d:
            d = {**d, "command": d["type"]}
        return d
