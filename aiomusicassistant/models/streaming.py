"""Streaming information returned by the server.

These models describe the experimental stream lookup commands
(``music/get_stream_url`` and ``player_queues/get_resonate_stream``). Their
wire shape is provisional and may change with the server.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from mashumaro.config import BaseConfig
from mashumaro.mixins.orjson import DataClassORJSONMixin

from .types import StreamProtocol

LOSSLESS_CODECS = frozenset({"flac", "alac", "wav", "aiff"})


@dataclass
class AudioFormat(DataClassORJSONMixin):
    """Audio format of a stream."""

    codec: str
    sample_rate: int | None = None
    bit_depth: int | None = None
    bitrate: int | None = None
    """Bitrate in kbps."""
    channels: int | None = None

    class Config(BaseConfig):
        """Config for parsing json messages."""

        omit_none = True

    @property
    def is_lossless(self) -> bool:
        """Return True if the codec is lossless."""
        return self.codec.lower() in LOSSLESS_CODECS


@dataclass
class StreamingInfo(DataClassORJSONMixin):
    """Everything needed to start streaming a media item or queue."""

    url: str
    protocol: StreamProtocol
    format: AudioFormat
    media_item_id: str | None = None
    queue_id: str | None = None
    duration: float | None = None
    """Duration in seconds."""
    metadata: dict[str, Any] | None = None
    supports_seek: bool = True
    is_live: bool = False

    class Config(BaseConfig):
        """Config for parsing json messages."""

        omit_none = True

    def __post_init__(self) -> None:
        """Validate fields the decoder passes through unchecked."""
        if not isinstance(self.url, str):
            raise TypeError(f"url must be a string, got {type(self.url).__name__}")
