"""Models for enum types used by the Music Assistant protocol."""

from dataclasses import dataclass
from enum import Enum

from mashumaro.config import BaseConfig
from mashumaro.mixins.orjson import DataClassORJSONMixin


# Base message classes
@dataclass
class ClientMessage(DataClassORJSONMixin):
    """Base class for client messages."""

    class Config(BaseConfig):
        """Config for serializing json messages."""

        omit_none = True


@dataclass
class ServerMessage(DataClassORJSONMixin):
    """Base class for server messages."""


# Enums


class ConnectionStatus(Enum):
    """Lifecycle status of the server connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


class BuiltinPlayerCommand(Enum):
    """Commands the server sends to a built-in player."""

    PLAY_MEDIA = "PLAY_MEDIA"
    PLAY = "PLAY"
    PAUSE = "PAUSE"
    UNPAUSE = "UNPAUSE"
    STOP = "STOP"
    NEXT = "NEXT"
    PREVIOUS = "PREVIOUS"
    SET_VOLUME = "SET_VOLUME"
    MUTE = "MUTE"
    UNMUTE = "UNMUTE"
    POWER_ON = "POWER_ON"
    POWER_OFF = "POWER_OFF"
    TIMEOUT = "TIMEOUT"
    UNKNOWN = "UNKNOWN"
    """Any command this library does not know about."""

    @classmethod
    def _missing_(cls, value: object) -> "BuiltinPlayerCommand":
        if isinstance(value, str):
            for member in cls:
                if member.value == value.upper():
                    return member
        return cls.UNKNOWN


class MediaItemAction(Enum):
    """Library change that triggered a media item event."""

    ADDED = "media_item_added"
    UPDATED = "media_item_updated"
    DELETED = "media_item_deleted"
    PLAYED = "media_item_played"


class MediaType(Enum):
    """Kind of library item."""

    ARTIST = "artist"
    ALBUM = "album"
    TRACK = "track"
    PLAYLIST = "playlist"
    RADIO = "radio"
    AUDIOBOOK = "audiobook"
    PODCAST = "podcast"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> "MediaType":
        return cls.UNKNOWN


class StreamFormat(Enum):
    """Container formats served by the stream endpoints."""

    MP3 = "mp3"
    FLAC = "flac"
    PCM = "pcm"


class StreamProtocol(Enum):
    """Streaming protocols the server can offer."""

    RESONATE = "resonate"
    """Synchronized multi-room streaming."""
    HTTP = "http"
    HTTPS = "https"
    FILE = "file"


class RepeatMode(Enum):
    """Enum for Repeat Modes."""

    OFF = "off"
    ONE = "one"
    ALL = "all"


class QueueOption(Enum):
    """How new media is inserted into a queue."""

    PLAY = "play"
    REPLACE = "replace"
    NEXT = "next"
    REPLACE_NEXT = "replace_next"
    ADD = "add"
