"""Construction of stream URLs served by the Music Assistant web server.

Stream URLs never travel over the WebSocket; they are built on the client
and resolved against the server base URL.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

from .types import StreamFormat


def join_url(base_url: str, path: str) -> str:
    """Append a relative path to a base URL with exactly one separator."""
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def _encode(value: str) -> str:
    # Only RFC 3986 unreserved characters stay literal
    return quote(value, safe="")


@dataclass(frozen=True, slots=True)
class StreamURL:
    """A fully resolved stream URL."""

    url: str

    def __str__(self) -> str:
        """Return the URL."""
        return self.url

    @classmethod
    def from_media_path(cls, base_url: str, media_path: str) -> StreamURL:
        """Resolve a media path (as sent in PLAY_MEDIA) against the base URL."""
        return cls(join_url(base_url, media_path))

    @classmethod
    def queue_stream(
        cls,
        base_url: str,
        session_id: str,
        queue_id: str,
        queue_item_id: str,
        stream_format: StreamFormat,
        *,
        flow_mode: bool = True,
    ) -> StreamURL:
        """Build the URL of a queue stream.

        Flow mode streams the queue gaplessly; otherwise a single item is
        streamed.
        """
        mode = "flow" if flow_mode else "single"
        path = f"{mode}/{session_id}/{queue_id}/{queue_item_id}.{stream_format.value}"
        return cls.from_media_path(base_url, path)

    @classmethod
    def preview(cls, base_url: str, item_id: str, provider: str) -> StreamURL:
        """Build the URL of a preview clip.

        The server expects the item id to be percent-encoded twice.
        """
        item = _encode(_encode(item_id))
        return cls(join_url(base_url, f"preview?item_id={item}&provider={_encode(provider)}"))

    @classmethod
    def announcement(
        cls,
        base_url: str,
        player_id: str,
        stream_format: StreamFormat,
        *,
        pre_announce: bool = False,
    ) -> StreamURL:
        """Build the URL of an announcement for a player."""
        path = f"announcement/{player_id}.{stream_format.value}"
        if pre_announce:
            path += "?pre_announce=true"
        return cls.from_media_path(base_url, path)

    @classmethod
    def plugin_source(
        cls,
        base_url: str,
        plugin_source: str,
        player_id: str,
        stream_format: StreamFormat,
    ) -> StreamURL:
        """Build the URL of a plugin source stream for a player."""
        path = f"pluginsource/{plugin_source}/{player_id}.{stream_format.value}"
        return cls.from_media_path(base_url, path)
