"""Music Assistant client: command correlation and the typed command API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from types import TracebackType
from typing import Any, Self

from aiohttp import ClientSession
from mashumaro.exceptions import InvalidFieldValue, MissingField

from aiomusicassistant.errors import (
    CommandTimeout,
    DecodingFailed,
    InvalidResponse,
    NotConnected,
    ServerError,
)
from aiomusicassistant.models.messages import (
    Command,
    ErrorResponseMessage,
    EventMessage,
    InboundMessage,
    ResultMessage,
    ServerInfo,
)
from aiomusicassistant.models.player import BuiltinPlayerState
from aiomusicassistant.models.stream_url import StreamURL
from aiomusicassistant.models.streaming import StreamingInfo
from aiomusicassistant.models.types import QueueOption, RepeatMode, StreamFormat, StreamProtocol

from .connection import DEFAULT_PORT, ConnectionState, StateListener, WebSocketConnection
from .events import EventPublisher

logger = logging.getLogger(__name__)

COMMAND_TIMEOUT = 30.0
RESONATE_CAPABILITY = "resonate"


class MusicAssistantClient:
    """Async client for the Music Assistant WebSocket API.

    Commands may be issued concurrently. Every command gets its own message
    id and timeout; responses are matched by id, so they can arrive in any
    order.

    Example:
        async with MusicAssistantClient("192.168.1.10") as client:
            players = await client.get_players()
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = DEFAULT_PORT,
        *,
        session: ClientSession | None = None,
        connection: WebSocketConnection | None = None,
        command_timeout: float = COMMAND_TIMEOUT,
        reconnect: bool = True,
    ) -> None:
        """Create a client; call connect() before issuing commands.

        A pre-built connection may be passed instead of host and port.
        """
        if connection is None:
            connection = WebSocketConnection(host, port, session=session, reconnect=reconnect)
        self._connection = connection
        self._command_timeout = command_timeout
        self._next_message_id = 1
        self._pending: dict[int, asyncio.Future[Any]] = {}
        self._timeouts: dict[int, asyncio.TimerHandle] = {}
        self.events = EventPublisher()
        self._connection.set_message_handler(self._handle_message)

    # ---------------------------------------------------------------------
    # Connection
    # ---------------------------------------------------------------------
    @property
    def host(self) -> str:
        """Return server host."""
        return self._connection.host

    @property
    def port(self) -> int:
        """Return server port."""
        return self._connection.port

    @property
    def connection_state(self) -> ConnectionState:
        """Return the current connection state."""
        return self._connection.state

    @property
    def is_connected(self) -> bool:
        """Return True if the client currently has an active connection."""
        return self._connection.state.is_connected

    @property
    def server_info(self) -> ServerInfo | None:
        """Return information about the connected server, if available."""
        return self._connection.server_info

    @property
    def pending_count(self) -> int:
        """Return the number of commands awaiting a response."""
        return len(self._pending)

    def add_connection_listener(self, callback: StateListener) -> Callable[[], None]:
        """Register a callback for connection state changes.

        Returns a function to remove the listener.
        """
        return self._connection.add_state_listener(callback)

    async def connect(self) -> None:
        """Connect to the server and wait for the handshake."""
        await self._connection.connect()

    async def disconnect(self) -> None:
        """Disconnect and fail every command still awaiting a response."""
        await self._connection.disconnect()
        for handle in self._timeouts.values():
            handle.cancel()
        self._timeouts.clear()
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(NotConnected())
        if pending:
            logger.debug("Failed %d pending command(s) on disconnect", len(pending))

    # ---------------------------------------------------------------------
    # Command correlation
    # ---------------------------------------------------------------------
    async def send_command(self, command: str, args: dict[str, Any] | None = None) -> Any:
        """Send a command and wait for its result.

        Returns the result payload of the response, which may be None.

        Raises:
            NotConnected: If not connected, or if disconnect() is called
                while waiting.
            ConnectionFailed: If writing the command failed.
            CommandTimeout: If no response arrives in time.
            ServerError: If the server answers with an error.
        """
        message_id = self._next_message_id
        self._next_message_id += 1

        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        self._pending[message_id] = future
        self._timeouts[message_id] = loop.call_later(
            self._command_timeout, self._expire_command, message_id
        )
        try:
            await self._connection.send(Command(message_id, command, args))
            return await future
        finally:
            self._discard_command(message_id)

    def _discard_command(self, message_id: int) -> None:
        if (handle := self._timeouts.pop(message_id, None)) is not None:
            handle.cancel()
        self._pending.pop(message_id, None)

    def _expire_command(self, message_id: int) -> None:
        self._timeouts.pop(message_id, None)
        future = self._pending.pop(message_id, None)
        if future is not None and not future.done():
            logger.warning("Command %d timed out", message_id)
            future.set_exception(CommandTimeout(message_id, self._command_timeout))

    def _take_pending(self, message_id: int) -> asyncio.Future[Any] | None:
        if (handle := self._timeouts.pop(message_id, None)) is not None:
            handle.cancel()
        future = self._pending.pop(message_id, None)
        if future is None or future.done():
            logger.debug("Ignoring response for unknown message id %s", message_id)
            return None
        return future

    async def _handle_message(self, message: InboundMessage) -> None:
        match message:
            case ResultMessage(message_id=message_id, result=result):
                if (future := self._take_pending(message_id)) is not None:
                    future.set_result(result)
            case ErrorResponseMessage(message_id=message_id):
                if (future := self._take_pending(message_id)) is not None:
                    future.set_exception(
                        ServerError(message.error, message.error_code, message.details)
                    )
            case EventMessage():
                await self.events.publish(message)
            case _:
                logger.debug("Unhandled message type: %s", type(message).__name__)

    # ---------------------------------------------------------------------
    # Players
    # ---------------------------------------------------------------------
    async def get_players(self) -> Any:
        """Return all players known to the server."""
        return await self.send_command("players/all")

    async def play(self, player_id: str) -> None:
        """Start or resume playback on a player."""
        await self.send_command("players/cmd/play", {"player_id": player_id})

    async def pause(self, player_id: str) -> None:
        """Pause a player."""
        await self.send_command("players/cmd/pause", {"player_id": player_id})

    async def stop(self, player_id: str) -> None:
        """Stop a player."""
        await self.send_command("players/cmd/stop", {"player_id": player_id})

    async def next(self, player_id: str) -> None:
        """Skip to the next track."""
        await self.send_command("players/cmd/next", {"player_id": player_id})

    async def previous(self, player_id: str) -> None:
        """Go back to the previous track."""
        await self.send_command("players/cmd/previous", {"player_id": player_id})

    async def set_volume(self, player_id: str, volume_level: int) -> None:
        """Set the volume (0-100) of a player."""
        await self.send_command(
            "players/cmd/volume_set",
            {"player_id": player_id, "volume_level": volume_level},
        )

    async def seek(self, player_id: str, position: float) -> None:
        """Seek the current track of a player to position in seconds."""
        await self.send_command(
            "players/cmd/seek",
            {"player_id": player_id, "position": position},
        )

    async def group(self, player_id: str, target_player: str) -> None:
        """Join player_id to the group of target_player."""
        await self.send_command(
            "players/cmd/group",
            {"player_id": player_id, "target_player": target_player},
        )

    async def ungroup(self, player_id: str) -> None:
        """Remove a player from its group."""
        await self.send_command("players/cmd/ungroup", {"player_id": player_id})

    # ---------------------------------------------------------------------
    # Search
    # ---------------------------------------------------------------------
    async def search(self, query: str, limit: int = 25) -> Any:
        """Search the library and providers."""
        return await self.send_command("music/search", {"search_query": query, "limit": limit})

    # ---------------------------------------------------------------------
    # Queues
    # ---------------------------------------------------------------------
    async def get_queue(self, queue_id: str) -> Any:
        """Return a player queue."""
        return await self.send_command("player_queues/get", {"queue_id": queue_id})

    async def get_queue_items(self, queue_id: str, limit: int = 50, offset: int = 0) -> Any:
        """Return a page of queue items."""
        return await self.send_command(
            "player_queues/items",
            {"queue_id": queue_id, "limit": limit, "offset": offset},
        )

    async def play_media(
        self,
        queue_id: str,
        media: str | list[str],
        option: QueueOption = QueueOption.PLAY,
        radio_mode: bool = False,
    ) -> Any:
        """Play one or more media URIs on a queue."""
        return await self.send_command(
            "player_queues/play_media",
            {
                "queue_id": queue_id,
                "media": media,
                "option": option.value,
                "radio_mode": radio_mode,
            },
        )

    async def clear_queue(self, queue_id: str) -> None:
        """Remove all items from a queue."""
        await self.send_command("player_queues/clear", {"queue_id": queue_id})

    async def shuffle(self, queue_id: str, enabled: bool) -> None:
        """Enable or disable shuffle on a queue."""
        await self.send_command(
            "player_queues/shuffle",
            {"queue_id": queue_id, "shuffle_enabled": enabled},
        )

    async def set_repeat(self, queue_id: str, mode: RepeatMode) -> None:
        """Set the repeat mode of a queue."""
        await self.send_command(
            "player_queues/repeat",
            {"queue_id": queue_id, "repeat_mode": mode.value},
        )

    async def seek_queue(self, queue_id: str, position: float) -> None:
        """Seek the current item of a queue to position in seconds."""
        await self.send_command(
            "player_queues/seek",
            {"queue_id": queue_id, "position": position},
        )

    # ---------------------------------------------------------------------
    # Built-in player
    # ---------------------------------------------------------------------
    async def register_builtin_player(self, player_name: str, player_id: str | None = None) -> Any:
        """Register a built-in player, return the server's player object."""
        args: dict[str, Any] = {"player_name": player_name}
        if player_id is not None:
            args["player_id"] = player_id
        return await self.send_command("builtin_player/register", args)

    async def unregister_builtin_player(self, player_id: str) -> Any:
        """Unregister a built-in player."""
        return await self.send_command("builtin_player/unregister", {"player_id": player_id})

    async def update_builtin_player_state(self, player_id: str, state: BuiltinPlayerState) -> bool:
        """Report the state of a built-in player, return True if accepted."""
        result = await self.send_command(
            "builtin_player/update_state",
            {"player_id": player_id, "state": state.to_dict()},
        )
        return result is True

    # ---------------------------------------------------------------------
    # Streaming
    # ---------------------------------------------------------------------
    def supports_resonate_protocol(self) -> bool:
        """Return True if the connected server advertises Resonate streaming."""
        info = self.server_info
        return info is not None and RESONATE_CAPABILITY in (info.capabilities or [])

    async def get_streaming_info(
        self,
        media_item_id: str,
        preferred_protocol: StreamProtocol = StreamProtocol.RESONATE,
    ) -> StreamingInfo | None:
        """Ask the server how to stream a media item.

        Experimental, the command may change with the server.
        """
        result = await self.send_command(
            "music/get_stream_url",
            {"media_item_id": media_item_id, "preferred_protocol": preferred_protocol.value},
        )
        return _decode_streaming_info(result)

    async def get_resonate_stream(self, queue_id: str) -> StreamingInfo | None:
        """Ask the server for the Resonate stream of a queue.

        Experimental, the command may change with the server.
        """
        result = await self.send_command(
            "player_queues/get_resonate_stream", {"queue_id": queue_id}
        )
        return _decode_streaming_info(result)

    def base_url(self) -> str:
        """Return the base URL for stream endpoints.

        Raises:
            NotConnected: If no handshake has completed.
        """
        info = self.server_info
        if info is None:
            raise NotConnected
        if info.base_url:
            return info.base_url
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"http://{host}:{self.port}"

    def get_stream_url(self, media_path: str) -> StreamURL:
        """Resolve a media path from a PLAY_MEDIA command."""
        return StreamURL.from_media_path(self.base_url(), media_path)

    def construct_queue_stream_url(
        self,
        session_id: str,
        queue_id: str,
        queue_item_id: str,
        stream_format: StreamFormat = StreamFormat.FLAC,
        *,
        flow_mode: bool = True,
    ) -> StreamURL:
        """Build the URL of a queue stream."""
        return StreamURL.queue_stream(
            self.base_url(),
            session_id,
            queue_id,
            queue_item_id,
            stream_format,
            flow_mode=flow_mode,
        )

    def construct_preview_url(self, item_id: str, provider: str) -> StreamURL:
        """Build the URL of a preview clip."""
        return StreamURL.preview(self.base_url(), item_id, provider)

    def construct_announcement_url(
        self,
        player_id: str,
        stream_format: StreamFormat = StreamFormat.MP3,
        *,
        pre_announce: bool = False,
    ) -> StreamURL:
        """Build the URL of an announcement."""
        return StreamURL.announcement(
            self.base_url(), player_id, stream_format, pre_announce=pre_announce
        )

    def construct_plugin_source_url(
        self,
        plugin_source: str,
        player_id: str,
        stream_format: StreamFormat = StreamFormat.FLAC,
    ) -> StreamURL:
        """Build the URL of a plugin source stream."""
        return StreamURL.plugin_source(self.base_url(), plugin_source, player_id, stream_format)

    async def __aenter__(self) -> Self:
        """Connect and return this instance."""
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Disconnect when leaving the async context manager."""
        await self.disconnect()


def _decode_streaming_info(result: Any) -> StreamingInfo | None:
    if result is None:
        return None
    if not isinstance(result, dict):
        raise InvalidResponse(f"expected an object, got {type(result).__name__}")
    try:
        return StreamingInfo.from_dict(result)
    except (MissingField, InvalidFieldValue, TypeError, ValueError) as err:
        raise DecodingFailed(err) from err
