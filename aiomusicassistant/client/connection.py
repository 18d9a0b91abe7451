"""WebSocket transport to a Music Assistant server.

Owns the socket, performs the server-info handshake, runs the receive loop
and reconnects with exponential backoff when the connection drops without
disconnect() having been called.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import suppress
from dataclasses import dataclass

from aiohttp import ClientError, ClientSession, ClientWebSocketResponse, WSMsgType

from aiomusicassistant.errors import ConnectionFailed, DecodingFailed, NotConnected
from aiomusicassistant.models.messages import Command, InboundMessage, ServerInfo, classify_message
from aiomusicassistant.models.types import ConnectionStatus

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8095
HANDSHAKE_TIMEOUT = 10.0
RECONNECT_INITIAL_DELAY = 1.0
RECONNECT_MAX_DELAY = 60.0
WS_HEARTBEAT = 30

MessageHandler = Callable[[InboundMessage], Awaitable[None] | None]
StateListener = Callable[["ConnectionState"], None]

_CONNECT_ERRORS = (ClientError, OSError, TimeoutError, DecodingFailed)


@dataclass(frozen=True, slots=True)
class ConnectionState:
    """Current state of the connection, exactly one status at a time."""

    status: ConnectionStatus
    server_info: ServerInfo | None = None
    """Set while connected."""
    attempt: int = 0
    """Reconnect attempt number while reconnecting."""
    delay: float = 0.0
    """Seconds until the next reconnect attempt while reconnecting."""
    error: BaseException | None = None
    """Cause of the failure while failed."""

    @classmethod
    def disconnected(cls) -> ConnectionState:
        """Return the disconnected state."""
        return cls(ConnectionStatus.DISCONNECTED)

    @classmethod
    def connecting(cls) -> ConnectionState:
        """Return the connecting state."""
        return cls(ConnectionStatus.CONNECTING)

    @classmethod
    def connected(cls, server_info: ServerInfo) -> ConnectionState:
        """Return the connected state for a completed handshake."""
        return cls(ConnectionStatus.CONNECTED, server_info=server_info)

    @classmethod
    def reconnecting(cls, attempt: int, delay: float) -> ConnectionState:
        """Return the state of waiting for a reconnect attempt."""
        return cls(ConnectionStatus.RECONNECTING, attempt=attempt, delay=delay)

    @classmethod
    def failed(cls, error: BaseException) -> ConnectionState:
        """Return the failed state."""
        return cls(ConnectionStatus.FAILED, error=error)

    @property
    def is_connected(self) -> bool:
        """Return True if connected."""
        return self.status is ConnectionStatus.CONNECTED

    @property
    def is_disconnected(self) -> bool:
        """Return True if disconnected."""
        return self.status is ConnectionStatus.DISCONNECTED

    @property
    def is_reconnecting(self) -> bool:
        """Return True if waiting for a reconnect attempt."""
        return self.status is ConnectionStatus.RECONNECTING


def backoff_delay(
    attempt: int,
    initial: float = RECONNECT_INITIAL_DELAY,
    maximum: float = RECONNECT_MAX_DELAY,
) -> float:
    """Return the wait before reconnect attempt number attempt (1-based).

    The delay doubles per attempt starting at initial and is capped at maximum.
    """
    exponent = min(max(attempt - 1, 0), 32)
    return min(initial * 2**exponent, maximum)


class WebSocketConnection:
    """Connection to a Music Assistant server over a WebSocket."""

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        *,
        session: ClientSession | None = None,
        reconnect: bool = True,
        handshake_timeout: float = HANDSHAKE_TIMEOUT,
        reconnect_initial_delay: float = RECONNECT_INITIAL_DELAY,
        reconnect_max_delay: float = RECONNECT_MAX_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Create a connection; nothing is opened until connect()."""
        self._host = host
        self._port = port
        self._session = session
        self._owns_session = session is None
        self._reconnect = reconnect
        self._handshake_timeout = handshake_timeout
        self._reconnect_initial_delay = reconnect_initial_delay
        self._reconnect_max_delay = reconnect_max_delay
        self._sleep = sleep
        self._ws: ClientWebSocketResponse | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._send_lock = asyncio.Lock()
        self._state = ConnectionState.disconnected()
        self._message_handler: MessageHandler | None = None
        self._state_listeners: list[StateListener] = []
        self._closing = False

    @property
    def host(self) -> str:
        """Return server host."""
        return self._host

    @property
    def port(self) -> int:
        """Return server port."""
        return self._port

    @property
    def url(self) -> str:
        """Return the WebSocket URL of the server."""
        host = f"[{self._host}]" if ":" in self._host else self._host
        return f"ws://{host}:{self._port}/ws"

    @property
    def state(self) -> ConnectionState:
        """Return the current connection state."""
        return self._state

    @property
    def server_info(self) -> ServerInfo | None:
        """Return the server info of the current connection."""
        return self._state.server_info

    def set_message_handler(self, handler: MessageHandler | None) -> None:
        """Set the handler receiving every classified inbound message."""
        self._message_handler = handler

    def add_state_listener(self, callback: StateListener) -> Callable[[], None]:
        """Register a callback for state changes, return a function removing it."""
        self._state_listeners.append(callback)

        def remove() -> None:
            if callback in self._state_listeners:
                self._state_listeners.remove(callback)

        return remove

    async def connect(self) -> None:
        """Open the connection and wait for the server info handshake.

        Does nothing if a connection is already open, being opened or being
        re-established.

        Raises:
            ConnectionFailed: If the socket could not be opened or the
                handshake did not complete.
        """
        if self._state.status in (
            ConnectionStatus.CONNECTING,
            ConnectionStatus.CONNECTED,
            ConnectionStatus.RECONNECTING,
        ):
            logger.debug("Connect ignored, connection is %s", self._state.status.value)
            return
        self._set_state(ConnectionState.connecting())
        try:
            await self._open()
        except _CONNECT_ERRORS as err:
            await self._close_socket()
            self._set_state(ConnectionState.failed(err))
            raise ConnectionFailed(err) from err
        except asyncio.CancelledError:
            await self._close_socket()
            self._set_state(ConnectionState.disconnected())
            raise

    async def disconnect(self) -> None:
        """Close the connection and stop reconnecting."""
        self._closing = True
        try:
            current_task = asyncio.current_task()
            if self._reconnect_task is not None:
                if self._reconnect_task is not current_task:
                    self._reconnect_task.cancel()
                    with suppress(asyncio.CancelledError):
                        await self._reconnect_task
                self._reconnect_task = None
            if self._reader_task is not None:
                if self._reader_task is not current_task:
                    self._reader_task.cancel()
                    with suppress(asyncio.CancelledError):
                        await self._reader_task
                self._reader_task = None
            await self._close_socket()
            if self._owns_session and self._session is not None:
                await self._session.close()
                self._session = None
            if not self._state.is_disconnected:
                logger.info("Disconnected from %s", self.url)
            self._set_state(ConnectionState.disconnected())
        finally:
            self._closing = False

    async def send(self, command: Command) -> None:
        """Write a single command to the socket.

        Raises:
            NotConnected: If the connection is not established.
            ConnectionFailed: If writing to the socket failed.
        """
        if not self._state.is_connected or self._ws is None:
            raise NotConnected
        payload = command.to_json()
        logger.debug("Sending: %s", payload)
        try:
            async with self._send_lock:
                # The socket may have been lost while waiting for the lock
                ws = self._ws
                if ws is None or not self._state.is_connected:
                    raise NotConnected
                await ws.send_str(payload)
        except (ClientError, ConnectionError) as err:
            raise ConnectionFailed(err) from err

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        self._state = state
        for callback in list(self._state_listeners):
            try:
                callback(state)
            except Exception:
                logger.exception("Error in connection state listener %s", callback)

    async def _open(self) -> None:
        if self._session is None:
            self._session = ClientSession()
        logger.info("Connecting to Music Assistant server at %s", self.url)
        self._ws = await self._session.ws_connect(self.url, heartbeat=WS_HEARTBEAT)

        msg = await asyncio.wait_for(self._ws.receive(), timeout=self._handshake_timeout)
        if msg.type not in (WSMsgType.TEXT, WSMsgType.BINARY):
            raise DecodingFailed(ValueError(f"unexpected {msg.type.name} frame during handshake"))
        server_info = classify_message(msg.data)
        if not isinstance(server_info, ServerInfo):
            raise DecodingFailed(ValueError("first message was not server info"))

        logger.info(
            "Connected to Music Assistant %s (schema %s)",
            server_info.server_version,
            server_info.schema_version,
        )
        self._set_state(ConnectionState.connected(server_info))
        self._reader_task = asyncio.create_task(self._reader_loop(self._ws))

    async def _close_socket(self) -> None:
        if self._ws is not None:
            ws, self._ws = self._ws, None
            with suppress(ClientError, OSError):
                await ws.close()

    async def _reader_loop(self, ws: ClientWebSocketResponse) -> None:
        try:
            async for msg in ws:
                if msg.type in (WSMsgType.TEXT, WSMsgType.BINARY):
                    await self._handle_frame(msg.data)
                elif msg.type is WSMsgType.ERROR:
                    logger.error("WebSocket error: %s", ws.exception())
                    break
        except asyncio.CancelledError:  # pragma: no cover - cancellation path
            return
        except Exception:
            logger.exception("WebSocket reader encountered an error")
        if ws is self._ws:
            self._reader_task = None
            await self._connection_lost()

    async def _handle_frame(self, data: str | bytes) -> None:
        message = classify_message(data)
        if message is None:
            return
        if isinstance(message, ServerInfo):
            logger.debug("Ignoring repeated server info")
            return
        if self._message_handler is None:
            return
        try:
            result = self._message_handler(message)
            if asyncio.iscoroutine(result):
                await result
        except Exception:
            logger.exception("Error handling message %s", message)

    async def _connection_lost(self) -> None:
        if self._closing:
            return
        logger.warning("Connection to %s lost", self.url)
        await self._close_socket()
        self._set_state(ConnectionState.disconnected())
        if not self._reconnect:
            return
        if self._reconnect_task is None or self._reconnect_task.done():
            self._reconnect_task = asyncio.create_task(self._reconnect_loop())

    async def _reconnect_loop(self) -> None:
        attempt = 0
        while True:
            attempt += 1
            delay = backoff_delay(attempt, self._reconnect_initial_delay, self._reconnect_max_delay)
            self._set_state(ConnectionState.reconnecting(attempt, delay))
            logger.info("Reconnecting in %.0fs (attempt %d)", delay, attempt)
            await self._sleep(delay)
            self._set_state(ConnectionState.connecting())
            try:
                await self._open()
            except _CONNECT_ERRORS as err:
                logger.debug("Reconnect attempt %d failed: %s", attempt, err)
                await self._close_socket()
                self._set_state(ConnectionState.failed(err))
                continue
            except Exception as err:
                logger.exception("Unexpected error in reconnect attempt %d", attempt)
                await self._close_socket()
                self._set_state(ConnectionState.failed(err))
                continue
            logger.info("Reconnected after %d attempt(s)", attempt)
            return
