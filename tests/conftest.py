"""Test fixtures for aiomusicassistant tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any

import pytest

from aiomusicassistant.client import ConnectionState, MusicAssistantClient
from aiomusicassistant.client.connection import MessageHandler, StateListener
from aiomusicassistant.errors import NotConnected
from aiomusicassistant.models.messages import (
    Command,
    ErrorResponseMessage,
    EventMessage,
    ResultMessage,
    ServerInfo,
)

DEFAULT_SERVER_INFO = ServerInfo(
    server_version="2.6.0",
    schema_version=27,
    server_id="test-server",
    capabilities=["resonate"],
    base_url="http://ma.local:8095",
)


class FakeConnection:
    """In-memory stand-in for WebSocketConnection.

    Records every command sent and lets tests inject inbound messages.
    """

    def __init__(
        self,
        host: str = "ma.local",
        port: int = 8095,
        server_info: ServerInfo | None = DEFAULT_SERVER_INFO,
        *,
        connected: bool = True,
    ) -> None:
        self.host = host
        self.port = port
        self._server_info = server_info
        self.state = (
            ConnectionState.connected(server_info)
            if connected and server_info is not None
            else ConnectionState.disconnected()
        )
        self.sent: list[Command] = []
        self.outbox: asyncio.Queue[Command] = asyncio.Queue()
        self.send_error: Exception | None = None
        self.connect_calls = 0
        self.disconnect_calls = 0
        self._handler: MessageHandler | None = None
        self._listeners: list[StateListener] = []

    @property
    def server_info(self) -> ServerInfo | None:
        return self.state.server_info

    def set_message_handler(self, handler: MessageHandler | None) -> None:
        self._handler = handler

    def add_state_listener(self, callback: StateListener) -> Callable[[], None]:
        self._listeners.append(callback)
        return lambda: self._listeners.remove(callback)

    def set_state(self, state: ConnectionState) -> None:
        self.state = state
        for callback in list(self._listeners):
            callback(state)

    async def connect(self) -> None:
        self.connect_calls += 1
        assert self._server_info is not None
        self.set_state(ConnectionState.connected(self._server_info))

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.set_state(ConnectionState.disconnected())

    async def send(self, command: Command) -> None:
        if not self.state.is_connected:
            raise NotConnected
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(command)
        self.outbox.put_nowait(command)

    async def next_command(self, timeout: float = 1.0) -> Command:
        """Wait for the next command written by the client."""
        return await asyncio.wait_for(self.outbox.get(), timeout)

    async def deliver(self, message: Any) -> None:
        assert self._handler is not None
        result = self._handler(message)
        if asyncio.iscoroutine(result):
            await result

    async def simulate_result(self, message_id: int, result: Any = None) -> None:
        await self.deliver(ResultMessage(message_id=message_id, result=result))

    async def simulate_error(
        self, message_id: int, error: str, error_code: int | None = None
    ) -> None:
        await self.deliver(
            ErrorResponseMessage(message_id=message_id, error=error, error_code=error_code)
        )

    async def simulate_event(
        self, event: str, object_id: str | None = None, data: Any = None
    ) -> None:
        await self.deliver(EventMessage(event=event, object_id=object_id, data=data))

    async def answer(
        self, coro: Coroutine[Any, Any, Any], result: Any = None
    ) -> tuple[Any, Command]:
        """Run coro, answer the command it sends with result and return both."""
        task = asyncio.create_task(coro)
        command = await self.next_command()
        await self.simulate_result(command.message_id, result)
        return await task, command


class FakeRenderer:
    """Renderer recording every call it receives."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.url: str | None = None
        self.playing = False
        self.volume = 1.0
        self.muted = False
        self._position = 0.0

    def load(self, url: str) -> None:
        self.calls.append(("load", url))
        self.url = url
        self.playing = False
        self._position = 0.0

    def play(self) -> None:
        self.calls.append(("play",))
        self.playing = self.url is not None

    def pause(self) -> None:
        self.calls.append(("pause",))
        self.playing = False

    def stop(self) -> None:
        self.calls.append(("stop",))
        self.url = None
        self.playing = False

    def set_volume(self, level: float) -> None:
        self.calls.append(("set_volume", level))
        self.volume = level

    def set_muted(self, muted: bool) -> None:
        self.calls.append(("set_muted", muted))
        self.muted = muted

    async def seek(self, position: float) -> bool:
        self.calls.append(("seek", position))
        self._position = position
        return self.url is not None

    def position(self) -> float:
        return self._position

    def duration(self) -> float | None:
        return None

    def rate(self) -> float:
        return 1.0 if self.playing else 0.0

    def names(self) -> list[str]:
        """Return the names of the recorded calls in order."""
        return [call[0] for call in self.calls]


@pytest.fixture
def connection() -> FakeConnection:
    """Return a connected fake connection."""
    return FakeConnection()


@pytest.fixture
def client(connection: FakeConnection) -> MusicAssistantClient:
    """Return a client wired to the fake connection."""
    return MusicAssistantClient(connection=connection)  # type: ignore[arg-type]


@pytest.fixture
def renderer() -> FakeRenderer:
    """Return a recording renderer."""
    return FakeRenderer()
