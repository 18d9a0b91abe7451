"""Tests for MusicAssistantClient."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import pytest

from aiomusicassistant.client import ConnectionState, MusicAssistantClient
from aiomusicassistant.errors import (
    CommandTimeout,
    ConnectionFailed,
    DecodingFailed,
    InvalidResponse,
    NotConnected,
    ServerError,
)
from aiomusicassistant.models.events import PlayerUpdateEvent
from aiomusicassistant.models.messages import ServerInfo
from aiomusicassistant.models.player import BuiltinPlayerState
from aiomusicassistant.models.types import (
    QueueOption,
    RepeatMode,
    StreamFormat,
    StreamProtocol,
)

if TYPE_CHECKING:
    from conftest import FakeConnection


class TestCommandCorrelation:
    """Tests for matching responses to commands."""

    @pytest.mark.asyncio
    async def test_message_ids_increase_from_one(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        """Each command gets the next message id."""
        tasks = [asyncio.create_task(client.send_command("players/all")) for _ in range(3)]
        commands = [await connection.next_command() for _ in range(3)]
        assert [c.message_id for c in commands] == [1, 2, 3]

        for command in commands:
            await connection.simulate_result(command.message_id, [])
        await asyncio.gather(*tasks)

    @pytest.mark.asyncio
    async def test_responses_resolve_out_of_order(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        """Responses are matched by id, not by arrival order."""
        first = asyncio.create_task(client.send_command("players/all"))
        second = asyncio.create_task(client.send_command("player_queues/all"))
        cmd1 = await connection.next_command()
        cmd2 = await connection.next_command()

        await connection.simulate_result(cmd2.message_id, "queues")
        assert await second == "queues"
        assert not first.done()

        await connection.simulate_result(cmd1.message_id, "players")
        assert await first == "players"
        assert client.pending_count == 0

    @pytest.mark.asyncio
    async def test_null_result_is_returned_as_none(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        """A null result completes the command with None."""
        result, _ = await connection.answer(client.send_command("players/cmd/play"), None)
        assert result is None

    @pytest.mark.asyncio
    async def test_args_are_sent_with_command(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        """The command carries its name and args."""
        _, command = await connection.answer(
            client.send_command("players/get", {"player_id": "abc"}), {}
        )
        assert command.command == "players/get"
        assert command.args == {"player_id": "abc"}

    @pytest.mark.asyncio
    async def test_command_without_args_omits_args(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        """A command without args serializes without the args key."""
        _, command = await connection.answer(client.send_command("players/all"), [])
        assert command.to_dict() == {"message_id": 1, "command": "players/all"}

    @pytest.mark.asyncio
    async def test_server_error_raised(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        """An error response fails the command with ServerError."""
        task = asyncio.create_task(client.send_command("players/get", {"player_id": "x"}))
        command = await connection.next_command()
        await connection.simulate_error(command.message_id, "Player not found", 404)

        with pytest.raises(ServerError) as exc_info:
            await task
        assert exc_info.value.code == 404
        assert exc_info.value.message == "Player not found"
        assert str(exc_info.value) == "Server error 404: Player not found"
        assert client.pending_count == 0

    @pytest.mark.asyncio
    async def test_timeout_removes_pending(self, connection: FakeConnection) -> None:
        """A command without response times out and is forgotten."""
        client = MusicAssistantClient(connection=connection, command_timeout=0.05)  # type: ignore[arg-type]

        with pytest.raises(CommandTimeout) as exc_info:
            await client.send_command("players/all")
        assert exc_info.value.message_id == 1
        assert client.pending_count == 0

        # A late response is ignored
        await connection.simulate_result(1, [])
        assert client.pending_count == 0

    @pytest.mark.asyncio
    async def test_unknown_response_ignored(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        """Responses for unknown ids are dropped."""
        await connection.simulate_result(999, "nobody asked")
        await connection.simulate_error(998, "nobody asked")
        assert client.pending_count == 0

    @pytest.mark.asyncio
    async def test_not_connected(self, connection: FakeConnection) -> None:
        """Commands fail immediately without a connection."""
        connection.state = connection.state.disconnected()
        client = MusicAssistantClient(connection=connection)  # type: ignore[arg-type]

        with pytest.raises(NotConnected):
            await client.send_command("players/all")
        assert client.pending_count == 0

    @pytest.mark.asyncio
    async def test_write_failure(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        """A failed write fails the command and leaves nothing pending."""
        connection.send_error = ConnectionFailed(OSError("broken pipe"))

        with pytest.raises(ConnectionFailed):
            await client.send_command("players/all")
        assert client.pending_count == 0

    @pytest.mark.asyncio
    async def test_disconnect_fails_pending(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        """Disconnect fails every waiting command with NotConnected."""
        tasks = [asyncio.create_task(client.send_command("players/all")) for _ in range(3)]
        for _ in range(3):
            await connection.next_command()
        assert client.pending_count == 3

        await client.disconnect()

        results = await asyncio.gather(*tasks, return_exceptions=True)
        assert all(isinstance(r, NotConnected) for r in results)
        assert client.pending_count == 0
        assert connection.disconnect_calls == 1

    @pytest.mark.asyncio
    async def test_no_timeout_after_disconnect(
        self, connection: FakeConnection, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Timeout timers of failed commands are cancelled on disconnect."""
        client = MusicAssistantClient(connection=connection, command_timeout=0.05)  # type: ignore[arg-type]
        tasks = [asyncio.create_task(client.send_command("players/all")) for _ in range(2)]
        for _ in range(2):
            await connection.next_command()

        await client.disconnect()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        with caplog.at_level(logging.WARNING, logger="aiomusicassistant.client.client"):
            await asyncio.sleep(0.15)

        assert all(isinstance(r, NotConnected) for r in results)
        assert "timed out" not in caplog.text
        assert client.pending_count == 0

    @pytest.mark.asyncio
    async def test_events_are_published(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        """Events reach the event publisher."""
        received: list[PlayerUpdateEvent] = []
        client.events.player_updates.subscribe(received.append)

        await connection.simulate_event("player_updated", "kitchen", {"state": "playing"})

        assert received == [PlayerUpdateEvent("kitchen", {"state": "playing"})]


class TestConnection:
    """Tests for the connection surface of the client."""

    def test_client_initialization(self) -> None:
        """Test client initialization."""
        client = MusicAssistantClient("192.168.1.10")
        assert client.host == "192.168.1.10"
        assert client.port == 8095
        assert client.is_connected is False
        assert client.server_info is None

    @pytest.mark.asyncio
    async def test_context_manager(self, connection: FakeConnection) -> None:
        """The async context manager connects and disconnects."""
        connection.state = connection.state.disconnected()
        client = MusicAssistantClient(connection=connection)  # type: ignore[arg-type]

        async with client as entered:
            assert entered is client
            assert client.is_connected
            assert client.server_info is not None
        assert connection.connect_calls == 1
        assert connection.disconnect_calls == 1
        assert not client.is_connected

    def test_connection_listener(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        """Connection listeners observe state changes until removed."""
        seen = []
        remove = client.add_connection_listener(seen.append)
        connection.set_state(connection.state.disconnected())
        remove()
        connection.set_state(connection.state.connecting())
        assert [s.status.value for s in seen] == ["disconnected"]


class TestCommands:
    """Tests for the typed command methods."""

    @pytest.mark.asyncio
    async def test_player_commands(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        """Player commands use the players/cmd namespace."""
        for name in ("play", "pause", "stop", "next", "previous", "ungroup"):
            _, command = await connection.answer(getattr(client, name)("kitchen"))
            assert command.command == f"players/cmd/{name}"
            assert command.args == {"player_id": "kitchen"}

    @pytest.mark.asyncio
    async def test_set_volume(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        _, command = await connection.answer(client.set_volume("kitchen", 42))
        assert command.command == "players/cmd/volume_set"
        assert command.args == {"player_id": "kitchen", "volume_level": 42}

    @pytest.mark.asyncio
    async def test_group_and_seek(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        _, command = await connection.answer(client.group("kitchen", "living"))
        assert command.args == {"player_id": "kitchen", "target_player": "living"}
        _, command = await connection.answer(client.seek("kitchen", 12.5))
        assert command.command == "players/cmd/seek"
        assert command.args == {"player_id": "kitchen", "position": 12.5}

    @pytest.mark.asyncio
    async def test_search(self, client: MusicAssistantClient, connection: FakeConnection) -> None:
        result, command = await connection.answer(client.search("queen"), {"tracks": []})
        assert result == {"tracks": []}
        assert command.command == "music/search"
        assert command.args == {"search_query": "queen", "limit": 25}

    @pytest.mark.asyncio
    async def test_queue_commands(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        _, command = await connection.answer(client.get_queue_items("q1", limit=10, offset=20))
        assert command.command == "player_queues/items"
        assert command.args == {"queue_id": "q1", "limit": 10, "offset": 20}

        _, command = await connection.answer(
            client.play_media("q1", "library://track/1", QueueOption.ADD)
        )
        assert command.command == "player_queues/play_media"
        assert command.args == {
            "queue_id": "q1",
            "media": "library://track/1",
            "option": "add",
            "radio_mode": False,
        }

        _, command = await connection.answer(client.shuffle("q1", True))
        assert command.args == {"queue_id": "q1", "shuffle_enabled": True}

        _, command = await connection.answer(client.set_repeat("q1", RepeatMode.ALL))
        assert command.args == {"queue_id": "q1", "repeat_mode": "all"}

        _, command = await connection.answer(client.clear_queue("q1"))
        assert command.command == "player_queues/clear"

    @pytest.mark.asyncio
    async def test_register_builtin_player(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        _, command = await connection.answer(client.register_builtin_player("Kitchen"))
        assert command.command == "builtin_player/register"
        assert command.args == {"player_name": "Kitchen"}

        _, command = await connection.answer(client.register_builtin_player("Kitchen", "ma_1"))
        assert command.args == {"player_name": "Kitchen", "player_id": "ma_1"}

    @pytest.mark.asyncio
    async def test_update_builtin_player_state(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        state = BuiltinPlayerState(
            powered=True, playing=True, paused=False, position=3.0, volume=40.0, muted=False
        )
        accepted, command = await connection.answer(
            client.update_builtin_player_state("ma_1", state), True
        )
        assert accepted is True
        assert command.command == "builtin_player/update_state"
        assert command.args == {
            "player_id": "ma_1",
            "state": {
                "powered": True,
                "playing": True,
                "paused": False,
                "position": 3.0,
                "volume": 40.0,
                "muted": False,
            },
        }

        accepted, _ = await connection.answer(
            client.update_builtin_player_state("ma_1", state), None
        )
        assert accepted is False


class TestStreaming:
    """Tests for streaming lookups and URL construction."""

    def test_supports_resonate_protocol(self, client: MusicAssistantClient) -> None:
        assert client.supports_resonate_protocol() is True

    def test_no_resonate_without_capability(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        connection.state = ConnectionState.connected(ServerInfo(server_version="2.5.0"))
        assert client.supports_resonate_protocol() is False

    @pytest.mark.asyncio
    async def test_get_streaming_info(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        info, command = await connection.answer(
            client.get_streaming_info("track-1"),
            {
                "url": "http://ma.local:8097/stream/track-1",
                "protocol": "resonate",
                "format": {"codec": "flac", "sample_rate": 48000, "bit_depth": 24},
                "duration": 215.0,
            },
        )
        assert command.command == "music/get_stream_url"
        assert command.args == {"media_item_id": "track-1", "preferred_protocol": "resonate"}
        assert info is not None
        assert info.protocol is StreamProtocol.RESONATE
        assert info.format.is_lossless
        assert info.duration == 215.0
        assert info.supports_seek is True

    @pytest.mark.asyncio
    async def test_get_streaming_info_null(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        info, _ = await connection.answer(client.get_streaming_info("track-1"), None)
        assert info is None

    @pytest.mark.asyncio
    async def test_get_streaming_info_not_an_object(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        with pytest.raises(InvalidResponse):
            await connection.answer(client.get_streaming_info("track-1"), "nope")

    @pytest.mark.asyncio
    async def test_get_streaming_info_missing_field(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        with pytest.raises(DecodingFailed):
            await connection.answer(
                client.get_streaming_info("track-1"),
                {"protocol": "http", "format": {"codec": "mp3"}},
            )

    @pytest.mark.asyncio
    async def test_get_resonate_stream(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        info, command = await connection.answer(
            client.get_resonate_stream("q1"),
            {
                "url": "resonate://ma.local/q1",
                "protocol": "resonate",
                "format": {"codec": "pcm"},
                "queue_id": "q1",
                "is_live": True,
            },
        )
        assert command.command == "player_queues/get_resonate_stream"
        assert command.args == {"queue_id": "q1"}
        assert info is not None
        assert info.is_live is True
        assert info.queue_id == "q1"

    def test_base_url_from_server_info(self, client: MusicAssistantClient) -> None:
        assert client.base_url() == "http://ma.local:8095"

    def test_base_url_fallback(
        self, client: MusicAssistantClient, connection: FakeConnection
    ) -> None:
        connection.host = "192.168.1.10"
        connection.state = ConnectionState.connected(ServerInfo(server_version="2.5.0"))
        assert client.base_url() == "http://192.168.1.10:8095"

    def test_base_url_not_connected(self) -> None:
        client = MusicAssistantClient("ma.local")
        with pytest.raises(NotConnected):
            client.base_url()
        with pytest.raises(NotConnected):
            client.get_stream_url("/flow/a/b/c.mp3")

    def test_url_construction(self, client: MusicAssistantClient) -> None:
        assert (
            client.get_stream_url("/single/s1/q1/i1.mp3").url
            == "http://ma.local:8095/single/s1/q1/i1.mp3"
        )
        assert (
            client.construct_queue_stream_url("s1", "q1", "i1").url
            == "http://ma.local:8095/flow/s1/q1/i1.flac"
        )
        assert (
            client.construct_announcement_url("kitchen", pre_announce=True).url
            == "http://ma.local:8095/announcement/kitchen.mp3?pre_announce=true"
        )
        assert (
            client.construct_plugin_source_url("spotify", "kitchen", StreamFormat.MP3).url
            == "http://ma.local:8095/pluginsource/spotify/kitchen.mp3"
        )
