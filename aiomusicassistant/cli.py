"""Command-line interface for talking to a Music Assistant server."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, cast

import aioconsole
import orjson
from zeroconf.asyncio import AsyncServiceBrowser, AsyncZeroconf

from aiomusicassistant.client import (
    DEFAULT_PORT,
    BuiltinPlayer,
    ConnectionState,
    MusicAssistantClient,
    NullRenderer,
)
from aiomusicassistant.errors import MusicAssistantError
from aiomusicassistant.models.events import PlayerUpdateEvent
from aiomusicassistant.models.messages import EventMessage
from aiomusicassistant.models.types import ConnectionStatus

if TYPE_CHECKING:
    from zeroconf import ServiceListener

logger = logging.getLogger(__name__)

SERVICE_TYPE = "_mass._tcp.local."
DISCOVERY_TIMEOUT = 10.0
CONTROL_ACTIONS = ("play", "pause", "stop", "next", "previous")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(description="Control a Music Assistant server")
    parser.add_argument(
        "--host",
        default=None,
        help="Server host. If omitted, discover via mDNS.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=DEFAULT_PORT,
        help="Server port",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level to use",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("info", help="Show server information")
    sub.add_parser("players", help="List players")

    search = sub.add_parser("search", help="Search the library")
    search.add_argument("query")
    search.add_argument("--limit", type=int, default=25)

    control = sub.add_parser("control", help="Send a playback command to a player")
    control.add_argument("player_id")
    control.add_argument("action", choices=CONTROL_ACTIONS)

    volume = sub.add_parser("volume", help="Set the volume of a player")
    volume.add_argument("player_id")
    volume.add_argument("level", type=_volume_level)

    queue = sub.add_parser("queue", help="List the items of a queue")
    queue.add_argument("queue_id")
    queue.add_argument("--limit", type=int, default=50)

    sub.add_parser("monitor", help="Print server events until interrupted")

    player = sub.add_parser("player", help="Run a silent built-in player")
    player.add_argument("--name", default="Music Assistant CLI", help="Player name")
    player.add_argument("--player-id", default=None, help="Player id to request")
    return parser.parse_args(argv)


def _volume_level(value: str) -> int:
    level = int(value)
    if not 0 <= level <= 100:
        raise argparse.ArgumentTypeError(f"Invalid volume level: {level}. Must be 0-100.")
    return level


class _ServiceDiscoveryListener:
    """Listens for Music Assistant server advertisements via mDNS."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._first_result: asyncio.Future[tuple[str, int]] = loop.create_future()
        self.tasks: set[asyncio.Task[None]] = set()

    async def wait_for_first(self) -> tuple[str, int]:
        """Wait for the first server to be discovered."""
        return await self._first_result

    async def _process_service_info(
        self, zeroconf: AsyncZeroconf, service_type: str, name: str
    ) -> None:
        info = await zeroconf.async_get_service_info(service_type, name)
        if info is None or info.port is None:
            return
        addresses = info.parsed_addresses()
        if not addresses:
            return
        if not self._first_result.done():
            self._first_result.set_result((addresses[0], info.port))

    def _schedule(self, zeroconf: AsyncZeroconf, service_type: str, name: str) -> None:
        task = self._loop.create_task(self._process_service_info(zeroconf, service_type, name))
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)

    def add_service(self, zeroconf: AsyncZeroconf, service_type: str, name: str) -> None:
        self._schedule(zeroconf, service_type, name)

    def update_service(self, zeroconf: AsyncZeroconf, service_type: str, name: str) -> None:
        self._schedule(zeroconf, service_type, name)

    def remove_service(self, _zeroconf: AsyncZeroconf, _service_type: str, _name: str) -> None:
        """Ignore removals; only the first server found is used."""


async def discover_server(timeout: float = DISCOVERY_TIMEOUT) -> tuple[str, int]:
    """Return host and port of the first Music Assistant server found via mDNS."""
    loop = asyncio.get_running_loop()
    listener = _ServiceDiscoveryListener(loop)
    zeroconf = AsyncZeroconf()
    browser = AsyncServiceBrowser(
        zeroconf.zeroconf, SERVICE_TYPE, cast("ServiceListener", listener)
    )
    try:
        return await asyncio.wait_for(listener.wait_for_first(), timeout=timeout)
    finally:
        await browser.async_cancel()
        await zeroconf.async_close()


async def main_async(argv: Sequence[str] | None = None) -> int:
    """Entry point executing the asynchronous CLI workflow."""
    args = parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(level=getattr(logging, args.log_level))

    host, port = args.host, args.port
    if host is None:
        _print_event("Searching for Music Assistant server...")
        try:
            host, port = await discover_server()
        except TimeoutError:
            _print_error("No Music Assistant server found on the network")
            return 1
        _print_event(f"Found server at {host}:{port}")

    long_running = args.command in {"monitor", "player"}
    client = MusicAssistantClient(host, port, reconnect=long_running)
    try:
        async with client:
            return await _run_command(client, args)
    except MusicAssistantError as err:
        _print_error(str(err))
        return 1


async def _run_command(client: MusicAssistantClient, args: argparse.Namespace) -> int:
    match args.command:
        case "info":
            info = client.server_info
            assert info is not None
            _print_json(info.to_dict())
        case "players":
            _print_json(await client.get_players())
        case "search":
            _print_json(await client.search(args.query, limit=args.limit))
        case "control":
            await getattr(client, args.action)(args.player_id)
            _print_event(f"Sent {args.action} to {args.player_id}")
        case "volume":
            await client.set_volume(args.player_id, args.level)
            _print_event(f"Volume of {args.player_id} set to {args.level}%")
        case "queue":
            _print_json(await client.get_queue_items(args.queue_id, limit=args.limit))
        case "monitor":
            await _monitor(client)
        case "player":
            await _run_player(client, args.name, args.player_id)
    return 0


async def _monitor(client: MusicAssistantClient) -> None:
    unsubscribe_raw = client.events.raw_events.subscribe(_print_raw_event)
    unsubscribe_players = client.events.player_updates.subscribe(_print_player_update)
    unsubscribe_state = client.add_connection_listener(_print_connection_state)
    _print_event("Monitoring events, press Ctrl+C to stop")
    try:
        await _wait_for_interrupt()
    finally:
        unsubscribe_raw()
        unsubscribe_players()
        unsubscribe_state()


async def _run_player(client: MusicAssistantClient, name: str, player_id: str | None) -> None:
    player = BuiltinPlayer(client, NullRenderer(), name, player_id=player_id)
    registered_id = await player.register()
    _print_event(f"Registered built-in player '{name}' ({registered_id})")
    _print_event("Commands: status, quit(q)")

    keyboard_task = asyncio.create_task(_keyboard_loop(player))
    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, keyboard_task.cancel)
    try:
        await keyboard_task
    except asyncio.CancelledError:  # pragma: no cover - Ctrl+C path
        logger.debug("Keyboard loop cancelled")
    finally:
        loop.remove_signal_handler(signal.SIGINT)
        await player.unregister()


async def _keyboard_loop(player: BuiltinPlayer) -> None:
    while True:
        try:
            line = await aioconsole.ainput()
        except EOFError:
            break
        command = line.strip().lower()
        if not command:
            continue
        if command in {"quit", "exit", "q"}:
            break
        if command in {"status", "s"}:
            _print_json(player.current_state().to_dict())
        else:
            _print_event("Unknown command")


async def _wait_for_interrupt() -> None:
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    loop.add_signal_handler(signal.SIGINT, stop.set)
    try:
        await stop.wait()
    finally:
        loop.remove_signal_handler(signal.SIGINT)


def _print_raw_event(event: EventMessage) -> None:
    target = f" [{event.object_id}]" if event.object_id else ""
    _print_event(f"{event.event}{target}")


def _print_player_update(event: PlayerUpdateEvent) -> None:
    state = event.data.get("state")
    if state is not None:
        _print_event(f"  {event.player_id}: {state}")


def _print_connection_state(state: ConnectionState) -> None:
    if state.status is ConnectionStatus.RECONNECTING:
        _print_event(f"Connection lost, retrying in {state.delay:.0f}s (attempt {state.attempt})")
    elif state.status is ConnectionStatus.CONNECTED:
        _print_event("Connected")


def _print_json(data: Any) -> None:
    _print_event(orjson.dumps(data, option=orjson.OPT_INDENT_2).decode())


def _print_event(message: str) -> None:
    print(message, flush=True)  # noqa: T201


def _print_error(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr, flush=True)  # noqa: T201


def main() -> int:
    """Run the CLI."""
    return asyncio.run(main_async(sys.argv[1:]))


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
