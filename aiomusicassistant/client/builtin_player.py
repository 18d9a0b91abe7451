"""Built-in player: the client registers itself as a playback endpoint.

Once registered the server addresses this client like any other player. It
sends commands (PLAY_MEDIA, PAUSE, SET_VOLUME, ...) as ``builtin_player``
events; the player relays them to a Renderer and reports its state back with
``builtin_player/update_state``, immediately after every change and
periodically so the server keeps the player alive.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from contextlib import suppress
from enum import Enum
from typing import TYPE_CHECKING

from aiomusicassistant.errors import InvalidResponse, MusicAssistantError
from aiomusicassistant.models.events import BuiltinPlayerEvent
from aiomusicassistant.models.player import BuiltinPlayerState
from aiomusicassistant.models.types import BuiltinPlayerCommand

from .audio import Renderer

if TYPE_CHECKING:
    from .client import MusicAssistantClient

logger = logging.getLogger(__name__)

STATE_UPDATE_INTERVAL = 30.0
DEFAULT_VOLUME = 50.0


class BuiltinPlayerStatus(Enum):
    """Registration status of a built-in player."""

    UNREGISTERED = "unregistered"
    REGISTERING = "registering"
    REGISTERED = "registered"
    UNREGISTERING = "unregistering"


class BuiltinPlayer:
    """A virtual player registered with the server and backed by a Renderer.

    All state lives in this object and is only changed from the event loop,
    never across an await, so handlers cannot interleave mid-update.
    """

    def __init__(
        self,
        client: MusicAssistantClient,
        renderer: Renderer,
        player_name: str,
        *,
        player_id: str | None = None,
        state_update_interval: float = STATE_UPDATE_INTERVAL,
        volume: float = DEFAULT_VOLUME,
    ) -> None:
        """Create an unregistered player.

        Args:
            client: Connected client used for commands and events.
            renderer: Audio output the server's commands are relayed to.
            player_name: Name shown in the Music Assistant UI.
            player_id: Id to request on registration; the server assigns
                one if omitted.
            state_update_interval: Seconds between periodic state reports.
            volume: Initial volume 0-100.
        """
        self._client = client
        self._renderer = renderer
        self._player_name = player_name
        self._requested_id = player_id
        self._state_update_interval = state_update_interval
        self._status = BuiltinPlayerStatus.UNREGISTERED
        self._player_id: str | None = None
        self._powered = False
        self._volume = _clamp_volume(volume)
        self._muted = False
        self._has_media = False
        self._unsubscribe: Callable[[], None] | None = None
        self._update_task: asyncio.Task[None] | None = None
        self._push_tasks: set[asyncio.Task[bool]] = set()

    @property
    def status(self) -> BuiltinPlayerStatus:
        """Return the registration status."""
        return self._status

    @property
    def player_id(self) -> str | None:
        """Return the id assigned by the server while registered."""
        return self._player_id

    @property
    def player_name(self) -> str:
        """Return the player name."""
        return self._player_name

    @property
    def powered(self) -> bool:
        """Return True if the player is powered on."""
        return self._powered

    @property
    def volume(self) -> float:
        """Return the volume 0-100."""
        return self._volume

    @property
    def muted(self) -> bool:
        """Return True if muted."""
        return self._muted

    async def register(self) -> str:
        """Register with the server and start reporting state.

        Returns the player id assigned by the server.

        Raises:
            InvalidResponse: If the server did not return a player id.
        """
        if self._status is BuiltinPlayerStatus.REGISTERED and self._player_id is not None:
            return self._player_id
        if self._status is not BuiltinPlayerStatus.UNREGISTERED:
            raise RuntimeError(f"Cannot register while {self._status.value}")

        self._status = BuiltinPlayerStatus.REGISTERING
        try:
            result = await self._client.register_builtin_player(
                self._player_name, self._requested_id
            )
            player_id = result.get("player_id") if isinstance(result, dict) else None
            if not isinstance(player_id, str) or not player_id:
                raise InvalidResponse("registration result has no player_id")
        except BaseException:
            self._status = BuiltinPlayerStatus.UNREGISTERED
            raise

        self._player_id = player_id
        self._status = BuiltinPlayerStatus.REGISTERED
        self._unsubscribe = self._client.events.builtin_player_events.subscribe(self._on_event)
        logger.info("Registered built-in player '%s' as %s", self._player_name, player_id)

        await self.send_state_update()
        self._update_task = asyncio.create_task(self._state_update_loop())
        return player_id

    async def unregister(self) -> None:
        """Stop reporting state, stop playback and unregister from the server.

        Does nothing if the player is not registered.
        """
        if self._status is not BuiltinPlayerStatus.REGISTERED or self._player_id is None:
            return
        self._status = BuiltinPlayerStatus.UNREGISTERING
        player_id = self._player_id
        try:
            if self._unsubscribe is not None:
                self._unsubscribe()
                self._unsubscribe = None
            if self._update_task is not None:
                self._update_task.cancel()
                with suppress(asyncio.CancelledError):
                    await self._update_task
                self._update_task = None
            for task in list(self._push_tasks):
                task.cancel()
            self._push_tasks.clear()
            self._stop_playback()
            await self._client.unregister_builtin_player(player_id)
            logger.info("Unregistered built-in player %s", player_id)
        finally:
            self._player_id = None
            self._status = BuiltinPlayerStatus.UNREGISTERED

    def current_state(self) -> BuiltinPlayerState:
        """Return a snapshot of the state as reported to the server.

        Power, volume and mute come from this object; playing, paused and
        position are read from the renderer.
        """
        playing = self._has_media and self._renderer.rate() > 0
        return BuiltinPlayerState(
            powered=self._powered,
            playing=playing,
            paused=self._has_media and not playing,
            position=self._renderer.position() if self._has_media else 0.0,
            volume=self._volume,
            muted=self._muted,
        )

    async def send_state_update(self) -> bool:
        """Report the current state, return True if the server accepted it.

        Failures are logged and swallowed; the server marks the player
        unavailable if reports stop arriving.
        """
        if self._player_id is None or self._status is not BuiltinPlayerStatus.REGISTERED:
            return False
        try:
            return await self._client.update_builtin_player_state(
                self._player_id, self.current_state()
            )
        except MusicAssistantError as err:
            logger.debug("State update for %s failed: %s", self._player_id, err)
            return False

    async def seek(self, position: float) -> bool:
        """Seek the renderer and report the new position."""
        if not self._has_media:
            return False
        ok = await self._renderer.seek(position)
        await self.send_state_update()
        return ok

    async def handle_event(self, event: BuiltinPlayerEvent) -> None:
        """Apply a command from the server and report the resulting state."""
        if self._apply_event(event):
            await self.send_state_update()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _apply_event(self, event: BuiltinPlayerEvent) -> bool:
        """Apply a command, return True if the state should be reported."""
        logger.debug("Built-in player %s received %s", self._player_id, event.command.value)
        match event.command:
            case BuiltinPlayerCommand.PLAY_MEDIA:
                return self._play_media(event.media_url)
            case BuiltinPlayerCommand.PLAY | BuiltinPlayerCommand.UNPAUSE:
                if self._has_media:
                    self._renderer.play()
                    self._powered = True
            case BuiltinPlayerCommand.PAUSE:
                if self._has_media:
                    self._renderer.pause()
            case BuiltinPlayerCommand.STOP:
                self._stop_playback()
            case BuiltinPlayerCommand.SET_VOLUME:
                if event.volume is None:
                    logger.warning("SET_VOLUME without volume")
                    return False
                self._volume = _clamp_volume(event.volume)
                self._renderer.set_volume(self._volume / 100)
            case BuiltinPlayerCommand.MUTE | BuiltinPlayerCommand.UNMUTE:
                self._muted = event.command is BuiltinPlayerCommand.MUTE
                self._renderer.set_muted(self._muted)
            case BuiltinPlayerCommand.POWER_ON:
                self._powered = True
            case BuiltinPlayerCommand.POWER_OFF:
                self._stop_playback()
                self._powered = False
            case BuiltinPlayerCommand.TIMEOUT:
                logger.info("Server reports built-in player %s timed out", self._player_id)
                return False
            case _:
                return False
        return True

    def _is_mine(self, player_id: str, event: BuiltinPlayerEvent) -> bool:
        if self._player_id is None:
            return False
        if player_id:
            return player_id == self._player_id
        # Older servers omit the object id; the queue id embeds the player id
        return event.queue_id is not None and self._player_id in event.queue_id

    def _on_event(self, item: tuple[str, BuiltinPlayerEvent]) -> None:
        # Runs inside the receive loop: state changes apply here, the report
        # is sent from a separate task since its response arrives on that loop
        player_id, event = item
        if self._is_mine(player_id, event) and self._apply_event(event):
            task = asyncio.create_task(self.send_state_update())
            self._push_tasks.add(task)
            task.add_done_callback(self._push_tasks.discard)

    def _play_media(self, media_url: str | None) -> bool:
        if not media_url:
            logger.warning("PLAY_MEDIA without media_url")
            return False
        try:
            url = self._client.get_stream_url(media_url).url
        except MusicAssistantError as err:
            logger.warning("Cannot resolve stream %s: %s", media_url, err)
            return False
        self._powered = True
        logger.info("Loading stream %s", url)
        self._renderer.load(url)
        self._renderer.set_volume(self._volume / 100)
        self._renderer.set_muted(self._muted)
        self._renderer.play()
        self._has_media = True
        return True

    def _stop_playback(self) -> None:
        if self._has_media:
            self._renderer.stop()
            self._has_media = False

    async def _state_update_loop(self) -> None:
        while True:
            await asyncio.sleep(self._state_update_interval)
            await self.send_state_update()


def _clamp_volume(volume: float) -> float:
    return float(min(max(volume, 0.0), 100.0))
