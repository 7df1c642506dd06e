"""Room lifecycle management: creation, joining, starting, guessing and eviction."""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog

from game.logic.enums import GameErrorCode
from game.logic.room import RoomGame
from game.logic.settings import GameSettings
from game.logic.types import GameStateView, Rejection
from game.session.directory import PlayerRecord
from game.session.types import GuessResult, JoinResult, RoomInfo
from shared.logging import bind_room

if TYPE_CHECKING:
    import random
    from collections.abc import AsyncIterator, Callable

    from game.session.directory import PlayerDirectory, RoomDirectory

logger = structlog.get_logger()

_ROOM_ID_LENGTH = 8
_ROOM_ID_ATTEMPTS = 10
_DEFAULT_REAPER_INTERVAL = 300  # seconds between idle sweeps


def _new_room_id() -> str:
    return uuid4().hex[:_ROOM_ID_LENGTH].upper()


def _new_player_id() -> str:
    return str(uuid4())


def _room_not_found() -> Rejection:
    return Rejection(GameErrorCode.ROOM_NOT_FOUND, "Room not found")


class RoomManager:
    """Serialize every operation on a room and keep the directories in sync.

    Each room has its own asyncio.Lock. An operation loads the room, runs the
    RoomGame transition and writes the new snapshot back while holding the
    lock, so concurrent requests for one room apply one at a time and rooms
    never wait on each other. Purely state management: the HTTP layer maps
    results to responses.
    """

    def __init__(
        self,
        rooms: RoomDirectory,
        players: PlayerDirectory,
        settings: GameSettings | None = None,
        *,
        reaper_interval_seconds: int = _DEFAULT_REAPER_INTERVAL,
        rng: random.Random | None = None,
        room_id_factory: Callable[[], str] = _new_room_id,
        player_id_factory: Callable[[], str] = _new_player_id,
    ) -> None:
        self._rooms = rooms
        self._players = players
        self._settings = settings or GameSettings()
        self._reaper_interval = reaper_interval_seconds
        self._rng = rng
        self._room_id_factory = room_id_factory
        self._player_id_factory = player_id_factory
        self._room_locks: dict[str, asyncio.Lock] = {}  # room_id -> Lock
        self._reaper_task: asyncio.Task[None] | None = None

    def _lock_for(self, room_id: str) -> asyncio.Lock:
        return self._room_locks.setdefault(room_id, asyncio.Lock())

    async def _load(self, room_id: str) -> RoomGame | None:
        state = await self._rooms.get(room_id)
        return RoomGame(state) if state is not None else None

    @contextlib.asynccontextmanager
    async def _locked_room(self, room_id: str) -> AsyncIterator[RoomGame | None]:
        """Hold the room lock and yield the loaded room, or None if it does not exist."""
        game: RoomGame | None = None
        with bind_room(room_id):
            async with self._lock_for(room_id):
                game = await self._load(room_id)
                yield game
        # Unknown ids must not leave locks behind.
        if game is None:
            self._room_locks.pop(room_id, None)

    async def _allocate_room_id(self) -> str:
        for _ in range(_ROOM_ID_ATTEMPTS):
            room_id = self._room_id_factory()
            if room_id not in self._room_locks and not await self._rooms.exists(room_id):
                return room_id
        raise RuntimeError("could not allocate a free room id")

    # --- Public API ---

    async def create_room(self, player_name: str) -> JoinResult | Rejection:
        """Create a room and seat its first player (the host)."""
        room_id = await self._allocate_room_id()
        game = RoomGame.create(room_id, self._settings, rng=self._rng)
        player_id = self._player_id_factory()

        rejection = game.add_player(player_id, player_name)
        if rejection is not None:
            return rejection

        with bind_room(room_id):
            async with self._lock_for(room_id):
                await self._rooms.put(game.state)
                await self._players.put(player_id, PlayerRecord(name=player_name.strip(), room_id=room_id))
            logger.info("room created", player_id=player_id)

        return JoinResult(
            room_id=room_id,
            player_id=player_id,
            player_name=player_name.strip(),
            game_state=game.get_game_state(),
        )

    async def join_room(self, room_id: str, player_name: str) -> JoinResult | Rejection:
        player_id = self._player_id_factory()
        async with self._locked_room(room_id) as game:
            if game is None:
                return _room_not_found()
            rejection = game.add_player(player_id, player_name)
            if rejection is not None:
                logger.info("join rejected", code=rejection.code)
                return rejection
            await self._rooms.put(game.state)
            await self._players.put(player_id, PlayerRecord(name=player_name.strip(), room_id=room_id))

        return JoinResult(
            room_id=room_id,
            player_id=player_id,
            player_name=player_name.strip(),
            game_state=game.get_game_state(),
        )

    async def start_game(self, room_id: str, player_id: str) -> GameStateView | Rejection:
        """Start the game on behalf of a seated player."""
        async with self._locked_room(room_id) as game:
            if game is None:
                return _room_not_found()
            if game.state.find_player(player_id) is None:
                return Rejection(GameErrorCode.PLAYER_NOT_FOUND, "Player not found in this room")
            rejection = game.start_game()
            if rejection is not None:
                return rejection
            await self._rooms.put(game.state)
        return game.get_game_state()

    async def make_guess(self, room_id: str, player_id: str, guess: str) -> GuessResult | Rejection:
        async with self._locked_room(room_id) as game:
            if game is None:
                return _room_not_found()
            outcome = game.make_guess(player_id, guess)
            if isinstance(outcome, Rejection):
                return outcome
            await self._rooms.put(game.state)
        return GuessResult(outcome=outcome, game_state=game.get_game_state())

    async def leave_room(self, room_id: str, player_id: str) -> GameStateView | Rejection | None:
        """Remove a player. Returns None when that emptied the room and it was deleted."""
        async with self._locked_room(room_id) as game:
            if game is None:
                return _room_not_found()
            should_cleanup = game.remove_player(player_id)
            await self._players.delete(player_id)
            if should_cleanup:
                await self._rooms.delete(room_id)
            else:
                await self._rooms.put(game.state)

        with bind_room(room_id):
            if should_cleanup:
                # Drop the lock outside the async with block to avoid deleting it while held.
                self._room_locks.pop(room_id, None)
                logger.info("room deleted, last player left", player_id=player_id)
                return None
            logger.info("player left", player_id=player_id, players=game.state.player_count)
        return game.get_game_state()

    async def get_state(self, room_id: str) -> GameStateView | Rejection:
        async with self._locked_room(room_id) as game:
            if game is None:
                return _room_not_found()
        return game.get_game_state()

    async def list_rooms(self) -> list[RoomInfo]:
        """Return info about all stored rooms, oldest first."""
        rooms: list[RoomInfo] = []
        for _room_id, state in await self._rooms.list_all():
            view = GameStateView.from_state(state)
            rooms.append(
                RoomInfo(
                    room_id=view.room_id,
                    player_count=len(view.players),
                    max_players=view.max_players,
                    game_started=view.game_started,
                    game_ended=view.game_ended,
                    can_join=view.can_join,
                    created_at=view.created_at,
                ),
            )
        return sorted(rooms, key=lambda r: r.created_at)

    async def room_count(self) -> int:
        return len(await self._rooms.list_all())

    # --- Idle room reaper ---

    def start_reaper(self) -> None:
        """Start the periodic idle-room sweep. Idempotent."""
        if self._reaper_interval <= 0:
            return
        if self._reaper_task is not None and not self._reaper_task.done():
            return
        self._reaper_task = asyncio.create_task(self._reaper_loop())

    async def stop_reaper(self) -> None:
        if self._reaper_task is not None:
            self._reaper_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reaper_task
            self._reaper_task = None

    async def _reaper_loop(self) -> None:  # pragma: no cover
        while True:
            await asyncio.sleep(self._reaper_interval)
            try:
                await self.reap_idle_rooms()
            except Exception:
                logger.exception("room reaper encountered an error")

    async def reap_idle_rooms(self) -> list[str]:
        """Evict rooms idle past the directory's max age, along with their player records."""
        evicted = await self._rooms.sweep_idle(lock_for=self._lock_for)
        for state in evicted:
            for player in state.players:
                await self._players.delete(player.id)
            self._room_locks.pop(state.room_id, None)
        return [state.room_id for state in evicted]
