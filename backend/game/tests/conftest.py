from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from game.logic.room import RoomGame
from game.logic.settings import GameSettings
from game.logic.state import Attempt, Player, RoomState
from game.server.app import create_app
from game.server.settings import GameServerSettings
from game.session.directory import PlayerDirectory, RoomDirectory
from game.session.manager import RoomManager
from shared.storage import InMemoryKeyValueStore

if TYPE_CHECKING:
    from collections.abc import Sequence

TEST_SECRET = "1234"


# ============================================================================
# Test State Builder Helpers
# ============================================================================


def create_player(
    player_id: str = "p1",
    name: str | None = None,
    *,
    attempts: Sequence[Attempt] | None = None,
    finished: bool = False,
    rank: int | None = None,
    score: int = 0,
) -> Player:
    """Create a Player with sensible defaults for testing."""
    return Player(
        id=player_id,
        name=name if name is not None else f"Player-{player_id}",
        attempts=tuple(attempts) if attempts is not None else (),
        finished=finished,
        rank=rank,
        score=score,
    )


def create_room_state(
    *,
    room_id: str = "ROOM0001",
    secret_code: str = TEST_SECRET,
    players: Sequence[Player] | None = None,
    settings: GameSettings | None = None,
    **kwargs,
) -> RoomState:
    """Create a RoomState with sensible defaults for testing."""
    return RoomState(
        room_id=room_id,
        secret_code=secret_code,
        players=tuple(players) if players is not None else (),
        settings=settings or GameSettings(),
        **kwargs,
    )


def create_started_room(*player_ids: str, secret_code: str = TEST_SECRET, max_players: int = 4) -> RoomGame:
    """Create a STARTED RoomGame with the given players seated in order."""
    game = RoomGame.create("ROOM0001", GameSettings(max_players=max_players), secret_code=secret_code)
    for player_id in player_ids:
        assert game.add_player(player_id, player_id.capitalize()) is None
    assert game.start_game() is None
    return game


class FixedSecretRandom:
    """random.Random stand-in whose randrange replays TEST_SECRET digit by digit."""

    def __init__(self, secret: str = TEST_SECRET) -> None:
        self._secret = secret
        self._index = 0

    def randrange(self, _stop: int) -> int:
        digit = int(self._secret[self._index % len(self._secret)])
        self._index += 1
        return digit


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def room_directory(store):
    return RoomDirectory(store)


@pytest.fixture
def player_directory(store):
    return PlayerDirectory(store)


@pytest.fixture
def room_manager(room_directory, player_directory):
    return RoomManager(
        room_directory,
        player_directory,
        GameSettings(max_players=4),
        reaper_interval_seconds=0,
        rng=FixedSecretRandom(),
    )


@pytest.fixture
def server_settings():
    return GameServerSettings(cors_origins=["http://testserver"], max_rooms=5, reaper_interval_seconds=0)


@pytest.fixture
def app(server_settings, room_manager):
    return create_app(settings=server_settings, room_manager=room_manager)
