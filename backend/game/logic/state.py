"""
Immutable room state records.

Rooms, players and attempts are frozen pydantic models. Every state change
produces a new RoomState, and persistence is a plain JSON dump/validate of
the same records.
"""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from game.logic.enums import RoomPhase
from game.logic.settings import GameSettings


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


class Attempt(BaseModel):
    """One scored guess in a player's history."""

    model_config = ConfigDict(frozen=True)

    sequence_number: int = Field(ge=1)
    guess: str
    bulls: int = Field(ge=0, le=4)
    cows: int = Field(ge=0, le=4)
    timestamp: datetime = Field(default_factory=utc_now)


class Player(BaseModel):
    """
    A player seated in a room.

    finished/rank/score are written exactly once, on the guess that
    scores four bulls.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    attempts: tuple[Attempt, ...] = ()
    finished: bool = False
    rank: int | None = None
    score: int = 0

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    @property
    def last_attempt(self) -> Attempt | None:
        return self.attempts[-1] if self.attempts else None


class RoomState(BaseModel):
    """Complete state of one room. The secret code is never sent to clients from here."""

    model_config = ConfigDict(frozen=True)

    room_id: str
    secret_code: str
    phase: RoomPhase = RoomPhase.OPEN
    players: tuple[Player, ...] = ()
    winner: Player | None = None  # captured when rank 1 is assigned
    created_at: datetime = Field(default_factory=utc_now)
    settings: GameSettings = Field(default_factory=GameSettings)

    @property
    def player_count(self) -> int:
        return len(self.players)

    @property
    def is_empty(self) -> bool:
        return not self.players

    @property
    def is_full(self) -> bool:
        return self.player_count >= self.settings.max_players

    @property
    def finished_count(self) -> int:
        return sum(1 for p in self.players if p.finished)

    @property
    def all_finished(self) -> bool:
        return bool(self.players) and all(p.finished for p in self.players)

    @property
    def host_id(self) -> str | None:
        """First player to join hosts the room."""
        return self.players[0].id if self.players else None

    def find_player(self, player_id: str) -> Player | None:
        for player in self.players:
            if player.id == player_id:
                return player
        return None
