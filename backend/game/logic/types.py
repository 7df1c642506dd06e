"""
Pydantic models for data that leaves the game logic layer.

Views are client-safe projections of RoomState: the secret code, and any
solving guess that would spell it out, only appear once the room has ended.
The outcome of the solving guess itself is returned to that player only.
"""

from __future__ import annotations

from datetime import datetime
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict

from game.logic.enums import ErrorKind, GameErrorCode, RoomPhase
from game.logic.settings import CODE_LENGTH
from game.logic.state import Attempt, Player, RoomState

# Stands in for a solving guess, which equals the secret, until the room ends.
HIDDEN_GUESS = "*" * CODE_LENGTH


class Rejection(NamedTuple):
    """Why an operation was refused. The room is left untouched."""

    code: GameErrorCode
    message: str

    @property
    def kind(self) -> ErrorKind:
        return self.code.kind


class PlayerSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    attempts: int
    finished: bool
    rank: int | None
    score: int
    last_attempt: Attempt | None

    @classmethod
    def from_player(cls, player: Player, *, reveal_solution: bool = False) -> PlayerSummary:
        last_attempt = player.last_attempt
        if last_attempt is not None and last_attempt.bulls == CODE_LENGTH and not reveal_solution:
            last_attempt = last_attempt.model_copy(update={"guess": HIDDEN_GUESS})
        return cls(
            id=player.id,
            name=player.name,
            attempts=player.attempt_count,
            finished=player.finished,
            rank=player.rank,
            score=player.score,
            last_attempt=last_attempt,
        )


class GameStateView(BaseModel):
    """Read-only snapshot of a room for clients."""

    model_config = ConfigDict(frozen=True)

    room_id: str
    secret_code: str | None
    phase: RoomPhase
    players: list[PlayerSummary]
    host_id: str | None
    game_started: bool
    game_ended: bool
    winner: PlayerSummary | None
    max_players: int
    can_join: bool
    created_at: datetime

    @classmethod
    def from_state(cls, state: RoomState) -> GameStateView:
        ended = state.phase == RoomPhase.ENDED
        return cls(
            room_id=state.room_id,
            secret_code=state.secret_code if ended else None,
            phase=state.phase,
            players=[PlayerSummary.from_player(p, reveal_solution=ended) for p in state.players],
            host_id=state.host_id,
            game_started=state.phase != RoomPhase.OPEN,
            game_ended=ended,
            winner=PlayerSummary.from_player(state.winner, reveal_solution=ended) if state.winner is not None else None,
            max_players=state.settings.max_players,
            can_join=state.phase == RoomPhase.OPEN and not state.is_full,
            created_at=state.created_at,
        )


class GuessOutcome(BaseModel):
    """Result of an accepted guess."""

    model_config = ConfigDict(frozen=True)

    attempt: Attempt
    is_winner: bool
    rank: int | None
    room_ended: bool
    secret_code: str | None = None  # only set on the solving guess
