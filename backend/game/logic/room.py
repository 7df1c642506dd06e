"""
Room state machine: OPEN -> STARTED -> ENDED.

RoomGame owns one room's immutable RoomState. Every operation builds the
complete next state before swapping it in, and refusals return a Rejection
without touching the state. Operations are synchronous; callers serialize
them per room (see game.session.manager).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from game.logic.enums import GameErrorCode, RoomPhase
from game.logic.ranking import finish_player
from game.logic.scoring import score_guess
from game.logic.secret import generate_secret
from game.logic.settings import CODE_LENGTH, GameSettings
from game.logic.state import Attempt, Player, RoomState
from game.logic.state_utils import add_player, append_attempt, remove_player
from game.logic.types import GameStateView, GuessOutcome, Rejection
from game.logic.validation import validate_guess

if TYPE_CHECKING:
    import random

logger = structlog.get_logger()


class RoomGame:
    def __init__(self, state: RoomState) -> None:
        self._state = state

    @classmethod
    def create(
        cls,
        room_id: str,
        settings: GameSettings | None = None,
        *,
        secret_code: str | None = None,
        rng: random.Random | None = None,
    ) -> RoomGame:
        """Create an OPEN room with a freshly generated secret (or the given one)."""
        secret = secret_code if secret_code is not None else generate_secret(rng)
        if validate_guess(secret) is not None:
            raise ValueError(f"Secret code must be {CODE_LENGTH} distinct digits")
        state = RoomState(
            room_id=room_id,
            secret_code=secret,
            settings=settings or GameSettings(),
        )
        return cls(state)

    @property
    def state(self) -> RoomState:
        return self._state

    @property
    def room_id(self) -> str:
        return self._state.room_id

    @property
    def phase(self) -> RoomPhase:
        return self._state.phase

    def add_player(self, player_id: str, name: str) -> Rejection | None:
        """Seat a new player. Only allowed while the room is OPEN and not full."""
        state = self._state
        if state.phase != RoomPhase.OPEN:
            return Rejection(GameErrorCode.ALREADY_STARTED, "Cannot join: the game has already started")
        if state.is_full:
            return Rejection(
                GameErrorCode.ROOM_FULL,
                f"Room is full (maximum {state.settings.max_players} players)",
            )
        if not name or not name.strip():
            return Rejection(GameErrorCode.EMPTY_NAME, "Player name is required")
        if state.find_player(player_id) is not None:
            return Rejection(GameErrorCode.ALREADY_IN_ROOM, "Player is already in this room")

        self._state = add_player(state, Player(id=player_id, name=name.strip()))
        logger.info("player joined", room_id=self.room_id, player_id=player_id, players=self._state.player_count)
        return None

    def remove_player(self, player_id: str) -> bool:
        """Remove a player if seated. Return True when the room is left empty and should be deleted."""
        self._state = remove_player(self._state, player_id)
        return self._state.is_empty

    def start_game(self) -> Rejection | None:
        """Move an OPEN room to STARTED. A room that is already past OPEN is left as is."""
        state = self._state
        if state.player_count < state.settings.min_players_to_start:
            return Rejection(
                GameErrorCode.NOT_ENOUGH_PLAYERS,
                f"Cannot start: at least {state.settings.min_players_to_start} player(s) required",
            )
        if state.phase != RoomPhase.OPEN:
            return None

        self._state = state.model_copy(update={"phase": RoomPhase.STARTED})
        logger.info("game started", room_id=self.room_id, players=state.player_count)
        return None

    def make_guess(self, player_id: str, guess: str) -> GuessOutcome | Rejection:
        """Score a guess for a player, recording the attempt and any finish."""
        state = self._state
        if state.phase == RoomPhase.OPEN:
            return Rejection(GameErrorCode.GAME_NOT_STARTED, "The game has not started yet")
        if state.phase == RoomPhase.ENDED:
            return Rejection(GameErrorCode.GAME_ENDED, "The game is over")

        player = state.find_player(player_id)
        if player is None:
            return Rejection(GameErrorCode.PLAYER_NOT_FOUND, "Player not found in this room")
        if player.finished:
            return Rejection(GameErrorCode.ALREADY_FINISHED, "You have already found the code")

        invalid = validate_guess(guess)
        if invalid is not None:
            return Rejection(invalid.code, invalid.message)

        bulls, cows = score_guess(state.secret_code, guess)
        attempt = Attempt(sequence_number=player.attempt_count + 1, guess=guess, bulls=bulls, cows=cows)
        state = append_attempt(state, player_id, attempt)

        is_winner = bulls == CODE_LENGTH
        if is_winner:
            state = finish_player(state, player_id, attempt.sequence_number)

        self._state = state
        finished_player = state.find_player(player_id)
        return GuessOutcome(
            attempt=attempt,
            is_winner=is_winner,
            rank=finished_player.rank if finished_player is not None else None,
            room_ended=state.phase == RoomPhase.ENDED,
            secret_code=state.secret_code if is_winner else None,
        )

    def get_game_state(self) -> GameStateView:
        return GameStateView.from_state(self._state)
