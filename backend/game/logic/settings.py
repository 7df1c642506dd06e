"""Centralized game settings for Bulls and Cows rooms."""

from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

CODE_LENGTH = 4
DEFAULT_MAX_PLAYERS = 4
# Solo games are allowed; set GAME_MIN_PLAYERS_TO_START=2 for head-to-head only.
DEFAULT_MIN_PLAYERS_TO_START = 1
MAX_NAME_LENGTH = 20


class GameSettings(BaseModel):
    """
    Per-room game rules.

    Stored inside every room snapshot so a room keeps the rules it was
    created with even if server configuration changes later.
    """

    model_config = ConfigDict(frozen=True)

    max_players: int = Field(default=DEFAULT_MAX_PLAYERS, ge=1)
    min_players_to_start: int = Field(default=DEFAULT_MIN_PLAYERS_TO_START, ge=1)

    # --- Scoring ---
    max_score: int = 1000  # score for solving on the first attempt
    score_step: int = 100  # deducted per extra attempt
    min_score: int = 100  # floor

    @model_validator(mode="after")
    def _validate_player_bounds(self) -> Self:
        if self.min_players_to_start > self.max_players:
            raise ValueError(
                f"min_players_to_start ({self.min_players_to_start}) exceeds max_players ({self.max_players})",
            )
        return self
