"""
Pydantic models for the session layer.
"""

from datetime import datetime

from pydantic import BaseModel

from game.logic.types import GameStateView, GuessOutcome


class RoomInfo(BaseModel):
    """Room information for the room listing."""

    room_id: str
    player_count: int
    max_players: int
    game_started: bool
    game_ended: bool
    can_join: bool
    created_at: datetime


class JoinResult(BaseModel):
    """Identity handed to a player after creating or joining a room."""

    room_id: str
    player_id: str
    player_name: str
    game_state: GameStateView


class GuessResult(BaseModel):
    outcome: GuessOutcome
    game_state: GameStateView
