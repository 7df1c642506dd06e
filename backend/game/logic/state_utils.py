"""
Immutable state update utilities using Pydantic model_copy.

Provides helper functions for common immutable updates on frozen room
records. These functions never mutate the input state - they always return
new state objects with the requested changes applied.
"""

from game.logic.state import Attempt, Player, RoomState

_PLAYER_FIELDS = set(Player.model_fields)


def update_player(
    state: RoomState,
    player_id: str,
    **updates: object,
) -> RoomState:
    """
    Return new room state with the given player's fields updated.

    Args:
        state: Current room state
        player_id: Id of the player to update
        **updates: Fields to update on the player

    Returns:
        New RoomState with the updated player in the same position

    Raises:
        ValueError: If the player is not seated or update fields are invalid

    """
    invalid_fields = set(updates) - _PLAYER_FIELDS
    if invalid_fields:
        raise ValueError(f"Invalid player fields: {invalid_fields}")
    players = list(state.players)
    for index, player in enumerate(players):
        if player.id == player_id:
            players[index] = player.model_copy(update=updates)
            return state.model_copy(update={"players": tuple(players)})
    raise ValueError(f"Player {player_id!r} is not seated in room {state.room_id!r}")


def append_attempt(state: RoomState, player_id: str, attempt: Attempt) -> RoomState:
    """Return new state with the attempt added to the end of the player's history."""
    player = state.find_player(player_id)
    if player is None:
        raise ValueError(f"Player {player_id!r} is not seated in room {state.room_id!r}")
    return update_player(state, player_id, attempts=(*player.attempts, attempt))


def add_player(state: RoomState, player: Player) -> RoomState:
    """Return new state with the player seated after everyone already in the room."""
    return state.model_copy(update={"players": (*state.players, player)})


def remove_player(state: RoomState, player_id: str) -> RoomState:
    """Return new state without the given player. Unknown ids are ignored."""
    players = tuple(p for p in state.players if p.id != player_id)
    if len(players) == len(state.players):
        return state
    return state.model_copy(update={"players": players})
