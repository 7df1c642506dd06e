"""Finishing order, score and game-end handling for solved codes."""

import structlog

from game.logic.enums import RoomPhase
from game.logic.settings import GameSettings
from game.logic.state import RoomState
from game.logic.state_utils import update_player

logger = structlog.get_logger()


def calculate_score(attempt_count: int, settings: GameSettings) -> int:
    """Score for solving on the given 1-based attempt: max_score on the first, minus score_step each after, floored."""
    return max(settings.max_score - (attempt_count - 1) * settings.score_step, settings.min_score)


def finish_player(state: RoomState, player_id: str, attempt_count: int) -> RoomState:
    """
    Return new state with the player marked as finished.

    Rank is one more than the highest rank handed out so far, so ranks
    follow the order in which winning guesses are processed and stay unique
    even if a finished player has since left. The first finisher becomes
    the room winner, and the room ends once every seated player has finished.
    """
    # The winner record keeps rank 1 taken after the winner leaves.
    taken = [p.rank for p in state.players if p.rank is not None]
    if state.winner is not None and state.winner.rank is not None:
        taken.append(state.winner.rank)
    rank = max(taken, default=0) + 1
    score = calculate_score(attempt_count, state.settings)
    state = update_player(state, player_id, finished=True, rank=rank, score=score)

    if rank == 1:
        state = state.model_copy(update={"winner": state.find_player(player_id)})

    logger.info(
        "player finished",
        room_id=state.room_id,
        player_id=player_id,
        rank=rank,
        score=score,
        attempts=attempt_count,
    )

    if state.all_finished:
        state = state.model_copy(update={"phase": RoomPhase.ENDED})
        logger.info("game ended", room_id=state.room_id, players=state.player_count)

    return state
