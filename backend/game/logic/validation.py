"""Structural validation of guesses."""

import re
from typing import NamedTuple

from game.logic.enums import GameErrorCode
from game.logic.settings import CODE_LENGTH

# ASCII only: str.isdigit() and \d also accept other Unicode digits.
_GUESS_PATTERN = re.compile(rf"[0-9]{{{CODE_LENGTH}}}")


class GuessRejection(NamedTuple):
    code: GameErrorCode
    message: str


def validate_guess(guess: object) -> GuessRejection | None:
    """Check a guess is exactly CODE_LENGTH distinct decimal digits.

    Returns None for a valid guess. Otherwise returns the first failing
    rule: format (wrong length, non-numeric, non-string) before uniqueness.
    """
    if not isinstance(guess, str) or _GUESS_PATTERN.fullmatch(guess) is None:
        return GuessRejection(
            GameErrorCode.INVALID_GUESS_FORMAT,
            f"Guess must be a {CODE_LENGTH}-digit number",
        )
    if len(set(guess)) != CODE_LENGTH:
        return GuessRejection(GameErrorCode.DUPLICATE_DIGITS, "All digits must be different")
    return None
