"""
Bulls and cows scoring.

Bulls are counted first and both matched positions are masked with
non-digit sentinels, then cows are counted against the masked secret with
each matched secret position masked in turn. A secret digit is never
matched twice.
"""

from typing import NamedTuple

_SECRET_USED = "X"
_GUESS_USED = "Y"


class Score(NamedTuple):
    bulls: int
    cows: int


def score_guess(secret: str, guess: str) -> Score:
    """
    Score a validated guess against the secret.

    Both strings must already be valid codes of equal length. They need not
    share the same digit set.
    """
    secret_digits = list(secret)
    guess_digits = list(guess)
    bulls = 0
    cows = 0

    for i, digit in enumerate(guess_digits):
        if secret_digits[i] == digit:
            bulls += 1
            secret_digits[i] = _SECRET_USED
            guess_digits[i] = _GUESS_USED

    for digit in guess_digits:
        if digit == _GUESS_USED:
            continue
        if digit in secret_digits:
            cows += 1
            secret_digits[secret_digits.index(digit)] = _SECRET_USED

    return Score(bulls=bulls, cows=cows)
