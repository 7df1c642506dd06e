"""
Secret code generation.

Digits are drawn one at a time from a uniform 0-9 source and kept only if
they have not been drawn yet, preserving draw order. A leading zero is
swapped with the second digit so the code never starts with 0.
"""

import random
import secrets

from game.logic.settings import CODE_LENGTH

_DIGITS = 10

_system_random = secrets.SystemRandom()


def generate_secret(rng: random.Random | None = None) -> str:
    """Return a CODE_LENGTH string of pairwise distinct digits, never starting with 0.

    Uses the OS entropy source unless an explicit rng is given (tests and
    replays pass a seeded random.Random).
    """
    source = rng if rng is not None else _system_random
    digits: list[int] = []
    while len(digits) < CODE_LENGTH:
        digit = source.randrange(_DIGITS)
        if digit not in digits:
            digits.append(digit)

    if digits[0] == 0 and len(digits) > 1:
        digits[0], digits[1] = digits[1], digits[0]

    return "".join(str(d) for d in digits)
