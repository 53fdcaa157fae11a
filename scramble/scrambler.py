"""Token scrambling."""

import random

from .config import SCRAMBLE_MAX_ATTEMPTS


def scramble(tokens, rng: random.Random = None) -> list:
    """Return a shuffled copy of tokens that differs from the input when possible.

    Uses a Fisher-Yates shuffle, retried up to SCRAMBLE_MAX_ATTEMPTS times
    while the result still equals the input. After the last attempt the
    result is returned as is, so a rare unchanged order is possible.
    Sequences shorter than two tokens are returned unchanged.
    """
    rng = rng or random
    original = list(tokens)
    if len(original) < 2:
        return original

    scrambled = list(original)
    attempts = 0
    while True:
        for i in range(len(scrambled) - 1, 0, -1):
            j = rng.randint(0, i)
            scrambled[i], scrambled[j] = scrambled[j], scrambled[i]
        attempts += 1
        if scrambled != original or attempts >= SCRAMBLE_MAX_ATTEMPTS:
            return scrambled
