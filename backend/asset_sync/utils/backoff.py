from __future__ import annotations

import random


def calc_next_delay(attempts: int, base_seconds: float = 1, max_seconds: float = 60) -> float:
    """
    Exponential backoff: first failure -> base, then doubling until max_seconds.
    attempts: number of attempts made so far (1-based)
    """
    attempts = max(1, attempts)
    delay = base_seconds * (2 ** (attempts - 1))
    return min(max_seconds, delay)


def jittered_delay(attempts: int, base_seconds: float = 1, max_seconds: float = 60) -> float:
    """calc_next_delay plus 0~25% jitter so parallel workers do not retry in lockstep."""
    base = calc_next_delay(attempts, base_seconds, max_seconds)
    return base + random.uniform(0, 0.25 * base)
