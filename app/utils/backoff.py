"""
Retry backoff helpers.
"""

import random


def jittered_backoff(
    attempt: int,
    base_seconds: float,
    max_seconds: float,
    rng: random.Random | None = None,
) -> float:
    """
    Exponential backoff with full jitter.

    Formula: uniform(0, min(max, base * 2^(attempt - 1)))

    Args:
        attempt: 1-based attempt number that just failed
        base_seconds: Delay ceiling after the first failure
        max_seconds: Upper bound for any delay
        rng: Random source (tests pass a seeded one)

    Returns:
        Delay in seconds
    """
    ceiling = min(max_seconds, base_seconds * (2 ** max(attempt - 1, 0)))
    return (rng or random).uniform(0, ceiling)
