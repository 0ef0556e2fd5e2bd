"""
Exponential backoff for retry scheduling.
"""

import random


def compute_backoff_delay(
    attempts: int,
    initial_delay_seconds: float,
    backoff_multiplier: float,
    max_delay_seconds: float,
    jitter: float = 0.0,
    rng: random.Random | None = None,
) -> float:
    """
    Compute the delay before the next attempt.

    ``min(max_delay, initial_delay * multiplier ** (attempts - 1))``. With a
    non-zero ``jitter`` the delay is scaled down by a random factor in
    ``[1 - jitter, 1]``, so it never exceeds the deterministic value.

    Args:
        attempts: Attempts made so far (1 after the first failure).
        initial_delay_seconds: Delay after the first failed attempt.
        backoff_multiplier: Growth factor per attempt.
        max_delay_seconds: Upper bound on the delay.
        jitter: Fraction of the delay that may be randomly shaved off.
        rng: Random source for jitter.

    Returns:
        Delay in seconds.
    """
    exponent = max(0, attempts - 1)
    try:
        delay = initial_delay_seconds * (backoff_multiplier ** exponent)
    except OverflowError:
        delay = max_delay_seconds
    delay = min(delay, max_delay_seconds)

    if jitter > 0:
        factor = (rng or random).uniform(1.0 - jitter, 1.0)
        delay *= factor

    return max(0.0, delay)
