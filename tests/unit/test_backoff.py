"""
Unit tests for backoff calculation.
"""

import random

import pytest

from chainqueue.queue.backoff import compute_backoff_delay


class TestComputeBackoffDelay:
    """Tests for compute_backoff_delay."""

    @pytest.mark.parametrize(
        ("attempts", "expected"),
        [(1, 1.0), (2, 2.0), (3, 4.0), (9, 256.0), (10, 300.0), (50, 300.0)],
    )
    def test_default_policy(self, attempts: int, expected: float):
        """Test min(300, 1 * 2 ** (n - 1)) at the default policy."""
        assert compute_backoff_delay(attempts, 1.0, 2.0, 300.0) == expected

    def test_multiplier_of_one_is_constant(self):
        """Test a multiplier of 1 gives a fixed delay."""
        delays = {compute_backoff_delay(n, 5.0, 1.0, 300.0) for n in range(1, 10)}

        assert delays == {5.0}

    def test_huge_attempt_count_saturates(self):
        """Test float overflow saturates at the max delay."""
        assert compute_backoff_delay(100_000, 1.0, 10.0, 60.0) == 60.0

    def test_zero_attempts_treated_as_first(self):
        """Test attempts below 1 use the initial delay."""
        assert compute_backoff_delay(0, 1.5, 2.0, 300.0) == 1.5

    def test_jitter_never_exceeds_deterministic_delay(self):
        """Test jittered delays stay within [(1 - j) * d, d]."""
        rng = random.Random(42)

        for attempts in range(1, 12):
            base = compute_backoff_delay(attempts, 1.0, 2.0, 300.0)
            jittered = compute_backoff_delay(attempts, 1.0, 2.0, 300.0, jitter=0.5, rng=rng)
            assert 0.5 * base <= jittered <= base

    def test_jitter_is_reproducible_with_seeded_rng(self):
        """Test the same seed gives the same schedule."""
        first = [
            compute_backoff_delay(n, 1.0, 2.0, 300.0, jitter=0.3, rng=random.Random(7))
            for n in range(1, 6)
        ]
        second = [
            compute_backoff_delay(n, 1.0, 2.0, 300.0, jitter=0.3, rng=random.Random(7))
            for n in range(1, 6)
        ]

        assert first == second
