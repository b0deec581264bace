"""
Tests for the reconnect delay policy
"""

import random

import pytest

from slackgw.backoff import Backoff


def test_delays_never_decrease_and_stay_capped():
    backoff = Backoff(base=0.5, maximum=8.0, factor=2.0, jitter=0.5, rand=random.Random(7).random)

    delays = [backoff.next_delay() for _ in range(20)]

    assert all(later >= earlier for earlier, later in zip(delays, delays[1:]))
    assert max(delays) <= 8.0
    assert delays[-1] >= 4.0


def test_jitter_only_shortens_the_ceiling():
    backoff = Backoff(base=1.0, maximum=60.0, jitter=0.2, rand=lambda: 1.0)

    assert backoff.next_delay() == pytest.approx(0.8)
    assert backoff.next_delay() == pytest.approx(1.6)
    assert backoff.next_delay() == pytest.approx(3.2)


def test_reset_returns_to_baseline():
    backoff = Backoff(base=1.0, maximum=60.0, jitter=0.0)
    for _ in range(5):
        backoff.next_delay()
    assert backoff.attempt == 5

    backoff.reset()

    assert backoff.attempt == 0
    assert backoff.next_delay() == 1.0


def test_huge_attempt_count_is_capped():
    backoff = Backoff(base=1.0, maximum=30.0, jitter=0.0)
    backoff.attempt = 5000

    assert backoff.next_delay() == 30.0
