import random

import pytest

from worker_harness.backoff import BackoffPolicy


def test_interval_grows_by_multiplier_until_capped():
    policy = BackoffPolicy(initial_interval=5, max_interval=20, multiplier=1.5, randomization_factor=0)

    delays = [policy.next() for _ in range(7)]

    assert delays == pytest.approx([5, 7.5, 11.25, 16.875, 20, 20, 20])
    assert policy.attempts == 7


def test_delay_never_exceeds_max_with_jitter():
    policy = BackoffPolicy(
        initial_interval=5, max_interval=300, multiplier=1.5, randomization_factor=0.5, rng=random.Random(7)
    )

    delays = [policy.next() for _ in range(5000)]

    assert all(0 <= d <= 300 * 1.5 for d in delays)
    assert policy.max_delay == pytest.approx(450)


def test_jitter_is_symmetric_around_current_interval():
    rng = random.Random(42)
    for _ in range(200):
        policy = BackoffPolicy(initial_interval=10, max_interval=100, randomization_factor=0.5, rng=rng)
        assert 5 <= policy.next() <= 15


def test_reset_returns_to_initial_interval():
    policy = BackoffPolicy(initial_interval=2, max_interval=60, multiplier=2, randomization_factor=0)
    for _ in range(10):
        policy.next()
    assert policy.current_interval == 60

    policy.reset()

    assert policy.attempts == 0
    assert policy.next() == pytest.approx(2)


def test_policy_never_gives_up():
    policy = BackoffPolicy(initial_interval=1, max_interval=10, randomization_factor=0)
    for _ in range(100_000):
        policy.next()
    assert policy.next() == pytest.approx(10)
    assert policy.attempts == 100_001


@pytest.mark.parametrize(
    "kwargs",
    [
        {"initial_interval": 0},
        {"initial_interval": 10, "max_interval": 5},
        {"multiplier": 0.5},
        {"randomization_factor": 1.0},
        {"randomization_factor": -0.1},
    ],
)
def test_invalid_arguments_are_rejected(kwargs):
    with pytest.raises(ValueError):
        BackoffPolicy(**kwargs)
