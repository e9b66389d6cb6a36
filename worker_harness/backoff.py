import random
from typing import Optional

DEFAULT_INITIAL_INTERVAL_SECONDS = 5.0
DEFAULT_MAX_INTERVAL_SECONDS = 5 * 60.0
DEFAULT_MULTIPLIER = 1.5
DEFAULT_RANDOMIZATION_FACTOR = 0.5


class BackoffPolicy:
    """
    Exponential backoff bounded by interval, never by attempt count.

    Formula for the n-th consecutive failure (n starting at 0):
        interval = min(initial * multiplier ^ n, max_interval)
        delay = interval * uniform(1 - factor, 1 + factor)

    The policy never tells the caller to stop retrying: an unreachable
    coordinator is expected and the worker keeps asking until work shows up
    or the process is shut down. Only the interval is capped, so every delay
    satisfies delay <= max_interval * (1 + factor).

    One instance belongs to exactly one worker loop. It is not thread-safe and
    must not be shared.
    """

    def __init__(
        self,
        initial_interval: float = DEFAULT_INITIAL_INTERVAL_SECONDS,
        max_interval: float = DEFAULT_MAX_INTERVAL_SECONDS,
        multiplier: float = DEFAULT_MULTIPLIER,
        randomization_factor: float = DEFAULT_RANDOMIZATION_FACTOR,
        rng: Optional[random.Random] = None,
    ):
        if initial_interval <= 0:
            raise ValueError("initial_interval must be positive")
        if max_interval < initial_interval:
            raise ValueError("max_interval must be >= initial_interval")
        if multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        if not 0 <= randomization_factor < 1:
            raise ValueError("randomization_factor must be in [0, 1)")

        self.initial_interval = initial_interval
        self.max_interval = max_interval
        self.multiplier = multiplier
        self.randomization_factor = randomization_factor
        self._rng = rng or random.Random()

        self.current_interval = initial_interval
        self.attempts = 0

    @property
    def max_delay(self) -> float:
        return self.max_interval * (1 + self.randomization_factor)

    def next(self) -> float:
        """Returns the delay in seconds before the next attempt and advances the state."""
        interval = self.current_interval
        delta = self.randomization_factor * interval
        delay = self._rng.uniform(interval - delta, interval + delta)

        self.attempts += 1
        self.current_interval = min(self.current_interval * self.multiplier, self.max_interval)
        return max(delay, 0.0)

    def reset(self) -> None:
        self.current_interval = self.initial_interval
        self.attempts = 0

    def __repr__(self) -> str:
        return (
            f"BackoffPolicy(current_interval={self.current_interval:.3f}, "
            f"attempts={self.attempts}, max_interval={self.max_interval})"
        )
