import asyncio
from typing import Protocol

from worker_harness.errors import SleepInterruptedError


class Sleeper(Protocol):
    async def sleep(self, seconds: float) -> None:
        """Waits for `seconds`. Raises SleepInterruptedError when shutdown was requested."""
        ...


class InterruptibleSleeper:
    """
    Real-time sleeper shared by every worker loop of a harness.

    interrupt() wakes all current sleepers and makes every later sleep fail
    immediately, so each loop stops at its next backoff point.
    """

    def __init__(self):
        self._interrupted = asyncio.Event()

    @property
    def interrupted(self) -> bool:
        return self._interrupted.is_set()

    async def sleep(self, seconds: float) -> None:
        if self._interrupted.is_set():
            raise SleepInterruptedError("sleep interrupted by shutdown")
        try:
            await asyncio.wait_for(self._interrupted.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise SleepInterruptedError("sleep interrupted by shutdown")

    def interrupt(self) -> None:
        self._interrupted.set()
