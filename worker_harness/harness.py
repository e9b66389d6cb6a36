import asyncio
import logging
import os
import signal
from typing import List, Optional, Protocol

import httpx

from worker_harness import context
from worker_harness.backoff import BackoffPolicy
from worker_harness.client import WorkUnitClient
from worker_harness.errors import SleepInterruptedError, TransportError
from worker_harness.metrics import ACTIVE_LOOPS, BACKOFF_SLEEP
from worker_harness.settings import HarnessSettings
from worker_harness.sleeper import InterruptibleSleeper, Sleeper
from worker_harness.states import WorkerState
from worker_harness.worker import Handler, Worker

logger = logging.getLogger(__name__)


class WorkExecutor(Protocol):
    async def get_and_perform_work(self) -> bool:
        ...


def resolve_worker_count(configured: Optional[int]) -> int:
    if configured is not None and configured > 0:
        return configured
    return max(os.cpu_count() or 1, 1)


def backoff_from_settings(settings: HarnessSettings) -> BackoffPolicy:
    return BackoffPolicy(
        initial_interval=settings.BACKOFF_INITIAL_INTERVAL_SECONDS,
        max_interval=settings.BACKOFF_MAX_INTERVAL_SECONDS,
        multiplier=settings.BACKOFF_MULTIPLIER,
        randomization_factor=settings.BACKOFF_RANDOMIZATION_FACTOR,
    )


class WorkerLoop:
    """
    Attempt / back off / attempt cycle for a single worker slot.

    A successful attempt resets this loop's backoff and goes straight to the
    next attempt. An empty or failed attempt sleeps for the next backoff delay.
    An interrupted sleep, or stop(), ends the loop for good. Task cancellation
    and protocol errors are not handled here and leave the loop as exceptions.
    """

    def __init__(
        self,
        executor: WorkExecutor,
        sleeper: Sleeper,
        backoff: BackoffPolicy,
        name: str = "worker",
        shutdown: Optional[asyncio.Event] = None,
    ):
        self.executor = executor
        self.sleeper = sleeper
        self.backoff = backoff
        self.name = name
        self.shutdown = shutdown
        self.state = WorkerState.STOPPED
        self._stop_requested = asyncio.Event()

    def stop(self):
        """Asks the loop to exit before its next attempt. A running attempt is not interrupted."""
        self._stop_requested.set()

    def _should_stop(self) -> bool:
        if self._stop_requested.is_set():
            return True
        return self.shutdown is not None and self.shutdown.is_set()

    async def _attempt(self) -> bool:
        self.state = WorkerState.ATTEMPTING
        try:
            return await self.executor.get_and_perform_work()
        except TransportError as e:
            logger.warning("%s: attempt failed: %s", self.name, e)
            return False

    async def run(self):
        ACTIVE_LOOPS.inc()
        logger.debug("%s started", self.name)
        try:
            while not self._should_stop():
                if await self._attempt():
                    self.backoff.reset()
                    # Successes never reach the sleeper; give sibling loops a turn.
                    await asyncio.sleep(0)
                    continue

                self.state = WorkerState.BACKING_OFF
                delay = self.backoff.next()
                BACKOFF_SLEEP.observe(delay)
                logger.debug("%s: no work, backing off %.2fs (attempt %d)", self.name, delay, self.backoff.attempts)
                try:
                    await self.sleeper.sleep(delay)
                except SleepInterruptedError:
                    logger.info("%s: sleep interrupted, stopping", self.name)
                    break
        finally:
            self.state = WorkerState.STOPPED
            ACTIVE_LOOPS.dec()


async def process_work(
    settings: HarnessSettings,
    executor: WorkExecutor,
    sleeper: Sleeper,
    shutdown: Optional[asyncio.Event] = None,
) -> List[WorkerLoop]:
    """
    Runs one WorkerLoop per worker slot until every loop has stopped.

    The slot count is NUMBER_OF_WORKER_HARNESS_THREADS when positive, otherwise
    the host CPU count. Every loop gets its own BackoffPolicy and shares the
    executor and sleeper. If any loop raises, the others are cancelled and the
    error is re-raised to the caller.
    """
    context.set_job(settings.JOB_ID, settings.WORKER_ID)
    count = resolve_worker_count(settings.NUMBER_OF_WORKER_HARNESS_THREADS)
    logger.info("Starting %d worker loop(s) for job %s", count, settings.JOB_ID)

    loops = [
        WorkerLoop(executor, sleeper, backoff_from_settings(settings), name=f"worker-{i}", shutdown=shutdown)
        for i in range(count)
    ]
    tasks = [asyncio.create_task(loop.run(), name=loop.name) for loop in loops]

    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
    return loops


class WorkerHarness:
    def __init__(
        self,
        settings: HarnessSettings,
        client: WorkUnitClient,
        worker: Worker,
        sleeper: Optional[InterruptibleSleeper] = None,
    ):
        self.settings = settings
        self.client = client
        self.worker = worker
        self.sleeper = sleeper or InterruptibleSleeper()
        self._shutdown = asyncio.Event()

    @classmethod
    def create(
        cls,
        settings: HarnessSettings,
        handler: Handler,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "WorkerHarness":
        context.set_job(settings.JOB_ID, settings.WORKER_ID)
        client = WorkUnitClient(
            settings.SERVICE_URL,
            project_id=settings.PROJECT_ID,
            job_id=settings.JOB_ID,
            worker_id=settings.WORKER_ID,
            api_key=settings.API_KEY,
            lease_duration=settings.LEASE_DURATION,
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
            transport=transport,
        )
        worker = Worker(client, handler, report_status_interval=settings.REPORT_STATUS_INTERVAL_SECONDS)
        return cls(settings, client, worker)

    async def run(self):
        # Setup signal handlers
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.stop)
            except NotImplementedError:
                # Windows support
                pass

        logger.info(
            "Worker harness %s started (project=%s job=%s)",
            self.settings.WORKER_ID,
            self.settings.PROJECT_ID,
            self.settings.JOB_ID,
        )
        try:
            await process_work(self.settings, self.worker, self.sleeper, shutdown=self._shutdown)
        finally:
            await self.client.close()
            logger.info("Worker harness stopped")

    def stop(self):
        logger.info("Shutdown signal received")
        self._shutdown.set()
        self.sleeper.interrupt()
