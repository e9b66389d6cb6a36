import asyncio
import logging
import time
from typing import Any, Callable, Coroutine, List, Optional

from worker_harness.client import WorkUnitClient
from worker_harness.errors import TransportError
from worker_harness.metrics import WORK_ITEM_DURATION, WORK_ITEMS
from worker_harness.models import WorkItem, parse_duration
from worker_harness.states import WorkItemResult

logger = logging.getLogger(__name__)

Handler = Callable[[WorkItem], Coroutine[Any, Any, Any]]
Middleware = Callable[[WorkItem, Handler], Coroutine[Any, Any, Any]]


class _StatusReporter:
    """Tracks report index and cadence for the work item currently executing."""

    def __init__(self, client: WorkUnitClient, work_item: WorkItem, default_interval: float):
        self.client = client
        self.work_item = work_item
        self.interval = work_item.report_status_interval_seconds or default_interval
        self.report_index = 0

    async def report(self, completed: bool, errors: Optional[List[str]] = None):
        response = await self.client.report_status(
            self.work_item,
            completed=completed,
            errors=errors,
            report_index=self.report_index,
        )
        self.report_index += 1
        for state in response.work_item_service_states[:1]:
            if state.next_report_index is not None:
                self.report_index = state.next_report_index
            interval = parse_duration(state.report_status_interval)
            if interval:
                self.interval = interval
        return response

    async def progress_loop(self):
        try:
            while True:
                await asyncio.sleep(self.interval)
                logger.debug("Sending progress report for %s", self.work_item.id)
                try:
                    await self.report(completed=False)
                except TransportError as e:
                    logger.warning("Progress report failed for %s: %s", self.work_item.id, e)
        except asyncio.CancelledError:
            pass


class Worker:
    """
    Leases one work item at a time and runs it through the handler chain.

    get_and_perform_work() is the unit the harness loops call. It answers True
    when an item was leased and executed, False when there was nothing to do or
    the attempt could not proceed. Protocol errors from the client propagate.
    """

    def __init__(self, client: WorkUnitClient, handler: Handler, report_status_interval: float = 10.0):
        self.client = client
        self.handler = handler
        self.report_status_interval = report_status_interval
        self.middlewares: List[Middleware] = []

    def add_middleware(self, middleware: Middleware):
        self.middlewares.append(middleware)

    async def get_and_perform_work(self) -> bool:
        try:
            work_item = await self.client.lease_one()
        except TransportError as e:
            logger.warning("Lease failed for worker=%s: %s", self.client.worker_id, e)
            return False

        if work_item is None:
            return False
        return await self.perform_work(work_item)

    def _build_chain(self) -> Handler:
        async def core_invoker(work_item):
            return await self.handler(work_item)

        chain = core_invoker

        # Apply middleware in reverse order (onion)
        for mw in reversed(self.middlewares):
            def make_wrapper(current_mw, current_chain):
                async def wrapper(work_item):
                    return await current_mw(work_item, current_chain)
                return wrapper
            chain = make_wrapper(mw, chain)
        return chain

    async def perform_work(self, work_item: WorkItem) -> bool:
        logger.info("Processing work item %s", work_item.id)
        reporter = _StatusReporter(self.client, work_item, self.report_status_interval)
        progress_task = asyncio.create_task(reporter.progress_loop())
        started = time.monotonic()

        error_msg = None
        try:
            await self._build_chain()(work_item)
        except Exception as e:
            error_msg = f"{type(e).__name__}: {str(e)}"
        finally:
            WORK_ITEM_DURATION.observe(time.monotonic() - started)
            await self._stop_progress(progress_task)

        if error_msg is not None:
            logger.error("Work item %s failed: %s", work_item.id, error_msg)
            WORK_ITEMS.labels(result=WorkItemResult.FAILED).inc()
            await self._report_final(reporter, errors=[error_msg])
            return False

        WORK_ITEMS.labels(result=WorkItemResult.SUCCEEDED).inc()
        if await self._report_final(reporter):
            logger.info("Work item %s completed", work_item.id)
        else:
            logger.error(
                "Work item %s succeeded but completion report failed; lease may be retried",
                work_item.id,
            )
        return True

    async def _report_final(self, reporter: _StatusReporter, errors: Optional[List[str]] = None) -> bool:
        try:
            await reporter.report(completed=True, errors=errors)
            return True
        except TransportError as e:
            logger.warning("Final status report failed for %s: %s", reporter.work_item.id, e)
            return False

    @staticmethod
    async def _stop_progress(progress_task: asyncio.Task):
        progress_task.cancel()
        try:
            await progress_task
        except asyncio.CancelledError:
            pass
