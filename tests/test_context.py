import asyncio
import io
import logging
import threading

import pytest

from worker_harness import context
from worker_harness.context import DiagnosticContextFilter
from worker_harness.log_config import configure_logging


def test_job_and_work_values_are_readable():
    context.set_job("job-1", "worker-1")
    context.set_work("1234", "stage-a")

    assert context.snapshot() == {
        "job_id": "job-1",
        "worker_id": "worker-1",
        "work_id": "1234",
        "stage_name": "stage-a",
    }


def test_work_without_stage_clears_previous_stage():
    context.set_work("1", "stage-a")
    context.set_work("2")

    assert context.get_work_id() == "2"
    assert context.get_stage_name() is None


def test_filter_stamps_records():
    context.set_job("job-1", "worker-1")
    record = logging.LogRecord("test", logging.INFO, __file__, 1, "hello", None, None)

    assert DiagnosticContextFilter().filter(record) is True
    assert record.job_id == "job-1"
    assert record.worker_id == "worker-1"
    assert record.work_id == "-"
    assert record.stage_name == "-"


@pytest.mark.asyncio
async def test_each_task_keeps_its_own_work_values():
    context.set_job("job-1", "worker-1")
    ready = asyncio.Event()

    async def lease(work_id, stage):
        context.set_work(work_id, stage)
        await ready.wait()
        return context.snapshot()

    first = asyncio.create_task(lease("1", "a"))
    second = asyncio.create_task(lease("2", "b"))
    await asyncio.sleep(0)
    ready.set()
    snap_a, snap_b = await asyncio.gather(first, second)

    assert (snap_a["work_id"], snap_a["stage_name"]) == ("1", "a")
    assert (snap_b["work_id"], snap_b["stage_name"]) == ("2", "b")
    assert snap_a["job_id"] == snap_b["job_id"] == "job-1"
    assert context.get_work_id() is None


@pytest.fixture()
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_configured_logging_includes_diagnostic_ids(restore_root_logger):
    stream = io.StringIO()
    configure_logging("INFO", stream=stream)
    context.set_job("job-1", "worker-1")
    context.set_work("1234", "stage-a")

    logging.getLogger("worker_harness.test").info("leased")

    line = stream.getvalue()
    assert "[job=job-1 worker=worker-1 work=1234 stage=stage-a] leased" in line


@pytest.mark.asyncio
async def test_job_and_worker_are_visible_from_other_threads():
    context.set_job("job-1", "worker-1")
    context.set_work("1234", "stage-a")

    from_executor = await asyncio.get_running_loop().run_in_executor(None, context.snapshot)

    seen = {}
    thread = threading.Thread(target=lambda: seen.update(context.snapshot()))
    thread.start()
    thread.join()

    for snap in (from_executor, seen):
        assert snap["job_id"] == "job-1"
        assert snap["worker_id"] == "worker-1"
    # Work values stay with the task that leased the unit.
    assert seen["work_id"] is None
    assert seen["stage_name"] is None
