"""
Diagnostic context for log correlation.

Job and worker ids are recorded once when the harness is created and are
process-wide, so executor threads and other non-task code see them too. Work id
and stage name are overwritten each time a worker task leases a unit. They live
in context variables, so each asyncio task keeps its own work/stage values.
"""
import logging
from contextvars import ContextVar
from typing import Dict, Optional

_job: Dict[str, Optional[str]] = {"job_id": None, "worker_id": None}
_work_id: ContextVar[Optional[str]] = ContextVar("work_id", default=None)
_stage_name: ContextVar[Optional[str]] = ContextVar("stage_name", default=None)


def set_job(job_id: Optional[str], worker_id: Optional[str]) -> None:
    _job["job_id"] = job_id
    _job["worker_id"] = worker_id


def set_work(work_id: Optional[str], stage_name: Optional[str] = None) -> None:
    # A unit without a stage descriptor must not keep the previous unit's stage.
    _work_id.set(work_id)
    _stage_name.set(stage_name)


def get_job_id() -> Optional[str]:
    return _job["job_id"]


def get_worker_id() -> Optional[str]:
    return _job["worker_id"]


def get_work_id() -> Optional[str]:
    return _work_id.get()


def get_stage_name() -> Optional[str]:
    return _stage_name.get()


def snapshot() -> Dict[str, Optional[str]]:
    return {
        "job_id": _job["job_id"],
        "worker_id": _job["worker_id"],
        "work_id": _work_id.get(),
        "stage_name": _stage_name.get(),
    }


def clear() -> None:
    set_job(None, None)
    _work_id.set(None)
    _stage_name.set(None)


class DiagnosticContextFilter(logging.Filter):
    """Stamps job/worker/work/stage ids onto every record passing through."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in snapshot().items():
            if not hasattr(record, key):
                setattr(record, key, value if value is not None else "-")
        return True
