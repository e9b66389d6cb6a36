import logging
import sys
from typing import Optional, TextIO

from worker_harness.context import DiagnosticContextFilter

LOG_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s "
    "[job=%(job_id)s worker=%(worker_id)s work=%(work_id)s stage=%(stage_name)s] "
    "%(message)s"
)


def _as_level(level: str | int | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return logging.INFO


def configure_logging(level: str | int | None = None, stream: Optional[TextIO] = None) -> logging.Handler:
    handler = logging.StreamHandler(stream=stream or sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(DiagnosticContextFilter())

    root = logging.getLogger()
    root.setLevel(_as_level(level))
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)

    # httpx logs every request at INFO; lease polling would drown the output.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return handler
