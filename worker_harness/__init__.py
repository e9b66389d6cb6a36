from .backoff import BackoffPolicy
from .client import WorkUnitClient
from .errors import (
    HarnessError,
    MalformedResponseError,
    ProtocolError,
    SleepInterruptedError,
    TooManyWorkItemsError,
    TransportError,
)
from .harness import WorkerHarness, WorkerLoop, process_work
from .models import MapTask, SeqMapTask, WorkItem
from .settings import HarnessSettings
from .sleeper import InterruptibleSleeper, Sleeper
from .worker import Handler, Middleware, Worker

__all__ = [
    "BackoffPolicy",
    "Handler",
    "HarnessError",
    "HarnessSettings",
    "InterruptibleSleeper",
    "MalformedResponseError",
    "MapTask",
    "Middleware",
    "ProtocolError",
    "SeqMapTask",
    "SleepInterruptedError",
    "Sleeper",
    "TooManyWorkItemsError",
    "TransportError",
    "WorkItem",
    "WorkUnitClient",
    "Worker",
    "WorkerHarness",
    "WorkerLoop",
    "process_work",
]
