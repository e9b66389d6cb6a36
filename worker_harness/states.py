from enum import StrEnum, auto

class WorkerState(StrEnum):
    ATTEMPTING = auto()   # Asking the executor for one unit of work
    BACKING_OFF = auto()  # Sleeping after an empty or failed attempt
    STOPPED = auto()      # Sleep interrupted, loop exited

class LeaseOutcome(StrEnum):
    WORK_FOUND = auto()
    NO_WORK = auto()
    TRANSPORT_ERROR = auto()

class WorkItemResult(StrEnum):
    SUCCEEDED = auto()
    FAILED = auto()
