import re
from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Capabilities and work item types this worker advertises, in wire order.
WORKER_CAPABILITY_TAGS = ("remote_source", "custom_source")
WORK_ITEM_TYPES = ("map_task", "seq_map_task", "remote_source_task")

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)s\s*$")


def parse_duration(value: Optional[str]) -> Optional[float]:
    """Parses a protobuf-style duration ("10s", "0.5s") into seconds."""
    if not value:
        return None
    match = _DURATION_RE.match(value)
    if not match:
        return None
    return float(match.group(1))


def format_timestamp(moment: Optional[datetime] = None) -> str:
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class MapTask(WireModel):
    stage_name: Optional[str] = None
    system_name: Optional[str] = None


class SeqMapTask(WireModel):
    stage_name: Optional[str] = None
    system_name: Optional[str] = None
    name: Optional[str] = None


class WorkItem(WireModel):
    id: Optional[str] = None
    project_id: Optional[str] = None
    job_id: Optional[str] = None
    map_task: Optional[MapTask] = None
    seq_map_task: Optional[SeqMapTask] = None
    lease_expire_time: Optional[str] = None
    report_status_interval: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_string(cls, v):
        # int64 ids arrive either as JSON strings or numbers
        if v is None or isinstance(v, str):
            return v
        return str(v)

    @property
    def has_work(self) -> bool:
        return bool(self.id)

    @property
    def stage_name(self) -> Optional[str]:
        if self.map_task is not None:
            return self.map_task.stage_name
        if self.seq_map_task is not None:
            return self.seq_map_task.stage_name
        return None

    @property
    def report_status_interval_seconds(self) -> Optional[float]:
        return parse_duration(self.report_status_interval)


class LeaseWorkItemRequest(WireModel):
    worker_id: str
    worker_capabilities: List[str]
    work_item_types: List[str]
    requested_lease_duration: Optional[str] = None
    current_worker_time: Optional[str] = None

    @classmethod
    def for_worker(cls, worker_id: str, lease_duration: Optional[str] = None) -> "LeaseWorkItemRequest":
        return cls(
            worker_id=worker_id,
            worker_capabilities=[worker_id, *WORKER_CAPABILITY_TAGS],
            work_item_types=list(WORK_ITEM_TYPES),
            requested_lease_duration=lease_duration,
            current_worker_time=format_timestamp(),
        )


class LeaseWorkItemResponse(WireModel):
    work_items: List[WorkItem] = Field(default_factory=list)

    @field_validator("work_items", mode="before")
    @classmethod
    def _null_means_empty(cls, v):
        return [] if v is None else v


class Status(WireModel):
    code: int = 2  # UNKNOWN
    message: str


class WorkItemStatus(WireModel):
    work_item_id: str
    completed: bool
    report_index: int = 0
    errors: List[Status] = Field(default_factory=list)
    requested_lease_duration: Optional[str] = None


class ReportWorkItemStatusRequest(WireModel):
    worker_id: str
    current_worker_time: str
    work_item_statuses: List[WorkItemStatus]


class WorkItemServiceState(WireModel):
    lease_expire_time: Optional[str] = None
    report_status_interval: Optional[str] = None
    next_report_index: Optional[int] = None


class ReportWorkItemStatusResponse(WireModel):
    work_item_service_states: List[WorkItemServiceState] = Field(default_factory=list)
