import hashlib
import hmac
import json
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from worker_harness import context
from worker_harness.errors import MalformedResponseError, TooManyWorkItemsError, TransportError
from worker_harness.metrics import LEASE_ATTEMPTS, LEASE_PROTOCOL_ERRORS
from worker_harness.models import (
    LeaseWorkItemRequest,
    LeaseWorkItemResponse,
    ReportWorkItemStatusRequest,
    ReportWorkItemStatusResponse,
    Status,
    WorkItem,
    WorkItemStatus,
    format_timestamp,
)
from worker_harness.states import LeaseOutcome

logger = logging.getLogger(__name__)

class WorkUnitClient:
    def __init__(
        self,
        base_url: str,
        project_id: str,
        job_id: str,
        worker_id: str,
        api_key: Optional[str] = None,
        lease_duration: Optional[str] = "180s",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.project_id = project_id
        self.job_id = job_id
        self.worker_id = worker_id
        self.api_key = api_key
        self.lease_duration = lease_duration
        self.client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    @property
    def _work_items_path(self) -> str:
        return f"/v1b3/projects/{self.project_id}/jobs/{self.job_id}/workItems"

    @staticmethod
    def _serialize_body(json_body: Dict[str, Any]) -> bytes:
        # Stable encoding keeps signatures deterministic and payloads compact.
        return json.dumps(json_body, sort_keys=True, separators=(",", ":")).encode("utf-8")

    def _build_headers(self, body: bytes) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            signature = hmac.new(
                self.api_key.encode("utf-8"),
                body,
                hashlib.sha256,
            ).hexdigest()
            headers["X-Worker-Signature"] = signature
        return headers

    async def _post(self, path: str, json_body: Dict[str, Any]) -> Any:
        content = self._serialize_body(json_body)
        try:
            resp = await self.client.post(path, content=content, headers=self._build_headers(content))
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            raise TransportError(
                f"coordinator rejected {path} with status {status_code}",
                status_code=status_code,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"request to {path} failed: {e}") from e

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise MalformedResponseError(f"response from {path} is not JSON: {e}") from e

    async def lease_one(self) -> Optional[WorkItem]:
        """
        Leases at most one work item for this worker.

        Returns None when the coordinator has no work: an empty list, or a single
        item without an id. A response with more than one item is a protocol
        violation and raises TooManyWorkItemsError rather than picking one.
        Transport failures raise TransportError.
        """
        request = LeaseWorkItemRequest.for_worker(self.worker_id, self.lease_duration)

        try:
            data = await self._post(f"{self._work_items_path}:lease", request.to_wire())
            response = LeaseWorkItemResponse.model_validate(data)
        except ValidationError as e:
            LEASE_ATTEMPTS.labels(outcome=LeaseOutcome.TRANSPORT_ERROR).inc()
            raise MalformedResponseError(f"lease response does not match schema: {e}") from e
        except TransportError:
            LEASE_ATTEMPTS.labels(outcome=LeaseOutcome.TRANSPORT_ERROR).inc()
            raise

        work_items = response.work_items
        if len(work_items) > 1:
            LEASE_PROTOCOL_ERRORS.inc()
            raise TooManyWorkItemsError(len(work_items))

        if not work_items or not work_items[0].has_work:
            LEASE_ATTEMPTS.labels(outcome=LeaseOutcome.NO_WORK).inc()
            logger.debug("No work available for worker=%s", self.worker_id)
            return None

        work_item = work_items[0]
        context.set_work(work_item.id, work_item.stage_name)
        LEASE_ATTEMPTS.labels(outcome=LeaseOutcome.WORK_FOUND).inc()
        logger.info("Leased work item %s (stage=%s)", work_item.id, work_item.stage_name)
        return work_item

    async def report_status(
        self,
        work_item: WorkItem,
        completed: bool,
        errors: Optional[List[str]] = None,
        report_index: int = 0,
    ) -> ReportWorkItemStatusResponse:
        status = WorkItemStatus(
            work_item_id=work_item.id,
            completed=completed,
            report_index=report_index,
            errors=[Status(message=message) for message in errors or []],
            requested_lease_duration=None if completed else self.lease_duration,
        )
        request = ReportWorkItemStatusRequest(
            worker_id=self.worker_id,
            current_worker_time=format_timestamp(),
            work_item_statuses=[status],
        )
        data = await self._post(f"{self._work_items_path}:reportStatus", request.to_wire())
        try:
            return ReportWorkItemStatusResponse.model_validate(data)
        except ValidationError as e:
            raise MalformedResponseError(f"status response does not match schema: {e}") from e

    async def close(self):
        await self.client.aclose()

    async def __aenter__(self) -> "WorkUnitClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
