import pytest

from worker_harness.models import (
    LeaseWorkItemRequest,
    LeaseWorkItemResponse,
    WorkItem,
    parse_duration,
)


@pytest.mark.parametrize(
    "value, expected",
    [("10s", 10.0), ("0.5s", 0.5), (" 3s ", 3.0), ("", None), (None, None), ("10m", None)],
)
def test_parse_duration(value, expected):
    assert parse_duration(value) == expected


def test_lease_request_wire_shape():
    request = LeaseWorkItemRequest.for_worker("w-1", "180s")
    wire = request.to_wire()

    assert wire["workerId"] == "w-1"
    assert wire["workerCapabilities"] == ["w-1", "remote_source", "custom_source"]
    assert wire["workItemTypes"] == ["map_task", "seq_map_task", "remote_source_task"]
    assert wire["requestedLeaseDuration"] == "180s"
    assert wire["currentWorkerTime"].endswith("Z")


def test_work_item_keeps_unknown_fields():
    item = WorkItem.model_validate({"id": "1", "mapTask": {"stageName": "s", "instructions": [1]}, "configuration": "x"})

    assert item.stage_name == "s"
    wire = item.to_wire()
    assert wire["configuration"] == "x"
    assert wire["mapTask"]["instructions"] == [1]


def test_work_item_without_stage_descriptor():
    item = WorkItem(id="1")

    assert item.stage_name is None
    assert item.has_work


def test_empty_id_is_no_work():
    response = LeaseWorkItemResponse.model_validate({"workItems": [{"id": ""}]})

    assert not response.work_items[0].has_work


def test_report_status_interval_seconds():
    assert WorkItem(id="1", report_status_interval="15s").report_status_interval_seconds == 15.0


def test_null_work_items_decodes_as_empty_list():
    response = LeaseWorkItemResponse.model_validate({"workItems": None})

    assert response.work_items == []
