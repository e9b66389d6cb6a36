"""Shared test fixtures."""

import pytest

from worker_harness import context
from worker_harness.errors import SleepInterruptedError
from worker_harness.settings import HarnessSettings

PROJECT_ID = "TEST_PROJECT_ID"
JOB_ID = "TEST_JOB_ID"
WORKER_ID = "TEST_WORKER_ID"


class RecordingSleeper:
    """Instant sleeper that records requested delays and interrupts after `limit` calls."""

    def __init__(self, limit=0):
        self.limit = limit
        self.delays = []

    async def sleep(self, seconds):
        self.delays.append(seconds)
        if len(self.delays) > self.limit:
            raise SleepInterruptedError("Stopping the retry loop.")


def make_settings(**overrides) -> HarnessSettings:
    values = {
        "PROJECT_ID": PROJECT_ID,
        "JOB_ID": JOB_ID,
        "WORKER_ID": WORKER_ID,
        "SERVICE_URL": "http://coordinator.test",
    }
    values.update(overrides)
    return HarnessSettings(**values)


@pytest.fixture(autouse=True)
def clean_context():
    context.clear()
    yield
    context.clear()


@pytest.fixture()
def settings():
    return make_settings()
