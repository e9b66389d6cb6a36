from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from worker_harness.backoff import (
    DEFAULT_INITIAL_INTERVAL_SECONDS,
    DEFAULT_MAX_INTERVAL_SECONDS,
    DEFAULT_MULTIPLIER,
    DEFAULT_RANDOMIZATION_FACTOR,
)


class HarnessSettings(BaseSettings):
    # Coordinator
    SERVICE_URL: str = "http://localhost:8000"
    API_KEY: Optional[str] = None
    REQUEST_TIMEOUT_SECONDS: float = 10.0

    # Identity
    PROJECT_ID: str
    JOB_ID: str
    WORKER_ID: str

    # Pool
    NUMBER_OF_WORKER_HARNESS_THREADS: Optional[int] = None

    # Backoff between empty or failed lease attempts
    BACKOFF_INITIAL_INTERVAL_SECONDS: float = DEFAULT_INITIAL_INTERVAL_SECONDS
    BACKOFF_MAX_INTERVAL_SECONDS: float = DEFAULT_MAX_INTERVAL_SECONDS
    BACKOFF_MULTIPLIER: float = DEFAULT_MULTIPLIER
    BACKOFF_RANDOMIZATION_FACTOR: float = Field(default=DEFAULT_RANDOMIZATION_FACTOR, ge=0, lt=1)

    # Leases
    LEASE_DURATION: str = "180s"
    REPORT_STATUS_INTERVAL_SECONDS: float = 10.0

    # Observability
    METRICS_PORT: Optional[int] = None
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    @field_validator("PROJECT_ID", "JOB_ID", "WORKER_ID")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v

    @model_validator(mode="after")
    def _check_backoff(self) -> "HarnessSettings":
        if self.BACKOFF_INITIAL_INTERVAL_SECONDS <= 0:
            raise ValueError("BACKOFF_INITIAL_INTERVAL_SECONDS must be positive")
        if self.BACKOFF_MAX_INTERVAL_SECONDS < self.BACKOFF_INITIAL_INTERVAL_SECONDS:
            raise ValueError("BACKOFF_MAX_INTERVAL_SECONDS must be >= BACKOFF_INITIAL_INTERVAL_SECONDS")
        if self.BACKOFF_MULTIPLIER < 1:
            raise ValueError("BACKOFF_MULTIPLIER must be >= 1")
        return self


@lru_cache
def get_settings() -> HarnessSettings:
    return HarnessSettings()
