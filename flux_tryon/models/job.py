"""Remote generation job tracking."""

import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    READY = "completed"
    ERROR = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.READY, JobStatus.ERROR)


class GenerationJob(BaseModel):
    """A job submitted to the FLUX API, updated in place by the job poller."""

    id: str
    endpoint: str
    status: JobStatus = JobStatus.PENDING
    result_image_url: str | None = None
    error_detail: str | None = None
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    submitted_monotonic: float = Field(default_factory=time.monotonic)
    polling_url: str | None = None
    poll_count: int = 0
    raw: dict[str, Any] = Field(default_factory=dict)

    def mark_ready(self, image_url: str | None, raw: dict[str, Any]) -> None:
        self.status = JobStatus.READY
        self.result_image_url = image_url
        self.error_detail = None
        self.raw = raw

    def mark_failed(self, detail: str, raw: dict[str, Any]) -> None:
        self.status = JobStatus.ERROR
        self.error_detail = detail
        self.result_image_url = None
        self.raw = raw
