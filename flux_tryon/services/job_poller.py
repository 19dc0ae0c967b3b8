"""Poll FLUX jobs until they reach a terminal state."""

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from ..cancellation import CancellationToken, cancellable_sleep
from ..config import PollingConfig
from ..errors import JobFailedError, ProcessingTimeoutError, TryOnError
from ..models import GenerationJob, JobStatus
from .flux_client import FluxClient

logger = logging.getLogger(__name__)

READY_STATUSES = {"Ready", "completed"}
FAILED_STATUSES = {
    "Error",
    "failed",
    "Request Moderated",
    "Content Moderated",
    "Task not found",
}

# (job, elapsed seconds, whether this poll failed and was absorbed)
TickCallback = Callable[[GenerationJob, float, bool], None]


def extract_image_url(body: dict[str, Any]) -> str | None:
    """Find the generated image URL in a status body."""
    result = body.get("result") or {}
    if not isinstance(result, dict):
        return None
    images = result.get("images") or []
    if images and isinstance(images[0], dict) and images[0].get("url"):
        return images[0]["url"]
    return result.get("sample") or None


class JobPoller:
    """Polls the FLUX result endpoint at a fixed interval.

    A single failed poll (timeout, connection error, 5xx, 429) is logged and
    the loop carries on; only the overall ``max_wait`` budget, a remote
    failure, or a terminal client error ends the loop early. The budget is
    measured from the moment the job was accepted.
    """

    def __init__(
        self,
        client: FluxClient,
        config: PollingConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.config = config or PollingConfig()
        self._sleep = sleep
        self._clock = clock

    async def poll(
        self,
        job: GenerationJob,
        cancel: CancellationToken | None = None,
        on_tick: TickCallback | None = None,
    ) -> GenerationJob:
        """Poll ``job`` until READY.

        Raises:
            JobFailedError: the remote service reported a failure
            ProcessingTimeoutError: ``max_wait`` elapsed first
        """
        max_wait = self.config.max_wait
        interval = self.config.poll_interval
        logger.info("Polling job %s (every %.1fs, budget %.0fs)", job.id, interval, max_wait)

        while True:
            elapsed = self._elapsed(job)
            if elapsed >= max_wait:
                break
            if cancel is not None:
                cancel.raise_if_cancelled()

            body = await self._fetch(job, cancel)
            if body is not None:
                job.poll_count += 1
                self._apply(job, body)
            if on_tick is not None:
                on_tick(job, self._elapsed(job), body is None)

            if job.status.is_terminal:
                if job.status is JobStatus.READY:
                    logger.info("Job %s completed after %d polls", job.id, job.poll_count)
                    return job
                logger.error("Job %s failed: %s", job.id, job.error_detail)
                raise JobFailedError(
                    f"FLUX processing failed: {job.error_detail}",
                    job_id=job.id,
                    detail=job.error_detail,
                )

            remaining = max_wait - self._elapsed(job)
            if remaining <= 0:
                break
            await self._wait(min(interval, remaining), cancel)

        logger.error("Job %s exceeded %.0fs polling budget", job.id, max_wait)
        raise ProcessingTimeoutError(
            f"Virtual try-on processing timeout - job {job.id} took longer than {max_wait:.0f}s"
        )

    async def _fetch(self, job: GenerationJob, cancel: CancellationToken | None) -> dict[str, Any] | None:
        try:
            return await self.client.get_result(
                job.id,
                timeout=self.config.request_timeout,
                polling_url=job.polling_url,
                cancel=cancel,
            )
        except TryOnError as exc:
            if not exc.retryable:
                raise
            logger.warning("Status check for %s failed, will retry: %s", job.id, exc)
            return None

    def _apply(self, job: GenerationJob, body: dict[str, Any]) -> None:
        status = str(body.get("status", ""))
        logger.debug("Job %s status: %s", job.id, status)

        if status in READY_STATUSES:
            job.mark_ready(extract_image_url(body), body)
        elif status in FAILED_STATUSES:
            detail = body.get("error") or body.get("details") or status
            job.mark_failed(str(detail), body)
        else:
            job.status = JobStatus.PROCESSING if status else JobStatus.PENDING
            job.raw = body

    def _elapsed(self, job: GenerationJob) -> float:
        return self._clock() - job.submitted_monotonic

    async def _wait(self, delay: float, cancel: CancellationToken | None) -> None:
        if self._sleep is not None:
            await self._sleep(delay)
            if cancel is not None:
                cancel.raise_if_cancelled()
        else:
            await cancellable_sleep(delay, cancel)
