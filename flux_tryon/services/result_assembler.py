"""Map a finished FLUX job to the caller-facing result."""

import logging

from ..config import FallbackConfig
from ..models import GenerationJob, JobStatus, ResultMetadata, TryOnRequest, TryOnResult

logger = logging.getLogger(__name__)


class ResultAssembler:
    def __init__(self, config: FallbackConfig | None = None):
        self.config = config or FallbackConfig()

    def assemble(
        self,
        job: GenerationJob,
        request: TryOnRequest,
        elapsed_ms: int,
        prompt: str | None = None,
    ) -> TryOnResult:
        """Build the result for a READY job.

        A READY job without an image URL gets the placeholder image and a
        warning on the result instead of failing the run.
        """
        if job.status is not JobStatus.READY:
            raise ValueError(f"Job {job.id} is {job.status.value}, not ready")

        warnings = []
        image_url = job.result_image_url
        if not image_url:
            message = f"Job {job.id} reported ready without an image URL; using placeholder image"
            logger.warning(message)
            warnings.append(message)
            image_url = self.config.placeholder_image_url

        return TryOnResult(
            generated_image_url=image_url,
            processing_time_ms=max(int(elapsed_ms), 0),
            confidence_score=self.config.confidence,
            metadata=ResultMetadata(
                prompt_used=prompt or request.prompt_text,
                style_instructions=request.style_instructions or "",
                item_references_used=list(request.garment_images),
            ),
            warnings=warnings,
        )
