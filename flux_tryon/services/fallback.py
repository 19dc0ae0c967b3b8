"""Dry-run mode: canned results without touching the FLUX API."""

import logging
import time

from ..cancellation import CancellationToken, cancellable_sleep
from ..config import FallbackConfig
from ..models import ResultMetadata, TryOnRequest, TryOnResult

logger = logging.getLogger(__name__)


class FallbackProvider:
    """Decides whether a run should be mocked and produces the mock result.

    ``mock_mode`` in the configuration is authoritative when set. When it
    is left unset, mock mode applies to a missing credential or to the
    documented placeholder key.
    """

    def __init__(self, config: FallbackConfig | None = None):
        self.config = config or FallbackConfig()

    def should_mock(self, credential: str | None) -> bool:
        if self.config.mock_mode is not None:
            return self.config.mock_mode
        if not credential or not credential.strip():
            return True
        return credential.strip() == self.config.placeholder_api_key

    async def simulate(
        self,
        request: TryOnRequest,
        prompt: str | None = None,
        cancel: CancellationToken | None = None,
    ) -> TryOnResult:
        """Wait ``mock_delay`` seconds and return the canned result."""
        logger.warning("FLUX API key not configured or mock mode on - returning mock result")
        started = time.monotonic()
        await cancellable_sleep(self.config.mock_delay, cancel)

        return TryOnResult(
            generated_image_url=self.config.mock_image_url,
            processing_time_ms=int((time.monotonic() - started) * 1000),
            confidence_score=self.config.confidence,
            metadata=ResultMetadata(
                prompt_used=prompt or request.prompt_text,
                style_instructions=request.style_instructions or "",
                item_references_used=list(request.garment_images),
            ),
            mocked=True,
        )
