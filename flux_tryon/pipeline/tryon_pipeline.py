"""Virtual try-on pipeline for the FLUX API."""

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from pathlib import Path

import pydantic

from ..cancellation import CancellationToken
from ..config import PipelineConfig
from ..errors import AuthenticationError, GenerationError, ValidationError
from ..models import (
    GarmentDescription,
    GenerationJob,
    ImagePayload,
    TryOnRequest,
    TryOnResult,
    WorkflowPhase,
    WorkflowState,
)
from ..services import (
    FallbackProvider,
    FluxClient,
    ImagePreparer,
    JobPoller,
    PromptBuilder,
    ResultAssembler,
    RetryPolicy,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[WorkflowState], None]

# Poll ticks report progress inside the API_TRANSMISSION band
_TRANSMISSION_START = 60
_TRANSMISSION_END = 89


class _ProgressReporter:
    """Delivers workflow states to the caller's callback, in order."""

    def __init__(self, callback: ProgressCallback | None):
        self.callback = callback
        self.last_progress = 0

    def emit(self, phase: WorkflowPhase, progress: int, message: str, data: dict | None = None):
        if phase is not WorkflowPhase.ERROR:
            progress = max(progress, self.last_progress)
            self.last_progress = progress
        state = WorkflowState(phase=phase, progress=progress, message=message, data=data)
        logger.debug("Progress %s %d%% - %s", phase.value, progress, message)
        if self.callback is None:
            return
        try:
            self.callback(state)
        except Exception:
            logger.exception("Progress callback failed for phase %s", phase.value)

    def tick(self, job: GenerationJob, elapsed: float, max_wait: float, poll_error: bool = False):
        fraction = min(max(elapsed / max_wait, 0.0), 1.0)
        progress = _TRANSMISSION_START + int((_TRANSMISSION_END - _TRANSMISSION_START) * fraction)
        self.emit(
            WorkflowPhase.API_TRANSMISSION,
            progress,
            f"Waiting for FLUX job {job.id} ({job.status.value})...",
            {
                "job_id": job.id,
                "job_status": job.status.value,
                "poll_count": job.poll_count,
                "elapsed_s": round(elapsed, 2),
                "poll_error": poll_error,
            },
        )


class TryOnPipeline:
    """Orchestrates one virtual try-on run.

    Flow:
    1. INPUT_ANALYSIS - prepare the source photo and garment images
    2. AI_STYLING - build the generation prompt
    3. API_TRANSMISSION - submit (with retries) and poll the FLUX job
    4. OUTPUT_DELIVERY - map the finished job to a TryOnResult
    5. COMPLETED

    Any failure emits an ERROR state and is re-raised. When no usable API
    key is configured the whole flow is replaced by a mock result.
    """

    def __init__(
        self,
        config: PipelineConfig,
        client: FluxClient | None = None,
        image_preparer: ImagePreparer | None = None,
        retry_policy: RetryPolicy | None = None,
        poller: JobPoller | None = None,
    ):
        self.config = config

        # Initialize services
        self.client = client or FluxClient(config.flux, config.generation)
        self.image_preparer = image_preparer or ImagePreparer(config.images)
        self.retry_policy = retry_policy or RetryPolicy(config.retry)
        self.poller = poller or JobPoller(self.client, config.polling)
        self.prompt_builder = PromptBuilder()
        self.fallback = FallbackProvider(config.fallback)
        self.assembler = ResultAssembler(config.fallback)

    @property
    def mock_mode(self) -> bool:
        return self.fallback.should_mock(self.config.flux.api_key)

    async def run(
        self,
        request: TryOnRequest,
        on_progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> TryOnResult:
        """Run the try-on pipeline.

        Args:
            request: The try-on request
            on_progress: Called synchronously at every phase boundary and
                every poll tick. Keep it fast; the pipeline waits for it.
            cancel: Optional token to abort the run at the next await point

        Returns:
            TryOnResult with the generated image URL
        """
        reporter = _ProgressReporter(on_progress)
        started = time.monotonic()
        logger.info(
            "Try-on run started (%s, %d garments)",
            request.log_context(), len(request.garment_images),
        )

        try:
            if self.mock_mode:
                result = await self.fallback.simulate(request, cancel=cancel)
                reporter.emit(
                    WorkflowPhase.COMPLETED, 100,
                    "Virtual try-on completed (mock mode)",
                    {"mocked": True},
                )
                return result

            # Step 1: prepare images
            reporter.emit(
                WorkflowPhase.INPUT_ANALYSIS, 10,
                "Analyzing input images and styling requirements...",
            )
            source = await self._prepare_inputs(request, cancel)

            # Step 2: build the prompt
            reporter.emit(
                WorkflowPhase.AI_STYLING, 30,
                "Executing virtual try-on workflow with AI styling...",
            )
            style_context = request.style_instructions or self.config.default_style_context
            prompt = self.prompt_builder.build(
                request.garment_descriptions,
                style_context,
                base_prompt=request.prompt_text,
            )
            logger.debug("Prompt: %s", prompt)

            # Step 3: submit and wait
            reporter.emit(
                WorkflowPhase.API_TRANSMISSION, 60,
                "Transmitting data to the FLUX API for image generation...",
            )
            job = await self._submit(prompt, source, cancel)
            max_wait = self.poller.config.max_wait
            job = await self.poller.poll(
                job,
                cancel=cancel,
                on_tick=lambda j, elapsed, failed: reporter.tick(j, elapsed, max_wait, failed),
            )

            # Step 4: build the result
            reporter.emit(
                WorkflowPhase.OUTPUT_DELIVERY, 90,
                "Finalizing high-resolution output...",
            )
            elapsed_ms = int((time.monotonic() - started) * 1000)
            result = self.assembler.assemble(job, request, elapsed_ms, prompt)

        except Exception as e:
            logger.error("Try-on run failed (%s): %s", request.log_context(), e)
            reporter.emit(WorkflowPhase.ERROR, 0, f"Error: {e}")
            raise

        reporter.emit(
            WorkflowPhase.COMPLETED, 100,
            "Virtual try-on completed successfully!",
            {"image_url": result.generated_image_url},
        )
        logger.info("Try-on run finished in %d ms", result.processing_time_ms)
        return result

    async def process_tryon(
        self,
        source_image: str | Path,
        garment_images: Sequence[str | Path],
        style_context: str | None = None,
        on_progress: ProgressCallback | None = None,
        garment_descriptions: Sequence[GarmentDescription | str] | None = None,
        prompt_text: str | None = None,
        caller_ids: dict[str, str] | None = None,
        cancel: CancellationToken | None = None,
    ) -> TryOnResult:
        """Build a request from loose arguments and run it.

        This is the entry point for the app layer and the HTTP API. Without
        ``prompt_text`` the prompt defaults to "Virtual try-on of ..." built
        from the garment descriptions.
        """
        if not prompt_text:
            prompt_text = self.prompt_builder.headline(garment_descriptions)
        try:
            request = TryOnRequest(
                source_image=str(source_image),
                garment_images=tuple(str(ref) for ref in garment_images),
                prompt_text=prompt_text,
                style_instructions=style_context,
                garment_descriptions=tuple(garment_descriptions or ()),
                caller_ids=caller_ids or {},
            )
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid try-on request: {exc.errors()[0]['msg']}") from exc

        return await self.run(request, on_progress=on_progress, cancel=cancel)

    async def _prepare_inputs(
        self,
        request: TryOnRequest,
        cancel: CancellationToken | None,
    ) -> ImagePayload:
        """Prepare the source photo and check every garment reference."""
        if self.config.images.inline_remote_source:
            source_task = self.image_preparer.prepare_inline(request.source_image, cancel)
        else:
            source_task = self.image_preparer.prepare(request.source_image, cancel)

        source, *garments = await asyncio.gather(
            source_task,
            *(self.image_preparer.prepare(ref, cancel) for ref in request.garment_images),
        )
        logger.info(
            "Prepared source (%s) and %d garment images",
            source.origin.value, len(garments),
        )
        return source

    async def _submit(
        self,
        prompt: str,
        source: ImagePayload,
        cancel: CancellationToken | None,
    ) -> GenerationJob:
        """Submit to the edit endpoint, falling back to standalone generation."""
        self.client.validate_credential()
        edit, standalone = self.client.strategies

        if edit.is_applicable(source):
            try:
                return await self._submit_with(edit, prompt, source, cancel)
            except AuthenticationError:
                raise
            except GenerationError as e:
                # Transient failures that used up their retries are final;
                # an outright rejection of the edit request is not
                if e.retryable:
                    raise
                logger.warning("Edit endpoint rejected the request, using standalone generation: %s", e)
        else:
            logger.info("Source image has no inline bytes; using standalone generation")

        return await self._submit_with(standalone, prompt, source, cancel)

    async def _submit_with(self, strategy, prompt, source, cancel) -> GenerationJob:
        payload = strategy.build_payload(prompt, source)
        return await self.retry_policy.call(
            lambda: self.client.submit_job(payload, strategy.endpoint, cancel),
            cancel=cancel,
            description=f"FLUX {strategy.name} submission",
        )

    async def close(self):
        """Close HTTP clients."""
        await self.client.close()
        await self.image_preparer.close()
