"""Integration tests for full pipeline execution against a scripted FLUX API."""

import json
import time

import httpx
import pytest

from flux_tryon.cancellation import CancellationToken
from flux_tryon.config import FluxConfig, PipelineConfig
from flux_tryon.errors import (
    AuthenticationError,
    JobFailedError,
    NetworkError,
    ProcessingTimeoutError,
    TryOnCancelledError,
    ValidationError,
)
from flux_tryon.models import GarmentDescription, TryOnRequest, WorkflowPhase
from flux_tryon.pipeline import TryOnPipeline
from flux_tryon.services import FluxClient, JobPoller, RetryPolicy

from conftest import BASE_URL, FakeFluxAPI

pytestmark = pytest.mark.integration

GARMENTS = ("https://cdn.example.com/blazer.jpg",)


def ready():
    return httpx.Response(200, json={"status": "Ready", "result": {"sample": "https://cdn.flux.test/out.jpg"}})


def pending():
    return httpx.Response(200, json={"status": "Pending"})


def build_pipeline(config: PipelineConfig, api: FakeFluxAPI, clock) -> TryOnPipeline:
    """Pipeline wired to the fake API, with every sleep routed to ``clock``."""
    client = FluxClient(config.flux, config.generation, transport=api.transport)
    return TryOnPipeline(
        config,
        client=client,
        retry_policy=RetryPolicy(config.retry, sleep=clock.sleep),
        poller=JobPoller(client, config.polling, sleep=clock.sleep, clock=clock),
    )


@pytest.fixture
def api(realtime_clock):
    return FakeFluxAPI(clock=realtime_clock)


@pytest.fixture
def pipeline(live_config, api, realtime_clock):
    return build_pipeline(live_config, api, realtime_clock)


@pytest.fixture
def states():
    return []


@pytest.fixture
def tryon_request(temp_image_file):
    return TryOnRequest(
        source_image=str(temp_image_file),
        garment_images=GARMENTS,
        style_instructions="golden hour",
        garment_descriptions=(GarmentDescription(category="blazer", color="navy"),),
        caller_ids={"user_id": "u1", "session_id": "s1"},
    )


class TestMockMode:
    """Tests for runs without a usable credential."""

    @pytest.mark.asyncio
    async def test_mock_run_makes_no_requests(self, mock_config, flux_api, fake_clock, tryon_request, states):
        pipeline = build_pipeline(mock_config, flux_api, fake_clock)

        started = time.monotonic()
        result = await pipeline.run(tryon_request, on_progress=states.append)

        assert time.monotonic() - started < 5.0
        assert result.mocked is True
        assert result.generated_image_url == mock_config.fallback.mock_image_url
        assert result.confidence_score == 0.95
        assert flux_api.requests == []
        assert states[-1].phase is WorkflowPhase.COMPLETED
        assert states[-1].progress == 100

    @pytest.mark.asyncio
    async def test_process_tryon_derives_prompt_text(self, mock_config, flux_api, fake_clock):
        pipeline = build_pipeline(mock_config, flux_api, fake_clock)

        result = await pipeline.process_tryon(
            "https://cdn.example.com/me.jpg",
            GARMENTS,
            garment_descriptions=[GarmentDescription(category="blazer", color="navy"), "Black wool coat"],
        )

        assert result.metadata.prompt_used == "Virtual try-on of navy blazer, Black wool coat"

    def test_placeholder_key_means_mock(self):
        config = PipelineConfig(flux=FluxConfig(api_key="bfl_sk_test_1234567890abcdef"))

        assert TryOnPipeline(config).mock_mode is True


class TestLiveRun:
    """Tests for the submit-and-poll flow."""

    @pytest.mark.asyncio
    async def test_successful_run(self, pipeline, api, tryon_request, states):
        api.poll_responses = [pending(), pending(), ready()]

        result = await pipeline.run(tryon_request, on_progress=states.append)

        assert result.generated_image_url == "https://cdn.flux.test/out.jpg"
        assert result.mocked is False
        assert "navy blazer" in result.metadata.prompt_used
        assert "golden hour" in result.metadata.prompt_used
        assert result.metadata.item_references_used == list(GARMENTS)

        submission = api.submissions[0]
        assert str(submission.url) == f"{BASE_URL}/flux-kontext-pro"
        payload = json.loads(submission.content)
        assert payload["input_image"].startswith("data:image/")
        assert payload["guidance"] == 2.5
        assert api.polls[0].url.params["id"] == "abc123"

    @pytest.mark.asyncio
    async def test_progress_phases(self, pipeline, api, tryon_request, states):
        api.poll_responses = [pending(), pending(), ready()]

        await pipeline.run(tryon_request, on_progress=states.append)

        phases = [s.phase for s in states]
        assert phases[:3] == [
            WorkflowPhase.INPUT_ANALYSIS,
            WorkflowPhase.AI_STYLING,
            WorkflowPhase.API_TRANSMISSION,
        ]
        assert phases[-2:] == [WorkflowPhase.OUTPUT_DELIVERY, WorkflowPhase.COMPLETED]

        ticks = [s for s in states if s.phase is WorkflowPhase.API_TRANSMISSION and s.data]
        assert len(ticks) == 3
        assert [t.data["job_status"] for t in ticks] == ["processing", "processing", "completed"]
        assert all(t.data["job_id"] == "abc123" for t in ticks)

        progress = [s.progress for s in states]
        assert progress == sorted(progress)
        assert progress[-1] == 100

    @pytest.mark.asyncio
    async def test_failed_poll_still_reports_progress(self, pipeline, api, tryon_request, states):
        api.poll_responses = [httpx.Response(502, text="bad gateway"), ready()]

        await pipeline.run(tryon_request, on_progress=states.append)

        ticks = [s for s in states if s.phase is WorkflowPhase.API_TRANSMISSION and s.data]
        assert [t.data["poll_error"] for t in ticks] == [True, False]
        assert ticks[0].data["poll_count"] == 0

    @pytest.mark.asyncio
    async def test_remote_source_uses_standalone_generation(self, pipeline, api, states):
        api.poll_responses = [ready()]

        await pipeline.process_tryon(
            source_image="https://cdn.example.com/me.jpg",
            garment_images=GARMENTS,
            on_progress=states.append,
        )

        assert len(api.submissions) == 1
        assert str(api.submissions[0].url) == f"{BASE_URL}/flux-pro-1.1"
        payload = json.loads(api.submissions[0].content)
        assert payload["width"] == 1024
        assert "input_image" not in payload

    @pytest.mark.asyncio
    async def test_rejected_edit_falls_back_to_standalone(self, pipeline, api, tryon_request):
        api.submit_responses = [
            httpx.Response(400, text="unsupported image"),
            httpx.Response(200, json={"id": "std1"}),
        ]
        api.poll_responses = [ready()]

        result = await pipeline.run(tryon_request)

        assert [r.url.path for r in api.submissions] == ["/v1/flux-kontext-pro", "/v1/flux-pro-1.1"]
        assert api.polls[0].url.params["id"] == "std1"
        assert result.generated_image_url == "https://cdn.flux.test/out.jpg"

    @pytest.mark.asyncio
    async def test_ready_without_url_uses_placeholder(self, pipeline, api, tryon_request, live_config):
        api.poll_responses = [httpx.Response(200, json={"status": "Ready", "result": {}})]

        result = await pipeline.run(tryon_request)

        assert result.generated_image_url == live_config.fallback.placeholder_image_url
        assert result.warnings

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_break_run(self, pipeline, api, tryon_request):
        api.poll_responses = [ready()]

        def explode(state):
            raise RuntimeError("UI went away")

        result = await pipeline.run(tryon_request, on_progress=explode)

        assert result.generated_image_url == "https://cdn.flux.test/out.jpg"


class TestFailures:
    """Tests for error propagation and the ERROR state."""

    @pytest.mark.asyncio
    async def test_network_failure_retries_three_times(self, pipeline, api, realtime_clock, tryon_request, states):
        api.submit_responses = [httpx.ConnectError("connection refused")]

        with pytest.raises(NetworkError):
            await pipeline.run(tryon_request, on_progress=states.append)

        assert len(api.submissions) == 3
        assert all(r.url.path == "/v1/flux-kontext-pro" for r in api.submissions)
        assert sum(realtime_clock.sleeps) >= 6.0
        assert states[-1].phase is WorkflowPhase.ERROR
        assert states[-1].progress == 0

    @pytest.mark.asyncio
    async def test_auth_failure_is_not_retried(self, pipeline, api, tryon_request):
        api.submit_responses = [httpx.Response(401, text="invalid key")]

        with pytest.raises(AuthenticationError):
            await pipeline.run(tryon_request)

        assert len(api.submissions) == 1

    @pytest.mark.asyncio
    async def test_malformed_key_fails_before_any_request(self, live_config, api, realtime_clock, tryon_request):
        config = live_config.model_copy(update={"flux": FluxConfig(base_url=BASE_URL, api_key="sk-not-flux")})
        pipeline = build_pipeline(config, api, realtime_clock)

        with pytest.raises(AuthenticationError):
            await pipeline.run(tryon_request)

        assert api.requests == []

    @pytest.mark.asyncio
    async def test_remote_failure(self, pipeline, api, tryon_request, states):
        api.poll_responses = [pending(), httpx.Response(200, json={"status": "Error"})]

        with pytest.raises(JobFailedError) as exc_info:
            await pipeline.run(tryon_request, on_progress=states.append)

        assert exc_info.value.detail == "Error"
        assert states[-1].phase is WorkflowPhase.ERROR

    @pytest.mark.asyncio
    async def test_polling_timeout(self, pipeline, api, tryon_request, states):
        with pytest.raises(ProcessingTimeoutError):
            await pipeline.run(tryon_request, on_progress=states.append)

        job_started = api.poll_times[0]
        assert all(t - job_started < 120.0 for t in api.poll_times)
        assert states[-1].phase is WorkflowPhase.ERROR

    @pytest.mark.asyncio
    async def test_missing_source_file(self, pipeline, api, tmp_path):
        with pytest.raises(ValidationError):
            await pipeline.process_tryon(str(tmp_path / "nope.jpg"), GARMENTS)

        assert api.requests == []

    @pytest.mark.asyncio
    async def test_empty_garment_list_is_rejected(self, pipeline, temp_image_file):
        with pytest.raises(ValidationError):
            await pipeline.process_tryon(str(temp_image_file), [])


class TestCancellation:
    """Tests for cooperative cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, pipeline, api, tryon_request):
        token = CancellationToken()
        token.cancel("screen closed")

        with pytest.raises(TryOnCancelledError):
            await pipeline.run(tryon_request, cancel=token)

        assert api.requests == []

    @pytest.mark.asyncio
    async def test_cancel_while_polling(self, pipeline, api, tryon_request):
        token = CancellationToken()

        def on_progress(state):
            if state.data and "job_id" in state.data:
                token.cancel("screen closed")

        with pytest.raises(TryOnCancelledError):
            await pipeline.run(tryon_request, on_progress=on_progress, cancel=token)

        assert len(api.polls) == 1
