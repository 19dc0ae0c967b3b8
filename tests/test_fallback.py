"""Unit tests for mock mode and result assembly."""

import pytest

from flux_tryon.config import FallbackConfig
from flux_tryon.models import GenerationJob, JobStatus, TryOnRequest
from flux_tryon.services.fallback import FallbackProvider
from flux_tryon.services.result_assembler import ResultAssembler

PLACEHOLDER_KEY = "bfl_sk_test_1234567890abcdef"


@pytest.fixture
def request_():
    return TryOnRequest(
        source_image="file:///tmp/me.jpg",
        garment_images=("https://cdn.example.com/a.jpg", "https://cdn.example.com/b.jpg"),
        prompt_text="Virtual try-on of navy blazer",
        style_instructions="street style",
    )


class TestShouldMock:
    """Tests for the mock-mode decision."""

    @pytest.mark.parametrize("credential,expected", [
        (None, True),
        ("", True),
        ("   ", True),
        (PLACEHOLDER_KEY, True),
        ("bfl_sk_live_realkey", False),
    ])
    def test_derived_from_credential(self, credential, expected):
        assert FallbackProvider(FallbackConfig()).should_mock(credential) is expected

    def test_explicit_flag_wins(self):
        assert FallbackProvider(FallbackConfig(mock_mode=True)).should_mock("bfl_sk_live_realkey")
        assert not FallbackProvider(FallbackConfig(mock_mode=False)).should_mock(None)


class TestSimulate:
    """Tests for the canned result."""

    @pytest.mark.asyncio
    async def test_returns_mock_result(self, request_):
        provider = FallbackProvider(FallbackConfig(mock_delay=0.01))

        result = await provider.simulate(request_)

        assert result.mocked is True
        assert result.generated_image_url == FallbackConfig().mock_image_url
        assert result.confidence_score == 0.95
        assert result.metadata.prompt_used == "Virtual try-on of navy blazer"
        assert result.metadata.style_instructions == "street style"
        assert result.metadata.item_references_used == list(request_.garment_images)
        assert result.processing_time_ms >= 0


class TestResultAssembler:
    """Tests for mapping finished jobs to results."""

    @pytest.fixture
    def assembler(self):
        return ResultAssembler(FallbackConfig())

    def test_ready_job_url_is_passed_through(self, assembler, request_):
        job = GenerationJob(id="abc123", endpoint="flux-kontext-pro")
        job.mark_ready("https://cdn.flux.test/out.jpg?sig=1", {"status": "Ready"})

        result = assembler.assemble(job, request_, 4200, prompt="the prompt")

        assert result.generated_image_url == "https://cdn.flux.test/out.jpg?sig=1"
        assert result.processing_time_ms == 4200
        assert result.metadata.prompt_used == "the prompt"
        assert result.warnings == []
        assert result.mocked is False

    def test_ready_job_without_url_gets_placeholder(self, assembler, request_, caplog):
        job = GenerationJob(id="abc123", endpoint="flux-kontext-pro")
        job.mark_ready(None, {"status": "Ready", "result": {}})

        result = assembler.assemble(job, request_, 10)

        assert result.generated_image_url == FallbackConfig().placeholder_image_url
        assert len(result.warnings) == 1
        assert "abc123" in caplog.text

    def test_unfinished_job_is_rejected(self, assembler, request_):
        job = GenerationJob(id="abc123", endpoint="flux-kontext-pro", status=JobStatus.PROCESSING)

        with pytest.raises(ValueError):
            assembler.assemble(job, request_, 10)
