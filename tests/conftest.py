# Test fixtures and configuration
import sys
import time
from pathlib import Path

import httpx
import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from flux_tryon.config import (  # noqa: E402
    FallbackConfig,
    FluxConfig,
    PipelineConfig,
    PollingConfig,
    RetryConfig,
)

VALID_KEY = "bfl_sk_live_0123456789abcdef"
BASE_URL = "https://flux.test/v1"


class FakeClock:
    """Monotonic clock that only moves when something sleeps on it."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeFluxAPI:
    """Scripted stand-in for the FLUX HTTP API behind an httpx.MockTransport.

    ``submit_responses`` and ``poll_responses`` are queues of
    ``httpx.Response`` objects or exceptions; the last entry repeats.
    """

    def __init__(self, clock=None):
        self.requests: list[httpx.Request] = []
        self.poll_times: list[float] = []
        self.clock = clock
        self.submit_responses: list = [httpx.Response(200, json={"id": "abc123"})]
        self.poll_responses: list = [httpx.Response(200, json={"status": "Pending"})]

    @staticmethod
    def _next(queue):
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST":
            item = self._next(self.submit_responses)
        else:
            if self.clock is not None:
                self.poll_times.append(self.clock())
            item = self._next(self.poll_responses)
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def submissions(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "POST"]

    @property
    def polls(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "GET"]


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def flux_api():
    return FakeFluxAPI()


@pytest.fixture
def live_config():
    """Config with a well-formed key and fast timings."""
    return PipelineConfig(
        flux=FluxConfig(base_url=BASE_URL, api_key=VALID_KEY),
        retry=RetryConfig(max_attempts=3, base_delay=2.0),
        polling=PollingConfig(poll_interval=3.0, request_timeout=15.0, max_wait=120.0),
        fallback=FallbackConfig(mock_delay=0.01),
    )


@pytest.fixture
def mock_config():
    """Config with no credential, so every run is mocked."""
    return PipelineConfig(
        flux=FluxConfig(base_url=BASE_URL, api_key=None),
        fallback=FallbackConfig(mock_delay=0.05),
    )


@pytest.fixture
def minimal_png_bytes():
    """Minimal valid PNG image bytes."""
    return bytes([
        0x89, 0x50, 0x4E, 0x47, 0x0D, 0x0A, 0x1A, 0x0A,  # PNG signature
        0x00, 0x00, 0x00, 0x0D, 0x49, 0x48, 0x44, 0x52,  # IHDR chunk
        0x00, 0x00, 0x00, 0x01, 0x00, 0x00, 0x00, 0x01,  # 1x1 dimensions
        0x08, 0x02, 0x00, 0x00, 0x00, 0x90, 0x77, 0x53,
        0xDE, 0x00, 0x00, 0x00, 0x0C, 0x49, 0x44, 0x41,  # IDAT chunk
        0x54, 0x08, 0xD7, 0x63, 0xF8, 0xCF, 0xC0, 0x00,
        0x00, 0x00, 0x03, 0x00, 0x01, 0x00, 0x05, 0xFE,
        0xD4, 0xAA, 0x00, 0x00, 0x00, 0x00, 0x49, 0x45,  # IEND chunk
        0x4E, 0x44, 0xAE, 0x42, 0x60, 0x82
    ])


@pytest.fixture
def temp_image_file(tmp_path, minimal_png_bytes):
    """Create a temporary PNG file."""
    img_path = tmp_path / "test_image.png"
    img_path.write_bytes(minimal_png_bytes)
    return img_path


class RealtimeClock(FakeClock):
    """time.monotonic plus every fake sleep so far.

    Jobs are stamped with time.monotonic when the client accepts them, so
    pipeline tests need a clock on the same scale.
    """

    def __call__(self) -> float:
        return time.monotonic() + sum(self.sleeps)


@pytest.fixture
def realtime_clock():
    return RealtimeClock()
