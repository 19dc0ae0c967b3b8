"""FLUX API client for try-on image generation."""

import logging
import re
from typing import Any

import httpx

from ..cancellation import CancellationToken, guarded
from ..config import FluxConfig, GenerationConfig
from ..errors import (
    AuthenticationError,
    GenerationError,
    NetworkError,
    RateLimitError,
    ServerError,
)
from ..log_setup import mask_secret
from ..models import GenerationJob, ImagePayload

logger = logging.getLogger(__name__)

_UUID_KEY = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.I)


class EditStrategy:
    """Image-conditioned editing (FLUX Kontext). Needs the source photo bytes."""

    name = "edit"

    def __init__(self, flux: FluxConfig, generation: GenerationConfig):
        self.endpoint = flux.edit_model
        self.image_field = flux.edit_image_field
        self.generation = generation

    def is_applicable(self, source: ImagePayload | None) -> bool:
        return source is not None and source.has_bytes

    def build_payload(self, prompt: str, source: ImagePayload | None) -> dict[str, Any]:
        if not self.is_applicable(source):
            raise ValueError("Edit strategy needs a source image with inline bytes")
        return {
            "prompt": prompt,
            self.image_field: source.as_data_uri(),
            "guidance": self.generation.edit_guidance,
            "safety_tolerance": self.generation.safety_tolerance,
            "output_format": self.generation.output_format,
        }


class StandaloneStrategy:
    """Text-only generation, used when editing is not possible."""

    name = "standalone"

    def __init__(self, flux: FluxConfig, generation: GenerationConfig):
        self.endpoint = flux.standalone_model
        self.generation = generation

    def is_applicable(self, source: ImagePayload | None) -> bool:
        return True

    def build_payload(self, prompt: str, source: ImagePayload | None = None) -> dict[str, Any]:
        return {
            "prompt": prompt,
            "width": self.generation.width,
            "height": self.generation.height,
            "steps": self.generation.steps,
            "guidance": self.generation.standalone_guidance,
            "safety_tolerance": self.generation.safety_tolerance,
            "output_format": self.generation.output_format,
        }


class FluxClient:
    """Client for the Black Forest Labs FLUX API.

    Submissions return as soon as the API acknowledges the job; waiting for
    the image is the job poller's responsibility.
    """

    def __init__(
        self,
        config: FluxConfig,
        generation_config: GenerationConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.generation = generation_config or GenerationConfig()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        self.strategies = [
            EditStrategy(config, self.generation),
            StandaloneStrategy(config, self.generation),
        ]

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.config.submit_timeout,
                transport=self._transport,
            )
        return self._client

    @property
    def headers(self) -> dict[str, str]:
        return {
            self.config.credential_header: self.config.api_key or "",
            "Accept": "application/json",
        }

    def validate_credential(self) -> None:
        """Reject keys that are neither ``bfl_sk_``-prefixed nor a UUID."""
        key = self.config.api_key or ""
        if not (key.startswith("bfl_sk_") or _UUID_KEY.match(key)):
            raise AuthenticationError(
                f"Invalid FLUX API key format ({mask_secret(key)}). "
                "Expected a 'bfl_sk_' prefix or a UUID."
            )

    async def check_connection(self) -> bool:
        """Verify the FLUX API is reachable (any HTTP answer counts)."""
        try:
            response = await self.client.get(
                self.config.endpoint_url("get_result"),
                params={"id": "connectivity-check"},
                headers=self.headers,
                timeout=10.0,
            )
        except httpx.HTTPError as exc:
            logger.warning("FLUX API unreachable: %s", exc)
            return False
        logger.debug("FLUX API endpoint test: %s", response.status_code)
        return True

    async def submit(
        self,
        payload: dict[str, Any],
        endpoint: str,
        cancel: CancellationToken | None = None,
    ) -> str:
        """POST a generation request and return the job id."""
        return (await self.submit_job(payload, endpoint, cancel)).id

    async def submit_job(
        self,
        payload: dict[str, Any],
        endpoint: str,
        cancel: CancellationToken | None = None,
    ) -> GenerationJob:
        """POST a generation request and track it as a new job."""
        body = await self._submit(payload, endpoint, cancel)
        return GenerationJob(
            id=body["id"],
            endpoint=endpoint,
            polling_url=body.get("polling_url"),
            raw=body,
        )

    async def _submit(
        self,
        payload: dict[str, Any],
        endpoint: str,
        cancel: CancellationToken | None,
    ) -> dict[str, Any]:
        url = self.config.endpoint_url(endpoint)
        logger.info(
            "Submitting to %s (key %s, prompt %d chars)",
            endpoint, mask_secret(self.config.api_key), len(payload.get("prompt", "")),
        )

        response = await guarded(
            self._request("POST", url, json=payload, timeout=self.config.submit_timeout),
            cancel,
        )
        body = self._json(response)

        if not body.get("id") or not isinstance(body["id"], str):
            raise ServerError(
                "Invalid response from FLUX API - missing task ID",
                status_code=response.status_code,
                detail=response.text[:500],
            )
        logger.info("FLUX accepted job %s on %s", body["id"], endpoint)
        return body

    async def get_result(
        self,
        job_id: str,
        timeout: float,
        polling_url: str | None = None,
        cancel: CancellationToken | None = None,
    ) -> dict[str, Any]:
        """Fetch the current status body of a job."""
        if polling_url:
            request = self._request("GET", polling_url, timeout=timeout)
        else:
            request = self._request(
                "GET",
                self.config.endpoint_url("get_result"),
                params={"id": job_id},
                timeout=timeout,
            )
        response = await guarded(request, cancel)
        return self._json(response)

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(method, url, headers=self.headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise NetworkError(f"Request timeout. The FLUX API took too long to respond ({url})") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Network connectivity issue: {exc}") from exc

        if response.is_success:
            return response

        status = response.status_code
        detail = response.text[:500]
        logger.error("FLUX API %s %s returned %s: %s", method, url, status, detail)
        if status in (401, 403):
            raise AuthenticationError(
                "FLUX API authentication failed. Please check your API key.",
                status_code=status, detail=detail,
            )
        if status == 429:
            raise RateLimitError(
                "FLUX API rate limit exceeded. Please wait before trying again.",
                status_code=status, detail=detail,
            )
        if status >= 500:
            raise ServerError(
                f"FLUX API server error ({status}). Please try again later.",
                status_code=status, detail=detail,
            )
        raise GenerationError(
            f"FLUX API error: {status} {response.reason_phrase} - {detail}",
            status_code=status, detail=detail,
        )

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as exc:
            raise ServerError(
                "FLUX API returned a non-JSON body",
                status_code=response.status_code,
                detail=response.text[:500],
            ) from exc
        if not isinstance(body, dict):
            raise ServerError("FLUX API returned an unexpected body", status_code=response.status_code)
        return body

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
