"""Turn image references into payloads the FLUX API accepts."""

import asyncio
import base64
import binascii
import io
import logging
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx
from PIL import Image, UnidentifiedImageError

from ..cancellation import CancellationToken, guarded
from ..config import ImageConfig
from ..errors import ValidationError
from ..models import ImageOrigin, ImagePayload

logger = logging.getLogger(__name__)

LOCAL_PREFIXES = ("file://", "/")
# Path fragments used by the mobile image picker for cached photos
LOCAL_MARKERS = ("ImagePicker", "ExponentExperienceData")

SUFFIX_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
}


def is_local_reference(ref: str | Path) -> bool:
    """True if ``ref`` points at a file on this machine or inline data."""
    if isinstance(ref, Path):
        return True
    return (
        ref.startswith(LOCAL_PREFIXES)
        or ref.startswith("data:")
        or any(marker in ref for marker in LOCAL_MARKERS)
    )


def encode_bytes(data: bytes) -> str:
    """Base64-encode raw image bytes."""
    return base64.b64encode(data).decode("ascii")


def sniff_mime_type(data: bytes, name: str = "") -> str:
    """Detect the image format from magic bytes, then the file suffix."""
    if data[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    return SUFFIX_MIME_TYPES.get(Path(name).suffix.lower(), "image/jpeg")


def normalize_image(data: bytes, max_dimension: int) -> tuple[bytes, str | None]:
    """Downscale and flatten an image for upload.

    Returns the new bytes and their MIME type, or the input unchanged with
    ``None`` when no conversion was needed or Pillow cannot decode it.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            if max(img.size) <= max_dimension and img.mode == "RGB":
                return data, None
            converted = img.convert("RGB")
            converted.thumbnail((max_dimension, max_dimension))
            output = io.BytesIO()
            converted.save(output, format="JPEG", quality=90)
            return output.getvalue(), "image/jpeg"
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError):
        # Not something Pillow understands; send the bytes as they are
        return data, None


class ImagePreparer:
    """Classifies image references and encodes local ones as base64."""

    def __init__(
        self,
        config: ImageConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or ImageConfig()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client used for downloads."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.config.download_timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def prepare(
        self,
        ref: str | Path,
        cancel: CancellationToken | None = None,
    ) -> ImagePayload:
        """Produce the payload form of ``ref``.

        LOCAL references are read and base64-encoded; REMOTE references are
        passed through as URLs without being downloaded.
        """
        if cancel is not None:
            cancel.raise_if_cancelled()
        if isinstance(ref, str) and not ref.strip():
            raise ValidationError("Image reference is empty")

        if not is_local_reference(ref):
            return ImagePayload(origin=ImageOrigin.REMOTE, reference=ref, url=ref)

        if isinstance(ref, str) and ref.startswith("data:"):
            data, name = self._decode_data_uri(ref), ""
        else:
            path = self._to_path(ref)
            data, name = await guarded(self._read_file(path), cancel), path.name

        return await self._encode(str(ref), data, name, cancel)

    async def prepare_inline(
        self,
        ref: str | Path,
        cancel: CancellationToken | None = None,
    ) -> ImagePayload:
        """Like ``prepare`` but always returns bytes, downloading remote URLs."""
        if is_local_reference(ref):
            return await self.prepare(ref, cancel)
        data = await guarded(self._download(ref), cancel)
        return await self._encode(ref, data, urlparse(ref).path, cancel)

    async def fetch_as_base64(
        self,
        url: str,
        cancel: CancellationToken | None = None,
    ) -> str:
        """Download a remote image and return its base64 encoding."""
        payload = await self.prepare_inline(url, cancel)
        return payload.base64_data

    async def _encode(
        self,
        reference: str,
        data: bytes,
        name: str,
        cancel: CancellationToken | None,
    ) -> ImagePayload:
        if not data:
            raise ValidationError(f"Image is empty: {reference[:80]}")

        mime_type = sniff_mime_type(data, name)
        if self.config.normalize:
            data, converted_type = await guarded(
                asyncio.to_thread(normalize_image, data, self.config.max_dimension),
                cancel,
            )
            mime_type = converted_type or mime_type

        logger.debug("Encoded %s (%d bytes, %s)", reference[:80], len(data), mime_type)
        return ImagePayload(
            origin=ImageOrigin.LOCAL,
            reference=reference,
            base64_data=encode_bytes(data),
            mime_type=mime_type,
        )

    @staticmethod
    def _to_path(ref: str | Path) -> Path:
        if isinstance(ref, Path):
            return ref
        if ref.startswith("file://"):
            return Path(unquote(urlparse(ref).path))
        return Path(ref)

    @staticmethod
    async def _read_file(path: Path) -> bytes:
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise ValidationError(f"Cannot read image file {path}: {exc}") from exc

    @staticmethod
    def _decode_data_uri(ref: str) -> bytes:
        header, _, encoded = ref.partition(",")
        if not header.endswith(";base64"):
            raise ValidationError("Only base64 data URIs are supported")
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValidationError(f"Invalid base64 image data: {exc}") from exc

    async def _download(self, url: str) -> bytes:
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as exc:
            raise ValidationError(f"Cannot download image {url[:80]}: {exc}") from exc
        if response.status_code != 200:
            raise ValidationError(
                f"Cannot download image {url[:80]}: HTTP {response.status_code}",
                status_code=response.status_code,
                detail=response.text[:500],
            )
        return response.content

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
