"""Request and image payload models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .garment import GarmentDescription


class ImageOrigin(str, Enum):
    """Where an image reference points."""
    LOCAL = "local"
    REMOTE = "remote"


class ImagePayload(BaseModel):
    """An image in the form the generation API accepts.

    LOCAL payloads carry base64 bytes and no URL; REMOTE payloads carry a
    URL and no bytes.
    """

    model_config = ConfigDict(frozen=True)

    origin: ImageOrigin
    reference: str
    base64_data: str | None = None
    url: str | None = None
    mime_type: str = "image/jpeg"

    @model_validator(mode="after")
    def _check_origin(self) -> "ImagePayload":
        if self.origin is ImageOrigin.LOCAL:
            if not self.base64_data or self.url is not None:
                raise ValueError("LOCAL payload needs base64 data and no url")
        elif not self.url or self.base64_data is not None:
            raise ValueError("REMOTE payload needs a url and no base64 data")
        return self

    @property
    def has_bytes(self) -> bool:
        return self.base64_data is not None

    def as_data_uri(self) -> str:
        """Render a LOCAL payload as a ``data:`` URI."""
        if self.base64_data is None:
            raise ValueError(f"{self.reference!r} is a remote image; it has no inline bytes")
        return f"data:{self.mime_type};base64,{self.base64_data}"


class TryOnRequest(BaseModel):
    """One try-on generation request. Built fresh per call."""

    model_config = ConfigDict(frozen=True)

    source_image: str = Field(description="Photo of the user: URL, path or file:// URI")
    garment_images: tuple[str, ...] = Field(min_length=1)
    prompt_text: str = ""
    style_instructions: str | None = None
    # Output of the vision analysis service, one per garment, used as prompt text
    garment_descriptions: tuple[GarmentDescription | str, ...] = ()
    caller_ids: dict[str, str] = Field(default_factory=dict)  # logging only

    @field_validator("source_image")
    @classmethod
    def _source_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("source_image must not be empty")
        return value

    def log_context(self) -> str:
        """Short ``key=value`` string of the caller ids for log lines."""
        return " ".join(f"{k}={v}" for k, v in sorted(self.caller_ids.items())) or "-"
