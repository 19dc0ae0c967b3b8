"""Configuration management for the FLUX try-on pipeline."""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FluxConfig(BaseModel):
    """FLUX API connection settings."""
    base_url: str = "https://api.bfl.ai/v1"
    api_key: str | None = None
    credential_header: str = "x-key"
    edit_model: str = "flux-kontext-pro"  # image-conditioned editing
    standalone_model: str = "flux-pro-1.1"  # text-only generation
    edit_image_field: str = "input_image"
    submit_timeout: float = 45.0

    def endpoint_url(self, endpoint: str) -> str:
        return f"{self.base_url.rstrip('/')}/{endpoint.lstrip('/')}"


class GenerationConfig(BaseModel):
    """Payload parameters for both endpoint strategies."""
    edit_guidance: float = 2.5
    standalone_guidance: float = 3.5
    width: int = 1024
    height: int = 1024
    steps: int = 30
    safety_tolerance: int = 2
    output_format: str = "jpeg"


class RetryConfig(BaseModel):
    """Submission retry settings (linear backoff)."""
    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=2.0, ge=0.0)  # seconds
    # Retry authentication and other client errors too, like the old app did
    retry_terminal_errors: bool = False


class PollingConfig(BaseModel):
    """Job status polling settings."""
    poll_interval: float = Field(default=3.0, gt=0.0)
    request_timeout: float = Field(default=15.0, gt=0.0)
    max_wait: float = Field(default=120.0, gt=0.0)


class FallbackConfig(BaseModel):
    """Dry-run (mock) mode settings."""
    mock_mode: bool | None = None  # None = decide from the credential
    placeholder_api_key: str = "bfl_sk_test_1234567890abcdef"
    mock_delay: float = 2.0
    mock_image_url: str = (
        "https://via.placeholder.com/1024x1024/4F46E5/FFFFFF"
        "?text=Virtual+Try-On+Demo"
    )
    placeholder_image_url: str = (
        "https://via.placeholder.com/1024x1024/4F46E5/FFFFFF"
        "?text=Processing+Error"
    )
    confidence: float = Field(default=0.95, ge=0.0, le=1.0)


class ImageConfig(BaseModel):
    """Image preparation settings."""
    normalize: bool = True
    max_dimension: int = 1024
    inline_remote_source: bool = False  # download a URL source photo for the edit endpoint
    download_timeout: float = 30.0


class PipelineConfig(BaseSettings):
    """Main pipeline configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="FLUX_TRYON_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Sub-configs
    flux: FluxConfig = Field(default_factory=FluxConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    polling: PollingConfig = Field(default_factory=PollingConfig)
    fallback: FallbackConfig = Field(default_factory=FallbackConfig)
    images: ImageConfig = Field(default_factory=ImageConfig)

    default_style_context: str = "natural studio lighting, professional fit"
    log_level: str = "INFO"


def load_config() -> PipelineConfig:
    """Load configuration from environment and defaults."""
    return PipelineConfig()
