"""FastAPI server for virtual try-on.

Receives requests from the mobile app with:
- source_image: URL or data URI of the user's photo
- garment_images: URLs or data URIs of the selected garments
- style_context: Optional styling instructions
- garment_descriptions: Optional garment descriptions from vision analysis
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from flux_tryon import __version__
from flux_tryon.config import PipelineConfig, load_config
from flux_tryon.errors import TryOnError
from flux_tryon.log_setup import configure as configure_logging
from flux_tryon.models import GarmentDescription, TryOnResult
from flux_tryon.pipeline import TryOnPipeline

logger = logging.getLogger(__name__)


def create_app(config: PipelineConfig | None = None) -> FastAPI:
    """Build the app; the pipeline is created once at startup and shared."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = config or load_config()
        configure_logging(settings.log_level)
        app.state.pipeline = TryOnPipeline(settings)
        logger.info("Try-on API started (mock mode: %s)", app.state.pipeline.mock_mode)
        try:
            yield
        finally:
            await app.state.pipeline.close()

    app = FastAPI(
        title="FLUX Try-On API",
        description="Virtual try-on image generation with FLUX Kontext",
        version=__version__,
        lifespan=lifespan,
    )

    # The mobile app and its web build call from other origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.get("/")(root)
    app.get("/health")(health)
    app.post("/api/tryon", response_model=TryOnResponse)(generate_tryon)
    return app


class TryOnRequestBody(BaseModel):
    """Request body for try-on generation."""
    source_image: str
    garment_images: list[str] = Field(min_length=1)
    style_context: str | None = None
    garment_descriptions: list[GarmentDescription | str] = Field(default_factory=list)
    caller_ids: dict[str, str] = Field(default_factory=dict)


class TryOnResponse(BaseModel):
    """Response with the generated image URL."""
    success: bool
    result: TryOnResult | None = None
    error: str | None = None
    error_type: str | None = None


def get_pipeline(request: Request) -> TryOnPipeline:
    return request.app.state.pipeline


async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "FLUX Try-On API", "version": __version__}


async def health(pipeline: TryOnPipeline = Depends(get_pipeline)):
    """Detailed health check."""
    if pipeline.mock_mode:
        return {"status": "ok", "mode": "mock", "flux": "skipped"}

    flux_ok = await pipeline.client.check_connection()
    return {
        "status": "ok" if flux_ok else "degraded",
        "mode": "live",
        "flux": "reachable" if flux_ok else "unreachable",
    }


async def generate_tryon(
    body: TryOnRequestBody,
    pipeline: TryOnPipeline = Depends(get_pipeline),
):
    """Generate a virtual try-on image.

    Pipeline failures are reported in the body with ``success=False``.
    """
    try:
        result = await pipeline.process_tryon(
            source_image=body.source_image,
            garment_images=body.garment_images,
            style_context=body.style_context,
            garment_descriptions=body.garment_descriptions,
            caller_ids=body.caller_ids,
        )
    except TryOnError as e:
        return TryOnResponse(success=False, error=str(e), error_type=type(e).__name__)

    return TryOnResponse(success=True, result=result)


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
