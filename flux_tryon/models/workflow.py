"""Workflow progress and result models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class WorkflowPhase(str, Enum):
    """Stages of a single try-on run, in order, plus the error exit."""
    INPUT_ANALYSIS = "input_analysis"
    AI_STYLING = "ai_styling"
    API_TRANSMISSION = "api_transmission"
    OUTPUT_DELIVERY = "output_delivery"
    COMPLETED = "completed"
    ERROR = "error"


class WorkflowState(BaseModel):
    """Progress snapshot delivered to the caller's progress callback."""

    model_config = ConfigDict(frozen=True)

    phase: WorkflowPhase
    progress: int = Field(ge=0, le=100)
    message: str
    data: dict[str, Any] | None = None


class ResultMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    prompt_used: str
    style_instructions: str
    item_references_used: list[str]
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class TryOnResult(BaseModel):
    """Caller-facing result of a try-on run."""

    model_config = ConfigDict(frozen=True)

    generated_image_url: str
    processing_time_ms: int = Field(ge=0)
    confidence_score: float = Field(ge=0.0, le=1.0)
    metadata: ResultMetadata
    mocked: bool = False
    warnings: list[str] = Field(default_factory=list)
