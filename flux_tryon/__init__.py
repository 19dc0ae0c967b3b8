"""FLUX virtual try-on generation pipeline."""

from .cancellation import CancellationToken
from .config import PipelineConfig, load_config
from .models import TryOnRequest, TryOnResult, WorkflowPhase, WorkflowState
from .pipeline import TryOnPipeline

__version__ = "1.0.0"

__all__ = [
    "CancellationToken",
    "PipelineConfig",
    "TryOnPipeline",
    "TryOnRequest",
    "TryOnResult",
    "WorkflowPhase",
    "WorkflowState",
    "load_config",
]
