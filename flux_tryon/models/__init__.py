"""Data models for the FLUX try-on pipeline."""

from .garment import GarmentDescription
from .job import GenerationJob, JobStatus
from .request import ImageOrigin, ImagePayload, TryOnRequest
from .workflow import ResultMetadata, TryOnResult, WorkflowPhase, WorkflowState

__all__ = [
    "GarmentDescription",
    "GenerationJob",
    "JobStatus",
    "ImageOrigin",
    "ImagePayload",
    "TryOnRequest",
    "ResultMetadata",
    "TryOnResult",
    "WorkflowPhase",
    "WorkflowState",
]
