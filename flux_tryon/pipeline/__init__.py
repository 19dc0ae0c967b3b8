"""Try-on pipeline orchestration."""

from .tryon_pipeline import TryOnPipeline

__all__ = ["TryOnPipeline"]
