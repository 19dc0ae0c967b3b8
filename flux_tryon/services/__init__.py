"""Services for the FLUX try-on pipeline."""

from .fallback import FallbackProvider
from .flux_client import EditStrategy, FluxClient, StandaloneStrategy
from .image_preparer import ImagePreparer, encode_bytes, is_local_reference
from .job_poller import JobPoller
from .prompt_builder import PromptBuilder
from .result_assembler import ResultAssembler
from .retry import RetryPolicy

__all__ = [
    "EditStrategy",
    "FallbackProvider",
    "FluxClient",
    "ImagePreparer",
    "JobPoller",
    "PromptBuilder",
    "ResultAssembler",
    "RetryPolicy",
    "StandaloneStrategy",
    "encode_bytes",
    "is_local_reference",
]
