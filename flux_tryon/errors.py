"""Error taxonomy for the try-on pipeline.

Every failure the pipeline can surface to a caller is a ``TryOnError``.
Remote API failures carry the raw HTTP status and response text so callers
can log them; ``retryable`` tells the retry policy and the job poller
whether another attempt can possibly succeed.
"""


class TryOnError(Exception):
    """Base exception for try-on pipeline errors."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        detail: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail


class ValidationError(TryOnError):
    """Raised when an image reference is empty or cannot be read."""


class GenerationError(TryOnError):
    """Raised when the generation API rejects a request (non-retryable 4xx)."""


class AuthenticationError(GenerationError):
    """Raised on 401/403 responses or a malformed API key."""


class RateLimitError(GenerationError):
    """Raised on 429 responses."""

    retryable = True


class ServerError(GenerationError):
    """Raised on 5xx responses or a malformed submission acknowledgement."""

    retryable = True


class NetworkError(GenerationError):
    """Raised on transport failures and per-request timeouts."""

    retryable = True


class ProcessingTimeoutError(TryOnError):
    """Raised when a job does not finish within the polling budget."""


class JobFailedError(TryOnError):
    """Raised when the remote service reports the job as failed."""

    def __init__(self, message: str, *, job_id: str, detail: str | None = None):
        super().__init__(message, detail=detail)
        self.job_id = job_id


class TryOnCancelledError(TryOnError):
    """Raised at the next await point after a run has been cancelled."""
