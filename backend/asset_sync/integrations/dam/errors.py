"""
   DAM integration error types.
   Keep HTTP / rate-limit / server / payload failures apart from the sync engine,
   which classifies them into transient or permanent per-asset errors.
"""

class DAMError(Exception):
    """Base for all DAM errors."""

    status_code: int | None = None

    def __init__(self, message: str = "", status_code: int | None = None) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code

class DAMAuthError(DAMError):
    """401/403: permanent token missing, revoked or lacking scope."""

class DAMClientError(DAMError):
    """Other 4xx (validation, bad request)."""

class DAMNotFoundError(DAMClientError):
    """404: the asset (or subscription) no longer exists."""

class DAMNetworkError(DAMError):
    """Connection reset / DNS / timeout before a response arrived."""

class DAMServerError(DAMError):
    """5xx from the DAM."""

class DAMRateLimitError(DAMError):
    """429 Too Many Requests not resolved after retries."""

    def __init__(self, message: str = "", retry_after: float | None = None) -> None:
        super().__init__(message, status_code=429)
        self.retry_after = retry_after

class DAMPayloadError(DAMError):
    """Unexpected/invalid response payload shape or content."""
