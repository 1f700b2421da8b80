"""
Domain specific exception hierarchy for the x_ads package.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence


class XAdsError(Exception):
    """Base exception for all library errors."""


class ConfigurationError(XAdsError):
    """Raised when required configuration or credentials are missing."""


class CredentialsNotFound(ConfigurationError):
    """Raised when no stored credentials exist at all."""


class InvalidCredentialsFile(ConfigurationError):
    """Raised when the credential file exists but cannot be understood."""


class SigningError(XAdsError):
    """Raised when request parameters cannot be encoded for signing."""


class AuthenticationError(XAdsError):
    """Raised when the authorization flow fails."""


class OperationCancelled(XAdsError):
    """Raised when a caller cancels a retry, poll or authorization wait."""


class PaginationNonTermination(XAdsError):
    """Raised when a list endpoint keeps returning cursors past the page ceiling."""

    def __init__(self, message: str, *, pages: int, path: str | None = None) -> None:
        super().__init__(message)
        self.pages = pages
        self.path = path


class MediaValidationError(XAdsError):
    """Raised when local media files do not satisfy upload requirements."""


class ApiResponseError(XAdsError):
    """Raised when the X API returns an error payload."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        errors: Sequence[Any] | None = None,
        body: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.errors = list(errors or [])
        self.body = body

    @property
    def code(self) -> int | None:
        """Return the first API error code, when the payload carried one."""

        for error in self.errors:
            code = getattr(error, "code", None)
            if code is None and isinstance(error, Mapping):
                code = error.get("code")
            if isinstance(code, int):
                return code
        return None


class RemoteRejection(ApiResponseError):
    """Raised for 4xx responses (other than 429); never retried."""


class AuthorizationDenied(RemoteRejection):
    """Raised when the user declines authorization or credentials are rejected."""


class TransientNetworkError(ApiResponseError):
    """Raised when retryable failures persist after every allowed attempt."""

    def __init__(self, message: str, *, attempts: int = 0, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.attempts = attempts


class RateLimitExceeded(TransientNetworkError):
    """Raised when the X API keeps enforcing a rate limit."""

    def __init__(
        self,
        message: str,
        *,
        retry_after: float | None = None,
        reset_at: int | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.retry_after = retry_after
        self.reset_at = reset_at


class UploadFailed(ApiResponseError):
    """Raised when a chunked upload cannot be completed."""

    def __init__(self, message: str, *, media_id: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.media_id = media_id


class MediaProcessingTimeout(UploadFailed):
    """Raised when media processing does not complete in the allocated time."""


class MediaProcessingFailed(UploadFailed):
    """Raised when the API reports failure for an uploaded media asset."""

    def __init__(self, message: str, *, reason: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.reason = reason or message
