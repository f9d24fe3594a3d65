"""Error taxonomy shared by the pipeline, provider adapters and HTTP layer."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import status


class RelayError(Exception):
    """Base class for failures reported to clients as structured JSON."""

    error_type: str = "InternalError"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = dict(details or {})

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "error": self.message,
            "type": self.error_type,
            "code": self.status_code,
        }
        for key, value in self.details.items():
            payload.setdefault(key, value)
        return payload


class EmptyInputError(RelayError):
    error_type = "EmptyInput"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "No text provided") -> None:
        super().__init__(message)


class MissingCredentialError(RelayError):
    error_type = "MissingCredential"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "No API key configured or supplied") -> None:
        super().__init__(message)


class JobNotFoundError(RelayError):
    error_type = "JobNotFound"
    status_code = status.HTTP_404_NOT_FOUND


class SchedulerStopped(RelayError):
    """Raised for callers still queued when a scheduler shuts down."""

    error_type = "SchedulerStopped"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class ProviderError(RelayError):
    """Wrap API failures when communicating with a remote provider."""

    error_type = "ProviderError"
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(
        self,
        message: str,
        *,
        code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details=details)
        # Upstream status, when the provider returned one
        self.provider_code = code
        if code is not None and type(self) is ProviderError and code >= 400:
            self.status_code = code


class RateLimitedError(ProviderError):
    error_type = "RateLimited"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class ProviderAuthError(ProviderError):
    error_type = "ProviderAuthError"
    status_code = status.HTTP_401_UNAUTHORIZED


class ProviderQuotaError(ProviderError):
    error_type = "ProviderQuotaError"
    status_code = status.HTTP_402_PAYMENT_REQUIRED


class InternalTransportError(ProviderError):
    """Unexpected transport failure or unreadable provider response."""

    error_type = "InternalTransportError"
    status_code = status.HTTP_502_BAD_GATEWAY


class SummaryFailedError(RelayError):
    error_type = "SummaryFailed"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class SegmentFailedError(RelayError):
    """One segment exhausted its retries; the whole job is discarded."""

    error_type = "SegmentFailed"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        segment_index: int,
        total_segments: int,
        cause: Optional[BaseException] = None,
    ) -> None:
        message = (
            f"Failed to convert segment {segment_index + 1} of {total_segments}"
        )
        if cause is not None:
            message = f"{message}: {cause}"
        details: dict[str, Any] = {
            "segment_index": segment_index,
            "total_segments": total_segments,
        }
        if isinstance(cause, RelayError):
            details["cause_type"] = cause.error_type
        super().__init__(message, details=details)
        self.segment_index = segment_index
        self.total_segments = total_segments


__all__ = [
    "EmptyInputError",
    "InternalTransportError",
    "JobNotFoundError",
    "MissingCredentialError",
    "ProviderAuthError",
    "ProviderError",
    "ProviderQuotaError",
    "RateLimitedError",
    "RelayError",
    "SchedulerStopped",
    "SegmentFailedError",
    "SummaryFailedError",
]
