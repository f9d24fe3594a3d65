"""Map OpenAI SDK exceptions onto the relay's provider error types."""

from __future__ import annotations

import openai
from fastapi import status

from ..errors import (
    InternalTransportError,
    ProviderAuthError,
    ProviderError,
    ProviderQuotaError,
    RateLimitedError,
)

QUOTA_ERROR_CODES = frozenset({"insufficient_quota", "billing_hard_limit_reached"})


def _error_code(exc: openai.APIError) -> str | None:
    code = getattr(exc, "code", None)
    if isinstance(code, str):
        return code
    body = exc.body
    if isinstance(body, dict):
        nested = body.get("error") if isinstance(body.get("error"), dict) else body
        value = nested.get("code")
        if isinstance(value, str):
            return value
    return None


def translate_openai_error(exc: openai.OpenAIError) -> ProviderError:
    """Return the typed ``ProviderError`` that best describes ``exc``."""

    message = getattr(exc, "message", None) or str(exc)

    if isinstance(exc, openai.RateLimitError):
        code = _error_code(exc)
        if code in QUOTA_ERROR_CODES:
            return ProviderQuotaError(message, code=exc.status_code)
        return RateLimitedError(message, code=exc.status_code)
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return ProviderAuthError(message, code=exc.status_code)
    if isinstance(exc, (openai.APIConnectionError, openai.APIResponseValidationError)):
        return InternalTransportError(message)
    if isinstance(exc, openai.APIStatusError):
        if exc.status_code == status.HTTP_402_PAYMENT_REQUIRED:
            return ProviderQuotaError(message, code=exc.status_code)
        return ProviderError(message, code=exc.status_code)
    return ProviderError(message)


__all__ = ["QUOTA_ERROR_CODES", "translate_openai_error"]
