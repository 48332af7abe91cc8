"""Translate service rule violations into HTTP errors."""

from fastapi import HTTPException

from ...core.config import get_settings
from ...services.errors import VoucherRuleViolation


def as_http_error(exc: VoucherRuleViolation) -> HTTPException:
    headers = None
    if exc.retryable:
        # Seconds, rounded up from the configured backoff.
        retry_after = max(1, -(-get_settings().redemption_backoff_ms // 1000))
        headers = {"Retry-After": str(retry_after)}
    return HTTPException(status_code=exc.status_code, detail=exc.detail, headers=headers)
