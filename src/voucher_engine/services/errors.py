"""Error taxonomy shared by the voucher services."""

from __future__ import annotations


class VoucherRuleViolation(Exception):
    """Raised when a voucher business rule rejects a request."""

    status_code = 400
    retryable = False

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code


class VoucherNotFound(VoucherRuleViolation):
    status_code = 404


class CodeNotFound(VoucherRuleViolation):
    status_code = 404


class InvalidCode(VoucherRuleViolation):
    """Code is unknown, inactive or belongs to another voucher."""


class NotYetValid(VoucherRuleViolation):
    status_code = 409


class Expired(VoucherRuleViolation):
    status_code = 409


class AlreadyClaimed(VoucherRuleViolation):
    status_code = 409


class SoldOut(VoucherRuleViolation):
    status_code = 409


class PerUserLimitExceeded(VoucherRuleViolation):
    status_code = 409


class CodeConflict(VoucherRuleViolation):
    status_code = 409


class InvalidVoucherDefinition(VoucherRuleViolation):
    status_code = 422


class CodeGenerationExhausted(VoucherRuleViolation):
    status_code = 503


class TransientConcurrencyError(VoucherRuleViolation):
    """Lock wait timed out or the transaction lost a serialization race."""

    status_code = 503
    retryable = True


class ExternalServiceError(Exception):
    """A best-effort collaborator failed; callers log and continue."""
