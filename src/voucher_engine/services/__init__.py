"""Service layer exports."""

from . import (
	claim_service,
	code_issuer,
	expiry,
	redemption_service,
	reminder_service,
	scan_service,
	voucher_service,
)

__all__ = [
	"claim_service",
	"code_issuer",
	"expiry",
	"redemption_service",
	"reminder_service",
	"scan_service",
	"voucher_service",
]
