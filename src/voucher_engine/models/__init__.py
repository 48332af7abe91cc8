"""SQLAlchemy models for the voucher engine."""

from .claim_reminder import ClaimReminder
from .voucher import DiscountType, Voucher
from .voucher_claim import VoucherClaim
from .voucher_code import CodeType, VoucherCode
from .voucher_redemption import VoucherRedemption
from .voucher_scan import ScanSource, ScanType, VoucherScan

__all__ = [
    "ClaimReminder",
    "CodeType",
    "DiscountType",
    "ScanSource",
    "ScanType",
    "Voucher",
    "VoucherClaim",
    "VoucherCode",
    "VoucherRedemption",
    "VoucherScan",
]
