"""Availability derivation for vouchers.

Every correctness decision about whether a voucher may be claimed or redeemed
goes through :func:`evaluate_availability`. Nothing persisted on the voucher
row is consulted besides the validity window and the redemption counters.
"""

from __future__ import annotations

import enum
from datetime import datetime

from ..models import Voucher
from ..utils.datetime import ensure_utc, utcnow
from .errors import Expired, NotYetValid


class Availability(str, enum.Enum):
    """Result of evaluating a validity window against a point in time."""

    NOT_YET_VALID = "NOT_YET_VALID"
    AVAILABLE = "AVAILABLE"
    EXPIRED = "EXPIRED"


class VoucherStatus(str, enum.Enum):
    """Display status derived at read time."""

    NEW = "NEW"
    PUBLISHED = "PUBLISHED"
    SOLD_OUT = "SOLD_OUT"
    EXPIRED = "EXPIRED"


def evaluate_availability(valid_from: datetime, expires_at: datetime, now: datetime | None = None) -> Availability:
    """Return where ``now`` falls in the half-open window ``[valid_from, expires_at)``."""

    current = ensure_utc(now) if now else utcnow()
    if current < ensure_utc(valid_from):
        return Availability.NOT_YET_VALID
    if current >= ensure_utc(expires_at):
        return Availability.EXPIRED
    return Availability.AVAILABLE


def voucher_availability(voucher: Voucher, now: datetime | None = None) -> Availability:
    return evaluate_availability(voucher.valid_from, voucher.expires_at, now)


def is_sold_out(voucher: Voucher) -> bool:
    return voucher.max_redemptions is not None and voucher.current_redemptions >= voucher.max_redemptions


def display_status(voucher: Voucher, now: datetime | None = None) -> VoucherStatus:
    """Derive the label shown to clients from the window and counters."""

    availability = voucher_availability(voucher, now)
    if availability is Availability.EXPIRED:
        return VoucherStatus.EXPIRED
    if availability is Availability.NOT_YET_VALID:
        return VoucherStatus.NEW
    if is_sold_out(voucher):
        return VoucherStatus.SOLD_OUT
    return VoucherStatus.PUBLISHED


def ensure_available(voucher: Voucher, now: datetime | None = None) -> None:
    """Raise the matching window violation unless the voucher is available."""

    availability = voucher_availability(voucher, now)
    if availability is Availability.NOT_YET_VALID:
        raise NotYetValid(f"Voucher {voucher.voucher_id} is not valid until {ensure_utc(voucher.valid_from).isoformat()}.")
    if availability is Availability.EXPIRED:
        raise Expired(f"Voucher {voucher.voucher_id} expired at {ensure_utc(voucher.expires_at).isoformat()}.")
