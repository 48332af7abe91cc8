from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from voucher_engine.services.errors import Expired, NotYetValid
from voucher_engine.services.expiry import (
    Availability,
    VoucherStatus,
    display_status,
    ensure_available,
    evaluate_availability,
)

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
T1 = T0 + timedelta(days=7)


def _voucher(**overrides):
    values = dict(
        voucher_id="v-1",
        valid_from=T0,
        expires_at=T1,
        max_redemptions=None,
        current_redemptions=0,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def test_window_is_half_open():
    assert evaluate_availability(T0, T1, T0 - timedelta(microseconds=1)) is Availability.NOT_YET_VALID
    assert evaluate_availability(T0, T1, T0) is Availability.AVAILABLE
    assert evaluate_availability(T0, T1, T1 - timedelta(microseconds=1)) is Availability.AVAILABLE
    assert evaluate_availability(T0, T1, T1) is Availability.EXPIRED


def test_naive_timestamps_are_treated_as_utc():
    naive_from = T0.replace(tzinfo=None)
    naive_to = T1.replace(tzinfo=None)
    assert evaluate_availability(naive_from, naive_to, T0 + timedelta(hours=1)) is Availability.AVAILABLE

    plus_two = timezone(timedelta(hours=2))
    # 13:00 at UTC+2 is 11:00 UTC, one hour before the window opens.
    assert evaluate_availability(T0, T1, datetime(2026, 3, 1, 13, 0, tzinfo=plus_two)) is Availability.NOT_YET_VALID


def test_display_status_is_derived_from_window_and_counters():
    assert display_status(_voucher(), T0 - timedelta(days=1)) is VoucherStatus.NEW
    assert display_status(_voucher(), T0) is VoucherStatus.PUBLISHED
    assert display_status(_voucher(max_redemptions=3, current_redemptions=3), T0) is VoucherStatus.SOLD_OUT
    assert display_status(_voucher(max_redemptions=3, current_redemptions=3), T1) is VoucherStatus.EXPIRED


def test_ensure_available_raises_window_errors():
    with pytest.raises(NotYetValid):
        ensure_available(_voucher(), T0 - timedelta(seconds=1))
    with pytest.raises(Expired):
        ensure_available(_voucher(), T1)
    ensure_available(_voucher(), T0)
