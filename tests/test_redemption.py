from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from voucher_engine.models import Voucher, VoucherRedemption
from voucher_engine.services import claim_service, redemption_service, voucher_service
from voucher_engine.services.errors import (
    AlreadyClaimed,
    Expired,
    InvalidCode,
    NotYetValid,
    PerUserLimitExceeded,
    SoldOut,
    TransientConcurrencyError,
)
from voucher_engine.utils.datetime import utcnow


def _counter(db, voucher_id):
    db.expire_all()
    return db.get(Voucher, voucher_id).current_redemptions


def test_redeem_increments_counter_and_records_redemption(db, make_voucher):
    voucher = make_voucher(max_redemptions=3)
    customer = uuid4()

    redemption = redemption_service.redeem_with_retry(
        db, voucher_id=voucher.voucher_id, customer_id=customer, code=voucher.short_code
    )

    assert redemption.customer_id == customer
    assert _counter(db, voucher.voucher_id) == 1
    assert redemption_service.customer_redemption_count(db, voucher.voucher_id, customer) == 1


def test_any_active_code_of_the_voucher_redeems(db, make_voucher):
    voucher = make_voucher(max_redemptions=5, max_redemptions_per_user=3, static_code="SPRING5")
    customer = uuid4()
    for code in (voucher.short_code, voucher.qr_code, voucher.static_code):
        redemption_service.redeem_with_retry(db, voucher_id=voucher.voucher_id, customer_id=customer, code=code)
    assert _counter(db, voucher.voucher_id) == 3


def test_last_unit_then_sold_out(db, make_voucher):
    voucher = make_voucher(max_redemptions=1)
    redemption_service.redeem_with_retry(db, voucher_id=voucher.voucher_id, customer_id=uuid4(), code=voucher.short_code)

    with pytest.raises(SoldOut):
        redemption_service.redeem_with_retry(
            db, voucher_id=voucher.voucher_id, customer_id=uuid4(), code=voucher.short_code
        )
    assert _counter(db, voucher.voucher_id) == 1


def test_per_user_limit_is_enforced(db, make_voucher):
    voucher = make_voucher(max_redemptions=None, max_redemptions_per_user=2)
    customer = uuid4()
    for _ in range(2):
        redemption_service.redeem_with_retry(
            db, voucher_id=voucher.voucher_id, customer_id=customer, code=voucher.short_code
        )

    with pytest.raises(PerUserLimitExceeded):
        redemption_service.redeem_with_retry(
            db, voucher_id=voucher.voucher_id, customer_id=customer, code=voucher.short_code
        )
    assert _counter(db, voucher.voucher_id) == 2

    # Another customer is unaffected.
    redemption_service.redeem_with_retry(db, voucher_id=voucher.voucher_id, customer_id=uuid4(), code=voucher.short_code)
    assert _counter(db, voucher.voucher_id) == 3


def test_claimed_voucher_redeems_once_then_hits_per_user_limit(db, make_voucher):
    voucher = make_voucher(max_redemptions=10, max_redemptions_per_user=1)
    customer = uuid4()
    claim_service.claim_voucher(db, voucher_id=voucher.voucher_id, customer_id=customer)
    db.commit()

    redemption_service.redeem_with_retry(db, voucher_id=voucher.voucher_id, customer_id=customer, code=voucher.short_code)
    with pytest.raises(PerUserLimitExceeded):
        redemption_service.redeem_with_retry(
            db, voucher_id=voucher.voucher_id, customer_id=customer, code=voucher.short_code
        )
    assert _counter(db, voucher.voucher_id) == 1


def test_expired_voucher_is_not_redeemable(db, make_voucher):
    now = utcnow()
    voucher = make_voucher(valid_from=now - timedelta(days=3), expires_at=now - timedelta(seconds=1))
    with pytest.raises(Expired):
        redemption_service.redeem_with_retry(
            db, voucher_id=voucher.voucher_id, customer_id=uuid4(), code=voucher.short_code
        )
    assert _counter(db, voucher.voucher_id) == 0


@pytest.mark.parametrize("which", ["unknown", "other_voucher", "inactive"])
def test_bad_codes_leave_counter_untouched(db, make_voucher, which):
    voucher = make_voucher()
    other = make_voucher()
    code = {"unknown": "NOPE0000", "other_voucher": other.short_code, "inactive": voucher.short_code}[which]
    if which == "inactive":
        for voucher_code in voucher_service.get_voucher(db, voucher.voucher_id).codes:
            voucher_code.is_active = False
        db.commit()

    with pytest.raises(InvalidCode):
        redemption_service.redeem_with_retry(db, voucher_id=voucher.voucher_id, customer_id=uuid4(), code=code)

    assert _counter(db, voucher.voucher_id) == 0
    assert db.query(VoucherRedemption).count() == 0


def test_transient_errors_are_retried(db, make_voucher, monkeypatch):
    voucher = make_voucher()
    real_redeem = redemption_service.redeem
    calls = {"count": 0}

    def flaky_redeem(session, **kwargs):
        calls["count"] += 1
        if calls["count"] == 1:
            raise TransientConcurrencyError("busy")
        return real_redeem(session, **kwargs)

    monkeypatch.setattr(redemption_service, "redeem", flaky_redeem)
    redemption_service.redeem_with_retry(
        db, voucher_id=voucher.voucher_id, customer_id=uuid4(), code=voucher.short_code, backoff_ms=0
    )

    assert calls["count"] == 2
    assert _counter(db, voucher.voucher_id) == 1


def test_retry_gives_up_after_max_attempts(db, make_voucher, monkeypatch):
    voucher = make_voucher()
    calls = {"count": 0}

    def always_busy(session, **kwargs):
        calls["count"] += 1
        raise TransientConcurrencyError("busy")

    monkeypatch.setattr(redemption_service, "redeem", always_busy)
    with pytest.raises(TransientConcurrencyError):
        redemption_service.redeem_with_retry(
            db,
            voucher_id=voucher.voucher_id,
            customer_id=uuid4(),
            code=voucher.short_code,
            max_attempts=3,
            backoff_ms=0,
        )
    assert calls["count"] == 3


def test_lock_timeout_maps_to_transient_error(db, make_voucher, monkeypatch):
    voucher = make_voucher()

    def locked(session):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(redemption_service, "_set_lock_timeout", locked)
    with pytest.raises(TransientConcurrencyError):
        redemption_service.redeem(db, voucher_id=voucher.voucher_id, customer_id=uuid4(), code=voucher.short_code)


def test_list_redemptions_filters_by_customer(db, make_voucher):
    voucher = make_voucher(max_redemptions_per_user=2)
    alice, bob = uuid4(), uuid4()
    for customer in (alice, alice, bob):
        redemption_service.redeem_with_retry(
            db, voucher_id=voucher.voucher_id, customer_id=customer, code=voucher.short_code
        )

    assert len(redemption_service.list_redemptions(db, voucher_id=voucher.voucher_id)) == 3
    mine = redemption_service.list_redemptions(db, voucher_id=voucher.voucher_id, customer_id=alice)
    assert [r.customer_id for r in mine] == [alice, alice]


def test_claim_redeem_then_reclaim_is_rejected(db, make_voucher):
    voucher = make_voucher()
    customer = uuid4()
    claim_service.claim_voucher(db, voucher_id=voucher.voucher_id, customer_id=customer)
    db.commit()
    redemption_service.redeem_with_retry(db, voucher_id=voucher.voucher_id, customer_id=customer, code=voucher.short_code)

    with pytest.raises(AlreadyClaimed):
        claim_service.claim_voucher(db, voucher_id=voucher.voucher_id, customer_id=customer)


def test_future_voucher_is_not_redeemable(db, make_voucher):
    now = utcnow()
    voucher = make_voucher(valid_from=now + timedelta(days=1), expires_at=now + timedelta(days=5))
    with pytest.raises(NotYetValid):
        redemption_service.redeem_with_retry(
            db, voucher_id=voucher.voucher_id, customer_id=uuid4(), code=voucher.short_code
        )
    assert _counter(db, voucher.voucher_id) == 0
    assert db.query(VoucherRedemption).count() == 0


def test_zero_attempts_is_rejected_instead_of_using_the_default(db, make_voucher, monkeypatch):
    voucher = make_voucher()
    calls = {"count": 0}

    def counting_redeem(session, **kwargs):
        calls["count"] += 1

    monkeypatch.setattr(redemption_service, "redeem", counting_redeem)
    with pytest.raises(ValueError):
        redemption_service.redeem_with_retry(
            db, voucher_id=voucher.voucher_id, customer_id=uuid4(), code=voucher.short_code, max_attempts=0
        )
    assert calls["count"] == 0
