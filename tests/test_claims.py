from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from voucher_engine.models import VoucherClaim
from voucher_engine.services import claim_service, voucher_service
from voucher_engine.services.errors import AlreadyClaimed, Expired, NotYetValid, VoucherNotFound
from voucher_engine.utils.datetime import utcnow


def test_claim_places_voucher_in_wallet(db, make_voucher):
    voucher = make_voucher()
    customer = uuid4()

    claim = claim_service.claim_voucher(
        db,
        voucher_id=voucher.voucher_id,
        customer_id=customer,
        notification_preferences={"enable_reminders": True, "reminder_days_before": 2},
    )
    db.commit()

    assert claim.wallet_position == 1
    assert claim.notification_preferences == {"enable_reminders": True, "reminder_days_before": 2}
    # Claiming never consumes redemption capacity.
    assert voucher_service.get_voucher(db, voucher.voucher_id).current_redemptions == 0


def test_second_claim_by_same_customer_is_rejected(db, make_voucher):
    voucher = make_voucher()
    customer = uuid4()
    claim_service.claim_voucher(db, voucher_id=voucher.voucher_id, customer_id=customer)
    db.commit()

    with pytest.raises(AlreadyClaimed):
        claim_service.claim_voucher(db, voucher_id=voucher.voucher_id, customer_id=customer)
    db.rollback()

    assert db.query(VoucherClaim).filter_by(voucher_id=voucher.voucher_id).count() == 1


def test_wallet_positions_increase_per_customer(db, make_voucher):
    first, second = make_voucher(), make_voucher()
    customer = uuid4()
    claim_service.claim_voucher(db, voucher_id=first.voucher_id, customer_id=customer)
    claim = claim_service.claim_voucher(db, voucher_id=second.voucher_id, customer_id=customer)
    assert claim.wallet_position == 2


def test_claim_outside_window_is_rejected(db, make_voucher):
    now = utcnow()
    upcoming = make_voucher(valid_from=now + timedelta(days=1), expires_at=now + timedelta(days=2))
    with pytest.raises(NotYetValid):
        claim_service.claim_voucher(db, voucher_id=upcoming.voucher_id, customer_id=uuid4())
    db.rollback()

    ended = make_voucher(valid_from=now - timedelta(days=2), expires_at=now - timedelta(days=1))
    with pytest.raises(Expired):
        claim_service.claim_voucher(db, voucher_id=ended.voucher_id, customer_id=uuid4())


def test_claim_unknown_voucher(db):
    with pytest.raises(VoucherNotFound):
        claim_service.claim_voucher(db, voucher_id=uuid4(), customer_id=uuid4())


def test_non_duplicate_integrity_errors_are_not_reported_as_already_claimed(db, make_voucher, monkeypatch):
    voucher = make_voucher()
    # wallet_position is NOT NULL, so this insert fails for a reason other than a duplicate claim.
    monkeypatch.setattr(claim_service, "_next_wallet_position", lambda session, customer_id: None)

    with pytest.raises(IntegrityError):
        claim_service.claim_voucher(db, voucher_id=voucher.voucher_id, customer_id=uuid4())
