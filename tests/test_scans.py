from datetime import timedelta
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError

from voucher_engine.models import ScanSource, ScanType, Voucher, VoucherScan
from voucher_engine.services import claim_service, scan_service
from voucher_engine.utils.datetime import utcnow

MADRID = {"lat": 40.4168, "lng": -3.7038}


def test_anonymous_scan_is_recorded_without_touching_counters(db, make_voucher):
    voucher = make_voucher()

    result = scan_service.track_scan(db, voucher_id=voucher.voucher_id, scan_source=ScanSource.LINK)
    db.commit()

    assert result.can_claim is True
    assert result.already_claimed is False
    assert result.nearby_locations is None

    scan = db.get(VoucherScan, result.scan_id)
    assert scan.customer_id is None
    assert scan.scan_type is ScanType.CUSTOMER
    assert db.get(Voucher, voucher.voucher_id).current_redemptions == 0


def test_scan_reports_existing_claim(db, make_voucher):
    voucher = make_voucher()
    customer = uuid4()
    claim_service.claim_voucher(db, voucher_id=voucher.voucher_id, customer_id=customer)
    db.commit()

    result = scan_service.track_scan(db, voucher_id=voucher.voucher_id, customer_id=customer)
    assert result.already_claimed is True
    assert result.can_claim is False


def test_expired_voucher_cannot_be_claimed_from_scan(db, make_voucher):
    now = utcnow()
    voucher = make_voucher(valid_from=now - timedelta(days=2), expires_at=now - timedelta(days=1))
    result = scan_service.track_scan(db, voucher_id=voucher.voucher_id, customer_id=uuid4())
    assert result.can_claim is False


def test_provider_scans_are_typed(db, make_voucher):
    voucher = make_voucher()
    result = scan_service.track_scan(db, voucher_id=voucher.voucher_id, provider_id=voucher.provider_id)
    db.commit()
    assert db.get(VoucherScan, result.scan_id).scan_type is ScanType.PROVIDER


def test_nearby_locations_are_same_provider_within_radius(db, make_voucher):
    provider = uuid4()
    scanned = make_voucher(provider_id=provider, location=MADRID)
    close = make_voucher(provider_id=provider, location={"lat": 40.4200, "lng": -3.7000})
    make_voucher(provider_id=provider, location={"lat": 41.3874, "lng": 2.1686})  # Barcelona
    make_voucher(location={"lat": 40.4170, "lng": -3.7040})  # other provider

    result = scan_service.track_scan(db, voucher_id=scanned.voucher_id, location=MADRID)

    assert [item["voucher_id"] for item in result.nearby_locations] == [close.voucher_id]
    assert result.nearby_locations[0]["distance_km"] < 1


def test_bad_location_is_ignored(db, make_voucher):
    voucher = make_voucher()
    result = scan_service.track_scan(db, voucher_id=voucher.voucher_id, location={"lat": "north"})
    assert result.nearby_locations is None
    assert result.can_claim is True


def test_scan_persistence_failure_still_returns_hints(db, make_voucher, monkeypatch):
    voucher = make_voucher()

    def broken_flush(*args, **kwargs):
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(db, "flush", broken_flush)
    result = scan_service.track_scan(db, voucher_id=voucher.voucher_id)

    assert result.can_claim is True
    assert result.voucher.voucher_id == voucher.voucher_id
