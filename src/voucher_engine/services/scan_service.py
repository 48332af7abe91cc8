"""Scan tracking: analytics events plus claim hints for the scanning client."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..models import ScanSource, ScanType, Voucher, VoucherScan
from ..utils.datetime import ensure_utc, utcnow
from ..utils.geo import haversine_km
from .claim_service import find_claim
from .errors import ExternalServiceError
from .expiry import Availability, voucher_availability
from .voucher_service import get_voucher, search_vouchers

logger = logging.getLogger(__name__)

NEARBY_CANDIDATE_LIMIT = 100


@dataclass
class ScanResult:
    voucher: Voucher
    scan_id: UUID
    can_claim: bool
    already_claimed: bool
    nearby_locations: Optional[list[dict[str, Any]]] = None


def _coordinates(location: Mapping[str, Any]) -> tuple[float, float]:
    return float(location["lat"]), float(location["lng"])


def _nearby_locations(
    session: Session,
    voucher: Voucher,
    location: Mapping[str, Any],
    now: datetime,
) -> list[dict[str, Any]]:
    """Other available vouchers of the same provider within the configured radius."""

    try:
        lat, lng = _coordinates(location)
    except (KeyError, TypeError, ValueError) as exc:
        raise ExternalServiceError("Scan location has no usable coordinates") from exc

    try:
        candidates = search_vouchers(
            session,
            provider_id=voucher.provider_id,
            available_only=True,
            limit=NEARBY_CANDIDATE_LIMIT,
            now=now,
        )
    except SQLAlchemyError as exc:
        raise ExternalServiceError("Nearby voucher lookup failed") from exc

    radius_km = get_settings().nearby_radius_km
    nearby = []
    for candidate in candidates:
        if candidate.voucher_id == voucher.voucher_id or not candidate.location:
            continue
        try:
            c_lat, c_lng = _coordinates(candidate.location)
        except (KeyError, TypeError, ValueError):
            continue
        distance = haversine_km(lat, lng, c_lat, c_lng)
        if distance <= radius_km:
            nearby.append(
                {
                    "voucher_id": candidate.voucher_id,
                    "lat": c_lat,
                    "lng": c_lng,
                    "distance_km": round(distance, 3),
                }
            )
    return sorted(nearby, key=lambda item: item["distance_km"])


def _record_scan(session: Session, scan: VoucherScan) -> None:
    try:
        with session.begin_nested():
            session.add(scan)
    except SQLAlchemyError:
        logger.exception("failed to record scan %s for voucher %s", scan.scan_id, scan.voucher_id)


def track_scan(
    session: Session,
    *,
    voucher_id: UUID,
    customer_id: Optional[UUID] = None,
    scan_source: ScanSource = ScanSource.CAMERA,
    location: Optional[Mapping[str, Any]] = None,
    device_info: Optional[Mapping[str, Any]] = None,
    provider_id: Optional[UUID] = None,
    now: Optional[datetime] = None,
) -> ScanResult:
    """Return claim hints for a viewed voucher and log the scan best-effort.

    Read path only: nothing that affects claims or redemptions is written.
    """

    current = ensure_utc(now) if now else utcnow()
    voucher = get_voucher(session, voucher_id)

    already_claimed = bool(customer_id) and find_claim(session, voucher.voucher_id, customer_id) is not None
    can_claim = voucher_availability(voucher, current) is Availability.AVAILABLE and not already_claimed

    nearby = None
    if location:
        try:
            nearby = _nearby_locations(session, voucher, location, current)
        except ExternalServiceError:
            logger.warning("nearby lookup failed for scan of voucher %s", voucher_id, exc_info=True)

    scan = VoucherScan(
        scan_id=uuid.uuid4(),
        voucher_id=voucher.voucher_id,
        customer_id=customer_id,
        provider_id=provider_id,
        scan_source=scan_source,
        scan_type=ScanType.PROVIDER if provider_id else ScanType.CUSTOMER,
        location=dict(location) if location else None,
        device_info=dict(device_info) if device_info else None,
        scanned_at=current,
    )
    _record_scan(session, scan)

    return ScanResult(
        voucher=voucher,
        scan_id=scan.scan_id,
        can_claim=can_claim,
        already_claimed=already_claimed,
        nearby_locations=nearby,
    )
