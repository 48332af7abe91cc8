"""Scan tracking endpoint."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...schemas import ScanCreate, ScanResultRead, VoucherRead
from ...services import scan_service
from ...services.errors import VoucherRuleViolation
from .errors import as_http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vouchers", tags=["scans"])


@router.post(
    "/{voucher_id}/scans",
    response_model=ScanResultRead,
    status_code=status.HTTP_201_CREATED,
    summary="Record a voucher scan",
    responses={404: {"description": "Voucher not found"}},
)
def track_scan(
    voucher_id: UUID,
    payload: ScanCreate,
    db: Session = Depends(get_db),
) -> ScanResultRead:
    """Return claim hints for a scanned voucher. Scan logging is best-effort."""

    try:
        result = scan_service.track_scan(
            db,
            voucher_id=voucher_id,
            customer_id=payload.customer_id,
            provider_id=payload.provider_id,
            scan_source=payload.scan_source,
            location=payload.location.model_dump() if payload.location else None,
            device_info=payload.device_info,
        )
    except VoucherRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc

    response = ScanResultRead(
        voucher=VoucherRead.from_voucher(result.voucher),
        scan_id=result.scan_id,
        can_claim=result.can_claim,
        already_claimed=result.already_claimed,
        nearby_locations=result.nearby_locations,
    )
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("failed to persist scan %s for voucher %s", result.scan_id, voucher_id)
    return response
