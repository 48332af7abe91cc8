"""Endpoints for voucher redemptions."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...schemas import RedemptionCreate, RedemptionRead, RedemptionReceipt
from ...services import redemption_service, voucher_service
from ...services.errors import VoucherRuleViolation
from .errors import as_http_error

router = APIRouter(prefix="/vouchers", tags=["redemptions"])


@router.post(
    "/{voucher_id}/redemptions",
    response_model=RedemptionReceipt,
    status_code=status.HTTP_201_CREATED,
    summary="Redeem a voucher",
    responses={
        201: {
            "description": "Redemption completed",
            "content": {
                "application/json": {
                    "example": {
                        "redemption": {
                            "redemption_id": "88888888-8888-8888-8888-888888888888",
                            "voucher_id": "11111111-1111-1111-1111-111111111111",
                            "customer_id": "66666666-6666-6666-6666-666666666666",
                            "code_id": "33333333-3333-3333-3333-333333333333",
                            "redeemed_at": "2026-01-12T14:30:00+00:00",
                        },
                        "remaining_capacity": 41,
                        "remaining_for_customer": 0,
                    }
                }
            },
        },
        400: {"description": "Code is not valid for this voucher"},
        404: {"description": "Voucher not found"},
        409: {"description": "Sold out, per-customer limit reached or outside the validity window"},
        503: {"description": "Voucher busy; retry after the Retry-After header"},
    },
)
def redeem_voucher(
    voucher_id: UUID,
    payload: RedemptionCreate,
    db: Session = Depends(get_db),
) -> RedemptionReceipt:
    """Consume one unit of the voucher's capacity.

    Example request body::

        {
            "customer_id": "66666666-6666-6666-6666-666666666666",
            "code": "K7QX2MPA"
        }
    """

    try:
        redemption = redemption_service.redeem_with_retry(
            db,
            voucher_id=voucher_id,
            customer_id=payload.customer_id,
            code=payload.code,
        )
    except VoucherRuleViolation as exc:
        raise as_http_error(exc) from exc

    db.refresh(redemption)
    voucher = voucher_service.get_voucher(db, voucher_id)
    redeemed = redemption_service.customer_redemption_count(db, voucher_id, payload.customer_id)
    remaining_capacity = None
    if voucher.max_redemptions is not None:
        remaining_capacity = max(voucher.max_redemptions - voucher.current_redemptions, 0)
    return RedemptionReceipt(
        redemption=RedemptionRead.model_validate(redemption),
        remaining_capacity=remaining_capacity,
        remaining_for_customer=max(voucher.max_redemptions_per_user - redeemed, 0),
    )


@router.get(
    "/{voucher_id}/redemptions",
    response_model=List[RedemptionRead],
    summary="List redemption history",
    responses={404: {"description": "Voucher not found"}},
)
def list_redemptions(
    voucher_id: UUID,
    customer_id: Optional[UUID] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
) -> List[RedemptionRead]:
    try:
        voucher_service.get_voucher(db, voucher_id)
    except VoucherRuleViolation as exc:
        raise as_http_error(exc) from exc
    return redemption_service.list_redemptions(
        db,
        voucher_id=voucher_id,
        customer_id=customer_id,
        limit=limit,
        offset=offset,
    )
