"""Endpoints for claiming vouchers into a wallet."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...schemas import ClaimCreate, ClaimRead
from ...services import claim_service
from ...services.errors import VoucherRuleViolation
from .errors import as_http_error

router = APIRouter(prefix="/vouchers", tags=["claims"])


@router.post(
    "/{voucher_id}/claims",
    response_model=ClaimRead,
    status_code=status.HTTP_201_CREATED,
    summary="Claim a voucher",
    responses={
        201: {
            "description": "Voucher added to the wallet",
            "content": {
                "application/json": {
                    "example": {
                        "claim_id": "55555555-5555-5555-5555-555555555555",
                        "voucher_id": "11111111-1111-1111-1111-111111111111",
                        "customer_id": "66666666-6666-6666-6666-666666666666",
                        "wallet_position": 3,
                        "notification_preferences": {"enable_reminders": True, "reminder_days_before": 2},
                        "claimed_at": "2026-01-05T10:15:30+00:00",
                    }
                }
            },
        },
        404: {"description": "Voucher not found"},
        409: {"description": "Already claimed or outside the validity window"},
    },
)
def claim_voucher(
    voucher_id: UUID,
    payload: ClaimCreate,
    db: Session = Depends(get_db),
) -> ClaimRead:
    """Add a voucher to the customer's wallet without consuming capacity.

    Example request body::

        {
            "customer_id": "66666666-6666-6666-6666-666666666666",
            "notification_preferences": {"enable_reminders": true, "reminder_days_before": 2}
        }
    """

    preferences = payload.notification_preferences
    try:
        claim = claim_service.claim_voucher(
            db,
            voucher_id=voucher_id,
            customer_id=payload.customer_id,
            notification_preferences=preferences.model_dump() if preferences else None,
        )
        db.commit()
        db.refresh(claim)
        return claim
    except VoucherRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc
