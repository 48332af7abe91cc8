"""Voucher catalog endpoints."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...schemas import VoucherCreate, VoucherRead, VoucherUpdate
from ...services import voucher_service
from ...services.errors import VoucherRuleViolation
from .errors import as_http_error

router = APIRouter(prefix="/vouchers", tags=["vouchers"])

_VOUCHER_EXAMPLE = {
    "voucher_id": "11111111-1111-1111-1111-111111111111",
    "provider_id": "22222222-2222-2222-2222-222222222222",
    "category_id": None,
    "title": {"en": "20% off coffee", "es": "20% de descuento en café"},
    "description": {"en": "Any hot drink"},
    "terms": {},
    "discount_type": "PERCENTAGE",
    "discount_value": "20.00",
    "currency": "USD",
    "location": {"lat": 40.4168, "lng": -3.7038},
    "valid_from": "2026-01-01T00:00:00+00:00",
    "expires_at": "2026-02-01T00:00:00+00:00",
    "max_redemptions": 100,
    "max_redemptions_per_user": 1,
    "current_redemptions": 0,
    "published_at": None,
    "created_at": "2025-12-20T09:00:00+00:00",
    "updated_at": "2025-12-20T09:00:00+00:00",
    "codes": [
        {
            "code_id": "33333333-3333-3333-3333-333333333333",
            "code": "K7QX2MPA",
            "code_type": "SHORT",
            "is_active": True,
        }
    ],
    "availability": "NOT_YET_VALID",
    "status": "NEW",
    "is_available": False,
}


@router.post(
    "",
    response_model=VoucherRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a voucher",
    responses={
        201: {
            "description": "Voucher created with its codes",
            "content": {"application/json": {"example": _VOUCHER_EXAMPLE}},
        },
        409: {"description": "Supplied static code already in use"},
        422: {"description": "Invalid voucher definition"},
        503: {"description": "Code generation exhausted"},
    },
)
def create_voucher(
    payload: VoucherCreate,
    db: Session = Depends(get_db),
) -> VoucherRead:
    """Create a voucher and issue its redemption codes.

    Example request body::

        {
            "provider_id": "22222222-2222-2222-2222-222222222222",
            "title": {"en": "20% off coffee"},
            "discount_type": "PERCENTAGE",
            "discount_value": 20,
            "valid_from": "2026-01-01T00:00:00Z",
            "expires_at": "2026-02-01T00:00:00Z",
            "max_redemptions": 100
        }
    """

    try:
        voucher = voucher_service.create_voucher(
            db,
            provider_id=payload.provider_id,
            category_id=payload.category_id,
            title=payload.title,
            description=payload.description,
            terms=payload.terms,
            discount_type=payload.discount_type,
            discount_value=payload.discount_value,
            currency=payload.currency,
            location=payload.location.model_dump() if payload.location else None,
            valid_from=payload.valid_from,
            expires_at=payload.expires_at,
            max_redemptions=payload.max_redemptions,
            max_redemptions_per_user=payload.max_redemptions_per_user,
            code_types=payload.code_types,
            static_code=payload.static_code,
        )
        db.commit()
        db.refresh(voucher)
        return VoucherRead.from_voucher(voucher)
    except VoucherRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc


@router.get(
    "",
    response_model=List[VoucherRead],
    summary="Search vouchers",
)
def search_vouchers(
    provider_id: Optional[UUID] = Query(None),
    category_id: Optional[UUID] = Query(None),
    available_only: bool = Query(False, description="Only vouchers that can be redeemed right now"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
) -> List[VoucherRead]:
    vouchers = voucher_service.search_vouchers(
        db,
        provider_id=provider_id,
        category_id=category_id,
        available_only=available_only,
        limit=limit,
        offset=offset,
    )
    return [VoucherRead.from_voucher(voucher) for voucher in vouchers]


@router.get(
    "/by-code/{code}",
    response_model=VoucherRead,
    summary="Look up a voucher by any of its codes",
    responses={404: {"description": "No active voucher matches the code"}},
)
def get_voucher_by_code(code: str, db: Session = Depends(get_db)) -> VoucherRead:
    try:
        return VoucherRead.from_voucher(voucher_service.get_voucher_by_code(db, code))
    except VoucherRuleViolation as exc:
        raise as_http_error(exc) from exc


@router.get(
    "/{voucher_id}",
    response_model=VoucherRead,
    summary="Fetch a voucher",
    responses={404: {"description": "Voucher not found"}},
)
def get_voucher(voucher_id: UUID, db: Session = Depends(get_db)) -> VoucherRead:
    try:
        return VoucherRead.from_voucher(voucher_service.get_voucher(db, voucher_id))
    except VoucherRuleViolation as exc:
        raise as_http_error(exc) from exc


@router.patch(
    "/{voucher_id}",
    response_model=VoucherRead,
    summary="Update a voucher",
    responses={
        404: {"description": "Voucher not found"},
        422: {"description": "Invalid voucher definition"},
    },
)
def update_voucher(
    voucher_id: UUID,
    payload: VoucherUpdate,
    db: Session = Depends(get_db),
) -> VoucherRead:
    """Partially update a voucher. Language maps are merged, not replaced."""

    try:
        voucher = voucher_service.update_voucher(db, voucher_id, payload.model_dump(exclude_unset=True))
        db.commit()
        db.refresh(voucher)
        return VoucherRead.from_voucher(voucher)
    except VoucherRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc


@router.post(
    "/{voucher_id}/publish",
    response_model=VoucherRead,
    summary="Publish a voucher",
    responses={
        404: {"description": "Voucher not found"},
        409: {"description": "Voucher already expired"},
    },
)
def publish_voucher(voucher_id: UUID, db: Session = Depends(get_db)) -> VoucherRead:
    try:
        voucher = voucher_service.publish_voucher(db, voucher_id)
        db.commit()
        db.refresh(voucher)
        return VoucherRead.from_voucher(voucher)
    except VoucherRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc


@router.post(
    "/{voucher_id}/expire",
    response_model=VoucherRead,
    summary="Expire a voucher immediately",
    responses={404: {"description": "Voucher not found"}},
)
def expire_voucher(voucher_id: UUID, db: Session = Depends(get_db)) -> VoucherRead:
    try:
        voucher = voucher_service.expire_voucher(db, voucher_id)
        db.commit()
        db.refresh(voucher)
        return VoucherRead.from_voucher(voucher)
    except VoucherRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc
