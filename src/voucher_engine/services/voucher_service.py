"""Voucher catalog operations used by publishers and read paths."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, joinedload, selectinload

from ..models import CodeType, DiscountType, Voucher, VoucherClaim, VoucherCode, VoucherRedemption
from ..utils.datetime import ensure_utc, utcnow
from .code_issuer import issue_codes
from .errors import CodeNotFound, Expired, InvalidVoucherDefinition, VoucherNotFound
from .expiry import Availability, voucher_availability

logger = logging.getLogger(__name__)

DEFAULT_CODE_TYPES = (CodeType.SHORT, CodeType.QR)
MULTILINGUAL_FIELDS = ("title", "description", "terms")


def _validate_window(valid_from: datetime, expires_at: datetime) -> None:
    if ensure_utc(valid_from) >= ensure_utc(expires_at):
        raise InvalidVoucherDefinition("valid_from must be earlier than expires_at.")


def _validate_caps(max_redemptions: Optional[int], max_redemptions_per_user: int) -> None:
    if max_redemptions_per_user < 1:
        raise InvalidVoucherDefinition("max_redemptions_per_user must be at least 1.")
    if max_redemptions is not None and max_redemptions < 1:
        raise InvalidVoucherDefinition("max_redemptions must be at least 1 when set.")


def _validate_discount(discount_type: DiscountType, discount_value: Decimal) -> None:
    if discount_value <= 0:
        raise InvalidVoucherDefinition("discount_value must be positive.")
    if discount_type is DiscountType.PERCENTAGE and discount_value > 100:
        raise InvalidVoucherDefinition("Percentage discounts cannot exceed 100.")


def get_voucher(session: Session, voucher_id: UUID) -> Voucher:
    stmt = select(Voucher).options(selectinload(Voucher.codes)).where(Voucher.voucher_id == voucher_id)
    voucher = session.execute(stmt).scalar_one_or_none()
    if voucher is None:
        raise VoucherNotFound(f"Voucher {voucher_id} not found")
    return voucher


def _get_voucher_for_update(session: Session, voucher_id: UUID) -> Voucher:
    stmt = (
        select(Voucher)
        .where(Voucher.voucher_id == voucher_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    voucher = session.execute(stmt).scalar_one_or_none()
    if voucher is None:
        raise VoucherNotFound(f"Voucher {voucher_id} not found")
    return voucher


def _max_customer_redemptions(session: Session, voucher_id: UUID) -> int:
    per_customer = (
        select(func.count(VoucherRedemption.redemption_id).label("redeemed"))
        .where(VoucherRedemption.voucher_id == voucher_id)
        .group_by(VoucherRedemption.customer_id)
        .subquery()
    )
    return session.execute(select(func.coalesce(func.max(per_customer.c.redeemed), 0))).scalar_one()


def create_voucher(
    session: Session,
    *,
    provider_id: UUID,
    title: Mapping[str, str],
    discount_type: DiscountType,
    discount_value: Decimal,
    valid_from: datetime,
    expires_at: datetime,
    max_redemptions_per_user: int = 1,
    max_redemptions: Optional[int] = None,
    category_id: Optional[UUID] = None,
    description: Optional[Mapping[str, str]] = None,
    terms: Optional[Mapping[str, str]] = None,
    currency: str = "USD",
    location: Optional[Mapping[str, float]] = None,
    code_types: Sequence[CodeType] = DEFAULT_CODE_TYPES,
    static_code: Optional[str] = None,
) -> Voucher:
    """Persist a NEW voucher and issue its redemption codes."""

    _validate_window(valid_from, expires_at)
    _validate_caps(max_redemptions, max_redemptions_per_user)
    _validate_discount(discount_type, Decimal(discount_value))
    if not title:
        raise InvalidVoucherDefinition("title needs at least one language.")

    voucher = Voucher(
        provider_id=provider_id,
        category_id=category_id,
        title=dict(title),
        description=dict(description or {}),
        terms=dict(terms or {}),
        discount_type=discount_type,
        discount_value=Decimal(discount_value),
        currency=currency.upper(),
        location=dict(location) if location else None,
        valid_from=ensure_utc(valid_from),
        expires_at=ensure_utc(expires_at),
        max_redemptions=max_redemptions,
        max_redemptions_per_user=max_redemptions_per_user,
        current_redemptions=0,
    )
    session.add(voucher)
    session.flush()  # Codes reference the voucher id

    requested = list(code_types) or list(DEFAULT_CODE_TYPES)
    if static_code and CodeType.STATIC not in requested:
        requested.append(CodeType.STATIC)
    issue_codes(session, voucher.voucher_id, requested, static_code=static_code)

    session.refresh(voucher)
    logger.info("created voucher %s for provider %s", voucher.voucher_id, provider_id)
    return voucher


def publish_voucher(session: Session, voucher_id: UUID, *, now: Optional[datetime] = None) -> Voucher:
    """Record the publish call. Availability still follows the validity window."""

    current = ensure_utc(now) if now else utcnow()
    voucher = get_voucher(session, voucher_id)
    if voucher_availability(voucher, current) is Availability.EXPIRED:
        raise Expired(f"Voucher {voucher_id} has already expired and cannot be published.")
    if voucher.published_at is None:
        voucher.published_at = current
        session.flush()
    return voucher


def update_voucher(session: Session, voucher_id: UUID, changes: Mapping[str, Any]) -> Voucher:
    """Apply a partial update under the voucher row lock.

    Language maps are merged: supplied languages overwrite, the rest are kept.
    """

    voucher = _get_voucher_for_update(session, voucher_id)

    for field in MULTILINGUAL_FIELDS:
        supplied = changes.get(field)
        if supplied:
            setattr(voucher, field, {**(getattr(voucher, field) or {}), **supplied})

    valid_from = ensure_utc(changes.get("valid_from") or voucher.valid_from)
    expires_at = ensure_utc(changes.get("expires_at") or voucher.expires_at)
    _validate_window(valid_from, expires_at)
    voucher.valid_from = valid_from
    voucher.expires_at = expires_at

    max_redemptions = changes.get("max_redemptions", voucher.max_redemptions)
    per_user = changes.get("max_redemptions_per_user")
    if per_user is None:
        per_user = voucher.max_redemptions_per_user
    _validate_caps(max_redemptions, per_user)
    if max_redemptions is not None and max_redemptions < voucher.current_redemptions:
        raise InvalidVoucherDefinition(
            f"max_redemptions cannot drop below the {voucher.current_redemptions} redemptions already made."
        )
    most_by_one_customer = _max_customer_redemptions(session, voucher.voucher_id)
    if per_user < most_by_one_customer:
        raise InvalidVoucherDefinition(
            f"max_redemptions_per_user cannot drop below the {most_by_one_customer} redemptions one customer already made."
        )
    voucher.max_redemptions = max_redemptions
    voucher.max_redemptions_per_user = per_user

    if "location" in changes:
        voucher.location = dict(changes["location"]) if changes["location"] else None
    if changes.get("category_id"):
        voucher.category_id = changes["category_id"]

    voucher.updated_at = utcnow()
    session.flush()
    return voucher


def expire_voucher(session: Session, voucher_id: UUID, *, now: Optional[datetime] = None) -> Voucher:
    """End the validity window now. Already expired vouchers are left untouched."""

    current = ensure_utc(now) if now else utcnow()
    voucher = _get_voucher_for_update(session, voucher_id)
    if ensure_utc(voucher.expires_at) > current:
        if ensure_utc(voucher.valid_from) >= current:
            voucher.valid_from = current - timedelta(seconds=1)
        voucher.expires_at = current
        voucher.updated_at = current
        session.flush()
        logger.info("expired voucher %s", voucher_id)
    return voucher


def get_voucher_by_code(session: Session, code: str) -> Voucher:
    """Resolve any active code string to its voucher."""

    stmt = (
        select(VoucherCode)
        .options(joinedload(VoucherCode.voucher).selectinload(Voucher.codes))
        .where(VoucherCode.code == code.strip(), VoucherCode.is_active.is_(True))
    )
    voucher_code = session.execute(stmt).scalar_one_or_none()
    if voucher_code is None:
        raise CodeNotFound("No active voucher matches this code")
    return voucher_code.voucher


def search_vouchers(
    session: Session,
    *,
    provider_id: Optional[UUID] = None,
    category_id: Optional[UUID] = None,
    available_only: bool = False,
    limit: int = 50,
    offset: int = 0,
    now: Optional[datetime] = None,
) -> Sequence[Voucher]:
    """List vouchers with optional filters, newest first."""

    stmt = (
        select(Voucher)
        .options(selectinload(Voucher.codes))
        .order_by(Voucher.created_at.desc(), Voucher.voucher_id)
        .offset(offset)
        .limit(limit)
    )

    if provider_id:
        stmt = stmt.where(Voucher.provider_id == provider_id)
    if category_id:
        stmt = stmt.where(Voucher.category_id == category_id)
    if available_only:
        current = ensure_utc(now) if now else utcnow()
        stmt = stmt.where(
            Voucher.valid_from <= current,
            Voucher.expires_at > current,
            or_(Voucher.max_redemptions.is_(None), Voucher.current_redemptions < Voucher.max_redemptions),
        )

    return session.execute(stmt).scalars().all()


def list_wallet(session: Session, customer_id: UUID) -> list[tuple[VoucherClaim, int]]:
    """Return the customer's claims in wallet order with their redemption counts."""

    redeemed = (
        select(VoucherRedemption.voucher_id, func.count(VoucherRedemption.redemption_id).label("redeemed"))
        .where(VoucherRedemption.customer_id == customer_id)
        .group_by(VoucherRedemption.voucher_id)
        .subquery()
    )
    stmt = (
        select(VoucherClaim, func.coalesce(redeemed.c.redeemed, 0))
        .options(joinedload(VoucherClaim.voucher))
        .outerjoin(redeemed, redeemed.c.voucher_id == VoucherClaim.voucher_id)
        .where(VoucherClaim.customer_id == customer_id)
        .order_by(VoucherClaim.wallet_position.asc())
    )
    return [(claim, int(count or 0)) for claim, count in session.execute(stmt).all()]
