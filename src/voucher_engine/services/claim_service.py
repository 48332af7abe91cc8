"""Domain logic for saving vouchers to customer wallets."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models import Voucher, VoucherClaim
from ..utils.datetime import ensure_utc, utcnow
from .errors import AlreadyClaimed, VoucherNotFound
from .expiry import ensure_available

logger = logging.getLogger(__name__)


def _ensure_voucher(session: Session, voucher_id: UUID) -> Voucher:
    stmt = select(Voucher).where(Voucher.voucher_id == voucher_id)
    voucher = session.execute(stmt).scalar_one_or_none()
    if voucher is None:
        raise VoucherNotFound(f"Voucher {voucher_id} not found")
    return voucher


def _next_wallet_position(session: Session, customer_id: UUID) -> int:
    stmt = select(func.count(VoucherClaim.claim_id)).where(VoucherClaim.customer_id == customer_id)
    return session.execute(stmt).scalar_one() + 1


def find_claim(session: Session, voucher_id: UUID, customer_id: UUID) -> Optional[VoucherClaim]:
    stmt = select(VoucherClaim).where(
        VoucherClaim.voucher_id == voucher_id,
        VoucherClaim.customer_id == customer_id,
    )
    return session.execute(stmt).scalar_one_or_none()


def claim_voucher(
    session: Session,
    *,
    voucher_id: UUID,
    customer_id: UUID,
    notification_preferences: Optional[Mapping[str, Any]] = None,
    now: Optional[datetime] = None,
) -> VoucherClaim:
    """Add the voucher to the customer's wallet.

    Duplicates are rejected by the (voucher_id, customer_id) unique constraint,
    so two racing requests for the same pair yield one claim and one
    ``AlreadyClaimed``. Redemption capacity is untouched.
    """

    current = ensure_utc(now) if now else utcnow()
    voucher = _ensure_voucher(session, voucher_id)
    ensure_available(voucher, current)

    claim = VoucherClaim(
        voucher_id=voucher.voucher_id,
        customer_id=customer_id,
        wallet_position=_next_wallet_position(session, customer_id),
        notification_preferences=dict(notification_preferences) if notification_preferences else None,
        claimed_at=current,
    )
    try:
        with session.begin_nested():
            session.add(claim)
    except IntegrityError as exc:
        if find_claim(session, voucher.voucher_id, customer_id) is None:
            raise
        raise AlreadyClaimed("Customer has already claimed this voucher.") from exc

    logger.info("customer %s claimed voucher %s", customer_id, voucher_id)
    return claim
