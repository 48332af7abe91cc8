"""Domain logic for voucher redemptions.

The voucher row lock is the single serialization point per voucher: the global
cap and the per-customer cap live in different tables, so both are checked
while the lock is held and the redemption row plus the counter increment are
written in the same transaction.
"""

from __future__ import annotations

import logging
import random
import time
from datetime import datetime
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..core.database import is_transient_db_error
from ..models import Voucher, VoucherCode, VoucherRedemption
from ..utils.datetime import ensure_utc, utcnow
from .errors import (
    InvalidCode,
    PerUserLimitExceeded,
    SoldOut,
    TransientConcurrencyError,
    VoucherNotFound,
    VoucherRuleViolation,
)
from .expiry import ensure_available

logger = logging.getLogger(__name__)


def _set_lock_timeout(session: Session) -> None:
    # SQLite waits through busy_timeout at BEGIN IMMEDIATE instead.
    if session.get_bind().dialect.name == "postgresql":
        lock_timeout_ms = int(get_settings().lock_timeout_ms)
        session.execute(text(f"SET LOCAL lock_timeout = {lock_timeout_ms}"))


def _lock_voucher(session: Session, voucher_id: UUID) -> Voucher:
    stmt = (
        select(Voucher)
        .where(Voucher.voucher_id == voucher_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    try:
        _set_lock_timeout(session)
        voucher = session.execute(stmt).scalar_one_or_none()
    except OperationalError as exc:
        if is_transient_db_error(exc):
            raise TransientConcurrencyError(f"Voucher {voucher_id} is busy, retry shortly.") from exc
        raise
    if voucher is None:
        raise VoucherNotFound(f"Voucher {voucher_id} not found")
    return voucher


def _resolve_code(session: Session, voucher_id: UUID, code: str) -> VoucherCode:
    stmt = select(VoucherCode).where(VoucherCode.code == code.strip())
    voucher_code = session.execute(stmt).scalar_one_or_none()
    if voucher_code is None or not voucher_code.is_active or voucher_code.voucher_id != voucher_id:
        raise InvalidCode("Code is not valid for this voucher.")
    return voucher_code


def customer_redemption_count(session: Session, voucher_id: UUID, customer_id: UUID) -> int:
    stmt = select(func.count(VoucherRedemption.redemption_id)).where(
        VoucherRedemption.voucher_id == voucher_id,
        VoucherRedemption.customer_id == customer_id,
    )
    return session.execute(stmt).scalar_one()


def redeem(
    session: Session,
    *,
    voucher_id: UUID,
    customer_id: UUID,
    code: str,
    now: Optional[datetime] = None,
) -> VoucherRedemption:
    """Consume one unit of capacity inside the caller's transaction.

    Nothing is written unless every check passes. The caller commits.
    """

    current = ensure_utc(now) if now else utcnow()
    voucher = _lock_voucher(session, voucher_id)

    voucher_code = _resolve_code(session, voucher.voucher_id, code)
    ensure_available(voucher, current)

    redeemed = customer_redemption_count(session, voucher.voucher_id, customer_id)
    if redeemed >= voucher.max_redemptions_per_user:
        raise PerUserLimitExceeded(
            f"Customer already redeemed this voucher {redeemed} time(s); limit is {voucher.max_redemptions_per_user}."
        )

    if voucher.max_redemptions is not None and voucher.current_redemptions >= voucher.max_redemptions:
        raise SoldOut(f"Voucher {voucher_id} is sold out.")

    redemption = VoucherRedemption(
        voucher_id=voucher.voucher_id,
        customer_id=customer_id,
        code_id=voucher_code.code_id,
        redeemed_at=current,
    )
    session.add(redemption)
    voucher.current_redemptions = Voucher.current_redemptions + 1
    voucher.updated_at = current
    session.flush()

    return redemption


def _commit(session: Session) -> None:
    try:
        session.commit()
    except OperationalError as exc:
        if is_transient_db_error(exc):
            raise TransientConcurrencyError("Redemption commit lost a concurrency race, retry shortly.") from exc
        raise


def redeem_with_retry(
    session: Session,
    *,
    voucher_id: UUID,
    customer_id: UUID,
    code: str,
    max_attempts: Optional[int] = None,
    backoff_ms: Optional[int] = None,
    now: Optional[datetime] = None,
) -> VoucherRedemption:
    """Run :func:`redeem` and commit, retrying only transient lock contention.

    Business rejections (sold out, per-customer limit, window, code) are final
    and re-raised after rolling back.
    """

    settings = get_settings()
    attempts = settings.redemption_max_attempts if max_attempts is None else max_attempts
    if attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    base_delay = (settings.redemption_backoff_ms if backoff_ms is None else backoff_ms) / 1000

    for attempt in range(1, attempts + 1):
        try:
            redemption = redeem(session, voucher_id=voucher_id, customer_id=customer_id, code=code, now=now)
            _commit(session)
        except TransientConcurrencyError:
            session.rollback()
            if attempt >= attempts:
                logger.warning("redemption of voucher %s gave up after %d attempts", voucher_id, attempts)
                raise
            delay = base_delay * (2 ** (attempt - 1))
            delay += random.uniform(0, delay)
            logger.warning(
                "redemption of voucher %s hit lock contention (attempt %d/%d), retrying in %.3fs",
                voucher_id,
                attempt,
                attempts,
                delay,
            )
            time.sleep(delay)
            continue
        except VoucherRuleViolation:
            session.rollback()
            raise

        logger.info("customer %s redeemed voucher %s", customer_id, voucher_id)
        return redemption

    raise TransientConcurrencyError(f"Voucher {voucher_id} is busy, retry shortly.")  # pragma: no cover


def list_redemptions(
    session: Session,
    *,
    voucher_id: UUID,
    customer_id: Optional[UUID] = None,
    limit: int = 50,
    offset: int = 0,
) -> Sequence[VoucherRedemption]:
    """Return redemption history for a voucher, newest first."""

    stmt = (
        select(VoucherRedemption)
        .where(VoucherRedemption.voucher_id == voucher_id)
        .order_by(VoucherRedemption.redeemed_at.desc())
        .offset(offset)
        .limit(limit)
    )
    if customer_id:
        stmt = stmt.where(VoucherRedemption.customer_id == customer_id)
    return session.execute(stmt).scalars().all()
