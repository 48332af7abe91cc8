"""Expiry reminders for claimed vouchers."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from ..core.config import get_settings
from ..models import ClaimReminder, Voucher, VoucherClaim
from ..utils.datetime import ensure_utc, utcnow
from .expiry import is_sold_out
from .redemption_service import customer_redemption_count

logger = logging.getLogger(__name__)

ReminderNotifier = Callable[[VoucherClaim, Voucher], None]


def log_notifier(claim: VoucherClaim, voucher: Voucher) -> None:
    """Default notifier; delivery channels live outside this service."""

    logger.info(
        "expiry reminder: customer %s, voucher %s expires at %s",
        claim.customer_id,
        voucher.voucher_id,
        ensure_utc(voucher.expires_at).isoformat(),
    )


def send_due_reminders(
    session: Session,
    *,
    notifier: ReminderNotifier = log_notifier,
    now: Optional[datetime] = None,
) -> dict[str, int]:
    """Remind opted-in customers about claimed vouchers that expire soon.

    Each claim is reminded at most once. Returns summary statistics useful for
    logging/testing.
    """

    current = ensure_utc(now) if now else utcnow()
    default_days = get_settings().default_reminder_days_before

    stmt = (
        select(VoucherClaim)
        .options(joinedload(VoucherClaim.voucher))
        .join(Voucher, Voucher.voucher_id == VoucherClaim.voucher_id)
        .outerjoin(ClaimReminder, ClaimReminder.claim_id == VoucherClaim.claim_id)
        .where(
            ClaimReminder.reminder_id.is_(None),
            Voucher.valid_from <= current,
            Voucher.expires_at > current,
        )
    )

    summary = {
        "claims_checked": 0,
        "reminders_sent": 0,
        "notifier_failures": 0,
    }

    for claim in session.execute(stmt).scalars().all():
        summary["claims_checked"] += 1
        preferences = claim.notification_preferences or {}
        if not preferences.get("enable_reminders"):
            continue

        voucher = claim.voucher
        days_before = preferences.get("reminder_days_before")
        if days_before is None:
            days_before = default_days
        if ensure_utc(voucher.expires_at) - current > timedelta(days=days_before):
            continue
        if is_sold_out(voucher):
            continue
        if customer_redemption_count(session, claim.voucher_id, claim.customer_id) >= voucher.max_redemptions_per_user:
            continue

        try:
            notifier(claim, voucher)
        except Exception:
            summary["notifier_failures"] += 1
            logger.exception("reminder delivery failed for claim %s", claim.claim_id)
            continue

        session.add(ClaimReminder(claim_id=claim.claim_id, sent_at=current))
        summary["reminders_sent"] += 1

    session.flush()
    return summary
