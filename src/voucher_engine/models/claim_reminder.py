"""Expiry reminder dedupe log."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..utils.datetime import utcnow


class ClaimReminder(Base):
    """Records that an expiry reminder went out for a claim."""

    __tablename__ = "claim_reminders"
    __table_args__ = (
        UniqueConstraint("claim_id", name="claim_reminders_claim_unique"),
    )

    reminder_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    claim_id = Column(Uuid(as_uuid=True), ForeignKey("voucher_claims.claim_id", ondelete="CASCADE"), nullable=False)
    sent_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    claim = relationship("VoucherClaim", back_populates="reminder")
