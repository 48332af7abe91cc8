"""Customer wallet claim model."""

import uuid

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..utils.datetime import utcnow


class VoucherClaim(Base):
    """A voucher saved to a customer's wallet. Written once, never updated."""

    __tablename__ = "voucher_claims"
    __table_args__ = (
        UniqueConstraint("voucher_id", "customer_id", name="voucher_claims_unique"),
    )

    claim_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    voucher_id = Column(Uuid(as_uuid=True), ForeignKey("vouchers.voucher_id", ondelete="RESTRICT"), nullable=False)
    customer_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    wallet_position = Column(Integer, nullable=False)
    notification_preferences = Column(JSON)
    claimed_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    voucher = relationship("Voucher", back_populates="claims")
    reminder = relationship("ClaimReminder", back_populates="claim", uselist=False)
