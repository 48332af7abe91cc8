"""Redemption ledger model."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, Uuid
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..utils.datetime import utcnow


class VoucherRedemption(Base):
    """One consumed unit of a voucher's capacity. Append-only."""

    __tablename__ = "voucher_redemptions"
    __table_args__ = (
        Index("voucher_redemptions_voucher_customer_idx", "voucher_id", "customer_id"),
    )

    redemption_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    voucher_id = Column(Uuid(as_uuid=True), ForeignKey("vouchers.voucher_id", ondelete="RESTRICT"), nullable=False)
    customer_id = Column(Uuid(as_uuid=True), nullable=False)
    code_id = Column(Uuid(as_uuid=True), ForeignKey("voucher_codes.code_id", ondelete="RESTRICT"), nullable=False)
    redeemed_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    voucher = relationship("Voucher", back_populates="redemptions")
    code = relationship("VoucherCode")
