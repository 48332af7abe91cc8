"""Voucher aggregate model."""

import enum
import uuid

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, Enum as SAEnum, Integer, Numeric, String, Uuid
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..utils.datetime import utcnow


class DiscountType(str, enum.Enum):
    """How the discount value is interpreted."""

    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"


class Voucher(Base):
    """A provider offer with a shared redemption capacity."""

    __tablename__ = "vouchers"
    __table_args__ = (
        CheckConstraint("current_redemptions >= 0", name="vouchers_current_redemptions_positive"),
        CheckConstraint(
            "max_redemptions IS NULL OR current_redemptions <= max_redemptions",
            name="vouchers_redemptions_within_cap",
        ),
        CheckConstraint("max_redemptions_per_user >= 1", name="vouchers_per_user_cap_positive"),
        CheckConstraint("valid_from < expires_at", name="vouchers_validity_window"),
    )

    voucher_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    provider_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    category_id = Column(Uuid(as_uuid=True), index=True)
    title = Column(JSON, nullable=False, default=dict)
    description = Column(JSON, nullable=False, default=dict)
    terms = Column(JSON, nullable=False, default=dict)
    discount_type = Column(SAEnum(DiscountType, name="voucher_discount_type"), nullable=False)
    discount_value = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    location = Column(JSON)
    valid_from = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    max_redemptions = Column(Integer)
    max_redemptions_per_user = Column(Integer, nullable=False, default=1)
    current_redemptions = Column(Integer, nullable=False, default=0)
    published_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    codes = relationship("VoucherCode", back_populates="voucher", order_by="VoucherCode.created_at")
    claims = relationship("VoucherClaim", back_populates="voucher")
    redemptions = relationship("VoucherRedemption", back_populates="voucher")
