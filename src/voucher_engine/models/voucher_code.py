"""Redemption code model."""

import enum
import uuid

from sqlalchemy import Boolean, Column, DateTime, Enum as SAEnum, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..utils.datetime import utcnow


class CodeType(str, enum.Enum):
    """Supported code formats."""

    SHORT = "SHORT"
    QR = "QR"
    STATIC = "STATIC"


class VoucherCode(Base):
    """Code identifying a voucher at redemption time, shared by all customers."""

    __tablename__ = "voucher_codes"
    __table_args__ = (
        UniqueConstraint("code", name="voucher_codes_code_unique"),
    )

    code_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    voucher_id = Column(Uuid(as_uuid=True), ForeignKey("vouchers.voucher_id", ondelete="CASCADE"), nullable=False, index=True)
    code = Column(String(512), nullable=False)
    code_type = Column(SAEnum(CodeType, name="voucher_code_type"), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    voucher = relationship("Voucher", back_populates="codes")
