"""Scan analytics model."""

import enum
import uuid

from sqlalchemy import JSON, Column, DateTime, Enum as SAEnum, ForeignKey, Uuid

from ..core.database import Base
from ..utils.datetime import utcnow


class ScanSource(str, enum.Enum):
    """Where the scan originated on the client."""

    CAMERA = "CAMERA"
    GALLERY = "GALLERY"
    LINK = "LINK"
    SHARE = "SHARE"


class ScanType(str, enum.Enum):
    """Who performed the scan."""

    CUSTOMER = "CUSTOMER"
    PROVIDER = "PROVIDER"


class VoucherScan(Base):
    """Append-only scan event, read only by analytics."""

    __tablename__ = "voucher_scans"

    scan_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    voucher_id = Column(Uuid(as_uuid=True), ForeignKey("vouchers.voucher_id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id = Column(Uuid(as_uuid=True))
    provider_id = Column(Uuid(as_uuid=True))
    scan_source = Column(SAEnum(ScanSource, name="voucher_scan_source"), nullable=False, default=ScanSource.CAMERA)
    scan_type = Column(SAEnum(ScanType, name="voucher_scan_type"), nullable=False, default=ScanType.CUSTOMER)
    location = Column(JSON)
    device_info = Column(JSON)
    scanned_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
