"""Pydantic schemas for scan tracking."""

from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models import ScanSource
from .voucher import GeoPoint, VoucherRead


class ScanCreate(BaseModel):
    """Scan event reported by a client. Every field is optional."""

    customer_id: Optional[UUID] = None
    provider_id: Optional[UUID] = Field(None, description="Set when a provider device performs the scan.")
    scan_source: ScanSource = ScanSource.CAMERA
    location: Optional[GeoPoint] = None
    device_info: Optional[Dict[str, Any]] = None


class NearbyLocation(BaseModel):
    voucher_id: UUID
    lat: float
    lng: float
    distance_km: float


class ScanResultRead(BaseModel):
    """Voucher plus claim hints for the scanning client."""

    voucher: VoucherRead
    scan_id: UUID
    can_claim: bool
    already_claimed: bool
    nearby_locations: Optional[List[NearbyLocation]] = None
