"""Pydantic schemas for voucher endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models import CodeType, DiscountType, Voucher
from ..services.expiry import Availability, VoucherStatus, display_status, is_sold_out, voucher_availability
from ..utils.datetime import ensure_utc


class GeoPoint(BaseModel):
    """WGS84 coordinates."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class VoucherCodeRead(BaseModel):
    """Issued redemption code."""

    model_config = ConfigDict(from_attributes=True)

    code_id: UUID
    code: str
    code_type: CodeType
    is_active: bool


class VoucherCreate(BaseModel):
    """Request body for creating a voucher."""

    provider_id: UUID
    category_id: Optional[UUID] = None
    title: Dict[str, str] = Field(..., min_length=1, description="Language code to title.")
    description: Dict[str, str] = Field(default_factory=dict)
    terms: Dict[str, str] = Field(default_factory=dict)
    discount_type: DiscountType
    discount_value: Decimal = Field(..., gt=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    location: Optional[GeoPoint] = None
    valid_from: datetime
    expires_at: datetime
    max_redemptions: Optional[int] = Field(None, ge=1, description="Leave empty for unlimited capacity.")
    max_redemptions_per_user: int = Field(1, ge=1)
    code_types: List[CodeType] = Field(default_factory=lambda: [CodeType.SHORT, CodeType.QR])
    static_code: Optional[str] = Field(None, min_length=4, max_length=20)


class VoucherUpdate(BaseModel):
    """Partial update; language maps are merged into the stored ones."""

    category_id: Optional[UUID] = None
    title: Optional[Dict[str, str]] = None
    description: Optional[Dict[str, str]] = None
    terms: Optional[Dict[str, str]] = None
    location: Optional[GeoPoint] = None
    valid_from: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    max_redemptions: Optional[int] = Field(None, ge=1)
    max_redemptions_per_user: Optional[int] = Field(None, ge=1)


class VoucherBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    voucher_id: UUID
    provider_id: UUID
    category_id: Optional[UUID]
    title: Dict[str, str]
    description: Dict[str, str]
    terms: Dict[str, str]
    discount_type: DiscountType
    discount_value: Decimal
    currency: str
    location: Optional[GeoPoint]
    valid_from: datetime
    expires_at: datetime
    max_redemptions: Optional[int]
    max_redemptions_per_user: int
    current_redemptions: int
    published_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    codes: List[VoucherCodeRead] = Field(default_factory=list)

    @field_validator("valid_from", "expires_at", "published_at", "created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)


class VoucherRead(VoucherBase):
    """Voucher payload with read-time availability."""

    availability: Availability
    status: VoucherStatus
    is_available: bool = Field(..., description="Claimable/redeemable right now: inside the window and not sold out.")

    @classmethod
    def from_voucher(cls, voucher: Voucher, now: Optional[datetime] = None) -> "VoucherRead":
        availability = voucher_availability(voucher, now)
        return cls(
            **VoucherBase.model_validate(voucher).model_dump(),
            availability=availability,
            status=display_status(voucher, now),
            is_available=availability is Availability.AVAILABLE and not is_sold_out(voucher),
        )
