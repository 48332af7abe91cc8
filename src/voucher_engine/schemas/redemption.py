"""Pydantic schemas for redemption workflows."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class RedemptionCreate(BaseModel):
    """Incoming payload for redeeming a voucher."""

    customer_id: UUID
    code: str = Field(..., min_length=1, max_length=512, description="Short, static or QR code presented.")


class RedemptionRead(BaseModel):
    """Represents a redemption record."""

    model_config = ConfigDict(from_attributes=True)

    redemption_id: UUID
    voucher_id: UUID
    customer_id: UUID
    code_id: UUID
    redeemed_at: datetime


class RedemptionReceipt(BaseModel):
    """Response returned after processing a redemption."""

    redemption: RedemptionRead
    remaining_capacity: Optional[int] = Field(None, description="Units left on the voucher; null when unlimited.")
    remaining_for_customer: int = Field(..., ge=0)
