"""Pydantic schemas for claim and wallet endpoints."""

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .voucher import VoucherRead


class NotificationPreferences(BaseModel):
    """Reminder opt-in stored alongside the claim."""

    enable_reminders: bool = False
    reminder_days_before: Optional[int] = Field(None, ge=0, le=90)


class ClaimCreate(BaseModel):
    """Request body for claiming a voucher."""

    customer_id: UUID
    notification_preferences: Optional[NotificationPreferences] = None


class ClaimRead(BaseModel):
    """Claim response payload."""

    model_config = ConfigDict(from_attributes=True)

    claim_id: UUID
    voucher_id: UUID
    customer_id: UUID
    wallet_position: int
    notification_preferences: Optional[Dict[str, Any]]
    claimed_at: datetime


class WalletEntry(BaseModel):
    """A claimed voucher as shown in the customer's wallet."""

    claim: ClaimRead
    voucher: VoucherRead
    redemptions: int = Field(..., ge=0)
    remaining_for_customer: int = Field(..., ge=0)
