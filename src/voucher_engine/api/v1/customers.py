"""Customer wallet endpoint."""

from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...schemas import ClaimRead, VoucherRead, WalletEntry
from ...services import voucher_service

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get(
    "/{customer_id}/wallet",
    response_model=List[WalletEntry],
    summary="List claimed vouchers",
)
def get_wallet(customer_id: UUID, db: Session = Depends(get_db)) -> List[WalletEntry]:
    """Claimed vouchers in wallet order, with what the customer may still redeem."""

    entries = []
    for claim, redeemed in voucher_service.list_wallet(db, customer_id):
        voucher = claim.voucher
        entries.append(
            WalletEntry(
                claim=ClaimRead.model_validate(claim),
                voucher=VoucherRead.from_voucher(voucher),
                redemptions=redeemed,
                remaining_for_customer=max(voucher.max_redemptions_per_user - redeemed, 0),
            )
        )
    return entries
