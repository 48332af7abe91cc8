"""Public schema exports."""

from .claim import ClaimCreate, ClaimRead, NotificationPreferences, WalletEntry
from .redemption import RedemptionCreate, RedemptionRead, RedemptionReceipt
from .scan import NearbyLocation, ScanCreate, ScanResultRead
from .voucher import GeoPoint, VoucherCodeRead, VoucherCreate, VoucherRead, VoucherUpdate

__all__ = [
	"ClaimCreate",
	"ClaimRead",
	"GeoPoint",
	"NearbyLocation",
	"NotificationPreferences",
	"RedemptionCreate",
	"RedemptionRead",
	"RedemptionReceipt",
	"ScanCreate",
	"ScanResultRead",
	"VoucherCodeRead",
	"VoucherCreate",
	"VoucherRead",
	"VoucherUpdate",
	"WalletEntry",
]
