from .store import Base, Store
from .ledger_entry import LedgerEntry, EntryCategory
from .closing import ClosingRecord, CloseSession
from .customer import Customer, CustomerDebt, DebtStatus
from .consignment import ConsignmentSupplier, ConsignmentProduct
from .delivery_sale import DeliveryPlatformSale, DeliveryStatus
from .safe_entry import SafeEntry

__all__ = [
    "Base",
    "Store",
    "LedgerEntry",
    "EntryCategory",
    "ClosingRecord",
    "CloseSession",
    "Customer",
    "CustomerDebt",
    "DebtStatus",
    "ConsignmentSupplier",
    "ConsignmentProduct",
    "DeliveryPlatformSale",
    "DeliveryStatus",
    "SafeEntry",
]
