from .purchase_order import PurchaseOrderRequest, POLineItem
from .par import PARRequest, PARLineItem
from .inventory import InventoryItem
from .result import SaveResult

__all__ = [
    "PurchaseOrderRequest", "POLineItem",
    "PARRequest", "PARLineItem",
    "InventoryItem",
    "SaveResult",
]
