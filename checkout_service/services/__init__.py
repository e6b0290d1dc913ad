from .cart_store import CartStore
from .inventory_ledger import InventoryLedger
from .discount_resolver import DiscountResolver
from .order_store import OrderStore
from .cart_service import CartService
from .checkout_service import CheckoutService, CheckoutState

__all__ = [
    "CartStore",
    "InventoryLedger",
    "DiscountResolver",
    "OrderStore",
    "CartService",
    "CheckoutService",
    "CheckoutState"
]
