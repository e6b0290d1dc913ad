from .product import Product
from .discount import Discount, DiscountKind
from .cart import Cart
from .cart_item import CartItem
from .order import Order
from .order_item import OrderItem

__all__ = [
    "Product",
    "Discount",
    "DiscountKind",
    "Cart",
    "CartItem",
    "Order",
    "OrderItem"
]
