from .cart import CartItemCreate, CartItemResponse, CartResponse
from .order import CheckoutRequest, OrderItemResponse, OrderResponse, OrderListResponse

__all__ = [
    "CartItemCreate",
    "CartItemResponse",
    "CartResponse",
    "CheckoutRequest",
    "OrderItemResponse",
    "OrderResponse",
    "OrderListResponse"
]
