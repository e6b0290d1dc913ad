from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal


class CheckoutRequest(BaseModel):
    discount_code: Optional[str] = Field(default=None, max_length=64)


class OrderItemResponse(BaseModel):
    id: int
    product_id: str
    product_name: str
    quantity: int
    unit_price: Decimal  # цена на момент покупки
    total_price: Decimal

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: str
    user_id: str
    cart_id: str

    subtotal_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    discount_id: Optional[str] = None
    total_items: int

    created_at: datetime

    items: List[OrderItemResponse] = []

    class Config:
        from_attributes = True


class OrderListResponse(BaseModel):
    orders: List[OrderResponse]
    total: int
    page: int
    per_page: int
    total_pages: int
