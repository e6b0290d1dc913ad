from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends

from ...schemas.cart import CartItemCreate, CartResponse
from ...schemas.order import CheckoutRequest, OrderResponse
from ...services.cart_service import CartService
from ...services.checkout_service import CheckoutService
from ..dependencies import get_cart_service, get_checkout_service, get_current_user_id

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=CartResponse)
async def get_cart(
        user_id: str = Depends(get_current_user_id),
        cart_service: CartService = Depends(get_cart_service)
):
    """Получение текущей корзины пользователя"""
    return await cart_service.get_cart(user_id)


@router.post("/items", response_model=CartResponse, status_code=201)
async def add_item_to_cart(
        item: CartItemCreate,
        user_id: str = Depends(get_current_user_id),
        cart_service: CartService = Depends(get_cart_service)
):
    """Добавление товара в корзину"""
    return await cart_service.add_item(user_id, str(item.product_id), item.quantity)


@router.delete("/items/{product_id}", response_model=CartResponse)
async def remove_item_from_cart(
        product_id: UUID,
        user_id: str = Depends(get_current_user_id),
        cart_service: CartService = Depends(get_cart_service)
):
    """Удаление товара из корзины"""
    return await cart_service.remove_item(user_id, str(product_id))


@router.post("/checkout", response_model=OrderResponse, status_code=201)
async def checkout_cart(
        request: Optional[CheckoutRequest] = None,
        user_id: str = Depends(get_current_user_id),
        checkout_service: CheckoutService = Depends(get_checkout_service)
):
    """Оформление заказа из всей корзины"""
    discount_code = request.discount_code if request else None
    return await checkout_service.checkout(user_id, discount_code)
