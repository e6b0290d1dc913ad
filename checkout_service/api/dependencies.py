import uuid
from typing import Optional
from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..services.cart_service import CartService
from ..services.checkout_service import CheckoutService
from ..services.order_store import OrderStore


async def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """ID пользователя из заголовка X-User-ID.

    Аутентификацию выполняет шлюз перед сервисом, сюда приходит уже
    проверенный идентификатор.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-ID header")
    try:
        return str(uuid.UUID(x_user_id))
    except ValueError:
        raise HTTPException(status_code=400, detail="X-User-ID must be a UUID")


async def get_cart_service(
    db: AsyncSession = Depends(get_db)
) -> CartService:
    """Dependency для получения CartService"""
    return CartService(db)


async def get_checkout_service(
    db: AsyncSession = Depends(get_db)
) -> CheckoutService:
    """Dependency для получения CheckoutService"""
    return CheckoutService(db)


async def get_order_store(
    db: AsyncSession = Depends(get_db)
) -> OrderStore:
    """Dependency для получения OrderStore"""
    return OrderStore(db)
