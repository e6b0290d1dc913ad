from fastapi import APIRouter, Depends, HTTPException, Query

from ...config import settings
from ...schemas.order import OrderResponse, OrderListResponse
from ...services.order_store import OrderStore
from ..dependencies import get_current_user_id, get_order_store

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("", response_model=OrderListResponse)
async def get_orders(
        page: int = Query(1, ge=1, description="Номер страницы"),
        per_page: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size,
                              description="Количество на странице"),
        user_id: str = Depends(get_current_user_id),
        order_store: OrderStore = Depends(get_order_store)
):
    """Заказы текущего пользователя с пагинацией"""
    orders = await order_store.list_orders(
        user_id,
        skip=(page - 1) * per_page,
        limit=per_page
    )
    total = await order_store.count_orders(user_id)

    return OrderListResponse(
        orders=[OrderResponse.model_validate(order) for order in orders],
        total=total,
        page=page,
        per_page=per_page,
        total_pages=(total + per_page - 1) // per_page
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
        order_id: str,
        user_id: str = Depends(get_current_user_id),
        order_store: OrderStore = Depends(get_order_store)
):
    """Получить заказ по ID"""
    order = await order_store.get_order(order_id, user_id=user_id)

    if not order:
        raise HTTPException(status_code=404, detail="Order not found")

    return order
