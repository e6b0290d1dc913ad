import logging
from decimal import Decimal
from typing import List, Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..models.order import Order
from ..models.order_item import OrderItem

logger = logging.getLogger(__name__)


class OrderStore:
    """Заказы только создаются и читаются"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_order(
            self,
            order_id: str,
            user_id: str,
            cart_id: str,
            subtotal_amount: Decimal,
            discount_amount: Decimal,
            total_amount: Decimal,
            total_items: int,
            discount_id: Optional[str] = None
    ) -> Order:
        order = Order(
            id=order_id,
            user_id=user_id,
            cart_id=cart_id,
            subtotal_amount=subtotal_amount,
            discount_amount=discount_amount,
            total_amount=total_amount,
            discount_id=discount_id,
            total_items=total_items
        )

        self.db.add(order)
        await self.db.flush()
        return order

    async def add_item(
            self,
            order_id: str,
            product_id: str,
            product_name: str,
            quantity: int,
            unit_price: Decimal
    ) -> OrderItem:
        order_item = OrderItem(
            order_id=order_id,
            product_id=product_id,
            product_name=product_name,
            quantity=quantity,
            unit_price=unit_price,
            total_price=unit_price * quantity
        )

        self.db.add(order_item)
        await self.db.flush()
        return order_item

    async def get_order(self, order_id: str, user_id: Optional[str] = None) -> Optional[Order]:
        """Получает заказ по ID (и владельцу, если указан)"""
        try:
            query = select(Order).options(
                selectinload(Order.items)
            ).where(Order.id == order_id).execution_options(populate_existing=True)

            if user_id is not None:
                query = query.where(Order.user_id == user_id)

            result = await self.db.execute(query)
            return result.scalar_one_or_none()
        except Exception as e:
            logger.error(f"❌ Error getting order {order_id}: {e}")
            raise

    async def list_orders(self, user_id: str, skip: int = 0, limit: int = 100) -> List[Order]:
        """Заказы пользователя, новые первыми"""
        try:
            query = select(Order).options(
                selectinload(Order.items)
            ).where(
                Order.user_id == user_id
            ).order_by(Order.created_at.desc(), Order.id).offset(skip).limit(limit)

            result = await self.db.execute(query)
            return list(result.scalars().all())
        except Exception as e:
            logger.error(f"❌ Error getting orders list for user {user_id}: {e}")
            raise

    async def count_orders(self, user_id: str) -> int:
        result = await self.db.execute(
            select(func.count(Order.id)).where(Order.user_id == user_id)
        )
        return result.scalar() or 0
