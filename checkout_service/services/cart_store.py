import uuid
import logging
from datetime import datetime, timedelta
from typing import List, Optional
from sqlalchemy import select, update, delete, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.cart import Cart
from ..models.cart_item import CartItem
from ..config import settings
from ..exceptions import ConflictError, PersistenceError

logger = logging.getLogger(__name__)


class CartStore:
    """Хранилище корзин и их позиций.

    Корзина и позиции меняются только через методы этого класса.
    `get_or_create_cart`, `upsert_item`, `remove_item`, `claim_for_checkout`
    и `release_checkout` сами фиксируют транзакцию; `clear` вызывается только
    внутри атомарного блока checkout и не коммитит.
    """

    def __init__(self, db: AsyncSession, lock_ttl_seconds: Optional[int] = None):
        self.db = db
        self.lock_ttl_seconds = (
            settings.checkout_lock_ttl_seconds if lock_ttl_seconds is None else lock_ttl_seconds
        )

    async def get_live_cart(self, user_id: str) -> Optional[Cart]:
        """Текущая (не очищенная) корзина пользователя"""
        query = select(Cart).where(
            Cart.user_id == user_id,
            Cart.cleared_at.is_(None)
        ).execution_options(populate_existing=True)

        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_or_create_cart(self, user_id: str) -> Cart:
        """Получить или создать корзину пользователя"""
        cart = await self.get_live_cart(user_id)
        if cart:
            return cart

        cart = Cart(id=str(uuid.uuid4()), user_id=user_id)
        self.db.add(cart)
        try:
            await self.db.commit()
            logger.info(f"🛒 Cart {cart.id} created for user {user_id}")
            return cart
        except IntegrityError:
            # Параллельный запрос успел создать живую корзину первым
            await self.db.rollback()
            logger.info(f"Cart for user {user_id} was created concurrently, reusing it")

        cart = await self.get_live_cart(user_id)
        if cart is None:
            raise PersistenceError(f"Could not create cart for user {user_id}", retryable=False)
        return cart

    async def resolve_item_by_product(self, cart_id: str, product_id: str) -> Optional[CartItem]:
        query = select(CartItem).where(
            CartItem.cart_id == cart_id,
            CartItem.product_id == product_id
        ).execution_options(populate_existing=True)

        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    def _unclaimed(now: datetime, ttl_seconds: int):
        """Живая корзина без действующего захвата checkout"""
        stale_before = now - timedelta(seconds=ttl_seconds)
        return (
            Cart.cleared_at.is_(None),
            or_(Cart.checkout_token.is_(None), Cart.checkout_started_at < stale_before),
        )

    async def _lock_writable_cart(self, cart_id: str) -> None:
        """Блокирует строку корзины до конца транзакции.

        Пока корзину оформляет checkout или она уже закрыта, позиции менять
        нельзя: такие изменения молча пропали бы при очистке корзины.
        """
        now = datetime.utcnow()
        query = update(Cart).where(
            Cart.id == cart_id,
            *self._unclaimed(now, self.lock_ttl_seconds)
        ).values(
            updated_at=now
        ).execution_options(synchronize_session=False)

        result = await self.db.execute(query)
        if result.rowcount != 1:
            await self.db.rollback()
            raise ConflictError(f"Cart {cart_id} is being checked out or already closed", cart_id=cart_id)

    async def _increment_item(self, cart_id: str, product_id: str, quantity_delta: int) -> Optional[CartItem]:
        query = update(CartItem).where(
            CartItem.cart_id == cart_id,
            CartItem.product_id == product_id
        ).values(
            quantity=CartItem.quantity + quantity_delta
        ).returning(CartItem).execution_options(synchronize_session=False, populate_existing=True)

        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def upsert_item(self, cart_id: str, product_id: str, quantity_delta: int) -> CartItem:
        """Добавить позицию или увеличить количество существующей.

        ConflictError, если корзину оформляют или она уже закрыта.
        """
        for _ in range(2):
            await self._lock_writable_cart(cart_id)

            item = await self._increment_item(cart_id, product_id, quantity_delta)
            if item is None:
                item = CartItem(cart_id=cart_id, product_id=product_id, quantity=quantity_delta)
                self.db.add(item)

            try:
                await self.db.commit()
            except IntegrityError:
                # Позицию вставили параллельно - следующий проход увеличит ее
                await self.db.rollback()
                continue

            logger.info(f"Cart {cart_id}: product {product_id} quantity is now {item.quantity}")
            return item

        raise PersistenceError(f"Could not upsert product {product_id} into cart {cart_id}", retryable=False)

    async def list_items(self, cart_id: str) -> List[CartItem]:
        """Позиции корзины в порядке добавления"""
        query = select(CartItem).where(
            CartItem.cart_id == cart_id
        ).order_by(CartItem.id).execution_options(populate_existing=True)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def remove_item(self, cart_id: str, product_id: str) -> bool:
        await self._lock_writable_cart(cart_id)

        query = delete(CartItem).where(
            CartItem.cart_id == cart_id,
            CartItem.product_id == product_id
        ).execution_options(synchronize_session=False)

        result = await self.db.execute(query)
        await self.db.commit()
        return result.rowcount > 0

    async def clear(self, cart_id: str, checkout_token: Optional[str] = None) -> bool:
        """Удаляет все позиции и закрывает корзину.

        Если передан checkout_token, корзина закрывается только пока захват
        принадлежит этому checkout. Возвращает False, если закрыть не удалось.
        """
        await self.db.execute(
            delete(CartItem).where(CartItem.cart_id == cart_id).execution_options(synchronize_session=False)
        )

        query = update(Cart).where(Cart.id == cart_id, Cart.cleared_at.is_(None))
        if checkout_token is not None:
            query = query.where(Cart.checkout_token == checkout_token)
        query = query.values(cleared_at=datetime.utcnow()).execution_options(synchronize_session=False)

        result = await self.db.execute(query)
        return result.rowcount == 1

    async def claim_for_checkout(self, cart_id: str, checkout_token: str, ttl_seconds: int) -> bool:
        """Захватывает корзину на время checkout; False если ее уже оформляют"""
        now = datetime.utcnow()
        query = update(Cart).where(
            Cart.id == cart_id,
            *self._unclaimed(now, ttl_seconds)
        ).values(
            checkout_token=checkout_token,
            checkout_started_at=now
        ).execution_options(synchronize_session=False)

        result = await self.db.execute(query)
        await self.db.commit()
        return result.rowcount == 1

    async def release_checkout(self, cart_id: str, checkout_token: str) -> None:
        query = update(Cart).where(
            Cart.id == cart_id,
            Cart.checkout_token == checkout_token
        ).values(
            checkout_token=None,
            checkout_started_at=None
        ).execution_options(synchronize_session=False)

        await self.db.execute(query)
        await self.db.commit()
