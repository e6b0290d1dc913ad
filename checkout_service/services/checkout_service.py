import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..events.producer import CheckoutEventProducer, checkout_event_producer
from ..exceptions import ConflictError, NoActiveCartError, PersistenceError
from ..models.order import Order
from .cart_store import CartStore
from .discount_resolver import DiscountResolver, quantize_money
from .inventory_ledger import InventoryLedger
from .order_store import OrderStore

logger = logging.getLogger(__name__)


class CheckoutState(Enum):
    INITIATED = "Initiated"
    CART_RESOLVED = "CartResolved"
    PRICED = "Priced"
    ORDER_CREATED = "OrderCreated"
    STOCK_RESERVED = "StockReserved"
    CART_CLEARED = "CartCleared"
    COMPLETED = "Completed"
    FAILED = "Failed"


@dataclass
class PricedLine:
    """Позиция с ценой на момент расчета"""

    product_id: str
    product_name: str
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass
class CheckoutContext:
    checkout_id: str
    user_id: str
    discount_code: Optional[str] = None
    state: CheckoutState = CheckoutState.INITIATED
    cart_id: Optional[str] = None
    lines: List[PricedLine] = field(default_factory=list)
    subtotal: Decimal = Decimal("0.00")
    discount_id: Optional[str] = None
    discount_amount: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")
    attempts: int = 0


class CheckoutService:
    """Оформление заказа из корзины.

    Шаги Initiated -> CartResolved -> Priced -> OrderCreated -> StockReserved
    -> CartCleared -> Completed, из любого незавершенного шага возможен Failed.

    Расчет, создание заказа, списание остатков, позиции заказа и очистка
    корзины выполняются в одной транзакции: либо видны все эффекты, либо
    ни одного. Параллельный checkout той же корзины отсекается захватом
    корзины (ConflictError).
    """

    def __init__(self, db: AsyncSession, producer: Optional[CheckoutEventProducer] = None):
        self.db = db
        self.producer = producer or checkout_event_producer
        self.cart_store = CartStore(db)
        self.inventory = InventoryLedger(db)
        self.discounts = DiscountResolver(db)
        self.order_store = OrderStore(db)

    def _transition(self, ctx: CheckoutContext, state: CheckoutState) -> None:
        ctx.state = state
        logger.info(f"checkout[{ctx.checkout_id}] {state.value} user={ctx.user_id}")

    async def checkout(self, user_id: str, discount_code: Optional[str] = None) -> Order:
        """Оформляет всю живую корзину пользователя в заказ"""
        ctx = CheckoutContext(checkout_id=str(uuid.uuid4()), user_id=user_id, discount_code=discount_code)
        self._transition(ctx, CheckoutState.INITIATED)

        claimed = False
        try:
            await self._resolve_cart(ctx)
            claimed = True

            order = await self._run_atomic_unit(ctx)

            self._transition(ctx, CheckoutState.COMPLETED)
            logger.info(
                f"✅ Order {order.id} created for user {user_id}: "
                f"subtotal={ctx.subtotal} discount={ctx.discount_amount} total={ctx.total}"
            )
        except BaseException as e:
            ctx.state = CheckoutState.FAILED
            logger.warning(f"checkout[{ctx.checkout_id}] Failed user={user_id}: {e!r}")
            if claimed:
                await self._release_claim(ctx)
            raise

        await self._publish_checkout_events(ctx, order)
        return order

    async def _resolve_cart(self, ctx: CheckoutContext) -> None:
        """Initiated -> CartResolved: находим корзину и захватываем ее"""
        cart = await self.cart_store.get_live_cart(ctx.user_id)
        if cart is None:
            raise NoActiveCartError(ctx.user_id)

        # Дальше работаем только с id: после отката ORM-объекты сессии истекают
        cart_id = cart.id
        if not await self.cart_store.list_items(cart_id):
            raise NoActiveCartError(ctx.user_id)

        claimed = await self.cart_store.claim_for_checkout(
            cart_id, ctx.checkout_id, settings.checkout_lock_ttl_seconds
        )
        if not claimed:
            raise ConflictError(f"Cart {cart_id} is already being checked out", cart_id=cart_id)

        ctx.cart_id = cart_id
        self._transition(ctx, CheckoutState.CART_RESOLVED)

    async def _run_atomic_unit(self, ctx: CheckoutContext) -> Order:
        """Атомарный блок с ограниченным числом повторов при временных ошибках БД"""
        while True:
            ctx.attempts += 1
            try:
                return await self._place_order(ctx)
            except PersistenceError as e:
                if not e.retryable or ctx.attempts > settings.checkout_max_retries:
                    logger.error(
                        f"❌ checkout[{ctx.checkout_id}] persistence failure after {ctx.attempts} attempt(s): {e}"
                    )
                    raise
                delay = settings.checkout_retry_backoff_ms * ctx.attempts / 1000
                logger.warning(
                    f"⚠️ checkout[{ctx.checkout_id}] transient storage error, retrying in {delay:.3f}s "
                    f"(attempt {ctx.attempts}/{settings.checkout_max_retries}): {e}"
                )
                await asyncio.sleep(delay)

    async def _place_order(self, ctx: CheckoutContext) -> Order:
        order_id = str(uuid.uuid4())
        committing = False
        try:
            async with self.db.begin():
                await self._price(ctx)

                # Priced -> OrderCreated
                await self.order_store.create_order(
                    order_id=order_id,
                    user_id=ctx.user_id,
                    cart_id=ctx.cart_id,
                    subtotal_amount=ctx.subtotal,
                    discount_amount=ctx.discount_amount,
                    total_amount=ctx.total,
                    total_items=sum(line.quantity for line in ctx.lines),
                    discount_id=ctx.discount_id
                )
                self._transition(ctx, CheckoutState.ORDER_CREATED)

                # OrderCreated -> StockReserved
                for line in ctx.lines:
                    await self.inventory.reserve_stock(line.product_id, line.quantity)
                    await self.order_store.add_item(
                        order_id=order_id,
                        product_id=line.product_id,
                        product_name=line.product_name,
                        quantity=line.quantity,
                        unit_price=line.unit_price
                    )
                self._transition(ctx, CheckoutState.STOCK_RESERVED)

                # StockReserved -> CartCleared
                if not await self.cart_store.clear(ctx.cart_id, checkout_token=ctx.checkout_id):
                    raise ConflictError(
                        f"Cart {ctx.cart_id} is no longer held by this checkout", cart_id=ctx.cart_id
                    )
                self._transition(ctx, CheckoutState.CART_CLEARED)

                committing = True
        except OperationalError as e:
            raise PersistenceError(
                f"Storage error during checkout: {e.orig}", retryable=not committing, cause=e
            ) from e
        except DBAPIError as e:
            raise PersistenceError(f"Storage error during checkout: {e.orig}", retryable=False, cause=e) from e

        order = await self.order_store.get_order(order_id)
        await self.db.commit()
        return order

    async def _price(self, ctx: CheckoutContext) -> None:
        """CartResolved -> Priced: цены, итог и скидка по текущим данным"""
        items = await self.cart_store.list_items(ctx.cart_id)
        if not items:
            raise NoActiveCartError(ctx.user_id)

        lines = []
        subtotal = Decimal("0.00")
        for item in items:
            product = await self.inventory.resolve_product(item.product_id)
            line = PricedLine(
                product_id=product.id,
                product_name=product.name,
                quantity=item.quantity,
                unit_price=quantize_money(product.price)
            )
            lines.append(line)
            subtotal += line.line_total

        discount = await self.discounts.resolve_by_code(ctx.discount_code)
        discount_amount = self.discounts.price_adjustment(subtotal, discount)

        ctx.lines = lines
        ctx.subtotal = quantize_money(subtotal)
        ctx.discount_id = discount.id if discount else None
        ctx.discount_amount = discount_amount
        ctx.total = quantize_money(ctx.subtotal - discount_amount)
        self._transition(ctx, CheckoutState.PRICED)

    async def _release_claim(self, ctx: CheckoutContext) -> None:
        try:
            if self.db.in_transaction():
                await self.db.rollback()
            await self.cart_store.release_checkout(ctx.cart_id, ctx.checkout_id)
        except Exception as e:
            # Захват все равно истечет по checkout_lock_ttl_seconds
            logger.error(f"❌ checkout[{ctx.checkout_id}] failed to release cart {ctx.cart_id}: {e}")

    async def _publish_checkout_events(self, ctx: CheckoutContext, order: Order) -> None:
        """Публикует события после фиксации транзакции"""
        try:
            await self.producer.publish_order_created({
                "order_id": order.id,
                "cart_id": order.cart_id,
                "user_id": order.user_id,
                "subtotal_amount": str(order.subtotal_amount),
                "discount_amount": str(order.discount_amount),
                "total_amount": str(order.total_amount),
                "discount_id": order.discount_id,
                "total_items": order.total_items,
                "items": [
                    {
                        "product_id": item.product_id,
                        "product_name": item.product_name,
                        "quantity": item.quantity,
                        "unit_price": str(item.unit_price),
                        "total_price": str(item.total_price)
                    } for item in order.items
                ],
                "created_at": order.created_at.isoformat()
            })
            await self.producer.publish_cart_cleared({
                "cart_id": order.cart_id,
                "user_id": order.user_id,
                "order_id": order.id,
                "items_removed": len(order.items)
            })
        except Exception as e:
            logger.error(f"❌ Failed to publish checkout events for order {order.id}: {e}")
