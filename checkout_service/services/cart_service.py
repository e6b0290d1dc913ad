import logging
from decimal import Decimal
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..events.producer import CheckoutEventProducer, checkout_event_producer
from ..exceptions import NotFoundError, ValidationError
from ..models.cart_item import CartItem
from ..models.product import Product
from ..schemas.cart import CartItemResponse, CartResponse
from .cart_store import CartStore
from .discount_resolver import quantize_money
from .inventory_ledger import InventoryLedger

logger = logging.getLogger(__name__)


class CartService:
    def __init__(self, db: AsyncSession, producer: Optional[CheckoutEventProducer] = None):
        self.db = db
        self.producer = producer or checkout_event_producer
        self.cart_store = CartStore(db)
        self.inventory = InventoryLedger(db)

    async def add_item(self, user_id: str, product_id: str, quantity: int) -> CartResponse:
        """Добавить товар в корзину"""
        if quantity <= 0:
            raise ValidationError(f"Quantity must be positive, got {quantity}", product_id=product_id)

        # Проверяем товар и текущий остаток (без резервации)
        product = await self.inventory.check_available(product_id, quantity)
        unit_price = product.price

        cart = await self.cart_store.get_or_create_cart(user_id)
        cart_id = cart.id
        item = await self.cart_store.upsert_item(cart_id, product_id, quantity)

        logger.info(f"Added {quantity} of product {product_id} to cart {cart_id}")
        await self._publish_item_added_event(cart_id, user_id, product_id, item.quantity, quantity, unit_price)

        return await self.get_cart(user_id)

    async def remove_item(self, user_id: str, product_id: str) -> CartResponse:
        """Удалить товар из корзины"""
        cart = await self.cart_store.get_live_cart(user_id)
        if cart is None:
            raise NotFoundError(f"Product {product_id} is not in the cart", product_id=product_id)

        cart_id = cart.id
        if not await self.cart_store.remove_item(cart_id, product_id):
            raise NotFoundError(f"Product {product_id} is not in the cart", product_id=product_id)

        logger.info(f"Removed product {product_id} from cart {cart_id}")
        return await self.get_cart(user_id)

    async def get_cart(self, user_id: str) -> CartResponse:
        """Получить корзину с подсчётом итогов по текущим ценам"""
        cart = await self.cart_store.get_live_cart(user_id)
        if cart is None:
            return CartResponse(cart_id=None, user_id=user_id, items=[], total_items=0, total_amount=quantize_money(0))

        query = select(CartItem, Product).join(
            Product, Product.id == CartItem.product_id
        ).where(
            CartItem.cart_id == cart.id
        ).order_by(CartItem.id).execution_options(populate_existing=True)

        result = await self.db.execute(query)
        items = [
            CartItemResponse(
                id=item.id,
                product_id=item.product_id,
                product_name=product.name,
                quantity=item.quantity,
                unit_price=quantize_money(product.price),
                total_price=quantize_money(product.price * item.quantity)
            )
            for item, product in result.all()
        ]

        return CartResponse(
            cart_id=cart.id,
            user_id=user_id,
            items=items,
            total_items=sum(item.quantity for item in items),
            total_amount=quantize_money(sum((item.total_price for item in items), 0))
        )

    async def _publish_item_added_event(
            self, cart_id: str, user_id: str, product_id: str, quantity: int, added: int, unit_price: Decimal
    ):
        """Публикация события добавления товара в корзину"""
        try:
            await self.producer.publish_cart_item_added({
                "cart_id": cart_id,
                "user_id": user_id,
                "item": {
                    "product_id": product_id,
                    "quantity": quantity,
                    "added": added,
                    "unit_price": str(unit_price)
                },
                "action": "added" if quantity == added else "updated"
            })
        except Exception as e:
            logger.error(f"❌ Failed to publish item_added event: {e}")
