import logging
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.product import Product
from ..exceptions import InsufficientStockError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class InventoryLedger:
    """Единственная точка изменения остатков товаров.

    Списание выполняется одним условным UPDATE, поэтому две параллельные
    резервации последней единицы не могут пройти обе. Операции возврата
    остатка нет: частичная резервация откатывается вместе с транзакцией
    checkout.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve_product(self, product_id: str) -> Product:
        query = select(Product).where(
            Product.id == product_id
        ).execution_options(populate_existing=True)

        result = await self.db.execute(query)
        product = result.scalar_one_or_none()
        if product is None:
            raise NotFoundError(f"Product {product_id} not found", product_id=product_id)
        return product

    async def check_available(self, product_id: str, quantity: int) -> Product:
        """Предварительная проверка остатка без списания"""
        product = await self.resolve_product(product_id)
        if product.stock < quantity:
            raise InsufficientStockError(product_id, requested=quantity, available=product.stock)
        return product

    async def reserve_stock(self, product_id: str, quantity: int) -> None:
        """Списывает quantity единиц, только если их хватает"""
        if quantity <= 0:
            raise ValidationError(f"Quantity must be positive, got {quantity}", product_id=product_id)

        query = update(Product).where(
            Product.id == product_id,
            Product.stock >= quantity
        ).values(
            stock=Product.stock - quantity
        ).execution_options(synchronize_session=False)

        result = await self.db.execute(query)
        if result.rowcount == 1:
            logger.info(f"📦 Reserved {quantity} of product {product_id}")
            return

        # Строка не обновилась: товара нет или остатка не хватает
        product = await self.resolve_product(product_id)
        logger.warning(
            f"⚠️ Insufficient stock for product {product_id}: requested={quantity}, available={product.stock}"
        )
        raise InsufficientStockError(product_id, requested=quantity, available=product.stock)
