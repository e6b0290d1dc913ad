import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.discount import Discount, DiscountKind

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize_money(amount) -> Decimal:
    """Округление денежной суммы до копеек"""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


class DiscountResolver:
    """Промокоды: поиск по коду и расчет суммы скидки"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve_by_code(self, code: Optional[str], at: Optional[datetime] = None) -> Optional[Discount]:
        """Пустой, неизвестный или просроченный код - это просто отсутствие скидки"""
        if not code or not code.strip():
            return None

        code = code.strip()
        result = await self.db.execute(select(Discount).where(Discount.code == code))
        discount = result.scalar_one_or_none()

        if discount is None:
            logger.info(f"Discount code '{code}' not found, no discount applied")
            return None

        at = at or datetime.utcnow()
        if not discount.is_active(at):
            logger.info(f"Discount code '{code}' is outside its validity window, no discount applied")
            return None

        return discount

    @staticmethod
    def price_adjustment(total_amount: Decimal, discount: Optional[Discount]) -> Decimal:
        """Сумма скидки; итог после скидки никогда не уходит в минус"""
        if discount is None:
            return ZERO

        total_amount = Decimal(total_amount)
        value = Decimal(discount.value)

        if DiscountKind(discount.kind) is DiscountKind.PERCENTAGE:
            amount = total_amount * value / Decimal(100)
        elif DiscountKind(discount.kind) is DiscountKind.FIXED_AMOUNT:
            amount = value
        else:
            amount = ZERO

        amount = max(ZERO, min(amount, total_amount))
        return quantize_money(amount)
