from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import Column, String, DateTime, Enum, Numeric
from ..database import Base


class DiscountKind(PyEnum):
    PERCENTAGE = "percentage"  # процент от суммы
    FIXED_AMOUNT = "fixed_amount"  # фиксированная сумма


class Discount(Base):
    __tablename__ = "discounts"

    id = Column(String(36), primary_key=True, index=True)  # UUID
    code = Column(String(64), nullable=False, unique=True, index=True)
    kind = Column(Enum(DiscountKind), nullable=False)
    value = Column(Numeric(10, 2), nullable=False)

    # Период действия
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def is_active(self, at: datetime) -> bool:
        if self.start_date is not None and at < self.start_date:
            return False
        if self.end_date is not None and at > self.end_date:
            return False
        return True
