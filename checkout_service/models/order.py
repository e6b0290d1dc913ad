from datetime import datetime
from sqlalchemy import Column, String, DateTime, Numeric, Integer, ForeignKey
from sqlalchemy.orm import relationship
from ..database import Base


class Order(Base):
    """Заказ. Создается один раз при успешном checkout и больше не меняется"""

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, index=True)  # UUID
    user_id = Column(String(36), nullable=False, index=True)
    cart_id = Column(String(36), nullable=False, index=True)  # ID корзины

    # Суммы
    subtotal_amount = Column(Numeric(10, 2), nullable=False)  # до скидки
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)  # с учетом скидки
    discount_id = Column(String(36), ForeignKey("discounts.id"), nullable=True)

    # Количество товаров
    total_items = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Связи
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
