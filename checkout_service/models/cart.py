from datetime import datetime
from sqlalchemy import Column, String, DateTime, Index, text
from sqlalchemy.orm import relationship
from ..database import Base


class Cart(Base):
    __tablename__ = "carts"
    __table_args__ = (
        # Не больше одной живой (не очищенной) корзины на пользователя
        Index(
            "uq_carts_live_user",
            "user_id",
            unique=True,
            postgresql_where=text("cleared_at IS NULL"),
            sqlite_where=text("cleared_at IS NULL"),
        ),
    )

    id = Column(String(36), primary_key=True, index=True)  # UUID
    user_id = Column(String(36), nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    cleared_at = Column(DateTime, nullable=True)  # корзина закрыта успешным checkout

    # Захват корзины на время оформления заказа
    checkout_token = Column(String(36), nullable=True)
    checkout_started_at = Column(DateTime, nullable=True)

    # Связь с позициями корзины
    items = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.id",
    )
