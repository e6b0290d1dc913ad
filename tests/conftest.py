"""Pytest fixtures: отдельная sqlite база на каждый тест, Kafka выключена."""

import os
import uuid
from datetime import datetime, timedelta
from decimal import Decimal

# Настройки читаются при импорте пакета, поэтому окружение задаем до него
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./checkout_test.db")
os.environ.setdefault("KAFKA_ENABLED", "false")

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from checkout_service import models  # noqa: F401
from checkout_service.database import Base
from checkout_service.models import Discount, DiscountKind, Order, OrderItem, Product


class RecordingProducer:
    """Подменяет Kafka producer и запоминает опубликованные события"""

    def __init__(self):
        self.events = []

    async def publish_order_created(self, order_data):
        self.events.append(("order_created", order_data))
        return True

    async def publish_cart_cleared(self, cart_data):
        self.events.append(("cart_cleared", cart_data))
        return True

    async def publish_cart_item_added(self, item_data):
        self.events.append(("item_added_to_cart", item_data))
        return True

    def types(self):
        return [event_type for event_type, _ in self.events]


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'checkout.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def producer():
    return RecordingProducer()


@pytest.fixture
def user_id():
    return str(uuid.uuid4())


@pytest.fixture
def make_product(session_factory):
    async def _make(price="10.00", stock=10, name=None):
        product_id = str(uuid.uuid4())
        async with session_factory() as session:
            session.add(Product(
                id=product_id,
                name=name or f"Product {product_id[:8]}",
                price=Decimal(price),
                stock=stock
            ))
            await session.commit()
        return product_id

    return _make


@pytest.fixture
def make_discount(session_factory):
    async def _make(code, kind=DiscountKind.PERCENTAGE, value="10", start_date=None, end_date=None):
        discount_id = str(uuid.uuid4())
        now = datetime.utcnow()
        async with session_factory() as session:
            session.add(Discount(
                id=discount_id,
                code=code,
                kind=kind,
                value=Decimal(value),
                start_date=start_date or now - timedelta(days=1),
                end_date=end_date or now + timedelta(days=1)
            ))
            await session.commit()
        return discount_id

    return _make


@pytest.fixture
def get_stock(session_factory):
    async def _get(product_id):
        async with session_factory() as session:
            result = await session.execute(select(Product.stock).where(Product.id == product_id))
            return result.scalar_one()

    return _get


@pytest.fixture
def count_orders(session_factory):
    async def _count():
        async with session_factory() as session:
            orders = (await session.execute(select(Order))).scalars().all()
            items = (await session.execute(select(OrderItem))).scalars().all()
            return len(orders), len(items)

    return _count
