"""Tests for promo code resolution and discount pricing rules."""
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from checkout_service.models import Discount, DiscountKind
from checkout_service.services.discount_resolver import DiscountResolver, quantize_money


def _discount(kind, value):
    return Discount(code="X", kind=kind, value=Decimal(value))


@pytest.mark.parametrize(
    "total, kind, value, expected",
    [
        ("25.00", DiscountKind.PERCENTAGE, "10", "2.50"),
        ("19.99", DiscountKind.PERCENTAGE, "15", "3.00"),  # 2.9985 -> 3.00
        ("25.00", DiscountKind.FIXED_AMOUNT, "5", "5.00"),
        ("25.00", DiscountKind.FIXED_AMOUNT, "40", "25.00"),  # не уходим в минус
        ("25.00", DiscountKind.PERCENTAGE, "150", "25.00"),
        ("25.00", DiscountKind.FIXED_AMOUNT, "-3", "0.00"),
    ],
)
def test_price_adjustment(total, kind, value, expected):
    amount = DiscountResolver.price_adjustment(Decimal(total), _discount(kind, value))
    assert amount == Decimal(expected)


def test_price_adjustment_without_discount_is_zero():
    assert DiscountResolver.price_adjustment(Decimal("25.00"), None) == Decimal("0.00")


def test_quantize_money_rounds_half_up():
    assert quantize_money(Decimal("2.345")) == Decimal("2.35")
    assert quantize_money(0) == Decimal("0.00")


@pytest.mark.parametrize("code", [None, "", "   "])
async def test_empty_code_resolves_to_no_discount(db, code):
    assert await DiscountResolver(db).resolve_by_code(code) is None


async def test_unknown_code_resolves_to_no_discount(db):
    assert await DiscountResolver(db).resolve_by_code("NOPE") is None


async def test_resolve_active_code(db, make_discount):
    discount_id = await make_discount("SAVE10", DiscountKind.PERCENTAGE, "10")

    discount = await DiscountResolver(db).resolve_by_code(" SAVE10 ")

    assert discount is not None
    assert discount.id == discount_id
    assert discount.kind == DiscountKind.PERCENTAGE


async def test_expired_code_resolves_to_no_discount(db, make_discount):
    now = datetime.utcnow()
    await make_discount(
        "OLD", DiscountKind.FIXED_AMOUNT, "5",
        start_date=now - timedelta(days=10), end_date=now - timedelta(days=1)
    )

    assert await DiscountResolver(db).resolve_by_code("OLD") is None


async def test_not_yet_started_code_resolves_to_no_discount(db, make_discount):
    now = datetime.utcnow()
    await make_discount(
        "SOON", DiscountKind.FIXED_AMOUNT, "5",
        start_date=now + timedelta(days=1), end_date=now + timedelta(days=10)
    )

    assert await DiscountResolver(db).resolve_by_code("SOON") is None
    assert await DiscountResolver(db).resolve_by_code("SOON", at=now + timedelta(days=2)) is not None
