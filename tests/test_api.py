import uuid
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient

from checkout_service.database import get_db
from checkout_service.main import app
from checkout_service.models import DiscountKind
from checkout_service.services.cart_store import CartStore


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def headers(user_id):
    return {"X-User-ID": user_id}


async def test_root(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json()["health"] == "/health"


async def test_health_reports_database_outage(client, monkeypatch):
    async def broken_connection():
        raise ConnectionError("database is unreachable")

    monkeypatch.setattr("checkout_service.main.check_connection", broken_connection)

    response = await client.get("/health")

    assert response.status_code == 503


async def test_missing_user_header(client):
    response = await client.get("/api/v1/cart")

    assert response.status_code == 401


async def test_malformed_user_header(client):
    response = await client.get("/api/v1/cart", headers={"X-User-ID": "not-a-uuid"})

    assert response.status_code == 400


async def test_add_item_and_get_cart(client, headers, make_product):
    product_id = await make_product(price="10.00", stock=5)

    response = await client.post(
        "/api/v1/cart/items", json={"product_id": product_id, "quantity": 2}, headers=headers
    )

    assert response.status_code == 201
    data = response.json()
    assert data["items"][0]["product_id"] == product_id
    assert data["items"][0]["quantity"] == 2
    assert Decimal(data["total_amount"]) == Decimal("20.00")

    response = await client.get("/api/v1/cart", headers=headers)

    assert response.status_code == 200
    assert response.json()["cart_id"] == data["cart_id"]


async def test_add_item_with_zero_quantity(client, headers, make_product):
    product_id = await make_product()

    response = await client.post(
        "/api/v1/cart/items", json={"product_id": product_id, "quantity": 0}, headers=headers
    )

    assert response.status_code == 422


async def test_add_unknown_product(client, headers):
    response = await client.post(
        "/api/v1/cart/items", json={"product_id": str(uuid.uuid4()), "quantity": 1}, headers=headers
    )

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


async def test_remove_item(client, headers, make_product):
    product_id = await make_product()
    await client.post("/api/v1/cart/items", json={"product_id": product_id, "quantity": 1}, headers=headers)

    response = await client.delete(f"/api/v1/cart/items/{product_id}", headers=headers)

    assert response.status_code == 200
    assert response.json()["items"] == []

    response = await client.delete(f"/api/v1/cart/items/{product_id}", headers=headers)

    assert response.status_code == 404


async def test_checkout_with_discount(client, headers, user_id, make_product, make_discount, get_stock):
    product_a = await make_product(price="10.00", stock=10)
    product_b = await make_product(price="5.00", stock=10)
    await make_discount("SAVE10", DiscountKind.PERCENTAGE, "10")
    await client.post("/api/v1/cart/items", json={"product_id": product_a, "quantity": 2}, headers=headers)
    await client.post("/api/v1/cart/items", json={"product_id": product_b, "quantity": 1}, headers=headers)

    response = await client.post("/api/v1/cart/checkout", json={"discount_code": "SAVE10"}, headers=headers)

    assert response.status_code == 201
    order = response.json()
    assert order["user_id"] == user_id
    assert Decimal(order["subtotal_amount"]) == Decimal("25.00")
    assert Decimal(order["discount_amount"]) == Decimal("2.50")
    assert Decimal(order["total_amount"]) == Decimal("22.50")
    assert len(order["items"]) == 2
    assert await get_stock(product_a) == 8

    cart = (await client.get("/api/v1/cart", headers=headers)).json()
    assert cart["cart_id"] is None
    assert cart["items"] == []


async def test_checkout_without_body(client, headers, make_product):
    product_id = await make_product(price="3.00", stock=1)
    await client.post("/api/v1/cart/items", json={"product_id": product_id, "quantity": 1}, headers=headers)

    response = await client.post("/api/v1/cart/checkout", headers=headers)

    assert response.status_code == 201
    assert Decimal(response.json()["total_amount"]) == Decimal("3.00")


async def test_checkout_with_empty_cart(client, headers):
    response = await client.post("/api/v1/cart/checkout", headers=headers)

    assert response.status_code == 404
    assert response.json()["error"] == "no_active_cart"


async def test_checkout_insufficient_stock(client, headers, session_factory, user_id, make_product):
    product_id = await make_product(stock=3)
    async with session_factory() as session:
        store = CartStore(session)
        cart = await store.get_or_create_cart(user_id)
        await store.upsert_item(cart.id, product_id, 5)

    response = await client.post("/api/v1/cart/checkout", headers=headers)

    assert response.status_code == 409
    data = response.json()
    assert data["error"] == "insufficient_stock"
    assert data["product_id"] == product_id
    assert data["requested"] == 5
    assert data["available"] == 3

    # Захват снят: повтор снова упирается в остаток, а не в конфликт
    response = await client.post("/api/v1/cart/checkout", headers=headers)

    assert response.status_code == 409
    assert response.json()["error"] == "insufficient_stock"


async def test_orders_list_and_detail(client, headers, make_product):
    product_id = await make_product(price="2.00", stock=10)
    order_ids = []
    for _ in range(3):
        await client.post("/api/v1/cart/items", json={"product_id": product_id, "quantity": 1}, headers=headers)
        order_ids.append((await client.post("/api/v1/cart/checkout", headers=headers)).json()["id"])

    response = await client.get("/api/v1/orders", params={"page": 1, "per_page": 2}, headers=headers)

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert data["total_pages"] == 2
    assert len(data["orders"]) == 2
    assert {order["id"] for order in data["orders"]} <= set(order_ids)

    response = await client.get(f"/api/v1/orders/{order_ids[0]}", headers=headers)

    assert response.status_code == 200
    assert response.json()["items"][0]["product_id"] == product_id


async def test_order_of_another_user_is_hidden(client, headers, make_product):
    product_id = await make_product()
    await client.post("/api/v1/cart/items", json={"product_id": product_id, "quantity": 1}, headers=headers)
    order_id = (await client.post("/api/v1/cart/checkout", headers=headers)).json()["id"]

    response = await client.get(f"/api/v1/orders/{order_id}", headers={"X-User-ID": str(uuid.uuid4())})

    assert response.status_code == 404
