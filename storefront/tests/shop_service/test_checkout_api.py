import asyncio
import itertools
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select, update

from storefront.common import StorefrontSettings, lifespan_session
from storefront.shop_service.app.main import create_app
from storefront.shop_service.app.models import CartItem, Order, OrderStatusEvent, Product

SHIPPING: dict[str, Any] = {
    "shippingAddress": {
        "street": "1 Main St",
        "city": "Springfield",
        "state": "IL",
        "zip": "62701",
        "country": "US",
    },
    "paymentMethod": "mock",
}


def _run(coro):
    return asyncio.run(coro)


def _settings(tmp_path, **overrides: Any) -> StorefrontSettings:
    values: dict[str, Any] = {
        "app_name": "Checkout Test",
        "enable_metrics": False,
        "enable_tracing": False,
        "database_url": f"sqlite+aiosqlite:///{tmp_path / 'checkout.db'}",
        "blob_storage_dir": str(tmp_path / "blobs"),
        "session_cookie_secure": False,
        "jwt_secret": "checkout-test-secret",
    }
    values.update(overrides)
    return StorefrontSettings(**values)


async def _seed_products(app: FastAPI, *specs: tuple[str, int, int]) -> list[int]:
    async with lifespan_session(app.state.session_factory) as session:
        products = [
            Product(name=name, slug=name.lower(), price_cents=price_cents, stock_quantity=stock)
            for name, price_cents, stock in specs
        ]
        session.add_all(products)
        await session.flush()
        return [product.id for product in products]


async def _stock(app: FastAPI, product_id: int) -> int:
    async with lifespan_session(app.state.session_factory) as session:
        return (await session.execute(select(Product.stock_quantity).where(Product.id == product_id))).scalar_one()


async def _count(app: FastAPI, model) -> int:
    async with lifespan_session(app.state.session_factory) as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def _auth_headers(client: AsyncClient, email: str = "buyer@example.com") -> dict[str, str]:
    await client.post(
        "/auth/register",
        json={"email": email, "password": "secret123", "fullName": "Bea Buyer"},
    )
    login = await client.post("/auth/login", json={"email": email, "password": "secret123"})
    assert login.status_code == 200
    return {"Authorization": f"Bearer {login.json()['token']}"}


def test_checkout_creates_order_and_empties_cart(tmp_path) -> None:
    app = create_app(_settings(tmp_path))

    async def body() -> None:
        async with lifespan(app):
            product_a, product_c = await _seed_products(app, ("Alpha", 1000, 5), ("Gamma", 500, 10))
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                headers = await _auth_headers(client)
                await client.post("/cart/items", json={"productId": product_a, "quantity": 2}, headers=headers)
                await client.post("/cart/items", json={"productId": product_c, "quantity": 3}, headers=headers)

                response = await client.post("/checkout", json=SHIPPING, headers=headers)
                assert response.status_code == 201
                order = response.json()
                assert order["status"] == "pending"
                assert order["totalAmount"] == "35.00"
                assert order["orderNumber"].startswith("ORD-")
                assert order["shippingAddress"] == SHIPPING["shippingAddress"]
                lines = {(item["product"]["id"], item["quantity"], item["priceAtTime"]) for item in order["items"]}
                assert lines == {(product_a, 2, "10.00"), (product_c, 3, "5.00")}
                assert [event["status"] for event in order["statusHistory"]] == ["pending"]
                assert order["statusHistory"][0]["notes"] == "Order created"

                cart = await client.get("/cart", headers=headers)
                assert cart.json()["items"] == []
                assert cart.json()["itemCount"] == 0

            assert await _stock(app, product_a) == 3
            assert await _stock(app, product_c) == 7
            assert await _count(app, OrderStatusEvent) == 1

    _run(body())


def test_order_keeps_price_at_time_of_purchase(tmp_path) -> None:
    app = create_app(_settings(tmp_path))

    async def body() -> None:
        async with lifespan(app):
            (product_id,) = await _seed_products(app, ("Kettle", 2000, 5))
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                headers = await _auth_headers(client)
                await client.post("/cart/items", json={"productId": product_id, "quantity": 1}, headers=headers)
                created = await client.post("/checkout", json=SHIPPING, headers=headers)
                order_id = created.json()["id"]

                async with lifespan_session(app.state.session_factory) as session:
                    await session.execute(update(Product).values(price_cents=9900))

                fetched = await client.get(f"/orders/{order_id}", headers=headers)
                assert fetched.json()["items"][0]["priceAtTime"] == "20.00"
                assert fetched.json()["totalAmount"] == "20.00"

    _run(body())


def test_insufficient_stock_aborts_without_partial_order(tmp_path) -> None:
    app = create_app(_settings(tmp_path))

    async def body() -> None:
        async with lifespan(app):
            product_a, product_b = await _seed_products(app, ("Alpha", 1000, 5), ("Beta", 700, 1))
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                headers = await _auth_headers(client)
                await client.post("/cart/items", json={"productId": product_a, "quantity": 2}, headers=headers)
                await client.post("/cart/items", json={"productId": product_b, "quantity": 1}, headers=headers)

                async with lifespan_session(app.state.session_factory) as session:
                    await session.execute(update(Product).where(Product.id == product_b).values(stock_quantity=0))

                response = await client.post("/checkout", json=SHIPPING, headers=headers)
                assert response.status_code == 400
                error = response.json()
                assert error["reason"] == "insufficient_stock"
                assert error["details"] == {
                    "productId": product_b,
                    "productName": "Beta",
                    "available": 0,
                    "requested": 1,
                }

                cart = await client.get("/cart", headers=headers)
                assert cart.json()["itemCount"] == 3

            assert await _stock(app, product_a) == 5
            assert await _stock(app, product_b) == 0
            assert await _count(app, Order) == 0
            assert await _count(app, OrderStatusEvent) == 0
            assert await _count(app, CartItem) == 2

    _run(body())


def test_checkout_requires_cart_with_lines(tmp_path) -> None:
    app = create_app(_settings(tmp_path))

    async def body() -> None:
        async with lifespan(app):
            (product_id,) = await _seed_products(app, ("Alpha", 1000, 5))
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                anonymous = await client.post("/checkout", json=SHIPPING)
                assert anonymous.status_code == 401

                headers = await _auth_headers(client)
                missing = await client.post("/checkout", json=SHIPPING, headers=headers)
                assert missing.status_code == 400
                assert missing.json()["reason"] == "cart_not_found"

                added = await client.post(
                    "/cart/items", json={"productId": product_id, "quantity": 1}, headers=headers
                )
                line_id = added.json()["items"][0]["id"]
                await client.delete(f"/cart/items/{line_id}", headers=headers)
                empty = await client.post("/checkout", json=SHIPPING, headers=headers)
                assert empty.status_code == 400
                assert empty.json()["reason"] == "cart_empty"

                wrong_method = await client.post(
                    "/checkout", json={**SHIPPING, "paymentMethod": "card"}, headers=headers
                )
                assert wrong_method.status_code == 400
                assert wrong_method.json()["reason"] == "validation_failed"

    _run(body())


def test_order_number_collision_is_retried(tmp_path) -> None:
    numbers = iter(["ORD-20260101-1111", "ORD-20260101-1111", "ORD-20260101-2222"])
    app = create_app(_settings(tmp_path), order_number_factory=lambda: next(numbers))

    async def body() -> None:
        async with lifespan(app):
            (product_id,) = await _seed_products(app, ("Alpha", 1000, 10))
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                first_headers = await _auth_headers(client, "first@example.com")
                second_headers = await _auth_headers(client, "second@example.com")
                for headers in (first_headers, second_headers):
                    await client.post(
                        "/cart/items", json={"productId": product_id, "quantity": 1}, headers=headers
                    )

                first = await client.post("/checkout", json=SHIPPING, headers=first_headers)
                second = await client.post("/checkout", json=SHIPPING, headers=second_headers)
                assert first.json()["orderNumber"] == "ORD-20260101-1111"
                assert second.status_code == 201
                assert second.json()["orderNumber"] == "ORD-20260101-2222"

    _run(body())


def test_order_number_exhaustion_surfaces_conflict(tmp_path) -> None:
    app = create_app(
        _settings(tmp_path, order_number_attempts=3),
        order_number_factory=itertools.repeat("ORD-20260101-5555").__next__,
    )

    async def body() -> None:
        async with lifespan(app):
            (product_id,) = await _seed_products(app, ("Alpha", 1000, 10))
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                first_headers = await _auth_headers(client, "first@example.com")
                second_headers = await _auth_headers(client, "second@example.com")
                for headers in (first_headers, second_headers):
                    await client.post(
                        "/cart/items", json={"productId": product_id, "quantity": 2}, headers=headers
                    )

                first = await client.post("/checkout", json=SHIPPING, headers=first_headers)
                assert first.status_code == 201

                second = await client.post("/checkout", json=SHIPPING, headers=second_headers)
                assert second.status_code == 409
                assert second.json()["reason"] == "order_number_conflict"

                cart = await client.get("/cart", headers=second_headers)
                assert cart.json()["itemCount"] == 2

            assert await _stock(app, product_id) == 8
            assert await _count(app, Order) == 1

    _run(body())


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with app.router.lifespan_context(app):
        yield
