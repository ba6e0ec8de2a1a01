import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from storefront.common import StorefrontSettings, lifespan_session
from storefront.shop_service.app.main import create_app
from storefront.shop_service.app.models import Product, User
from storefront.shop_service.app.security import hash_password

SHIPPING = {
    "shippingAddress": {"street": "9 Elm", "city": "Oslo", "state": "Oslo", "zip": "0150", "country": "NO"},
    "paymentMethod": "mock",
}


def _run(coro):
    return asyncio.run(coro)


def _settings(tmp_path) -> StorefrontSettings:
    return StorefrontSettings(
        app_name="Orders Test",
        enable_metrics=False,
        enable_tracing=False,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}",
        blob_storage_dir=str(tmp_path / "blobs"),
        session_cookie_secure=False,
        jwt_secret="orders-test-secret",
    )


async def _seed(app: FastAPI) -> int:
    async with lifespan_session(app.state.session_factory) as session:
        product = Product(name="Tea", slug="tea", price_cents=450, stock_quantity=50)
        session.add_all([product, User(email="ops@example.com", password_hash=hash_password("ops12345"), role="admin")])
        await session.flush()
        return product.id


async def _login(client: AsyncClient, email: str, password: str = "secret123") -> dict[str, str]:
    response = await client.post("/auth/login", json={"email": email, "password": password})
    return {"Authorization": f"Bearer {response.json()['token']}"}


async def _customer(client: AsyncClient, email: str) -> dict[str, str]:
    await client.post("/auth/register", json={"email": email, "password": "secret123", "fullName": "Tea Drinker"})
    return await _login(client, email)


async def _place_order(client: AsyncClient, headers: dict[str, str], product_id: int, quantity: int) -> dict:
    await client.post("/cart/items", json={"productId": product_id, "quantity": quantity}, headers=headers)
    response = await client.post("/checkout", json=SHIPPING, headers=headers)
    assert response.status_code == 201
    return response.json()


def test_list_orders_newest_first_with_item_counts(tmp_path) -> None:
    app = create_app(_settings(tmp_path))

    async def body() -> None:
        async with lifespan(app):
            product_id = await _seed(app)
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                headers = await _customer(client, "tea@example.com")
                first = await _place_order(client, headers, product_id, 2)
                second = await _place_order(client, headers, product_id, 3)

                listing = await client.get("/orders", headers=headers)
                assert listing.status_code == 200
                payload = listing.json()
                assert [entry["id"] for entry in payload["orders"]] == [second["id"], first["id"]]
                assert [entry["itemCount"] for entry in payload["orders"]] == [3, 2]
                assert payload["orders"][0]["totalAmount"] == "13.50"
                assert payload["pagination"] == {"page": 1, "limit": 20, "total": 2, "totalPages": 1}

                paged = await client.get("/orders", params={"limit": 1, "page": 2}, headers=headers)
                assert [entry["id"] for entry in paged.json()["orders"]] == [first["id"]]

                filtered = await client.get("/orders", params={"status": "shipped"}, headers=headers)
                assert filtered.json()["orders"] == []

    _run(body())


def test_orders_are_private_to_their_owner(tmp_path) -> None:
    app = create_app(_settings(tmp_path))

    async def body() -> None:
        async with lifespan(app):
            product_id = await _seed(app)
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                owner = await _customer(client, "owner@example.com")
                other = await _customer(client, "other@example.com")
                order = await _place_order(client, owner, product_id, 1)

                mine = await client.get(f"/orders/{order['id']}", headers=owner)
                assert mine.status_code == 200
                assert mine.json()["orderNumber"] == order["orderNumber"]
                assert mine.json()["shippingAddress"]["city"] == "Oslo"

                theirs = await client.get(f"/orders/{order['id']}", headers=other)
                assert theirs.status_code == 404
                assert theirs.json()["reason"] == "order_not_found"

                timeline = await client.get(f"/orders/{order['id']}/status", headers=other)
                assert timeline.status_code == 404

                assert (await client.get("/orders")).status_code == 401

    _run(body())


def test_admin_status_transitions_append_to_timeline(tmp_path) -> None:
    app = create_app(_settings(tmp_path))

    async def body() -> None:
        async with lifespan(app):
            product_id = await _seed(app)
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                customer = await _customer(client, "tea@example.com")
                admin = await _login(client, "ops@example.com", "ops12345")
                order = await _place_order(client, customer, product_id, 1)
                url = f"/orders/admin/orders/{order['id']}/status"

                forbidden = await client.patch(url, json={"status": "processing"}, headers=customer)
                assert forbidden.status_code == 403

                processing = await client.patch(url, json={"status": "processing", "notes": "Packing"}, headers=admin)
                assert processing.status_code == 200
                assert processing.json()["status"] == "processing"

                skipped = await client.patch(url, json={"status": "delivered"}, headers=admin)
                assert skipped.status_code == 409
                assert skipped.json()["reason"] == "invalid_status_transition"

                shipped = await client.patch(url, json={"status": "shipped"}, headers=admin)
                assert shipped.status_code == 200

                unknown = await client.patch(url, json={"status": "lost"}, headers=admin)
                assert unknown.status_code == 400

                timeline = await client.get(f"/orders/{order['id']}/status", headers=customer)
                assert timeline.status_code == 200
                payload = timeline.json()
                assert payload["orderId"] == order["id"]
                assert [(event["status"], event["notes"]) for event in payload["timeline"]] == [
                    ("pending", "Order created"),
                    ("processing", "Packing"),
                    ("shipped", None),
                ]

                detail = await client.get(f"/orders/{order['id']}", headers=customer)
                assert detail.json()["status"] == "shipped"
                assert len(detail.json()["statusHistory"]) == 3

    _run(body())


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with app.router.lifespan_context(app):
        yield
