import logging
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from storefront.common import Database, lifespan_session
from storefront.shop_service.app.carts import CartResolver, is_expired
from storefront.shop_service.app.identity import SessionIdentity
from storefront.shop_service.app.models import Base, Cart, CartItem, Product
from storefront.shop_service.app.repository import CartRepository


async def _database(tmp_path) -> Database:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'expiry.db'}")
    await database.create_schema(Base)
    return database


@pytest.mark.asyncio
async def test_delete_expired_removes_only_stale_carts(tmp_path) -> None:
    database = await _database(tmp_path)
    now = datetime.now(timezone.utc)
    try:
        async with lifespan_session(database.session_factory) as session:
            product = Product(name="Soap", slug="soap", price_cents=199, stock_quantity=9)
            stale = Cart.for_identity(SessionIdentity("stale"), expires_at=now - timedelta(days=1))
            live = Cart.for_identity(SessionIdentity("live"), expires_at=now + timedelta(days=1))
            session.add_all([product, stale, live])
            await session.flush()
            session.add(CartItem(cart_id=stale.id, product_id=product.id, quantity=1))

        async with lifespan_session(database.session_factory) as session:
            deleted = await CartRepository(session).delete_expired(now=now)
        assert deleted == 1

        async with lifespan_session(database.session_factory) as session:
            tokens = (await session.execute(select(Cart.session_token))).scalars().all()
            assert tokens == ["live"]
            assert (await session.execute(select(CartItem))).scalars().all() == []
    finally:
        await database.dispose()


@pytest.mark.asyncio
async def test_resolve_extends_expiry_on_every_touch(tmp_path) -> None:
    database = await _database(tmp_path)
    try:
        identity = SessionIdentity("touch-me")
        async with lifespan_session(database.session_factory) as session:
            resolver = CartResolver(CartRepository(session), ttl=timedelta(days=7))
            cart = await resolver.resolve(identity)
            cart_id = cart.id
            cart.expires_at = datetime.now(timezone.utc) + timedelta(hours=1)
            await session.flush()

        async with lifespan_session(database.session_factory) as session:
            resolver = CartResolver(CartRepository(session), ttl=timedelta(days=7))
            cart = await resolver.resolve(identity)
            assert cart.id == cart_id
            assert not is_expired(cart, now=datetime.now(timezone.utc) + timedelta(days=6))
    finally:
        await database.dispose()


@pytest.mark.asyncio
async def test_find_discards_expired_cart_and_logs_its_owner(tmp_path, caplog: pytest.LogCaptureFixture) -> None:
    database = await _database(tmp_path)
    try:
        async with lifespan_session(database.session_factory) as session:
            session.add(
                Cart.for_identity(
                    SessionIdentity("gone"), expires_at=datetime.now(timezone.utc) - timedelta(minutes=5)
                )
            )

        caplog.set_level(logging.INFO, logger="storefront.shop_service.app.carts")
        async with lifespan_session(database.session_factory) as session:
            resolver = CartResolver(CartRepository(session), ttl=timedelta(days=7))
            assert await resolver.find(SessionIdentity("gone")) is None

        assert "SessionIdentity(token='gone')" in caplog.text
        async with lifespan_session(database.session_factory) as session:
            assert (await session.execute(select(Cart))).scalars().all() == []
    finally:
        await database.dispose()
