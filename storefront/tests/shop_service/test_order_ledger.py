import re
from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from storefront.common import Database, lifespan_session
from storefront.shop_service.app.checkout import generate_order_number
from storefront.shop_service.app.errors import BadRequestError, ConflictError
from storefront.shop_service.app.identity import SessionIdentity, UserIdentity
from storefront.shop_service.app.ledger import OrderStatusLedger, can_transition
from storefront.shop_service.app.models import Base, Cart, Order, OrderStatusEvent


def test_order_number_format() -> None:
    number = generate_order_number(datetime(2026, 3, 9, tzinfo=timezone.utc))
    assert re.fullmatch(r"ORD-20260309-\d{4}", number)
    assert 1000 <= int(number.rsplit("-", 1)[1]) <= 9999


def test_status_transition_table() -> None:
    assert can_transition("pending", "processing")
    assert can_transition("pending", "cancelled")
    assert can_transition("processing", "cancelled")
    assert can_transition("shipped", "delivered")
    assert not can_transition("pending", "shipped")
    assert not can_transition("delivered", "cancelled")
    assert not can_transition("cancelled", "pending")


def test_cart_identity_variants() -> None:
    assert Cart.for_identity(UserIdentity(7), expires_at=datetime.now(timezone.utc)).identity == UserIdentity(7)
    guest = Cart.for_identity(SessionIdentity("abc"), expires_at=datetime.now(timezone.utc))
    assert guest.identity == SessionIdentity("abc")
    assert guest.user_id is None

    with pytest.raises(ValueError):
        SessionIdentity("  ")
    with pytest.raises(ValueError):
        UserIdentity(0)
    with pytest.raises(ValueError):
        Cart(user_id=None, session_token=None).identity


@pytest.mark.asyncio
async def test_ledger_appends_in_order_and_guards_transitions(tmp_path) -> None:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    await database.create_schema(Base)
    try:
        async with lifespan_session(database.session_factory) as session:
            order = Order(order_number="ORD-20260101-1000", total_cents=100, shipping_address="{}")
            session.add(order)
            await session.flush()
            ledger = OrderStatusLedger(session)
            await ledger.record(order.id, "pending", "Order created")
            await ledger.transition(order, "processing")
            await ledger.transition(order, "cancelled", "Customer request")

            with pytest.raises(ConflictError):
                await ledger.transition(order, "processing")
            with pytest.raises(BadRequestError):
                await ledger.record(order.id, "teleported")

            history = await ledger.history(order.id)
            assert [(event.status, event.notes) for event in history] == [
                ("pending", "Order created"),
                ("processing", None),
                ("cancelled", "Customer request"),
            ]
            order_id = order.id

        async with lifespan_session(database.session_factory) as session:
            stored = await session.get(Order, order_id)
            assert stored is not None
            assert stored.status == "cancelled"
            count = len((await session.execute(select(OrderStatusEvent))).scalars().all())
            assert count == 3
    finally:
        await database.dispose()
