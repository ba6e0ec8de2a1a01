"""Turning a user's cart into an order."""

from __future__ import annotations

import json
import logging
import secrets
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.common import get_tracer

from .carts import CartResolver
from .errors import BadRequestError, ConflictError, InsufficientStockError, StorefrontError
from .identity import UserIdentity
from .inventory import InventoryStore
from .ledger import OrderStatusLedger
from .metrics import CHECKOUT_SECONDS, CHECKOUT_TOTAL, ORDER_NUMBER_COLLISIONS_TOTAL
from .models import Order
from .repository import CartRepository, OrderRepository

_LOGGER = logging.getLogger(__name__)

OrderNumberFactory = Callable[[], str]


def generate_order_number(now: datetime | None = None) -> str:
    """Return ``ORD-YYYYMMDD-NNNN`` with a random four digit suffix."""

    moment = now or datetime.now(timezone.utc)
    return f"ORD-{moment:%Y%m%d}-{1000 + secrets.randbelow(9000)}"


class CheckoutOrchestrator:
    """Validates stock, snapshots the cart into an order and empties the cart.

    Everything runs on the caller's session; the surrounding transaction
    either commits all writes or none of them.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        cart_ttl: timedelta,
        order_number_factory: OrderNumberFactory = generate_order_number,
        order_number_attempts: int = 5,
    ) -> None:
        self.carts = CartRepository(session)
        self.resolver = CartResolver(self.carts, ttl=cart_ttl)
        self.orders = OrderRepository(session)
        self.inventory = InventoryStore(session)
        self.ledger = OrderStatusLedger(session)
        self.order_number_factory = order_number_factory
        self.order_number_attempts = order_number_attempts

    async def checkout(self, user_id: int, *, shipping_address: dict[str, Any]) -> Order:
        started = time.perf_counter()
        with get_tracer().start_as_current_span("checkout") as span:
            span.set_attribute("storefront.user_id", user_id)
            try:
                order = await self._checkout(user_id, shipping_address)
            except InsufficientStockError as exc:
                CHECKOUT_TOTAL.labels(outcome="insufficient_stock").inc()
                span.set_attribute("storefront.checkout.outcome", exc.reason)
                raise
            except StorefrontError as exc:
                CHECKOUT_TOTAL.labels(outcome="rejected").inc()
                span.set_attribute("storefront.checkout.outcome", exc.reason)
                raise
            span.set_attribute("storefront.order_number", order.order_number)
        CHECKOUT_TOTAL.labels(outcome="created").inc()
        CHECKOUT_SECONDS.observe(time.perf_counter() - started)
        _LOGGER.info("Order %s created for user %s", order.order_number, user_id)
        return order

    async def _checkout(self, user_id: int, shipping_address: dict[str, Any]) -> Order:
        cart = await self.resolver.find(UserIdentity(user_id), for_update=True)
        if cart is None:
            raise BadRequestError("Cart not found", reason="cart_not_found")
        lines = await self.carts.lines(cart.id)
        if not lines:
            raise BadRequestError("Cart is empty", reason="cart_empty")

        products = await self.inventory.lock_products(line.product_id for line in lines)
        for line in lines:
            product = products.get(line.product_id)
            if product is None or not product.is_active:
                raise BadRequestError(
                    "Product is no longer available",
                    reason="product_unavailable",
                    details={"productId": line.product_id},
                )
            self.inventory.ensure_available(product, line.quantity)

        total_cents = sum(products[line.product_id].price_cents * line.quantity for line in lines)
        order_number = await self._allocate_order_number()

        try:
            order = await self.orders.create_order(
                user_id=user_id,
                order_number=order_number,
                total_cents=total_cents,
                shipping_address=json.dumps(shipping_address),
                items=[
                    {
                        "product_id": line.product_id,
                        "product_name": products[line.product_id].name,
                        "quantity": line.quantity,
                        "unit_price_cents": products[line.product_id].price_cents,
                    }
                    for line in lines
                ],
            )
        except IntegrityError as exc:
            ORDER_NUMBER_COLLISIONS_TOTAL.inc()
            raise ConflictError(
                "Order number already in use, please retry",
                reason="order_number_conflict",
            ) from exc

        for line in lines:
            await self.inventory.decrement(products[line.product_id], line.quantity)
        await self.ledger.record(order.id, "pending", "Order created")
        await self.carts.delete_lines(cart)

        refreshed = await self.orders.get_order(order.id)
        if refreshed is None:
            raise RuntimeError(f"order {order.id} vanished after insert")
        return refreshed

    async def _allocate_order_number(self) -> str:
        for _ in range(self.order_number_attempts):
            candidate = self.order_number_factory()
            if not await self.orders.order_number_exists(candidate):
                return candidate
            ORDER_NUMBER_COLLISIONS_TOTAL.inc()
            _LOGGER.warning("Order number %s already taken, generating another", candidate)
        raise ConflictError(
            "Could not allocate a unique order number",
            reason="order_number_conflict",
            details={"attempts": self.order_number_attempts},
        )
