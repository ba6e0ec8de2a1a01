"""Cart resolution, line mutations and the cart view."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from .errors import NotFoundError
from .identity import CartIdentity
from .inventory import InventoryStore
from .models import Cart
from .repository import CartRepository, CatalogRepository

_LOGGER = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_expired(cart: Cart, *, now: datetime | None = None) -> bool:
    return as_utc(cart.expires_at) <= (now or utcnow())


@dataclass(slots=True)
class CartLineView:
    id: int
    product_id: int
    product_name: str
    price_cents: int
    image: str | None
    quantity: int

    @property
    def subtotal_cents(self) -> int:
        return self.price_cents * self.quantity


@dataclass(slots=True)
class CartView:
    """Cart contents priced at the products' current prices."""

    id: int | None
    items: list[CartLineView] = field(default_factory=list)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.items)

    @property
    def total_cents(self) -> int:
        return sum(line.subtotal_cents for line in self.items)

    @classmethod
    def empty(cls) -> CartView:
        return cls(id=None, items=[])


class CartResolver:
    """Finds or creates the single live cart for an identity."""

    def __init__(self, repository: CartRepository, *, ttl: timedelta) -> None:
        self.repository = repository
        self.ttl = ttl

    async def find(self, identity: CartIdentity, *, for_update: bool = False) -> Cart | None:
        """Return the identity's live cart without creating one.

        An expired cart is deleted and reported as absent.
        """

        cart = await self.repository.get_by_identity(identity, for_update=for_update)
        if cart is None:
            return None
        if is_expired(cart):
            _LOGGER.info("Discarding expired cart %s for %s", cart.id, cart.identity)
            await self.repository.delete(cart)
            return None
        return cart

    async def resolve(self, identity: CartIdentity, *, for_update: bool = False) -> Cart:
        expires_at = utcnow() + self.ttl
        cart = await self.find(identity, for_update=for_update)
        if cart is None:
            return await self.repository.create(identity, expires_at=expires_at)
        return await self.repository.touch(cart, expires_at=expires_at)


class CartService:
    """Cart line mutations, each concluding with a fresh cart view."""

    def __init__(self, session: AsyncSession, *, ttl: timedelta) -> None:
        self.repository = CartRepository(session)
        self.catalog = CatalogRepository(session)
        self.inventory = InventoryStore(session)
        self.resolver = CartResolver(self.repository, ttl=ttl)

    async def view(self, identity: CartIdentity) -> CartView:
        cart = await self.resolver.find(identity)
        if cart is None:
            return CartView.empty()
        cart = await self.repository.touch(cart, expires_at=utcnow() + self.resolver.ttl)
        return await self.build_view(cart)

    async def build_view(self, cart: Cart) -> CartView:
        rows = await self.repository.view_rows(cart.id)
        return CartView(
            id=cart.id,
            items=[
                CartLineView(
                    id=line.id,
                    product_id=product.id,
                    product_name=product.name,
                    price_cents=product.price_cents,
                    image=image,
                    quantity=line.quantity,
                )
                for line, product, image in rows
            ],
        )

    async def add(self, identity: CartIdentity, *, product_id: int, quantity: int) -> CartView:
        product = await self.catalog.get_product(product_id)
        if product is None:
            raise NotFoundError("Product not found", reason="product_not_found")
        self.inventory.ensure_available(product, quantity)

        cart = await self.resolver.resolve(identity, for_update=True)
        line = await self.repository.get_line_for_product(cart.id, product.id)
        if line is None:
            await self.repository.add_line(cart, product_id=product.id, quantity=quantity)
        else:
            combined = line.quantity + quantity
            self.inventory.ensure_available(product, combined)
            await self.repository.set_quantity(line, combined)
        return await self.build_view(cart)

    async def update(self, identity: CartIdentity, *, line_id: int, quantity: int) -> CartView:
        cart = await self.resolver.resolve(identity, for_update=True)
        line = await self.repository.get_line(cart.id, line_id)
        if line is None:
            raise NotFoundError("Cart item not found", reason="cart_item_not_found")
        product = await self.catalog.get_product(line.product_id)
        if product is None:
            raise NotFoundError("Product not found", reason="product_not_found")
        self.inventory.ensure_available(product, quantity)
        await self.repository.set_quantity(line, quantity)
        return await self.build_view(cart)

    async def remove(self, identity: CartIdentity, *, line_id: int) -> CartView:
        cart = await self.resolver.resolve(identity, for_update=True)
        line = await self.repository.get_line(cart.id, line_id)
        if line is None:
            raise NotFoundError("Cart item not found", reason="cart_item_not_found")
        await self.repository.delete_line(line)
        return await self.build_view(cart)

    async def clear(self, identity: CartIdentity) -> CartView:
        cart = await self.repository.get_by_identity(identity, for_update=True)
        if cart is not None:
            await self.repository.delete(cart)
        return CartView.empty()
