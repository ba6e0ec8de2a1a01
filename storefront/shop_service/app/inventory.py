"""Stock reads, row locks and guarded decrements."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import InsufficientStockError
from .models import Product


class InventoryStore:
    """Authoritative access to product stock counts."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def available(self, product_id: int) -> int:
        result = await self.session.execute(select(Product.stock_quantity).where(Product.id == product_id))
        return int(result.scalar_one_or_none() or 0)

    def ensure_available(self, product: Product, requested: int) -> None:
        if requested > product.stock_quantity:
            raise InsufficientStockError(
                product_id=product.id,
                product_name=product.name,
                available=product.stock_quantity,
                requested=requested,
            )

    async def lock_products(self, product_ids: Iterable[int]) -> dict[int, Product]:
        """Lock the given product rows in ascending id order and return them by id."""

        ids = sorted(set(product_ids))
        if not ids:
            return {}
        result = await self.session.execute(
            select(Product)
            .where(Product.id.in_(ids))
            .order_by(Product.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return {product.id: product for product in result.scalars()}

    async def decrement(self, product: Product, quantity: int) -> None:
        """Remove ``quantity`` units, failing if the row no longer holds enough."""

        result = await self.session.execute(
            update(Product)
            .where(Product.id == product.id, Product.stock_quantity >= quantity)
            .values(stock_quantity=Product.stock_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InsufficientStockError(
                product_id=product.id,
                product_name=product.name,
                available=await self.available(product.id),
                requested=quantity,
            )
        await self.session.refresh(product, attribute_names=["stock_quantity"])
