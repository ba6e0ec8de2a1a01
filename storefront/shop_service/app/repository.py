"""Data access helpers for the storefront."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from sqlalchemy import Select, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .identity import CartIdentity, UserIdentity
from .models import Cart, CartItem, Category, Order, OrderItem, Product, ProductImage, User


class UserRepository:
    """Persistence helpers for user accounts."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, user_id: int) -> User | None:
        return await self.session.get(User, user_id)

    async def get_by_email(self, email: str) -> User | None:
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def create(
        self,
        *,
        email: str,
        password_hash: str,
        full_name: str | None,
        phone: str | None,
        role: str = "customer",
    ) -> User:
        user = User(email=email, password_hash=password_hash, full_name=full_name, phone=phone, role=role)
        self.session.add(user)
        await self.session.flush()
        await self.session.refresh(user)
        return user


class CatalogRepository:
    """Persistence helpers for categories, products and product images."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_categories(self) -> list[Category]:
        result = await self.session.execute(select(Category).order_by(Category.name))
        return list(result.scalars())

    async def get_category(self, category_id: int) -> Category | None:
        return await self.session.get(Category, category_id)

    async def get_category_by_slug(self, slug: str) -> Category | None:
        result = await self.session.execute(select(Category).where(Category.slug == slug))
        return result.scalar_one_or_none()

    async def create_category(self, *, name: str, slug: str, description: str | None) -> Category:
        category = Category(name=name, slug=slug, description=description)
        self.session.add(category)
        await self.session.flush()
        await self.session.refresh(category)
        return category

    async def count_products_in_category(self, category_id: int) -> int:
        result = await self.session.execute(
            select(func.count(Product.id)).where(Product.category_id == category_id, Product.is_active.is_(True))
        )
        return int(result.scalar_one())

    async def list_products(
        self,
        *,
        limit: int,
        offset: int,
        category_id: int | None = None,
        min_price_cents: int | None = None,
        max_price_cents: int | None = None,
        search: str | None = None,
        sort_by: Literal["price", "createdAt"] = "createdAt",
        sort_order: Literal["asc", "desc"] = "desc",
    ) -> tuple[list[Product], int]:
        query: Select[tuple[Product]] = select(Product).where(Product.is_active.is_(True))
        if category_id is not None:
            query = query.where(Product.category_id == category_id)
        if min_price_cents is not None:
            query = query.where(Product.price_cents >= min_price_cents)
        if max_price_cents is not None:
            query = query.where(Product.price_cents <= max_price_cents)
        if search:
            query = query.where(Product.name.ilike(f"%{search}%"))

        count_result = await self.session.execute(select(func.count()).select_from(query.subquery()))
        total = int(count_result.scalar_one())

        column = Product.price_cents if sort_by == "price" else Product.created_at
        ordering = column.asc() if sort_order == "asc" else column.desc()
        result = await self.session.execute(query.order_by(ordering, Product.id).offset(offset).limit(limit))
        return list(result.scalars()), total

    async def get_product(self, product_id: int, *, active_only: bool = True) -> Product | None:
        query = select(Product).where(Product.id == product_id)
        if active_only:
            query = query.where(Product.is_active.is_(True))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_product_by_slug(self, slug: str) -> Product | None:
        result = await self.session.execute(select(Product).where(Product.slug == slug))
        return result.scalar_one_or_none()

    async def create_product(self, **fields: Any) -> Product:
        product = Product(**fields)
        self.session.add(product)
        await self.session.flush()
        await self.session.refresh(product, attribute_names=["created_at", "updated_at", "category", "images"])
        return product

    async def update_product(self, product: Product, **fields: Any) -> Product:
        for key, value in fields.items():
            setattr(product, key, value)
        await self.session.flush()
        result = await self.session.execute(
            select(Product).where(Product.id == product.id).execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def delete_product(self, product: Product) -> None:
        await self.session.delete(product)
        await self.session.flush()

    async def add_image(
        self, product: Product, *, url: str, storage_path: str, is_primary: bool, sort_order: int
    ) -> ProductImage:
        image = ProductImage(
            url=url,
            storage_path=storage_path,
            is_primary=is_primary,
            sort_order=sort_order,
        )
        product.images.append(image)
        await self.session.flush()
        await self.session.refresh(image)
        return image

    async def delete_image(self, product: Product, image: ProductImage) -> None:
        product.images.remove(image)
        await self.session.flush()


def _identity_clause(identity: CartIdentity):
    if isinstance(identity, UserIdentity):
        return Cart.user_id == identity.user_id
    return (Cart.session_token == identity.token) & Cart.user_id.is_(None)


class CartRepository:
    """Persistence helpers for carts and cart lines."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_identity(self, identity: CartIdentity, *, for_update: bool = False) -> Cart | None:
        query = select(Cart).where(_identity_clause(identity))
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def create(self, identity: CartIdentity, *, expires_at: datetime) -> Cart:
        cart = Cart.for_identity(identity, expires_at=expires_at)
        self.session.add(cart)
        await self.session.flush()
        await self.session.refresh(cart, attribute_names=["created_at", "updated_at"])
        return cart

    async def touch(self, cart: Cart, *, expires_at: datetime) -> Cart:
        cart.expires_at = expires_at
        await self.session.flush()
        return cart

    async def delete(self, cart: Cart) -> None:
        await self.session.execute(delete(CartItem).where(CartItem.cart_id == cart.id))
        await self.session.execute(delete(Cart).where(Cart.id == cart.id))

    async def get_line(self, cart_id: int, line_id: int) -> CartItem | None:
        result = await self.session.execute(
            select(CartItem).where(CartItem.id == line_id, CartItem.cart_id == cart_id)
        )
        return result.scalar_one_or_none()

    async def get_line_for_product(self, cart_id: int, product_id: int) -> CartItem | None:
        result = await self.session.execute(
            select(CartItem).where(CartItem.cart_id == cart_id, CartItem.product_id == product_id)
        )
        return result.scalar_one_or_none()

    async def lines(self, cart_id: int) -> list[CartItem]:
        result = await self.session.execute(
            select(CartItem).where(CartItem.cart_id == cart_id).order_by(CartItem.id)
        )
        return list(result.scalars())

    async def add_line(self, cart: Cart, *, product_id: int, quantity: int) -> CartItem:
        line = CartItem(cart_id=cart.id, product_id=product_id, quantity=quantity)
        self.session.add(line)
        await self.session.flush()
        return line

    async def set_quantity(self, line: CartItem, quantity: int) -> CartItem:
        line.quantity = quantity
        await self.session.flush()
        return line

    async def delete_line(self, line: CartItem) -> None:
        await self.session.execute(delete(CartItem).where(CartItem.id == line.id))

    async def delete_lines(self, cart: Cart) -> int:
        result = await self.session.execute(delete(CartItem).where(CartItem.cart_id == cart.id))
        self.session.expire(cart, ["items"])
        return result.rowcount or 0

    async def view_rows(self, cart_id: int) -> list[tuple[CartItem, Product, str | None]]:
        """Lines joined with their live product row and primary image URL."""

        primary_image = (
            select(ProductImage.url)
            .where(ProductImage.product_id == Product.id, ProductImage.is_primary.is_(True))
            .order_by(ProductImage.sort_order, ProductImage.id)
            .limit(1)
            .correlate(Product)
            .scalar_subquery()
        )
        result = await self.session.execute(
            select(CartItem, Product, primary_image)
            .join(Product, Product.id == CartItem.product_id)
            .where(CartItem.cart_id == cart_id)
            .order_by(CartItem.id)
        )
        return [(line, product, image) for line, product, image in result.all()]

    async def delete_expired(self, *, now: datetime) -> int:
        expired = select(Cart.id).where(Cart.expires_at < now)
        await self.session.execute(
            delete(CartItem).where(CartItem.cart_id.in_(expired)).execution_options(synchronize_session=False)
        )
        result = await self.session.execute(
            delete(Cart).where(Cart.expires_at < now).execution_options(synchronize_session=False)
        )
        return result.rowcount or 0


class OrderRepository:
    """Persistence helpers for orders and their line snapshots."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def order_number_exists(self, order_number: str) -> bool:
        result = await self.session.execute(select(Order.id).where(Order.order_number == order_number))
        return result.first() is not None

    async def create_order(
        self,
        *,
        user_id: int,
        order_number: str,
        total_cents: int,
        shipping_address: str,
        items: list[dict[str, Any]],
    ) -> Order:
        order = Order(
            user_id=user_id,
            order_number=order_number,
            total_cents=total_cents,
            status="pending",
            shipping_address=shipping_address,
        )
        order.items = [OrderItem(**item) for item in items]
        self.session.add(order)
        await self.session.flush()
        return order

    async def get_order(self, order_id: int) -> Order | None:
        result = await self.session.execute(
            select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_order_for_user(self, order_id: int, user_id: int) -> Order | None:
        result = await self.session.execute(
            select(Order)
            .where(Order.id == order_id, Order.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_for_user(
        self,
        user_id: int,
        *,
        status: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Order], int]:
        query: Select[tuple[Order]] = select(Order).where(Order.user_id == user_id)
        if status:
            query = query.where(Order.status == status)
        count_result = await self.session.execute(select(func.count()).select_from(query.subquery()))
        total = int(count_result.scalar_one())
        result = await self.session.execute(
            query.order_by(Order.created_at.desc(), Order.id.desc()).offset(offset).limit(limit)
        )
        return list(result.scalars()), total
