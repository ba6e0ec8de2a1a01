#!/usr/bin/env python3
"""Populate a storefront database with sample users, categories and products."""

from __future__ import annotations

import argparse
import asyncio
import json

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.common import (
    DEFAULT_DATABASE_URL,
    Database,
    StorefrontSettings,
    configure_logging,
    lifespan_session,
    resolve_database_url,
)
from storefront.shop_service.app.models import Base
from storefront.shop_service.app.repository import CatalogRepository, UserRepository
from storefront.shop_service.app.security import hash_password

USERS = [
    {"email": "admin@example.com", "password": "admin123", "full_name": "Admin User", "role": "admin"},
    {"email": "customer@example.com", "password": "customer123", "full_name": "John Doe", "role": "customer"},
]

CATEGORIES = [
    {"name": "Electronics", "slug": "electronics", "description": "Latest gadgets and devices"},
    {"name": "Clothing", "slug": "clothing", "description": "Fashion for everyone"},
    {"name": "Home & Garden", "slug": "home-garden", "description": "Everything for your home"},
    {"name": "Sports", "slug": "sports", "description": "Sports equipment and accessories"},
    {"name": "Books", "slug": "books", "description": "Physical and digital books"},
]

PRODUCTS = [
    ("Wireless Bluetooth Headphones", "wireless-bluetooth-headphones", "electronics", 7999, 50),
    ("Smart Watch Pro", "smart-watch-pro", "electronics", 19999, 30),
    ("Cotton T-Shirt", "cotton-t-shirt", "clothing", 2499, 100),
    ("Running Shoes", "running-shoes", "sports", 8999, 40),
    ("Ceramic Coffee Mug Set", "ceramic-coffee-mug-set", "home-garden", 3499, 60),
    ("Yoga Mat", "yoga-mat", "sports", 2999, 75),
    ("Basketball", "basketball", "sports", 3999, 25),
    ("Programming TypeScript", "programming-typescript", "books", 4499, 20),
]


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed the storefront database with sample data")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (default: STOREFRONT_DATABASE_URL or the local SQLite file)",
    )
    return parser.parse_args()


async def _seed(session: AsyncSession) -> dict[str, int]:
    users = UserRepository(session)
    catalog = CatalogRepository(session)
    created = {"users": 0, "categories": 0, "products": 0}

    for entry in USERS:
        if await users.get_by_email(entry["email"]) is None:
            await users.create(
                email=entry["email"],
                password_hash=hash_password(entry["password"]),
                full_name=entry["full_name"],
                phone=None,
                role=entry["role"],
            )
            created["users"] += 1

    category_ids: dict[str, int] = {}
    for entry in CATEGORIES:
        category = await catalog.get_category_by_slug(entry["slug"])
        if category is None:
            category = await catalog.create_category(**entry)
            created["categories"] += 1
        category_ids[category.slug] = category.id

    for name, slug, category_slug, price_cents, stock in PRODUCTS:
        if await catalog.get_product_by_slug(slug) is not None:
            continue
        await catalog.create_product(
            name=name,
            slug=slug,
            description=f"Sample {name.lower()}",
            price_cents=price_cents,
            stock_quantity=stock,
            category_id=category_ids[category_slug],
        )
        created["products"] += 1
    return created


async def main_async() -> int:
    args = parse_args()
    settings = StorefrontSettings()
    configure_logging(settings)
    database = Database(args.database_url or resolve_database_url(settings, DEFAULT_DATABASE_URL))
    try:
        await database.create_schema(Base)
        async with lifespan_session(database.session_factory) as session:
            report = await _seed(session)
    finally:
        await database.dispose()

    print(json.dumps(report, indent=2, sort_keys=True))
    return 0


def main() -> None:
    try:
        exit_code = asyncio.run(main_async())
    except Exception as exc:
        print(json.dumps({"error": str(exc)}))
        exit_code = 1
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
