#!/usr/bin/env python3
"""Delete carts whose expiry has passed, together with their lines."""

from __future__ import annotations

import argparse
import asyncio
import json
from datetime import datetime, timezone

from sqlalchemy import func, select

from storefront.common import (
    DEFAULT_DATABASE_URL,
    Database,
    StorefrontSettings,
    configure_logging,
    lifespan_session,
    resolve_database_url,
)
from storefront.shop_service.app.models import Cart
from storefront.shop_service.app.repository import CartRepository


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Purge expired shopping carts")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (default: STOREFRONT_DATABASE_URL or the local SQLite file)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Count expired carts without deleting them",
    )
    return parser.parse_args()


async def _purge(database: Database, *, dry_run: bool) -> dict[str, object]:
    now = datetime.now(timezone.utc)
    async with lifespan_session(database.session_factory) as session:
        if dry_run:
            result = await session.execute(select(func.count(Cart.id)).where(Cart.expires_at < now))
            return {"dry_run": True, "expired": int(result.scalar_one()), "cutoff": now.isoformat()}
        deleted = await CartRepository(session).delete_expired(now=now)
    return {"dry_run": False, "deleted": deleted, "cutoff": now.isoformat()}


async def main_async() -> int:
    args = parse_args()
    settings = StorefrontSettings()
    configure_logging(settings)
    database = Database(args.database_url or resolve_database_url(settings, DEFAULT_DATABASE_URL))
    try:
        report = await _purge(database, dry_run=args.dry_run)
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
