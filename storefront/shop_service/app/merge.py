"""Folding a guest cart into a user's cart at login."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.common import get_tracer, lifespan_session

from .carts import CartResolver, is_expired, utcnow
from .identity import SessionIdentity, UserIdentity
from .metrics import CART_MERGE_TOTAL
from .repository import CartRepository

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MergeResult:
    merged: bool
    lines_merged: int = 0
    error: str | None = None


class CartMergeEngine:
    """Moves every guest line into the user's cart, summing quantities.

    Stock is not checked here; checkout is the authoritative stock gate.
    """

    def __init__(self, session: AsyncSession, *, ttl: timedelta) -> None:
        self.repository = CartRepository(session)
        self.resolver = CartResolver(self.repository, ttl=ttl)

    async def merge(self, session_token: str, user_id: int) -> MergeResult:
        guest = await self.repository.get_by_identity(SessionIdentity(session_token), for_update=True)
        if guest is None:
            return MergeResult(merged=False)
        if is_expired(guest, now=utcnow()):
            await self.repository.delete(guest)
            return MergeResult(merged=False)
        guest_lines = await self.repository.lines(guest.id)
        if not guest_lines:
            return MergeResult(merged=False)

        target = await self.resolver.resolve(UserIdentity(user_id), for_update=True)
        for guest_line in guest_lines:
            existing = await self.repository.get_line_for_product(target.id, guest_line.product_id)
            if existing is None:
                await self.repository.add_line(target, product_id=guest_line.product_id, quantity=guest_line.quantity)
            else:
                await self.repository.set_quantity(existing, existing.quantity + guest_line.quantity)

        source = guest.identity
        await self.repository.delete(guest)
        _LOGGER.info(
            "Merged %d lines from %s into cart %s for %s", len(guest_lines), source, target.id, target.identity
        )
        return MergeResult(merged=True, lines_merged=len(guest_lines))


async def merge_guest_cart_safely(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    session_token: str | None,
    user_id: int,
    ttl: timedelta,
) -> MergeResult:
    """Run the merge in its own transaction and report failures instead of raising."""

    if not session_token:
        return MergeResult(merged=False)

    with get_tracer().start_as_current_span("cart.merge") as span:
        span.set_attribute("storefront.user_id", user_id)
        try:
            async with lifespan_session(session_factory) as session:
                result = await CartMergeEngine(session, ttl=ttl).merge(session_token, user_id)
        except Exception as exc:
            _LOGGER.exception("Guest cart merge failed for user %s", user_id)
            span.record_exception(exc)
            CART_MERGE_TOTAL.labels(outcome="failed").inc()
            return MergeResult(merged=False, error=str(exc) or exc.__class__.__name__)
        CART_MERGE_TOTAL.labels(outcome="merged" if result.merged else "skipped").inc()
        span.set_attribute("storefront.cart.lines_merged", result.lines_merged)
        return result
