"""Append-only order status history."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import BadRequestError, ConflictError
from .metrics import ORDER_STATUS_CHANGED_TOTAL
from .models import Order, OrderStatusEvent

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")

_STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"processing", "cancelled"}),
    "processing": frozenset({"shipped", "cancelled"}),
    "shipped": frozenset({"delivered"}),
    "delivered": frozenset(),
    "cancelled": frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return target in _STATUS_TRANSITIONS.get(current, frozenset())


class OrderStatusLedger:
    """Records status events; events are never updated or deleted."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def record(self, order_id: int, status: str, notes: str | None = None) -> OrderStatusEvent:
        if status not in ORDER_STATUSES:
            raise BadRequestError(f"Unknown order status {status!r}", reason="invalid_status")
        event = OrderStatusEvent(order_id=order_id, status=status, notes=notes)
        self.session.add(event)
        await self.session.flush()
        await self.session.refresh(event, attribute_names=["created_at"])
        ORDER_STATUS_CHANGED_TOTAL.labels(status=status).inc()
        return event

    async def history(self, order_id: int) -> list[OrderStatusEvent]:
        result = await self.session.execute(
            select(OrderStatusEvent)
            .where(OrderStatusEvent.order_id == order_id)
            .order_by(OrderStatusEvent.created_at, OrderStatusEvent.id)
        )
        return list(result.scalars())

    async def transition(self, order: Order, status: str, notes: str | None = None) -> OrderStatusEvent:
        """Move ``order`` to ``status`` and append the matching event."""

        if status not in ORDER_STATUSES:
            raise BadRequestError(f"Unknown order status {status!r}", reason="invalid_status")
        if not can_transition(order.status, status):
            raise ConflictError(
                f"Cannot move order from {order.status} to {status}",
                reason="invalid_status_transition",
                details={"from": order.status, "to": status},
            )
        order.status = status
        await self.session.flush()
        return await self.record(order.id, status, notes)
