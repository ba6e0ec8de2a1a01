"""HTTP routes for the caller's orders and admin status changes."""

from __future__ import annotations

import json
import math

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..dependencies import get_session, require_admin, require_claims
from ..errors import NotFoundError
from ..ledger import OrderStatusLedger
from ..models import Order, OrderStatusEvent
from ..money import from_cents
from ..repository import OrderRepository
from ..schemas import (
    OrderListResponse,
    OrderResponse,
    OrderStatus,
    OrderStatusUpdate,
    OrderTimelineResponse,
)
from ..security import TokenClaims

router = APIRouter(prefix="/orders", tags=["orders"])


def _serialize_event(event: OrderStatusEvent) -> dict[str, object]:
    return {"status": event.status, "notes": event.notes, "createdAt": event.created_at}


def serialize_order(order: Order, events: list[OrderStatusEvent] | None = None) -> dict[str, object]:
    return {
        "id": order.id,
        "orderNumber": order.order_number,
        "status": order.status,
        "totalAmount": from_cents(order.total_cents),
        "shippingAddress": json.loads(order.shipping_address) if order.shipping_address else None,
        "items": [
            {
                "id": item.id,
                "product": {"id": item.product_id, "name": item.product_name},
                "quantity": item.quantity,
                "priceAtTime": from_cents(item.unit_price_cents),
            }
            for item in order.items
        ],
        "statusHistory": [_serialize_event(event) for event in (events if events is not None else order.events)],
        "createdAt": order.created_at,
        "updatedAt": order.updated_at,
    }


def _serialize_summary(order: Order) -> dict[str, object]:
    return {
        "id": order.id,
        "orderNumber": order.order_number,
        "status": order.status,
        "totalAmount": from_cents(order.total_cents),
        "itemCount": sum(item.quantity for item in order.items),
        "createdAt": order.created_at,
    }


async def _owned_order(repository: OrderRepository, order_id: int, claims: TokenClaims) -> Order:
    order = await repository.get_order_for_user(order_id, claims.subject_id)
    if order is None:
        raise NotFoundError("Order not found", reason="order_not_found")
    return order


@router.get("", response_model=OrderListResponse)
async def list_orders(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    status_filter: OrderStatus | None = Query(default=None, alias="status"),
    claims: TokenClaims = Depends(require_claims),
    session: AsyncSession = Depends(get_session),
) -> OrderListResponse:
    orders, total = await OrderRepository(session).list_for_user(
        claims.subject_id,
        status=status_filter,
        limit=limit,
        offset=(page - 1) * limit,
    )
    return OrderListResponse.model_validate(
        {
            "orders": [_serialize_summary(order) for order in orders],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": math.ceil(total / limit),
            },
        }
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int = Path(..., ge=1),
    claims: TokenClaims = Depends(require_claims),
    session: AsyncSession = Depends(get_session),
) -> OrderResponse:
    order = await _owned_order(OrderRepository(session), order_id, claims)
    events = await OrderStatusLedger(session).history(order.id)
    return OrderResponse.model_validate(serialize_order(order, events))


@router.get("/{order_id}/status", response_model=OrderTimelineResponse)
async def get_order_timeline(
    order_id: int = Path(..., ge=1),
    claims: TokenClaims = Depends(require_claims),
    session: AsyncSession = Depends(get_session),
) -> OrderTimelineResponse:
    order = await _owned_order(OrderRepository(session), order_id, claims)
    events = await OrderStatusLedger(session).history(order.id)
    return OrderTimelineResponse.model_validate(
        {"orderId": order.id, "timeline": [_serialize_event(event) for event in events]}
    )


@router.patch("/admin/orders/{order_id}/status", response_model=OrderResponse, dependencies=[Depends(require_admin)])
async def update_order_status(
    payload: OrderStatusUpdate,
    order_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> OrderResponse:
    repository = OrderRepository(session)
    order = await repository.get_order(order_id)
    if order is None:
        raise NotFoundError("Order not found", reason="order_not_found")
    ledger = OrderStatusLedger(session)
    await ledger.transition(order, payload.status, payload.notes)
    await session.refresh(order, attribute_names=["updated_at"])
    events = await ledger.history(order.id)
    return OrderResponse.model_validate(serialize_order(order, events))
