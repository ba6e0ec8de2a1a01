"""API routes for the caller's cart."""

from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from ..carts import CartService, CartView
from ..dependencies import get_cart_identity, get_cart_ttl, get_session
from ..identity import CartIdentity
from ..money import from_cents
from ..schemas import CartItemCreate, CartItemUpdate, CartResponse

router = APIRouter(prefix="/cart", tags=["cart"])


def _serialize_cart(view: CartView) -> dict[str, object]:
    return {
        "id": view.id,
        "items": [
            {
                "id": line.id,
                "product": {
                    "id": line.product_id,
                    "name": line.product_name,
                    "price": from_cents(line.price_cents),
                    "image": line.image,
                },
                "quantity": line.quantity,
                "subtotal": from_cents(line.subtotal_cents),
            }
            for line in view.items
        ],
        "itemCount": view.item_count,
        "total": from_cents(view.total_cents),
    }


def get_cart_service(
    session: AsyncSession = Depends(get_session),
    ttl: timedelta = Depends(get_cart_ttl),
) -> CartService:
    return CartService(session, ttl=ttl)


@router.get("", response_model=CartResponse)
async def get_cart(
    identity: CartIdentity = Depends(get_cart_identity),
    service: CartService = Depends(get_cart_service),
) -> CartResponse:
    view = await service.view(identity)
    return CartResponse.model_validate(_serialize_cart(view))


@router.post("/items", response_model=CartResponse)
async def add_item(
    payload: CartItemCreate,
    identity: CartIdentity = Depends(get_cart_identity),
    service: CartService = Depends(get_cart_service),
) -> CartResponse:
    view = await service.add(identity, product_id=payload.product_id, quantity=payload.quantity)
    return CartResponse.model_validate(_serialize_cart(view))


@router.put("/items/{item_id}", response_model=CartResponse)
async def update_item(
    payload: CartItemUpdate,
    item_id: int = Path(..., ge=1),
    identity: CartIdentity = Depends(get_cart_identity),
    service: CartService = Depends(get_cart_service),
) -> CartResponse:
    view = await service.update(identity, line_id=item_id, quantity=payload.quantity)
    return CartResponse.model_validate(_serialize_cart(view))


@router.delete("/items/{item_id}", response_model=CartResponse)
async def remove_item(
    item_id: int = Path(..., ge=1),
    identity: CartIdentity = Depends(get_cart_identity),
    service: CartService = Depends(get_cart_service),
) -> CartResponse:
    view = await service.remove(identity, line_id=item_id)
    return CartResponse.model_validate(_serialize_cart(view))


@router.delete("", response_model=CartResponse)
async def clear_cart(
    identity: CartIdentity = Depends(get_cart_identity),
    service: CartService = Depends(get_cart_service),
) -> CartResponse:
    view = await service.clear(identity)
    return CartResponse.model_validate(_serialize_cart(view))
