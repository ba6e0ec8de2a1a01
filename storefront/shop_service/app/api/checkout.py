"""Checkout route."""

from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.common import StorefrontSettings

from ..checkout import CheckoutOrchestrator
from ..dependencies import get_cart_ttl, get_session, get_settings, require_claims
from ..schemas import CheckoutRequest, OrderResponse
from ..security import TokenClaims
from .orders import serialize_order

router = APIRouter(prefix="/checkout", tags=["checkout"])


def get_orchestrator(
    request: Request,
    session: AsyncSession = Depends(get_session),
    ttl: timedelta = Depends(get_cart_ttl),
    settings: StorefrontSettings = Depends(get_settings),
) -> CheckoutOrchestrator:
    return CheckoutOrchestrator(
        session,
        cart_ttl=ttl,
        order_number_factory=request.app.state.order_number_factory,
        order_number_attempts=settings.order_number_attempts,
    )


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def checkout(
    payload: CheckoutRequest,
    claims: TokenClaims = Depends(require_claims),
    orchestrator: CheckoutOrchestrator = Depends(get_orchestrator),
) -> OrderResponse:
    order = await orchestrator.checkout(
        claims.subject_id,
        shipping_address=payload.shipping_address.model_dump(),
    )
    return OrderResponse.model_validate(serialize_order(order))
