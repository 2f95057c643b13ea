"""
Checkout endpoints
==================

POST   /api/v1/checkout/sessions                   -- open a session (201)
GET    /api/v1/checkout/sessions/{session_id}      -- settings + current quote
POST   /api/v1/checkout/sessions/{session_id}/quote  -- compute delivery charge
DELETE /api/v1/checkout/sessions/{session_id}/quote  -- address edited (204)
POST   /api/v1/checkout/sessions/{session_id}/orders -- place the order (201)

A quote that needs two stores answers 409 with the proposed route and
charge; the UI asks the customer and repeats the call with
``allow_multi_store=true``.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_bearer_token, get_checkout_service, get_db
from src.api.middleware import limiter
from src.api.schemas import (
    DeliveryResultResponse,
    ErrorResponse,
    OrderCreateRequest,
    OrderSubmissionResponse,
    QuoteRequest,
    QuoteResponse,
    SessionResponse,
)
from src.config import settings
from src.domain.entities import DeliveryOutcome
from src.domain.enums import DeliveryFailure
from src.infrastructure.repositories import OrderSubmissionRepository
from src.services.checkout import CheckoutService

router = APIRouter(prefix="/checkout", tags=["checkout"])

FAILURE_MESSAGES: dict[DeliveryFailure, str] = {
    DeliveryFailure.MISSING_COORDINATES: "A delivery location is required",
    DeliveryFailure.NO_DELIVERABLE_STORE: "No active stores found in your area",
    DeliveryFailure.UNCONFIRMED_MULTI_STORE: (
        "Some items are not available at the nearest store. "
        "Confirm delivery from two stores to continue"
    ),
    DeliveryFailure.UNRESOLVABLE_ALLOCATION: (
        "Cannot fulfill all items from available stores"
    ),
}


def _raise_for_failure(outcome: DeliveryOutcome) -> None:
    failure = outcome.failure
    detail = {
        "code": failure.value,
        "message": FAILURE_MESSAGES[failure],
        "unservable": list(outcome.unservable),
    }
    if failure == DeliveryFailure.UNCONFIRMED_MULTI_STORE:
        detail["proposal"] = DeliveryResultResponse.from_domain(
            outcome.proposal
        ).model_dump()
        raise HTTPException(status_code=409, detail=detail)
    raise HTTPException(status_code=422, detail=detail)


@router.post(
    "/sessions",
    status_code=201,
    response_model=SessionResponse,
    summary="Open a checkout session",
    responses={502: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def open_session(
    request: Request,
    service: CheckoutService = Depends(get_checkout_service),
    token: Optional[str] = Depends(get_bearer_token),
):
    session = await service.open_session(token)
    return SessionResponse.build(session.id, session.settings)


@router.get(
    "/sessions/{session_id}",
    response_model=SessionResponse,
    summary="Get session settings and current quote",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def get_session(
    request: Request,
    session_id: str,
    service: CheckoutService = Depends(get_checkout_service),
):
    session = await service.get_session(session_id)
    quote = session.quote.result if session.quote else None
    return SessionResponse.build(session.id, session.settings, quote)


@router.post(
    "/sessions/{session_id}/quote",
    response_model=QuoteResponse,
    summary="Calculate the delivery charge for a location and cart",
    responses={
        404: {"model": ErrorResponse},
        409: {"description": "Two-store delivery needs the customer's consent."},
        422: {"description": "No store can deliver this cart."},
        502: {"model": ErrorResponse},
    },
)
@limiter.limit(settings.rate_limit)
async def quote(
    request: Request,
    session_id: str,
    body: QuoteRequest,
    service: CheckoutService = Depends(get_checkout_service),
    token: Optional[str] = Depends(get_bearer_token),
):
    items = [item.to_domain() for item in body.items]
    quoted = await service.quote(
        session_id,
        items,
        latitude=body.latitude,
        longitude=body.longitude,
        address=body.address,
        allow_multi_store=body.allow_multi_store,
        token=token,
    )
    outcome = quoted.outcome
    if not outcome.ok:
        _raise_for_failure(outcome)

    result = outcome.result
    return QuoteResponse(
        delivery=DeliveryResultResponse.from_domain(result),
        latitude=quoted.coordinate.latitude,
        longitude=quoted.coordinate.longitude,
        items_total=quoted.items_total,
        order_total=quoted.items_total + result.charge,
        unservable=list(outcome.unservable),
    )


@router.delete(
    "/sessions/{session_id}/quote",
    status_code=204,
    summary="Discard the current quote (address is being edited)",
)
@limiter.limit(settings.rate_limit)
async def clear_quote(
    request: Request,
    session_id: str,
    service: CheckoutService = Depends(get_checkout_service),
):
    await service.clear_quote(session_id)
    return Response(status_code=204)


@router.post(
    "/sessions/{session_id}/orders",
    status_code=201,
    response_model=OrderSubmissionResponse,
    summary="Place the order with the current quote",
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
@limiter.limit(settings.rate_limit)
async def place_order(
    request: Request,
    session_id: str,
    body: OrderCreateRequest,
    service: CheckoutService = Depends(get_checkout_service),
    db: AsyncSession = Depends(get_db),
    token: Optional[str] = Depends(get_bearer_token),
):
    return await service.place_order(
        session_id,
        body.to_domain(),
        OrderSubmissionRepository(db),
        idempotency_key=body.idempotency_key,
        token=token,
    )
