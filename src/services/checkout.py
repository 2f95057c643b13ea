"""
Checkout flow
=============

open_session  -- fetch delivery settings once and pin them to a session.
quote         -- resolve the customer's coordinates (given directly from
                 device geolocation, or geocoded from a typed address) and
                 run the delivery calculator against the pinned settings.
clear_quote   -- the customer is editing the address; the old quote is void.
place_order   -- forward the order to the storefront backend using the
                 session's current quote, at most once per idempotency key.

Upstream failures (settings fetch, geocoding, order placement) propagate
as ``UpstreamError``; the calculator is not invoked when coordinates could
not be obtained from upstream.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import redis.asyncio as aioredis

from src.config import settings
from src.domain.delivery import MultiStoreConsent, calculate_delivery_charge
from src.domain.entities import (
    CartLineItem,
    CheckoutQuote,
    CheckoutSession,
    Coordinate,
    DeliveryOutcome,
    ShippingDetails,
)
from src.domain.enums import SubmissionStatus
from src.domain.pricing import items_total, line_price, order_total
from src.infrastructure.locks import PlacementLock
from src.infrastructure.models import OrderSubmissionModel
from src.infrastructure.repositories import OrderSubmissionRepository
from src.infrastructure.sessions import CheckoutSessionStore
from src.infrastructure.storefront_client import StorefrontClient, UpstreamError

logger = logging.getLogger(__name__)


class SessionNotFound(Exception):
    """The checkout session does not exist or has expired."""


class QuoteRequired(Exception):
    """An order was placed before a delivery quote was saved."""


class PlacementInProgress(Exception):
    """A submission with the same idempotency key has not finished yet."""


@dataclass(frozen=True)
class QuoteOutcome:
    outcome: DeliveryOutcome
    coordinate: Optional[Coordinate]
    items_total: float


class CheckoutService:
    def __init__(
        self,
        client: StorefrontClient,
        sessions: CheckoutSessionStore,
        redis: aioredis.Redis,
    ):
        self.client = client
        self.sessions = sessions
        self.redis = redis

    # ── Sessions ──────────────────────────────────────────────────────

    async def open_session(self, token: str | None = None) -> CheckoutSession:
        delivery_settings = await self.client.get_delivery_settings(token)
        session = await self.sessions.create(delivery_settings)
        logger.info(
            "Checkout session %s opened (%d stores configured)",
            session.id,
            len(delivery_settings.store_locations),
        )
        return session

    async def get_session(self, session_id: str) -> CheckoutSession:
        session = await self.sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    # ── Quotes ────────────────────────────────────────────────────────

    async def resolve_coordinate(
        self,
        latitude: float | None,
        longitude: float | None,
        address: str | None,
        token: str | None = None,
    ) -> Optional[Coordinate]:
        if latitude is not None and longitude is not None:
            return Coordinate(latitude, longitude)
        if address:
            return await self.client.geocode(address, token)
        return None

    async def quote(
        self,
        session_id: str,
        items: Sequence[CartLineItem],
        *,
        latitude: float | None = None,
        longitude: float | None = None,
        address: str | None = None,
        allow_multi_store: MultiStoreConsent = False,
        token: str | None = None,
    ) -> QuoteOutcome:
        session = await self.get_session(session_id)
        coordinate = await self.resolve_coordinate(
            latitude, longitude, address, token
        )

        outcome = calculate_delivery_charge(
            coordinate.latitude if coordinate else None,
            coordinate.longitude if coordinate else None,
            session.settings.store_locations,
            items,
            session.settings,
            allow_multi_store=allow_multi_store,
        )

        if outcome.ok and coordinate is not None:
            await self.sessions.save_quote(
                session,
                CheckoutQuote(
                    coordinate=coordinate,
                    items=tuple(items),
                    result=outcome.result,
                ),
            )
            logger.info(
                "Session %s quoted %.2f km via %s, charge %.2f",
                session.id,
                outcome.result.total_km,
                "+".join(outcome.result.stores),
                outcome.result.charge,
            )
        else:
            # A stale quote must never reach order placement
            if session.quote is not None:
                await self.sessions.clear_quote(session)
            logger.info("Session %s not quoted: %s", session.id, outcome.failure)

        return QuoteOutcome(
            outcome=outcome,
            coordinate=coordinate,
            items_total=items_total(items),
        )

    async def clear_quote(self, session_id: str) -> CheckoutSession:
        session = await self.get_session(session_id)
        return await self.sessions.clear_quote(session)

    # ── Orders ────────────────────────────────────────────────────────

    async def place_order(
        self,
        session_id: str,
        shipping: ShippingDetails,
        repo: OrderSubmissionRepository,
        *,
        idempotency_key: str | None = None,
        token: str | None = None,
    ) -> OrderSubmissionModel:
        # Ledger and session state are read under the lock
        async with PlacementLock(
            self.redis, session_id, ttl_seconds=settings.checkout_lock_ttl_seconds
        ):
            existing = None
            if idempotency_key:
                existing = await repo.get_by_idempotency_key(
                    session_id, idempotency_key
                )
                if existing and existing.status == SubmissionStatus.PLACED:
                    return existing
                if existing and existing.status == SubmissionStatus.PENDING:
                    raise PlacementInProgress(idempotency_key)

            session = await self.get_session(session_id)
            if session.quote is None:
                raise QuoteRequired(session_id)
            quote = session.quote
            total = order_total(quote.items, quote.result.charge)

            if existing is not None:
                submission = await repo.retry(existing, quote.result, total)
            else:
                submission = await repo.create(
                    session_id=session.id,
                    result=quote.result,
                    total_price=total,
                    idempotency_key=idempotency_key,
                )

            payload = build_order_payload(quote, shipping)
            try:
                order = await self.client.place_order(payload, token)
            except UpstreamError as exc:
                await repo.transition(submission, SubmissionStatus.FAILED, error=str(exc))
                # Keep the FAILED row even though the request errors out
                await repo.session.commit()
                logger.exception("Order placement failed for session %s", session.id)
                raise

            order_id = order.get("_id")
            await repo.transition(
                submission,
                SubmissionStatus.PLACED,
                order_id=str(order_id) if order_id else None,
            )
            await self.sessions.clear_quote(session)

        logger.info(
            "Order placed for session %s (submission %s, order %s)",
            session.id,
            submission.id,
            submission.order_id,
        )
        return submission


def build_order_payload(
    quote: CheckoutQuote,
    shipping: ShippingDetails,
    payment_method: str | None = None,
) -> dict[str, Any]:
    """Shape the ``POST /user/checkout`` body from a quote and the form."""
    result = quote.result
    return {
        "orderItems": [
            {
                "product": item.product.id,
                "name": item.product.name,
                "image": item.product.images[0] if item.product.images else None,
                "qty": item.qty,
                "price": line_price(item.product),
            }
            for item in quote.items
        ],
        "shippingAddress": {
            "fullName": shipping.full_name,
            "phone": shipping.phone,
            "address": shipping.street_address,
            "city": shipping.city,
            "postalCode": shipping.postal_code,
            "country": shipping.country or settings.default_country,
            "latitude": quote.coordinate.latitude,
            "longitude": quote.coordinate.longitude,
        },
        "paymentMethod": payment_method or settings.payment_method,
        "shippingPrice": result.charge,
        "distance": result.total_km,
        "nearestStore": result.nearest_store,
        "totalPrice": order_total(quote.items, result.charge),
    }
