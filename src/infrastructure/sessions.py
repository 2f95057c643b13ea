"""
Checkout session store (Redis).

A session pins the delivery settings fetched when checkout opened, so every
quote inside it is priced against the same per-km rate and store list, and
remembers the latest quote for order placement.  Sessions expire after
``ttl_seconds`` of inactivity; each save refreshes the expiry.

Key layout: ``checkout:session:{id}`` -> JSON-encoded ``CheckoutSession``.
"""

from __future__ import annotations

import uuid
from typing import Optional

import redis.asyncio as aioredis
from pydantic import TypeAdapter

from src.domain.entities import CheckoutQuote, CheckoutSession, DeliverySettings

_session_adapter = TypeAdapter(CheckoutSession)


class CheckoutSessionStore:
    def __init__(self, client: aioredis.Redis, ttl_seconds: int = 1800):
        self.redis = client
        self.ttl = ttl_seconds

    @staticmethod
    def _key(session_id: str) -> str:
        return f"checkout:session:{session_id}"

    async def create(self, settings: DeliverySettings) -> CheckoutSession:
        session = CheckoutSession(id=uuid.uuid4().hex, settings=settings)
        await self.save(session)
        return session

    async def get(self, session_id: str) -> Optional[CheckoutSession]:
        raw = await self.redis.get(self._key(session_id))
        if raw is None:
            return None
        return _session_adapter.validate_json(raw)

    async def save(self, session: CheckoutSession) -> None:
        await self.redis.set(
            self._key(session.id),
            _session_adapter.dump_json(session),
            ex=self.ttl,
        )

    async def save_quote(
        self, session: CheckoutSession, quote: CheckoutQuote
    ) -> CheckoutSession:
        """Replace the session's quote; the previous one is discarded."""
        session.quote = quote
        await self.save(session)
        return session

    async def clear_quote(self, session: CheckoutSession) -> CheckoutSession:
        session.quote = None
        await self.save(session)
        return session
