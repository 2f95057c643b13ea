"""FastAPI dependency injection helpers."""

from __future__ import annotations

from typing import Optional

import redis.asyncio as aioredis
from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.infrastructure.database import async_session_factory
from src.infrastructure.redis_client import get_redis
from src.infrastructure.sessions import CheckoutSessionStore
from src.infrastructure.storefront_client import StorefrontClient
from src.services.checkout import CheckoutService


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_storefront_client(request: Request) -> StorefrontClient:
    """The app-wide client opened in the lifespan handler."""
    return request.app.state.storefront


async def get_redis_client() -> aioredis.Redis:
    return await get_redis()


def get_bearer_token(
    authorization: Optional[str] = Header(None),
) -> Optional[str]:
    """Customer token to forward upstream, if the UI sent one."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def get_checkout_service(
    client: StorefrontClient = Depends(get_storefront_client),
    redis: aioredis.Redis = Depends(get_redis_client),
) -> CheckoutService:
    sessions = CheckoutSessionStore(redis, settings.checkout_session_ttl_seconds)
    return CheckoutService(client, sessions, redis)
