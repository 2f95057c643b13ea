"""
Redis-based lock around order placement.

One lock per checkout session: a double-clicked "Place order" (or two tabs
on the same session) must not forward two orders to the backend.  The
lock expires on its own after ``ttl_seconds`` so a crashed worker cannot
block the session forever.

Acquire is SET NX EX with a random token; release is a Lua
compare-and-delete so an expired-then-reacquired lock is never freed by
its previous owner.
"""

from __future__ import annotations

import logging
import uuid

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class LockHeld(Exception):
    """Raised when another request already holds the placement lock."""


class PlacementLock:
    def __init__(
        self, client: aioredis.Redis, session_id: str, ttl_seconds: int = 30
    ):
        self.redis = client
        self.key = f"checkout:lock:{session_id}"
        self.ttl = ttl_seconds
        self.token = uuid.uuid4().hex
        self.held = False

    async def acquire(self) -> bool:
        """Try once to take the lock.  Returns True on success."""
        self.held = bool(
            await self.redis.set(self.key, self.token, nx=True, ex=self.ttl)
        )
        return self.held

    async def release(self) -> None:
        if not self.held:
            return
        released = await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self.token)
        if not released:
            logger.warning("Placement lock %s expired before release", self.key)
        self.held = False

    async def __aenter__(self) -> "PlacementLock":
        if not await self.acquire():
            raise LockHeld(f"Order placement already in progress: {self.key}")
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.release()
