"""Per-order mutual exclusion for fulfillment workflows."""

import asyncio
import logging
import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager

import redis.asyncio as redis
from redis.exceptions import RedisError

from printful_fulfillment.exceptions import OrderLockTimeoutError

logger = logging.getLogger(__name__)


class OrderLock(ABC):
    """
    Lock keyed by local order ID.

    Held for the whole create-fulfillment workflow so the
    "already linked?" check and the metadata write cannot interleave
    with another invocation for the same order.
    """

    @abstractmethod
    def hold(self, order_id: str) -> AbstractAsyncContextManager[None]:
        """
        Hold the lock for an order for the duration of an async with block.

        Raises:
            OrderLockTimeoutError: If the lock is not acquired within the wait budget.
        """
        ...


class InMemoryOrderLock(OrderLock):
    """Single-process order lock backed by asyncio locks."""

    def __init__(self, wait_seconds: float = 10.0) -> None:
        self.wait_seconds = wait_seconds
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, order_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(order_id, asyncio.Lock())
        self._users[order_id] = self._users.get(order_id, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.wait_seconds)
            except asyncio.TimeoutError:
                raise OrderLockTimeoutError(order_id, self.wait_seconds) from None

            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[order_id] -= 1
            if self._users[order_id] == 0:
                del self._users[order_id]
                del self._locks[order_id]

    def is_locked(self, order_id: str) -> bool:
        """Whether a workflow currently holds the lock for an order."""
        lock = self._locks.get(order_id)
        return lock is not None and lock.locked()


class RedisOrderLock(OrderLock):
    """
    Distributed order lock using Redis SET NX with expiry.

    Each holder writes a random token; release only deletes the key if
    the token still matches, so an expired holder never frees a lock
    that has since been taken by someone else. While held, a background
    task keeps pushing the expiry forward, so a workflow that outlives
    the TTL (slow Printful calls, retries) keeps its lock. The TTL only
    matters once the holder process dies.

    Redis keys:
    - fulfillment_lock:{order_id} - Token of the current holder
    """

    RELEASE_SCRIPT = """
    if redis.call('GET', KEYS[1]) == ARGV[1] then
        return redis.call('DEL', KEYS[1])
    end
    return 0
    """

    EXTEND_SCRIPT = """
    if redis.call('GET', KEYS[1]) == ARGV[1] then
        return redis.call('PEXPIRE', KEYS[1], ARGV[2])
    end
    return 0
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        ttl_seconds: int = 60,
        wait_seconds: float = 10.0,
        poll_interval: float = 0.1,
        renew_interval: float | None = None,
    ) -> None:
        """
        Initialize the lock.

        Args:
            redis_client: Async Redis client.
            ttl_seconds: Expiry of a held lock, bounds the damage of a crashed holder.
            wait_seconds: How long to wait for a busy lock before giving up.
            poll_interval: Delay between acquisition attempts.
            renew_interval: Delay between expiry renewals (default: a third of the TTL).
        """
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds
        self.wait_seconds = wait_seconds
        self.poll_interval = poll_interval
        self.renew_interval = renew_interval if renew_interval is not None else ttl_seconds / 3

    def _key(self, order_id: str) -> str:
        return f"fulfillment_lock:{order_id}"

    async def acquire(self, order_id: str) -> str:
        """Acquire the lock, returning the holder token."""
        key = self._key(order_id)
        token = uuid.uuid4().hex
        deadline = time.monotonic() + self.wait_seconds

        while True:
            acquired = await self.redis.set(key, token, nx=True, px=self.ttl_seconds * 1000)
            if acquired:
                logger.debug(f"Acquired order lock {key}")
                return token
            if time.monotonic() >= deadline:
                raise OrderLockTimeoutError(order_id, self.wait_seconds)
            await asyncio.sleep(self.poll_interval)

    async def extend(self, order_id: str, token: str) -> bool:
        """Reset the expiry to the full TTL if still held by token."""
        key = self._key(order_id)
        extended = await self.redis.eval(self.EXTEND_SCRIPT, 1, key, token, self.ttl_seconds * 1000)
        return bool(extended)

    async def release(self, order_id: str, token: str) -> bool:
        """Release the lock if still held by token."""
        key = self._key(order_id)
        released = await self.redis.eval(self.RELEASE_SCRIPT, 1, key, token)
        if not released:
            logger.warning(f"Order lock {key} expired before release")
        return bool(released)

    async def _renewal_loop(self, order_id: str, token: str) -> None:
        while True:
            await asyncio.sleep(self.renew_interval)
            try:
                extended = await self.extend(order_id, token)
            except RedisError as e:
                # Keep trying; the key stays valid until the TTL runs out
                logger.error(f"Failed to renew order lock {self._key(order_id)}: {e}")
                continue
            if not extended:
                logger.warning(f"Order lock {self._key(order_id)} was lost before renewal")
                return

    @asynccontextmanager
    async def hold(self, order_id: str) -> AsyncIterator[None]:
        token = await self.acquire(order_id)
        renewal = asyncio.create_task(self._renewal_loop(order_id, token))
        try:
            yield
        finally:
            renewal.cancel()
            try:
                await renewal
            except asyncio.CancelledError:
                pass
            await self.release(order_id, token)
