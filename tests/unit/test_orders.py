"""Unit tests for the order store and order locks."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from printful_fulfillment.exceptions import OrderLockTimeoutError, OrderNotFoundError
from printful_fulfillment.orders.locks import InMemoryOrderLock, RedisOrderLock
from printful_fulfillment.orders.models import LINKAGE_KEYS, PRINTFUL_ORDER_ID, LocalOrder
from printful_fulfillment.orders.store import InMemoryOrderStore


class TestLocalOrder:
    """Tests for LocalOrder linkage helpers."""

    def test_unlinked(self):
        order = LocalOrder(id="order_1")
        assert order.printful_order_id is None
        assert not order.is_linked

    def test_linked(self):
        order = LocalOrder(id="order_1", metadata={PRINTFUL_ORDER_ID: 9001})
        assert order.printful_order_id == "9001"
        assert order.is_linked


class TestInMemoryOrderStore:
    """Tests for InMemoryOrderStore."""

    @pytest.mark.asyncio
    async def test_get_order(self, sample_order):
        store = InMemoryOrderStore([sample_order])

        order = await store.get_order("order_1")

        assert order.id == "order_1"
        assert await store.get_order("missing") is None

    @pytest.mark.asyncio
    async def test_returned_orders_are_copies(self, sample_order):
        """Mutating a returned order does not change stored state."""
        store = InMemoryOrderStore([sample_order])

        order = await store.get_order("order_1")
        order.metadata["scribble"] = True

        assert "scribble" not in (await store.get_order("order_1")).metadata

    @pytest.mark.asyncio
    async def test_update_merges(self, sample_order):
        store = InMemoryOrderStore([sample_order])

        updated = await store.update_metadata("order_1", values={"printful_status": "shipped"})

        assert updated.metadata == {"source": "storefront", "printful_status": "shipped"}

    @pytest.mark.asyncio
    async def test_update_removes_keys(self, sample_order):
        sample_order.metadata.update({key: "x" for key in LINKAGE_KEYS})
        store = InMemoryOrderStore([sample_order])

        updated = await store.update_metadata("order_1", remove=LINKAGE_KEYS)

        assert updated.metadata == {"source": "storefront"}

    @pytest.mark.asyncio
    async def test_update_missing_order(self):
        store = InMemoryOrderStore()

        with pytest.raises(OrderNotFoundError) as exc_info:
            await store.update_metadata("missing", values={"a": 1})

        assert exc_info.value.status_code == 404

    def test_add_and_remove(self, sample_order):
        store = InMemoryOrderStore()
        store.add_order(sample_order)

        assert [o.id for o in store.list_orders()] == ["order_1"]
        assert store.remove_order("order_1")
        assert not store.remove_order("order_1")


class TestInMemoryOrderLock:
    """Tests for InMemoryOrderLock."""

    @pytest.mark.asyncio
    async def test_serializes_same_order(self):
        lock = InMemoryOrderLock(wait_seconds=1.0)
        events = []

        async def worker(name):
            async with lock.hold("order_1"):
                events.append(f"{name}:start")
                await asyncio.sleep(0.01)
                events.append(f"{name}:end")

        await asyncio.gather(worker("a"), worker("b"))

        assert events in (
            ["a:start", "a:end", "b:start", "b:end"],
            ["b:start", "b:end", "a:start", "a:end"],
        )

    @pytest.mark.asyncio
    async def test_different_orders_independent(self):
        lock = InMemoryOrderLock(wait_seconds=0.05)

        async with lock.hold("order_1"):
            async with lock.hold("order_2"):
                assert lock.is_locked("order_1")
                assert lock.is_locked("order_2")

    @pytest.mark.asyncio
    async def test_timeout(self):
        lock = InMemoryOrderLock(wait_seconds=0.01)

        async with lock.hold("order_1"):
            with pytest.raises(OrderLockTimeoutError) as exc_info:
                async with lock.hold("order_1"):
                    pass

        assert exc_info.value.status_code == 409
        assert exc_info.value.order_id == "order_1"

    @pytest.mark.asyncio
    async def test_released_after_exception(self):
        lock = InMemoryOrderLock(wait_seconds=0.05)

        with pytest.raises(RuntimeError):
            async with lock.hold("order_1"):
                raise RuntimeError("boom")

        assert not lock.is_locked("order_1")
        async with lock.hold("order_1"):
            pass

    @pytest.mark.asyncio
    async def test_cleans_up_idle_locks(self):
        lock = InMemoryOrderLock()

        async with lock.hold("order_1"):
            pass

        assert lock._locks == {}
        assert lock._users == {}


class TestRedisOrderLock:
    """Tests for RedisOrderLock."""

    @pytest.fixture
    def mock_redis(self):
        """Create a mock Redis client."""
        redis = AsyncMock()
        redis.set.return_value = True
        redis.eval.return_value = 1
        return redis

    def test_key_generation(self, mock_redis):
        lock = RedisOrderLock(mock_redis)
        assert lock._key("order_1") == "fulfillment_lock:order_1"

    @pytest.mark.asyncio
    async def test_hold_acquires_and_releases(self, mock_redis):
        lock = RedisOrderLock(mock_redis, ttl_seconds=30)

        async with lock.hold("order_1"):
            mock_redis.set.assert_awaited_once()
            mock_redis.eval.assert_not_called()

        key, token = mock_redis.set.await_args.args
        assert key == "fulfillment_lock:order_1"
        assert mock_redis.set.await_args.kwargs == {"nx": True, "px": 30000}
        mock_redis.eval.assert_awaited_once_with(RedisOrderLock.RELEASE_SCRIPT, 1, key, token)

    @pytest.mark.asyncio
    async def test_tokens_are_unique(self, mock_redis):
        lock = RedisOrderLock(mock_redis)

        first = await lock.acquire("order_1")
        second = await lock.acquire("order_1")

        assert first != second

    @pytest.mark.asyncio
    async def test_polls_until_free(self, mock_redis):
        mock_redis.set.side_effect = [None, None, True]
        lock = RedisOrderLock(mock_redis, wait_seconds=5.0, poll_interval=0)

        await lock.acquire("order_1")

        assert mock_redis.set.await_count == 3

    @pytest.mark.asyncio
    async def test_timeout(self, mock_redis):
        mock_redis.set.return_value = None
        lock = RedisOrderLock(mock_redis, wait_seconds=0, poll_interval=0)

        with pytest.raises(OrderLockTimeoutError):
            async with lock.hold("order_1"):
                pass

        mock_redis.eval.assert_not_called()

    @pytest.mark.asyncio
    async def test_release_after_expiry(self, mock_redis):
        """Release reports False when the key now belongs to someone else."""
        mock_redis.eval.return_value = 0
        lock = RedisOrderLock(mock_redis)

        assert not await lock.release("order_1", "stale-token")

    @pytest.mark.asyncio
    async def test_renews_expiry_while_held(self, mock_redis):
        """A run outliving the TTL keeps its lock."""
        lock = RedisOrderLock(mock_redis, ttl_seconds=30, renew_interval=0.01)

        async with lock.hold("order_1"):
            key, token = mock_redis.set.await_args.args
            await asyncio.sleep(0.05)
            mock_redis.eval.assert_any_await(RedisOrderLock.EXTEND_SCRIPT, 1, key, token, 30000)

        extends = [c for c in mock_redis.eval.await_args_list if c.args[0] == RedisOrderLock.EXTEND_SCRIPT]
        assert len(extends) >= 2
        assert mock_redis.eval.await_args.args[0] == RedisOrderLock.RELEASE_SCRIPT

    @pytest.mark.asyncio
    async def test_renewal_stops_after_release(self, mock_redis):
        lock = RedisOrderLock(mock_redis, renew_interval=0.01)

        async with lock.hold("order_1"):
            pass
        calls = mock_redis.eval.await_count
        await asyncio.sleep(0.03)

        assert mock_redis.eval.await_count == calls

    @pytest.mark.asyncio
    async def test_renewal_stops_when_lock_lost(self, mock_redis):
        """Renewal is token-checked and gives up once another holder owns the key."""
        mock_redis.eval.return_value = 0
        lock = RedisOrderLock(mock_redis, renew_interval=0.01)

        async with lock.hold("order_1"):
            await asyncio.sleep(0.05)
            extends = [c for c in mock_redis.eval.await_args_list if c.args[0] == RedisOrderLock.EXTEND_SCRIPT]
            assert len(extends) == 1

    def test_default_renew_interval(self, mock_redis):
        assert RedisOrderLock(mock_redis, ttl_seconds=60).renew_interval == 20
