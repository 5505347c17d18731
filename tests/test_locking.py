"""
Tests for per-key locks, lock ordering and the strategy factory.
"""

import asyncio
from datetime import date

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError, LockError
from sqlalchemy import update

from busreserve.core.config import Settings
from busreserve.core.exceptions import ReservationTimeout, SeatConflict
from busreserve.models.booking import SeatInventory
from busreserve.services import strategy_factory
from busreserve.services.interfaces.optimistic_reservation import OptimisticReservation
from busreserve.services.interfaces.reservation import ReservationKey
from busreserve.services.locking_service import KeyedLock, PessimisticReservation, RedisKeyLock

KEY = ReservationKey(1, date(2025, 6, 1))
OTHER_DATE = ReservationKey(1, date(2025, 6, 2))


@pytest.mark.asyncio
async def test_same_key_waits_then_times_out():
    locks = KeyedLock()

    async with locks.hold(KEY, timeout=1.0):
        with pytest.raises(ReservationTimeout):
            async with locks.hold(KEY, timeout=0.05):
                pass


@pytest.mark.asyncio
async def test_different_keys_do_not_block():
    locks = KeyedLock()

    async with locks.hold(KEY, timeout=1.0):
        async with locks.hold(OTHER_DATE, timeout=0.05):
            assert locks.active_keys() == 2


@pytest.mark.asyncio
async def test_unused_keys_are_dropped():
    locks = KeyedLock()

    async with locks.hold(KEY, timeout=1.0):
        pass
    with pytest.raises(ReservationTimeout):
        async with locks.hold(KEY, timeout=1.0):
            async with locks.hold(KEY, timeout=0.01):
                pass

    assert locks.active_keys() == 0


@pytest.mark.asyncio
async def test_holders_run_one_at_a_time():
    locks = KeyedLock()
    inside = 0
    peak = 0

    async def worker():
        nonlocal inside, peak
        async with locks.hold(KEY, timeout=5.0):
            inside += 1
            peak = max(peak, inside)
            await asyncio.sleep(0.01)
            inside -= 1

    await asyncio.gather(*[worker() for _ in range(10)])

    assert peak == 1
    assert locks.active_keys() == 0


@pytest.mark.asyncio
async def test_keys_are_taken_in_sorted_order():
    """Opposite key orders from two edits still complete without deadlock."""
    strategy = PessimisticReservation(timeout=2.0)
    order = []

    async def fake_execute(keys):
        async with strategy._acquire_all(sorted(set(keys))):
            order.append(tuple(keys))
            await asyncio.sleep(0.01)

    await asyncio.gather(
        fake_execute([KEY, OTHER_DATE]),
        fake_execute([OTHER_DATE, KEY]),
    )

    assert len(order) == 2
    assert strategy.local.active_keys() == 0


class FakeRedisLock:
    def __init__(self, acquired=True, acquire_error=None, release_error=None):
        self.acquired = acquired
        self.acquire_error = acquire_error
        self.release_error = release_error
        self.released = False

    async def acquire(self):
        if self.acquire_error:
            raise self.acquire_error
        return self.acquired

    async def release(self):
        self.released = True
        if self.release_error:
            raise self.release_error


class FakeRedis:
    def __init__(self, lock):
        self._lock = lock
        self.calls = []

    def lock(self, name, timeout=None, blocking_timeout=None):
        self.calls.append((name, timeout, blocking_timeout))
        return self._lock


@pytest.mark.asyncio
async def test_redis_lock_uses_seat_map_name_and_ttl():
    lock = FakeRedisLock()
    client = FakeRedis(lock)

    async with RedisKeyLock(client, ttl=30.0).hold(KEY, timeout=2.0):
        pass

    assert client.calls == [("seatmap:1:2025-06-01", 30.0, 2.0)]
    assert lock.released


@pytest.mark.asyncio
async def test_redis_lock_not_acquired():
    client = FakeRedis(FakeRedisLock(acquired=False))

    with pytest.raises(ReservationTimeout):
        async with RedisKeyLock(client, ttl=30.0).hold(KEY, timeout=0.1):
            pass


@pytest.mark.asyncio
async def test_redis_unavailable_is_timeout():
    client = FakeRedis(FakeRedisLock(acquire_error=RedisConnectionError("down")))

    with pytest.raises(ReservationTimeout, match="unavailable"):
        async with RedisKeyLock(client, ttl=30.0).hold(KEY, timeout=0.1):
            pass


@pytest.mark.asyncio
async def test_redis_lock_expired_before_release_is_logged_not_raised():
    lock = FakeRedisLock(release_error=LockError("expired"))

    async with RedisKeyLock(FakeRedis(lock), ttl=0.5).hold(KEY, timeout=0.1):
        pass

    assert lock.released


@pytest.mark.asyncio
async def test_local_lock_released_when_redis_lock_fails():
    client = FakeRedis(FakeRedisLock(acquired=False))
    strategy = PessimisticReservation(timeout=0.5, distributed=RedisKeyLock(client, ttl=30.0))

    with pytest.raises(ReservationTimeout):
        async with strategy._acquire_all([KEY]):
            pass

    assert strategy.local.active_keys() == 0


@pytest.mark.asyncio
async def test_optimistic_gives_up_after_max_attempts(session_factory, test_bus):
    """A seat map that changes under every attempt ends in SeatConflict."""
    key = ReservationKey(test_bus.id, date(2025, 6, 1))
    attempts = 0

    async def operation(session):
        nonlocal attempts
        attempts += 1
        async with session_factory() as other:
            await other.execute(
                update(SeatInventory)
                .where(SeatInventory.bus_id == key.bus_id, SeatInventory.travel_date == key.travel_date)
                .values(version=SeatInventory.version + 1)
            )
            await other.commit()

    with pytest.raises(SeatConflict) as exc:
        await OptimisticReservation(max_attempts=2).execute(
            session_factory, [key], operation, contended_seats=[7]
        )

    assert attempts == 2
    assert exc.value.conflicting_seats == [7]


@pytest.fixture
def fresh_strategy():
    strategy_factory.reset_reservation_strategy()
    yield
    strategy_factory.reset_reservation_strategy()


def test_strategy_singleton_is_shared_until_reset(fresh_strategy):
    first = strategy_factory.get_reservation_strategy()
    assert strategy_factory.get_reservation_strategy() is first

    strategy_factory.reset_reservation_strategy()
    assert strategy_factory.get_reservation_strategy() is not first


def test_build_strategy_from_settings():
    optimistic = strategy_factory.build_reservation_strategy(
        Settings(RESERVATION_STRATEGY="optimistic", MAX_RETRY_ATTEMPTS=5)
    )
    assert isinstance(optimistic, OptimisticReservation)
    assert optimistic.max_attempts == 5

    # Redis backend requested but Redis disabled: local locks only.
    pessimistic = strategy_factory.build_reservation_strategy(
        Settings(LOCK_BACKEND="redis", REDIS_ENABLED=False, LOCK_TIMEOUT_SECONDS=2.0)
    )
    assert isinstance(pessimistic, PessimisticReservation)
    assert pessimistic.distributed is None
    assert pessimistic.timeout == 2.0
