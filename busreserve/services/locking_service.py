"""
Pessimistic reservation strategy: exclusive per-(bus, date) locks.

Lock layers, outermost first:
  1. KeyedLock - one asyncio.Lock per key inside this process
  2. RedisKeyLock - optional, serializes the key across app processes
  3. SELECT ... FOR UPDATE on the seat_inventory rows (PostgreSQL)

Keys are always taken in sorted order, so an edit that moves a booking
between two dates cannot deadlock with an edit moving the other way.
Locks on different keys are independent: bookings for other buses or other
dates never wait on each other.
"""

import asyncio
import time
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Hashable, Optional

import redis.asyncio as redis
from redis.exceptions import LockError
from sqlalchemy import select

from busreserve.core.exceptions import ReservationTimeout
from busreserve.core.logging import get_logger
from busreserve.core.metrics import lock_timeouts, lock_wait, redis_connection_errors
from busreserve.models.booking import SeatInventory
from busreserve.services.interfaces.reservation import (
    ReservationKey,
    ReservationStrategy,
    ensure_inventory,
)

logger = get_logger(__name__)


class KeyedLock:
    """asyncio.Lock per key, dropped once nobody holds or waits for it."""

    def __init__(self):
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._refs: dict[Hashable, int] = {}

    def _retain(self, key) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._refs[key] = self._refs.get(key, 0) + 1
        return lock

    def _release_ref(self, key) -> None:
        self._refs[key] -= 1
        if self._refs[key] == 0:
            del self._refs[key]
            del self._locks[key]

    def active_keys(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key, timeout: Optional[float]):
        lock = self._retain(key)
        try:
            await asyncio.wait_for(lock.acquire(), timeout)
        except asyncio.TimeoutError:
            self._release_ref(key)
            raise ReservationTimeout(f"Timed out waiting for seat map {key}") from None
        except BaseException:
            self._release_ref(key)
            raise
        try:
            yield
        finally:
            lock.release()
            self._release_ref(key)


class RedisKeyLock:
    """Distributed lock per key. The TTL frees a key if its holder dies."""

    def __init__(self, client: redis.Redis, ttl: float):
        self.client = client
        self.ttl = ttl

    @asynccontextmanager
    async def hold(self, key: ReservationKey, timeout: Optional[float]):
        lock = self.client.lock(key.lock_name(), timeout=self.ttl, blocking_timeout=timeout)
        try:
            acquired = await lock.acquire()
        except redis.RedisError as e:
            redis_connection_errors.inc()
            logger.error("redis_lock_unavailable", key=key.lock_name(), error=str(e))
            raise ReservationTimeout("Seat lock service unavailable") from e
        if not acquired:
            raise ReservationTimeout(f"Timed out waiting for seat map {key.lock_name()}")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # TTL expired while we held it; the row lock still covered the commit.
                logger.error("redis_lock_expired_before_release", key=key.lock_name(), ttl=self.ttl)


class PessimisticReservation(ReservationStrategy):
    """
    Serialize every operation on the same seat map.

    Use when:
    - Many requests compete for the same bus/date (holiday departures)
    - Predictable latency matters more than peak throughput
    """

    name = "pessimistic"

    def __init__(
        self,
        timeout: Optional[float] = 10.0,
        distributed: Optional[RedisKeyLock] = None,
    ):
        self.timeout = timeout
        self.local = KeyedLock()
        self.distributed = distributed

    @asynccontextmanager
    async def _acquire_all(self, keys: list[ReservationKey]):
        started = time.perf_counter()
        async with AsyncExitStack() as stack:
            try:
                for key in keys:
                    await stack.enter_async_context(self.local.hold(key, self._remaining(started)))
                    if self.distributed is not None:
                        await stack.enter_async_context(
                            self.distributed.hold(key, self._remaining(started))
                        )
            except ReservationTimeout:
                lock_timeouts.inc()
                logger.warning("reservation_lock_timeout", keys=[k.lock_name() for k in keys])
                raise
            lock_wait.observe(time.perf_counter() - started)
            yield

    def _remaining(self, started: float) -> Optional[float]:
        if self.timeout is None:
            return None
        return max(self.timeout - (time.perf_counter() - started), 0.0)

    async def execute(self, session_factory, keys, operation, contended_seats=()):
        keys = sorted(set(keys))
        await ensure_inventory(session_factory, keys)

        async with self._acquire_all(keys):
            async with session_factory() as session:
                try:
                    for key in keys:
                        await session.execute(
                            select(SeatInventory.id)
                            .where(
                                SeatInventory.bus_id == key.bus_id,
                                SeatInventory.travel_date == key.travel_date,
                            )
                            .with_for_update()
                        )
                    result = await operation(session)
                    await session.commit()
                except BaseException:
                    await session.rollback()
                    raise
                return result
