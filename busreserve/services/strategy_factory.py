"""
Reservation strategy factory.
Configures which concurrency control strategy guards seat assignment.
"""

from typing import Optional

from busreserve.core.config import Settings, get_settings
from busreserve.core.logging import get_logger
from busreserve.infrastructure.redis_client import get_redis
from busreserve.services.interfaces.reservation import ReservationStrategy
from busreserve.services.interfaces.optimistic_reservation import OptimisticReservation
from busreserve.services.locking_service import PessimisticReservation, RedisKeyLock

logger = get_logger(__name__)


def build_reservation_strategy(settings: Optional[Settings] = None) -> ReservationStrategy:
    """
    Build the configured reservation strategy.

    - pessimistic (default): per-(bus, date) locks; with LOCK_BACKEND=redis and
      REDIS_ENABLED the lock also spans app processes
    - optimistic: seat_inventory version compare-and-set with bounded retries

    Selected via the RESERVATION_STRATEGY env var.
    """
    settings = settings or get_settings()

    if settings.RESERVATION_STRATEGY == "optimistic":
        return OptimisticReservation(max_attempts=settings.MAX_RETRY_ATTEMPTS)

    distributed = None
    if settings.LOCK_BACKEND == "redis":
        client = get_redis()
        if client is None:
            logger.warning("redis_lock_backend_disabled", message="REDIS_ENABLED is false, using local locks only")
        else:
            distributed = RedisKeyLock(client, ttl=settings.LOCK_TTL_SECONDS)
    return PessimisticReservation(timeout=settings.LOCK_TIMEOUT_SECONDS, distributed=distributed)


# Singleton instance; local locks only work if every request shares it.
_strategy: Optional[ReservationStrategy] = None


def get_reservation_strategy() -> ReservationStrategy:
    """Get reservation strategy singleton."""
    global _strategy
    if _strategy is None:
        _strategy = build_reservation_strategy()
    return _strategy


def reset_reservation_strategy() -> None:
    global _strategy
    _strategy = None
