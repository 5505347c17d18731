"""
Optimistic reservation strategy - no locks held while validating.
Relies on a version compare-and-set of the seat_inventory row at commit.
"""

from sqlalchemy import select, update

from busreserve.core.exceptions import SeatConflict
from busreserve.core.logging import get_logger
from busreserve.core.metrics import optimistic_retries
from busreserve.models.booking import SeatInventory
from busreserve.services.interfaces.reservation import (
    ReservationStrategy,
    ensure_inventory,
)

logger = get_logger(__name__)


class _VersionConflict(Exception):
    pass


class OptimisticReservation(ReservationStrategy):
    """
    Read the seat map's version, validate, then commit only if the version is
    unchanged:

      UPDATE seat_inventory SET version = version + 1
      WHERE bus_id = :bus AND travel_date = :date AND version = :read_version

    rows_affected == 0 means another booking for the same bus/date committed
    after our read, so the validation may be stale: roll back and retry.

    Use when:
    - Contention per bus/date is low
    - Several app processes share one database and no Redis is available
    """

    name = "optimistic"

    def __init__(self, max_attempts: int = 3):
        self.max_attempts = max_attempts

    async def execute(self, session_factory, keys, operation, contended_seats=()):
        keys = sorted(set(keys))
        await ensure_inventory(session_factory, keys)

        for attempt in range(1, self.max_attempts + 1):
            async with session_factory() as session:
                try:
                    versions = {}
                    for key in keys:
                        versions[key] = await session.scalar(
                            select(SeatInventory.version).where(
                                SeatInventory.bus_id == key.bus_id,
                                SeatInventory.travel_date == key.travel_date,
                            )
                        )

                    result = await operation(session)

                    for key, version in versions.items():
                        bumped = await session.execute(
                            update(SeatInventory)
                            .where(
                                SeatInventory.bus_id == key.bus_id,
                                SeatInventory.travel_date == key.travel_date,
                                SeatInventory.version == version,
                            )
                            .values(version=SeatInventory.version + 1)
                            .execution_options(synchronize_session=False)
                        )
                        if bumped.rowcount == 0:
                            raise _VersionConflict(key)

                    await session.commit()
                    return result

                except _VersionConflict as conflict:
                    await session.rollback()
                    optimistic_retries.inc()
                    logger.info(
                        "reservation_retry",
                        key=conflict.args[0].lock_name(),
                        attempt=attempt,
                        reason="version_conflict",
                    )
                except BaseException:
                    await session.rollback()
                    raise

        logger.warning("reservation_retries_exhausted", attempts=self.max_attempts)
        raise SeatConflict(
            contended_seats,
            message="Booking failed due to high demand. Please try again.",
        )
