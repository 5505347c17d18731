"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .reservation import ReservationKey, ReservationStrategy, ensure_inventory
from .optimistic_reservation import OptimisticReservation

__all__ = ['ReservationKey', 'ReservationStrategy', 'OptimisticReservation', 'ensure_inventory']
