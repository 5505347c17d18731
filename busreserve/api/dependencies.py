"""
FastAPI dependencies shared by the route modules.
"""

from busreserve.db.session import get_session_factory
from busreserve.services.booking_service import ReservationCoordinator


def get_coordinator() -> ReservationCoordinator:
    """Coordinator bound to the app's session factory and strategy singleton."""
    return ReservationCoordinator(get_session_factory())
