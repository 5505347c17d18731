"""
Pytest fixtures for test database, client, catalog rows and the coordinator.

Each test gets its own SQLite file (via aiosqlite) so concurrent sessions
really run against separate connections. Set TEST_DATABASE_URL to run the
same suite against PostgreSQL.
"""

import os
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from busreserve.api.dependencies import get_coordinator
from busreserve.core.config import get_settings
from busreserve.db.base import Base
from busreserve.db.session import get_db
from busreserve.main import app
from busreserve.models.catalog import Bus, Route
from busreserve.schemas.booking import BookingCreate
from busreserve.services.booking_service import ReservationCoordinator
from busreserve.services.interfaces.optimistic_reservation import OptimisticReservation
from busreserve.services.locking_service import PessimisticReservation

TRAVEL_DATE = date(2025, 6, 1)


class FrozenClock:
    """Injectable `now` that tests can move forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now = self.now + timedelta(**delta)


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    url = os.environ.get("TEST_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}")
    test_engine = create_async_engine(url, echo=False)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2025, 5, 20, 9, 0, tzinfo=timezone.utc))


@pytest.fixture(params=["pessimistic", "optimistic"])
def strategy(request):
    """Run a test once per concurrency strategy."""
    if request.param == "optimistic":
        return OptimisticReservation(max_attempts=3)
    return PessimisticReservation(timeout=5.0)


@pytest.fixture
def coordinator(session_factory, clock) -> ReservationCoordinator:
    return ReservationCoordinator(
        session_factory,
        strategy=PessimisticReservation(timeout=5.0),
        settings=get_settings(),
        clock=clock,
    )


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, coordinator) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client wired to the test database and the test coordinator."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_coordinator] = lambda: coordinator

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_route(db_session: AsyncSession) -> Route:
    route = Route(
        name="Colombo - Kandy Express",
        from_location="Colombo",
        to_location="Kandy",
        price=Decimal("25.00"),
        pickup_locations=["Colombo Fort", "Kadawatha"],
        distance=115,
        duration=180,
    )
    db_session.add(route)
    await db_session.commit()
    await db_session.refresh(route)
    return route


@pytest_asyncio.fixture
async def test_bus(db_session: AsyncSession, test_route: Route) -> Bus:
    """A 40-seat bus serving the test route."""
    bus = Bus(
        bus_number="NB-4021",
        bus_type="luxury",
        capacity=40,
        departure_time="08:30",
        route_id=test_route.id,
    )
    db_session.add(bus)
    await db_session.commit()
    await db_session.refresh(bus)
    return bus


@pytest.fixture
def make_request(test_bus: Bus, test_route: Route):
    """Build a BookingCreate for the test bus and route."""

    def _make(seats, travel_date=TRAVEL_DATE, **overrides) -> BookingCreate:
        fields = {
            "bus_id": test_bus.id,
            "route_id": test_route.id,
            "travel_date": travel_date,
            "seat_numbers": list(seats),
            "passenger_name": "Nimal Perera",
            "passenger_phone": "+94 77 123 4567",
            **overrides,
        }
        return BookingCreate(**fields)

    return _make
