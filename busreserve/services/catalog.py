"""
Read-only lookups into the bus and route catalog.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from busreserve.core.exceptions import NotFound
from busreserve.models.catalog import Bus, Route


async def get_bus(db: AsyncSession, bus_id: int) -> Bus:
    bus = await db.get(Bus, bus_id)
    if bus is None:
        raise NotFound(f"Bus {bus_id} not found")
    return bus


async def get_route(db: AsyncSession, route_id: int) -> Route:
    route = await db.get(Route, route_id)
    if route is None:
        raise NotFound(f"Route {route_id} not found")
    return route
