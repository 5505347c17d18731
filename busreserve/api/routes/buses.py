"""
Bus seat-layout endpoint for the seat selection grid and bus dashboard.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from busreserve.db.session import get_db
from busreserve.schemas.booking import SeatLayoutResponse
from busreserve.services.inventory_service import InventoryQueryService

router = APIRouter(prefix="/buses", tags=["Buses"])


@router.get("/{bus_id}/seat-layout", response_model=SeatLayoutResponse)
async def get_seat_layout(
    bus_id: int,
    travel_date: date = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Seats in rows of four (2+2), each flagged booked or free for the date."""
    return await InventoryQueryService(db).get_seat_layout(bus_id, travel_date)
