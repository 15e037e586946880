"""
Pickup slot API endpoints
"""
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ordering.database import get_db
from ordering.services.capacity import list_available_slots, opening_hours

router = APIRouter()


@router.get("/slots")
async def available_slots(
    day: date = Query(..., alias="date"),
    db: AsyncSession = Depends(get_db),
):
    """Pickup slots still open for a day (past, full and buffered slots hidden)"""
    hours = opening_hours(day)
    slots = await list_available_slots(db, day)
    return {
        "date": day.isoformat(),
        "open": hours is not None,
        "opening_hours": [h.strftime("%H:%M") for h in hours] if hours else None,
        "slots": slots,
    }
