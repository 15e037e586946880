"""
Capacity slot reservation and available-slot listing.

Both the customer-facing slot list and on-demand slot creation go through
the same business-hours table and slot grid below.
"""
import uuid
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ordering.config import get_settings
from ordering.models.capacity import CapacitySlot
from ordering.services.errors import InvalidPickupTime, OutsideBusinessHours, SlotFull
from ordering.utils.db_compat import upsert
from ordering.utils.helpers import format_timeslot, local_now, parse_timeslot, restaurant_tz
from ordering.utils.logger import get_logger

logger = get_logger(__name__)

# weekday() -> (open, close); a slot is valid when open <= slot < close. Sunday closed.
BUSINESS_HOURS: Dict[int, Tuple[time, time]] = {
    0: (time(7, 0), time(15, 0)),
    1: (time(7, 0), time(15, 0)),
    2: (time(7, 0), time(15, 0)),
    3: (time(7, 0), time(15, 0)),
    4: (time(7, 0), time(15, 0)),
    5: (time(8, 0), time(14, 0)),
}


def opening_hours(day: date) -> Optional[Tuple[time, time]]:
    return BUSINESS_HOURS.get(day.weekday())


def is_within_business_hours(day: date, slot: time) -> bool:
    hours = opening_hours(day)
    if hours is None:
        return False
    start, end = hours
    return start <= slot < end


def generate_slot_times(day: date, interval_minutes: Optional[int] = None) -> List[time]:
    """All slot start times for a day at the configured interval."""
    hours = opening_hours(day)
    if hours is None:
        return []
    interval = timedelta(minutes=interval_minutes or get_settings().SLOT_INTERVAL_MINUTES)
    start, end = hours
    current = datetime.combine(day, start)
    closing = datetime.combine(day, end)
    slots = []
    while current < closing:
        slots.append(current.time())
        current += interval
    return slots


async def get_slot(db: AsyncSession, day: date, timeslot: str) -> Optional[CapacitySlot]:
    result = await db.execute(
        select(CapacitySlot).where(CapacitySlot.date == day, CapacitySlot.timeslot == timeslot)
    )
    return result.scalar_one_or_none()


def check_slot_time(day: date, timeslot: str) -> None:
    """A bookable slot is open and sits on the published slot grid."""
    slot = parse_timeslot(timeslot)
    if not is_within_business_hours(day, slot):
        raise OutsideBusinessHours()
    if slot not in generate_slot_times(day):
        raise InvalidPickupTime(
            f"Pickup times are every {get_settings().SLOT_INTERVAL_MINUTES} minutes; {timeslot} is not one of them"
        )


async def ensure_slot(db: AsyncSession, day: date, timeslot: str) -> None:
    """Create the slot row on first use, if the time is a bookable slot."""
    check_slot_time(day, timeslot)
    if await get_slot(db, day, timeslot) is not None:
        return

    # Concurrent first orders for the same slot: the unique constraint keeps one row
    stmt = (
        upsert(db, CapacitySlot)
        .values(
            id=str(uuid.uuid4()),
            date=day,
            timeslot=timeslot,
            max_orders=get_settings().DEFAULT_SLOT_MAX_ORDERS,
            booked_orders=0,
        )
        .on_conflict_do_nothing(index_elements=["date", "timeslot"])
    )
    result = await db.execute(stmt)
    if result.rowcount:
        logger.info(f"Created capacity slot {day.isoformat()} {timeslot}")


async def try_reserve_slot(db: AsyncSession, day: date, timeslot: str) -> bool:
    """Atomically book one order into the slot. Returns False when it is full."""
    result = await db.execute(
        update(CapacitySlot)
        .where(
            CapacitySlot.date == day,
            CapacitySlot.timeslot == timeslot,
            CapacitySlot.booked_orders < CapacitySlot.max_orders,
        )
        .values(booked_orders=CapacitySlot.booked_orders + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def reserve_slot(db: AsyncSession, day: date, timeslot: str) -> None:
    await ensure_slot(db, day, timeslot)
    if not await try_reserve_slot(db, day, timeslot):
        logger.info(f"Slot full: {day.isoformat()} {timeslot}")
        raise SlotFull()
    logger.debug(f"Booked slot {day.isoformat()} {timeslot}")


async def release_slot(db: AsyncSession, day: date, timeslot: str) -> bool:
    result = await db.execute(
        update(CapacitySlot)
        .where(
            CapacitySlot.date == day,
            CapacitySlot.timeslot == timeslot,
            CapacitySlot.booked_orders > 0,
        )
        .values(booked_orders=CapacitySlot.booked_orders - 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _buffered_out(
    slot_times: List[time],
    loads: Dict[str, Tuple[int, int]],
    day: date,
    buffer_minutes: int,
    heavy_ratio: float,
) -> set:
    """Slots starting within buffer_minutes after a heavily loaded slot."""
    if buffer_minutes <= 0:
        return set()

    heavy_starts = []
    for key, (booked, max_orders) in loads.items():
        if max_orders > 0 and booked / max_orders >= heavy_ratio:
            heavy_starts.append(datetime.combine(day, parse_timeslot(key)))

    blocked = set()
    window = timedelta(minutes=buffer_minutes)
    for slot in slot_times:
        start = datetime.combine(day, slot)
        if any(timedelta(0) < start - heavy <= window for heavy in heavy_starts):
            blocked.add(format_timeslot(slot))
    return blocked


async def list_available_slots(
    db: AsyncSession,
    day: date,
    now: Optional[datetime] = None,
    buffer_minutes: Optional[int] = None,
    heavy_ratio: Optional[float] = None,
) -> List[dict]:
    """
    Pickup slots a customer may choose for `day`.

    Read-side only: the buffer filter is advisory and the actual booking is
    still decided by try_reserve_slot.
    """
    settings = get_settings()
    now = now or local_now()
    buffer_minutes = settings.SLOT_BUFFER_MINUTES if buffer_minutes is None else buffer_minutes
    heavy_ratio = settings.SLOT_BUFFER_LOAD_RATIO if heavy_ratio is None else heavy_ratio

    slot_times = generate_slot_times(day)
    if not slot_times:
        return []

    result = await db.execute(select(CapacitySlot).where(CapacitySlot.date == day))
    stored = {s.timeslot: s for s in result.scalars().all()}
    loads = {key: (s.booked_orders, s.max_orders) for key, s in stored.items()}
    blocked = _buffered_out(slot_times, loads, day, buffer_minutes, heavy_ratio)

    available = []
    for slot in slot_times:
        key = format_timeslot(slot)
        starts_at = datetime.combine(day, slot, tzinfo=restaurant_tz())
        if starts_at <= now or key in blocked:
            continue
        existing = stored.get(key)
        max_orders = existing.max_orders if existing else settings.DEFAULT_SLOT_MAX_ORDERS
        booked = existing.booked_orders if existing else 0
        if booked >= max_orders:
            continue
        available.append({
            "date": day.isoformat(),
            "timeslot": key,
            "max_orders": max_orders,
            "booked_orders": booked,
            "available_capacity": max_orders - booked,
        })
    return available
