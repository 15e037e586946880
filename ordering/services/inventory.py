"""
Daily-inventory reservation.

Portions are consumed with one guarded UPDATE per line:

    UPDATE <daily table>
       SET remaining_portions = remaining_portions - :qty
     WHERE id = :id AND remaining_portions >= :qty

and success is read from the affected row count. Two requests racing for
the last portions are serialized by the database; the loser sees zero rows
and gets InsufficientPortions.
"""
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ordering.models.daily import DailyOffer, DailyMenu, DailyOfferMenu
from ordering.services.errors import DailyItemNotFound, InsufficientPortions, ItemExpired
from ordering.utils.logger import get_logger

logger = get_logger(__name__)


class DailyKind(str, Enum):
    OFFER = "offer"
    MENU = "menu"
    COMPLETE_MENU = "complete_menu"


DAILY_TABLES = {
    DailyKind.OFFER: DailyOffer,
    DailyKind.MENU: DailyMenu,
    DailyKind.COMPLETE_MENU: DailyOfferMenu,
}


@dataclass(frozen=True)
class DailyItemRef:
    """Authoritative view of one daily row at lookup time"""
    kind: DailyKind
    id: str
    date: date
    price_huf: Optional[int]
    remaining_portions: int


async def load_daily_item(db: AsyncSession, kind: DailyKind, daily_id: str) -> DailyItemRef:
    """Read a daily row; complete menus take their date from the parent offer."""
    if kind == DailyKind.COMPLETE_MENU:
        result = await db.execute(
            select(DailyOfferMenu, DailyOffer.date)
            .join(DailyOffer, DailyOfferMenu.daily_offer_id == DailyOffer.id)
            .where(DailyOfferMenu.id == daily_id)
        )
        row = result.first()
        if row is None:
            raise DailyItemNotFound()
        menu, menu_date = row
        return DailyItemRef(kind, menu.id, menu_date, menu.menu_price_huf, menu.remaining_portions)

    model = DAILY_TABLES[kind]
    result = await db.execute(select(model).where(model.id == daily_id))
    daily = result.scalar_one_or_none()
    if daily is None:
        raise DailyItemNotFound()
    return DailyItemRef(kind, daily.id, daily.date, daily.price_huf, daily.remaining_portions)


def ensure_not_expired(ref: DailyItemRef, today: date) -> None:
    if ref.date < today:
        raise ItemExpired(f"Daily item for {ref.date.isoformat()} can no longer be ordered")


async def try_reserve_portions(db: AsyncSession, kind: DailyKind, daily_id: str, quantity: int) -> bool:
    """Atomically take `quantity` portions. Returns False when not enough remain."""
    if quantity <= 0:
        raise ValueError("quantity must be positive")

    model = DAILY_TABLES[kind]
    result = await db.execute(
        update(model)
        .where(model.id == daily_id, model.remaining_portions >= quantity)
        .values(remaining_portions=model.remaining_portions - quantity)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def reserve_portions(db: AsyncSession, kind: DailyKind, daily_id: str, quantity: int) -> None:
    if not await try_reserve_portions(db, kind, daily_id, quantity):
        logger.info(f"Reservation refused: {kind.value} {daily_id} x{quantity}")
        raise InsufficientPortions(f"Not enough portions left (requested {quantity})")
    logger.debug(f"Reserved {quantity} portion(s) of {kind.value} {daily_id}")


async def release_portions(db: AsyncSession, kind: DailyKind, daily_id: str, quantity: int) -> bool:
    """Give portions back (order cancellation), clamped to max_portions. False if the row is gone."""
    model = DAILY_TABLES[kind]
    restored = model.remaining_portions + quantity
    result = await db.execute(
        update(model)
        .where(model.id == daily_id)
        .values(remaining_portions=case((restored > model.max_portions, model.max_portions), else_=restored))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
