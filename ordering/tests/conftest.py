"""
Test fixtures - in-memory SQLite database, seeded catalog + HTTP client
"""
from datetime import date, timedelta

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine

from ordering.database import Base, build_engine, build_session_factory, get_db
from ordering.main import app
from ordering.models import (
    CapacitySlot,
    Coupon,
    DailyMenu,
    DailyOffer,
    DailyOfferMenu,
    DiscountType,
    ItemModifier,
    ItemModifierOption,
    MenuItem,
    MenuItemSide,
)
from ordering.services.notifications import EmailService
from ordering.services.order_service import OrderSubmissionService


def upcoming(weekday: int, weeks_ahead: int = 1) -> date:
    """A date at least `weeks_ahead` weeks from today falling on `weekday` (0 = Monday)"""
    start = date.today() + timedelta(weeks=weeks_ahead)
    return start + timedelta(days=(weekday - start.weekday()) % 7)


@pytest.fixture()
def monday() -> date:
    return upcoming(0)


@pytest_asyncio.fixture()
async def db_session():
    """Create a fresh in-memory SQLite database for each test"""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = build_session_factory(engine)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(tmp_path):
    """File-backed database with one session per task, for concurrency tests"""
    engine = build_engine(f"sqlite:///{tmp_path / 'race.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield build_session_factory(engine)

    await engine.dispose()


@pytest_asyncio.fixture()
async def catalog(db_session):
    """Permanent menu: soup, a main with a required side, two sides, a retired item"""
    soup = MenuItem(id="soup-1", name="Goulash soup", price_huf=600, is_active=True)
    schnitzel = MenuItem(id="main-1", name="Schnitzel", price_huf=2400, is_active=True)
    rice = MenuItem(id="side-rice", name="Rice", price_huf=300, is_active=True)
    fries = MenuItem(id="side-fries", name="Fries", price_huf=450, is_active=True)
    retired = MenuItem(id="old-1", name="Retired stew", price_huf=1500, is_active=False)
    db_session.add_all([soup, schnitzel, rice, fries, retired])
    await db_session.flush()

    size = ItemModifier(id="mod-size", item_id="soup-1", name="Size", type="single")
    db_session.add(size)
    await db_session.flush()
    db_session.add(ItemModifierOption(id="opt-large", modifier_id="mod-size", label="Large", price_delta_huf=200))

    for side in (rice, fries):
        db_session.add(MenuItemSide(
            main_item_id="main-1",
            side_item_id=side.id,
            is_required=True,
            min_select=1,
            max_select=1,
        ))
    await db_session.commit()

    return {"soup": soup, "schnitzel": schnitzel, "rice": rice, "fries": fries, "retired": retired}


@pytest_asyncio.fixture()
async def daily(db_session, monday):
    """Daily offer, daily menu and complete menu for the upcoming Monday"""
    offer = DailyOffer(id="offer-1", date=monday, price_huf=1890, max_portions=10, remaining_portions=5)
    menu = DailyMenu(id="menu-1", date=monday, price_huf=2290, max_portions=20, remaining_portions=20)
    db_session.add_all([offer, menu])
    await db_session.flush()
    complete = DailyOfferMenu(
        id="complete-1",
        daily_offer_id="offer-1",
        menu_price_huf=2590,
        max_portions=4,
        remaining_portions=4,
    )
    db_session.add(complete)
    await db_session.commit()
    return {"offer": offer, "menu": menu, "complete": complete}


@pytest_asyncio.fixture()
async def coupon(db_session):
    c = Coupon(
        code="SAVE10",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=10,
        min_order_huf=0,
        max_uses=1,
        used_count=0,
        is_active=True,
    )
    db_session.add(c)
    await db_session.commit()
    return c


@pytest_asyncio.fixture()
async def full_slot(db_session, monday):
    slot = CapacitySlot(date=monday, timeslot="12:00", max_orders=8, booked_orders=8)
    db_session.add(slot)
    await db_session.commit()
    return slot


@pytest.fixture()
def service():
    """Submission service with email switched off"""
    return OrderSubmissionService(email_service=EmailService(api_key=""))


def order_payload(items, **overrides) -> dict:
    payload = {
        "customer": {"name": "Kiss Anna", "phone": "+36 30 123 4567", "email": "anna@example.com"},
        "payment_method": "cash",
        "items": items,
    }
    payload.update(overrides)
    return payload


@pytest_asyncio.fixture()
async def client(db_session):
    """httpx AsyncClient bound to the FastAPI app"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac

    app.dependency_overrides.clear()
