"""
Order submission pipeline - end to end against SQLite, including rollback
of reservations when a later step fails.
"""
import asyncio
from datetime import datetime, time, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from conftest import order_payload
from ordering.models import (
    CapacitySlot,
    CustomerLoyalty,
    DailyMenu,
    MenuItem,
    OptionType,
    Order,
    OrderStatus,
)
from ordering.schemas import OrderRequest
from ordering.services.errors import (
    DailyDateMismatch,
    EmptyCart,
    InsufficientPortions,
    InvalidCartItem,
    InvalidPickupTime,
    InvalidStatusTransition,
    ItemExpired,
    MissingCustomerInfo,
    MultipleDailyDates,
    OrderNotFound,
    PersistenceError,
    PickupInPast,
    SlotFull,
)
from ordering.services.notifications import EmailService
from ordering.services.order_codes import CODE_ALPHABET, generate_order_code
from ordering.services.order_service import (
    OrderSubmissionService,
    change_status,
    get_order_by_code,
    lookup_customer_order,
)
from ordering.utils.helpers import local_now, restaurant_tz

SOUP = {"item_id": "soup-1", "name_snapshot": "Goulash soup", "qty": 2, "unit_price_huf": 500}


def offer_line(qty=1, daily_id="offer-1", daily_type="offer"):
    return {
        "item_id": daily_id,
        "name_snapshot": "Daily offer",
        "qty": qty,
        "unit_price_huf": 0,
        "daily_type": daily_type,
        "daily_id": daily_id,
    }


def make_request(items, **overrides) -> OrderRequest:
    return OrderRequest(**order_payload(items, **overrides))


async def count_orders(db) -> int:
    return await db.scalar(select(func.count()).select_from(Order))


async def remaining(db, daily_row) -> int:
    await db.refresh(daily_row)
    return daily_row.remaining_portions


# ===================== HAPPY PATH =====================


async def test_submit_prices_and_books_slot(db_session, catalog, service, monday):
    result = await service.submit(
        db_session, make_request([SOUP], pickup_date=monday.isoformat(), pickup_time_slot="12:00")
    )

    assert result.total_huf == 1200
    assert len(result.order_code) == 6
    assert set(result.order_code) <= set(CODE_ALPHABET)

    order = await get_order_by_code(db_session, result.order_code)
    assert order.subtotal_huf == 1200
    assert order.discount_huf == 0
    assert order.status == OrderStatus.NEW
    assert order.phone == "+36301234567"
    assert order.pickup_date == monday.isoformat()
    assert order.pickup_timeslot == "12:00"
    [line] = order.items
    assert (line.unit_price_huf, line.qty, line.line_total_huf) == (600, 2, 1200)

    slot = (await db_session.execute(select(CapacitySlot))).scalar_one()
    assert slot.booked_orders == 1


async def test_submit_daily_offer_reserves_portions(db_session, catalog, daily, service, monday):
    result = await service.submit(
        db_session,
        make_request([offer_line(qty=2), SOUP], pickup_date=monday.isoformat(), pickup_time_slot="11:30"),
    )

    assert result.total_huf == 2 * 1890 + 1200
    assert await remaining(db_session, daily["offer"]) == 3

    order = await get_order_by_code(db_session, result.order_code)
    daily_line = order.items[0]
    assert daily_line.unit_price_huf == 1890
    [meta] = daily_line.options
    assert meta.option_type == OptionType.DAILY_META
    assert meta.label_snapshot == f"offer|offer-1|{monday.isoformat()}"


async def test_submit_complete_menu(db_session, catalog, daily, service, monday):
    result = await service.submit(
        db_session,
        make_request([offer_line(daily_id="complete-1", daily_type="complete_menu")], pickup_date=monday.isoformat()),
    )
    assert result.total_huf == 2590
    assert await remaining(db_session, daily["complete"]) == 3


async def test_submit_asap_without_slot(db_session, catalog, service):
    result = await service.submit(db_session, make_request([SOUP]))

    order = await get_order_by_code(db_session, result.order_code)
    assert order.pickup_time is None
    assert order.pickup_date is None
    assert await db_session.scalar(select(func.count()).select_from(CapacitySlot)) == 0


async def test_legacy_pickup_time(db_session, catalog, service, monday):
    pickup = datetime.combine(monday, time(13, 0), tzinfo=restaurant_tz())
    result = await service.submit(db_session, make_request([SOUP], pickup_time=pickup.isoformat()))

    order = await get_order_by_code(db_session, result.order_code)
    assert order.pickup_date == monday.isoformat()
    assert order.pickup_timeslot == "13:00"


async def test_submit_with_coupon(db_session, catalog, coupon, service):
    result = await service.submit(db_session, make_request([SOUP], coupon_code="save10"))

    assert result.total_huf == 1080
    order = await get_order_by_code(db_session, result.order_code)
    assert order.coupon_code == "SAVE10"
    assert order.discount_huf == 120
    await db_session.refresh(coupon)
    assert coupon.used_count == 1


async def test_order_codes_are_unique(db_session, catalog, service):
    codes = {(await service.submit(db_session, make_request([SOUP]))).order_code for _ in range(5)}
    assert len(codes) == 5


async def test_code_generator_gives_up_on_collisions(db_session, catalog, service):
    result = await service.submit(db_session, make_request([SOUP]))

    with patch("ordering.services.order_codes.random_code", return_value=result.order_code):
        with pytest.raises(PersistenceError):
            await generate_order_code(db_session)


async def test_fifth_order_returns_loyalty_reward(db_session, catalog, service):
    results = [await service.submit(db_session, make_request([SOUP])) for _ in range(5)]

    assert all(r.loyalty_reward is None for r in results[:4])
    assert results[4].loyalty_reward["discount_value"] == 5
    loyalty = await db_session.get(CustomerLoyalty, "+36301234567")
    await db_session.refresh(loyalty)
    assert loyalty.total_spent_huf == 5 * 1200


# ===================== VALIDATION =====================


async def test_empty_cart(db_session, service):
    with pytest.raises(EmptyCart):
        await service.submit(db_session, make_request([]))


async def test_missing_customer_name(db_session, catalog, service):
    request = make_request([SOUP], customer={"name": " ", "phone": "+36301234567", "email": "a@b.hu"})
    with pytest.raises(MissingCustomerInfo):
        await service.submit(db_session, request)


async def test_invalid_email(db_session, catalog, service):
    request = make_request([SOUP], customer={"name": "Anna", "phone": "+36301234567", "email": "nope"})
    with pytest.raises(MissingCustomerInfo):
        await service.submit(db_session, request)


async def test_daily_line_without_id(db_session, catalog, service):
    line = offer_line()
    line["daily_id"] = None
    with pytest.raises(InvalidCartItem):
        await service.submit(db_session, make_request([line]))


async def test_malformed_pickup_date(db_session, catalog, service):
    with pytest.raises(InvalidPickupTime):
        await service.submit(db_session, make_request([SOUP], pickup_date="next monday"))


async def test_pickup_in_the_past(db_session, catalog, service):
    yesterday = local_now().date() - timedelta(days=1)
    with pytest.raises(PickupInPast):
        await service.submit(
            db_session, make_request([SOUP], pickup_date=yesterday.isoformat(), pickup_time_slot="12:00")
        )


async def test_expired_daily_item(db_session, catalog, service):
    db_session.add(DailyMenu(id="old-menu", date=local_now().date() - timedelta(days=2),
                             price_huf=2000, max_portions=5, remaining_portions=5))
    await db_session.commit()

    with pytest.raises(ItemExpired):
        await service.submit(db_session, make_request([offer_line(daily_id="old-menu", daily_type="menu")]))


# ===================== CONSISTENCY =====================


async def test_daily_items_from_two_days(db_session, catalog, daily, service, monday):
    db_session.add(DailyMenu(id="menu-tue", date=monday + timedelta(days=1),
                             price_huf=2290, max_portions=5, remaining_portions=5))
    await db_session.commit()

    request = make_request([offer_line(), offer_line(daily_id="menu-tue", daily_type="menu")])
    with pytest.raises(MultipleDailyDates):
        await service.submit(db_session, request)

    assert await count_orders(db_session) == 0
    assert await remaining(db_session, daily["offer"]) == 5


async def test_daily_item_picked_up_on_other_day(db_session, catalog, daily, service, monday):
    tuesday = monday + timedelta(days=1)
    request = make_request([offer_line()], pickup_date=tuesday.isoformat(), pickup_time_slot="12:00")
    with pytest.raises(DailyDateMismatch):
        await service.submit(db_session, request)

    assert await count_orders(db_session) == 0
    assert await db_session.scalar(select(func.count()).select_from(CapacitySlot)) == 0


# ===================== ROLLBACK =====================


async def test_full_slot_rolls_back_portions_and_coupon(db_session, catalog, daily, coupon, full_slot, service, monday):
    request = make_request(
        [offer_line(qty=2)],
        pickup_date=monday.isoformat(),
        pickup_time_slot="12:00",
        coupon_code="SAVE10",
    )
    with pytest.raises(SlotFull):
        await service.submit(db_session, request)

    assert await count_orders(db_session) == 0
    assert await remaining(db_session, daily["offer"]) == 5
    await db_session.refresh(coupon)
    assert coupon.used_count == 0
    await db_session.refresh(full_slot)
    assert full_slot.booked_orders == 8


async def test_insufficient_portions_books_nothing(db_session, catalog, daily, service, monday):
    request = make_request(
        [offer_line(daily_id="menu-1", daily_type="menu"), offer_line(qty=6)],
        pickup_date=monday.isoformat(),
        pickup_time_slot="12:00",
    )
    with pytest.raises(InsufficientPortions):
        await service.submit(db_session, request)

    assert await remaining(db_session, daily["menu"]) == 20
    assert await db_session.scalar(select(func.count()).select_from(CapacitySlot)) == 0


async def test_off_grid_slot_next_to_full_slot(db_session, catalog, full_slot, service, monday):
    request = make_request([SOUP], pickup_date=monday.isoformat(), pickup_time_slot="12:01")
    with pytest.raises(InvalidPickupTime):
        await service.submit(db_session, request)

    assert await count_orders(db_session) == 0
    assert await db_session.scalar(select(func.count()).select_from(CapacitySlot)) == 1
    await db_session.refresh(full_slot)
    assert full_slot.booked_orders == 8


async def test_legacy_pickup_time_off_grid(db_session, catalog, full_slot, service, monday):
    pickup = datetime.combine(monday, time(12, 10), tzinfo=restaurant_tz())
    with pytest.raises(InvalidPickupTime):
        await service.submit(db_session, make_request([SOUP], pickup_time=pickup.isoformat()))

    assert await count_orders(db_session) == 0
    assert await db_session.scalar(select(func.count()).select_from(CapacitySlot)) == 1


async def test_database_failure_becomes_persistence_error(db_session, catalog, daily, service, monday):
    async def broken_generator(db):
        raise SQLAlchemyError("connection lost")

    service.code_generator = broken_generator
    with pytest.raises(PersistenceError):
        await service.submit(db_session, make_request([offer_line()], pickup_date=monday.isoformat()))

    assert await remaining(db_session, daily["offer"]) == 5


async def test_loyalty_failure_keeps_order(db_session, catalog, service):
    with patch("ordering.services.loyalty.accrue", side_effect=SQLAlchemyError("locked")):
        result = await service.submit(db_session, make_request([SOUP]))

    assert result.loyalty_reward is None
    assert await count_orders(db_session) == 1


async def test_unexpected_loyalty_error_keeps_order(db_session, catalog, service):
    with patch("ordering.services.loyalty.accrue", side_effect=ValueError("bad phone")):
        result = await service.submit(db_session, make_request([SOUP]))

    assert result.loyalty_reward is None
    assert await count_orders(db_session) == 1
    order = await get_order_by_code(db_session, result.order_code)
    assert order.total_huf == result.total_huf


# ===================== LOOKUP & STATUS =====================


async def test_lookup_needs_matching_phone(db_session, catalog, service):
    result = await service.submit(db_session, make_request([SOUP]))

    order = await lookup_customer_order(db_session, result.order_code.lower(), "+36 30 123-4567")
    assert order.code == result.order_code
    with pytest.raises(OrderNotFound):
        await lookup_customer_order(db_session, result.order_code, "+36309999999")
    with pytest.raises(OrderNotFound):
        await lookup_customer_order(db_session, "ZZZZZZ", "+36301234567")


async def test_status_moves_forward(db_session, catalog, service):
    result = await service.submit(db_session, make_request([SOUP]))

    for status in ("preparing", "ready", "completed"):
        order = await change_status(db_session, result.order_code, status, email_service=service.email_service)
        assert order.status.value == status


async def test_status_cannot_skip_steps(db_session, catalog, service):
    result = await service.submit(db_session, make_request([SOUP]))

    with pytest.raises(InvalidStatusTransition):
        await change_status(db_session, result.order_code, "completed", email_service=service.email_service)
    with pytest.raises(InvalidStatusTransition):
        await change_status(db_session, result.order_code, "eaten", email_service=service.email_service)


async def test_cancel_releases_portions_and_slot(db_session, catalog, daily, service, monday):
    result = await service.submit(
        db_session,
        make_request([offer_line(qty=2)], pickup_date=monday.isoformat(), pickup_time_slot="12:00"),
    )
    assert await remaining(db_session, daily["offer"]) == 3

    order = await change_status(db_session, result.order_code, "cancelled", email_service=service.email_service)

    assert order.status == OrderStatus.CANCELLED
    assert await remaining(db_session, daily["offer"]) == 5
    slot = (await db_session.execute(select(CapacitySlot))).scalar_one()
    await db_session.refresh(slot)
    assert slot.booked_orders == 0


# ===================== CONCURRENCY =====================


async def test_concurrent_orders_fill_slot_exactly(session_factory, monday):
    async with session_factory() as session:
        session.add(MenuItem(id="soup-1", name="Goulash soup", price_huf=600, is_active=True))
        session.add(CapacitySlot(date=monday, timeslot="12:00", max_orders=3, booked_orders=0))
        await session.commit()

    service = OrderSubmissionService(email_service=EmailService(api_key=""))

    async def place():
        async with session_factory() as session:
            try:
                await service.submit(
                    session,
                    make_request([SOUP], pickup_date=monday.isoformat(), pickup_time_slot="12:00"),
                )
            except SlotFull:
                return False
            return True

    results = await asyncio.gather(*[place() for _ in range(5)])
    assert sum(results) == 3

    async with session_factory() as session:
        assert await count_orders(session) == 3
        slot = (await session.execute(select(CapacitySlot))).scalar_one()
        assert slot.booked_orders == 3
        loyalty = await session.get(CustomerLoyalty, "+36301234567")
        assert loyalty.order_count == 3
