"""
Order submission pipeline.

One request runs inside one database transaction:

    validate -> price -> reserve daily portions -> redeem coupon
    -> order code -> reserve pickup slot -> insert order rows -> commit

Every reservation is a guarded UPDATE, so the database decides who gets the
last portion or the last slot. Any failure before the commit rolls all of
it back. Loyalty and emails run after the commit and cannot fail the order.
"""
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Awaitable, Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ordering.models.order import (
    STATUS_TRANSITIONS,
    OptionType,
    Order,
    OrderItem,
    OrderItemOption,
    OrderStatus,
)
from ordering.schemas import CartItem, OrderRequest
from ordering.services import capacity, coupons, inventory, loyalty, notifications
from ordering.services.errors import (
    DailyDateMismatch,
    EmptyCart,
    InvalidCartItem,
    InvalidPickupTime,
    InvalidStatusTransition,
    MissingCustomerInfo,
    MultipleDailyDates,
    OrderError,
    OrderNotFound,
    PersistenceError,
    PickupInPast,
)
from ordering.services.inventory import DailyItemRef, DailyKind
from ordering.services.order_codes import generate_order_code
from ordering.services.pricing import PricedLine, load_catalog, parse_daily_marker, price_daily_item, price_regular_items
from ordering.utils.helpers import (
    format_timeslot,
    local_now,
    mask_phone,
    parse_iso_date,
    parse_iso_datetime,
    parse_timeslot,
    restaurant_tz,
    to_local,
)
from ordering.utils.logger import get_logger
from ordering.utils.validators import validate_email, validate_name, validate_phone

logger = get_logger(__name__)

CodeGenerator = Callable[[AsyncSession], Awaitable[str]]


@dataclass
class PickupSpec:
    date: date
    timeslot: Optional[str] = None       # "HH:MM"; None = date only, no capacity booking
    pickup_at: Optional[datetime] = None


@dataclass
class SubmissionResult:
    order_code: str
    total_huf: int
    loyalty_reward: Optional[dict] = None
    order_id: Optional[str] = None


def resolve_pickup(request: OrderRequest, now: datetime) -> Optional[PickupSpec]:
    """date+slot wins over the legacy pickup_time timestamp; neither means ASAP."""
    if request.pickup_date:
        try:
            day = parse_iso_date(request.pickup_date)
            slot = parse_timeslot(request.pickup_time_slot) if request.pickup_time_slot else None
        except ValueError:
            raise InvalidPickupTime()

        if slot is None:
            if day < now.date():
                raise PickupInPast()
            return PickupSpec(day)

        pickup_at = datetime.combine(day, slot, tzinfo=restaurant_tz())
        if pickup_at < now:
            raise PickupInPast()
        capacity.check_slot_time(day, format_timeslot(slot))
        return PickupSpec(day, format_timeslot(slot), pickup_at)

    if request.pickup_time:
        try:
            pickup_at = to_local(parse_iso_datetime(request.pickup_time))
        except ValueError:
            raise InvalidPickupTime()
        if pickup_at < now:
            raise PickupInPast()
        slot = time(pickup_at.hour, pickup_at.minute)
        capacity.check_slot_time(pickup_at.date(), format_timeslot(slot))
        return PickupSpec(pickup_at.date(), format_timeslot(slot), pickup_at)

    return None


def check_daily_dates(refs: List[DailyItemRef], pickup: Optional[PickupSpec]) -> None:
    dates = {ref.date for ref in refs}
    if len(dates) > 1:
        raise MultipleDailyDates(
            "Daily items from different days cannot be ordered together: "
            + ", ".join(sorted(d.isoformat() for d in dates))
        )
    if dates and pickup is not None:
        daily_date = dates.pop()
        if daily_date != pickup.date:
            raise DailyDateMismatch(
                f"Daily items for {daily_date.isoformat()} must be picked up on that day"
            )


class OrderSubmissionService:
    """Orchestrates one order submission; collaborators are swappable for tests."""

    def __init__(
        self,
        code_generator: Optional[CodeGenerator] = None,
        email_service: Optional[notifications.EmailService] = None,
    ):
        self.code_generator = code_generator or generate_order_code
        self.email_service = email_service or notifications.email_service

    # ──── Validation ────

    @staticmethod
    def _validate_customer(request: OrderRequest) -> tuple[str, str, str]:
        customer = request.customer
        try:
            return (
                validate_name(customer.name),
                validate_phone(customer.phone),
                validate_email(customer.email),
            )
        except ValueError as e:
            raise MissingCustomerInfo(str(e))

    @staticmethod
    def _check_daily_fields(item: CartItem) -> None:
        if not item.daily_id:
            raise InvalidCartItem(f"Daily item without reference: {item.name_snapshot}")

    # ──── Pipeline ────

    async def submit(self, db: AsyncSession, request: OrderRequest, now: Optional[datetime] = None) -> SubmissionResult:
        now = now or local_now()
        name, phone, email = self._validate_customer(request)
        if not request.items:
            raise EmptyCart()
        pickup = resolve_pickup(request, now)

        logger.info(f"Processing order for {name} ({mask_phone(phone)}) with {len(request.items)} item(s)")

        try:
            order, lines = await self._place(db, request, name, phone, email, pickup, now)
            await db.commit()
        except OrderError:
            await db.rollback()
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            logger.exception("Order persistence failed")
            raise PersistenceError() from e

        logger.info(f"Order {order.code} committed, total {order.total_huf} HUF")
        result = SubmissionResult(order.code, order.total_huf, order_id=order.id)

        result.loyalty_reward = await self._accrue_loyalty(db, order, now)
        await self._notify(order, lines, result.order_code)
        return result

    async def _place(
        self,
        db: AsyncSession,
        request: OrderRequest,
        name: str,
        phone: str,
        email: str,
        pickup: Optional[PickupSpec],
        now: datetime,
    ) -> tuple[Order, List[PricedLine]]:
        regular = [item for item in request.items if not item.is_daily]
        daily = [item for item in request.items if item.is_daily]
        for item in daily:
            self._check_daily_fields(item)

        # Reads only: catalog, side rules, daily rows
        catalog = await load_catalog(db, request.items)
        refs = [await inventory.load_daily_item(db, item.daily_type, item.daily_id) for item in daily]
        check_daily_dates(refs, pickup)
        for ref in refs:
            inventory.ensure_not_expired(ref, now.date())

        priced = {id(item): line for item, line in zip(regular, price_regular_items(catalog, regular))}
        for item, ref in zip(daily, refs):
            priced[id(item)] = price_daily_item(catalog, item, ref)

        # Reservations (guarded updates)
        for item, ref in zip(daily, refs):
            await inventory.reserve_portions(db, ref.kind, ref.id, item.qty)

        lines = [priced[id(item)] for item in request.items]
        subtotal = sum(line.line_total_huf for line in lines)
        logger.info(f"Server-calculated subtotal: {subtotal} HUF")

        coupon_code = None
        discount = 0
        if request.coupon_code and request.coupon_code.strip():
            coupon, discount = await coupons.redeem_coupon(db, request.coupon_code, subtotal, now)
            coupon_code = coupon.code

        code = await self.code_generator(db)
        logger.info(f"Generated order code: {code}")

        if pickup is not None and pickup.timeslot is not None:
            await capacity.reserve_slot(db, pickup.date, pickup.timeslot)

        order = await self._persist(
            db,
            code=code,
            name=name,
            phone=phone,
            email=email,
            request=request,
            pickup=pickup,
            lines=lines,
            subtotal=subtotal,
            discount=discount,
            coupon_code=coupon_code,
        )
        return order, lines

    async def _persist(self, db: AsyncSession, *, code, name, phone, email, request, pickup, lines, subtotal, discount, coupon_code) -> Order:
        """Header, then line items, then option snapshots."""
        order = Order(
            code=code,
            name=name,
            phone=phone,
            email=email,
            notes=request.customer.notes or None,
            subtotal_huf=subtotal,
            discount_huf=discount,
            total_huf=subtotal - discount,
            coupon_code=coupon_code,
            status=OrderStatus.NEW,
            payment_method=request.payment_method,
            pickup_time=pickup.pickup_at if pickup else None,
            pickup_date=pickup.date.isoformat() if pickup else None,
            pickup_timeslot=pickup.timeslot if pickup else None,
        )
        db.add(order)
        await db.flush()

        for position, line in enumerate(lines):
            order_item = OrderItem(
                order_id=order.id,
                item_id=line.item_id,
                position=position,
                name_snapshot=line.name_snapshot,
                qty=line.qty,
                unit_price_huf=line.unit_price_huf,
                line_total_huf=line.line_total_huf,
            )
            db.add(order_item)
            await db.flush()

            for option in line.options:
                db.add(OrderItemOption(
                    order_item_id=order_item.id,
                    option_type=option.option_type,
                    label_snapshot=option.label_snapshot,
                    price_delta_huf=option.price_delta_huf,
                    side_item_id=option.side_item_id,
                ))
        await db.flush()
        return order

    # ──── After commit ────

    async def _accrue_loyalty(self, db: AsyncSession, order: Order, now: datetime) -> Optional[dict]:
        code = order.code
        try:
            return await loyalty.accrue(db, order.phone, order.total_huf, now)
        except Exception:
            logger.exception(f"Loyalty accrual failed for order {code}")

        try:
            await db.rollback()
            # rollback expired the committed order; reload it for the email
            await db.refresh(order)
        except Exception:
            logger.exception(f"Could not reload order {code} after loyalty failure")
        return None

    async def _notify(self, order: Order, lines: List[PricedLine], code: str) -> None:
        summary = [{"name": l.name_snapshot, "qty": l.qty, "line_total_huf": l.line_total_huf} for l in lines]
        try:
            await notifications.send_order_confirmation(order, summary, service=self.email_service)
        except Exception:
            logger.exception(f"Confirmation email crashed for order {code}")


# ──── Lookup & status ────

async def get_order_by_code(db: AsyncSession, code: str) -> Order:
    result = await db.execute(
        select(Order)
        .options(selectinload(Order.items).selectinload(OrderItem.options))
        .where(Order.code == code.strip().upper())
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise OrderNotFound()
    return order


async def lookup_customer_order(db: AsyncSession, code: str, phone: str) -> Order:
    """Both code and phone must match, so a guessed code alone reveals nothing."""
    order = await get_order_by_code(db, code)
    try:
        normalized = validate_phone(phone)
    except ValueError:
        raise OrderNotFound()
    if order.phone != normalized:
        raise OrderNotFound()
    return order


async def _release_reservations(db: AsyncSession, order: Order) -> None:
    for order_item in order.items:
        for option in order_item.options:
            if option.option_type != OptionType.DAILY_META:
                continue
            marker = parse_daily_marker(option.label_snapshot)
            if marker is None:
                continue
            kind, daily_id, _ = marker
            if not await inventory.release_portions(db, DailyKind(kind), daily_id, order_item.qty):
                logger.warning(f"Order {order.code}: daily {kind} {daily_id} no longer exists, nothing released")

    if order.pickup_date and order.pickup_timeslot:
        if not await capacity.release_slot(db, parse_iso_date(order.pickup_date), order.pickup_timeslot):
            logger.warning(f"Order {order.code}: no booking to release in slot {order.pickup_date} {order.pickup_timeslot}")


async def change_status(
    db: AsyncSession,
    code: str,
    new_status: str,
    email_service: Optional[notifications.EmailService] = None,
) -> Order:
    """Move an order along new → preparing → ready → completed (or cancel it)."""
    order = await get_order_by_code(db, code)
    try:
        target = OrderStatus(new_status)
    except ValueError:
        raise InvalidStatusTransition(f"Unknown status: {new_status}")

    if target not in STATUS_TRANSITIONS[order.status]:
        raise InvalidStatusTransition(
            f"Cannot move order {order.code} from {order.status.value} to {target.value}"
        )

    if target == OrderStatus.CANCELLED:
        await _release_reservations(db, order)
    order.status = target
    await db.commit()
    logger.info(f"Order {order.code} is now {target.value}")

    summary = [{"name": i.name_snapshot, "qty": i.qty, "line_total_huf": i.line_total_huf} for i in order.items]
    try:
        await notifications.send_status_email(order, summary, target, service=email_service)
    except Exception:
        logger.exception(f"Status email crashed for order {order.code}")
    return order


# Default instance used by the API
order_submission_service = OrderSubmissionService()
