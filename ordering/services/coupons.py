"""
Coupon validation, discount math and redemption
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ordering.models.coupon import Coupon, DiscountType
from ordering.services.errors import CouponExhausted, CouponExpired, CouponNotFound, MinimumOrderNotMet
from ordering.utils.helpers import format_huf, local_now, round_half_up, to_local
from ordering.utils.logger import get_logger

logger = get_logger(__name__)


def normalize_code(code: str) -> str:
    return code.strip().upper()


def compute_discount(coupon: Coupon, total_huf: int) -> int:
    """Discount for a pre-discount total; never more than the total itself."""
    if total_huf <= 0:
        return 0
    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = round_half_up(Decimal(total_huf) * Decimal(coupon.discount_value) / Decimal(100))
    else:
        discount = coupon.discount_value
    return max(0, min(discount, total_huf))


async def find_coupon(db: AsyncSession, code: str) -> Coupon:
    result = await db.execute(select(Coupon).where(Coupon.code == normalize_code(code)))
    coupon = result.scalar_one_or_none()
    if coupon is None or not coupon.is_active:
        raise CouponNotFound()
    return coupon


def check_coupon(coupon: Coupon, total_huf: int, now: datetime) -> None:
    """Validity window, usage cap and minimum order; raises on the first failure."""
    if coupon.valid_from is not None and now < to_local(coupon.valid_from):
        raise CouponExpired("This coupon is not valid yet")
    if coupon.valid_until is not None and now > to_local(coupon.valid_until):
        raise CouponExpired()
    if coupon.max_uses is not None and coupon.used_count >= coupon.max_uses:
        raise CouponExhausted()
    if total_huf < coupon.min_order_huf:
        raise MinimumOrderNotMet(
            f"This coupon needs an order of at least {format_huf(coupon.min_order_huf)}"
        )


async def preview_discount(db: AsyncSession, code: str, total_huf: int, now: Optional[datetime] = None) -> int:
    """Discount the coupon would give, without using it up."""
    coupon = await find_coupon(db, code)
    check_coupon(coupon, total_huf, now or local_now())
    return compute_discount(coupon, total_huf)


async def redeem_coupon(db: AsyncSession, code: str, total_huf: int, now: Optional[datetime] = None) -> tuple[Coupon, int]:
    """
    Validate the coupon, count one use and return (coupon, discount).

    The use is counted with a guarded UPDATE so concurrent orders cannot push
    used_count past max_uses.
    """
    coupon = await find_coupon(db, code)
    check_coupon(coupon, total_huf, now or local_now())

    result = await db.execute(
        update(Coupon)
        .where(
            Coupon.id == coupon.id,
            or_(Coupon.max_uses.is_(None), Coupon.used_count < Coupon.max_uses),
        )
        .values(used_count=Coupon.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise CouponExhausted()

    discount = compute_discount(coupon, total_huf)
    logger.info(f"Coupon {coupon.code} redeemed: -{discount} HUF on {total_huf} HUF")
    return coupon, discount
