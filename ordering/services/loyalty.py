"""
Loyalty accrual - per-phone order count and spend, milestone reward coupons.

Runs after the order is committed. Counters only grow, through a single
upsert statement, so concurrent orders from the same phone never lose an
increment.
"""
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ordering.config import get_settings
from ordering.models.coupon import Coupon, DiscountType
from ordering.models.loyalty import CustomerLoyalty, LoyaltyTier
from ordering.services.order_codes import random_code
from ordering.utils.db_compat import upsert
from ordering.utils.helpers import mask_phone
from ordering.utils.logger import get_logger

logger = get_logger(__name__)

REWARD_PERCENT = {
    LoyaltyTier.BRONZE: 5,
    LoyaltyTier.SILVER: 10,
    LoyaltyTier.GOLD: 15,
}


def tier_for(order_count: int) -> LoyaltyTier:
    settings = get_settings()
    if order_count >= settings.LOYALTY_GOLD_ORDERS:
        return LoyaltyTier.GOLD
    if order_count >= settings.LOYALTY_SILVER_ORDERS:
        return LoyaltyTier.SILVER
    return LoyaltyTier.BRONZE


def is_milestone(order_count: int) -> bool:
    every = get_settings().LOYALTY_MILESTONE_EVERY
    return every > 0 and order_count > 0 and order_count % every == 0


async def record_order(db: AsyncSession, phone: str, total_huf: int, now: datetime) -> CustomerLoyalty:
    """Add one order to the phone's running totals and return the updated row."""
    stmt = upsert(db, CustomerLoyalty).values(
        phone=phone,
        order_count=1,
        total_spent_huf=total_huf,
        tier=LoyaltyTier.BRONZE,
        last_order_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["phone"],
        set_={
            "order_count": CustomerLoyalty.order_count + 1,
            "total_spent_huf": CustomerLoyalty.total_spent_huf + total_huf,
            "last_order_at": now,
        },
    )
    await db.execute(stmt)

    result = await db.execute(
        select(CustomerLoyalty)
        .where(CustomerLoyalty.phone == phone)
        .execution_options(populate_existing=True)
    )
    loyalty = result.scalar_one()
    loyalty.tier = tier_for(loyalty.order_count)
    return loyalty


async def issue_reward(db: AsyncSession, loyalty: CustomerLoyalty, now: datetime) -> Coupon:
    settings = get_settings()
    coupon = Coupon(
        code=f"HUSEG-{random_code(6)}",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=REWARD_PERCENT[loyalty.tier],
        min_order_huf=0,
        max_uses=1,
        used_count=0,
        is_active=True,
        valid_from=now,
        valid_until=now + timedelta(days=settings.LOYALTY_REWARD_VALID_DAYS),
        issued_to_phone=loyalty.phone,
    )
    db.add(coupon)
    await db.flush()
    return coupon


async def accrue(db: AsyncSession, phone: str, total_huf: int, now: datetime) -> Optional[dict]:
    """
    Record the order and, on a milestone, issue a reward coupon.
    Commits on its own; returns the reward payload or None.
    """
    loyalty = await record_order(db, phone, total_huf, now)
    reward = None
    if is_milestone(loyalty.order_count):
        coupon = await issue_reward(db, loyalty, now)
        reward = {
            "coupon_code": coupon.code,
            "discount_type": coupon.discount_type.value,
            "discount_value": coupon.discount_value,
            "valid_until": coupon.valid_until.date().isoformat(),
            "order_count": loyalty.order_count,
            "tier": loyalty.tier.value,
        }
        logger.info(
            f"Loyalty milestone for {mask_phone(phone)}: order #{loyalty.order_count}, "
            f"coupon {coupon.code} ({coupon.discount_value}%)"
        )
    await db.commit()
    return reward
