"""
Customer loyalty - running order count and spend per phone number.
Only ordering.services.loyalty writes these rows.
"""
from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, Enum as SQLEnum
from ordering.database import Base


class LoyaltyTier(str, Enum):
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"


class CustomerLoyalty(Base):
    __tablename__ = "customer_loyalty"

    phone = Column(String, primary_key=True)
    order_count = Column(Integer, nullable=False, default=0)
    total_spent_huf = Column(Integer, nullable=False, default=0)
    tier = Column(SQLEnum(LoyaltyTier, native_enum=False), nullable=False, default=LoyaltyTier.BRONZE)
    last_order_at = Column(DateTime(timezone=True), nullable=True)
