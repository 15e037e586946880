"""
Coupon model - discount codes with an optional usage cap and validity window
"""
import uuid
from enum import Enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum as SQLEnum, func
from ordering.database import Base


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code = Column(String, nullable=False, unique=True, index=True)  # stored upper-case
    discount_type = Column(SQLEnum(DiscountType, native_enum=False), nullable=False)
    discount_value = Column(Integer, nullable=False)  # percent or forints
    min_order_huf = Column(Integer, nullable=False, default=0)
    max_uses = Column(Integer, nullable=True)  # None = unlimited
    used_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    # Validity window (tz-aware)
    valid_from = Column(DateTime(timezone=True), nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)

    # Set for loyalty reward coupons
    issued_to_phone = Column(String, nullable=True, index=True)

    created_at = Column(DateTime, server_default=func.now())
