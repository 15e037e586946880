"""
Order models - header, line items and per-line option snapshots.

Names and prices are snapshots taken at order time; they are never re-read
from the catalog afterwards.
"""
import uuid
from enum import Enum

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum as SQLEnum, func
from sqlalchemy.orm import relationship
from ordering.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class OrderStatus(str, Enum):
    NEW = "new"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"


class OptionType(str, Enum):
    MODIFIER = "modifier"
    SIDE = "side"
    DAILY_META = "daily_meta"


# new → preparing → ready → completed, cancel allowed before the food is ready
STATUS_TRANSITIONS = {
    OrderStatus.NEW: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {OrderStatus.READY, OrderStatus.CANCELLED},
    OrderStatus.READY: {OrderStatus.COMPLETED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_uuid)
    code = Column(String, nullable=False, unique=True, index=True)

    # Customer
    name = Column(String, nullable=False)
    phone = Column(String, nullable=False, index=True)
    email = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    # Money (whole forints)
    subtotal_huf = Column(Integer, nullable=False)
    discount_huf = Column(Integer, nullable=False, default=0)
    total_huf = Column(Integer, nullable=False)
    coupon_code = Column(String, nullable=True)

    status = Column(SQLEnum(OrderStatus, native_enum=False), nullable=False, default=OrderStatus.NEW)
    payment_method = Column(SQLEnum(PaymentMethod, native_enum=False), nullable=False)

    # Pickup: None = as soon as possible
    pickup_time = Column(DateTime(timezone=True), nullable=True)
    pickup_date = Column(String(10), nullable=True)
    pickup_timeslot = Column(String(5), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    items = relationship("OrderItem", back_populates="order", order_by="OrderItem.position")


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    item_id = Column(String(36), nullable=True)  # catalog id, kept even if the item is deleted later
    position = Column(Integer, nullable=False, default=0)

    name_snapshot = Column(String, nullable=False)
    qty = Column(Integer, nullable=False)
    unit_price_huf = Column(Integer, nullable=False)
    line_total_huf = Column(Integer, nullable=False)

    # Relationships
    order = relationship("Order", back_populates="items")
    options = relationship("OrderItemOption", back_populates="order_item")


class OrderItemOption(Base):
    __tablename__ = "order_item_options"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_item_id = Column(String(36), ForeignKey("order_items.id"), nullable=False, index=True)
    option_type = Column(SQLEnum(OptionType, native_enum=False), nullable=False)
    label_snapshot = Column(String, nullable=False)
    price_delta_huf = Column(Integer, nullable=False, default=0)
    side_item_id = Column(String(36), nullable=True)

    # Relationships
    order_item = relationship("OrderItem", back_populates="options")
