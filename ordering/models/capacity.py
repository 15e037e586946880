"""
Capacity slot model - how many orders may be picked up in a (date, time) bucket
"""
import uuid

from sqlalchemy import Column, Integer, String, Date, CheckConstraint, UniqueConstraint
from ordering.database import Base


class CapacitySlot(Base):
    __tablename__ = "capacity_slots"
    __table_args__ = (
        UniqueConstraint("date", "timeslot", name="uq_capacity_slots_date_timeslot"),
        CheckConstraint(
            "booked_orders >= 0 AND booked_orders <= max_orders",
            name="ck_capacity_slots_booked",
        ),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    date = Column(Date, nullable=False, index=True)
    timeslot = Column(String(5), nullable=False)  # "HH:MM", restaurant local time
    max_orders = Column(Integer, nullable=False, default=8)
    booked_orders = Column(Integer, nullable=False, default=0)
