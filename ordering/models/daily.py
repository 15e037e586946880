"""
Daily items - offerings valid for one calendar date with a finite portion pool.

remaining_portions is only ever decremented through
ordering.services.inventory (a guarded UPDATE), never read-then-written.
"""
import uuid

from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey, CheckConstraint, func
from sqlalchemy.orm import relationship
from ordering.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class DailyOffer(Base):
    """Daily offer (napi ajánlat) - one dish for a given day"""
    __tablename__ = "daily_offers"
    __table_args__ = (
        CheckConstraint(
            "remaining_portions >= 0 AND remaining_portions <= max_portions",
            name="ck_daily_offers_portions",
        ),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    date = Column(Date, nullable=False, index=True)
    price_huf = Column(Integer, nullable=True)
    max_portions = Column(Integer, nullable=False, default=0)
    remaining_portions = Column(Integer, nullable=False, default=0)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    # Relationships
    menu = relationship("DailyOfferMenu", back_populates="daily_offer", uselist=False)


class DailyMenu(Base):
    """Daily menu (soup + main) sold as one unit"""
    __tablename__ = "daily_menus"
    __table_args__ = (
        CheckConstraint(
            "remaining_portions >= 0 AND remaining_portions <= max_portions",
            name="ck_daily_menus_portions",
        ),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    date = Column(Date, nullable=False, index=True)
    price_huf = Column(Integer, nullable=True)
    max_portions = Column(Integer, nullable=False, default=0)
    remaining_portions = Column(Integer, nullable=False, default=0)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class DailyOfferMenu(Base):
    """Complete menu built on top of a daily offer; takes its date from the offer"""
    __tablename__ = "daily_offer_menus"
    __table_args__ = (
        CheckConstraint(
            "remaining_portions >= 0 AND remaining_portions <= max_portions",
            name="ck_daily_offer_menus_portions",
        ),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    daily_offer_id = Column(String(36), ForeignKey("daily_offers.id"), nullable=False, unique=True)
    menu_price_huf = Column(Integer, nullable=False)
    max_portions = Column(Integer, nullable=False, default=0)
    remaining_portions = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    daily_offer = relationship("DailyOffer", back_populates="menu")
