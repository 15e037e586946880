"""
Menu catalog models - permanent items, their modifiers and side dish rules.
Read-only to the order pipeline; prices here override anything the client sends.
"""
import uuid

from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey, DateTime, func
from sqlalchemy.orm import relationship
from ordering.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    price_huf = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())

    # Relationships
    modifiers = relationship("ItemModifier", back_populates="item")
    side_rules = relationship(
        "MenuItemSide", foreign_keys="MenuItemSide.main_item_id", back_populates="main_item"
    )


class ItemModifier(Base):
    """A modifier group on an item, e.g. 'Size' or 'Extras'"""
    __tablename__ = "item_modifiers"

    id = Column(String(36), primary_key=True, default=_uuid)
    item_id = Column(String(36), ForeignKey("menu_items.id"), nullable=True)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False, default="single")  # single, multiple
    sort = Column(Integer, nullable=False, default=0)

    # Relationships
    item = relationship("MenuItem", back_populates="modifiers")
    options = relationship("ItemModifierOption", back_populates="modifier")


class ItemModifierOption(Base):
    __tablename__ = "item_modifier_options"

    id = Column(String(36), primary_key=True, default=_uuid)
    modifier_id = Column(String(36), ForeignKey("item_modifiers.id"), nullable=True)
    label = Column(String, nullable=False)
    price_delta_huf = Column(Integer, nullable=False, default=0)
    is_default = Column(Boolean, nullable=False, default=False)
    sort = Column(Integer, nullable=False, default=0)

    # Relationships
    modifier = relationship("ItemModifier", back_populates="options")


class MenuItemSide(Base):
    """Links a main item to an allowed side dish (itself a menu item)"""
    __tablename__ = "menu_item_sides"

    id = Column(String(36), primary_key=True, default=_uuid)
    main_item_id = Column(String(36), ForeignKey("menu_items.id"), nullable=False, index=True)
    side_item_id = Column(String(36), ForeignKey("menu_items.id"), nullable=False)
    is_required = Column(Boolean, nullable=False, default=False)
    is_default = Column(Boolean, nullable=False, default=False)
    min_select = Column(Integer, nullable=False, default=0)
    max_select = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, server_default=func.now())

    # Relationships
    main_item = relationship("MenuItem", foreign_keys=[main_item_id], back_populates="side_rules")
    side_item = relationship("MenuItem", foreign_keys=[side_item_id])
