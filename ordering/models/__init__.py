from ordering.models.menu import MenuItem, ItemModifier, ItemModifierOption, MenuItemSide
from ordering.models.daily import DailyOffer, DailyMenu, DailyOfferMenu
from ordering.models.capacity import CapacitySlot
from ordering.models.coupon import Coupon, DiscountType
from ordering.models.order import Order, OrderItem, OrderItemOption, OrderStatus, PaymentMethod, OptionType
from ordering.models.loyalty import CustomerLoyalty, LoyaltyTier

__all__ = [
    "MenuItem",
    "ItemModifier",
    "ItemModifierOption",
    "MenuItemSide",
    "DailyOffer",
    "DailyMenu",
    "DailyOfferMenu",
    "CapacitySlot",
    "Coupon",
    "DiscountType",
    "Order",
    "OrderItem",
    "OrderItemOption",
    "OrderStatus",
    "PaymentMethod",
    "OptionType",
    "CustomerLoyalty",
    "LoyaltyTier",
]
