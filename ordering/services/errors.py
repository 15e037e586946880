"""
Order pipeline errors.

Each failure is a subclass of one category, and each category carries the
HTTP status the API answers with. Routers don't catch these; the
exception handler in main.py turns them into {"error": message}.
"""


class OrderError(Exception):
    status_code = 500
    default_message = "Unexpected error while processing the order"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ──── Categories ────

class ValidationError(OrderError):
    status_code = 400
    default_message = "Invalid order request"


class CatalogError(OrderError):
    status_code = 404
    default_message = "Menu item not available"


class InventoryError(OrderError):
    status_code = 409
    default_message = "Daily item not available"


class CapacityError(OrderError):
    status_code = 409
    default_message = "Pickup time not available"


class CouponError(OrderError):
    status_code = 400
    default_message = "Coupon cannot be applied"


class ConsistencyError(OrderError):
    status_code = 400
    default_message = "Cart is inconsistent"


class PersistenceError(OrderError):
    status_code = 500
    default_message = "Failed to save the order"


# ──── Validation ────

class MissingCustomerInfo(ValidationError):
    default_message = "Missing required customer details"


class EmptyCart(ValidationError):
    default_message = "The cart is empty"


class InvalidCartItem(ValidationError):
    default_message = "Invalid cart item"


class SideSelectionInvalid(ValidationError):
    default_message = "Invalid side dish selection"


class InvalidPickupTime(ValidationError):
    default_message = "Invalid pickup time"


class PickupInPast(ValidationError):
    default_message = "Pickup time cannot be in the past"


class InvalidStatusTransition(ValidationError):
    status_code = 409
    default_message = "Order status cannot be changed this way"


# ──── Catalog ────

class ItemNotFound(CatalogError):
    default_message = "Menu item not found"


class ItemInactive(CatalogError):
    status_code = 400
    default_message = "Menu item is no longer available"


class DailyItemNotFound(CatalogError):
    default_message = "Daily item not found"


class OrderNotFound(CatalogError):
    default_message = "Order not found"


# ──── Inventory ────

class InsufficientPortions(InventoryError):
    default_message = "Not enough portions left"


class ItemExpired(InventoryError):
    status_code = 400
    default_message = "This daily item is no longer orderable"


# ──── Capacity ────

class SlotFull(CapacityError):
    default_message = "This pickup time filled up meanwhile, please choose another"


class OutsideBusinessHours(CapacityError):
    status_code = 400
    default_message = "The selected pickup time is outside opening hours"


# ──── Coupons ────

class CouponNotFound(CouponError):
    status_code = 404
    default_message = "Unknown coupon code"


class CouponExpired(CouponError):
    default_message = "This coupon is not valid at the moment"


class CouponExhausted(CouponError):
    status_code = 409
    default_message = "This coupon has been used up"


class MinimumOrderNotMet(CouponError):
    default_message = "Order total is below the coupon minimum"


# ──── Consistency ────

class MultipleDailyDates(ConsistencyError):
    default_message = "Daily items from different days cannot be ordered together"


class DailyDateMismatch(ConsistencyError):
    default_message = "Daily items can only be picked up on their own day"
