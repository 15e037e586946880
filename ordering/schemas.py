"""
Request/response schemas for the order submission API
"""
from typing import List, Optional
from pydantic import BaseModel, Field

from ordering.models.order import PaymentMethod
from ordering.services.inventory import DailyKind


class CustomerInfo(BaseModel):
    name: str = ""
    phone: str = ""
    email: str = ""
    notes: Optional[str] = None


class ModifierSelection(BaseModel):
    label_snapshot: str
    price_delta_huf: int = 0
    option_id: Optional[str] = None


class SideSelection(BaseModel):
    id: str
    name: str
    price_huf: int = 0


class CartItem(BaseModel):
    item_id: str
    name_snapshot: str
    qty: int = Field(gt=0, le=100)
    unit_price_huf: int = 0
    daily_type: Optional[DailyKind] = None
    daily_date: Optional[str] = None
    daily_id: Optional[str] = None
    modifiers: List[ModifierSelection] = []
    sides: List[SideSelection] = []

    @property
    def is_daily(self) -> bool:
        return self.daily_type is not None


class OrderRequest(BaseModel):
    customer: CustomerInfo
    payment_method: PaymentMethod
    pickup_date: Optional[str] = None
    pickup_time_slot: Optional[str] = None
    pickup_time: Optional[str] = None  # legacy ISO timestamp
    coupon_code: Optional[str] = None
    items: List[CartItem] = []


class LoyaltyReward(BaseModel):
    coupon_code: str
    discount_type: str
    discount_value: int
    valid_until: Optional[str] = None
    order_count: int
    tier: str


class OrderSubmitResponse(BaseModel):
    success: bool = True
    order_code: str
    total_huf: int
    loyalty_reward: Optional[LoyaltyReward] = None


class OrderStatusUpdate(BaseModel):
    status: str


class CouponPreviewRequest(BaseModel):
    code: str
    total_huf: int = Field(ge=0)


class CouponPreviewResponse(BaseModel):
    code: str
    discount_huf: int
    total_after_discount_huf: int
