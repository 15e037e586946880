"""
Order API endpoints - submission, customer lookup, status changes
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ordering.database import get_db
from ordering.models.order import Order
from ordering.schemas import OrderRequest, OrderStatusUpdate, OrderSubmitResponse
from ordering.services.order_service import (
    change_status,
    lookup_customer_order,
    order_submission_service,
)
from ordering.utils.helpers import to_local

router = APIRouter()


def _order_detail(order: Order) -> dict:
    return {
        "code": order.code,
        "name": order.name,
        "status": order.status.value,
        "payment_method": order.payment_method.value,
        "pickup_time": to_local(order.pickup_time).isoformat() if order.pickup_time else None,
        "pickup_date": order.pickup_date,
        "pickup_timeslot": order.pickup_timeslot,
        "subtotal_huf": order.subtotal_huf,
        "discount_huf": order.discount_huf,
        "total_huf": order.total_huf,
        "coupon_code": order.coupon_code,
        "items": [
            {
                "item_id": item.item_id,
                "name_snapshot": item.name_snapshot,
                "qty": item.qty,
                "unit_price_huf": item.unit_price_huf,
                "line_total_huf": item.line_total_huf,
                "options": [
                    {
                        "option_type": option.option_type.value,
                        "label_snapshot": option.label_snapshot,
                        "price_delta_huf": option.price_delta_huf,
                    }
                    for option in item.options
                ],
            }
            for item in order.items
        ],
    }


@router.post("/", response_model=OrderSubmitResponse)
async def submit_order(
    data: OrderRequest,
    db: AsyncSession = Depends(get_db),
):
    """Validate, price, reserve and store an order"""
    result = await order_submission_service.submit(db, data)
    return OrderSubmitResponse(
        order_code=result.order_code,
        total_huf=result.total_huf,
        loyalty_reward=result.loyalty_reward,
    )


@router.get("/lookup")
async def lookup_order(
    code: str = Query(..., min_length=1),
    phone: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
):
    """Customer-facing lookup; code and phone must both match"""
    order = await lookup_customer_order(db, code, phone)
    return _order_detail(order)


@router.patch("/{code}/status")
async def update_order_status(
    code: str,
    data: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Staff status change (new → preparing → ready → completed, or cancelled)"""
    order = await change_status(db, code, data.status)
    return {"code": order.code, "status": order.status.value}
