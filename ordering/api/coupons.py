"""
Coupon API endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ordering.database import get_db
from ordering.schemas import CouponPreviewRequest, CouponPreviewResponse
from ordering.services.coupons import normalize_code, preview_discount

router = APIRouter()


@router.post("/validate", response_model=CouponPreviewResponse)
async def validate_coupon(
    data: CouponPreviewRequest,
    db: AsyncSession = Depends(get_db),
):
    """Check a code against a cart total without using it up"""
    discount = await preview_discount(db, data.code, data.total_huf)
    return CouponPreviewResponse(
        code=normalize_code(data.code),
        discount_huf=discount,
        total_after_discount_huf=data.total_huf - discount,
    )
