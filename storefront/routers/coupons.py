# storefront/routers/coupons.py
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from storefront.core.auth import require_admin
from storefront.database import get_session
from storefront.routers.deps import coupon_service as service
from storefront.schemas.common import ApiResponse, ok
from storefront.schemas.coupon import CouponCreate, CouponRead

router = APIRouter(
    prefix="/coupons",
    tags=["Admin - Coupons"],
    dependencies=[Depends(require_admin)],
)


@router.get("", response_model=ApiResponse[list[CouponRead]])
def list_coupons(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    session: Session = Depends(get_session),
):
    return ok(service.list_coupons(session, skip=skip, limit=limit), "Coupons retrieved")


@router.post("", response_model=ApiResponse[CouponRead], status_code=201)
def create_coupon(
    payload: CouponCreate,
    session: Session = Depends(get_session),
):
    return ok(service.create_coupon(session, payload), "Coupon created")
