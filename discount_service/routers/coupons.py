
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from discount_service.database import get_db
from discount_service.logger import get_logger
from discount_service.schemas.coupon import (
    CouponCreate, CouponUpdate, CouponResponse, CouponFilter, PagedResult
)
from discount_service.services.coupon_service import CouponService, to_response

logger = get_logger("routers.coupons")

router = APIRouter(prefix="/api/coupons", tags=["coupons"])


@router.post("", response_model=CouponResponse, status_code=201)
def create_coupon(coupon: CouponCreate, db: Session = Depends(get_db)):
    logger.info("Creating new coupon for product: %r", coupon.product_name)
    created = CouponService.create_coupon(db, coupon)
    return to_response(created)


@router.get("", response_model=PagedResult[CouponResponse])
def list_coupons(
    filters: CouponFilter = Depends(),
    page_number: int = 1,
    page_size: int = 10,
    db: Session = Depends(get_db),
):
    logger.info("Listing coupons - page %s, size %s", page_number, page_size)
    coupons, total = CouponService.get_coupons(db, filters, page_number, page_size)
    return PagedResult[CouponResponse].build(
        [to_response(c) for c in coupons], total, max(page_number, 1), min(max(page_size, 1), 500)
    )


@router.get("/{coupon_id}", response_model=CouponResponse)
def get_coupon(coupon_id: int, db: Session = Depends(get_db)):
    c = CouponService.get_coupon_or_404(db, coupon_id)
    CouponService.refresh_statuses(db, [c])
    return to_response(c)


@router.put("/{coupon_id}", response_model=CouponResponse)
def update_coupon(coupon_id: int, payload: CouponUpdate, db: Session = Depends(get_db)):
    logger.info("Updating coupon %s", coupon_id)
    updated = CouponService.update_coupon(db, coupon_id, payload)
    return to_response(updated)


@router.delete("/{coupon_id}", status_code=204)
def delete_coupon(coupon_id: int, db: Session = Depends(get_db)):
    logger.info("Deleting coupon %s", coupon_id)
    ok = CouponService.delete_coupon(db, coupon_id)
    if not ok:
        raise HTTPException(status_code=404, detail=f"Coupon with ID {coupon_id} not found")
    return


@router.post("/{coupon_id}/disable", response_model=CouponResponse)
def disable_coupon(coupon_id: int, db: Session = Depends(get_db)):
    return to_response(CouponService.disable_coupon(db, coupon_id))


@router.post("/{coupon_id}/enable", response_model=CouponResponse)
def enable_coupon(coupon_id: int, db: Session = Depends(get_db)):
    return to_response(CouponService.enable_coupon(db, coupon_id))
