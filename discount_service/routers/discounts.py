from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime, timezone

from discount_service.database import get_db
from discount_service.logger import get_logger
from discount_service.models.coupon import CampaignType, DiscountScope, DiscountType
from discount_service.schemas.coupon import CouponResponse, PagedResult
from discount_service.schemas.discount import (
    ApplyDiscountRequest, ApplyDiscountResponse, AppliedDiscountDetail,
    ProductDiscountsResponse, ValidateCouponResponse
)
from discount_service.services import coupon_rules
from discount_service.services.coupon_service import CouponService, to_response
from discount_service.services.discount_calculator import (
    DiscountCalculator, DiscountResult, D, round2
)

logger = get_logger("routers.discounts")

router = APIRouter(prefix="/api/discounts", tags=["discounts"])


def money(value: float) -> float:
    return float(round2(D(value)))


def build_apply_response(original_price: float, result: DiscountResult) -> ApplyDiscountResponse:
    percentage = (result.total_discount / original_price) * 100 if original_price > 0 else 0.0
    return ApplyDiscountResponse(
        total_discount=money(result.total_discount),
        final_price=money(result.final_price),
        original_price=money(original_price),
        discount_percentage=money(percentage),
        applied_discounts=[
            AppliedDiscountDetail(
                description=d.description,
                discount_amount=money(d.discount_amount),
                type=d.type.value,
                coupon_code=d.coupon_code,
            )
            for d in result.applied_discounts
        ],
        warning_message=result.warning_message,
        warnings=list(result.warnings),
    )


def _require_positive_price(price: float) -> None:
    if price <= 0:
        raise HTTPException(status_code=400, detail="Original price must be greater than zero")


@router.post("/apply", response_model=ApplyDiscountResponse)
def apply_discount(request: ApplyDiscountRequest, db: Session = Depends(get_db)):
    logger.info(
        "Applying discount for product %r, price %s, codes %s",
        request.product_id, request.original_price, ",".join(request.coupon_codes or []),
    )
    _require_positive_price(request.original_price)

    coupons = CouponService.find_for_product(db, request.product_id, request.product_name)
    if not coupons:
        raise HTTPException(status_code=404, detail="No discounts found for this product")

    result = DiscountCalculator.calculate_discount(
        request.original_price, coupons, request.coupon_codes, request.categories
    )
    logger.info(
        "Discount applied: total=%s final=%s count=%s",
        result.total_discount, result.final_price, len(result.applied_discounts),
    )
    return build_apply_response(request.original_price, result)


@router.post("/calculate-best", response_model=ApplyDiscountResponse)
def calculate_best_discount(request: ApplyDiscountRequest, db: Session = Depends(get_db)):
    logger.info("Calculating best discount for product %r, price %s", request.product_id, request.original_price)
    _require_positive_price(request.original_price)

    coupons = CouponService.find_for_product(db, request.product_id, request.product_name)
    if not coupons:
        return ApplyDiscountResponse(
            total_discount=0.0,
            final_price=money(request.original_price),
            original_price=money(request.original_price),
            discount_percentage=0.0,
            warning_message="No discounts available",
            warnings=["No discounts available"],
        )

    CouponService.refresh_statuses(db, coupons)
    result = DiscountCalculator.calculate_discount(
        request.original_price, coupons, request.coupon_codes, request.categories
    )
    return build_apply_response(request.original_price, result)


@router.get("/validate/{code}", response_model=ValidateCouponResponse)
def validate_coupon(
    code: str,
    purchase_amount: Optional[float] = None,
    categories: Optional[str] = None,
    db: Session = Depends(get_db),
):
    logger.info("Validating coupon code: %r", code)
    if not code.strip():
        raise HTTPException(status_code=400, detail="Coupon code is required")

    coupon = CouponService.find_by_code(db, code)
    if coupon is None:
        return ValidateCouponResponse(
            is_valid=False,
            validation_message="Coupon code not found",
            validation_errors=["COUPON_NOT_FOUND"],
        )

    CouponService.refresh_statuses(db, [coupon])
    now = datetime.now(timezone.utc)

    if not coupon_rules.is_valid(coupon, now):
        return ValidateCouponResponse(
            is_valid=False,
            validation_message="Coupon is not valid",
            validation_errors=coupon_rules.validation_errors(coupon, now),
        )

    if purchase_amount is not None and purchase_amount < coupon.minimum_purchase_amount:
        return ValidateCouponResponse(
            is_valid=False,
            coupon=to_response(coupon, now),
            validation_message=f"Minimum purchase amount of {coupon.minimum_purchase_amount:g} required",
            validation_errors=["MINIMUM_PURCHASE_NOT_MET"],
        )

    category_list = coupon_rules.parse_categories(categories)
    if category_list and coupon.scope == DiscountScope.CATEGORY:
        if not any(coupon_rules.is_applicable_to_category(coupon, cat) for cat in category_list):
            return ValidateCouponResponse(
                is_valid=False,
                coupon=to_response(coupon, now),
                validation_message="Coupon not applicable to specified categories",
                validation_errors=["CATEGORY_NOT_APPLICABLE"],
            )

    logger.info("Coupon %r validated successfully", code)
    return ValidateCouponResponse(
        is_valid=True,
        coupon=to_response(coupon, now),
        validation_message="Coupon is valid",
    )


def _headline_value(coupon) -> float:
    if coupon.type == DiscountType.PERCENTAGE:
        return coupon.percentage_discount
    return coupon.amount


@router.get("/product/{product_id}", response_model=ProductDiscountsResponse)
def get_product_discounts(product_id: str, include_code_based: bool = True, db: Session = Depends(get_db)):
    logger.info("Getting discounts for product: %r", product_id)
    all_coupons = CouponService.find_for_product(db, product_id, product_id)
    if not all_coupons:
        raise HTTPException(status_code=404, detail="No discounts found for this product")

    CouponService.refresh_statuses(db, all_coupons)
    now = datetime.now(timezone.utc)
    valid = [c for c in all_coupons if coupon_rules.is_valid(c, now)]

    automatic = [c for c in valid if not c.coupon_code or c.is_automatic]
    code_based = [c for c in valid if c.coupon_code and not c.is_automatic] if include_code_based else []
    best = max(automatic, key=_headline_value) if automatic else None

    logger.info("Found %s discounts for product %r", len(automatic) + len(code_based), product_id)
    return ProductDiscountsResponse(
        product_id=product_id,
        product_name=all_coupons[0].product_name or product_id,
        available_discounts=[to_response(c, now) for c in automatic + code_based],
        best_automatic_discount=to_response(best, now) if best is not None else None,
        automatic_discount_count=len(automatic),
        code_based_discount_count=len(code_based),
    )


@router.get("/code/{code}", response_model=CouponResponse)
def get_discount_by_code(code: str, db: Session = Depends(get_db)):
    logger.info("Getting discount by code: %r", code)
    coupon = CouponService.find_by_code(db, code)
    if coupon is None:
        raise HTTPException(status_code=404, detail="Coupon not found")
    CouponService.refresh_statuses(db, [coupon])
    return to_response(coupon)


@router.get("/campaigns", response_model=PagedResult[CouponResponse])
def get_active_campaigns(campaign_type: Optional[CampaignType] = None, db: Session = Depends(get_db)):
    logger.info("Getting active campaigns, type: %s", campaign_type.value if campaign_type else "any")
    campaigns = CouponService.get_automatic_campaigns(db, campaign_type)
    CouponService.refresh_statuses(db, campaigns)

    now = datetime.now(timezone.utc)
    items: List[CouponResponse] = [
        to_response(c, now) for c in campaigns
        if coupon_rules.is_automatic_campaign(c) and coupon_rules.is_valid(c, now)
    ]
    logger.info("Found %s active campaigns", len(items))
    return PagedResult[CouponResponse].build(items, len(items), 1, len(items))
