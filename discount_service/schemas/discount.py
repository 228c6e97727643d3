from pydantic import BaseModel, Field
from typing import List, Optional

from discount_service.schemas.coupon import CouponResponse


class ApplyDiscountRequest(BaseModel):
    product_id: str = ""
    product_name: str = ""
    original_price: float = Field(..., description="Price before discounts")
    coupon_codes: Optional[List[str]] = None
    categories: Optional[List[str]] = None


class AppliedDiscountDetail(BaseModel):
    description: str
    discount_amount: float
    type: str
    coupon_code: Optional[str] = None


class ApplyDiscountResponse(BaseModel):
    total_discount: float
    final_price: float
    original_price: float
    discount_percentage: float
    applied_discounts: List[AppliedDiscountDetail] = Field(default_factory=list)
    warning_message: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)


class ValidateCouponResponse(BaseModel):
    is_valid: bool
    coupon: Optional[CouponResponse] = None
    validation_message: Optional[str] = None
    validation_errors: List[str] = Field(default_factory=list)


class ProductDiscountsResponse(BaseModel):
    product_id: str
    product_name: str
    available_discounts: List[CouponResponse] = Field(default_factory=list)
    best_automatic_discount: Optional[CouponResponse] = None
    automatic_discount_count: int
    code_based_discount_count: int
