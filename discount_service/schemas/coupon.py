from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import List, Optional, Generic, TypeVar
from datetime import datetime

from discount_service.models.coupon import (
    CampaignType, CouponStatus, DiscountScope, DiscountType, DEFAULT_MAX_STACK_PERCENTAGE
)

T = TypeVar("T")


# Tier schemas
class DiscountTierCreate(BaseModel):
    min_amount: float = Field(default=0, ge=0, description="Inclusive lower bound")
    max_amount: Optional[float] = Field(default=None, gt=0, description="Exclusive upper bound, null = no limit")
    percentage_discount: float = Field(default=0, ge=0, le=100)
    fixed_discount: float = Field(default=0, ge=0)
    order: int = 0

    @model_validator(mode="after")
    def check_bounds(self):
        if self.max_amount is not None and self.max_amount <= self.min_amount:
            raise ValueError("max_amount must be greater than min_amount")
        return self


class DiscountTierResponse(BaseModel):
    id: int
    min_amount: float
    max_amount: Optional[float] = None
    percentage_discount: float
    fixed_discount: float
    order: int

    model_config = ConfigDict(from_attributes=True)


# Request schemas
class CouponCreate(BaseModel):
    product_name: str = ""
    product_id: str = ""
    description: str = ""
    amount: float = Field(default=0, ge=0, description="Fixed currency amount")
    type: DiscountType = DiscountType.FIXED
    percentage_discount: float = Field(default=0, ge=0, le=100)
    coupon_code: Optional[str] = Field(default=None, description="Leave empty for automatic discounts")
    is_stackable: bool = True
    max_stack_percentage: float = Field(default=DEFAULT_MAX_STACK_PERCENTAGE, ge=0, le=100)
    priority: int = 0
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    minimum_purchase_amount: float = Field(default=0, ge=0)
    max_usage_count: int = Field(default=0, ge=0, description="0 = unlimited")
    scope: DiscountScope = DiscountScope.PRODUCT
    applicable_categories: Optional[str] = Field(default=None, description="Comma-separated category names")
    campaign_type: CampaignType = CampaignType.NONE
    is_automatic: bool = False
    is_tiered: bool = False
    tiers: List[DiscountTierCreate] = Field(default_factory=list)


class CouponUpdate(BaseModel):
    product_name: Optional[str] = None
    product_id: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[float] = Field(default=None, ge=0)
    type: Optional[DiscountType] = None
    percentage_discount: Optional[float] = Field(default=None, ge=0, le=100)
    coupon_code: Optional[str] = None
    is_stackable: Optional[bool] = None
    max_stack_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    priority: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    minimum_purchase_amount: Optional[float] = Field(default=None, ge=0)
    max_usage_count: Optional[int] = Field(default=None, ge=0)
    status: Optional[CouponStatus] = None
    scope: Optional[DiscountScope] = None
    applicable_categories: Optional[str] = None
    campaign_type: Optional[CampaignType] = None
    is_automatic: Optional[bool] = None
    is_tiered: Optional[bool] = None
    tiers: Optional[List[DiscountTierCreate]] = Field(default=None, description="Replaces all tiers when given")


class CouponFilter(BaseModel):
    status: Optional[CouponStatus] = None
    product_name: Optional[str] = None
    product_id: Optional[str] = None
    coupon_code: Optional[str] = None
    type: Optional[DiscountType] = None
    is_active: Optional[bool] = None
    start_date_from: Optional[datetime] = None
    start_date_to: Optional[datetime] = None
    end_date_from: Optional[datetime] = None
    end_date_to: Optional[datetime] = None


# Response schemas
class CouponResponse(BaseModel):
    id: int
    product_name: str
    product_id: str
    description: str
    amount: float
    type: DiscountType
    percentage_discount: float
    coupon_code: Optional[str] = None
    is_stackable: bool
    max_stack_percentage: float
    priority: int
    status: CouponStatus
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    minimum_purchase_amount: float
    max_usage_count: int
    current_usage_count: int
    scope: DiscountScope
    applicable_categories: Optional[str] = None
    campaign_type: CampaignType
    is_automatic: bool
    is_tiered: bool
    tiers: List[DiscountTierResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    is_currently_valid: bool = False

    model_config = ConfigDict(from_attributes=True)


class PagedResult(BaseModel, Generic[T]):
    items: List[T]
    total_count: int
    page_number: int
    page_size: int
    total_pages: int
    has_previous_page: bool
    has_next_page: bool

    @classmethod
    def build(cls, items: List[T], total_count: int, page_number: int, page_size: int):
        total_pages = -(-total_count // page_size) if page_size > 0 else 0
        return cls(
            items=items,
            total_count=total_count,
            page_number=page_number,
            page_size=page_size,
            total_pages=total_pages,
            has_previous_page=page_number > 1,
            has_next_page=page_number < total_pages,
        )
