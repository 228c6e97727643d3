import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, Enum, ForeignKey, Index
)
from sqlalchemy.orm import relationship

from discount_service.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DiscountType(str, enum.Enum):
    FIXED = "Fixed"
    PERCENTAGE = "Percentage"
    COMBINED = "Combined"


class CouponStatus(str, enum.Enum):
    ACTIVE = "Active"
    EXPIRED = "Expired"
    DISABLED = "Disabled"
    UPCOMING_ACTIVE = "UpcomingActive"


class DiscountScope(str, enum.Enum):
    PRODUCT = "Product"
    CATEGORY = "Category"
    CART = "Cart"
    GLOBAL = "Global"


class CampaignType(str, enum.Enum):
    NONE = "None"
    BLACK_FRIDAY = "BlackFriday"
    SEASONAL_SALES = "SeasonalSales"
    FLASH_SALE = "FlashSale"
    HOLIDAY = "Holiday"
    CLEARANCE = "Clearance"
    CUSTOM = "Custom"


DEFAULT_MAX_STACK_PERCENTAGE = 30.0


def _enum_values(enum_cls):
    # Persist "Percentage" rather than "PERCENTAGE"
    return [member.value for member in enum_cls]


# Column defaults only fire on INSERT; mirror them for objects that never reach the database
_COUPON_DEFAULTS = {
    "product_name": "",
    "product_id": "",
    "description": "",
    "type": DiscountType.FIXED,
    "amount": 0.0,
    "percentage_discount": 0.0,
    "is_stackable": True,
    "max_stack_percentage": DEFAULT_MAX_STACK_PERCENTAGE,
    "priority": 0,
    "status": CouponStatus.ACTIVE,
    "scope": DiscountScope.PRODUCT,
    "campaign_type": CampaignType.NONE,
    "is_tiered": False,
    "is_automatic": False,
    "minimum_purchase_amount": 0.0,
    "max_usage_count": 0,
    "current_usage_count": 0,
}

_TIER_DEFAULTS = {
    "min_amount": 0.0,
    "percentage_discount": 0.0,
    "fixed_discount": 0.0,
    "order": 0,
}


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, index=True)
    product_name = Column(String(255), nullable=False, default="", index=True)
    product_id = Column(String(64), nullable=False, default="", index=True)
    description = Column(String(500), nullable=False, default="")

    type = Column(Enum(DiscountType, name="discount_type", values_callable=_enum_values), nullable=False, default=DiscountType.FIXED)
    amount = Column(Float, nullable=False, default=0.0)
    percentage_discount = Column(Float, nullable=False, default=0.0)
    coupon_code = Column(String(64), nullable=True, index=True)

    # Stacking
    is_stackable = Column(Boolean, nullable=False, default=True)
    max_stack_percentage = Column(Float, nullable=False, default=DEFAULT_MAX_STACK_PERCENTAGE)
    priority = Column(Integer, nullable=False, default=0)

    # Lifecycle
    status = Column(Enum(CouponStatus, name="coupon_status", values_callable=_enum_values), nullable=False, default=CouponStatus.ACTIVE, index=True)
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    minimum_purchase_amount = Column(Float, nullable=False, default=0.0)
    max_usage_count = Column(Integer, nullable=False, default=0)       # 0 = unlimited
    current_usage_count = Column(Integer, nullable=False, default=0)

    # Contextual rules
    scope = Column(Enum(DiscountScope, name="discount_scope", values_callable=_enum_values), nullable=False, default=DiscountScope.PRODUCT)
    applicable_categories = Column(String(500), nullable=True)           # comma-separated
    campaign_type = Column(Enum(CampaignType, name="campaign_type", values_callable=_enum_values), nullable=False, default=CampaignType.NONE)
    is_tiered = Column(Boolean, nullable=False, default=False)
    is_automatic = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    tiers = relationship(
        "DiscountTier",
        back_populates="coupon",
        cascade="all, delete-orphan",
        order_by="DiscountTier.order",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_coupons_product", "product_id", "product_name"),
    )

    def __init__(self, **kwargs):
        for key, value in _COUPON_DEFAULTS.items():
            kwargs.setdefault(key, value)
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return f"<Coupon id={self.id} code={self.coupon_code!r} type={self.type}>"


class DiscountTier(Base):
    __tablename__ = "discount_tiers"

    id = Column(Integer, primary_key=True, index=True)
    coupon_id = Column(Integer, ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False, index=True)
    min_amount = Column(Float, nullable=False, default=0.0)             # inclusive
    max_amount = Column(Float, nullable=True)                           # exclusive, NULL = no upper bound
    percentage_discount = Column(Float, nullable=False, default=0.0)
    fixed_discount = Column(Float, nullable=False, default=0.0)
    order = Column(Integer, nullable=False, default=0)

    coupon = relationship("Coupon", back_populates="tiers")

    def __init__(self, **kwargs):
        for key, value in _TIER_DEFAULTS.items():
            kwargs.setdefault(key, value)
        super().__init__(**kwargs)
