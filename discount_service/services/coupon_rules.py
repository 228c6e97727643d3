"""
Validity, scope and tier predicates for coupons.

These are plain functions over coupon state so the calculator and the HTTP
layer share one definition of "eligible". Only ``refresh_status`` mutates a
coupon; it is the caller's job to run it before handing coupons to the
calculator.
"""
from datetime import datetime, timezone
from typing import List, Optional

from discount_service.models.coupon import (
    CampaignType, Coupon, CouponStatus, DiscountScope, DiscountTier
)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _now(now: Optional[datetime]) -> datetime:
    return as_utc(now) if now is not None else datetime.now(timezone.utc)


def _not_started(coupon: Coupon, now: datetime) -> bool:
    return coupon.start_date is not None and now < as_utc(coupon.start_date)


def _ended(coupon: Coupon, now: datetime) -> bool:
    return coupon.end_date is not None and now > as_utc(coupon.end_date)


def _usage_exhausted(coupon: Coupon) -> bool:
    return coupon.max_usage_count > 0 and coupon.current_usage_count >= coupon.max_usage_count


def is_valid(coupon: Coupon, now: Optional[datetime] = None) -> bool:
    """Whether the coupon may take part in a calculation at ``now``.

    Both ends of the validity window are inclusive.
    """
    now = _now(now)
    if coupon.status != CouponStatus.ACTIVE:
        return False
    if _not_started(coupon, now) or _ended(coupon, now):
        return False
    return not _usage_exhausted(coupon)


def validation_errors(coupon: Coupon, now: Optional[datetime] = None) -> List[str]:
    """Machine-readable reasons why ``is_valid`` rejects the coupon."""
    now = _now(now)
    errors = []
    if coupon.status != CouponStatus.ACTIVE:
        status = CouponStatus(coupon.status)
        errors.append(f"COUPON_STATUS_{status.value.upper()}")
    if _ended(coupon, now):
        errors.append("COUPON_EXPIRED")
    if _not_started(coupon, now):
        errors.append("COUPON_NOT_STARTED")
    if _usage_exhausted(coupon):
        errors.append("COUPON_MAX_USAGE_REACHED")
    return errors


def refresh_status(coupon: Coupon, now: Optional[datetime] = None) -> CouponStatus:
    """Recompute the cached status from dates and usage. Disabled is sticky."""
    now = _now(now)
    if coupon.status == CouponStatus.DISABLED:
        return coupon.status

    if _ended(coupon, now) or _usage_exhausted(coupon):
        coupon.status = CouponStatus.EXPIRED
    elif _not_started(coupon, now):
        coupon.status = CouponStatus.UPCOMING_ACTIVE
    else:
        coupon.status = CouponStatus.ACTIVE
    return coupon.status


def parse_categories(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def is_applicable_to_category(coupon: Coupon, category: Optional[str]) -> bool:
    if coupon.scope in (DiscountScope.GLOBAL, DiscountScope.CART, DiscountScope.PRODUCT):
        return True
    if coupon.scope != DiscountScope.CATEGORY:
        return False

    if not category or not coupon.applicable_categories:
        return False
    allowed = {c.lower() for c in parse_categories(coupon.applicable_categories)}
    return category.strip().lower() in allowed


def tier_is_applicable(tier: DiscountTier, amount: float) -> bool:
    if amount < tier.min_amount:
        return False
    if tier.max_amount is not None and amount >= tier.max_amount:
        return False
    return True


def get_applicable_tier(coupon: Coupon, amount: float) -> Optional[DiscountTier]:
    if not coupon.is_tiered or not coupon.tiers:
        return None
    matching = [t for t in coupon.tiers if tier_is_applicable(t, amount)]
    if not matching:
        return None
    # min() keeps the first of equal orders
    return min(matching, key=lambda t: t.order)


def is_automatic_campaign(coupon: Coupon) -> bool:
    return bool(coupon.is_automatic) and coupon.campaign_type != CampaignType.NONE
