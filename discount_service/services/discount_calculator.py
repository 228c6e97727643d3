
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import List, NamedTuple, Optional, Sequence, Tuple

from discount_service.logger import get_logger
from discount_service.models.coupon import Coupon, DiscountScope, DiscountType
from discount_service.services import coupon_rules

logger = get_logger("services.discount_calculator")

INVALID_PRICE_WARNING = "Invalid original price"
NO_APPLICABLE_WARNING = "No applicable coupons found"
PRICE_CAP_WARNING = "Discount amount capped at current price to prevent negative values"


def D(x) -> Decimal:
    return Decimal(str(x))


def round2(x: Decimal) -> Decimal:
    return x.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def non_stackable_warning(description: str) -> str:
    return f"Only one discount applied: {description} is not stackable with other discounts"


def stacking_limit_warning(cap: float) -> str:
    return f"Maximum stacking limit of {cap:g}% reached. Some discounts were not fully applied."


class AppliedDiscountInfo(NamedTuple):
    description: str
    discount_amount: float
    type: DiscountType
    coupon_code: Optional[str] = None


class _DiscountTotals(NamedTuple):
    total_discount: float
    final_price: float
    applied_discounts: List[AppliedDiscountInfo]
    warning_message: Optional[str]


class DiscountResult(_DiscountTotals):
    """Four-field result; every warning raised is kept on ``warnings``."""

    def __new__(cls, total_discount, final_price, applied_discounts, warning_message, warnings=None):
        self = super().__new__(cls, total_discount, final_price, applied_discounts, warning_message)
        self._warnings = tuple(warnings) if warnings is not None else None
        return self

    @property
    def warnings(self) -> Tuple[str, ...]:
        # _make/_replace skip __new__
        stored = self.__dict__.get("_warnings")
        if stored is not None:
            return stored
        return (self.warning_message,) if self.warning_message else ()


class DiscountCalculator:
    """Applies a batch of coupons to a single price.

    Stateless: nothing is read from or written to the coupons beyond their
    attributes, so one instance (or none, the methods are static) can be
    shared by every request.
    """

    @staticmethod
    def calculate_discount(
        original_price: float,
        coupons: Optional[Sequence[Coupon]],
        requested_coupon_codes: Optional[Sequence[str]] = None,
        categories: Optional[Sequence[str]] = None,
        now: Optional[datetime] = None,
    ) -> DiscountResult:
        if original_price <= 0:
            return DiscountResult(0.0, original_price, [], INVALID_PRICE_WARNING, (INVALID_PRICE_WARNING,))

        if not coupons:
            return DiscountResult(0.0, original_price, [], None)

        now = now or datetime.now(timezone.utc)
        applicable = DiscountCalculator.filter_coupons(
            coupons, requested_coupon_codes, original_price, categories, now
        )
        if not applicable:
            return DiscountResult(0.0, original_price, [], NO_APPLICABLE_WARNING, (NO_APPLICABLE_WARNING,))

        ordered = DiscountCalculator.order_coupons(applicable)
        warnings: List[str] = []

        non_stackable = next((c for c in ordered if not c.is_stackable), None)
        if non_stackable is not None and len(ordered) > 1:
            warnings.append(non_stackable_warning(non_stackable.description))
            ordered = [non_stackable]

        applied: List[AppliedDiscountInfo] = []
        current_price = original_price
        total_percentage = 0.0

        for coupon in ordered:
            discount_amount, percentage_used = DiscountCalculator.calculate_single_discount(
                coupon, current_price, original_price
            )
            total_percentage += percentage_used

            if total_percentage > coupon.max_stack_percentage:
                warnings.append(stacking_limit_warning(coupon.max_stack_percentage))
                remaining = coupon.max_stack_percentage - (total_percentage - percentage_used)
                if remaining > 0 and coupon.type != DiscountType.FIXED:
                    discount_amount = current_price * (remaining / 100.0)
                    total_percentage = coupon.max_stack_percentage
                    logger.debug("Coupon %s limited to remaining %s%%", coupon.id, remaining)
                else:
                    logger.debug("Coupon %s skipped: stacking limit reached", coupon.id)
                    continue

            if discount_amount > current_price:
                warnings.append(PRICE_CAP_WARNING)
                discount_amount = current_price

            applied.append(AppliedDiscountInfo(
                coupon.description, discount_amount, DiscountType(coupon.type), coupon.coupon_code
            ))
            current_price -= discount_amount

            if current_price < 0:
                current_price = 0.0
                break

        total_discount = original_price - current_price
        return DiscountResult(
            total_discount,
            current_price,
            applied,
            warnings[-1] if warnings else None,
            tuple(warnings),
        )

    @staticmethod
    def filter_coupons(
        coupons: Sequence[Coupon],
        requested_codes: Optional[Sequence[str]],
        purchase_amount: float,
        categories: Optional[Sequence[str]],
        now: datetime,
    ) -> List[Coupon]:
        candidates = [c for c in coupons if coupon_rules.is_valid(c, now)]
        candidates = [c for c in candidates if purchase_amount >= c.minimum_purchase_amount]

        if categories:
            candidates = [c for c in candidates if DiscountCalculator._matches_categories(c, categories)]

        automatic = [c for c in candidates if not c.coupon_code or c.is_automatic]
        if not requested_codes:
            return automatic

        result = list(automatic)
        for code in requested_codes:
            result.extend(
                c for c in candidates
                if c.coupon_code and c.coupon_code.lower() == code.lower()
            )

        # De-duplicate by identity, keeping first occurrence
        seen = set()
        unique = []
        for coupon in result:
            if id(coupon) not in seen:
                seen.add(id(coupon))
                unique.append(coupon)
        return unique

    @staticmethod
    def _matches_categories(coupon: Coupon, categories: Sequence[str]) -> bool:
        if coupon.scope in (DiscountScope.GLOBAL, DiscountScope.CART, DiscountScope.PRODUCT):
            return True
        if coupon.scope == DiscountScope.CATEGORY:
            return any(coupon_rules.is_applicable_to_category(coupon, cat) for cat in categories)
        return False

    @staticmethod
    def order_coupons(coupons: Sequence[Coupon]) -> List[Coupon]:
        # sorted() is stable, so ties keep their input order
        return sorted(
            coupons,
            key=lambda c: (-c.priority, 0 if c.type == DiscountType.PERCENTAGE else 1),
        )

    @staticmethod
    def calculate_single_discount(
        coupon: Coupon, current_price: float, original_price: float
    ) -> Tuple[float, float]:
        """Return ``(amount, percentage_used)`` for one coupon.

        Tiers are chosen by the original price but applied to the running
        price. A tiered coupon with no matching tier contributes nothing.
        """
        if coupon.is_tiered:
            tier = coupon_rules.get_applicable_tier(coupon, original_price)
            if tier is None:
                return 0.0, 0.0
            amount = 0.0
            percentage_used = 0.0
            if tier.percentage_discount > 0:
                amount = current_price * (tier.percentage_discount / 100.0)
                percentage_used = tier.percentage_discount
            if tier.fixed_discount > 0:
                amount += tier.fixed_discount
            return amount, percentage_used

        if coupon.type == DiscountType.FIXED:
            return coupon.amount, 0.0
        if coupon.type == DiscountType.PERCENTAGE:
            return current_price * (coupon.percentage_discount / 100.0), coupon.percentage_discount
        if coupon.type == DiscountType.COMBINED:
            # Only the percentage part counts toward the stacking cap
            percentage_part = current_price * (coupon.percentage_discount / 100.0)
            return percentage_part + coupon.amount, coupon.percentage_discount
        return 0.0, 0.0
