from datetime import datetime, timedelta, timezone

import pytest

from discount_service.models.coupon import (
    CampaignType, Coupon, CouponStatus, DiscountScope, DiscountTier, DiscountType
)
from discount_service.services.discount_calculator import (
    DiscountCalculator, NO_APPLICABLE_WARNING, PRICE_CAP_WARNING
)

NOW = datetime(2025, 11, 28, 12, 0, tzinfo=timezone.utc)


def calculate(price, coupons, codes=None, categories=None):
    return DiscountCalculator.calculate_discount(price, coupons, codes, categories, now=NOW)


def percentage(pct, **kwargs):
    kwargs.setdefault("description", f"{pct}% off")
    return Coupon(type=DiscountType.PERCENTAGE, percentage_discount=pct, **kwargs)


def fixed(amount, **kwargs):
    kwargs.setdefault("description", f"{amount} off")
    return Coupon(type=DiscountType.FIXED, amount=amount, **kwargs)


# Basic discount types

def test_single_percentage_coupon():
    """10% of 100 leaves 90"""
    total, final, applied, warning, _ = calculate(100.0, [percentage(10)])
    assert total == pytest.approx(10.0)
    assert final == pytest.approx(90.0)
    assert len(applied) == 1
    assert applied[0].type == DiscountType.PERCENTAGE
    assert warning is None


def test_single_fixed_coupon():
    result = calculate(100.0, [fixed(20)])
    assert result.total_discount == pytest.approx(20.0)
    assert result.final_price == pytest.approx(80.0)


def test_combined_coupon_applies_both_parts():
    coupon = Coupon(description="10% + 5", type=DiscountType.COMBINED, percentage_discount=10, amount=5)
    result = calculate(100.0, [coupon])
    assert result.total_discount == pytest.approx(15.0)
    assert result.final_price == pytest.approx(85.0)
    assert result.applied_discounts[0].discount_amount == pytest.approx(15.0)


# Ordering and stacking

def test_stackable_percentages_apply_in_priority_order():
    low = percentage(15, priority=1, description="low")
    high = percentage(10, priority=2, description="high")
    result = calculate(100.0, [low, high])

    assert [d.description for d in result.applied_discounts] == ["high", "low"]
    assert result.applied_discounts[1].discount_amount == pytest.approx(13.5)
    assert result.total_discount == pytest.approx(23.5)
    assert result.final_price == pytest.approx(76.5)


def test_percentage_applies_before_fixed_at_same_priority():
    flat = fixed(10, description="flat")
    pct = percentage(10, description="pct")
    result = calculate(100.0, [flat, pct])

    assert [d.description for d in result.applied_discounts] == ["pct", "flat"]
    assert result.total_discount == pytest.approx(20.0)


def test_equal_keys_keep_input_order():
    first = fixed(1, description="first")
    second = fixed(2, description="second")
    ordered = DiscountCalculator.order_coupons([first, second])
    assert ordered == [first, second]


def test_stacking_limit_caps_second_coupon():
    first = percentage(20, max_stack_percentage=30)
    second = percentage(15, max_stack_percentage=30)
    result = calculate(100.0, [first, second])

    assert result.applied_discounts[0].discount_amount == pytest.approx(20.0)
    assert result.applied_discounts[1].discount_amount == pytest.approx(8.0)
    assert result.total_discount == pytest.approx(28.0)
    assert "Maximum stacking limit" in result.warning_message
    assert result.warning_message.startswith("Maximum stacking limit of 30%")


def test_stacking_limit_skips_coupon_without_headroom():
    first = percentage(30, max_stack_percentage=30, description="full")
    second = percentage(10, max_stack_percentage=30, description="skipped")
    result = calculate(100.0, [first, second])

    assert [d.description for d in result.applied_discounts] == ["full"]
    assert result.total_discount == pytest.approx(30.0)
    assert "Maximum stacking limit" in result.warning_message


def test_combined_over_limit_keeps_only_percentage_headroom():
    first = percentage(25, description="pct")
    combined = Coupon(description="combo", type=DiscountType.COMBINED, percentage_discount=10, amount=5)
    result = calculate(100.0, [first, combined])

    # 5% headroom of 75, fixed part dropped
    assert result.applied_discounts[1].discount_amount == pytest.approx(3.75)
    assert result.total_discount == pytest.approx(28.75)


def test_fixed_coupons_never_count_toward_stacking_limit():
    result = calculate(100.0, [percentage(30), fixed(10), fixed(5)])
    assert len(result.applied_discounts) == 3
    assert result.total_discount == pytest.approx(45.0)
    assert result.warning_message is None


def test_non_stackable_coupon_wins_alone():
    stackable = percentage(10, priority=5, description="stackable")
    exclusive = percentage(20, is_stackable=False, description="Exclusive deal")
    result = calculate(100.0, [stackable, exclusive])

    assert len(result.applied_discounts) == 1
    assert result.applied_discounts[0].description == "Exclusive deal"
    assert result.total_discount == pytest.approx(20.0)
    assert result.warning_message == (
        "Only one discount applied: Exclusive deal is not stackable with other discounts"
    )


def test_first_non_stackable_by_order_is_kept():
    a = fixed(5, is_stackable=False, priority=1, description="a")
    b = fixed(7, is_stackable=False, priority=3, description="b")
    result = calculate(100.0, [a, b])
    assert [d.description for d in result.applied_discounts] == ["b"]


def test_lone_non_stackable_coupon_has_no_warning():
    result = calculate(100.0, [percentage(10, is_stackable=False)])
    assert result.total_discount == pytest.approx(10.0)
    assert result.warning_message is None


# Validity filtering

def test_expired_coupon_is_ignored():
    coupon = percentage(10, end_date=NOW - timedelta(days=1))
    result = calculate(100.0, [coupon])
    assert result.total_discount == 0
    assert result.final_price == 100.0
    assert result.warning_message == NO_APPLICABLE_WARNING


def test_disabled_coupon_is_ignored():
    result = calculate(100.0, [percentage(10, status=CouponStatus.DISABLED)])
    assert result.applied_discounts == []
    assert result.warning_message == NO_APPLICABLE_WARNING


def test_usage_limit_reached_is_ignored():
    coupon = percentage(10, max_usage_count=5, current_usage_count=5)
    assert calculate(100.0, [coupon]).total_discount == 0


def test_calculator_trusts_stored_status():
    # Dates say upcoming but status was never refreshed; still filtered by date
    coupon = percentage(10, start_date=NOW + timedelta(hours=1))
    assert calculate(100.0, [coupon]).total_discount == 0
    # Dates say live but status says expired
    stale = percentage(10, status=CouponStatus.EXPIRED)
    assert calculate(100.0, [stale]).total_discount == 0


def test_below_minimum_purchase_is_ignored():
    coupon = percentage(10, minimum_purchase_amount=150)
    result = calculate(100.0, [coupon])
    assert result.total_discount == 0
    assert result.warning_message == NO_APPLICABLE_WARNING


# Scope and codes

def test_category_scope_matching_category_applies():
    coupon = percentage(10, scope=DiscountScope.CATEGORY, applicable_categories="Electronics, Books")
    result = calculate(100.0, [coupon], categories=["  books "])
    assert result.total_discount == pytest.approx(10.0)


def test_category_scope_without_match_is_ignored():
    coupon = percentage(10, scope=DiscountScope.CATEGORY, applicable_categories="Electronics")
    result = calculate(100.0, [coupon], categories=["Clothing"])
    assert result.total_discount == 0
    assert result.warning_message == NO_APPLICABLE_WARNING


def test_global_cart_and_product_scopes_ignore_categories():
    coupons = [
        fixed(1, scope=DiscountScope.GLOBAL),
        fixed(2, scope=DiscountScope.CART),
        fixed(3, scope=DiscountScope.PRODUCT),
    ]
    result = calculate(100.0, coupons, categories=["Anything"])
    assert result.total_discount == pytest.approx(6.0)


def test_code_coupons_need_a_matching_code():
    coded = percentage(10, coupon_code="SAVE10")
    assert calculate(100.0, [coded]).warning_message == NO_APPLICABLE_WARNING

    result = calculate(100.0, [coded], codes=["save10"])
    assert result.total_discount == pytest.approx(10.0)
    assert result.applied_discounts[0].coupon_code == "SAVE10"


def test_requested_codes_are_added_to_automatic_coupons_once():
    automatic = fixed(5, description="auto")
    coded = fixed(10, coupon_code="TEN", description="ten")
    result = calculate(100.0, [automatic, coded], codes=["TEN", "ten"])

    assert sorted(d.description for d in result.applied_discounts) == ["auto", "ten"]
    assert result.total_discount == pytest.approx(15.0)


def test_automatic_campaign_applies_without_code():
    coupon = percentage(
        20,
        description="Black Friday automatic discount",
        coupon_code="BF2025",
        is_automatic=True,
        campaign_type=CampaignType.BLACK_FRIDAY,
        start_date=NOW - timedelta(days=1),
        end_date=NOW + timedelta(days=1),
    )
    result = calculate(100.0, [coupon])
    assert result.total_discount == pytest.approx(20.0)
    assert result.applied_discounts[0].description == "Black Friday automatic discount"


# Tiers

def tiered_coupon():
    return Coupon(
        description="Tiered discount",
        type=DiscountType.PERCENTAGE,
        is_tiered=True,
        tiers=[
            DiscountTier(min_amount=0, max_amount=100, percentage_discount=5, order=1),
            DiscountTier(min_amount=100, max_amount=200, percentage_discount=10, order=2),
            DiscountTier(min_amount=200, max_amount=None, percentage_discount=15, order=3),
        ],
    )


@pytest.mark.parametrize("price, expected", [(50.0, 2.5), (100.0, 10.0), (250.0, 37.5)])
def test_tiered_coupon_picks_band_by_price(price, expected):
    result = calculate(price, [tiered_coupon()])
    assert result.total_discount == pytest.approx(expected)
    assert result.final_price == pytest.approx(price - expected)


def test_tier_is_chosen_by_original_price_but_applied_to_running_price():
    first = fixed(60, priority=10)
    result = calculate(250.0, [first, tiered_coupon()])
    # 15% tier from 250, applied to the 190 left
    assert result.applied_discounts[1].discount_amount == pytest.approx(28.5)


def test_tier_with_fixed_discount():
    coupon = Coupon(
        description="tier fixed",
        is_tiered=True,
        tiers=[DiscountTier(min_amount=0, percentage_discount=10, fixed_discount=5, order=0)],
    )
    assert calculate(100.0, [coupon]).total_discount == pytest.approx(15.0)


def test_tier_miss_contributes_nothing():
    coupon = Coupon(
        description="big spenders",
        type=DiscountType.PERCENTAGE,
        percentage_discount=50,
        is_tiered=True,
        tiers=[DiscountTier(min_amount=500, percentage_discount=20, order=1)],
    )
    result = calculate(100.0, [coupon])
    assert result.total_discount == 0
    assert result.final_price == 100.0
    assert len(result.applied_discounts) == 1
    assert result.warning_message is None


# Edge cases

def test_zero_price_returns_warning():
    total, final, applied, warning, _ = calculate(0.0, [percentage(10)])
    assert total == 0
    assert final == 0
    assert applied == []
    assert warning == "Invalid original price"


def test_negative_price_is_returned_unchanged():
    result = calculate(-5.0, [percentage(10)])
    assert result.final_price == -5.0
    assert result.total_discount == 0


@pytest.mark.parametrize("coupons", [[], None])
def test_no_coupons_returns_original_price(coupons):
    result = calculate(100.0, coupons)
    assert result.total_discount == 0
    assert result.final_price == 100.0
    assert result.warning_message is None


def test_discount_exceeding_price_is_capped():
    result = calculate(50.0, [fixed(100)])
    assert result.total_discount == pytest.approx(50.0)
    assert result.final_price == 0.0
    assert "capped at current price" in result.warning_message


def test_last_warning_wins_and_all_are_kept():
    coupons = [
        percentage(25, priority=2, description="pct"),
        percentage(10, priority=1, description="over"),
        fixed(500, description="huge"),
    ]
    result = calculate(100.0, coupons)
    assert result.warning_message == PRICE_CAP_WARNING
    assert len(result.warnings) == 2
    assert result.warnings[0].startswith("Maximum stacking limit")
    assert result.final_price == 0.0


def test_result_invariants_and_purity():
    coupons = [
        percentage(20, priority=3),
        Coupon(description="combo", type=DiscountType.COMBINED, percentage_discount=5, amount=12),
        fixed(7, coupon_code="SEVEN"),
        tiered_coupon(),
    ]
    snapshot = [(c.status, c.current_usage_count, c.priority) for c in coupons]

    first = calculate(180.0, coupons, codes=["seven"])
    second = calculate(180.0, coupons, codes=["seven"])

    assert first == second
    assert first.final_price == pytest.approx(180.0 - first.total_discount)
    assert 0 <= first.final_price <= 180.0
    assert first.total_discount >= 0
    assert [(c.status, c.current_usage_count, c.priority) for c in coupons] == snapshot


def test_result_unpacks_into_four_fields():
    result = calculate(100.0, [percentage(25, priority=1), percentage(10)])
    total, final, applied, warning = result
    assert total == pytest.approx(28.75)
    assert final == pytest.approx(71.25)
    assert len(applied) == 2
    assert warning.startswith("Maximum stacking limit")
    assert result.warnings == (warning,)


def test_result_without_warnings_has_empty_warnings():
    result = calculate(100.0, [fixed(10)])
    assert result.warning_message is None
    assert result.warnings == ()
