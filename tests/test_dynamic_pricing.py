"""
Dynamic pricing rules, AI multiplier handling and conversion tracking.

Guards against:
1. Market multiplier drift (time, weekday and demand factors)
2. Prices below the floor or with more than two decimals
3. LLM failures leaking out of calculate_optimal_price
"""
import uuid
from datetime import datetime

import pytest

from app.services.dynamic_pricing_service import (
    DynamicPricingService,
    build_pricing_context,
    bucket_revenue_impact,
    compute_suggested_price,
    get_base_price,
    get_market_multiplier,
)
from conftest import FailingLLM, FakeLLM, _run

PRICING_PROMPT = "You are pricing a digital product"

# Tuesday 10:00 local; day_of_week 2 with Sunday = 0
BUSINESS_HOUR_WEEKDAY = datetime(2026, 10, 20, 10, 0)


# ---------------------------------------------------------------------------
# Market rules
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("demand, factor", [("low", 0.9), ("medium", 1.1), ("high", 1.3)])
def test_demand_factor_alone(demand, factor):
    # 03:00 on a Sunday: no time or weekday bump
    assert get_market_multiplier(demand, 3, 0) == pytest.approx(factor)


def test_business_hours_and_weekday_compound():
    assert get_market_multiplier("high", 10, 2) == pytest.approx(1.1 * 1.05 * 1.3)


def test_evening_peak_on_saturday():
    assert get_market_multiplier("medium", 19, 6) == pytest.approx(1.2 * 1.1)


def test_hour_17_gets_no_time_bump():
    assert get_market_multiplier("medium", 17, 0) == pytest.approx(1.1)


def test_unknown_product_uses_callers_price():
    assert get_base_price("mystery_box", 7.5) == 7.5
    assert get_base_price("premium_features", 7.5) == 10.0


def test_context_derives_hour_and_sunday_based_weekday():
    ctx = build_pricing_context("viral_boost", 2.99, now=BUSINESS_HOUR_WEEKDAY)
    assert ctx.time_of_day == 10
    assert ctx.day_of_week == 2
    assert ctx.demand_level == "medium"


def test_context_rejects_bad_input():
    with pytest.raises(ValueError):
        build_pricing_context("viral_boost", 0)
    with pytest.raises(ValueError):
        build_pricing_context("viral_boost", 1.0, demand_level="extreme")
    with pytest.raises(ValueError):
        build_pricing_context("viral_boost", 1.0, time_of_day=24)


# ---------------------------------------------------------------------------
# Suggested price
# ---------------------------------------------------------------------------

def test_suggested_price_floor():
    assert compute_suggested_price(0.001, 0.9, 0.5) == 0.01


def test_suggested_price_rounds_half_up_to_cents():
    assert compute_suggested_price(1.0, 1.0, 1.005) == 1.01
    assert compute_suggested_price(10.0, 1.5015, 1.2) == 18.02


@pytest.mark.parametrize("pct, bucket", [
    (35, "+30%+"), (20, "+20-30%"), (12, "+10-20%"), (0, "0-10%"), (-5, "-10-0%"), (-40, "-10%+ decrease"),
])
def test_revenue_impact_buckets(pct, bucket):
    assert bucket_revenue_impact(pct) == bucket


# ---------------------------------------------------------------------------
# calculate_optimal_price
# ---------------------------------------------------------------------------

def test_premium_features_high_demand_business_hours():
    llm = FakeLLM({PRICING_PROMPT: {
        "multiplier": 1.2, "confidence": 0.9, "expectedConversion": 0.3, "reasoning": "Peak demand",
    }})
    service = DynamicPricingService(llm=llm)
    ctx = build_pricing_context(
        "premium_features", 10.0, demand_level="high", now=BUSINESS_HOUR_WEEKDAY
    )

    pricing = _run(service.calculate_optimal_price(ctx))

    assert pricing.market_multiplier == pytest.approx(1.5015)
    assert pricing.suggested_price == 18.02
    assert pricing.price_multiplier == 1.2
    assert pricing.confidence == 0.9
    assert pricing.revenue_impact_pct == 80
    assert pricing.revenue_impact == "+30%+"
    assert pricing.fallback_used is False


def test_llm_failure_falls_back_to_neutral_multiplier():
    service = DynamicPricingService(llm=FailingLLM())
    ctx = build_pricing_context("token_creation", 1.99, demand_level="low", time_of_day=3, day_of_week=0)

    pricing = _run(service.calculate_optimal_price(ctx))

    assert pricing.fallback_used is True
    assert pricing.price_multiplier == 1.0
    assert pricing.confidence == 0.5
    assert pricing.suggested_price == 1.79  # 1.99 x 0.9


def test_malformed_llm_values_are_clamped():
    llm = FakeLLM({PRICING_PROMPT: {"multiplier": 40, "confidence": "very", "expectedConversion": -1}})
    service = DynamicPricingService(llm=llm)
    ctx = build_pricing_context("ai_enhancement", 4.99, time_of_day=3, day_of_week=0)

    pricing = _run(service.calculate_optimal_price(ctx))

    assert pricing.price_multiplier == 2.0
    assert pricing.confidence == 0.5
    assert pricing.expected_conversion == 0.0
    assert pricing.suggested_price == round(4.99 * 1.1 * 2.0, 2)


def test_batch_returns_one_result_per_context_in_order():
    service = DynamicPricingService(llm=FailingLLM())
    contexts = [
        build_pricing_context(product, 5.0, time_of_day=3, day_of_week=0)
        for product in ("token_creation", "viral_boost", "unknown_thing")
    ]

    results = _run(service.get_batch_pricing_recommendations(contexts))

    assert [r.product_type for r in results] == ["token_creation", "viral_boost", "unknown_thing"]
    assert results[2].base_price == 5.0


# ---------------------------------------------------------------------------
# Conversion tracking
# ---------------------------------------------------------------------------

def test_conversion_stats(db):
    service = DynamicPricingService(llm=FailingLLM())
    product = f"product_{uuid.uuid4().hex[:8]}"

    service.track_pricing_performance(db, product, 2.0, True, user_id="u1")
    service.track_pricing_performance(db, product, 3.0, False)
    service.track_pricing_performance(db, product, 4.0, False)
    service.track_pricing_performance(db, product, 3.0, True)

    stats = service.get_conversion_stats(db, product)
    assert stats["observations"] == 4
    assert stats["conversions"] == 2
    assert stats["conversion_rate"] == 0.5
    assert stats["average_price"] == 3.0


def test_conversion_stats_without_observations(db):
    stats = DynamicPricingService(llm=FailingLLM()).get_conversion_stats(db, "never_seen")
    assert stats["observations"] == 0
    assert stats["conversion_rate"] == 0.0
    assert stats["average_price"] is None
