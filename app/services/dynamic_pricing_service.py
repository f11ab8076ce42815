"""
Dynamic Pricing Service

Suggests a price for a product type from three inputs:
- a fixed base price table (caller's price when the type is unknown)
- deterministic market rules (business hours, evening peak, weekday, demand)
- an LLM multiplier with confidence and expected conversion

The LLM step can fail in any way without affecting the caller: the neutral
multiplier 1.0 with confidence 0.5 is used instead.
"""
import asyncio
import json
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.pricing import PricingPerformance
from app.services.llm_service import get_llm_service
from app.utils.helpers import clamp, round_currency, safe_float
from app.utils.logger import log

settings = get_settings()


# USD base prices per product type
BASE_PRICES: Dict[str, float] = {
    "token_creation": 1.99,
    "premium_features": 10.00,
    "ai_enhancement": 4.99,
    "viral_boost": 2.99,
}

DEMAND_FACTORS: Dict[str, float] = {
    "low": 0.9,
    "medium": 1.1,
    "high": 1.3,
}

BUSINESS_HOURS = range(9, 17)      # 09:00-16:59
EVENING_PEAK_HOURS = range(18, 22)  # 18:00-21:59
BUSINESS_HOURS_BUMP = 1.1
EVENING_PEAK_BUMP = 1.2
WEEKDAY_BUMP = 1.05

NEUTRAL_MULTIPLIER = 1.0
NEUTRAL_CONFIDENCE = 0.5
NEUTRAL_CONVERSION = 0.1


@dataclass
class PricingContext:
    """Per-request pricing input. day_of_week: 0=Sunday ... 6=Saturday."""
    product_type: str
    current_price: float
    demand_level: str = "medium"
    time_of_day: int = 0
    day_of_week: int = 0
    user_id: Optional[str] = None
    user_behavior: Dict = field(default_factory=dict)
    market_conditions: Dict = field(default_factory=dict)


@dataclass
class OptimalPricing:
    product_type: str
    base_price: float
    suggested_price: float
    price_multiplier: float
    market_multiplier: float
    reasoning: str
    confidence: float
    expected_conversion: float
    revenue_impact: str
    revenue_impact_pct: int
    fallback_used: bool = False

    def to_dict(self) -> Dict:
        return asdict(self)


def _js_weekday(moment: datetime) -> int:
    # datetime.weekday(): Monday=0; we use Sunday=0
    return (moment.weekday() + 1) % 7


def build_pricing_context(
    product_type: str,
    current_price: float,
    demand_level: Optional[str] = None,
    time_of_day: Optional[int] = None,
    day_of_week: Optional[int] = None,
    user_id: Optional[str] = None,
    user_behavior: Optional[Dict] = None,
    market_conditions: Optional[Dict] = None,
    now: Optional[datetime] = None,
) -> PricingContext:
    """Assemble a PricingContext, deriving hour/weekday from `now` when absent."""
    if current_price is None or current_price <= 0:
        raise ValueError("current_price must be positive")

    demand = (demand_level or "medium").lower()
    if demand not in DEMAND_FACTORS:
        raise ValueError(f"demand_level must be one of {sorted(DEMAND_FACTORS)}")

    moment = now or datetime.now()
    hour = moment.hour if time_of_day is None else time_of_day
    weekday = _js_weekday(moment) if day_of_week is None else day_of_week
    if not 0 <= hour <= 23:
        raise ValueError("time_of_day must be within 0-23")
    if not 0 <= weekday <= 6:
        raise ValueError("day_of_week must be within 0-6")

    return PricingContext(
        product_type=product_type,
        current_price=float(current_price),
        demand_level=demand,
        time_of_day=hour,
        day_of_week=weekday,
        user_id=user_id,
        user_behavior=user_behavior or {},
        market_conditions=market_conditions or {},
    )


def get_base_price(product_type: str, fallback_price: float) -> float:
    return BASE_PRICES.get(product_type, fallback_price)


def get_market_multiplier(demand_level: str, time_of_day: int, day_of_week: int) -> float:
    """
    Product of the independent market rules.

    Business hours and evening peak never overlap; the weekday bump applies
    Monday-Friday (1-5). Unknown demand levels count as medium.
    """
    multiplier = 1.0

    if time_of_day in BUSINESS_HOURS:
        multiplier *= BUSINESS_HOURS_BUMP
    elif time_of_day in EVENING_PEAK_HOURS:
        multiplier *= EVENING_PEAK_BUMP

    if 1 <= day_of_week <= 5:
        multiplier *= WEEKDAY_BUMP

    multiplier *= DEMAND_FACTORS.get(demand_level, DEMAND_FACTORS["medium"])
    return multiplier


def compute_suggested_price(
    base_price: float,
    market_multiplier: float,
    ai_multiplier: float,
    min_price: float = 0.01,
) -> float:
    """base x market x ai, floored at min_price, rounded to cents"""
    raw = base_price * market_multiplier * ai_multiplier
    return round_currency(max(min_price, raw))


def bucket_revenue_impact(pct: int) -> str:
    if pct >= 30:
        return "+30%+"
    if pct >= 20:
        return "+20-30%"
    if pct >= 10:
        return "+10-20%"
    if pct >= 0:
        return "0-10%"
    if pct >= -10:
        return "-10-0%"
    return "-10%+ decrease"


class DynamicPricingService:
    """
    Optimal price suggestions per product type.
    """

    def __init__(self, llm=None):
        self.llm = llm or get_llm_service()

    async def calculate_optimal_price(self, context: PricingContext) -> OptimalPricing:
        """
        Suggest a price for the context. Never raises for LLM failures.
        """
        base_price = get_base_price(context.product_type, context.current_price)
        market_multiplier = get_market_multiplier(
            context.demand_level, context.time_of_day, context.day_of_week
        )

        fallback_used = False
        try:
            ai = await self._get_ai_recommendation(context, base_price, market_multiplier)
            ai_multiplier = clamp(
                safe_float(ai.get("multiplier"), NEUTRAL_MULTIPLIER),
                settings.pricing_ai_multiplier_min,
                settings.pricing_ai_multiplier_max,
            )
            confidence = clamp(safe_float(ai.get("confidence"), NEUTRAL_CONFIDENCE), 0.0, 1.0)
            expected_conversion = clamp(
                safe_float(ai.get("expectedConversion"), NEUTRAL_CONVERSION), 0.0, 1.0
            )
            reasoning = str(ai.get("reasoning") or "AI-adjusted pricing based on market signals")
        except Exception as e:
            log.warning(f"Dynamic pricing AI step failed for {context.product_type}, using neutral multiplier: {e}")
            fallback_used = True
            ai_multiplier = NEUTRAL_MULTIPLIER
            confidence = NEUTRAL_CONFIDENCE
            expected_conversion = NEUTRAL_CONVERSION
            reasoning = "Market-rule pricing only; AI recommendation unavailable"

        suggested_price = compute_suggested_price(
            base_price, market_multiplier, ai_multiplier, settings.pricing_min_price
        )
        impact_pct = round((market_multiplier * ai_multiplier - 1) * 100)

        result = OptimalPricing(
            product_type=context.product_type,
            base_price=base_price,
            suggested_price=suggested_price,
            price_multiplier=ai_multiplier,
            market_multiplier=round(market_multiplier, 4),
            reasoning=reasoning,
            confidence=confidence,
            expected_conversion=expected_conversion,
            revenue_impact=bucket_revenue_impact(impact_pct),
            revenue_impact_pct=impact_pct,
            fallback_used=fallback_used,
        )
        log.info(
            f"Pricing {context.product_type}: base={base_price} market={market_multiplier:.3f} "
            f"ai={ai_multiplier:.2f} -> {suggested_price} (confidence {confidence:.2f})"
        )
        return result

    async def get_batch_pricing_recommendations(
        self, contexts: List[PricingContext]
    ) -> List[OptimalPricing]:
        return list(await asyncio.gather(*(self.calculate_optimal_price(c) for c in contexts)))

    async def _get_ai_recommendation(
        self, context: PricingContext, base_price: float, market_multiplier: float
    ) -> Dict:
        prompt = f"""You are pricing a digital product for a token-creation and messaging platform.

PRODUCT: {context.product_type}
Base price: ${base_price:.2f}
Price the customer currently sees: ${context.current_price:.2f}
Demand level: {context.demand_level}
Hour of day: {context.time_of_day}
Day of week (0=Sunday): {context.day_of_week}
Market-rule multiplier already applied: {market_multiplier:.3f}

User behavior:
{json.dumps(context.user_behavior, indent=2, default=str)}

Market conditions:
{json.dumps(context.market_conditions, indent=2, default=str)}

Recommend an ADDITIONAL price multiplier between {settings.pricing_ai_multiplier_min} and {settings.pricing_ai_multiplier_max}
that maximizes revenue without hurting conversion.

Return JSON:
{{
  "multiplier": 1.0,
  "confidence": 0.0-1.0,
  "expectedConversion": 0.0-1.0,
  "reasoning": "one or two sentences"
}}
"""
        return await self.llm.complete_json(prompt, max_tokens=400)

    # ------------------------------------------------------------------
    # Performance tracking
    # ------------------------------------------------------------------

    def track_pricing_performance(
        self,
        db: Session,
        product_type: str,
        price: float,
        converted: bool,
        user_id: Optional[str] = None,
    ) -> PricingPerformance:
        row = PricingPerformance(
            product_type=product_type,
            price=round_currency(price),
            converted=converted,
            user_id=user_id,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        log.info(f"Pricing performance tracked: {product_type} @ {price} converted={converted}")
        return row

    def get_conversion_stats(self, db: Session, product_type: str) -> Dict:
        total, conversions, avg_price = db.query(
            func.count(PricingPerformance.id),
            func.sum(case((PricingPerformance.converted.is_(True), 1), else_=0)),
            func.avg(PricingPerformance.price),
        ).filter(PricingPerformance.product_type == product_type).one()

        total = total or 0
        conversions = int(conversions or 0)
        return {
            "product_type": product_type,
            "observations": total,
            "conversions": conversions,
            "conversion_rate": round(conversions / total, 4) if total else 0.0,
            "average_price": round(float(avg_price), 2) if avg_price is not None else None,
        }
