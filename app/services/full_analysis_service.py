"""
Full Analysis Service

Runs pricing, viral content and optimization concurrently and combines
them into one response. Any branch failing fails the whole analysis; no
partial results are returned.
"""
import asyncio
from typing import Dict, List, Optional

from app.services.dynamic_pricing_service import (
    DynamicPricingService,
    OptimalPricing,
    build_pricing_context,
)
from app.services.optimization_service import (
    DEFAULT_METRICS,
    OptimizationMetrics,
    OptimizationRecommendation,
    OptimizationService,
)
from app.services.viral_content_service import ViralContent, ViralContentService
from app.utils.logger import log

HIGH_VIRAL_SCORE = 75
HIGH_VIRAL_ROI = 100
LOW_VIRAL_ROI = 50


def calculate_combined_roi(
    pricing: OptimalPricing,
    viral: ViralContent,
    recommendations: List[OptimizationRecommendation],
) -> int:
    """Sum of the typed ROI figures from each branch, in percent"""
    viral_roi = HIGH_VIRAL_ROI if viral.viral_score > HIGH_VIRAL_SCORE else LOW_VIRAL_ROI
    return pricing.revenue_impact_pct + viral_roi + sum(r.roi_percent for r in recommendations)


class FullAnalysisService:

    def __init__(
        self,
        pricing: DynamicPricingService,
        viral: ViralContentService,
        optimization: OptimizationService,
    ):
        self.pricing = pricing
        self.viral = viral
        self.optimization = optimization

    async def run_full_analysis(
        self,
        product_type: str,
        current_price: float,
        user_id: Optional[str] = None,
        topic: Optional[str] = None,
        platform: Optional[str] = None,
        metrics: Optional[Dict] = None,
    ) -> Dict:
        context = build_pricing_context(
            product_type=product_type,
            current_price=current_price,
            demand_level="medium",
            user_id=user_id,
        )
        snapshot = OptimizationMetrics.from_dict(metrics or DEFAULT_METRICS)

        pricing, viral, recommendations = await asyncio.gather(
            self.pricing.calculate_optimal_price(context),
            self.viral.generate_viral_content(topic or product_type, platform or "twitter"),
            self.optimization.analyze_performance(snapshot),
        )

        combined_roi = calculate_combined_roi(pricing, viral, recommendations)
        log.info(f"Full analysis for {product_type}: combined ROI {combined_roi}%")

        return {
            "analysis": {
                "pricing": pricing.to_dict(),
                "viral": viral.to_dict(),
                "optimization": [r.to_dict() for r in recommendations[:3]],
            },
            "summary": {
                "combined_roi": f"{combined_roi}%",
                "combined_roi_percent": combined_roi,
                "implementation_time": "2-6 weeks",
                "expected_revenue": f"+${round(combined_roi * 100)}K ARR",
                "confidence": "High (85%+)",
            },
            "recommendations": [
                "Implement dynamic pricing immediately for instant revenue boost",
                "Launch viral campaign for organic growth acceleration",
                "Apply top optimization recommendations for conversion improvement",
                "Monitor all three systems for compound growth effects",
            ],
        }
