"""
Dynamic Pricing API Routes

- Optimal price for a product type
- Batch pricing
- Conversion tracking and stats
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.deps import get_pricing_service
from app.models.base import get_db
from app.services.dynamic_pricing_service import DynamicPricingService, build_pricing_context
from app.utils.logger import log

router = APIRouter(prefix="/api/ai/dynamic-pricing", tags=["dynamic-pricing"])


class PricingRequest(BaseModel):
    product_type: str
    current_price: float = Field(gt=0)
    demand_level: Literal["low", "medium", "high"] = "medium"
    user_id: Optional[str] = None
    user_behavior: Dict = Field(default_factory=dict)
    market_conditions: Dict = Field(default_factory=dict)
    time_of_day: Optional[int] = Field(default=None, ge=0, le=23)
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)

    def to_context(self):
        return build_pricing_context(
            product_type=self.product_type,
            current_price=self.current_price,
            demand_level=self.demand_level,
            time_of_day=self.time_of_day,
            day_of_week=self.day_of_week,
            user_id=self.user_id,
            user_behavior=self.user_behavior,
            market_conditions=self.market_conditions,
        )


class BatchPricingRequest(BaseModel):
    pricing_contexts: List[PricingRequest] = Field(min_length=1, max_length=50)


class TrackPricingRequest(BaseModel):
    product_type: str
    price: float = Field(gt=0)
    conversion: bool
    user_id: Optional[str] = None


@router.post("/calculate")
async def calculate_price(
    request: PricingRequest,
    service: DynamicPricingService = Depends(get_pricing_service),
):
    """Suggested price for one product type"""
    try:
        pricing = await service.calculate_optimal_price(request.to_context())
        return {
            "success": True,
            "pricing": pricing.to_dict(),
            "timestamp": datetime.utcnow().isoformat(),
        }
    except Exception as e:
        log.error(f"Dynamic pricing calculation error: {str(e)}")
        return JSONResponse(status_code=500, content={
            "success": False,
            "error": "Failed to calculate optimal pricing",
            "fallback": {
                "suggested_price": request.current_price,
                "reasoning": "Using fallback pricing due to calculation error",
            },
        })


@router.post("/batch")
async def batch_pricing(
    request: BatchPricingRequest,
    service: DynamicPricingService = Depends(get_pricing_service),
):
    results = await service.get_batch_pricing_recommendations(
        [r.to_context() for r in request.pricing_contexts]
    )
    return {
        "success": True,
        "results": [r.to_dict() for r in results],
        "total_recommendations": len(results),
    }


@router.post("/track")
async def track_pricing(
    request: TrackPricingRequest,
    db: Session = Depends(get_db),
    service: DynamicPricingService = Depends(get_pricing_service),
):
    service.track_pricing_performance(
        db, request.product_type, request.price, request.conversion, request.user_id
    )
    return {"success": True, "message": "Pricing performance tracked"}


@router.get("/stats/{product_type}")
async def pricing_stats(
    product_type: str,
    db: Session = Depends(get_db),
    service: DynamicPricingService = Depends(get_pricing_service),
):
    return {"success": True, "stats": service.get_conversion_stats(db, product_type)}
