"""
Next-gen AI routes: combined analysis and engine status
"""
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.config import get_settings
from app.api.deps import (
    get_full_analysis_service,
    get_optimization_service,
    get_viral_service,
)
from app.api.optimization import MetricsIn
from app.services.full_analysis_service import FullAnalysisService
from app.services.llm_service import get_llm_service
from app.services.optimization_service import OptimizationService
from app.services.viral_content_service import ViralContentService
from app.utils.logger import log

settings = get_settings()

router = APIRouter(prefix="/api/ai", tags=["next-gen"])


class FullAnalysisRequest(BaseModel):
    product_type: str
    current_price: float = Field(gt=0)
    user_id: Optional[str] = None
    topic: Optional[str] = None
    platform: Literal["twitter", "instagram", "tiktok", "linkedin"] = "twitter"
    metrics: Optional[MetricsIn] = None


@router.post("/next-gen/full-analysis")
async def full_analysis(
    request: FullAnalysisRequest,
    service: FullAnalysisService = Depends(get_full_analysis_service),
):
    """Pricing, viral content and optimization in one call"""
    try:
        result = await service.run_full_analysis(
            product_type=request.product_type,
            current_price=request.current_price,
            user_id=request.user_id,
            topic=request.topic,
            platform=request.platform,
            metrics=request.metrics.model_dump() if request.metrics else None,
        )
        return {"success": True, **result}
    except Exception as e:
        log.error(f"Full analysis error: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to run full AI analysis")


@router.get("/status")
async def ai_status(
    viral: ViralContentService = Depends(get_viral_service),
    optimization: OptimizationService = Depends(get_optimization_service),
):
    llm = get_llm_service()
    return {
        "success": True,
        "status": {
            "llm_available": llm.is_available(),
            "llm_model": settings.llm_model if llm.enabled else None,
            "engines": {
                "dynamic_pricing": "active",
                "viral_content": "active",
                "self_optimization": "active",
            },
            "optimization_history": len(optimization.history),
            "tracked_viral_patterns": len(viral.patterns),
        },
        "timestamp": datetime.utcnow().isoformat(),
    }
