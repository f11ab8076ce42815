"""
Self-Optimization API Routes
"""
from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.api.deps import get_optimization_service
from app.services.optimization_service import (
    OptimizationMetrics,
    OptimizationRecommendation,
    OptimizationService,
    estimate_roi_range,
)

router = APIRouter(prefix="/api/ai/optimization", tags=["optimization"])


class MetricsIn(BaseModel):
    conversion_rate: float = Field(ge=0, le=1)
    user_engagement: float = Field(ge=0, le=1)
    page_load_time: float = Field(ge=0)
    bounce_rate: float = Field(ge=0, le=1)
    user_satisfaction: float = Field(ge=0, le=1)
    revenue_per_user: float = Field(ge=0)


class AnalyzeRequest(BaseModel):
    metrics: MetricsIn
    platform_type: str = "blockchain_communication"
    business_goals: Optional[List[str]] = None


class RecommendationIn(BaseModel):
    category: Literal["UX", "Performance", "Content", "Conversion", "Engagement"]
    priority: Literal["Critical", "High", "Medium", "Low"]
    title: str
    description: str = ""
    implementation: str = ""
    expected_impact: str = ""
    confidence: float = Field(ge=0, le=1)
    time_to_implement: str = ""
    potential_roi: str = ""
    roi_percent: int = 0


class ImplementRequest(BaseModel):
    recommendation: RecommendationIn


@router.post("/analyze")
async def analyze(
    request: AnalyzeRequest,
    service: OptimizationService = Depends(get_optimization_service),
):
    recommendations = await service.analyze_performance(
        OptimizationMetrics(**request.metrics.model_dump()),
        platform_type=request.platform_type,
        business_goals=request.business_goals,
    )
    return {
        "success": True,
        "recommendations": [r.to_dict() for r in recommendations],
        "summary": {
            "total_recommendations": len(recommendations),
            "critical_issues": sum(1 for r in recommendations if r.priority == "Critical"),
            "high_priority": sum(1 for r in recommendations if r.priority == "High"),
            "estimated_impact": sum(r.roi_percent for r in recommendations),
            "estimated_roi": estimate_roi_range(recommendations),
        },
    }


@router.post("/implement")
async def implement(
    request: ImplementRequest,
    service: OptimizationService = Depends(get_optimization_service),
):
    implementation = await service.implement_optimization(
        OptimizationRecommendation(**request.recommendation.model_dump())
    )
    return {
        "success": implementation["success"],
        "implementation": implementation,
        "next_steps": [
            "Monitor implementation metrics",
            "Run A/B test if applicable",
            "Track performance improvements",
            "Apply learnings to future optimizations",
        ],
    }


@router.get("/continuous")
async def continuous(service: OptimizationService = Depends(get_optimization_service)):
    result = await service.run_continuous_optimization()
    return {
        "success": True,
        "optimization": result,
        "insights": [
            f"Applied {result['optimizations_applied']} automatic optimizations",
            f"Heuristic performance gain {result['performance_improvement']:.1f}",
            f"{len(result['next_recommendations'])} recommendations require manual review",
        ],
    }


@router.get("/dashboard")
async def dashboard(service: OptimizationService = Depends(get_optimization_service)):
    return {
        "success": True,
        "dashboard": service.get_optimization_dashboard(),
        "status": "Platform self-optimization active",
        "last_updated": datetime.utcnow().isoformat(),
    }
