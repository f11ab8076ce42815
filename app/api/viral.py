"""
Viral Content API Routes
"""
from typing import Dict, List, Literal, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from app.api.deps import get_viral_service
from app.services.viral_content_service import ViralContentService, average_viral_score
from app.utils.logger import log

router = APIRouter(prefix="/api/ai/viral", tags=["viral"])

Platform = Literal["twitter", "instagram", "tiktok", "linkedin", "all"]


class GenerateRequest(BaseModel):
    topic: str = Field(min_length=1)
    platforms: List[Platform] = Field(default_factory=lambda: ["twitter", "instagram", "tiktok"])
    target_audience: Optional[str] = None
    tone: Optional[str] = None


class GenerateContentRequest(BaseModel):
    topic: str = Field(min_length=1)
    platform: Platform = "twitter"
    user_context: Optional[Dict] = None


class CampaignRequest(BaseModel):
    campaign_goal: str = Field(min_length=1)
    duration: int = Field(default=7, ge=1, le=30)


class EngagementIn(BaseModel):
    likes: int = Field(default=0, ge=0)
    shares: int = Field(default=0, ge=0)
    comments: int = Field(default=0, ge=0)
    views: int = Field(default=0, ge=0)


class TrackRequest(BaseModel):
    content_id: str
    engagement: EngagementIn


@router.post("/generate")
async def generate(
    request: GenerateRequest,
    service: ViralContentService = Depends(get_viral_service),
):
    """One post per requested platform, generated one after another"""
    try:
        results = []
        for platform in request.platforms:
            results.append(await service.generate_viral_content(
                request.topic,
                platform,
                {"target_audience": request.target_audience, "tone": request.tone},
            ))
        return {
            "success": True,
            "results": [r.to_dict() for r in results],
            "summary": {
                "total_content": len(results),
                "platforms": request.platforms,
                "average_viral_score": average_viral_score(results),
            },
        }
    except Exception as e:
        log.error(f"Viral generation error: {str(e)}")
        return JSONResponse(status_code=500, content={
            "success": False,
            "error": "Failed to generate viral content",
            "fallback": {
                "results": [{
                    "platform": "twitter",
                    "content": f"🚀 {request.topic} is changing everything! What do you think? 💭",
                    "hashtags": ["#viral", "#trending", "#innovation"],
                    "viral_score": 75,
                }],
            },
        })


@router.post("/generate-content")
async def generate_content(
    request: GenerateContentRequest,
    service: ViralContentService = Depends(get_viral_service),
):
    content = await service.generate_viral_content(request.topic, request.platform, request.user_context)
    return {
        "success": True,
        "content": content.to_dict(),
        "optimization_tips": [
            f"Post at optimal time for {request.platform}",
            "Use trending hashtags for maximum reach",
            "Engage with comments within first hour",
            "Cross-promote on other platforms",
        ],
    }


@router.post("/create-campaign")
async def create_campaign(
    request: CampaignRequest,
    service: ViralContentService = Depends(get_viral_service),
):
    campaign = await service.create_viral_campaign(request.campaign_goal, request.duration)
    content = campaign["content"]
    return {
        "success": True,
        "campaign": campaign,
        "summary": {
            "total_content": len(content),
            "platforms": sorted({c["platform"] for c in content}),
            "average_viral_score": round(
                sum(c["viral_score"] for c in content) / len(content), 2
            ) if content else 0.0,
            "duration": f"{request.duration} days",
        },
    }


@router.post("/track-performance")
async def track_performance(
    request: TrackRequest,
    service: ViralContentService = Depends(get_viral_service),
):
    score = service.track_viral_performance(request.content_id, request.engagement.model_dump())
    return {
        "success": True,
        "message": "Viral performance tracked",
        "engagement_score": score,
        "next_optimizations": [
            "Analyze top-performing content patterns",
            "Adjust posting schedule based on engagement",
            "Optimize hashtag strategy",
            "Create similar high-performing content",
        ],
    }
