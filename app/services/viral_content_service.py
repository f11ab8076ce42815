"""
Viral Content Service

Platform-tailored marketing copy in two LLM steps: first a pattern analysis
(trending topics, hooks, hashtag ideas) for the topic/platform pair, then the
post itself with hashtags and a self-reported viral score. Each step has its
own static fallback, so callers always get content back.
"""
import asyncio
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Dict, List, Optional

from app.config import get_settings
from app.services.llm_service import get_llm_service
from app.utils.bounded_store import TTLStore
from app.utils.helpers import clamp, generate_id, now_ms, safe_float
from app.utils.logger import log

settings = get_settings()

PLATFORMS = ["twitter", "instagram", "tiktok", "linkedin"]
SUPPORTED_PLATFORMS = PLATFORMS + ["all"]

CONTENT_TYPE_BY_PLATFORM = {
    "twitter": "thread",
    "instagram": "story",
    "tiktok": "video",
    "linkedin": "post",
}

CAMPAIGN_POSTING_TIMES = ["09:00", "12:00", "15:00", "18:00", "21:00"]

DEFAULT_CONTENT_SCORE = 75   # model answered without a score
CREATION_FALLBACK_SCORE = 60
CONTENT_FALLBACK_SCORE = 50

# Engagement weights for tracked performance
SHARE_WEIGHT = 10
COMMENT_WEIGHT = 5
LIKE_WEIGHT = 1
VIEW_WEIGHT = 0.1


@dataclass
class Engagement:
    likes: int = 0
    shares: int = 0
    comments: int = 0
    views: int = 0


@dataclass
class ViralContent:
    id: str
    type: str
    platform: str
    content: str
    hashtags: List[str]
    viral_score: float
    engagement: Engagement = field(default_factory=Engagement)
    created_at: datetime = field(default_factory=datetime.utcnow)
    fallback_used: bool = False

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return data


@dataclass
class ViralStrategy:
    content_pillars: List[str]
    posting_schedule: List[Dict[str, str]]
    hashtag_strategy: List[str]
    engagement_tactics: List[str]
    viral_triggers: List[str]

    def to_dict(self) -> Dict:
        return asdict(self)


def clamp_viral_score(value, default: float = DEFAULT_CONTENT_SCORE) -> float:
    """Viral scores always land in [0, 100]"""
    return clamp(safe_float(value, default), 0.0, 100.0)


def select_content_type(platform: str) -> str:
    return CONTENT_TYPE_BY_PLATFORM.get(platform, "post")


def calculate_engagement_score(engagement: Dict) -> float:
    """Weighted engagement score (shares count most, views least), 0-100"""
    likes = safe_float(engagement.get("likes"), 0)
    shares = safe_float(engagement.get("shares"), 0)
    comments = safe_float(engagement.get("comments"), 0)
    views = safe_float(engagement.get("views"), 0)

    raw = (shares * SHARE_WEIGHT) + (comments * COMMENT_WEIGHT) + \
        (likes * LIKE_WEIGHT) + (views * VIEW_WEIGHT)
    return clamp(raw / 100, 0.0, 100.0)


def average_viral_score(items: List[ViralContent]) -> float:
    if not items:
        return 0.0
    return round(sum(i.viral_score for i in items) / len(items), 2)


def _str_list(value, default: List[str]) -> List[str]:
    if isinstance(value, list) and value:
        return [str(v) for v in value]
    return list(default)


DEFAULT_PATTERN_ANALYSIS = {
    "trendingTopics": ["AI", "innovation", "future"],
    "viralElements": ["controversy", "emotion", "relatability"],
    "optimalTiming": "18:00",
    "engagementHooks": ["question", "poll", "call-to-action"],
    "hashtagTrends": ["#trending", "#viral", "#innovation"],
    "contentFormat": "short-form",
    "viralTriggers": ["urgency", "exclusivity"],
}


def default_strategy() -> ViralStrategy:
    return ViralStrategy(
        content_pillars=["Innovation", "Community", "Value"],
        posting_schedule=[
            {"time": "09:00", "platform": "twitter", "content_type": "thread"},
            {"time": "12:00", "platform": "instagram", "content_type": "story"},
            {"time": "18:00", "platform": "tiktok", "content_type": "video"},
        ],
        hashtag_strategy=["#innovation", "#community", "#viral"],
        engagement_tactics=["Ask questions", "Share stories", "Create polls"],
        viral_triggers=["Urgency", "Exclusivity", "Social proof"],
    )


def fallback_content(topic: str, platform: str) -> ViralContent:
    return ViralContent(
        id=f"fallback_{now_ms()}",
        type="post",
        platform=platform,
        content=f"🚀 {topic} is changing everything! What's your take? 💭 #innovation #trending",
        hashtags=["#innovation", "#trending", "#viral"],
        viral_score=CONTENT_FALLBACK_SCORE,
        fallback_used=True,
    )


class ViralContentService:
    """
    Generates viral posts and campaigns, and keeps recently tracked
    engagement patterns in a TTL store.
    """

    def __init__(self, llm=None, pattern_store: Optional[TTLStore] = None):
        self.llm = llm or get_llm_service()
        if pattern_store is None:
            pattern_store = TTLStore(
                max_entries=settings.viral_pattern_max_entries,
                default_ttl=settings.viral_pattern_ttl_seconds,
            )
        self.patterns = pattern_store

    async def generate_viral_content(
        self, topic: str, platform: str, user_context: Optional[Dict] = None
    ) -> ViralContent:
        try:
            analysis = await self.analyze_viral_patterns(topic, platform)
            created = await self.create_viral_content(topic, platform, analysis, user_context)
            return ViralContent(
                id=generate_id("viral"),
                type=select_content_type(platform),
                platform=platform,
                content=created["text"],
                hashtags=created["hashtags"],
                viral_score=created["viral_score"],
                fallback_used=created.get("fallback_used", False),
            )
        except Exception as e:
            log.error(f"Viral content generation error for '{topic}' on {platform}: {e}")
            return fallback_content(topic, platform)

    async def analyze_viral_patterns(self, topic: str, platform: str) -> Dict:
        prompt = f"""Analyze viral content patterns for topic "{topic}" on {platform}.

Provide analysis as JSON:
{{
  "trendingTopics": ["topic1", "topic2", "topic3"],
  "viralElements": ["element1", "element2", "element3"],
  "optimalTiming": "best posting time",
  "engagementHooks": ["hook1", "hook2", "hook3"],
  "hashtagTrends": ["#tag1", "#tag2", "#tag3"],
  "contentFormat": "recommended format",
  "viralTriggers": ["trigger1", "trigger2"]
}}
"""
        try:
            return await self.llm.complete_json(prompt, max_tokens=400)
        except Exception as e:
            log.warning(f"Viral pattern analysis failed, using default analysis: {e}")
            return dict(DEFAULT_PATTERN_ANALYSIS)

    async def create_viral_content(
        self,
        topic: str,
        platform: str,
        analysis: Dict,
        user_context: Optional[Dict] = None,
    ) -> Dict:
        """
        Returns {"text", "hashtags", "viral_score"}. Platform limits are
        expressed to the model only; nothing here truncates the text.
        """
        audience = ""
        if user_context:
            audience = "\n".join(
                f"- {k}: {v}" for k, v in user_context.items() if v is not None
            )
        prompt = f"""Create viral {platform} content about "{topic}" using these viral elements:
- Trending topics: {', '.join(_str_list(analysis.get('trendingTopics'), []))}
- Viral elements: {', '.join(_str_list(analysis.get('viralElements'), []))}
- Engagement hooks: {', '.join(_str_list(analysis.get('engagementHooks'), []))}
{('Audience and tone:' + chr(10) + audience) if audience else ''}

Platform-specific requirements:
- Twitter: 280 chars, trending hashtags, engagement hooks
- Instagram: Visual description, story-worthy, hashtag-heavy
- TikTok: Hook in first 3 seconds, trend-based, action-oriented
- LinkedIn: Professional angle, thought leadership, industry insights

Return JSON:
{{
  "text": "viral content text",
  "hashtags": ["#hashtag1", "#hashtag2", "#hashtag3"],
  "viralScore": 0-100,
  "callToAction": "specific CTA",
  "engagementBait": "engagement question/hook"
}}
"""
        try:
            result = await self.llm.complete_json(prompt, max_tokens=500)
            return {
                "text": str(result.get("text") or f"{topic} is changing everything! 🚀"),
                "hashtags": _str_list(result.get("hashtags"), ["#viral", "#trending", "#ai"]),
                "viral_score": clamp_viral_score(result.get("viralScore")),
            }
        except Exception as e:
            log.warning(f"Viral content creation failed, using template: {e}")
            return {
                "text": f"🚀 {topic} is revolutionizing the game! Who else is excited? 👇",
                "hashtags": ["#innovation", "#trending", "#gameChanger"],
                "viral_score": CREATION_FALLBACK_SCORE,
                "fallback_used": True,
            }

    # ------------------------------------------------------------------
    # Campaigns
    # ------------------------------------------------------------------

    async def create_viral_campaign(self, campaign_goal: str, duration: int = 7) -> Dict:
        try:
            strategy = await self.generate_viral_strategy(campaign_goal)
            content = await self.generate_campaign_content(campaign_goal, duration)
            schedule = create_posting_schedule(content, settings.viral_campaign_posts_per_day)
            return {
                "strategy": strategy.to_dict(),
                "content": [c.to_dict() for c in content],
                "scheduled_posts": schedule,
            }
        except Exception as e:
            log.error(f"Viral campaign creation error for '{campaign_goal}': {e}")
            return self._fallback_campaign(campaign_goal)

    async def generate_viral_strategy(self, goal: str) -> ViralStrategy:
        prompt = f"""Create a viral marketing strategy for goal: "{goal}"

Return comprehensive strategy as JSON:
{{
  "contentPillars": ["pillar1", "pillar2", "pillar3"],
  "postingSchedule": [
    {{"time": "09:00", "platform": "twitter", "contentType": "thread"}},
    {{"time": "12:00", "platform": "instagram", "contentType": "story"}},
    {{"time": "18:00", "platform": "tiktok", "contentType": "video"}}
  ],
  "hashtagStrategy": ["#primary", "#secondary", "#trending"],
  "engagementTactics": ["tactic1", "tactic2", "tactic3"],
  "viralTriggers": ["trigger1", "trigger2", "trigger3"]
}}
"""
        default = default_strategy()
        try:
            result = await self.llm.complete_json(prompt, max_tokens=600)
        except Exception as e:
            log.warning(f"Viral strategy generation failed, using default strategy: {e}")
            return default

        schedule = []
        for slot in result.get("postingSchedule") or []:
            if isinstance(slot, dict):
                schedule.append({
                    "time": str(slot.get("time", "")),
                    "platform": str(slot.get("platform", "")),
                    "content_type": str(slot.get("contentType", "")),
                })
        return ViralStrategy(
            content_pillars=_str_list(result.get("contentPillars"), default.content_pillars),
            posting_schedule=schedule or default.posting_schedule,
            hashtag_strategy=_str_list(result.get("hashtagStrategy"), default.hashtag_strategy),
            engagement_tactics=_str_list(result.get("engagementTactics"), default.engagement_tactics),
            viral_triggers=_str_list(result.get("viralTriggers"), default.viral_triggers),
        )

    async def generate_campaign_content(self, goal: str, duration: int) -> List[ViralContent]:
        """posts_per_day x duration posts, platforms rotating, bounded concurrency"""
        posts_per_day = settings.viral_campaign_posts_per_day
        semaphore = asyncio.Semaphore(max(1, settings.viral_campaign_max_concurrency))

        async def _one(platform: str) -> ViralContent:
            async with semaphore:
                return await self.generate_viral_content(goal, platform)

        tasks = []
        for _day in range(duration):
            for post in range(posts_per_day):
                tasks.append(_one(PLATFORMS[post % len(PLATFORMS)]))
        return list(await asyncio.gather(*tasks))

    def _fallback_campaign(self, goal: str) -> Dict:
        content = fallback_content(goal, "twitter")
        return {
            "strategy": default_strategy().to_dict(),
            "content": [content.to_dict()],
            "scheduled_posts": [{
                "content_id": content.id,
                "platform": "twitter",
                "scheduled_time": "Day 1 at 09:00",
                "content": f"🚀 {goal} - Let's make it viral!",
                "hashtags": ["#viral", "#trending"],
                "viral_score": CONTENT_FALLBACK_SCORE,
            }],
        }

    # ------------------------------------------------------------------
    # Performance tracking
    # ------------------------------------------------------------------

    def track_viral_performance(self, content_id: str, engagement: Dict) -> float:
        score = calculate_engagement_score(engagement)
        self.patterns.set(content_id, {
            "engagement": dict(engagement),
            "viral_score": score,
            "timestamp": datetime.utcnow().isoformat(),
        })
        log.info(f"Viral performance tracked: {content_id} - Score: {score:.2f}")
        return score

    def get_tracked_pattern(self, content_id: str) -> Optional[Dict]:
        return self.patterns.get(content_id)


def create_posting_schedule(content: List[ViralContent], posts_per_day: int = 3) -> List[Dict]:
    schedule = []
    for index, item in enumerate(content):
        day = index // posts_per_day
        time_slot = CAMPAIGN_POSTING_TIMES[index % len(CAMPAIGN_POSTING_TIMES)]
        schedule.append({
            "content_id": item.id,
            "platform": item.platform,
            "scheduled_time": f"Day {day + 1} at {time_slot}",
            "content": item.content,
            "hashtags": item.hashtags,
            "viral_score": item.viral_score,
        })
    return schedule
