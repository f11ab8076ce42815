"""
LLM Service for AI-Powered Recommendations
Sends a prompt to Claude and returns the parsed JSON object it answers with
"""
import json
import re
from typing import Any, Dict, Optional

from anthropic import AsyncAnthropic

from app.config import get_settings
from app.exceptions import LLMResponseError, LLMUnavailableError
from app.utils.logger import log
from app.utils.retry import retry_async

settings = get_settings()

JSON_SYSTEM_PROMPT = (
    "You are a growth and pricing analyst. Respond with a single valid JSON "
    "object and nothing else: no prose, no markdown fences."
)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


def extract_json_object(raw: str) -> Dict[str, Any]:
    """
    Parse the JSON object out of a model response.

    Accepts a bare object, an object wrapped in ```json fences, or an object
    with stray text around it. Raises LLMResponseError otherwise.
    """
    text = (raw or "").strip()
    if not text:
        raise LLMResponseError("Empty response from model")

    fence = _FENCE_RE.search(text)
    if fence:
        text = fence.group(1).strip()

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise LLMResponseError("No JSON object in model response")
        try:
            parsed = json.loads(text[start:end + 1])
        except json.JSONDecodeError as e:
            raise LLMResponseError(f"Malformed JSON from model: {e}") from e

    if not isinstance(parsed, dict):
        raise LLMResponseError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


class LLMService:
    """
    Async wrapper around the Anthropic Messages API that always asks for,
    and returns, a JSON object.

    Services depend on `complete_json` only, so tests can hand them any
    object with the same coroutine.
    """

    def __init__(self, client: Optional[AsyncAnthropic] = None):
        self.enabled = bool(settings.enable_llm_insights and settings.anthropic_api_key)
        self.client = client

        if client is not None:
            self.enabled = True
        elif self.enabled:
            self.client = AsyncAnthropic(
                api_key=settings.anthropic_api_key,
                timeout=settings.llm_timeout_seconds,
                max_retries=0,  # retries handled by retry_async
            )
            log.info(f"LLM Service initialized with {settings.llm_model}")
        else:
            log.info("LLM recommendations disabled (no API key or feature disabled)")

    def is_available(self) -> bool:
        return self.enabled

    async def complete_json(
        self,
        prompt: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Send a prompt and return the model's JSON object.

        Raises:
            LLMUnavailableError: no client configured
            LLMResponseError: the answer was not a JSON object
            anthropic.APIError: transport/API failure after retries
        """
        if not self.enabled:
            raise LLMUnavailableError("LLM service not configured")

        raw = await self._create_message(
            prompt,
            max_tokens or settings.llm_max_tokens,
            settings.llm_temperature if temperature is None else temperature,
        )
        return extract_json_object(raw)

    @retry_async(max_attempts=settings.llm_max_retries + 1, base_delay=1.0)
    async def _create_message(self, prompt: str, max_tokens: int, temperature: float) -> str:
        response = await self.client.messages.create(
            model=settings.llm_model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=JSON_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )
        return "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )


_llm_service: Optional[LLMService] = None


def get_llm_service() -> LLMService:
    """Process-wide LLM service (lazily created)"""
    global _llm_service
    if _llm_service is None:
        _llm_service = LLMService()
    return _llm_service
