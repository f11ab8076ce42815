"""
LLM JSON handling and retry behaviour.
"""
from types import SimpleNamespace

import pytest

from app.exceptions import LLMResponseError, LLMUnavailableError
from app.services.llm_service import LLMService, extract_json_object
from app.utils.retry import calculate_backoff, is_retryable_error, retry_async
from conftest import _run


class FakeMessages:
    def __init__(self, text):
        self.text = text
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        return SimpleNamespace(content=[
            SimpleNamespace(type="text", text=self.text),
        ])


class HTTPStatusError(Exception):
    def __init__(self, status_code):
        super().__init__(f"status {status_code}")
        self.status_code = status_code


# ---------------------------------------------------------------------------
# extract_json_object
# ---------------------------------------------------------------------------

def test_bare_object():
    assert extract_json_object('{"a": 1}') == {"a": 1}


def test_fenced_object():
    assert extract_json_object('Here you go:\n```json\n{"a": [1, 2]}\n```') == {"a": [1, 2]}


def test_object_with_surrounding_prose():
    assert extract_json_object('Sure! {"multiplier": 1.1} Hope that helps.') == {"multiplier": 1.1}


@pytest.mark.parametrize("raw", ["", "no json here", "[1, 2, 3]", "{not: valid}"])
def test_unusable_responses(raw):
    with pytest.raises(LLMResponseError):
        extract_json_object(raw)


# ---------------------------------------------------------------------------
# LLMService
# ---------------------------------------------------------------------------

def test_disabled_service_raises_unavailable():
    service = LLMService()
    assert service.is_available() is False
    with pytest.raises(LLMUnavailableError):
        _run(service.complete_json("hi"))


def test_complete_json_with_client():
    messages = FakeMessages('{"viralScore": 88}')
    service = LLMService(client=SimpleNamespace(messages=messages))

    result = _run(service.complete_json("Create viral content", max_tokens=500, temperature=0.2))

    assert result == {"viralScore": 88}
    request = messages.requests[0]
    assert request["max_tokens"] == 500
    assert request["temperature"] == 0.2
    assert request["messages"][0]["content"] == "Create viral content"


# ---------------------------------------------------------------------------
# retry_async
# ---------------------------------------------------------------------------

def test_backoff_grows_and_caps():
    assert calculate_backoff(1, base_delay=1.0, jitter=False) == 1.0
    assert calculate_backoff(3, base_delay=1.0, jitter=False) == 4.0
    assert calculate_backoff(10, base_delay=1.0, max_delay=30.0, jitter=False) == 30.0


def test_retryable_classification():
    assert is_retryable_error(HTTPStatusError(529))
    assert is_retryable_error(HTTPStatusError(429))
    assert not is_retryable_error(HTTPStatusError(400))
    assert is_retryable_error(RuntimeError("Request timed out"))
    assert not is_retryable_error(ValueError("bad prompt"))


def test_retries_transient_errors_then_succeeds():
    calls = []

    @retry_async(max_attempts=3, base_delay=0.01)
    async def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise HTTPStatusError(503)
        return "ok"

    assert _run(flaky()) == "ok"
    stats = flaky.get_retry_stats()
    assert stats.attempts == 3
    assert stats.success is True


def test_does_not_retry_permanent_errors():
    calls = []

    @retry_async(max_attempts=3, base_delay=0.01)
    async def broken():
        calls.append(1)
        raise HTTPStatusError(401)

    with pytest.raises(HTTPStatusError):
        _run(broken())
    assert len(calls) == 1
