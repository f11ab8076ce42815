"""
Shared fixtures.

Environment is configured before anything under `app` is imported: the
settings object is cached on first use and modules read it at import time.
"""
import asyncio
import json
import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="growth_engine_tests_")

ADMIN_TOKEN = "test-admin-token"
READER_TOKEN = "test-reader-token"

os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["LOG_DIR"] = os.path.join(_TMP_DIR, "logs")
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["ENABLE_CONTINUOUS_OPTIMIZATION"] = "false"
os.environ.pop("SERVICE_PRIVATE_KEY", None)
os.environ["API_TOKENS"] = json.dumps({
    ADMIN_TOKEN: {"subject": "ops-admin", "scopes": ["escrow:read", "escrow:write"]},
    READER_TOKEN: {"subject": "auditor", "scopes": ["escrow:read"]},
})

import pytest  # noqa: E402

from app.exceptions import LLMUnavailableError  # noqa: E402
from app.models.base import SessionLocal, init_db  # noqa: E402

init_db()


def _run(coro):
    """Run an async coroutine in a sync test."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None
    if loop and loop.is_running():
        import concurrent.futures
        with concurrent.futures.ThreadPoolExecutor() as pool:
            return pool.submit(asyncio.run, coro).result()
    return asyncio.run(coro)


class FakeLLM:
    """
    Stands in for LLMService.complete_json.

    `routes` maps a prompt substring to a response: a dict is returned, an
    exception instance is raised, a callable is called with the prompt.
    Prompts matching no route get `default` (LLMUnavailableError when unset).
    """

    def __init__(self, routes=None, default=None):
        self.routes = dict(routes or {})
        self.default = default
        self.calls = []

    def is_available(self) -> bool:
        return True

    async def complete_json(self, prompt, max_tokens=None, temperature=None):
        self.calls.append(prompt)
        response = self.default
        for needle, candidate in self.routes.items():
            if needle in prompt:
                response = candidate
                break
        if response is None:
            raise LLMUnavailableError("no scripted response")
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(prompt)
        return dict(response)


class FailingLLM(FakeLLM):
    def __init__(self, error=None):
        super().__init__(default=error or RuntimeError("model down"))


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture
def reader_headers():
    return {"Authorization": f"Bearer {READER_TOKEN}"}
