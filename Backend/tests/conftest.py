"""
Shared fixtures. Settings are read at import time, so the environment is
pinned here before anything from ``specmatch`` is imported.
"""
import asyncio
import json
import os
from typing import Callable, Optional

os.environ["KV_BACKEND"] = "memory"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["OPENAI_API_KEY"] = ""
os.environ["STAGE_TIMEOUT_SECONDS"] = "5"

import pytest

from specmatch.services.kv_store import MemoryKVStore


# ─── Fake LLM ────────────────────────────────────────────────────────────────

def analysis_payload(requirements=None, testcases=None, links=None, fenced: bool = False) -> str:
    body = json.dumps({
        "requirements": requirements or [],
        "testcases": testcases or [],
        "links": links or [],
    })
    if fenced:
        return f"Here is the analysis:\n```json\n{body}\n```"
    return body


VALIDATE_INPUT_RESPONSE = analysis_payload(
    requirements=[{
        "id": "REQ-1", "text": "must validate input", "type": "functional",
        "status": "new", "priority": "high", "risk": "high",
    }],
    testcases=[{"id": "TC-1", "text": "validates malformed input", "type": "negative", "complexity": "simple"}],
    links=[{
        "requirementId": "REQ-1", "testcaseId": "TC-1", "matchType": "exact", "confidence": 0.93,
        "explanation": "TC-1 feeds malformed input", "coverageAreas": ["input validation"], "gaps": [],
    }],
    fenced=True,
)


class FakeLLM:
    """
    Scripted LLMClient.

    ``responder(prompt, purpose)`` produces the answer; ``delays`` maps a
    purpose to a sleep before answering; ``error`` is raised on every call.
    """

    def __init__(
        self,
        responder: Optional[Callable[[str, str], str]] = None,
        delays: Optional[dict[str, float]] = None,
        error: Optional[Exception] = None,
    ):
        self.responder = responder or (lambda prompt, purpose: "" if purpose == "synonyms" else VALIDATE_INPUT_RESPONSE)
        self.delays = delays or {}
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def complete(self, prompt: str, system: Optional[str] = None, *, purpose: str = "completion") -> str:
        self.calls.append((purpose, prompt))
        delay = self.delays.get(purpose, 0)
        if delay:
            await asyncio.sleep(delay)
        if self.error is not None:
            raise self.error
        return self.responder(prompt, purpose)

    def calls_for(self, prefix: str) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[0].startswith(prefix)]


# ─── Fixtures ────────────────────────────────────────────────────────────────

class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryKVStore:
    return MemoryKVStore()


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


TEST_TABLE = [["ID", "Description"], ["TC-1", "validates malformed input"]]
TEST_CSV = b"ID,Description\nTC-1,validates malformed input\n"
BASE_SPEC = b"REQ-1: must validate input"
