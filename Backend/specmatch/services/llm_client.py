from __future__ import annotations

import logging
import os
import time
from typing import Any, Optional, Protocol

from jinja2 import Environment, FileSystemLoader, StrictUndefined
from openai import AsyncOpenAI, OpenAIError

from specmatch.core.config import settings
from specmatch.core.errors import UpstreamUnavailableError
from specmatch.core.logging_config import log_event

# ─── Logger ──────────────────────────────────────────────────────────────────
logger = logging.getLogger(__name__)

# ─── Jinja2 Template Environment ─────────────────────────────────────────────
TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates", "prompts")
_jinja_env = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    trim_blocks=True,
    lstrip_blocks=True,
    undefined=StrictUndefined,
)


def render_prompt(template_name: str, **context: Any) -> str:
    """Render one of the prompt templates under templates/prompts/."""
    return _jinja_env.get_template(template_name).render(**context)


# ─── Client Protocol ─────────────────────────────────────────────────────────
class LLMClient(Protocol):
    """The text-in / text-out capability the pipeline and the search engine need."""

    async def complete(self, prompt: str, system: Optional[str] = None, *, purpose: str = "completion") -> str:
        ...


class OpenAIChatClient:
    """
    Chat-completions client.

    No retries: the OpenAI SDK's own retry loop is disabled (max_retries=0)
    because every failure is terminal for the invocation that triggered it.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.model = model or settings.LLM_MODEL
        self.max_tokens = max_tokens or settings.LLM_MAX_TOKENS
        api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.client: Optional[AsyncOpenAI] = None
        if api_key:
            self.client = AsyncOpenAI(
                api_key=api_key,
                max_retries=0,
                timeout=timeout or settings.LLM_REQUEST_TIMEOUT_SECONDS,
            )
        # Else: client stays None and every call raises UpstreamUnavailableError

    async def complete(self, prompt: str, system: Optional[str] = None, *, purpose: str = "completion") -> str:
        if self.client is None:
            raise UpstreamUnavailableError("OPENAI_API_KEY is not configured")

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        start_time = time.perf_counter()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            logger.error("OpenAI call failed (%s): %s", purpose, e)
            raise UpstreamUnavailableError(f"LLM request failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        elapsed_ms = (time.perf_counter() - start_time) * 1000

        log_event(
            logger,
            "llm_response",
            purpose=purpose,
            model=self.model,
            duration_ms=round(elapsed_ms, 2),
            prompt_chars=len(prompt) + len(system or ""),
            response_chars=len(content or ""),
        )
        return content or ""


def build_llm_client() -> LLMClient:
    return OpenAIChatClient()
