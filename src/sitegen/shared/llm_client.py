"""Async OpenAI API wrapper used by the Generation Service.

Retries are deliberately *not* handled here: the SDK's built-in retries
are switched off and every call goes through ``RetryPolicy`` one level up,
so there is exactly one attempt budget per operation.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

# Model used when the config does not override it
MODEL = "gpt-4o"
MAX_TOKENS = 16_384

TokensCallback = Callable[[int, int], None]
"""Called with (input_tokens, output_tokens) when a completion finishes."""


class LLMClient:
    """Thin async wrapper around the OpenAI SDK.

    Provides a single ``simple_completion`` — one request/response with
    no tools.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str = MODEL,
        max_tokens: int = MAX_TOKENS,
    ) -> None:
        self._client = AsyncOpenAI(api_key=api_key, max_retries=0)
        self.model = model
        self.max_tokens = max_tokens

    async def simple_completion(
        self,
        *,
        system: str,
        user_message: str,
        json_mode: bool = True,
        on_tokens: TokensCallback | None = None,
    ) -> str:
        """Single request/response with no tools.

        When ``json_mode`` is True (default), the OpenAI API guarantees
        the response is valid JSON.
        """
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user_message},
            ],
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = await self._client.chat.completions.create(**kwargs)
        usage = getattr(response, "usage", None)
        if on_tokens and usage:
            on_tokens(getattr(usage, "prompt_tokens", 0), getattr(usage, "completion_tokens", 0))
        return response.choices[0].message.content or ""


# ======================================================================
# Dry-run mock client (zero API calls)
# ======================================================================

_DRY_RUN_JSON: dict[str, str] = {
    "identity": json.dumps({
        "site_name": "Lumen Studio",
        "slug": "lumen-studio",
        "mission": "We build calm, useful software for people who make things.",
        "brand_description": "A small studio focused on humane tools.",
        "theme_color": "#4f46e5",
        "tone": "Minimal",
    }),
    "strategy": json.dumps({
        "sections": [
            {"title": "Services", "slug": "services", "description": "What we offer"},
            {"title": "Works", "slug": "works", "description": "Selected projects"},
            {"title": "About", "slug": "about", "description": "Who we are"},
        ],
        "rationale": "Three sections keep navigation shallow for a small studio.",
    }),
    "showcase": json.dumps({
        "title": "Sample Project",
        "slug": "sample-project",
        "description": "A dry-run showcase article.",
        "target_hub_id": "",
    }),
    "readme": "# Lumen Studio\n\nGenerated static site.\n",
}

_DRY_RUN_PAGE = """<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>{title}</title></head>
<body><main><h1>{title}</h1><p>Dry-run page.</p></main></body>
</html>"""


class DryRunClient:
    """Drop-in replacement for LLMClient that makes zero API calls.

    Answers each prompt with canned JSON or markup, picked by the role the
    system prompt names.
    """

    model = "dry-run"

    async def simple_completion(
        self,
        *,
        system: str,
        user_message: str,
        json_mode: bool = True,
        on_tokens: TokensCallback | None = None,
    ) -> str:
        key = self._detect_prompt(system)
        logger.info("[dry-run] %s completion (%d chars in)", key, len(user_message))
        if key in ("page", "tune"):
            return _DRY_RUN_PAGE.format(title=self._first_line(user_message))
        return _DRY_RUN_JSON.get(key, "{}")

    @staticmethod
    def _first_line(text: str) -> str:
        for line in text.splitlines():
            if line.strip():
                return line.strip()[:80]
        return "Untitled"

    @staticmethod
    def _detect_prompt(system: str) -> str:
        """Guess which Generation Service operation sent the prompt."""
        if "Brand Strategist" in system or "Brand Analyst" in system:
            return "identity"
        if "Information Architect" in system:
            return "strategy"
        if "Design Tuner" in system:
            return "tune"
        if "Page Designer" in system:
            return "page"
        if "Showcase Curator" in system:
            return "showcase"
        if "README Writer" in system:
            return "readme"
        return "unknown"
