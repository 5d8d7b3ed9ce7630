"""Generation Service client — typed operations over the LLM.

Every operation runs through ``RetryPolicy`` with the caller's cancellation
token, so a cancelled workflow never dispatches another completion.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Awaitable, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from sitegen.errors import ServiceError
from sitegen.generation import prompts
from sitegen.generation.markup import render_footer, render_header, strip_markdown
from sitegen.schemas.generation import NavLink, ShowcaseProposal, StrategyProposal
from sitegen.schemas.project import HubPage, Identity, SiteTone, SiteType
from sitegen.shared.cancellation import CancellationToken
from sitegen.shared.llm_client import TokensCallback
from sitegen.shared.retry import RetryPolicy

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

# Only the head of an imported page is worth sending for brand analysis.
ANALYZE_HTML_LIMIT = 20_000

FALLBACK_PAGE_HTML = (
    "<!DOCTYPE html><html><body><p>Page generation failed. Please try again.</p></body></html>"
)

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)

_JSON_RETRY_MSG = (
    "I need the output as a single JSON object (no markdown, no explanation — "
    "just raw JSON) matching the schema described in your instructions. "
    "Please re-format your response now."
)


class CompletionClient(Protocol):
    async def simple_completion(
        self,
        *,
        system: str,
        user_message: str,
        json_mode: bool = True,
        on_tokens: TokensCallback | None = None,
    ) -> str: ...


class PageInfo(Protocol):
    title: str
    description: str


def extract_json(text: str) -> dict[str, Any]:
    """Pull the JSON object out of a model reply.

    Accepts bare JSON, JSON followed by chatter, a fenced block, or an object
    embedded in prose. A reply whose JSON is not an object (a list, say)
    raises ``ValueError`` like unparseable output does.
    """
    text = text.strip()
    fenced = _JSON_FENCE_RE.search(text)
    candidates = [fenced.group(1).strip(), text] if fenced else [text]

    decoder = json.JSONDecoder()
    for candidate in candidates:
        start = 0 if candidate.startswith(("{", "[")) else candidate.find("{")
        if start == -1:
            continue
        try:
            value, _ = decoder.raw_decode(candidate, idx=start)
        except json.JSONDecodeError:
            continue
        if not isinstance(value, dict):
            raise ValueError(f"Expected a JSON object from the model, got {type(value).__name__}")
        return value

    raise ValueError(
        f"Could not extract JSON from model response (length={len(text)}). "
        f"First 300 chars: {text[:300]!r}"
    )


def _identity_brief(identity: Identity) -> str:
    tone = identity.tone.value if identity.tone else "unspecified"
    return (
        f"Site name: {identity.site_name}\n"
        f"Mission: {identity.mission}\n"
        f"Brand: {identity.brand_description}\n"
        f"Theme colour: {identity.theme_color}\n"
        f"Tone: {tone}"
    )


class GenerationService:
    """Typed Generation Service operations."""

    def __init__(
        self,
        client: CompletionClient,
        retry: RetryPolicy | None = None,
        *,
        on_tokens: TokensCallback | None = None,
    ) -> None:
        self.client = client
        self.retry = retry or RetryPolicy()
        self.on_tokens = on_tokens

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    async def _complete(
        self,
        system: str,
        user_message: str,
        *,
        json_mode: bool,
        cancel: CancellationToken | None,
        description: str,
    ) -> str:
        def call() -> Awaitable[str]:
            return self.client.simple_completion(
                system=system,
                user_message=user_message,
                json_mode=json_mode,
                on_tokens=self.on_tokens,
            )

        return await self.retry.run(call, cancel=cancel, description=description)

    async def _json_completion(
        self,
        system: str,
        user_message: str,
        model: type[M],
        *,
        cancel: CancellationToken | None,
        description: str,
    ) -> M:
        """Call the model, parse into ``model``; ask once for re-formatting on bad JSON."""
        raw = await self._complete(
            system, user_message, json_mode=True, cancel=cancel, description=description,
        )
        try:
            return model(**extract_json(raw))
        except (ValueError, json.JSONDecodeError, ValidationError) as err:
            logger.warning(
                "%s output was not valid JSON, requesting re-format. Error: %s",
                description, err,
            )

        retry_msg = f"{user_message}\n\nYour previous response:\n{raw}\n\n{_JSON_RETRY_MSG}"
        raw_retry = await self._complete(
            system, retry_msg, json_mode=True, cancel=cancel, description=description,
        )
        try:
            return model(**extract_json(raw_retry))
        except (ValueError, json.JSONDecodeError, ValidationError) as err:
            raise ServiceError(f"{description} returned unusable output: {err}") from err

    async def _html_completion(
        self,
        system: str,
        user_message: str,
        *,
        cancel: CancellationToken | None,
        description: str,
    ) -> str:
        raw = await self._complete(
            system, user_message, json_mode=False, cancel=cancel, description=description,
        )
        return strip_markdown(raw)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def derive_identity(
        self,
        intent: str,
        category: SiteType,
        tone: SiteTone | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> Identity:
        tone_line = (
            f"Tone: {tone.value}" if tone else "Tone: choose the best fit for the intent"
        )
        user_message = f"Intent: {intent}\nCategory: {category.value}\n{tone_line}"
        identity = await self._json_completion(
            prompts.IDENTITY_SYSTEM_PROMPT, user_message, Identity,
            cancel=cancel, description="derive_identity",
        )
        if tone is not None:
            identity = identity.model_copy(update={"tone": tone})
        return identity

    async def analyze_existing_markup(
        self,
        html: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> Identity:
        user_message = f"HTML:\n{html[:ANALYZE_HTML_LIMIT]}"
        return await self._json_completion(
            prompts.ANALYZE_SYSTEM_PROMPT, user_message, Identity,
            cancel=cancel, description="analyze_existing_markup",
        )

    async def propose_strategy(
        self,
        identity: Identity,
        category: SiteType,
        *,
        cancel: CancellationToken | None = None,
    ) -> StrategyProposal:
        user_message = f"{_identity_brief(identity)}\nCategory: {category.value}"
        return await self._json_completion(
            prompts.STRATEGY_SYSTEM_PROMPT, user_message, StrategyProposal,
            cancel=cancel, description="propose_strategy",
        )

    async def generate_page_markup(
        self,
        page: PageInfo,
        identity: Identity,
        category: SiteType,
        all_sections: list[HubPage],
        nav_links: list[NavLink],
        is_home: bool,
        exemplar_markup: str | None = None,
        extra_instruction: str | None = None,
        *,
        material: str | None = None,
        cancel: CancellationToken | None = None,
    ) -> str:
        header = render_header(identity, category, all_sections, is_home=is_home)
        footer = render_footer(identity)

        parts = [
            f"Page: {page.title} - {page.description}",
            _identity_brief(identity),
            f"Category: {category.value}",
        ]
        if nav_links:
            links = "\n".join(f"- {link.title}: {link.url}" for link in nav_links)
            parts.append(f"Link to each of these pages from the content:\n{links}")
        if material:
            parts.append(f"Source material for the content:\n{material}")
        if extra_instruction:
            parts.append(f"Additional instruction: {extra_instruction}")
        parts.append(f"Header fragment:\n{header}")
        parts.append(f"Footer fragment:\n{footer}")
        if exemplar_markup:
            parts.append(f"Reference page (match its style):\n{exemplar_markup}")

        html = await self._html_completion(
            prompts.PAGE_SYSTEM_PROMPT, "\n\n".join(parts),
            cancel=cancel, description=f"generate_page_markup({page.title})",
        )
        return html or FALLBACK_PAGE_HTML

    async def tune_markup(
        self,
        current_html: str,
        instruction: str,
        identity: Identity,
        exemplar_html: str | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> str:
        parts = [
            f"Instruction: {instruction}",
            _identity_brief(identity),
        ]
        if exemplar_html:
            parts.append(f"Reference page (match its style):\n{exemplar_html}")
        parts.append(f"Current HTML:\n{current_html}")

        html = await self._html_completion(
            prompts.TUNE_SYSTEM_PROMPT, "\n\n".join(parts),
            cancel=cancel, description="tune_markup",
        )
        return html or current_html

    async def generate_readme(
        self,
        identity: Identity,
        *,
        cancel: CancellationToken | None = None,
    ) -> str:
        text = await self._complete(
            prompts.README_SYSTEM_PROMPT, _identity_brief(identity),
            json_mode=False, cancel=cancel, description="generate_readme",
        )
        return text.strip() or f"# {identity.site_name}\n\n{identity.mission}\n"

    async def propose_showcase(
        self,
        material: str,
        identity: Identity,
        hubs: list[HubPage],
        *,
        cancel: CancellationToken | None = None,
    ) -> ShowcaseProposal:
        candidates = ", ".join(f"{h.id}: {h.title}" for h in hubs if not h.is_home)
        user_message = (
            f"{_identity_brief(identity)}\n\n"
            f"Material:\n{material}\n\n"
            f"Section candidates: {candidates or '(none)'}"
        )
        return await self._json_completion(
            prompts.SHOWCASE_SYSTEM_PROMPT, user_message, ShowcaseProposal,
            cancel=cancel, description="propose_showcase",
        )

