"""
Meetup Ledger — LLM Provider Abstraction.

Single public function `complete()` that routes to the provider named by
LLM_PROVIDER. Providers register themselves with `@_provider`; their SDKs
are imported lazily so none of them is needed unless selected.
Supports: gemini (default), anthropic, openai, cohere.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

_CompleteFn = Callable[["_Request"], Awaitable[str]]


class LLMUnavailableError(RuntimeError):
    """No usable provider is configured."""


@dataclass
class _Request:
    api_key: str
    model: str
    system: str
    prompt: str
    max_tokens: int


_REGISTRY: dict[str, tuple[_CompleteFn, str]] = {}


def _provider(name: str, default_model: str) -> Callable[[_CompleteFn], _CompleteFn]:
    def register(fn: _CompleteFn) -> _CompleteFn:
        _REGISTRY[name] = (fn, default_model)
        return fn
    return register


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


@_provider("gemini", "gemini-2.0-flash")
async def _gemini(req: _Request) -> str:
    import google.generativeai as genai

    genai.configure(api_key=req.api_key)
    model = genai.GenerativeModel(model_name=req.model, system_instruction=req.system)
    response = await model.generate_content_async(
        req.prompt,
        generation_config=genai.types.GenerationConfig(max_output_tokens=req.max_tokens),
    )
    return response.text


@_provider("anthropic", "claude-haiku-4-5-20251001")
async def _anthropic(req: _Request) -> str:
    import anthropic

    client = anthropic.AsyncAnthropic(api_key=req.api_key)
    response = await client.messages.create(
        model=req.model,
        max_tokens=req.max_tokens,
        system=req.system,
        messages=[{"role": "user", "content": req.prompt}],
    )
    return response.content[0].text


def _chat_messages(req: _Request) -> list[dict]:
    return [
        {"role": "system", "content": req.system},
        {"role": "user", "content": req.prompt},
    ]


@_provider("openai", "gpt-4o-mini")
async def _openai(req: _Request) -> str:
    from openai import AsyncOpenAI

    client = AsyncOpenAI(api_key=req.api_key)
    response = await client.chat.completions.create(
        model=req.model, max_tokens=req.max_tokens, messages=_chat_messages(req),
    )
    return response.choices[0].message.content


@_provider("cohere", "command-a-03-2025")
async def _cohere(req: _Request) -> str:
    import cohere

    client = cohere.AsyncClientV2(api_key=req.api_key)
    response = await client.chat(
        model=req.model, max_tokens=req.max_tokens, messages=_chat_messages(req),
    )
    return response.message.content[0].text


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def complete(system: str, prompt: str, max_tokens: int = 256) -> str:
    """Send a prompt to the configured provider and return the response text.

    Raises LLMUnavailableError when unconfigured; provider errors propagate.
    Callers should handle both.
    """
    from meetup_ledger.config import settings

    name = settings.LLM_PROVIDER.lower()
    if name not in _REGISTRY:
        raise LLMUnavailableError(
            f"Unknown LLM_PROVIDER={name!r}. Supported: {', '.join(_REGISTRY)}"
        )
    if not settings.LLM_API_KEY:
        raise LLMUnavailableError("LLM_API_KEY is not set")

    fn, default_model = _REGISTRY[name]
    model = settings.LLM_MODEL or default_model
    logger.debug("LLM request via %s (%s)", name, model)
    return await fn(_Request(settings.LLM_API_KEY, model, system, prompt, max_tokens))
