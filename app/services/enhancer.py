"""
LLM-powered message enhancer.

Rewrites the text of a message draft (improve / professional / summarize /
expand) with a single chat completion.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import openai
from openai import AsyncOpenAI
from openai.types.chat import ChatCompletionMessageParam
from tenacity import (
    retry,
    stop_after_attempt,
    wait_random_exponential,
    retry_if_exception_type,
)

from app.errors import EchoVaultError
from app.types.contracts import EnhanceRequest
from config import settings

_LOGGER = logging.getLogger(__name__)

_client: AsyncOpenAI | None = None

# ──────────────────────────────────────────────────────────────────────────
# Prompts
# ──────────────────────────────────────────────────────────────────────────

_PROMPTS = {
    "improve": (
        "You are a skilled editor. Improve the writing quality, fix grammar and spelling errors, "
        "and enhance clarity. Return only the improved text without explanations."
    ),
    "professional": (
        "You are a professional writer. Convert the given text into professional business language. "
        "Return only the converted text without explanations."
    ),
    "summarize": (
        "You are a summarization expert. Create a concise summary of the given text. "
        "Return only the summary without explanations."
    ),
    "expand": (
        "You are a content developer. Expand on the given text with more details and elaboration. "
        "Return only the expanded text without explanations."
    ),
}

_DEFAULT_PROMPT = (
    "You are a helpful assistant that enhances text. Improve the writing quality of the given text. "
    "Return only the improved text without explanations."
)


def system_prompt(enhancement_type: Optional[str]) -> str:
    return _PROMPTS.get((enhancement_type or "").lower(), _DEFAULT_PROMPT)


def _build_messages(text: str, enhancement_type: Optional[str]) -> List[ChatCompletionMessageParam]:
    return [
        {"role": "system", "content": system_prompt(enhancement_type)},
        {"role": "user", "content": text},
    ]


def _get_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        _client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
    return _client


# ──────────────────────────────────────────────────────────────────────────
# OpenAI call
# ──────────────────────────────────────────────────────────────────────────

# Retry only on transport / rate-limit / backend errors
RETRY_ERRORS = (
    openai.APIStatusError,
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.APITimeoutError,
)


@retry(
    wait=wait_random_exponential(multiplier=1, max=30),
    stop=stop_after_attempt(3),
    retry=retry_if_exception_type(RETRY_ERRORS),
    reraise=True,
)
async def _call_openai(messages: List[ChatCompletionMessageParam]) -> str:
    response = await _get_client().chat.completions.create(
        model=settings.OPENAI_MODEL,
        messages=messages,
        temperature=0.7,
        timeout=settings.OPENAI_TIMEOUT,
    )
    return (response.choices[0].message.content or "").strip()


async def enhance(request: EnhanceRequest) -> dict:
    """Entry point of the enhance-message function: ``{"enhancedText": ...}``."""
    if not settings.OPENAI_API_KEY:
        _LOGGER.info("[ENHANCE] DEV mode: returning text unchanged")
        return {"enhancedText": request.text}
    try:
        enhanced = await _call_openai(_build_messages(request.text, request.enhancement_type))
    except openai.OpenAIError as exc:
        _LOGGER.error("OpenAI API Error: %s", exc)
        raise EchoVaultError("Failed to process text with AI") from exc
    return {"enhancedText": enhanced or request.text}
