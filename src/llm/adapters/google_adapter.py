# src/llm/adapters/google_adapter.py — v3
"""Google Gemini adapter implementing BaseLLMClient.

Uses google-generativeai SDK. SDK and google-api-core exceptions are mapped
onto GenerationFailure tags here; anything else surfaces as a recoverable
NETWORK failure.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from newsweaver.core.errors import GenerationError, GenerationFailure
from newsweaver.llm.base_client import BaseLLMClient
from newsweaver.llm.models import LLMResponse, Message

logger = logging.getLogger(__name__)


def classify_google_error(exc: Exception) -> GenerationFailure:
    """Map a google-api-core / SDK exception to a GenerationFailure."""
    from google.api_core import exceptions as gexc
    from google.generativeai.types import BlockedPromptException

    if isinstance(exc, BlockedPromptException):
        return GenerationFailure.REJECTED
    if isinstance(exc, (gexc.ResourceExhausted, gexc.TooManyRequests)):
        return GenerationFailure.RATE_LIMIT
    if isinstance(exc, gexc.DeadlineExceeded):
        return GenerationFailure.TIMEOUT
    if isinstance(exc, (gexc.ServiceUnavailable, gexc.InternalServerError)):
        return GenerationFailure.SERVER
    if isinstance(exc, (gexc.InvalidArgument, gexc.PermissionDenied, gexc.Unauthenticated)):
        return GenerationFailure.REJECTED
    return GenerationFailure.NETWORK


def _to_contents(messages: list[Message]) -> list[dict[str, Any]]:
    """Gemini calls the assistant role "model"."""
    return [
        {"role": "model" if m.role == "assistant" else "user", "parts": [{"text": m.content}]}
        for m in messages
    ]


def _reply_text(resp: Any) -> str:
    # .text raises ValueError when the reply has no usable candidate
    try:
        text = resp.text or ""
    except ValueError as e:
        raise GenerationError(GenerationFailure.EMPTY_REPLY, str(e)) from e
    if not text.strip():
        raise GenerationError(GenerationFailure.EMPTY_REPLY, "no content in response")
    return text


class GoogleAdapter(BaseLLMClient):
    """Google Gemini adapter."""

    def __init__(self, model: str = "gemini-1.5-flash", api_key: str = "", **kwargs: Any):
        self._model = model
        self._api_key = api_key

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.4,
    ) -> LLMResponse:
        import google.generativeai as genai
        from google.api_core.exceptions import GoogleAPIError
        from google.generativeai.types import BlockedPromptException

        genai.configure(api_key=self._api_key)
        gemini = genai.GenerativeModel(self._model, system_instruction=system)

        started = time.monotonic()
        try:
            resp = await gemini.generate_content_async(
                _to_contents(messages),
                generation_config={"max_output_tokens": max_tokens, "temperature": temperature},
            )
        except (GoogleAPIError, BlockedPromptException) as e:
            failure = classify_google_error(e)
            logger.warning("Gemini call failed (%s): %s", failure.value, e)
            raise GenerationError(failure, str(e)) from e
        except Exception as e:
            # transport and SDK internals outside the google-api-core tree
            logger.warning("Gemini call failed (unclassified): %r", e)
            raise GenerationError(GenerationFailure.NETWORK, str(e) or repr(e)) from e
        elapsed_ms = int((time.monotonic() - started) * 1000)

        text = _reply_text(resp)
        usage = getattr(resp, "usage_metadata", None)
        return LLMResponse(
            content=text,
            input_tokens=getattr(usage, "prompt_token_count", 0) or 0,
            output_tokens=getattr(usage, "candidates_token_count", 0) or 0,
            model=self._model,
            provider=self.provider_name,
            latency_ms=elapsed_ms,
            raw_response=resp,
        )

    @property
    def provider_name(self) -> str:
        return "google"
