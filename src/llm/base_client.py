# src/llm/base_client.py — v2
"""Abstract generation gateway interface.

Adapters translate provider SDK failures into GenerationError with a
GenerationFailure tag; callers never see SDK exception types.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from newsweaver.llm.models import LLMResponse, Message


class BaseLLMClient(ABC):
    """Unified interface for all generation providers."""

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.4,
    ) -> LLMResponse:
        """Text completion.

        Raises:
            GenerationError: On any provider failure, already classified.
        """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (google)."""

    async def close(self) -> None:
        """Release provider resources."""
