# src/llm/client_factory.py — v3
"""Factory: instantiate the generation gateway client from settings."""

from __future__ import annotations

import importlib
import logging

from newsweaver.config.settings import Settings
from newsweaver.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)

# Registry of provider name → adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "google": "newsweaver.llm.adapters.google_adapter.GoogleAdapter",
}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def create_llm_client(settings: Settings) -> BaseLLMClient | None:
    """Instantiate the configured adapter.

    Returns:
        Configured client, or None when no usable API key is set. Callers
        treat None as "skip enrichment".

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    provider = settings.llm_provider
    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    if not settings.has_generation_credentials:
        logger.warning(
            "No usable API key for provider %s; enrichment will be skipped", provider
        )
        return None

    adapter_cls = _import_class(_PROVIDER_REGISTRY[provider])
    logger.debug("Creating LLM client: provider=%s, model=%s", provider, settings.llm_model)
    return adapter_cls(model=settings.llm_model, api_key=settings.google_api_key)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
