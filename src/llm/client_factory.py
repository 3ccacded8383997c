# src/llm/client_factory.py - v3
"""Factory: instantiate the oracle LLM client from settings or a provider name."""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING

from fileorganizer.core.errors import MissingConfiguration

if TYPE_CHECKING:
    from fileorganizer.config.settings import Settings
    from fileorganizer.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)

# Provider name -> adapter class path, imported on first use.
_PROVIDER_REGISTRY: dict[str, str] = {
    "anthropic": "fileorganizer.llm.adapters.anthropic_adapter.AnthropicAdapter",
    "openai": "fileorganizer.llm.adapters.openai_adapter.OpenAIAdapter",
}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def create_llm_client(
    provider: str,
    model: str,
    api_key: str = "",
    **kwargs: object,
) -> BaseLLMClient:
    """Instantiate the adapter registered for ``provider``.

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    adapter_cls = _import_class(_PROVIDER_REGISTRY[provider])
    logger.debug("Creating LLM client: provider=%s, model=%s", provider, model)
    return adapter_cls(model=model, api_key=api_key, **kwargs)


def create_llm_client_from_settings(settings: Settings) -> BaseLLMClient:
    """Client for the configured provider.

    Raises:
        MissingConfiguration: If the provider's API key is not set.
    """
    if not settings.llm_api_key:
        raise MissingConfiguration(
            f"No API key configured for LLM provider {settings.llm_provider!r}"
        )
    return create_llm_client(
        settings.llm_provider,
        settings.llm_model,
        api_key=settings.llm_api_key,
    )


def register_provider(name: str, class_path: str) -> None:
    """Register a custom adapter implementing BaseLLMClient."""
    _PROVIDER_REGISTRY[name] = class_path
    logger.info("Registered LLM provider: %s -> %s", name, class_path)


def _import_class(class_path: str) -> type:
    module_path, class_name = class_path.rsplit(".", 1)
    return getattr(importlib.import_module(module_path), class_name)
