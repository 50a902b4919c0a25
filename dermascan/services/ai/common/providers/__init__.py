"""Provider factory: returns the right provider instance or falls back to mock."""

from __future__ import annotations

import logging

from dermascan.core.config import Settings, get_settings

from .base import BaseProvider, ProviderResult
from .mock import MockProvider

logger = logging.getLogger(__name__)

__all__ = ["get_provider", "BaseProvider", "ProviderResult", "MockProvider"]


def get_provider(provider_name: str, settings: Settings | None = None) -> BaseProvider:
    """Return a provider instance for *provider_name*.

    Providers outside the allowlist and unknown names fall back to
    ``MockProvider``. A missing API key does *not* fall back here: the
    orchestrator checks the credential itself so that it can report
    ``no_credential`` instead of silently serving mock data.
    """
    settings = settings or get_settings()
    name = provider_name.lower().strip()

    if name not in settings.ai_allowed_providers:
        logger.warning("Provider %r not in allowlist, falling back to mock", name)
        return MockProvider()

    if name == "mock":
        return MockProvider()

    if name == "openai":
        from .openai import OpenAIProvider

        return OpenAIProvider(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
        )

    logger.warning("Unknown provider %r, falling back to mock", name)
    return MockProvider()
