"""AI Router: resolves provider + model for a scope from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from dermascan.core.config import Settings, get_settings

from .providers import BaseProvider, get_provider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedConfig:
    """Provider, model and call limits for one analysis run."""

    provider: BaseProvider
    model: str
    temperature: float
    max_tokens: int
    timeout_seconds: float
    probe_timeout_seconds: float
    credential: str | None


def resolve(
    scope: str = "vision",
    *,
    override_provider: str | None = None,
    settings: Settings | None = None,
) -> ResolvedConfig:
    """Resolve provider + model for a given *scope*.

    Resolution chain (first non-empty wins):
      1. ``override_provider`` (runtime parameter, tests and demo tooling).
      2. ENV ``AI_PROVIDER``.
      3. ``"mock"``.

    The credential is only meaningful for providers that declare
    ``requires_credential``; for the mock provider it is ``None``.
    """
    settings = settings or get_settings()

    provider_name = (override_provider or "").lower().strip()
    if not provider_name:
        provider_name = settings.ai_provider
    if not provider_name:
        provider_name = "mock"

    provider = get_provider(provider_name, settings)

    model = settings.ai_vision_model if provider.name != "mock" else ""
    credential = settings.openai_api_key if provider.requires_credential else None

    logger.debug("Resolved scope=%s provider=%s model=%s", scope, provider.name, model or "-")

    return ResolvedConfig(
        provider=provider,
        model=model,
        temperature=settings.ai_temperature,
        max_tokens=settings.ai_max_tokens,
        timeout_seconds=settings.ai_timeout_seconds,
        probe_timeout_seconds=settings.ai_probe_timeout_seconds,
        credential=credential,
    )
