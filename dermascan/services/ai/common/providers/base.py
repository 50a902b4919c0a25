"""Abstract base for all vision providers."""

from __future__ import annotations

import abc
from dataclasses import dataclass


@dataclass(frozen=True)
class ProviderResult:
    """One raw answer from the vision service plus usage metadata."""

    raw_text: str
    model: str
    provider: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    latency_ms: float = 0.0


class BaseProvider(abc.ABC):
    """Contract that every vision provider must implement.

    Implementations raise the classified errors from
    ``dermascan.services.ai.analysis.errors`` and nothing else for
    HTTP/transport problems.
    """

    name: str = "base"
    requires_credential: bool = True

    @abc.abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        image_b64: str,
        model: str = "",
        temperature: float = 0.3,
        max_tokens: int = 1500,
        timeout_seconds: float = 30.0,
    ) -> ProviderResult:
        """Send *prompt* together with one base64 image and return a ``ProviderResult``."""

    async def probe(self, *, timeout_seconds: float = 5.0) -> bool:
        """Lightweight reachability check. ``True`` when the service answers."""
        return True
