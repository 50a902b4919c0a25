"""Sequential, retrying access to the rate-limited vision service."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from dermascan.core.config import Settings
from dermascan.services.ai.common.audit import log_ai_run
from dermascan.services.ai.common.providers.base import BaseProvider, ProviderResult

from .contracts import InferenceRequest
from .errors import (
    AnalysisError,
    AuthError,
    MalformedResponseError,
    NetworkError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget, backoff curve and error classification for one image."""

    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    fatal_errors: tuple[type[AnalysisError], ...] = (AuthError, RateLimitError)
    retryable_errors: tuple[type[AnalysisError], ...] = (NetworkError, MalformedResponseError)

    def delay(self, attempt: int) -> float:
        """Linear backoff: wait ``attempt * base_delay`` after the n-th failed attempt."""
        return attempt * self.base_delay_seconds

    def is_fatal(self, exc: BaseException) -> bool:
        return isinstance(exc, self.fatal_errors)

    def is_retryable(self, exc: BaseException) -> bool:
        return isinstance(exc, self.retryable_errors) and not self.is_fatal(exc)

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryPolicy:
        return cls(
            max_attempts=settings.ai_max_attempts,
            base_delay_seconds=settings.ai_retry_base_delay_seconds,
        )


@dataclass
class CallResult(Generic[T]):
    """Either an accepted value or the classified error that ended the call."""

    value: T | None = None
    error: AnalysisError | None = None
    attempts: int = 0
    raw_text: str | None = None
    provider_result: ProviderResult | None = field(default=None, repr=False)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def fatal(self) -> bool:
        return self.error is not None and self.error.fatal


class RateLimitedCaller:
    """Issues one inference request at a time with retry and fatal short-circuit.

    Holds configuration only; every ``call`` is independent.
    """

    def __init__(
        self,
        provider: BaseProvider,
        *,
        model: str = "",
        temperature: float = 0.3,
        max_tokens: int = 1500,
        timeout_seconds: float = 30.0,
        policy: RetryPolicy | None = None,
        inter_call_delay_seconds: float = 1.0,
        sleep: SleepFn | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.provider = provider
        self.settings = settings
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds
        self.policy = policy or RetryPolicy()
        self.inter_call_delay_seconds = inter_call_delay_seconds
        self._sleep: SleepFn = sleep or asyncio.sleep

    async def pause_between_images(self) -> None:
        if self.inter_call_delay_seconds > 0:
            await self._sleep(self.inter_call_delay_seconds)

    async def call(
        self,
        request: InferenceRequest,
        accept: Callable[[str], T] | None = None,
    ) -> CallResult[T]:
        """Run *request*, applying *accept* to each raw response.

        A response rejected by *accept* with a retryable error counts as a
        failed attempt, so malformed answers get the same retry budget as
        network errors.
        """
        attempts = 0
        last_error: AnalysisError | None = None
        last_raw: str | None = None

        while attempts < self.policy.max_attempts:
            attempts += 1
            try:
                provider_result = await self.provider.generate(
                    request.prompt,
                    image_b64=request.image_b64,
                    model=self.model,
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                    timeout_seconds=self.timeout_seconds,
                )
                last_raw = provider_result.raw_text
                value = accept(provider_result.raw_text) if accept else provider_result.raw_text
            except AnalysisError as exc:
                last_error = exc
            except Exception as exc:
                logger.warning(
                    "Image %d attempt %d: unexpected provider error", request.index, attempts, exc_info=True
                )
                last_error = NetworkError(f"Unexpected provider error: {exc}")
            else:
                self._audit(request, provider_result, value, attempts)
                return CallResult(
                    value=value,
                    attempts=attempts,
                    raw_text=last_raw,
                    provider_result=provider_result,
                )

            if self.policy.is_fatal(last_error):
                logger.warning(
                    "Image %d attempt %d: fatal %s, not retrying (%s)",
                    request.index,
                    attempts,
                    last_error.kind,
                    last_error.message,
                )
                break

            if not self.policy.is_retryable(last_error):
                logger.info(
                    "Image %d attempt %d: %s, skipping image (%s)",
                    request.index,
                    attempts,
                    last_error.kind,
                    last_error.message,
                )
                break

            if attempts < self.policy.max_attempts:
                delay = self.policy.delay(attempts)
                logger.warning(
                    "Image %d attempt %d failed with %s, retrying in %.1fs",
                    request.index,
                    attempts,
                    last_error.kind,
                    delay,
                )
                await self._sleep(delay)

        if last_error is not None and self.policy.is_retryable(last_error):
            logger.warning(
                "Image %d: giving up after %d attempts (%s)", request.index, attempts, last_error.kind
            )

        return CallResult(error=last_error, attempts=attempts, raw_text=last_raw)

    def _audit(self, request: InferenceRequest, provider_result: ProviderResult, value: Any, attempts: int) -> None:
        parsed = value.model_dump() if hasattr(value, "model_dump") else None
        try:
            log_ai_run(
                scope=request.kind.value,
                provider_result=provider_result,
                prompt_text=request.prompt,
                parsed_output=parsed,
                extra_meta={"image_index": request.index, "attempts": attempts},
                settings=self.settings,
            )
        except Exception:
            logger.warning("Audit logging failed for image %d", request.index, exc_info=True)
