"""Multi-image analysis orchestration.

One ``AnalysisOrchestrator`` handles exactly one analysis request:

    idle -> checking_eligibility -> calling(i) -> ... -> aggregating | falling_back -> done

Every path that cannot produce a real report funnels through
``_fall_back`` so the diagnostic is attached in one place. ``run`` never
raises; only task cancellation propagates.
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Callable, Sequence
from enum import StrEnum
from typing import Any

from dermascan.core.config import Settings, get_settings, is_placeholder_credential
from dermascan.services.ai.common import router as ai_router

from .aggregator import aggregate
from .cache import AnalysisCache, batch_key
from .caller import RateLimitedCaller, RetryPolicy, SleepFn
from .contracts import (
    AnalysisKind,
    AnalysisOutcome,
    AnalysisReport,
    Diagnostic,
    ImageFailure,
    InferenceRequest,
    PartialResult,
    ProgressEvent,
)
from .errors import AnalysisError, AuthError, ErrorKind, FallbackReason, ValidationError
from .fallback import FallbackGenerator
from .prompts import build_prompt
from .validator import ResponseValidator

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], Any]
ImagePayload = str | bytes | bytearray

PARTIAL_DIAGNOSTIC = "partial"
INTERNAL_ERROR_DIAGNOSTIC = "internal_error"

FALLBACK_MESSAGES: dict[str, str] = {
    FallbackReason.NO_CREDENTIAL: "Kein gültiger API-Schlüssel konfiguriert, Demo-Daten werden angezeigt.",
    FallbackReason.UNREACHABLE: "Analysedienst nicht erreichbar, Demo-Daten werden angezeigt.",
    FallbackReason.ALL_CALLS_FAILED: "Keines der Bilder konnte analysiert werden, Demo-Daten werden angezeigt.",
    FallbackReason.SKIPPED_BY_REQUEST: "Demo-Modus aktiv, es wurde keine echte Analyse durchgeführt.",
    FallbackReason.EMPTY_BATCH: "Keine Bilder erhalten, Demo-Daten werden angezeigt.",
    ErrorKind.AUTH: "API-Schlüssel ungültig, Demo-Daten werden angezeigt.",
    ErrorKind.RATE_LIMIT: "Rate Limit erreicht, Demo-Daten werden angezeigt.",
    INTERNAL_ERROR_DIAGNOSTIC: "Analyse nicht verfügbar, Demo-Daten werden angezeigt.",
}


def prepare_payload(image: Any) -> str:
    """Base64 text for one image; raw bytes must hold ASCII base64.

    Raises:
        ValidationError: empty payload, undecodable bytes or wrong type.
    """
    if isinstance(image, (bytes, bytearray)):
        try:
            image = bytes(image).decode("ascii")
        except UnicodeDecodeError:
            raise ValidationError("Bilddaten sind kein ASCII-Base64") from None
    if not isinstance(image, str):
        raise ValidationError(f"Ungültiger Bildtyp: {type(image).__name__}")
    payload = image.strip()
    if not payload:
        raise ValidationError("Leeres Bild übermittelt")
    return payload


class OrchestratorState(StrEnum):
    IDLE = "idle"
    CHECKING_ELIGIBILITY = "checking_eligibility"
    CALLING = "calling"
    AGGREGATING = "aggregating"
    FALLING_BACK = "falling_back"
    DONE = "done"


class AnalysisOrchestrator:
    """Drives one batch through caller, validator, aggregator or fallback."""

    def __init__(
        self,
        kind: AnalysisKind | str,
        *,
        caller: RateLimitedCaller,
        credential: str | None = None,
        fallback: FallbackGenerator | None = None,
        max_images: int = 3,
        probe_enabled: bool = True,
        probe_timeout_seconds: float = 5.0,
        skip_real_calls: bool = False,
        on_progress: ProgressCallback | None = None,
        cache: AnalysisCache | None = None,
    ) -> None:
        self.kind = AnalysisKind(kind)
        self.caller = caller
        self.credential = credential
        self.fallback = fallback or FallbackGenerator()
        self.validator = ResponseValidator(self.kind)
        self.max_images = max(1, max_images)
        self.probe_enabled = probe_enabled
        self.probe_timeout_seconds = probe_timeout_seconds
        self.skip_real_calls = skip_real_calls
        self.on_progress = on_progress
        self.cache = cache

        self.state = OrchestratorState.IDLE
        self.current_index = 0
        self._outcome: AnalysisOutcome | None = None

    @classmethod
    def from_settings(
        cls,
        kind: AnalysisKind | str,
        *,
        settings: Settings | None = None,
        override_provider: str | None = None,
        skip_real_calls: bool | None = None,
        on_progress: ProgressCallback | None = None,
        cache: AnalysisCache | None = None,
        sleep: SleepFn | None = None,
    ) -> AnalysisOrchestrator:
        settings = settings or get_settings()
        config = ai_router.resolve("vision", override_provider=override_provider, settings=settings)

        caller = RateLimitedCaller(
            config.provider,
            model=config.model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout_seconds=config.timeout_seconds,
            policy=RetryPolicy.from_settings(settings),
            inter_call_delay_seconds=settings.ai_inter_call_delay_seconds,
            sleep=sleep,
            settings=settings,
        )
        return cls(
            kind,
            caller=caller,
            credential=config.credential,
            fallback=FallbackGenerator(jitter=settings.analysis_fallback_jitter),
            max_images=settings.analysis_max_images,
            probe_enabled=settings.ai_probe_enabled,
            probe_timeout_seconds=config.probe_timeout_seconds,
            skip_real_calls=settings.analysis_skip_real_calls if skip_real_calls is None else skip_real_calls,
            on_progress=on_progress,
            cache=cache,
        )

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    async def run(self, batch: Sequence[ImagePayload] | ImagePayload | None) -> AnalysisOutcome:
        """Analyse *batch* and return an outcome. Never raises."""
        if self._outcome is not None:
            logger.warning("Orchestrator already finished, returning stored outcome")
            return self._outcome

        t0 = time.monotonic()
        if isinstance(batch, (str, bytes, bytearray)):
            images: list[Any] = [batch]
        else:
            images = list(batch or [])

        try:
            outcome = await self._run(images)
        except Exception:
            logger.exception("Analysis of %d %s image(s) failed unexpectedly", len(images), self.kind)
            self._transition(OrchestratorState.FALLING_BACK)
            outcome = AnalysisOutcome(
                report=FallbackGenerator(jitter=False).generate(self.kind),
                diagnostic=self._diagnostic(INTERNAL_ERROR_DIAGNOSTIC),
                images_received=len(images),
            )

        outcome.duration_ms = round((time.monotonic() - t0) * 1000, 2)
        self._transition(OrchestratorState.DONE)
        self._outcome = outcome
        logger.info(
            "Analysis done: kind=%s sources=%d confidence=%d fallback=%s diagnostic=%s",
            self.kind,
            outcome.source_count,
            outcome.report.confidence,
            outcome.is_fallback,
            outcome.diagnostic.kind if outcome.diagnostic else "-",
        )
        return outcome

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    async def _run(self, images: list[Any]) -> AnalysisOutcome:
        self._transition(OrchestratorState.CHECKING_ELIGIBILITY)
        selected = images[: self.max_images]
        if len(images) > len(selected):
            logger.info("Batch of %d images capped to %d", len(images), len(selected))

        cache_key = None
        if self.cache is not None and self.cache.enabled and selected:
            cache_key = batch_key(self.kind, selected)
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.info("Serving cached %s analysis", self.kind)
                return cached

        ineligible = await self._check_eligibility(selected)
        if ineligible is not None:
            return self._fall_back(ineligible, images_received=len(images))

        results, failures, fatal, processed = await self._call_images(selected)

        if results:
            outcome = self._aggregate(results, failures, fatal, images_received=len(images), processed=processed)
            if cache_key is not None:
                self.cache.put(cache_key, outcome)
            return outcome

        reason = fatal.kind if fatal is not None else FallbackReason.ALL_CALLS_FAILED
        detail = fatal.message if fatal is not None else None
        return self._fall_back(
            self._diagnostic(reason, detail),
            failures=failures,
            images_received=len(images),
            processed=processed,
        )

    async def _check_eligibility(self, selected: list[Any]) -> Diagnostic | None:
        if self.skip_real_calls:
            return self._diagnostic(FallbackReason.SKIPPED_BY_REQUEST)

        if not selected:
            return self._diagnostic(FallbackReason.EMPTY_BATCH)

        provider = self.caller.provider
        if provider.requires_credential and is_placeholder_credential(self.credential):
            logger.warning("No usable credential for provider %s, using fallback", provider.name)
            return self._diagnostic(FallbackReason.NO_CREDENTIAL)

        if not self.probe_enabled:
            return None

        try:
            reachable = await provider.probe(timeout_seconds=self.probe_timeout_seconds)
        except AuthError as exc:
            logger.warning("Provider %s rejected the credential during probe", provider.name)
            return self._diagnostic(ErrorKind.AUTH, exc.message)
        except AnalysisError as exc:
            logger.warning("Provider %s probe failed: %s", provider.name, exc.message)
            reachable = False

        if not reachable:
            return self._diagnostic(FallbackReason.UNREACHABLE)
        return None

    async def _call_images(
        self, selected: list[Any]
    ) -> tuple[list[PartialResult], list[ImageFailure], AnalysisError | None, int]:
        results: list[PartialResult] = []
        failures: list[ImageFailure] = []
        fatal: AnalysisError | None = None
        total = len(selected)
        called_before = False
        processed = 0

        for position, image in enumerate(selected, start=1):
            self.current_index = position
            self._transition(OrchestratorState.CALLING)
            processed = position

            try:
                payload = prepare_payload(image)
            except ValidationError as exc:
                failures.append(ImageFailure(index=position, kind=exc.kind, message=exc.message))
                self._notify(position, total)
                continue

            if called_before:
                await self.caller.pause_between_images()
            called_before = True

            request = InferenceRequest(
                kind=self.kind,
                image_b64=payload,
                prompt=build_prompt(self.kind, index=position, total=total),
                index=position,
            )
            result = await self.caller.call(request, accept=functools.partial(self.validator.validate, index=position))

            if result.ok:
                results.append(result.value)
            else:
                error = result.error
                failures.append(
                    ImageFailure(index=position, kind=error.kind, message=error.message, attempts=result.attempts)
                )
                if result.fatal:
                    fatal = error
                    logger.warning(
                        "Image %d/%d: %s, aborting remaining %d image(s)",
                        position,
                        total,
                        error.kind,
                        total - position,
                    )
                    self._notify(position, total)
                    break

            self._notify(position, total)

        return results, failures, fatal, processed

    def _aggregate(
        self,
        results: list[PartialResult],
        failures: list[ImageFailure],
        fatal: AnalysisError | None,
        *,
        images_received: int,
        processed: int,
    ) -> AnalysisOutcome:
        self._transition(OrchestratorState.AGGREGATING)
        report = aggregate(results)

        diagnostic = None
        if fatal is not None:
            diagnostic = Diagnostic(
                kind=fatal.kind.value,
                message=(
                    f"Analyse nach Bild {failures[-1].index} abgebrochen ({fatal.message}); "
                    f"Ergebnis basiert auf {len(results)} Bild(ern)."
                ),
            )
        elif failures:
            diagnostic = Diagnostic(
                kind=PARTIAL_DIAGNOSTIC,
                message=f"{len(failures)} Bild(er) konnten nicht ausgewertet werden; "
                f"Ergebnis basiert auf {len(results)} Bild(ern).",
            )

        return AnalysisOutcome(
            report=report,
            diagnostic=diagnostic,
            failures=failures,
            images_received=images_received,
            images_analyzed=processed,
        )

    def _fall_back(
        self,
        diagnostic: Diagnostic,
        *,
        failures: list[ImageFailure] | None = None,
        images_received: int = 0,
        processed: int = 0,
    ) -> AnalysisOutcome:
        self._transition(OrchestratorState.FALLING_BACK)
        logger.warning("Using %s fallback report: %s", self.kind, diagnostic.kind)
        report: AnalysisReport = self.fallback.generate(self.kind)
        return AnalysisOutcome(
            report=report,
            diagnostic=diagnostic,
            failures=failures or [],
            images_received=images_received,
            images_analyzed=processed,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _diagnostic(self, kind: str, detail: str | None = None) -> Diagnostic:
        message = FALLBACK_MESSAGES.get(kind, FALLBACK_MESSAGES[INTERNAL_ERROR_DIAGNOSTIC])
        if detail:
            message = f"{message} ({detail})"
        return Diagnostic(kind=str(kind), message=message)

    def _transition(self, state: OrchestratorState) -> None:
        if state != self.state:
            logger.debug("%s orchestrator: %s -> %s", self.kind, self.state, state)
        self.state = state

    def _notify(self, index: int, total: int) -> None:
        if self.on_progress is None:
            return
        try:
            self.on_progress(ProgressEvent(index=index, total=total))
        except Exception:
            logger.warning("Progress callback failed for image %d/%d", index, total, exc_info=True)


async def analyze_batch(
    images: Sequence[ImagePayload] | ImagePayload | None,
    kind: AnalysisKind | str,
    *,
    on_progress: ProgressCallback | None = None,
    skip_real_calls: bool | None = None,
    cache: AnalysisCache | None = None,
    settings: Settings | None = None,
    override_provider: str | None = None,
) -> AnalysisOutcome:
    """Analyse *images* with a fresh orchestrator built from settings."""
    orchestrator = AnalysisOrchestrator.from_settings(
        kind,
        settings=settings,
        override_provider=override_provider,
        skip_real_calls=skip_real_calls,
        on_progress=on_progress,
        cache=cache,
    )
    return await orchestrator.run(images)
