"""AI audit: writes one structured log record per successful provider call."""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any

from dermascan.core.config import Settings, get_settings

from .providers.base import ProviderResult

logger = logging.getLogger("dermascan.audit")

# Scope-dependent audit actions. Falls back to "AI_RUN" for unknown scopes.
SCOPE_ACTIONS: dict[str, str] = {
    "skin": "AI_SKIN_IMAGE_ANALYZED",
    "hair": "AI_HAIR_IMAGE_ANALYZED",
}


def build_audit_record(
    *,
    scope: str,
    provider_result: ProviderResult,
    prompt_text: str,
    parsed_output: dict[str, Any] | None,
    extra_meta: dict[str, Any] | None = None,
    settings: Settings | None = None,
) -> dict[str, Any]:
    """Assemble the audit payload.

    * PII: image data never reaches this function; prompt and response are
      hashed and the raw text is only included when ``AI_DEBUG_STORE_RAW=true``.
    """
    settings = settings or get_settings()

    record: dict[str, Any] = {
        "action": SCOPE_ACTIONS.get(scope, "AI_RUN"),
        "scope": scope,
        "provider": provider_result.provider,
        "model": provider_result.model,
        "prompt_tokens": provider_result.prompt_tokens,
        "completion_tokens": provider_result.completion_tokens,
        "latency_ms": provider_result.latency_ms,
        "prompt_hash": hashlib.sha256(prompt_text.encode()).hexdigest(),
        "response_hash": hashlib.sha256(provider_result.raw_text.encode()).hexdigest(),
        "parsed_output": parsed_output,
    }

    if settings.ai_debug_store_raw:
        record["prompt_raw"] = prompt_text
        record["response_raw"] = provider_result.raw_text

    if extra_meta:
        record.update(extra_meta)

    return record


def log_ai_run(
    *,
    scope: str,
    provider_result: ProviderResult,
    prompt_text: str,
    parsed_output: dict[str, Any] | None,
    extra_meta: dict[str, Any] | None = None,
    settings: Settings | None = None,
) -> dict[str, Any]:
    record = build_audit_record(
        scope=scope,
        provider_result=provider_result,
        prompt_text=prompt_text,
        parsed_output=parsed_output,
        extra_meta=extra_meta,
        settings=settings,
    )
    logger.info("%s %s", record["action"], json.dumps(record, ensure_ascii=False, default=str))
    return record
