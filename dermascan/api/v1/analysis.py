"""Analysis endpoint: thin adapter over ``analyze_batch``."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from dermascan.core.config import get_settings
from dermascan.services.ai.analysis.contracts import AnalysisKind, AnalysisOutcome

router = APIRouter()

MAX_REQUEST_IMAGES = 10


def _ensure_analysis_api_enabled() -> None:
    settings = get_settings()
    if not settings.enable_analysis_api:
        raise HTTPException(404, "Nicht gefunden")


class AnalysisRequest(BaseModel):
    kind: AnalysisKind
    images: list[str] = Field(..., min_length=1, max_length=MAX_REQUEST_IMAGES)
    skip_real_calls: bool = False


@router.post(
    "/analysis",
    response_model=AnalysisOutcome,
    summary="Analyse a batch of face/hair photos",
)
async def analysis_endpoint(body: AnalysisRequest, request: Request):
    _ensure_analysis_api_enabled()

    from dermascan.services.ai.analysis.orchestrator import analyze_batch

    cache = getattr(request.app.state, "analysis_cache", None)

    # skip_real_calls=False from the client must not override demo mode set in ENV.
    return await analyze_batch(
        body.images,
        body.kind,
        skip_real_calls=True if body.skip_real_calls else None,
        cache=cache,
    )
