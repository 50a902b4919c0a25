"""Contracts for multi-image skin/hair analysis: data models and field schemas."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, Field

from .errors import ErrorKind

SCORE_MIN = 0
SCORE_MAX = 100
NEUTRAL_SCORE = 50
CONCERN_SLOTS = 3
MAX_ADVICE_ITEMS = 5
CONCERN_PLACEHOLDER = "Keine weiteren Auffälligkeiten"


class AnalysisKind(StrEnum):
    SKIN = "skin"
    HAIR = "hair"


# ---------------------------------------------------------------------------
# Field schemas
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KindSchema:
    """Field contract the service must honour for one ``AnalysisKind``."""

    kind: AnalysisKind
    required_scores: tuple[str, ...]
    optional_scores: tuple[str, ...]
    required_categories: tuple[str, ...]
    optional_categories: tuple[str, ...] = ()
    routine_sections: tuple[str, ...] = ()

    @property
    def score_fields(self) -> tuple[str, ...]:
        return self.required_scores + self.optional_scores

    @property
    def category_fields(self) -> tuple[str, ...]:
        return self.required_categories + self.optional_categories


SKIN_SCHEMA = KindSchema(
    kind=AnalysisKind.SKIN,
    required_scores=("hydration", "oiliness", "sensitivity"),
    optional_scores=("elasticity", "radiance", "evenness", "pore_size"),
    required_categories=("skin_type", "texture"),
    optional_categories=("age_estimate",),
    routine_sections=("morning", "evening", "weekly"),
)

HAIR_SCHEMA = KindSchema(
    kind=AnalysisKind.HAIR,
    required_scores=("damage",),
    optional_scores=("shine", "frizz"),
    required_categories=("hair_type", "structure", "thickness", "porosity", "scalp"),
    optional_categories=("color",),
    routine_sections=("products", "treatments", "styling"),
)

SCHEMAS: dict[AnalysisKind, KindSchema] = {
    AnalysisKind.SKIN: SKIN_SCHEMA,
    AnalysisKind.HAIR: HAIR_SCHEMA,
}


def schema_for(kind: AnalysisKind | str) -> KindSchema:
    return SCHEMAS[AnalysisKind(kind)]


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InferenceRequest:
    """One image bound to the prompt of its analysis kind."""

    kind: AnalysisKind
    image_b64: str
    prompt: str
    index: int = 1


@dataclass(frozen=True)
class ProgressEvent:
    index: int
    total: int

    @property
    def fraction(self) -> float:
        return self.index / self.total if self.total else 1.0


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class IngredientAdvice(BaseModel):
    recommended: list[str] = Field(default_factory=list)
    avoid: list[str] = Field(default_factory=list)


class PartialResult(BaseModel):
    """Validated metrics extracted from one successful image call."""

    kind: AnalysisKind
    index: int = 0
    scores: dict[str, float]
    categories: dict[str, str]
    concerns: list[str]
    recommendations: dict[str, list[str]] = Field(default_factory=dict)
    ingredients: IngredientAdvice = Field(default_factory=IngredientAdvice)


class AnalysisReport(BaseModel):
    """Consolidated assessment. ``source_count == 0`` marks demo data."""

    kind: AnalysisKind
    scores: dict[str, int]
    categories: dict[str, str]
    concerns: list[str]
    recommendations: dict[str, list[str]] = Field(default_factory=dict)
    ingredients: IngredientAdvice = Field(default_factory=IngredientAdvice)
    confidence: int = Field(ge=SCORE_MIN, le=SCORE_MAX)
    source_count: int = Field(ge=0)

    @property
    def is_fallback(self) -> bool:
        return self.source_count == 0


class AggregatedReport(AnalysisReport):
    source_count: int = Field(ge=1)


class FallbackReport(AnalysisReport):
    source_count: int = Field(default=0, ge=0, le=0)


class ImageFailure(BaseModel):
    index: int
    kind: ErrorKind
    message: str
    attempts: int = 0


class Diagnostic(BaseModel):
    """Human-readable reason for fallback or reduced confidence."""

    kind: str
    message: str


class AnalysisOutcome(BaseModel):
    report: AnalysisReport
    diagnostic: Diagnostic | None = None
    failures: list[ImageFailure] = Field(default_factory=list)
    images_received: int = 0
    images_analyzed: int = 0
    duration_ms: float = 0.0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def source_count(self) -> int:
        return self.report.source_count

    @property
    def is_fallback(self) -> bool:
        return self.report.is_fallback
