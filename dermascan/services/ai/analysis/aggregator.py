"""Merge per-image ``PartialResult``s into one ``AggregatedReport``.

All tie-breaks follow input order so that the same list of results always
produces the same report.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal

from .contracts import (
    CONCERN_PLACEHOLDER,
    CONCERN_SLOTS,
    MAX_ADVICE_ITEMS,
    SCORE_MAX,
    SCORE_MIN,
    AggregatedReport,
    IngredientAdvice,
    PartialResult,
    schema_for,
)

logger = logging.getLogger(__name__)

CONFIDENCE_BASE = 30
CONFIDENCE_PER_SOURCE = 20
CONFIDENCE_SOURCE_CAP = 3
CONFIDENCE_CEILING = 95


def confidence_for(source_count: int) -> int:
    """``min(95, 30 + 20 * min(n, 3))``; capped below 100 to avoid false certainty."""
    return min(
        CONFIDENCE_CEILING,
        CONFIDENCE_BASE + CONFIDENCE_PER_SOURCE * min(source_count, CONFIDENCE_SOURCE_CAP),
    )


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _key(value: str) -> str:
    return value.strip().casefold()


def mean_scores(results: Sequence[PartialResult]) -> dict[str, int]:
    totals: dict[str, list[float]] = {}
    for result in results:
        for name, value in result.scores.items():
            totals.setdefault(name, []).append(value)

    return {
        name: max(SCORE_MIN, min(SCORE_MAX, round_half_up(sum(values) / len(values))))
        for name, values in totals.items()
    }


def rank_by_frequency(values: Iterable[str]) -> list[str]:
    """Distinct values ordered by count (desc), ties by first appearance.

    Comparison ignores case and surrounding whitespace; the first spelling
    seen is the one returned.
    """
    counts: dict[str, int] = {}
    first_seen: dict[str, int] = {}
    display: dict[str, str] = {}
    for position, value in enumerate(values):
        key = _key(value)
        if not key:
            continue
        if key not in counts:
            counts[key] = 0
            first_seen[key] = position
            display[key] = value.strip()
        counts[key] += 1

    ordered = sorted(counts, key=lambda k: (-counts[k], first_seen[k]))
    return [display[k] for k in ordered]


def majority_vote(values: Sequence[str]) -> str | None:
    ranked = rank_by_frequency(values)
    return ranked[0] if ranked else None


def vote_categories(results: Sequence[PartialResult]) -> dict[str, str]:
    votes: dict[str, list[str]] = {}
    for result in results:
        for name, value in result.categories.items():
            votes.setdefault(name, []).append(value)

    categories: dict[str, str] = {}
    for name, values in votes.items():
        winner = majority_vote(values)
        if winner is not None:
            categories[name] = winner
    return categories


def top_concerns(results: Sequence[PartialResult], *, slots: int = CONCERN_SLOTS) -> list[str]:
    ranked = rank_by_frequency(concern for result in results for concern in result.concerns)
    top = ranked[:slots]
    top.extend([CONCERN_PLACEHOLDER] * (slots - len(top)))
    return top


def ordered_union(lists: Iterable[Iterable[str]], *, limit: int = MAX_ADVICE_ITEMS) -> list[str]:
    seen: set[str] = set()
    merged: list[str] = []
    for items in lists:
        for item in items:
            key = _key(item)
            if not key or key in seen:
                continue
            seen.add(key)
            merged.append(item.strip())
            if len(merged) >= limit:
                return merged
    return merged


def merge_routines(results: Sequence[PartialResult], sections: Sequence[str]) -> dict[str, list[str]]:
    """Ordered union per routine section; sections come from the kind schema."""
    return {section: ordered_union(r.recommendations.get(section, []) for r in results) for section in sections}


def aggregate(results: Sequence[PartialResult]) -> AggregatedReport:
    """Consolidate one or more partial results.

    Raises:
        ValueError: *results* is empty. The orchestrator never calls this
            without at least one success.
    """
    if not results:
        raise ValueError("aggregate() needs at least one PartialResult")

    kind = results[0].kind
    source_count = len(results)

    report = AggregatedReport(
        kind=kind,
        scores=mean_scores(results),
        categories=vote_categories(results),
        concerns=top_concerns(results),
        recommendations=merge_routines(results, schema_for(kind).routine_sections),
        ingredients=IngredientAdvice(
            recommended=ordered_union(r.ingredients.recommended for r in results),
            avoid=ordered_union(r.ingredients.avoid for r in results),
        ),
        confidence=confidence_for(source_count),
        source_count=source_count,
    )
    logger.debug("Aggregated %d %s results: confidence=%d", source_count, kind, report.confidence)
    return report
