"""Tests for result aggregation: means, votes, concerns, confidence."""

import unittest

import pytest

from dermascan.services.ai.analysis.aggregator import (
    aggregate,
    confidence_for,
    majority_vote,
    merge_routines,
    ordered_union,
    rank_by_frequency,
    round_half_up,
    top_concerns,
)
from dermascan.services.ai.analysis.contracts import (
    CONCERN_PLACEHOLDER,
    AggregatedReport,
    AnalysisKind,
    IngredientAdvice,
    PartialResult,
)


def _partial(index=1, *, scores=None, categories=None, concerns=None, recommendations=None, ingredients=None):
    return PartialResult(
        kind=AnalysisKind.SKIN,
        index=index,
        scores=scores if scores is not None else {"hydration": 50.0},
        categories=categories if categories is not None else {"skin_type": "Normal"},
        concerns=concerns if concerns is not None else [],
        recommendations=recommendations or {},
        ingredients=ingredients or IngredientAdvice(),
    )


class ConfidenceTests(unittest.TestCase):
    def test_formula(self):
        self.assertEqual(confidence_for(1), 50)
        self.assertEqual(confidence_for(2), 70)
        self.assertEqual(confidence_for(3), 90)

    def test_capped_at_three_sources(self):
        self.assertEqual(confidence_for(4), 90)
        self.assertEqual(confidence_for(10), 90)

    def test_monotonic_and_below_ceiling(self):
        values = [confidence_for(n) for n in range(1, 8)]
        self.assertEqual(values, sorted(values))
        self.assertTrue(all(v <= 95 for v in values))


class NumericTests(unittest.TestCase):
    def test_mean_of_two(self):
        report = aggregate([_partial(1, scores={"hydration": 60}), _partial(3, scores={"hydration": 80})])
        self.assertEqual(report.scores["hydration"], 70)

    def test_round_half_up(self):
        self.assertEqual(round_half_up(70.5), 71)
        self.assertEqual(round_half_up(69.5), 70)
        self.assertEqual(round_half_up(70.49), 70)

    def test_mean_rounds_half_up(self):
        report = aggregate([_partial(scores={"oiliness": 45}), _partial(scores={"oiliness": 46})])
        self.assertEqual(report.scores["oiliness"], 46)

    def test_field_union_in_first_seen_order(self):
        report = aggregate(
            [
                _partial(scores={"hydration": 60}),
                _partial(scores={"oiliness": 20, "hydration": 70}),
            ]
        )
        self.assertEqual(list(report.scores), ["hydration", "oiliness"])
        self.assertEqual(report.scores["hydration"], 65)
        self.assertEqual(report.scores["oiliness"], 20)


class CategoricalTests(unittest.TestCase):
    def test_majority_wins(self):
        self.assertEqual(majority_vote(["Trocken", "Normal", "Trocken"]), "Trocken")

    def test_tie_goes_to_first_seen(self):
        results = [
            _partial(1, categories={"skin_type": "Normal"}),
            _partial(2, categories={"skin_type": "Trocken"}),
        ]
        for _ in range(5):
            self.assertEqual(aggregate(results).categories["skin_type"], "Normal")

        reversed_results = list(reversed(results))
        self.assertEqual(aggregate(reversed_results).categories["skin_type"], "Trocken")

    def test_vote_ignores_case_keeps_first_spelling(self):
        self.assertEqual(majority_vote(["mischhaut", "Normal", "Mischhaut"]), "mischhaut")

    def test_category_missing_in_some_results(self):
        report = aggregate(
            [
                _partial(categories={"skin_type": "Normal"}),
                _partial(categories={"skin_type": "Normal", "age_estimate": "30-35"}),
            ]
        )
        self.assertEqual(report.categories["age_estimate"], "30-35")

    def test_empty_vote(self):
        self.assertIsNone(majority_vote([]))


class ConcernTests(unittest.TestCase):
    def test_top_three_by_count_then_first_seen(self):
        results = [
            _partial(concerns=["Poren", "Rötungen", "Trockenheit"]),
            _partial(concerns=["Falten", "Trockenheit"]),
            _partial(concerns=["Falten", "Trockenheit", "Pickel"]),
        ]
        self.assertEqual(top_concerns(results), ["Trockenheit", "Falten", "Poren"])

    def test_padding_with_placeholder(self):
        results = [_partial(concerns=["Poren"]), _partial(concerns=["poren"])]
        self.assertEqual(top_concerns(results), ["Poren", CONCERN_PLACEHOLDER, CONCERN_PLACEHOLDER])

    def test_no_concerns_at_all(self):
        self.assertEqual(top_concerns([_partial(concerns=[])]), [CONCERN_PLACEHOLDER] * 3)

    def test_rank_by_frequency_skips_blank(self):
        self.assertEqual(rank_by_frequency(["  ", "a", "b", "b"]), ["b", "a"])


class AdviceTests(unittest.TestCase):
    def test_ordered_union_dedupes_and_caps(self):
        merged = ordered_union([["A", "B"], ["b", "C", "D"], ["E", "F", "G"]])
        self.assertEqual(merged, ["A", "B", "C", "D", "E"])

    def test_ingredients_merged(self):
        report = aggregate(
            [
                _partial(ingredients=IngredientAdvice(recommended=["Ceramide"], avoid=["Alkohol"])),
                _partial(ingredients=IngredientAdvice(recommended=["Niacinamid", "ceramide"], avoid=[])),
            ]
        )
        self.assertEqual(report.ingredients.recommended, ["Ceramide", "Niacinamid"])
        self.assertEqual(report.ingredients.avoid, ["Alkohol"])

    def test_routines_merged_per_section(self):
        merged = merge_routines(
            [
                _partial(recommendations={"morning": ["Reinigung", "SPF"], "weekly": ["Maske"]}),
                _partial(recommendations={"morning": ["spf", "Serum"], "evening": ["Retinol"]}),
            ],
            ("morning", "evening", "weekly"),
        )
        self.assertEqual(
            merged,
            {"morning": ["Reinigung", "SPF", "Serum"], "evening": ["Retinol"], "weekly": ["Maske"]},
        )

    def test_report_has_every_routine_section(self):
        report = aggregate([_partial(recommendations={"evening": ["Nachtcreme"]})])
        self.assertEqual(report.recommendations, {"morning": [], "evening": ["Nachtcreme"], "weekly": []})


class AggregateTests(unittest.TestCase):
    def test_report_shape(self):
        report = aggregate([_partial(1), _partial(2)])
        self.assertIsInstance(report, AggregatedReport)
        self.assertEqual(report.kind, AnalysisKind.SKIN)
        self.assertEqual(report.source_count, 2)
        self.assertEqual(report.confidence, 70)
        self.assertEqual(len(report.concerns), 3)
        self.assertFalse(report.is_fallback)

    def test_single_result(self):
        report = aggregate([_partial(scores={"hydration": 63.4})])
        self.assertEqual(report.scores["hydration"], 63)
        self.assertEqual(report.confidence, 50)

    def test_deterministic(self):
        results = [
            _partial(1, scores={"hydration": 61}, categories={"skin_type": "Fettig"}, concerns=["A", "B"]),
            _partial(2, scores={"hydration": 74}, categories={"skin_type": "Normal"}, concerns=["B", "C"]),
        ]
        first = aggregate(results).model_dump()
        for _ in range(3):
            self.assertEqual(aggregate(results).model_dump(), first)


def test_empty_input_rejected():
    with pytest.raises(ValueError):
        aggregate([])
