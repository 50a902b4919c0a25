"""Demo report used whenever no real assessment is available.

Values are fixed baselines per kind with an optional symmetric jitter so
that repeated demo runs do not look frozen in the UI. This is not a model
of anything; the numbers are product constants.
"""

from __future__ import annotations

import logging
import random

from .contracts import (
    SCORE_MAX,
    SCORE_MIN,
    AnalysisKind,
    FallbackReport,
    IngredientAdvice,
)

logger = logging.getLogger(__name__)

JITTER_BOUND = 5

# Sits outside every value confidence_for() can return (50, 70, 90), jitter included.
FALLBACK_CONFIDENCE = 40

SKIN_BASELINE = {
    "scores": {
        "hydration": 72,
        "oiliness": 45,
        "sensitivity": 25,
        "elasticity": 78,
        "radiance": 70,
        "evenness": 68,
        "pore_size": 72,
    },
    "categories": {
        "skin_type": "Mischhaut",
        "texture": "Feinporig",
        "age_estimate": "25-30",
    },
    "concerns": [
        "Leichte Trockenheit an den Wangen",
        "Glanz in der T-Zone",
        "Vereinzelte Unreinheiten am Kinn",
    ],
    "recommendations": {
        "morning": [
            "Sanfte Reinigung mit cremigem Cleanser",
            "Feuchtigkeitsspendendes Serum mit Hyaluronsäure",
            "Leichte Tagescreme für den Hauttyp",
            "Sonnenschutz SPF 30+ auftragen",
        ],
        "evening": [
            "Make-up gründlich entfernen (doppelte Reinigung)",
            "Nährendes Gesichtsöl oder Serum",
            "Reichhaltige Nachtcreme auftragen",
            "Augencreme für die Augenpartie",
        ],
        "weekly": [
            "Feuchtigkeitsmaske 2x pro Woche",
            "Sanftes Enzympeeling 1x pro Woche",
            "Gesichtsmassage mit Öl für bessere Durchblutung",
        ],
    },
    "ingredients": {
        "recommended": ["Hyaluronsäure", "Ceramide", "Niacinamid", "Vitamin C"],
        "avoid": ["Alkohol denat.", "Starke Duftstoffe", "Aggressive Sulfate"],
    },
}

HAIR_BASELINE = {
    "scores": {
        "damage": 35,
        "shine": 60,
        "frizz": 45,
    },
    "categories": {
        "hair_type": "2B",
        "structure": "Wellig",
        "thickness": "Normal",
        "porosity": "Normal",
        "scalp": "Normal",
        "color": "Naturbraun",
    },
    "concerns": [
        "Leichter Spliss in den Spitzen",
        "Frizz bei hoher Luftfeuchtigkeit",
        "Trockenheit in den Längen",
    ],
    "recommendations": {
        "products": [
            "Sulfatfreies Feuchtigkeits-Shampoo",
            "Leave-in Conditioner mit Arganöl",
            "Curl-Defining Cream für Struktur",
            "Anti-Frizz Serum für die Spitzen",
        ],
        "treatments": [
            "Wöchentliche Tiefenpflege-Haarmaske",
            "Monatliches Protein-Treatment für Stärkung",
            "Regelmäßiger Spitzenschnitt (alle 8-10 Wochen)",
            "Kopfhautmassage mit natürlichen Ölen",
        ],
        "styling": [
            "Plopping-Methode für definierte Wellen",
            "Diffusor bei niedriger Temperatur verwenden",
            "Satin-Kissenbezug gegen Reibung",
        ],
    },
    "ingredients": {
        "recommended": ["Arganöl", "Sheabutter", "Panthenol", "Hydrolysiertes Keratin"],
        "avoid": ["Sulfate (SLS/SLES)", "Austrocknende Alkohole", "Mineralöl"],
    },
}

BASELINES: dict[AnalysisKind, dict] = {
    AnalysisKind.SKIN: SKIN_BASELINE,
    AnalysisKind.HAIR: HAIR_BASELINE,
}


def _clamp(value: int) -> int:
    return max(SCORE_MIN, min(SCORE_MAX, value))


class FallbackGenerator:
    """Builds a ``FallbackReport`` without touching the network."""

    def __init__(self, *, rng: random.Random | None = None, jitter: bool = True) -> None:
        self._rng = rng or random.Random()
        self.jitter = jitter

    def _vary(self, value: int) -> int:
        if not self.jitter:
            return value
        return _clamp(value + self._rng.randint(-JITTER_BOUND, JITTER_BOUND))

    def generate(self, kind: AnalysisKind | str) -> FallbackReport:
        kind = AnalysisKind(kind)
        baseline = BASELINES[kind]

        report = FallbackReport(
            kind=kind,
            scores={name: self._vary(value) for name, value in baseline["scores"].items()},
            categories=dict(baseline["categories"]),
            concerns=list(baseline["concerns"]),
            recommendations={section: list(items) for section, items in baseline["recommendations"].items()},
            ingredients=IngredientAdvice(**baseline["ingredients"]),
            confidence=self._vary(FALLBACK_CONFIDENCE),
            source_count=0,
        )
        logger.debug("Generated %s fallback report (jitter=%s)", kind, self.jitter)
        return report
