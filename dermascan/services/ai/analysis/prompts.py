"""Prompt templates per analysis kind.

The service answers in free text; the templates spell out the JSON schema
that ``ResponseValidator`` expects, including the ``{"error": true}``
escape hatch for unusable photos.
"""

from __future__ import annotations

from .contracts import AnalysisKind

NOT_ANALYZABLE_CLAUSE = (
    "Falls das Bild nicht auswertbar ist (kein Gesicht/keine Haare sichtbar, zu dunkel, "
    'zu unscharf), antworte ausschließlich mit {{"error": true, "message": "<Grund>"}}.'
)
# Braces are doubled: the clause is embedded in templates rendered with str.format.

SKIN_PROMPT = (
    "Du bist ein erfahrener Dermatologe. Analysiere dieses Gesichtsbild (Bild {index} von {total}).\n"
    "WICHTIG: Antworte NUR mit einem validen JSON-Objekt, ohne zusätzliche Erklärungen.\n\n"
    "Schema:\n"
    "{{\n"
    '  "skin_type": "Normal|Trocken|Fettig|Mischhaut|Sensibel",\n'
    '  "texture": "Glatt|Uneben|Rau|Feinporig|Großporig",\n'
    '  "hydration": 0-100,\n'
    '  "oiliness": 0-100,\n'
    '  "sensitivity": 0-100,\n'
    '  "elasticity": 0-100,\n'
    '  "radiance": 0-100,\n'
    '  "evenness": 0-100,\n'
    '  "pore_size": 0-100,\n'
    '  "age_estimate": "20-25",\n'
    '  "concerns": ["Problem1", "Problem2", "Problem3"],\n'
    '  "recommendations": {{"morning": ["Schritt1", "Schritt2"], "evening": ["Schritt1"], "weekly": ["Schritt1"]}},\n'
    '  "ingredients": {{"recommended": ["Inhaltsstoff1"], "avoid": ["Inhaltsstoff2"]}}\n'
    "}}\n"
    "Alle Zahlen sind ganze Zahlen zwischen 0 und 100.\n"
    f"{NOT_ANALYZABLE_CLAUSE}"
)

HAIR_PROMPT = (
    "Du bist ein professioneller Trichologe. Analysiere dieses Haarbild (Bild {index} von {total}).\n"
    "WICHTIG: Antworte NUR mit einem validen JSON-Objekt, ohne zusätzliche Erklärungen.\n\n"
    "Schema:\n"
    "{{\n"
    '  "hair_type": "1A-4C",\n'
    '  "structure": "Glatt|Wellig|Lockig|Kraus",\n'
    '  "thickness": "Dünn|Normal|Dick",\n'
    '  "porosity": "Niedrig|Normal|Hoch",\n'
    '  "scalp": "Normal|Trocken|Fettig|Sensibel",\n'
    '  "color": "Beschreibung der Haarfarbe",\n'
    '  "damage": 0-100,\n'
    '  "shine": 0-100,\n'
    '  "frizz": 0-100,\n'
    '  "concerns": ["Problem1", "Problem2", "Problem3"],\n'
    '  "recommendations": {{"products": ["Produkt1", "Produkt2"], "treatments": ["Treatment1"], "styling": ["Tipp1"]}},\n'
    '  "ingredients": {{"recommended": ["Inhaltsstoff1"], "avoid": ["Inhaltsstoff2"]}}\n'
    "}}\n"
    "Alle Zahlen sind ganze Zahlen zwischen 0 und 100.\n"
    f"{NOT_ANALYZABLE_CLAUSE}"
)

PROMPTS: dict[AnalysisKind, str] = {
    AnalysisKind.SKIN: SKIN_PROMPT,
    AnalysisKind.HAIR: HAIR_PROMPT,
}


def build_prompt(kind: AnalysisKind | str, *, index: int = 1, total: int = 1) -> str:
    return PROMPTS[AnalysisKind(kind)].format(index=index, total=total)
