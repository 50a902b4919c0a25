"""Mock provider: deterministic responses for tests and local demo runs."""

from __future__ import annotations

import json
import time

from .base import BaseProvider, ProviderResult

# One payload satisfies both the skin and the hair field schema.
MOCK_RESPONSE = {
    "skin_type": "Normal",
    "hydration": 68,
    "oiliness": 35,
    "sensitivity": 20,
    "texture": "Glatt",
    "elasticity": 74,
    "radiance": 66,
    "evenness": 70,
    "pore_size": 60,
    "age_estimate": "25-30",
    "hair_type": "2A",
    "structure": "Wellig",
    "thickness": "Normal",
    "porosity": "Normal",
    "damage": 30,
    "shine": 62,
    "frizz": 40,
    "scalp": "Normal",
    "color": "Mittelbraun",
    "concerns": ["Leichte Trockenheit", "Vereinzelte Unreinheiten"],
    "recommendations": {
        "morning": ["Sanfte Reinigung", "Sonnenschutz SPF 30+"],
        "evening": ["Reichhaltige Nachtcreme"],
        "weekly": ["Feuchtigkeitsmaske"],
        "products": ["Sulfatfreies Shampoo"],
        "treatments": ["Haarmaske"],
        "styling": ["Diffusor verwenden"],
    },
    "ingredients": {
        "recommended": ["Hyaluronsäure", "Niacinamid"],
        "avoid": ["Alkohol denat."],
    },
}


class MockProvider(BaseProvider):
    name = "mock"
    requires_credential = False

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
        t0 = time.monotonic()
        text = json.dumps(MOCK_RESPONSE, ensure_ascii=False)
        elapsed = (time.monotonic() - t0) * 1000
        return ProviderResult(
            raw_text=text,
            model=model or "mock-vision-v1",
            provider=self.name,
            prompt_tokens=len(prompt.split()),
            completion_tokens=len(text.split()),
            latency_ms=round(elapsed, 2),
        )
