"""Test doubles shared by the analysis tests. No network access."""

import json

from dermascan.services.ai.common.providers.base import BaseProvider, ProviderResult

VALID_KEY = "sk-test-0123456789abcdef"


def skin_payload(**overrides):
    data = {
        "skin_type": "Normal",
        "texture": "Glatt",
        "hydration": 70,
        "oiliness": 30,
        "sensitivity": 20,
        "elasticity": 75,
        "radiance": 65,
        "evenness": 60,
        "pore_size": 55,
        "age_estimate": "25-30",
        "concerns": ["Trockenheit", "Rötungen"],
        "recommendations": {"morning": ["Sanfte Reinigung"], "evening": ["Nachtcreme"], "weekly": ["Maske"]},
        "ingredients": {"recommended": ["Ceramide"], "avoid": ["Alkohol"]},
    }
    data.update(overrides)
    return data


def hair_payload(**overrides):
    data = {
        "hair_type": "2B",
        "structure": "Wellig",
        "thickness": "Normal",
        "porosity": "Hoch",
        "scalp": "Trocken",
        "color": "Dunkelbraun",
        "damage": 40,
        "shine": 55,
        "frizz": 60,
        "concerns": ["Spliss", "Frizz"],
    }
    data.update(overrides)
    return data


def skin_json(**overrides):
    return json.dumps(skin_payload(**overrides), ensure_ascii=False)


def hair_json(**overrides):
    return json.dumps(hair_payload(**overrides), ensure_ascii=False)


class ScriptedProvider(BaseProvider):
    """Answers per image payload from a script of texts and exceptions.

    ``responses`` maps the base64 payload to a list consumed one item per
    attempt; an exception instance is raised instead of answering.
    """

    name = "scripted"
    requires_credential = True

    def __init__(self, responses=None, *, default=None, reachable=True, probe_error=None):
        self.responses = {key: list(items) for key, items in (responses or {}).items()}
        self.default = default
        self.reachable = reachable
        self.probe_error = probe_error
        self.calls = []
        self.probe_calls = 0

    async def generate(
        self,
        prompt,
        *,
        image_b64,
        model="",
        temperature=0.3,
        max_tokens=1500,
        timeout_seconds=30.0,
    ):
        self.calls.append(image_b64)
        queue = self.responses.get(image_b64)
        if queue:
            item = queue.pop(0)
        elif self.default is not None:
            item = self.default
        else:
            raise RuntimeError(f"no scripted response for {image_b64!r}")

        if isinstance(item, BaseException):
            raise item
        return ProviderResult(raw_text=item, model=model or "scripted-v1", provider=self.name)

    async def probe(self, *, timeout_seconds=5.0):
        self.probe_calls += 1
        if self.probe_error is not None:
            raise self.probe_error
        return self.reachable


class RecordingSleep:
    """Async stand-in for ``asyncio.sleep`` that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)
