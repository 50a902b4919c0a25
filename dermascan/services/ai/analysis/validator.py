"""Response validation: free-form service text -> typed ``PartialResult``."""

from __future__ import annotations

import logging
import math
from typing import Any

from dermascan.services.ai.common.json_tools import extract_json_object

from .contracts import (
    NEUTRAL_SCORE,
    SCORE_MAX,
    SCORE_MIN,
    AnalysisKind,
    IngredientAdvice,
    KindSchema,
    PartialResult,
    schema_for,
)
from .errors import MalformedResponseError, NotAnalyzableError, ValidationError

logger = logging.getLogger(__name__)

_EXPLANATION_KEYS = ("message", "reason", "explanation", "details")


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _lookup(data: dict[str, Any], name: str) -> Any:
    """Value for *name*, accepting the camelCase spelling as well."""
    if name in data:
        return data[name]
    return data.get(_camel(name))


_FALSE_FLAGS = {"", "false", "0", "no", "none", "null"}
_TRUE_FLAGS = {"true", "yes", "1"}


def _is_not_analyzable(data: dict[str, Any]) -> bool:
    """``error`` set to true, a reason string, or an error object."""
    flag = data.get("error")
    if flag is True:
        return True
    if isinstance(flag, str):
        return flag.strip().lower() not in _FALSE_FLAGS
    return isinstance(flag, dict)


def _explanation(data: dict[str, Any]) -> str:
    flag = data.get("error")
    if isinstance(flag, str) and flag.strip().lower() not in _TRUE_FLAGS:
        return flag.strip()
    if isinstance(flag, dict):
        for key in _EXPLANATION_KEYS:
            text = _clean_text(flag.get(key))
            if text:
                return text
    for key in _EXPLANATION_KEYS:
        text = _clean_text(data.get(key))
        if text:
            return text
    return ""


def _coerce_score(name: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"Field {name!r} must be a number, got boolean")
    if isinstance(value, (int, float)):
        score = float(value)
    elif isinstance(value, str):
        try:
            score = float(value.strip().rstrip("%"))
        except ValueError:
            raise ValidationError(f"Field {name!r} must be a number, got {value!r}") from None
    else:
        raise ValidationError(f"Field {name!r} must be a number, got {type(value).__name__}")

    if math.isnan(score) or not SCORE_MIN <= score <= SCORE_MAX:
        raise ValidationError(f"Field {name!r} must be within {SCORE_MIN}-{SCORE_MAX}, got {value!r}")
    return score


def _clean_text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


def _text_list(value: Any) -> list[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    items = [_clean_text(item) for item in value]
    return [item for item in items if item]


def _routine(value: Any, sections: tuple[str, ...]) -> dict[str, list[str]]:
    """Named routine lists; a flat list is filed under the first section."""
    routine = {section: [] for section in sections}
    if not sections:
        return routine
    if isinstance(value, dict):
        for section in sections:
            routine[section] = _text_list(_lookup(value, section))
    else:
        routine[sections[0]] = _text_list(value)
    return routine


class ResponseValidator:
    """Parses and range-checks one service response for a fixed ``AnalysisKind``."""

    def __init__(self, kind: AnalysisKind | str) -> None:
        self.kind = AnalysisKind(kind)
        self.schema: KindSchema = schema_for(self.kind)

    def validate(self, raw_text: str, *, index: int = 0) -> PartialResult:
        data = extract_json_object(raw_text or "")
        if data is None:
            raise MalformedResponseError("No JSON object found in service response")

        if _is_not_analyzable(data):
            raise NotAnalyzableError(_explanation(data))

        missing = [name for name in self.schema.required_scores if _lookup(data, name) is None]
        missing += [name for name in self.schema.required_categories if not _clean_text(_lookup(data, name))]
        if _lookup(data, "concerns") is None:
            missing.append("concerns")
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        scores: dict[str, float] = {}
        for name in self.schema.required_scores:
            scores[name] = _coerce_score(name, _lookup(data, name))
        for name in self.schema.optional_scores:
            value = _lookup(data, name)
            scores[name] = float(NEUTRAL_SCORE) if value is None else _coerce_score(name, value)

        categories: dict[str, str] = {}
        for name in self.schema.category_fields:
            value = _clean_text(_lookup(data, name))
            if value:
                categories[name] = value

        concerns_raw = _lookup(data, "concerns")
        if not isinstance(concerns_raw, (list, str)):
            raise ValidationError("Field 'concerns' must be a list of strings")

        ingredients_raw = _lookup(data, "ingredients")
        if not isinstance(ingredients_raw, dict):
            ingredients_raw = {}

        result = PartialResult(
            kind=self.kind,
            index=index,
            scores=scores,
            categories=categories,
            concerns=_text_list(concerns_raw),
            recommendations=_routine(_lookup(data, "recommendations"), self.schema.routine_sections),
            ingredients=IngredientAdvice(
                recommended=_text_list(ingredients_raw.get("recommended")),
                avoid=_text_list(ingredients_raw.get("avoid")),
            ),
        )
        logger.debug("Validated %s response for image %d: %s", self.kind, index, result.scores)
        return result
