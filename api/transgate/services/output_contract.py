"""JSON contract enforced on AI model output.

The model is asked for a single JSON object keyed by target language. Models
don't always comply, so extraction tolerates a fenced code block or prose
around the object, and shape validation rejects outputs missing a target.
"""

import json
import re
from dataclasses import asdict, dataclass
from typing import Any

from transgate.exceptions import ContractViolationError

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


@dataclass(frozen=True)
class TranslationChecks:
    json_parse: bool = True
    has_all_targets: bool = True
    no_source_lang: bool = True

    @property
    def all_ok(self) -> bool:
        return self.json_parse and self.has_all_targets and self.no_source_lang

    def merge(self, other: "TranslationChecks") -> "TranslationChecks":
        return TranslationChecks(
            json_parse=self.json_parse and other.json_parse,
            has_all_targets=self.has_all_targets and other.has_all_targets,
            no_source_lang=self.no_source_lang and other.no_source_lang,
        )

    def to_dict(self) -> dict[str, bool]:
        return asdict(self)


@dataclass(frozen=True)
class ShapedOutput:
    result: dict[str, str]
    checks: TranslationChecks


def _parse_object(text: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(text)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def parse_json_object(text: str) -> dict[str, Any] | None:
    """Best-effort extraction of one JSON object from model text.

    Tried in order: the whole text, the first fenced code block, then the
    span from the first ``{`` to the last ``}``.
    """
    if not isinstance(text, str):
        return None
    trimmed = text.strip()
    if not trimmed:
        return None

    direct = _parse_object(trimmed)
    if direct is not None:
        return direct

    fenced = _FENCED_BLOCK.search(trimmed)
    if fenced and fenced.group(1):
        parsed = _parse_object(fenced.group(1).strip())
        if parsed is not None:
            return parsed

    first = trimmed.find("{")
    last = trimmed.rfind("}")
    if first >= 0 and last > first:
        return _parse_object(trimmed[first:last + 1])

    return None


def extract_json_object(text: str) -> dict[str, Any]:
    parsed = parse_json_object(text)
    if parsed is None:
        raise ContractViolationError("model output is not valid JSON")
    return parsed


def _coerce_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    # Nested structures keep their JSON form
    return json.dumps(value, ensure_ascii=False)


def ensure_translation_shape(
    parsed: dict[str, Any], source_lang: str, targets: list[str]
) -> ShapedOutput:
    """Validate that ``parsed`` holds a string for every target language.

    A missing target raises, so ``has_all_targets`` is always True in the
    returned checks; it is kept for the response envelope. Echoing the source
    language back is reported through ``no_source_lang`` without raising.
    """
    if not isinstance(parsed, dict):
        raise ContractViolationError("model output is not a valid JSON object")

    has_all_targets = all(target in parsed for target in targets)
    if not has_all_targets:
        raise ContractViolationError("model output missing target languages")

    result = {target: _coerce_text(parsed.get(target)) for target in targets}
    return ShapedOutput(
        result=result,
        checks=TranslationChecks(
            json_parse=True,
            has_all_targets=has_all_targets,
            no_source_lang=source_lang not in parsed,
        ),
    )
