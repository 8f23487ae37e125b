import math
import re
from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict

from transgate.config import Settings, settings

AI_PROVIDER = "right_code"

MIN_TIMEOUT_MS = 1000
MIN_INPUT_CHARS = 100
MIN_CACHE_TTL_MS = 1000

_BEARER_PREFIX = re.compile(r"^Bearer\s+", re.IGNORECASE)
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class TranslationConfig(BaseModel):
    """Normalized translation settings. Build it with normalize_translation_config()."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    engine: Literal["free", "ai"] = "free"
    ai_provider: str = AI_PROVIDER
    base_url: str
    api_key: str = ""
    model: str
    endpoint: Literal["responses", "chat_completions"] = "responses"
    request_timeout_ms: int
    max_input_chars: int
    fill_policy: Literal["fill_empty_only", "overwrite_target"] = "fill_empty_only"
    enable_cache: bool = True
    cache_ttl_ms: int

    @property
    def request_timeout_s(self) -> float:
        return self.request_timeout_ms / 1000

    @property
    def cache_ttl_s(self) -> float:
        return self.cache_ttl_ms / 1000

    @property
    def provider_label(self) -> str:
        return self.ai_provider if self.engine == "ai" else "free"

    def to_record(self) -> dict[str, Any]:
        """Map back to the record store's field names, e.g. to merge an override."""
        return {
            "enabled": self.enabled,
            "engine": self.engine,
            "ai_provider": self.ai_provider,
            "right_code_base_url": self.base_url,
            "right_code_api_key": self.api_key,
            "right_code_model": self.model,
            "right_code_endpoint": self.endpoint,
            "request_timeout_ms": self.request_timeout_ms,
            "max_input_chars": self.max_input_chars,
            "fill_policy": self.fill_policy,
            "enable_cache": self.enable_cache,
            "cache_ttl_ms": self.cache_ttl_ms,
        }

    def __repr__(self) -> str:
        masked = "***" if self.api_key else ""
        return (
            f"TranslationConfig(engine={self.engine!r}, endpoint={self.endpoint!r}, "
            f"model={self.model!r}, api_key={masked!r}, enabled={self.enabled!r})"
        )

    __str__ = __repr__


def default_translation_config(cfg: Settings = settings) -> TranslationConfig:
    """Hardcoded fallback used when the record store has never answered."""
    return TranslationConfig(
        base_url=cfg.ai_base_url.rstrip("/"),
        model=cfg.ai_model,
        request_timeout_ms=max(MIN_TIMEOUT_MS, cfg.default_timeout_ms),
        max_input_chars=max(MIN_INPUT_CHARS, cfg.max_input_chars),
        cache_ttl_ms=max(MIN_CACHE_TTL_MS, cfg.cache_ttl_ms),
    )


def sanitize_api_key(raw: Any) -> str:
    value = "" if raw is None else str(raw).strip()
    if not value:
        return ""
    return _BEARER_PREFIX.sub("", value).strip()


def _parse_int(value: Any) -> int | None:
    """Lenient integer parse: numbers, or strings starting with an integer."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else None


def _bounded_int(value: Any, floor: int, default: int) -> int:
    parsed = _parse_int(value)
    if parsed is None or parsed < floor:
        return default
    return parsed


def normalize_translation_config(
    raw: Mapping[str, Any] | None,
    defaults: TranslationConfig | None = None,
) -> TranslationConfig:
    """Clamp an untyped config record into a TranslationConfig.

    Keys missing from ``raw`` take their value from ``defaults``; present but
    invalid values fall back to the default too. Nothing here raises.
    """
    if defaults is None:
        defaults = default_translation_config()
    merged = {**defaults.to_record(), **dict(raw or {})}

    base_url = str(merged.get("right_code_base_url") or defaults.base_url).rstrip("/")
    model = str(merged.get("right_code_model") or defaults.model).strip() or defaults.model

    return TranslationConfig(
        enabled=merged.get("enabled") is not False,
        engine="ai" if merged.get("engine") == "ai" else "free",
        ai_provider=AI_PROVIDER,
        base_url=base_url or defaults.base_url,
        api_key=sanitize_api_key(merged.get("right_code_api_key")),
        model=model,
        endpoint=(
            "chat_completions"
            if merged.get("right_code_endpoint") == "chat_completions"
            else "responses"
        ),
        request_timeout_ms=_bounded_int(
            merged.get("request_timeout_ms"), MIN_TIMEOUT_MS, defaults.request_timeout_ms
        ),
        max_input_chars=_bounded_int(
            merged.get("max_input_chars"), MIN_INPUT_CHARS, defaults.max_input_chars
        ),
        fill_policy=(
            "overwrite_target"
            if merged.get("fill_policy") == "overwrite_target"
            else "fill_empty_only"
        ),
        enable_cache=merged.get("enable_cache") is not False,
        cache_ttl_ms=_bounded_int(merged.get("cache_ttl_ms"), MIN_CACHE_TTL_MS, defaults.cache_ttl_ms),
    )
