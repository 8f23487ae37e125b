import logging
import time
from dataclasses import dataclass, field
from typing import Any

from transgate.exceptions import BackendError, ContractViolationError, TranslationValidationError
from transgate.middleware.metrics import CONTRACT_VIOLATIONS, TRANSLATIONS
from transgate.models.ai_backend import AIBackendClient
from transgate.models.free_backend import FreeBackendClient
from transgate.services.output_contract import (
    TranslationChecks,
    ensure_translation_shape,
    extract_json_object,
)
from transgate.services.result_cache import ResultCache, build_cache_key
from transgate.services.translation_config import AI_PROVIDER, TranslationConfig

logger = logging.getLogger("transgate")

SUPPORTED_LANGS = ("zh", "en", "ja")

TRANSLATION_RULES = "\n".join([
    "You are a strict multilingual translation engine.",
    "Rules:",
    "1) Output only a JSON object: no explanations, prefixes, suffixes or code fences.",
    "2) The JSON keys are the target language codes only; never include the source language code.",
    "3) Every target language key must have a string value.",
    "4) Preserve Markdown, HTML, URLs, placeholders (such as {{name}}, %s, ${var}) and line breaks.",
    "5) If unsure, still return a reasonable translation; never return an empty object.",
])


@dataclass
class TranslationRequest:
    source_lang: str
    targets: list[str]
    fields: dict[str, str]


@dataclass
class FieldTranslation:
    translations: dict[str, str]
    checks: TranslationChecks = field(default_factory=TranslationChecks)
    cached: bool = False


@dataclass
class TranslationResult:
    translations: dict[str, dict[str, str]]
    checks: TranslationChecks
    cached: bool
    duration_ms: int


def normalize_lang(value: Any) -> str:
    """Lower-cased supported language code, or "" when unsupported."""
    lang = "" if value is None else str(value).strip().lower()
    return lang if lang in SUPPORTED_LANGS else ""


def normalize_targets(source_lang: str, raw_targets: Any) -> list[str]:
    """Supported, deduplicated targets other than the source.

    Falls back to every other supported language when nothing usable is left.
    """
    source = normalize_lang(source_lang)
    if not source:
        raise TranslationValidationError("invalid source_lang")

    targets = []
    for item in raw_targets if isinstance(raw_targets, list) else []:
        lang = normalize_lang(item)
        if lang and lang != source and lang not in targets:
            targets.append(lang)

    if not targets:
        return [lang for lang in SUPPORTED_LANGS if lang != source]
    return targets


def normalize_fields(raw_fields: Any) -> dict[str, str]:
    if not isinstance(raw_fields, dict):
        raise TranslationValidationError("fields must be an object")

    fields = {}
    for key, value in raw_fields.items():
        name = str(key).strip()
        if not name:
            continue
        fields[name] = value if isinstance(value, str) else ("" if value is None else str(value))

    if not fields:
        raise TranslationValidationError("fields is empty")
    return fields


def build_translation_prompt(source_lang: str, targets: list[str], text: str) -> str:
    return "\n".join([
        TRANSLATION_RULES,
        "",
        f"Source language: {source_lang}",
        f"Target languages: {', '.join(targets)}",
        "",
        "Translate the following text:",
        "<<<TEXT",
        text,
        "TEXT>>>",
    ])


class TranslationOrchestrator:
    """Routes each field to the cache, the free backend or the AI backend."""

    def __init__(
        self,
        ai_client: AIBackendClient,
        free_client: FreeBackendClient,
        result_cache: ResultCache,
    ):
        self.ai_client = ai_client
        self.free_client = free_client
        self.result_cache = result_cache

    async def translate(self, config: TranslationConfig, request: TranslationRequest) -> TranslationResult:
        """Translate every field of ``request``; the first failing field fails the call."""
        start = time.perf_counter()
        translations: dict[str, dict[str, str]] = {}
        checks = TranslationChecks()
        any_cached = False

        for name, text in request.fields.items():
            result = await self.translate_text(config, request.source_lang, request.targets, text)
            translations[name] = result.translations
            checks = checks.merge(result.checks)
            any_cached = any_cached or result.cached

        return TranslationResult(
            translations=translations,
            checks=checks,
            cached=any_cached,
            duration_ms=round((time.perf_counter() - start) * 1000),
        )

    async def translate_text(
        self,
        config: TranslationConfig,
        source_lang: str,
        targets: list[str],
        text: str,
    ) -> FieldTranslation:
        if not text or not text.strip():
            return FieldTranslation(translations={target: "" for target in targets})

        if len(text) > config.max_input_chars:
            raise TranslationValidationError(f"input text too long (max {config.max_input_chars})")

        cache_key = build_cache_key(
            engine=config.engine,
            ai_provider=config.ai_provider,
            endpoint=config.endpoint,
            model=config.model,
            source_lang=source_lang,
            targets=targets,
            text=text,
        )
        if config.enable_cache:
            hit = self.result_cache.get(cache_key)
            if hit is not None:
                TRANSLATIONS.labels(engine=config.engine, source="cache").inc()
                return FieldTranslation(translations=hit, cached=True)

        if config.engine == "free":
            translations = {}
            for target in targets:
                translations[target] = await self.free_client.translate_one(
                    source_lang, target, text, config.request_timeout_s
                )
            checks = TranslationChecks()
        else:
            translations, checks = await self._translate_with_ai(config, source_lang, targets, text)

        if config.enable_cache:
            self.result_cache.put(cache_key, translations, config.cache_ttl_s)

        TRANSLATIONS.labels(engine=config.engine, source="backend").inc()
        return FieldTranslation(translations=translations, checks=checks)

    async def _translate_with_ai(
        self,
        config: TranslationConfig,
        source_lang: str,
        targets: list[str],
        text: str,
    ) -> tuple[dict[str, str], TranslationChecks]:
        if config.ai_provider != AI_PROVIDER:
            raise BackendError(f"unsupported ai provider: {config.ai_provider}")

        prompt = build_translation_prompt(source_lang, targets, text)
        model_text = await self.ai_client.complete_text(config, prompt)
        try:
            parsed = extract_json_object(model_text)
            shaped = ensure_translation_shape(parsed, source_lang, targets)
        except ContractViolationError:
            CONTRACT_VIOLATIONS.inc()
            logger.warning("AI output rejected (model=%s, %d chars)", config.model, len(model_text))
            raise

        if not shaped.checks.no_source_lang:
            logger.warning("AI output echoed the source language %r", source_lang)
        return shaped.result, shaped.checks
