import logging
import time

from fastapi import APIRouter, HTTPException

from transgate.dependencies import AuthHeaderDep, ConfigStoreDep, OrchestratorDep
from transgate.exceptions import (
    BackendError,
    BackendTimeoutError,
    ContractViolationError,
    GatewayError,
    TranslationValidationError,
)
from transgate.schemas.translate import (
    TranslateMeta,
    TranslateRequest,
    TranslateResponse,
    TranslateTestMeta,
    TranslateTestRequest,
    TranslateTestResponse,
    TranslationChecksModel,
)
from transgate.services.orchestrator import (
    TranslationRequest,
    normalize_fields,
    normalize_lang,
    normalize_targets,
)

logger = logging.getLogger("transgate")
router = APIRouter()

DEFAULT_TEST_SOURCE_LANG = "zh"
DEFAULT_TEST_SAMPLE_TEXT = "这是配置测试文本，请翻译。"


def _http_error(err: GatewayError) -> HTTPException:
    if isinstance(err, TranslationValidationError):
        return HTTPException(status_code=400, detail=str(err))
    if isinstance(err, BackendTimeoutError):
        return HTTPException(status_code=504, detail=str(err))
    if isinstance(err, (BackendError, ContractViolationError)):
        return HTTPException(status_code=502, detail=str(err))
    return HTTPException(status_code=500, detail=str(err))


@router.post("/translate", response_model=TranslateResponse, summary="Translate CMS fields")
async def translate(
    req: TranslateRequest,
    auth_header: AuthHeaderDep,
    config_store: ConfigStoreDep,
    orchestrator: OrchestratorDep,
):
    """Translate every field from `source_lang` into each target language.

    Supported languages: `zh`, `en`, `ja`. Without `targets`, all other
    supported languages are used.

    **Example:** `{"source_lang": "zh", "targets": ["en"], "fields": {"title": "你好"}}`
    """
    source_lang = normalize_lang(req.source_lang)
    if not source_lang:
        raise HTTPException(status_code=400, detail="invalid source_lang")

    try:
        targets = normalize_targets(source_lang, req.targets)
        fields = normalize_fields(req.fields)
    except TranslationValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    config, _ = await config_store.resolve(auth_header)
    if not config.enabled:
        raise HTTPException(status_code=503, detail="translation is disabled")

    try:
        result = await orchestrator.translate(
            config, TranslationRequest(source_lang=source_lang, targets=targets, fields=fields)
        )
    except GatewayError as e:
        logger.warning("Translation failed (engine=%s): %s", config.engine, e)
        raise _http_error(e)

    return TranslateResponse(
        translations=result.translations,
        meta=TranslateMeta(
            engine=config.engine,
            provider=config.provider_label,
            endpoint=config.endpoint,
            model=config.model,
            cached=result.cached,
            duration_ms=result.duration_ms,
        ),
    )


@router.post(
    "/translate/test",
    response_model=TranslateTestResponse,
    response_model_exclude_none=True,
    summary="Check backend connectivity and output structure",
)
async def translate_test(
    auth_header: AuthHeaderDep,
    config_store: ConfigStoreDep,
    orchestrator: OrchestratorDep,
    req: TranslateTestRequest | None = None,
):
    """Run one sample translation with the stored config, optionally overridden.

    Always answers 200: failures are reported in the body (`ok: false`) so the
    admin UI can show them. `override_config` is used for this call only.
    """
    req = req or TranslateTestRequest()
    source_lang = normalize_lang(req.source_lang or DEFAULT_TEST_SOURCE_LANG)
    if not source_lang:
        return TranslateTestResponse(
            ok=False,
            connectivity_ok=False,
            structure_ok=False,
            error="invalid source_lang",
        )

    targets = normalize_targets(source_lang, req.targets)
    sample_text = (
        req.sample_text.strip()
        if isinstance(req.sample_text, str) and req.sample_text.strip()
        else DEFAULT_TEST_SAMPLE_TEXT
    )
    override = req.override_config if isinstance(req.override_config, dict) else None

    start = time.perf_counter()
    try:
        config, _ = await config_store.resolve(auth_header, override)
        if not config.enabled:
            return TranslateTestResponse(
                ok=False,
                connectivity_ok=False,
                structure_ok=False,
                error="translation is disabled",
            )

        result = await orchestrator.translate_text(config, source_lang, targets, sample_text)
    except GatewayError as e:
        logger.warning("Translate test failed: %s", e)
        return TranslateTestResponse(
            ok=False,
            connectivity_ok=False,
            structure_ok=False,
            error=str(e) or "translation test failed",
            checks=TranslationChecksModel(json_parse=False, no_source_lang=False, has_all_targets=False),
            meta=TranslateTestMeta(duration_ms=round((time.perf_counter() - start) * 1000)),
        )

    structure_ok = result.checks.all_ok
    return TranslateTestResponse(
        ok=structure_ok,
        connectivity_ok=True,
        structure_ok=structure_ok,
        result_preview=result.translations,
        checks=TranslationChecksModel(**result.checks.to_dict()),
        meta=TranslateTestMeta(
            engine=config.engine,
            endpoint=config.endpoint,
            model=config.model,
            duration_ms=round((time.perf_counter() - start) * 1000),
        ),
    )
