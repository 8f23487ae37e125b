from typing import Any

from pydantic import BaseModel, Field


class TranslateRequest(BaseModel):
    # Loosely typed on purpose: bad values get a 400 from the normalizers
    source_lang: Any = Field(default=None, description="Source language (zh, en or ja)")
    targets: Any = Field(default=None, description="Target languages; all others when empty")
    fields: Any = Field(default=None, description="Field name -> source text")


class TranslateMeta(BaseModel):
    engine: str
    provider: str
    endpoint: str
    model: str
    cached: bool
    duration_ms: int


class TranslateResponse(BaseModel):
    ok: bool = True
    translations: dict[str, dict[str, str]]
    meta: TranslateMeta


class TranslateTestRequest(BaseModel):
    source_lang: Any = Field(default=None, description="Source language, zh by default")
    targets: Any = Field(default=None, description="Target languages")
    sample_text: Any = Field(default=None, description="Text to translate")
    override_config: Any = Field(default=None, description="Config values to try without saving")


class TranslationChecksModel(BaseModel):
    json_parse: bool
    no_source_lang: bool
    has_all_targets: bool


class TranslateTestMeta(BaseModel):
    engine: str | None = None
    endpoint: str | None = None
    model: str | None = None
    duration_ms: int | None = None


class TranslateTestResponse(BaseModel):
    ok: bool
    connectivity_ok: bool
    structure_ok: bool
    result_preview: dict[str, str] | None = None
    checks: TranslationChecksModel | None = None
    meta: TranslateTestMeta | None = None
    error: str | None = None
