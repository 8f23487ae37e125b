"""Shared fixtures: a controllable clock and configs for both engines."""

from __future__ import annotations

import pytest

from transgate.services.translation_config import TranslationConfig, normalize_translation_config


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ai_config() -> TranslationConfig:
    return normalize_translation_config({
        "engine": "ai",
        "right_code_base_url": "https://ai.example.test/v1",
        "right_code_api_key": "sk-test",
        "right_code_model": "test-model",
        "right_code_endpoint": "responses",
        "request_timeout_ms": 1000,
    })


@pytest.fixture
def free_config() -> TranslationConfig:
    return normalize_translation_config({"engine": "free", "request_timeout_ms": 1000})
