"""End-to-end tests through the FastAPI app with every upstream faked."""

from __future__ import annotations

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from transgate.config import Settings
from transgate.main import create_app

AUTH = {"Authorization": "Bearer good-token"}

AI_RECORD = {
    "id": "cfg1",
    "enabled": True,
    "engine": "ai",
    "right_code_base_url": "http://ai.test/v1",
    "right_code_api_key": "sk-live",
    "right_code_model": "gpt-test",
    "right_code_endpoint": "responses",
    "enable_cache": True,
}


class Upstreams:
    """Fake record store, AI backend and free MT backend behind one transport."""

    def __init__(self, record=None, ai_output='{"en": "Hello World", "ja": "こんにちは世界"}'):
        self.record = record
        self.ai_output = ai_output
        self.ai_requests: list[httpx.Request] = []
        self.free_requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host, path = request.url.host, request.url.path
        if host == "pb.test" and path == "/api/collections/users/auth-refresh":
            ok = request.headers.get("authorization") == AUTH["Authorization"]
            return httpx.Response(200 if ok else 401, json={})
        if host == "pb.test" and path == "/api/collections/translation_config/records":
            items = [self.record] if self.record else []
            return httpx.Response(200, json={"items": items})
        if host == "ai.test":
            self.ai_requests.append(request)
            return httpx.Response(200, json={"output_text": self.ai_output})
        if host == "mt.test":
            self.free_requests.append(request)
            target = request.url.params["langpair"].split("|")[1]
            return httpx.Response(200, json={"responseData": {"translatedText": f"[{target}]"}})
        return httpx.Response(404)


def _settings(**overrides) -> Settings:
    values = dict(
        pb_url="http://pb.test",
        free_backend_url="http://mt.test",
        prometheus_enabled=False,
        rate_limit_max=100,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def make_client():
    clients = []

    def factory(upstreams: Upstreams, **settings_overrides) -> TestClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(upstreams))
        client = TestClient(create_app(_settings(**settings_overrides), http_client=http_client))
        client.__enter__()
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.__exit__(None, None, None)


def test_healthz_needs_no_auth(make_client):
    client = make_client(Upstreams())

    res = client.get("/healthz")

    assert res.status_code == 200
    assert res.json() == {"ok": True}


def test_unauthorized_without_valid_token(make_client):
    client = make_client(Upstreams())

    res = client.post("/translate", json={}, headers={"Authorization": "Bearer wrong"})

    assert res.status_code == 401
    assert res.json() == {"ok": False, "error": "unauthorized"}


def test_translate_then_cached_repeat(make_client):
    upstreams = Upstreams(record=AI_RECORD)
    client = make_client(upstreams)
    body = {"source_lang": "zh", "targets": ["en", "ja"], "fields": {"title": "你好世界"}}

    first = client.post("/translate", json=body, headers=AUTH)
    second = client.post("/translate", json=body, headers=AUTH)

    assert first.status_code == 200
    assert first.json()["translations"] == {"title": {"en": "Hello World", "ja": "こんにちは世界"}}
    assert first.json()["meta"]["cached"] is False
    assert first.json()["meta"]["engine"] == "ai"
    assert first.json()["meta"]["provider"] == "right_code"
    assert first.json()["meta"]["model"] == "gpt-test"
    assert second.json()["translations"] == first.json()["translations"]
    assert second.json()["meta"]["cached"] is True
    assert len(upstreams.ai_requests) == 1
    assert upstreams.ai_requests[0].headers["authorization"] == "Bearer sk-live"
    assert json.loads(upstreams.ai_requests[0].content)["model"] == "gpt-test"


def test_free_engine_default_targets(make_client):
    upstreams = Upstreams(record={"id": "cfg1", "engine": "free"})
    client = make_client(upstreams)

    res = client.post("/translate", json={"source_lang": "en", "fields": {"t": "Hi"}}, headers=AUTH)

    assert res.status_code == 200
    assert res.json()["translations"] == {"t": {"zh": "[zh]", "ja": "[ja]"}}
    assert res.json()["meta"]["provider"] == "free"
    assert len(upstreams.free_requests) == 2


@pytest.mark.parametrize(
    "body, error",
    [
        ({"source_lang": "fr", "fields": {"t": "x"}}, "invalid source_lang"),
        ({"source_lang": "zh", "fields": ["x"]}, "fields must be an object"),
        ({"source_lang": "zh", "fields": {}}, "fields is empty"),
    ],
)
def test_invalid_requests_are_400(make_client, body, error):
    client = make_client(Upstreams(record=AI_RECORD))

    res = client.post("/translate", json=body, headers=AUTH)

    assert res.status_code == 400
    assert res.json() == {"ok": False, "error": error}


def test_malformed_json_body_is_400(make_client):
    client = make_client(Upstreams())

    res = client.post(
        "/translate",
        content=b"{not json",
        headers={**AUTH, "Content-Type": "application/json"},
    )

    assert res.status_code == 400
    assert res.json()["ok"] is False


def test_disabled_config_is_503(make_client):
    client = make_client(Upstreams(record={"id": "cfg1", "enabled": False}))

    res = client.post("/translate", json={"source_lang": "zh", "fields": {"t": "x"}}, headers=AUTH)

    assert res.status_code == 503
    assert res.json() == {"ok": False, "error": "translation is disabled"}


def test_contract_violation_is_502(make_client):
    client = make_client(Upstreams(record=AI_RECORD, ai_output='{"en": "only english"}'))

    res = client.post(
        "/translate",
        json={"source_lang": "zh", "targets": ["en", "ja"], "fields": {"t": "你好"}},
        headers=AUTH,
    )

    assert res.status_code == 502
    assert res.json() == {"ok": False, "error": "model output missing target languages"}


def test_translate_test_reports_structure(make_client):
    client = make_client(Upstreams(record=AI_RECORD))

    res = client.post("/translate/test", json={"targets": ["en", "ja"]}, headers=AUTH)

    data = res.json()
    assert res.status_code == 200
    assert data["ok"] is True
    assert data["connectivity_ok"] is True
    assert data["structure_ok"] is True
    assert data["result_preview"] == {"en": "Hello World", "ja": "こんにちは世界"}
    assert data["checks"] == {"json_parse": True, "no_source_lang": True, "has_all_targets": True}
    assert data["meta"]["model"] == "gpt-test"


def test_translate_test_flags_echoed_source(make_client):
    client = make_client(
        Upstreams(record=AI_RECORD, ai_output='{"en": "hi", "ja": "やあ", "zh": "嗨"}')
    )

    data = client.post("/translate/test", json={"source_lang": "zh"}, headers=AUTH).json()

    assert data["ok"] is False
    assert data["connectivity_ok"] is True
    assert data["checks"]["no_source_lang"] is False


def test_translate_test_reports_errors_in_band(make_client):
    upstreams = Upstreams(record=AI_RECORD)
    client = make_client(upstreams)

    res = client.post(
        "/translate/test",
        json={"override_config": {"right_code_api_key": ""}},
        headers=AUTH,
    )

    assert res.status_code == 200
    assert res.json()["ok"] is False
    assert res.json()["connectivity_ok"] is False
    assert "API key is empty" in res.json()["error"]
    assert upstreams.ai_requests == []


def test_translate_test_invalid_source_lang_is_in_band(make_client):
    upstreams = Upstreams(record=AI_RECORD)
    client = make_client(upstreams)

    res = client.post("/translate/test", json={"source_lang": "xx"}, headers=AUTH)

    assert res.status_code == 200
    assert res.json() == {
        "ok": False,
        "connectivity_ok": False,
        "structure_ok": False,
        "error": "invalid source_lang",
    }
    assert upstreams.ai_requests == []


def test_translate_test_override_does_not_leak(make_client):
    upstreams = Upstreams(record=AI_RECORD)
    client = make_client(upstreams)

    test_res = client.post(
        "/translate/test",
        json={"override_config": {"engine": "free"}, "sample_text": "测试"},
        headers=AUTH,
    )
    real_res = client.post("/translate", json={"source_lang": "zh", "fields": {"t": "你好世界"}}, headers=AUTH)

    assert test_res.json()["meta"]["engine"] == "free"
    assert real_res.json()["meta"]["engine"] == "ai"


def test_rate_limit_rejects_after_max(make_client):
    client = make_client(Upstreams(record=AI_RECORD), rate_limit_max=2)
    headers = {**AUTH, "X-Real-IP": "10.0.0.1"}

    codes = [client.post("/translate/test", json={}, headers=headers).status_code for _ in range(3)]
    other = client.post("/translate/test", json={}, headers={**AUTH, "X-Real-IP": "10.0.0.2"})

    assert codes == [200, 200, 429]
    assert other.status_code == 200
    assert client.get("/healthz").status_code == 200


def test_oversized_body_is_413(make_client):
    client = make_client(Upstreams(record=AI_RECORD), max_body_bytes=64)

    res = client.post(
        "/translate",
        json={"source_lang": "zh", "fields": {"t": "x" * 200}},
        headers=AUTH,
    )

    assert res.status_code == 413
    assert res.json() == {"ok": False, "error": "body too large"}


def test_streamed_body_without_length_is_413(make_client):
    upstreams = Upstreams(record=AI_RECORD)
    client = make_client(upstreams, max_body_bytes=200)

    def chunks():
        yield b'{"source_lang": "zh", "fields": {"t": "'
        for _ in range(50):
            yield b"x" * 100
        yield b'"}}'

    res = client.post(
        "/translate",
        content=chunks(),
        headers={**AUTH, "Content-Type": "application/json"},
    )

    assert res.status_code == 413
    assert res.json() == {"ok": False, "error": "body too large"}
    assert upstreams.ai_requests == []


def test_streamed_body_within_limit_is_accepted(make_client):
    client = make_client(Upstreams(record={"id": "cfg1", "engine": "free"}), max_body_bytes=200)

    def chunks():
        yield b'{"source_lang": "en", '
        yield b'"targets": ["ja"], "fields": {"t": "Hi"}}'

    res = client.post(
        "/translate",
        content=chunks(),
        headers={**AUTH, "Content-Type": "application/json"},
    )

    assert res.status_code == 200
    assert res.json()["translations"] == {"t": {"ja": "[ja]"}}


def test_cors_preflight_skips_auth(make_client):
    client = make_client(Upstreams(), allowed_origin="https://cms.example.test")

    res = client.options(
        "/translate",
        headers={
            "Origin": "https://cms.example.test",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Authorization, Content-Type",
        },
    )

    assert res.status_code == 200
    assert res.headers["access-control-allow-origin"] == "https://cms.example.test"
