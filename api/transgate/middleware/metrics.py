from prometheus_client import Counter, Gauge, Histogram
from prometheus_fastapi_instrumentator import Instrumentator

# Custom metrics
TRANSLATIONS = Counter(
    "transgate_translations_total",
    "Field translations served",
    ["engine", "source"],
)

BACKEND_DURATION = Histogram(
    "transgate_backend_duration_seconds",
    "Backend call duration in seconds",
    ["backend"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 20.0, 30.0],
)

BACKEND_FAILURES = Counter(
    "transgate_backend_failures_total",
    "Failed backend calls",
    ["backend", "reason"],
)

AUTH_FALLBACK = Counter(
    "transgate_ai_auth_fallback_total",
    "AI calls retried with the x-api-key header",
)

CONTRACT_VIOLATIONS = Counter(
    "transgate_contract_violations_total",
    "AI outputs rejected by the JSON contract",
)

RATE_LIMITED = Counter(
    "transgate_rate_limited_total",
    "Requests rejected by the rate limiter",
)

RESULT_CACHE_ENTRIES = Gauge(
    "transgate_result_cache_entries",
    "Entries held by the translation result cache",
)

RATE_BUCKETS = Gauge(
    "transgate_rate_buckets",
    "Client buckets tracked by the rate limiter",
)


def setup_metrics(app):
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/metrics", "/docs", "/openapi.json", "/healthz"],
    ).instrument(app).expose(app, endpoint="/metrics")
