import asyncio
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from transgate.config import Settings, settings
from transgate.middleware.auth import AuthMiddleware
from transgate.middleware.body_limit import BodyLimitMiddleware
from transgate.middleware.metrics import RATE_BUCKETS, RESULT_CACHE_ENTRIES
from transgate.middleware.rate_limit import RateLimitMiddleware
from transgate.models.ai_backend import AIBackendClient
from transgate.models.free_backend import FreeBackendClient
from transgate.models.record_store import RecordStoreClient
from transgate.routers import health, translate
from transgate.services.config_store import ConfigStore
from transgate.services.orchestrator import TranslationOrchestrator
from transgate.services.rate_limiter import RateLimiter
from transgate.services.result_cache import ResultCache
from transgate.services.translation_config import default_translation_config

logger = logging.getLogger("transgate")


async def _sweep_rate_buckets(limiter: RateLimiter, interval_s: float):
    """Background task: forget stale client buckets."""
    while True:
        await asyncio.sleep(interval_s)
        removed = limiter.sweep()
        RATE_BUCKETS.set(len(limiter))
        if removed:
            logger.debug("Rate limiter sweep removed %d buckets", removed)


async def _sweep_result_cache(cache: ResultCache, interval_s: float):
    """Background task: drop expired translations."""
    while True:
        await asyncio.sleep(interval_s)
        removed = cache.sweep()
        RESULT_CACHE_ENTRIES.set(len(cache))
        if removed:
            logger.debug("Result cache sweep removed %d entries", removed)


def build_components(app: FastAPI, cfg: Settings, client: httpx.AsyncClient):
    """Create the gateway's stateful components and hang them on app.state."""
    record_store = RecordStoreClient(client, cfg.pb_url)
    result_cache = ResultCache()

    app.state.record_store = record_store
    app.state.rate_limiter = RateLimiter(
        max_requests=cfg.rate_limit_max, window_s=cfg.rate_limit_window_s
    )
    app.state.result_cache = result_cache
    app.state.config_store = ConfigStore(
        record_store,
        ttl_s=cfg.config_cache_ttl_ms / 1000,
        defaults=default_translation_config(cfg),
    )
    app.state.orchestrator = TranslationOrchestrator(
        ai_client=AIBackendClient(client),
        free_client=FreeBackendClient(client, cfg.free_backend_url),
        result_cache=result_cache,
    )


def create_app(cfg: Settings = settings, http_client: httpx.AsyncClient | None = None) -> FastAPI:
    """Build the gateway application.

    ``http_client`` is shared by every upstream call; when omitted, one is
    opened for the application's lifetime.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(
            level=getattr(logging, cfg.log_level.upper(), logging.INFO),
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
        logger.info("Translation gateway starting up")

        owns_client = http_client is None
        client = http_client or httpx.AsyncClient()
        build_components(app, cfg, client)

        sweepers = [
            asyncio.create_task(_sweep_rate_buckets(app.state.rate_limiter, cfg.sweep_interval_s)),
            asyncio.create_task(_sweep_result_cache(app.state.result_cache, cfg.sweep_interval_s)),
        ]

        yield

        for task in sweepers:
            task.cancel()
        await asyncio.gather(*sweepers, return_exceptions=True)
        if owns_client:
            await client.aclose()
        logger.info("Translation gateway shutting down")

    app = FastAPI(
        title="Translation Gateway",
        description="Translates CMS fields between zh, en and ja with a free MT API or an AI model.",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {"name": "health", "description": "Liveness"},
            {"name": "translate", "description": "Field translation and connectivity tests"},
        ],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"ok": False, "error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"ok": False, "error": "invalid JSON body"})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled gateway error on %s: %s", request.url.path, exc, exc_info=exc)
        return JSONResponse(status_code=500, content={"ok": False, "error": "internal server error"})

    # Prometheus metrics
    if cfg.prometheus_enabled:
        from transgate.middleware.metrics import setup_metrics

        setup_metrics(app)

    # Added innermost first: CORS -> body limit -> rate limit -> auth -> routes
    app.add_middleware(AuthMiddleware)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(BodyLimitMiddleware, max_bytes=cfg.max_body_bytes)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[cfg.allowed_origin],
        allow_methods=["POST", "OPTIONS", "GET"],
        allow_headers=["Authorization", "Content-Type"],
    )

    # Routers
    app.include_router(health.router, tags=["health"])
    app.include_router(translate.router, tags=["translate"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
