import math

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from transgate.middleware.metrics import RATE_LIMITED
from transgate.services.rate_limiter import RateLimiter

# Paths exempt from rate limiting
EXEMPT_PATHS = {"/healthz"}


def client_identity(request: Request) -> str:
    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rejects clients over their per-window budget with 429.

    The limiter lives on ``app.state.rate_limiter`` so it shares the
    application's lifetime and can be swapped in tests.
    """

    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        if request.method == "OPTIONS" or path in EXEMPT_PATHS:
            return await call_next(request)

        limiter: RateLimiter | None = getattr(request.app.state, "rate_limiter", None)
        if limiter is None:
            return await call_next(request)

        if not limiter.allow(client_identity(request)):
            RATE_LIMITED.inc()
            return JSONResponse(
                status_code=429,
                content={"ok": False, "error": "too many requests"},
                headers={"Retry-After": str(math.ceil(limiter.window_s))},
            )

        return await call_next(request)
