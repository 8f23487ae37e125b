import json
import logging

from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger("transgate")

# Paths that don't require auth
PUBLIC_PATHS = {"/healthz", "/docs", "/openapi.json", "/redoc", "/metrics"}


class AuthMiddleware:
    """Pure ASGI middleware: the record store decides whether a token is valid."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        # Only intercept HTTP requests; let lifespan pass through
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        # Skip auth for public paths and CORS preflight
        if scope["path"] in PUBLIC_PATHS or scope["method"] == "OPTIONS":
            await self.app(scope, receive, send)
            return

        record_store = getattr(scope["app"].state, "record_store", None)
        if record_store is None:
            await self._send_json(send, 503, {"ok": False, "error": "auth backend unavailable"})
            return

        headers = dict(scope.get("headers", []))
        auth = headers.get(b"authorization", b"").decode().strip()

        if not await record_store.verify_token(auth):
            await self._send_json(send, 401, {"ok": False, "error": "unauthorized"})
            return

        await self.app(scope, receive, send)

    @staticmethod
    async def _send_json(send: Send, status: int, body: dict):
        payload = json.dumps(body).encode()
        await send({
            "type": "http.response.start",
            "status": status,
            "headers": [
                [b"content-type", b"application/json"],
                [b"content-length", str(len(payload)).encode()],
            ],
        })
        await send({
            "type": "http.response.body",
            "body": payload,
        })
