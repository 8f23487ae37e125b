import asyncio
import logging
import time

import httpx

from transgate.exceptions import BackendError, BackendTimeoutError
from transgate.middleware.metrics import BACKEND_DURATION, BACKEND_FAILURES

logger = logging.getLogger("transgate")


class FreeBackendClient:
    """MyMemory-style free MT API. No batch endpoint: one call per target."""

    def __init__(self, client: httpx.AsyncClient, base_url: str):
        self.client = client
        self.base_url = base_url.rstrip("/")

    async def translate_one(
        self, source_lang: str, target_lang: str, text: str, timeout_s: float
    ) -> str:
        """Translate ``text`` into one language; "" when the reply has no text."""
        start = time.perf_counter()
        try:
            res = await asyncio.wait_for(
                self.client.get(
                    f"{self.base_url}/get",
                    params={"q": text, "langpair": f"{source_lang}|{target_lang}"},
                    timeout=timeout_s,
                ),
                timeout=timeout_s,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            BACKEND_FAILURES.labels(backend="free", reason="timeout").inc()
            raise BackendTimeoutError(f"free translate timed out after {timeout_s:g}s") from None
        except httpx.HTTPError as e:
            BACKEND_FAILURES.labels(backend="free", reason="network").inc()
            raise BackendError(f"free translate failed: {e}") from e
        finally:
            BACKEND_DURATION.labels(backend="free").observe(time.perf_counter() - start)

        if not res.is_success:
            BACKEND_FAILURES.labels(backend="free", reason="http").inc()
            raise BackendError(
                f"free translate failed: HTTP {res.status_code}", status_code=res.status_code
            )

        try:
            data = res.json()
        except ValueError:
            logger.debug("free translate returned a non-JSON body")
            return ""

        response_data = data.get("responseData") if isinstance(data, dict) else None
        translated = response_data.get("translatedText") if isinstance(response_data, dict) else None
        return translated if isinstance(translated, str) else ""
