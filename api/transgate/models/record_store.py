import logging
from typing import Any

import httpx

from transgate.exceptions import ConfigUnavailableError

logger = logging.getLogger("transgate")

CONFIG_COLLECTION = "translation_config"


class RecordStoreClient:
    """Talks to the record store: config records and bearer-token checks."""

    def __init__(self, client: httpx.AsyncClient, base_url: str, timeout_s: float = 10.0):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s

    async def fetch_config(self, auth_header: str) -> dict[str, Any] | None:
        """Return the first translation_config record, or None if there is none.

        A missing collection (HTTP 404) is not an error: the migration creating
        it may not have been applied yet.

        Raises:
            ConfigUnavailableError: on any other HTTP or network failure.
        """
        url = f"{self.base_url}/api/collections/{CONFIG_COLLECTION}/records"
        headers = {"Authorization": auth_header} if auth_header else {}
        try:
            res = await self.client.get(
                url, params={"perPage": 1}, headers=headers, timeout=self.timeout_s
            )
        except httpx.HTTPError as e:
            raise ConfigUnavailableError(f"record store unreachable: {e}") from e

        if res.status_code == 404:
            logger.warning("%s collection not found, falling back to defaults", CONFIG_COLLECTION)
            return None
        if not res.is_success:
            raise ConfigUnavailableError(
                f"failed to load {CONFIG_COLLECTION}: HTTP {res.status_code}"
            )

        try:
            payload = res.json()
        except ValueError as e:
            raise ConfigUnavailableError(f"invalid {CONFIG_COLLECTION} payload") from e

        items = payload.get("items") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            raise ConfigUnavailableError(f"invalid {CONFIG_COLLECTION} payload: items is not a list")
        if not items or not isinstance(items[0], dict):
            return None
        return items[0]

    async def verify_token(self, auth_header: str) -> bool:
        """True if the record store accepts the Authorization header."""
        if not auth_header:
            return False
        try:
            res = await self.client.post(
                f"{self.base_url}/api/collections/users/auth-refresh",
                headers={"Authorization": auth_header},
                timeout=self.timeout_s,
            )
        except httpx.HTTPError as e:
            logger.warning("auth-refresh failed: %s", e)
            return False
        return res.is_success
