import asyncio
import logging
import time
from typing import Any, Callable, Mapping

from transgate.exceptions import ConfigUnavailableError
from transgate.models.record_store import RecordStoreClient
from transgate.services.translation_config import (
    TranslationConfig,
    default_translation_config,
    normalize_translation_config,
)

logger = logging.getLogger("transgate")

MIN_CONFIG_TTL_S = 1.0


class ConfigStore:
    """Caches the translation config fetched from the record store.

    Availability wins over freshness: when the store cannot be read, the last
    good config (or the hardcoded defaults) is served instead of failing.
    Overrides are request-scoped and never enter the cache.
    """

    def __init__(
        self,
        record_store: RecordStoreClient,
        ttl_s: float = 5.0,
        defaults: TranslationConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._record_store = record_store
        self._ttl_s = max(MIN_CONFIG_TTL_S, ttl_s)
        self._defaults = defaults or default_translation_config()
        self._clock = clock
        self._cached: TranslationConfig | None = None
        self._record_id: str | None = None
        self._expires_at = 0.0
        self._refresh_lock = asyncio.Lock()

    @property
    def cached(self) -> TranslationConfig | None:
        return self._cached

    def _is_fresh(self) -> bool:
        return self._cached is not None and self._clock() < self._expires_at

    async def resolve(
        self,
        auth_header: str,
        override: Mapping[str, Any] | None = None,
    ) -> tuple[TranslationConfig, str | None]:
        """Return the active config and the id of the record it came from."""
        if override is None and self._is_fresh():
            return self._cached, self._record_id

        base = await self._refresh(auth_header, force=override is not None)

        if override is not None:
            merged = normalize_translation_config(
                {**base.to_record(), **dict(override)}, self._defaults
            )
            return merged, self._record_id

        return base, self._record_id

    async def _refresh(self, auth_header: str, force: bool) -> TranslationConfig:
        async with self._refresh_lock:
            # Another request may have refreshed while we waited
            if not force and self._is_fresh():
                return self._cached

            record = None
            try:
                record = await self._record_store.fetch_config(auth_header)
            except ConfigUnavailableError as e:
                logger.warning("Failed to fetch translation config, using cache/defaults: %s", e)

            if record is not None:
                base = normalize_translation_config(record, self._defaults)
                self._record_id = record.get("id") or self._record_id
            else:
                base = self._cached or self._defaults

            self._cached = base
            self._expires_at = self._clock() + self._ttl_s
            return base
