import logging
import re
import time
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from .models import CacheEntry
from .store import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_TTL = 600


class ResponseCache:
    """
    Short-lived cache for update server payloads.

    Only successful payloads are ever stored; a ttl of 0 (or less) turns
    both reads and writes into no-ops.
    """

    def __init__(self, store: KeyValueStore, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock

    @staticmethod
    def key_for(product_id: str, endpoint: str) -> str:
        raw = f"product_updater_{product_id}_{endpoint}".lower()
        return re.sub(r"[^a-z0-9_\-]", "", raw)

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self.store.get(key)
        if raw is None:
            return None

        try:
            entry = CacheEntry.model_validate(raw)
        except ValidationError:
            logger.warning("Discarding malformed cache entry %s", key)
            self.store.delete(key)
            return None

        if entry.is_expired(self.clock()):
            self.store.delete(key)
            return None

        return entry.payload

    def put(self, key: str, payload: Dict[str, Any], ttl: int = DEFAULT_TTL) -> None:
        if ttl <= 0:
            return

        entry = CacheEntry(key=key, payload=payload, expires_at=self.clock() + ttl)
        self.store.set(key, entry.model_dump(mode="json"), ttl)

    def invalidate(self, key: str) -> None:
        self.store.delete(key)
