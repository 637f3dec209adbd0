from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

from .clock import Clock, iso_ms
from .storage import Storage, StorageError

logger = logging.getLogger(__name__)

SHADOW_LOG_KEY = "akshar_visitor_data"
SHADOW_LOG_LIMIT = 1000


class ShadowLog:
    """
    Local copy of every emitted event, for debugging only.

    Nothing reads it back for counting; a broken store just disables it.
    """

    def __init__(self, storage: Storage, clock: Clock, *, key: str = SHADOW_LOG_KEY, limit: int = SHADOW_LOG_LIMIT):
        self.storage = storage
        self.clock = clock
        self.key = key
        self.limit = limit

    def entries(self) -> List[Dict[str, Any]]:
        try:
            raw = self.storage.get_item(self.key)
        except StorageError as e:
            logger.error("Cannot read shadow log: %s", e)
            return []
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("Shadow log is corrupt, ignoring it: %s", e)
            return []
        return data if isinstance(data, list) else []

    def append(self, payload: Dict[str, Any]) -> bool:
        entries = self.entries()
        entries.append({**payload, "storedAt": iso_ms(self.clock.now_ms())})
        if len(entries) > self.limit:
            del entries[: len(entries) - self.limit]
        try:
            self.storage.set_item(self.key, json.dumps(entries, ensure_ascii=False))
        except (StorageError, TypeError, ValueError) as e:
            logger.error("Error storing tracking data locally: %s", e)
            return False
        logger.debug("Stored %s locally (%d entries)", payload.get("action"), len(entries))
        return True
