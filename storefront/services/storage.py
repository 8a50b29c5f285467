from __future__ import annotations

import json
import logging
from typing import Any, List, Optional

from storefront.db.sqlite import kv_delete, kv_get, kv_set

logger = logging.getLogger(__name__)


class LocalStorage:
    """Per-client string key-value store, the server-side stand-in for browser localStorage."""

    def __init__(self, client_id: str):
        if not client_id:
            raise ValueError("client_id is required")
        self.client_id = client_id

    def get_item(self, key: str) -> Optional[str]:
        return kv_get(self.client_id, key)

    def set_item(self, key: str, value: str) -> None:
        kv_set(self.client_id, key, value)

    def remove_item(self, key: str) -> None:
        kv_delete(self.client_id, [key])

    def clear(self) -> None:
        kv_delete(self.client_id)

    def get_json_list(self, key: str) -> Optional[List[Any]]:
        return self.get_json(key, list)

    def get_json(self, key: str, expected: type = dict) -> Any:
        """Stored JSON value of type `expected`, or None when missing or unparseable (the error is logged)."""
        raw = self.get_item(key)
        if not raw:
            return None
        try:
            value = json.loads(raw)
            if not isinstance(value, expected):
                raise ValueError(f"expected {expected.__name__}, got {type(value).__name__}")
            return value
        except ValueError as e:
            logger.error("Failed to parse %s from storage for client %s: %s", key, self.client_id, e)
            return None

    def set_json(self, key: str, value: Any) -> None:
        self.set_item(key, json.dumps(value))
