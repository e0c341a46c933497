# backend/utils/local_storage.py
"""Browser-style key/value storage. Values are stored JSON encoded."""
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

CART_KEY = "milkman_cart"
PRODUCTS_KEY = "milkman_products"
CURRENT_USER_KEY = "currentUser"


class MemoryStorage:
    """Storage that lives as long as the object; used per request and in tests."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            # A corrupt entry is dropped rather than crashing the page
            logger.warning("Discarding unreadable storage entry %s", key)
            self.remove_item(key)
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set_item(key, json.dumps(value, default=str))


class FileStorage(MemoryStorage):
    """Durable storage: every write rewrites the backing JSON file."""

    def __init__(self, path):
        self.path = Path(path)
        initial = {}
        if self.path.exists():
            try:
                initial = json.loads(self.path.read_text(encoding="utf-8"))
            except ValueError:
                logger.warning("Storage file %s is unreadable, starting empty", self.path)
        super().__init__(initial)

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._data), encoding="utf-8")
        os.replace(tmp, self.path)

    def set_item(self, key: str, value: str) -> None:
        super().set_item(key, value)
        self._flush()

    def remove_item(self, key: str) -> None:
        super().remove_item(key)
        self._flush()
