from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Dict, Optional, Protocol


class StorageError(Exception):
    pass


class StorageQuotaExceeded(StorageError):
    pass


class Storage(Protocol):
    """String key/value store with localStorage semantics."""

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...


def _check_quota(items: Dict[str, str], quota_bytes: Optional[int]) -> None:
    if quota_bytes is None:
        return
    used = sum(len(k.encode("utf-8")) + len(v.encode("utf-8")) for k, v in items.items())
    if used > quota_bytes:
        raise StorageQuotaExceeded(f"storage quota exceeded ({used} > {quota_bytes} bytes)")


class MemoryStorage:
    def __init__(self, *, quota_bytes: Optional[int] = None):
        self.items: Dict[str, str] = {}
        self.quota_bytes = quota_bytes

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        candidate = dict(self.items)
        candidate[key] = str(value)
        _check_quota(candidate, self.quota_bytes)
        self.items = candidate


class JsonFileStorage:
    """
    One JSON object per browser profile, rewritten on every set.

    Default quota matches the ~5 MB browsers give a single origin.
    """

    def __init__(self, path: str | Path, *, quota_bytes: Optional[int] = 5 * 1024 * 1024):
        self.path = Path(path)
        self.quota_bytes = quota_bytes

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"unreadable profile {self.path}: {e}") from e
        if not isinstance(raw, dict):
            raise StorageError(f"profile {self.path} is not a JSON object")
        return {str(k): str(v) for k, v in raw.items()}

    def _save(self, items: Dict[str, str]) -> None:
        _check_quota(items, self.quota_bytes)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(items, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            raise StorageError(f"cannot write profile {self.path}: {e}") from e

    def get_item(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._load()
        items[key] = str(value)
        self._save(items)
