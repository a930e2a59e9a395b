"""
Key/TTL JSON file cache for vendor responses and LLM results.

Cache failures are never fatal: unreadable or expired entries read as misses
and write errors are logged and dropped.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheHit:
    data: Any
    timestamp: float  # epoch seconds when the entry was written


def cache_key(endpoint: str, params: Optional[Dict[str, str]] = None) -> str:
    raw = endpoint + json.dumps(params or {}, sort_keys=True, separators=(",", ":"))
    return hashlib.md5(raw.encode("utf-8")).hexdigest()


class FileCache:
    """One JSON file per key: {"data", "timestamp", "expires_at"}."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read_with_meta(self, key: str) -> Optional[CacheHit]:
        path = self._path(key)
        if not path.is_file():
            return None
        try:
            entry = json.loads(path.read_text(encoding="utf-8"))
            expires_at = float(entry["expires_at"])
            if time.time() > expires_at:
                path.unlink(missing_ok=True)
                return None
            return CacheHit(data=entry["data"], timestamp=float(entry["timestamp"]))
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Cache read failed for %s: %s", key, exc)
            return None

    def read(self, key: str) -> Any:
        hit = self.read_with_meta(key)
        return hit.data if hit is not None else None

    def write(self, key: str, data: Any, ttl_seconds: float) -> None:
        now = time.time()
        entry = {"data": data, "timestamp": now, "expires_at": now + ttl_seconds}
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self._path(key).write_text(json.dumps(entry, separators=(",", ":")), encoding="utf-8")
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Cache write failed for %s: %s", key, exc)
