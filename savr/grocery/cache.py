from __future__ import annotations

import threading
import time
from typing import Any

_cache: dict[str, dict[str, Any]] = {}
_hits: int = 0
_misses: int = 0
_lock = threading.Lock()


def make_key(*parts: Any) -> str:
    return "|".join(str(p).lower() if isinstance(p, bool) else str(p) for p in parts)


def cache_get(key: str) -> Any | None:
    global _hits, _misses
    with _lock:
        entry = _cache.get(key)
        if entry and time.monotonic() < entry["expires_at"]:
            _hits += 1
            return entry["value"]
        if entry:
            del _cache[key]
        _misses += 1
        return None


def cache_set(key: str, value: Any, ttl: float) -> None:
    with _lock:
        _cache[key] = {"value": value, "expires_at": time.monotonic() + ttl}


def get_cache_stats() -> dict:
    total = _hits + _misses
    return {
        "size": len(_cache),
        "hits": _hits,
        "misses": _misses,
        "hit_rate": round(_hits / total * 100, 1) if total > 0 else 0.0,
    }


def clear_cache() -> None:
    global _hits, _misses
    with _lock:
        _cache.clear()
        _hits = 0
        _misses = 0
