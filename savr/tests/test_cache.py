from __future__ import annotations

from unittest.mock import patch

from savr.grocery.cache import cache_get, cache_set, clear_cache, get_cache_stats, make_key


def test_make_key_lowercases_bools():
    assert make_key("milk", "01400943", "median", 5, False) == "milk|01400943|median|5|false"


def test_miss_then_hit():
    key = make_key("eggs", "1")
    assert cache_get(key) is None
    cache_set(key, {"cost": 2.1}, ttl=60)
    assert cache_get(key) == {"cost": 2.1}

    stats = get_cache_stats()
    assert stats == {"size": 1, "hits": 1, "misses": 1, "hit_rate": 50.0}


@patch("savr.grocery.cache.time.monotonic")
def test_expired_entries_are_evicted(mock_now):
    mock_now.return_value = 1000.0
    cache_set("k", "v", ttl=600)

    mock_now.return_value = 1599.0
    assert cache_get("k") == "v"

    mock_now.return_value = 1600.0
    assert cache_get("k") is None
    assert get_cache_stats()["size"] == 0


def test_clear_cache_resets_stats():
    cache_set("k", "v", ttl=60)
    cache_get("k")
    clear_cache()
    assert get_cache_stats() == {"size": 0, "hits": 0, "misses": 0, "hit_rate": 0.0}
