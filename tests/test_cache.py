from ditherkit.config import SETTINGS
from ditherkit.infrastructure import cache as cache_module
from ditherkit.infrastructure.cache import ResponseCache, cache_key


def test_response_cache_eviction_limit():
    cache = ResponseCache()

    # Fill the cache beyond the limit to trigger eviction logic.
    for idx in range(20):
        cache.put(f"key-{idx}", b"data")

    assert len(cache) == 16

    # Ensure the oldest entries are evicted first
    assert cache.get("key-0") is None
    assert cache.get("key-3") is None
    assert cache.get("key-4") == b"data"


def test_overwriting_a_key_does_not_evict():
    cache = ResponseCache(max_entries=2)
    cache.put("a", b"1")
    cache.put("b", b"2")

    cache.put("a", b"3")

    assert len(cache) == 2
    assert cache.get("a") == b"3"
    assert cache.get("b") == b"2"


def test_entries_expire_after_ttl(monkeypatch):
    cache = ResponseCache()
    cache.put("key", b"png")

    monkeypatch.setattr(SETTINGS, "cache_ttl", -1.0)

    assert cache.get("key") is None
    assert len(cache) == 0


def test_cache_key_ignores_parameter_order():
    first = cache_key("http://src/a.png", {"palette": "bw", "algorithm": "atkinson"})
    second = cache_key("http://src/a.png", {"algorithm": "atkinson", "palette": "bw"})

    assert first == second
    assert first == "http://src/a.png?algorithm=atkinson&palette=bw"
    assert cache_key("http://src/b.png", {"palette": "bw"}) != cache_key("http://src/a.png", {"palette": "bw"})


def test_last_good_png_round_trip():
    cache_module.forget_last_good()
    assert cache_module.last_good_png() is None

    cache_module.remember_last_good(b"\x89PNG")

    assert cache_module.last_good_png() == b"\x89PNG"
    cache_module.forget_last_good()
