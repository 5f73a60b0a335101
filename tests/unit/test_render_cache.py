"""Tests for the render result cache."""

import time

import pytest

from sandbox import RenderCache


@pytest.mark.unit
def test_hit_and_miss():
    cache = RenderCache(max_size=4)
    cache.set("<div />", "react", {"html": "a"})

    assert cache.get("<div />", "react") == {"html": "a"}
    assert cache.get("<div />", "vue") is None
    assert cache.stats.hits == 1
    assert cache.stats.misses == 1
    assert cache.stats.hit_rate == 0.5


@pytest.mark.unit
def test_key_depends_on_framework_and_code():
    assert RenderCache.key("a", "react") != RenderCache.key("a", "vue")
    assert RenderCache.key("a", "react") == RenderCache.key("a", "react")


@pytest.mark.unit
def test_lru_eviction():
    cache = RenderCache(max_size=2)
    cache.set("a", "react", 1)
    cache.set("b", "react", 2)
    cache.get("a", "react")
    cache.set("c", "react", 3)

    assert cache.get("b", "react") is None
    assert cache.get("a", "react") == 1
    assert cache.stats.evictions == 1
    assert len(cache) == 2


@pytest.mark.unit
def test_ttl_expiry(monkeypatch):
    now = [100.0]
    monkeypatch.setattr(time, "monotonic", lambda: now[0])
    cache = RenderCache(ttl_seconds=10)
    cache.set("a", "react", 1)

    now[0] += 10

    assert cache.get("a", "react") is None
    assert len(cache) == 0


@pytest.mark.unit
def test_clear_and_validation():
    cache = RenderCache()
    cache.set("a", "react", 1)
    cache.clear()

    assert len(cache) == 0
    with pytest.raises(ValueError):
        RenderCache(max_size=0)
