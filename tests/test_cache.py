"""
Tests for the content-addressed extraction cache.
"""

import threading

import pytest

from careerpulse.ai.cache import ExtractionCache, content_hash
from careerpulse.models import ApplicationStatus, ExtractionResult

RESULT = ExtractionResult(
    is_job_related=True,
    company="Acme",
    title="Engineer",
    status=ApplicationStatus.APPLIED,
    location="Remote",
)


def test_content_hash_ignores_whitespace_and_sender_case():
    a = content_hash("Jobs@Acme.com", "Your  application", "Thanks\n\nfor applying ")
    b = content_hash("jobs@acme.com", "Your application", "Thanks for applying")

    assert a == b
    assert len(a) == 64


def test_content_hash_distinguishes_fields():
    """Moving text between subject and body changes the key."""
    assert content_hash("a@b.com", "Hello world", "") != content_hash("a@b.com", "Hello", "world")
    assert content_hash("a@b.com", "Offer", "x") != content_hash("a@b.com", "offer", "x")


def test_get_put_and_stats():
    cache = ExtractionCache(max_size=10)
    key = content_hash("a@b.com", "s", "b")

    assert cache.get(key) is None
    cache.put(key, RESULT)

    assert cache.get(key) == RESULT
    assert key in cache
    assert cache.stats() == {"size": 1, "max_size": 10, "hits": 1, "misses": 1}


def test_oldest_entry_is_evicted_first():
    cache = ExtractionCache(max_size=2)
    cache.put("one", RESULT)
    cache.put("two", RESULT)
    cache.get("one")
    cache.put("three", RESULT)

    # Insertion order, not access order, decides eviction
    assert "one" not in cache
    assert "two" in cache
    assert "three" in cache
    assert len(cache) == 2


def test_reinsert_keeps_position():
    cache = ExtractionCache(max_size=2)
    cache.put("one", RESULT)
    cache.put("two", RESULT)
    cache.put("one", ExtractionResult.not_job_related())
    cache.put("three", RESULT)

    assert "one" not in cache
    assert cache.get("three") == RESULT


def test_clear_resets_entries_and_counters():
    cache = ExtractionCache()
    cache.put("k", RESULT)
    cache.get("k")
    cache.clear()

    assert len(cache) == 0
    assert cache.stats()["hits"] == 0


def test_rejects_non_positive_size():
    with pytest.raises(ValueError):
        ExtractionCache(max_size=0)


def test_concurrent_puts_respect_bound():
    cache = ExtractionCache(max_size=50)

    def writer(prefix):
        for i in range(200):
            cache.put(f"{prefix}-{i}", RESULT)

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(cache) == 50


def test_size_and_membership_wait_for_writers():
    cache = ExtractionCache(max_size=5)
    cache.put("k", RESULT)
    seen = []

    def reader():
        seen.append((len(cache), "k" in cache))

    with cache._lock:
        thread = threading.Thread(target=reader)
        thread.start()
        thread.join(timeout=0.1)
        assert thread.is_alive()
        assert seen == []
    thread.join(timeout=5)

    assert seen == [(1, True)]
