import threading

import pytest

from datavista.errors import RequestLimitExceeded
from datavista.session import RequestCounter, SessionRegistry


def test_counter_counts_until_limit():
    counter = RequestCounter(limit=2)
    assert counter.acquire() == 1
    assert counter.acquire() == 2
    assert counter.remaining == 0

    with pytest.raises(RequestLimitExceeded) as excinfo:
        counter.acquire()
    assert str(excinfo.value) == "Request limit reached for this session (2 requests max)"
    assert counter.count == 2


def test_reset_restores_budget():
    counter = RequestCounter(limit=1)
    counter.acquire()
    counter.reset()
    assert counter.snapshot() == {"requestCount": 0, "remaining": 1, "limit": 1}
    assert counter.acquire() == 1


def test_registry_keeps_sessions_apart():
    registry = SessionRegistry(limit=3)
    a = registry.counter("a")
    b = registry.counter("b")
    a.acquire()
    a.acquire()

    assert registry.counter("a") is a
    assert b.count == 0
    assert b.remaining == 3
    assert len(registry) == 2


def test_concurrent_acquire_never_exceeds_limit():
    counter = RequestCounter(limit=20)
    successes = []
    lock = threading.Lock()

    def worker():
        try:
            counter.acquire()
        except RequestLimitExceeded:
            return
        with lock:
            successes.append(1)

    threads = [threading.Thread(target=worker) for _ in range(50)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(successes) == 20
    assert counter.count == 20


def test_registry_evicts_least_recently_used_session():
    registry = SessionRegistry(limit=3, max_sessions=2)
    a = registry.counter("a")
    registry.counter("b")
    assert registry.counter("a") is a

    registry.counter("c")

    assert len(registry) == 2
    assert "a" in registry
    assert "b" not in registry
    assert "c" in registry
