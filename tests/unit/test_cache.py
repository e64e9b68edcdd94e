"""
Unit tests -- Report result cache.
"""
import pytest
from report_engine.reports.cache import ReportCache
from report_engine.reports.spec import ReportResult, ReportSpec, ResultMetadata


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _spec(field: str = "category", limit: int | None = None) -> ReportSpec:
    return ReportSpec.model_validate({
        "dimensions": [{"field": field}],
        "metrics": [{"field": "revenue"}],
        "limit": limit,
    })


def _result(value: int = 1) -> ReportResult:
    return ReportResult(
        rows=[{"category": "A", "revenue": value}],
        metadata=ResultMetadata(row_count=1, execution_time_ms=5),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def test_put_and_get(clock):
    cache = ReportCache(ttl=60, clock=clock)
    cache.put("t1", _spec(), _result(7))
    hit = cache.get("t1", _spec())
    assert hit.rows == [{"category": "A", "revenue": 7}]


def test_cache_miss():
    cache = ReportCache(ttl=60)
    assert cache.get("t1", _spec()) is None


def test_tenants_are_isolated(clock):
    cache = ReportCache(ttl=60, clock=clock)
    cache.put("t1", _spec(), _result(1))
    assert cache.get("t2", _spec()) is None


def test_different_specs_different_keys(clock):
    cache = ReportCache(ttl=60, clock=clock)
    cache.put("t1", _spec(limit=10), _result(10))
    cache.put("t1", _spec(limit=20), _result(20))
    assert cache.get("t1", _spec(limit=10)).rows[0]["revenue"] == 10
    assert cache.get("t1", _spec(limit=20)).rows[0]["revenue"] == 20


def test_key_is_deterministic():
    assert ReportCache.make_key("t1", _spec()) == ReportCache.make_key("t1", _spec())
    assert ReportCache.make_key("t1", _spec()) != ReportCache.make_key("t2", _spec())


def test_get_returns_independent_copy(clock):
    cache = ReportCache(ttl=60, clock=clock)
    cache.put("t1", _spec(), _result(1))
    first = cache.get("t1", _spec())
    first.rows[0]["revenue"] = 999
    assert cache.get("t1", _spec()).rows[0]["revenue"] == 1


def test_cache_expiry(clock):
    cache = ReportCache(ttl=300, clock=clock)
    cache.put("t1", _spec(), _result())
    clock.now += 299
    assert cache.get("t1", _spec()) is not None
    clock.now += 1
    assert cache.get("t1", _spec()) is None
    assert len(cache) == 0


def test_invalidate_tenant(clock):
    cache = ReportCache(ttl=60, clock=clock)
    cache.put("t1", _spec("category"), _result())
    cache.put("t1", _spec("channel"), _result())
    cache.put("t2", _spec("category"), _result())
    assert cache.invalidate("t1") == 2
    assert cache.get("t2", _spec("category")) is not None


def test_invalidate_all(clock):
    cache = ReportCache(ttl=60, clock=clock)
    cache.put("t1", _spec(), _result())
    cache.put("t2", _spec(), _result())
    assert cache.invalidate() == 2
    assert len(cache) == 0


def test_eviction_is_insertion_order_not_lru(clock):
    cache = ReportCache(ttl=60, max_size=2, clock=clock)
    cache.put("t1", _spec("category"), _result(1))
    cache.put("t1", _spec("channel"), _result(2))
    # reading the oldest entry does not protect it
    assert cache.get("t1", _spec("category")) is not None
    cache.put("t1", _spec("region"), _result(3))
    assert cache.get("t1", _spec("category")) is None
    assert cache.get("t1", _spec("channel")) is not None
    assert cache.get("t1", _spec("region")) is not None
    assert cache.stats()["evictions"] == 1


def test_reput_moves_entry_to_back(clock):
    cache = ReportCache(ttl=60, max_size=2, clock=clock)
    cache.put("t1", _spec("category"), _result(1))
    cache.put("t1", _spec("channel"), _result(2))
    cache.put("t1", _spec("category"), _result(11))
    cache.put("t1", _spec("region"), _result(3))
    assert cache.get("t1", _spec("channel")) is None
    assert cache.get("t1", _spec("category")).rows[0]["revenue"] == 11


def test_stats(clock):
    cache = ReportCache(ttl=60, clock=clock)
    cache.put("t1", _spec(), _result())
    cache.get("t1", _spec())           # hit
    cache.get("t1", _spec("channel"))  # miss
    stats = cache.stats()
    assert stats["size"] == 1
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["hit_rate"] == 0.5


def test_cleanup_expired(clock):
    cache = ReportCache(ttl=10, clock=clock)
    cache.put("t1", _spec("category"), _result())
    clock.now += 5
    cache.put("t1", _spec("channel"), _result())
    clock.now += 6
    assert cache.cleanup_expired() == 1
    assert len(cache) == 1
