"""Tests for ordered batch reconciliation against the cache store."""

import pytest

from services.batch_loader import BatchLoader
from services.cache_store import CacheStore
from services.entity_keys import EntityKeyCodec
from tests.conftest import Admin


@pytest.fixture
def cache():
    return CacheStore()


@pytest.fixture
def loader(cache, store, types):
    return BatchLoader(cache, store, EntityKeyCodec(types))


@pytest.fixture
def users(store):
    return {i: store.insert("User", id=i, name=f"user-{i}") for i in (1, 2, 3, 5, 7)}


def ids_of(records):
    return [r.id for r in records]


class TestOrdering:
    def test_cold_cache_keeps_input_order(self, loader, users):
        assert ids_of(loader.retrieve([3, 1, 7, 2], "User")) == [3, 1, 7, 2]

    def test_mixed_hits_and_misses_keep_input_order(self, loader, cache, users):
        cache.put("User::7", users[7])
        cache.put("User::1", users[1])
        assert ids_of(loader.retrieve([2, 7, 5, 1, 3], "User")) == [2, 7, 5, 1, 3]

    def test_deleted_rows_leave_gaps_out(self, loader, store, users):
        store.delete("User", 2)
        assert ids_of(loader.retrieve([1, 2, 3], "User")) == [1, 3]

    def test_empty_input_touches_nothing(self, loader, cache, store):
        assert loader.retrieve([], "User") == []
        assert store.round_trips == 0
        assert (cache.hits, cache.misses) == (0, 0)


class TestRoundTrips:
    def test_all_cached_needs_no_query(self, loader, store, users):
        loader.retrieve([1, 2, 3], "User")
        store.calls.clear()

        loader.retrieve([3, 2, 1], "User")
        assert store.round_trips == 0

    def test_partial_hit_queries_only_missing(self, loader, cache, store, users):
        cache.put("User::1", users[1])
        loader.retrieve([1, 2, 3], "User")
        assert store.calls == [("find_by_ids", "User", [2, 3])]
        assert (cache.hits, cache.misses) == (1, 2)

    def test_duplicates_queried_once(self, loader, cache, store, users):
        records = loader.retrieve([5, 5, 7], "User")
        assert store.calls == [("find_by_ids", "User", [5, 7])]
        assert ids_of(records) == [5, 5, 7]
        assert records[0] is records[1]
        assert cache.misses == 2


class TestWriteThrough:
    def test_fetched_rows_become_hits(self, loader, cache, store, users):
        loader.retrieve([1, 2], "User")
        cache.reset_counters()
        store.calls.clear()

        loader.retrieve([2, 1], "User")
        assert store.round_trips == 0
        assert (cache.hits, cache.misses) == (2, 0)

    def test_single_get_hits_after_batch(self, loader, cache, store, users):
        loader.retrieve([5], "User")
        cache.reset_counters()
        assert cache.get("User::5", lambda: pytest.fail("should be cached")).id == 5
        assert cache.hits == 1

    def test_failed_query_writes_nothing(self, loader, cache, store, users):
        store.fail_with = ConnectionError("store down")
        with pytest.raises(ConnectionError):
            loader.retrieve([1, 2], "User")
        assert cache.keys() == set()

    def test_subclass_rows_cached_under_base_key(self, loader, cache, store):
        admin = store.insert("Admin", id=11, name="root")
        [record] = loader.retrieve([admin.id], "Admin")
        assert isinstance(record, Admin)
        assert cache.keys() == {"User::11"}

        store.calls.clear()
        assert ids_of(loader.retrieve([11], "User")) == [11]
        assert store.round_trips == 0
