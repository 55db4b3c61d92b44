"""DB-backed search cache."""
from unittest.mock import patch

from tablewatch.models.search_cache import SearchCache
from tablewatch.services import search_cache
from tablewatch.services.providers.types import QueryIntent
from tests.fakes import make_restaurant, utc


def test_miss_then_hit(db, intent):
    assert search_cache.get_cached_results(db, intent) is None
    option = make_restaurant("Kumiko", "OpenTable, Resy", intent.date_time, rating=4.7, vibe_tags=["cozy"])
    search_cache.set_cached_results(db, intent, [option], ttl_seconds=600)
    cached = search_cache.get_cached_results(db, intent)
    assert cached == [option]


def test_expired_entry_is_a_miss(db, intent):
    search_cache.set_cached_results(db, intent, [make_restaurant("A", "X", intent.date_time)], ttl_seconds=60)
    later = utc(2099, 1, 1)
    with patch.object(search_cache, "utcnow", return_value=later):
        assert search_cache.get_cached_results(db, intent) is None
        assert search_cache.prune_expired(db) == 1
    assert db.query(SearchCache).count() == 0


def test_overwrite_refreshes_payload(db, intent):
    search_cache.set_cached_results(db, intent, [make_restaurant("A", "X", intent.date_time)], ttl_seconds=60)
    search_cache.set_cached_results(db, intent, [], ttl_seconds=60)
    assert search_cache.get_cached_results(db, intent) == []
    assert db.query(SearchCache).count() == 1


def test_key_distinguishes_party_size_and_ignores_case(intent):
    bigger = QueryIntent(party_size=4, date_time=intent.date_time, location=intent.location, cuisine=intent.cuisine)
    shouting = QueryIntent(
        party_size=2, date_time=intent.date_time, location="LINCOLN PARK", cuisine="SUSHI"
    )
    assert search_cache.cache_key(bigger) != search_cache.cache_key(intent)
    assert search_cache.cache_key(shouting) == search_cache.cache_key(intent)


def test_read_error_is_a_miss(intent):
    class BrokenSession:
        def query(self, *a, **kw):
            raise RuntimeError("db down")

        def rollback(self):
            pass

    assert search_cache.get_cached_results(BrokenSession(), intent) is None


def test_write_error_is_swallowed(intent):
    class BrokenSession:
        def query(self, *a, **kw):
            raise RuntimeError("db down")

        def rollback(self):
            self.rolled_back = True

    session = BrokenSession()
    search_cache.set_cached_results(session, intent, [], ttl_seconds=60)
    assert session.rolled_back
