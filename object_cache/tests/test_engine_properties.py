"""Property-based tests for the ObjectCache engine.

This module tests that the engine keeps its contract for arbitrary keys,
groups and values:
- set then get returns an equal value without re-reading the store
- add never overwrites an existing value
- counters never go negative
- tenant scoping follows the prefix rules
"""

from unittest.mock import patch

from hypothesis import given, settings
from hypothesis import strategies as st
from hypothesis.extra.django import TestCase as HypothesisTestCase

from object_cache.engine import NOT_FOUND, ObjectCache
from object_cache.models import CacheEntry
from object_cache.namespace import scope
from object_cache.store import DatabaseCacheStore

safe_text = st.text(
    alphabet=st.characters(blacklist_categories=("Cs", "Cc")),
    min_size=1,
    max_size=40,
)

key_strategy = safe_text | st.integers(min_value=0, max_value=10**9)
group_strategy = safe_text

value_strategy = st.recursive(
    st.none() | st.booleans() | st.integers() | st.floats(allow_nan=False) | safe_text,
    lambda children: st.lists(children, max_size=4) | st.dictionaries(safe_text, children, max_size=4),
    max_leaves=12,
)

ttl_strategy = st.integers(min_value=0, max_value=86400)


class TestSetGetRoundTrip(HypothesisTestCase):
    """Property: set then get returns the stored value from the mirror."""

    @given(key=key_strategy, group=group_strategy, value=value_strategy, ttl=ttl_strategy)
    @settings(max_examples=50, deadline=None)
    def test_round_trip_without_second_store_read(self, key, group, value, ttl):
        store = DatabaseCacheStore()
        object_cache = ObjectCache(store)
        object_cache.attempt_ready()

        with patch.object(store, "select_one", wraps=store.select_one) as select_spy:
            self.assertTrue(object_cache.set(key, value, group, ttl))
            reads_after_set = select_spy.call_count

            self.assertEqual(object_cache.get(key, group), value)
            self.assertEqual(object_cache.get(key, group), value)

        self.assertEqual(select_spy.call_count, reads_after_set)
        self.assertEqual(object_cache.hits[group], 2)

    @given(key=key_strategy, group=group_strategy, value=value_strategy)
    @settings(max_examples=30, deadline=None)
    def test_fresh_instance_loads_equal_value(self, key, group, value):
        store = DatabaseCacheStore()
        writer = ObjectCache(store)
        writer.attempt_ready()
        writer.set(key, value, group)

        reader = ObjectCache(store)
        reader.attempt_ready()

        self.assertEqual(reader.get_with_found(key, group), (value, True))


class TestAddProperties(HypothesisTestCase):
    """Property: add only ever stores into absent keys."""

    @given(key=key_strategy, first=value_strategy, second=value_strategy)
    @settings(max_examples=30, deadline=None)
    def test_add_never_overwrites(self, key, first, second):
        object_cache = ObjectCache(DatabaseCacheStore())
        object_cache.attempt_ready()

        self.assertTrue(object_cache.add(key, first, "props"))
        self.assertFalse(object_cache.add(key, second, "props"))
        self.assertEqual(object_cache.get(key, "props"), first)
        self.assertEqual(CacheEntry.objects.filter(cache_group="props").count(), 1)


class TestCounterProperties(HypothesisTestCase):
    """Property: incr/decr results are clamped at zero."""

    @given(
        current=st.integers(min_value=0, max_value=10**6),
        offset=st.integers(min_value=0, max_value=2 * 10**6),
    )
    @settings(max_examples=50, deadline=None)
    def test_decr_clamps_at_zero(self, current, offset):
        object_cache = ObjectCache(DatabaseCacheStore())
        object_cache.attempt_ready()
        object_cache.set("counter", current)

        result = object_cache.decr("counter", offset)

        self.assertEqual(result, max(current - offset, 0))
        self.assertGreaterEqual(result, 0)
        self.assertEqual(object_cache.get("counter"), result)

    @given(
        current=st.integers(min_value=0, max_value=10**6),
        offset=st.integers(min_value=-(10**6), max_value=10**6),
    )
    @settings(max_examples=50, deadline=None)
    def test_incr_never_negative(self, current, offset):
        object_cache = ObjectCache(DatabaseCacheStore())
        object_cache.attempt_ready()
        object_cache.set("counter", current)

        self.assertEqual(object_cache.incr("counter", offset), max(current + offset, 0))

    @given(key=key_strategy)
    @settings(max_examples=20, deadline=None)
    def test_counters_on_absent_keys_fail(self, key):
        object_cache = ObjectCache(DatabaseCacheStore())
        object_cache.attempt_ready()

        self.assertIs(object_cache.incr(key), False)
        self.assertIs(object_cache.decr(key), False)
        self.assertIs(object_cache.get(key), NOT_FOUND)


class TestScopeProperties(HypothesisTestCase):
    """Property: scoped keys follow the tenant prefix rules."""

    @given(key=safe_text, tenant_id=st.integers(min_value=1, max_value=10**6))
    @settings(max_examples=50, deadline=None)
    def test_scope_prefixes_only_non_global_groups(self, key, tenant_id):
        prefix = f"{tenant_id}:"

        self.assertEqual(scope(key, "default", prefix, is_global_group=False), prefix + key)
        self.assertEqual(scope(key, "users", prefix, is_global_group=True), key)
