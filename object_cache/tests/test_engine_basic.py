"""
Basic unit tests for the ObjectCache engine against the database store.

These tests verify the core functionality of the engine including:
- Read-through and write-through between mirror and table
- The existence check and its store round trips
- add/replace/delete/incr/decr semantics
- Expiry, flushing and statistics
- Multi-tenant key scoping and non-persistent groups
"""

from datetime import timedelta
from unittest.mock import patch

from django.test import TestCase
from django.utils import timezone

from object_cache.engine import NOT_FOUND, ObjectCache
from object_cache.models import CacheEntry
from object_cache.store import DatabaseCacheStore


class ObjectCacheTestMixin:
    """Builds ready engines over the test database."""

    def setUp(self):
        """Set up test fixtures."""
        self.store = DatabaseCacheStore()
        self.now = timezone.now()
        self.cache = self.make_cache()

    def make_cache(self, **kwargs):
        kwargs.setdefault("clock", lambda: self.now)
        object_cache = ObjectCache(self.store, **kwargs)
        self.assertTrue(object_cache.attempt_ready())
        return object_cache


class ObjectCacheReadWriteTests(ObjectCacheTestMixin, TestCase):
    """Read-through and write-through behavior."""

    def test_set_then_get_round_trip(self):
        self.assertTrue(self.cache.set("color", "blue", "theme"))
        self.assertEqual(self.cache.get("color", "theme"), "blue")

    def test_set_writes_row(self):
        self.cache.set("color", "blue", "theme")

        entry = CacheEntry.objects.get(cache_group="theme", cache_key="color")
        self.assertEqual(entry.data, "blue")
        self.assertEqual(entry.size, 4)
        self.assertEqual(entry.ttl, "-")
        self.assertIsNone(entry.expires_at)

    def test_structured_value_round_trip(self):
        value = {"palette": ["red", "green"], "depth": 3}
        self.cache.set("settings", value, "theme")

        fresh = self.make_cache()
        self.assertEqual(fresh.get("settings", "theme"), value)

    def test_second_get_is_served_from_mirror(self):
        self.cache.set("color", "blue", "theme")

        with patch.object(self.store, "select_one", wraps=self.store.select_one) as select_spy:
            fresh = self.make_cache()
            self.assertEqual(fresh.get("color", "theme"), "blue")
            self.assertEqual(fresh.get("color", "theme"), "blue")

        self.assertEqual(select_spy.call_count, 1)
        self.assertEqual(fresh.hits["theme"], 2)

    def test_set_then_get_does_not_read_store_again(self):
        with patch.object(self.store, "select_one", wraps=self.store.select_one) as select_spy:
            self.cache.set("color", "blue", "theme")
            self.cache.get("color", "theme")
            self.cache.get("color", "theme")

        # One lookup from the existence check in set(), none from the gets.
        self.assertEqual(select_spy.call_count, 1)

    def test_absent_key_is_looked_up_once(self):
        with patch.object(self.store, "select_one", wraps=self.store.select_one) as select_spy:
            self.assertIs(self.cache.get("missing", "theme"), NOT_FOUND)
            self.assertIs(self.cache.get("missing", "theme"), NOT_FOUND)

        self.assertEqual(select_spy.call_count, 1)
        self.assertEqual(self.cache.misses["theme"], 2)

    def test_get_with_found_reports_found_flag(self):
        self.cache.set("zero", 0)

        self.assertEqual(self.cache.get_with_found("zero"), (0, True))
        self.assertEqual(self.cache.get_with_found("nope"), (NOT_FOUND, False))

    def test_empty_group_means_default(self):
        self.cache.set("k", "v", "")

        self.assertEqual(self.cache.get("k", "default"), "v")
        self.assertTrue(CacheEntry.objects.filter(cache_group="default", cache_key="k").exists())

    def test_get_returns_deep_copy_of_mutable_values(self):
        self.cache.set("cfg", {"items": [1, 2]})

        value = self.cache.get("cfg")
        value["items"].append(3)

        self.assertEqual(self.cache.get("cfg"), {"items": [1, 2]})

    def test_get_multiple(self):
        self.cache.set("a", 1, "nums")
        self.cache.set("b", 2, "nums")

        self.assertEqual(
            self.cache.get_multiple(["a", "b", "c"], "nums"),
            {"a": 1, "b": 2, "c": NOT_FOUND},
        )

    def test_set_existing_key_replaces_row(self):
        self.cache.set("color", "blue", "theme")
        self.cache.set("color", "red", "theme")

        self.assertEqual(self.cache.get("color", "theme"), "red")
        self.assertEqual(CacheEntry.objects.filter(cache_group="theme", cache_key="color").count(), 1)
        self.assertEqual(self.make_cache().get("color", "theme"), "red")

    def test_set_with_ttl_records_expiry(self):
        self.cache.set("token", "abc", "auth", 3600)

        entry = CacheEntry.objects.get(cache_group="auth", cache_key="token")
        self.assertEqual(entry.expires_at, self.now + timedelta(seconds=3600))
        self.assertIn("hour", entry.ttl)

    def test_invalid_key_types_are_ignored(self):
        self.assertTrue(self.cache.set(["a"], "v"))
        self.assertTrue(self.cache.set(1.5, "v"))
        self.assertTrue(self.cache.set(True, "v"))

        self.assertEqual(CacheEntry.objects.count(), 0)
        self.assertIs(self.cache.get(["a"]), NOT_FOUND)

    def test_integer_keys(self):
        self.cache.set(42, "answer", "posts")

        self.assertEqual(self.cache.get(42, "posts"), "answer")
        self.assertTrue(CacheEntry.objects.filter(cache_group="posts", cache_key="42").exists())

    def test_integer_and_numeric_string_keys_share_entry_after_delete(self):
        self.cache.set(5, "v")
        self.assertEqual(self.cache.get("5"), "v")

        self.assertTrue(self.cache.delete(5))

        self.assertIs(self.cache.get("5"), NOT_FOUND)
        self.assertEqual(CacheEntry.objects.count(), 0)

    def test_integer_set_clears_numeric_string_absence(self):
        self.assertIs(self.cache.get("5"), NOT_FOUND)

        self.cache.set(5, "v")

        self.assertEqual(self.cache.get("5"), "v")
        self.assertEqual(self.cache.get(5), "v")

    def test_same_key_in_different_groups(self):
        self.cache.set("k", "one", "first")
        self.cache.set("k", "two", "second")

        self.assertEqual(self.cache.get("k", "first"), "one")
        self.assertEqual(self.cache.get("k", "second"), "two")

    def test_set_clears_negative_memo(self):
        self.assertIs(self.cache.get("k"), NOT_FOUND)

        # Another instance inserts the key meanwhile.
        self.make_cache().set("k", "from-elsewhere")

        with patch.object(self.store, "insert", wraps=self.store.insert) as insert_spy:
            self.cache.set("k", "mine")

        # The fresh existence check saw the row, so set() replaced it.
        self.assertEqual(insert_spy.call_count, 1)
        self.assertEqual(CacheEntry.objects.filter(cache_key="k").count(), 1)
        self.assertEqual(self.cache.get("k"), "mine")


class ObjectCacheOperationTests(ObjectCacheTestMixin, TestCase):
    """add/replace/delete/incr/decr semantics."""

    def test_add_refuses_existing_key(self):
        self.cache.set("k", "v1")

        self.assertFalse(self.cache.add("k", "v2"))
        self.assertEqual(self.cache.get("k"), "v1")

    def test_add_stores_new_key(self):
        self.assertTrue(self.cache.add("k", "v1"))
        self.assertEqual(self.cache.get("k"), "v1")

    def test_add_refused_when_additions_suspended(self):
        object_cache = self.make_cache(suspend_additions=lambda: True)

        self.assertFalse(object_cache.add("k", "v"))
        self.assertEqual(CacheEntry.objects.count(), 0)

    def test_replace_absent_key_does_not_write(self):
        with patch.object(self.store, "insert", wraps=self.store.insert) as insert_spy:
            self.assertFalse(self.cache.replace("k", "v"))

        insert_spy.assert_not_called()
        self.assertEqual(CacheEntry.objects.count(), 0)

    def test_replace_present_key_overwrites(self):
        self.cache.set("k", "old")

        self.assertTrue(self.cache.replace("k", "new"))
        self.assertEqual(self.cache.get("k"), "new")
        self.assertEqual(CacheEntry.objects.get(cache_key="k").data, "new")

    def test_delete_absent_key(self):
        with patch.object(self.store, "delete_row", wraps=self.store.delete_row) as delete_spy:
            self.assertFalse(self.cache.delete("k"))

        delete_spy.assert_not_called()

    def test_delete_present_key(self):
        self.cache.set("k", "v")

        self.assertTrue(self.cache.delete("k"))
        self.assertIs(self.cache.get("k"), NOT_FOUND)
        self.assertFalse(CacheEntry.objects.filter(cache_key="k").exists())

    def test_incr_absent_key(self):
        self.assertIs(self.cache.incr("hits"), False)
        self.assertIs(self.cache.decr("hits"), False)

    def test_incr_and_decr(self):
        self.cache.set("hits", 5)

        self.assertEqual(self.cache.incr("hits"), 6)
        self.assertEqual(self.cache.incr("hits", 4), 10)
        self.assertEqual(self.cache.decr("hits", 3), 7)
        self.assertEqual(self.cache.get("hits"), 7)

    def test_decr_clamps_at_zero(self):
        self.cache.set("stock", 5)

        self.assertEqual(self.cache.decr("stock", 10), 0)
        self.assertEqual(self.cache.incr("stock", -3), 0)

    def test_incr_treats_non_numeric_as_zero(self):
        self.cache.set("label", "abc")

        self.assertEqual(self.cache.incr("label", 3), 3)

    def test_incr_treats_non_finite_and_underscored_text_as_zero(self):
        for text in ("nan", "inf", "-inf", "1e400", "1_000"):
            with self.subTest(text=text):
                self.cache.set("counter", text)

                self.assertEqual(self.cache.incr("counter"), 1)
                self.assertEqual(CacheEntry.objects.get(cache_key="counter").data, "1")

    def test_counters_are_stored_raw(self):
        self.cache.set("hits", 5)
        self.cache.incr("hits")

        self.assertEqual(CacheEntry.objects.get(cache_key="hits").data, "6")

        # A fresh load sees the raw text, which still counts as numeric.
        fresh = self.make_cache()
        self.assertEqual(fresh.get("hits"), "6")
        self.assertEqual(fresh.incr("hits"), 7)


class ObjectCacheMaintenanceTests(ObjectCacheTestMixin, TestCase):
    """Expiry, flushing and statistics."""

    def test_expire_removes_past_rows(self):
        CacheEntry.objects.create(
            cache_group="g", cache_key="old", data="x",
            expires_at=self.now - timedelta(seconds=1),
        )
        CacheEntry.objects.create(
            cache_group="g", cache_key="future", data="y",
            expires_at=self.now + timedelta(hours=1),
        )
        CacheEntry.objects.create(cache_group="g", cache_key="forever", data="z")

        self.cache.expire()

        keys = set(CacheEntry.objects.values_list("cache_key", flat=True))
        self.assertEqual(keys, {"future", "forever"})

    def test_ready_sweeps_expired_rows(self):
        CacheEntry.objects.create(
            cache_group="g", cache_key="old", data="x",
            expires_at=self.now - timedelta(minutes=5),
        )

        self.make_cache()

        self.assertFalse(CacheEntry.objects.filter(cache_key="old").exists())

    def test_mirrored_value_survives_expiry(self):
        clock = {"now": self.now}
        object_cache = self.make_cache(clock=lambda: clock["now"])

        # Written two hours before the instance start with a 10 second TTL.
        clock["now"] = self.now - timedelta(hours=2)
        object_cache.set("k", "v", "g", 10)
        object_cache.expire()

        self.assertFalse(CacheEntry.objects.filter(cache_key="k").exists())
        self.assertEqual(object_cache.get("k", "g"), "v")

        object_cache.delete("k", "g")
        self.assertIs(object_cache.get("k", "g"), NOT_FOUND)

    def test_flush_removes_rows_and_resets_counters(self):
        self.cache.set("a", 1)
        self.cache.set("b", 2, "other")
        self.cache.get("a")
        self.cache.get("missing")

        self.assertTrue(self.cache.flush())

        self.assertEqual(CacheEntry.objects.count(), 0)
        self.assertEqual(self.cache.stats()["cache_hits"], 0)
        self.assertEqual(self.cache.stats()["cache_misses"], 0)
        self.assertIs(self.cache.get("a"), NOT_FOUND)
        self.assertIs(self.cache.get("b", "other"), NOT_FOUND)
        self.assertTrue(self.cache.is_ready)

    def test_flush_keeps_group_configuration(self):
        self.cache.add_global_groups("users")
        self.cache.flush()

        self.assertIn("users", self.cache.global_groups)

    def test_stats_scenario(self):
        self.assertTrue(self.cache.set("color", "blue", "theme"))
        self.assertEqual(self.cache.get_with_found("color", "theme"), ("blue", True))
        self.assertEqual(self.cache.stats()["groups"]["theme"]["hits"], 1)

        self.assertTrue(self.cache.delete("color", "theme"))
        self.assertEqual(self.cache.get_with_found("color", "theme"), (NOT_FOUND, False))

        stats = self.cache.stats()
        self.assertEqual(stats["groups"]["theme"]["misses"], 1)
        self.assertEqual(stats["cache_hits"], 1)
        self.assertEqual(stats["cache_misses"], 1)

    def test_stats_reports_group_sizes(self):
        self.cache.set("k", "v" * 100, "big")
        self.cache.set("k", "v", "small")

        groups = self.cache.stats()["groups"]
        self.assertEqual(list(groups), ["big", "small"])
        self.assertGreater(groups["big"]["size_bytes"], groups["small"]["size_bytes"])

    def test_stats_survives_unpicklable_values(self):
        self.cache.add_non_persistent_groups("runtime")
        self.cache.set("fn", lambda: None, "runtime")

        self.assertEqual(self.cache.stats()["groups"]["runtime"]["size_bytes"], 0)


class ObjectCacheTenancyTests(ObjectCacheTestMixin, TestCase):
    """Multi-tenant scoping and non-persistent groups."""

    def test_keys_are_prefixed_per_tenant(self):
        object_cache = self.make_cache(multi_tenant=True, tenant_id=7)
        object_cache.set("k", "v")

        self.assertTrue(CacheEntry.objects.filter(cache_group="default", cache_key="7:k").exists())
        self.assertEqual(object_cache.tenant_prefix, "7:")

    def test_global_groups_are_not_prefixed(self):
        object_cache = self.make_cache(multi_tenant=True, tenant_id=7)
        object_cache.add_global_groups(["users"])
        object_cache.set("k", "v", "users")

        self.assertTrue(CacheEntry.objects.filter(cache_group="users", cache_key="k").exists())

    def test_tenants_do_not_see_each_other(self):
        tenant_one = self.make_cache(multi_tenant=True, tenant_id=1)
        tenant_one.set("k", "one")

        tenant_two = self.make_cache(multi_tenant=True, tenant_id=2)
        self.assertIs(tenant_two.get("k"), NOT_FOUND)

    def test_switch_tenant_keeps_memory(self):
        object_cache = self.make_cache(multi_tenant=True, tenant_id=1)
        object_cache.set("k", "one")
        object_cache.get("k")

        object_cache.switch_tenant(2)

        self.assertIs(object_cache.get("k"), NOT_FOUND)
        self.assertEqual(object_cache.hits["default"], 1)

        object_cache.switch_tenant(1)
        self.assertEqual(object_cache.get("k"), "one")

    def test_single_tenant_ignores_tenant_id(self):
        object_cache = self.make_cache(multi_tenant=False, tenant_id=9)
        object_cache.set("k", "v")

        self.assertTrue(CacheEntry.objects.filter(cache_key="k").exists())

    def test_non_persistent_group_is_memory_only(self):
        self.cache.add_non_persistent_groups("counts")
        self.cache.set("k", {"n": 1}, "counts")

        self.assertEqual(self.cache.get("k", "counts"), {"n": 1})
        self.assertFalse(CacheEntry.objects.filter(cache_group="counts").exists())
        self.assertEqual(self.cache.incr("n", 1, "counts"), False)

    def test_non_persistent_counters_skip_store(self):
        self.cache.add_non_persistent_groups("counts")
        self.cache.set("views", 3, "counts")

        with patch.object(self.store, "update_data", wraps=self.store.update_data) as update_spy:
            self.assertEqual(self.cache.incr("views", 2, "counts"), 5)
            self.assertEqual(self.cache.decr("views", 1, "counts"), 4)

        update_spy.assert_not_called()
        self.assertEqual(self.cache.get("views", "counts"), 4)
        self.assertFalse(CacheEntry.objects.filter(cache_group="counts").exists())

    def test_non_persistent_delete_and_replace_skip_store(self):
        self.cache.add_non_persistent_groups("counts")
        self.cache.set("views", 3, "counts")

        with patch.object(self.store, "delete_row", wraps=self.store.delete_row) as delete_spy:
            self.assertTrue(self.cache.replace("views", 7, "counts"))
            self.assertEqual(self.cache.get("views", "counts"), 7)
            self.assertTrue(self.cache.delete("views", "counts"))

        delete_spy.assert_not_called()
        self.assertIs(self.cache.get("views", "counts"), NOT_FOUND)
