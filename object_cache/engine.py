"""
Object cache engine with a durable store and an in-process mirror.

The engine answers get/set/add/replace/delete/incr/decr/flush/expire calls for
a (key, group) pair. Each instance keeps three in-memory structures for its
lifetime, which is conventionally one request:

- the mirror: group -> {scoped key: deserialized value}, filled on the first
  confirmed existence of a key and on every write
- the negative memo: group -> {scoped keys known to be absent from the store}
- hit and miss counters per group

Every operation first scopes the key for the current tenant, then runs the
existence check, which hits the store at most once per (group, key) for the
lifetime of the instance.

Instances are not thread safe; one instance is owned by one unit of work.
Instances share only the durable store and are not kept coherent with each
other.
"""

import copy
import logging
import math
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, Optional, Set, Tuple, Union

from django.utils import timezone
from django.utils.timesince import timeuntil

from object_cache.namespace import CacheKey, normalize_group, scope, tenant_prefix
from object_cache.serialization import maybe_serialize, maybe_unserialize, payload_size, safe_size
from object_cache.store import CacheStore

logger = logging.getLogger(__name__)

# Schema version of the cache table expected by this engine.
SCHEMA_VERSION = 1

# Label stored for rows that never expire.
NO_EXPIRY_LABEL = "-"

_IMMUTABLE_TYPES = (str, bytes, int, float, complex, bool, type(None))


class _NotFound:
    """Sentinel returned by :meth:`ObjectCache.get` for absent keys."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return "NOT_FOUND"

    def __reduce__(self):
        return (_NotFound, ())


NOT_FOUND = _NotFound()


def _is_valid_key(key: Any) -> bool:
    return isinstance(key, (str, int)) and not isinstance(key, bool)


def _as_number(value: Any) -> Union[int, float]:
    """
    Interpret a cached value as a number, treating anything non-numeric as 0.

    Only finite decimal notation counts: "nan", "inf", overflowing exponents
    and underscore digit separators are non-numeric.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else 0
    if isinstance(value, str):
        text = value.strip()
        if "_" in text:
            return 0
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return 0
        return number if math.isfinite(number) else 0
    return 0


def _as_groups(groups: Union[str, Iterable[str]]) -> Set[str]:
    if isinstance(groups, str):
        return {groups}
    return set(groups)


class ObjectCache:
    """
    Key/group addressed cache over a durable store.

    The engine starts uninitialized. :meth:`attempt_ready` moves it to ready
    once the store confirms its schema, after which expired rows are swept.
    Until then writes are silent no-ops and reads report nothing found.

    Expected outcomes (not found, already exists, not ready, invalid key type)
    are return values. Only store failures propagate, as
    :class:`object_cache.exceptions.StoreUnavailable`.

    Example Usage:
        >>> cache = ObjectCache(DatabaseCacheStore())
        >>> cache.attempt_ready()
        True
        >>> cache.set("color", "blue", "theme")
        True
        >>> cache.get("color", "theme")
        'blue'
        >>> cache.stats()["cache_hits"]
        1
    """

    def __init__(
        self,
        store: CacheStore,
        multi_tenant: bool = False,
        tenant_id: int = 1,
        clock: Optional[Callable[[], datetime]] = None,
        suspend_additions: Optional[Callable[[], bool]] = None,
    ):
        """
        Initialize an uninitialized cache instance.

        Args:
            store: Durable store shared with other instances; never closed here
            multi_tenant: Whether keys of non-global groups are tenant prefixed
            tenant_id: Initially active tenant
            clock: Time source for TTL and expiry arithmetic (default: timezone.now)
            suspend_additions: Policy callable; when it returns True, add() refuses
        """
        self._store = store
        self._multi_tenant = multi_tenant
        self._clock = clock or timezone.now
        self._suspend_additions = suspend_additions or (lambda: False)

        self._global_groups: Set[str] = set()
        self._non_persistent_groups: Set[str] = set()
        self._ready = False
        self._tenant_prefix = ""

        self._reset_state()
        self.switch_tenant(tenant_id)

    def __repr__(self):
        state = "ready" if self._ready else "uninitialized"
        return f"<ObjectCache {state} tenant_prefix={self._tenant_prefix!r}>"

    def _reset_state(self) -> None:
        self._start = self._clock()
        self._cache: Dict[str, Dict[str, Any]] = {}
        self._not_cached: Dict[str, Set[str]] = {}
        self._hits: Dict[str, int] = defaultdict(int)
        self._misses: Dict[str, int] = defaultdict(int)

    # Accessors

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def start(self) -> datetime:
        """Time the instance was (re)initialized; expiry is measured against it."""
        return self._start

    @property
    def multi_tenant(self) -> bool:
        return self._multi_tenant

    @property
    def tenant_prefix(self) -> str:
        return self._tenant_prefix

    @property
    def hits(self) -> Dict[str, int]:
        return dict(self._hits)

    @property
    def misses(self) -> Dict[str, int]:
        return dict(self._misses)

    @property
    def global_groups(self) -> frozenset:
        return frozenset(self._global_groups)

    @property
    def non_persistent_groups(self) -> frozenset:
        return frozenset(self._non_persistent_groups)

    # Lifecycle

    def attempt_ready(self) -> bool:
        """
        Try to move the instance from uninitialized to ready.

        Idempotent. Asks the store to confirm (or provision) its schema. When
        the store defers, the instance stays uninitialized and the caller is
        expected to try again once the host framework is further along.

        Returns:
            True if the instance is ready

        Raises:
            StoreUnavailable: If the store rejects a call
        """
        if self._ready:
            return True

        if not self._store.ensure_schema(SCHEMA_VERSION):
            logger.debug("Object cache setup deferred - operation=attempt_ready")
            return False

        self._ready = True
        logger.debug(f"Object cache ready - operation=attempt_ready, start={self._start.isoformat()}")

        self.expire()
        return True

    def close(self) -> bool:
        """Release the instance. The store is shared, so nothing is closed."""
        return True

    def switch_tenant(self, tenant_id: int) -> None:
        """
        Make another tenant current.

        Only the prefix used for new operations changes; the mirror, memo and
        counters are kept.

        Args:
            tenant_id: Identifier of the tenant to switch to
        """
        self._tenant_prefix = tenant_prefix(tenant_id, self._multi_tenant)

    def add_global_groups(self, groups: Union[str, Iterable[str]]) -> None:
        """Declare groups whose keys are shared by every tenant."""
        self._global_groups.update(_as_groups(groups))

    def add_non_persistent_groups(self, groups: Union[str, Iterable[str]]) -> None:
        """Declare groups whose values live in the mirror only."""
        self._non_persistent_groups.update(_as_groups(groups))

    # Internals

    def _prefixed(self, key: Any, group: str) -> Any:
        """Scope a key as text; 5 and "5" address the same row, so they share one entry."""
        if not _is_valid_key(key):
            return key
        return str(
            scope(
                key,
                group,
                self._tenant_prefix,
                is_global_group=group in self._global_groups,
                multi_tenant=self._multi_tenant,
            )
        )

    def _exists(self, key: Any, group: str) -> bool:
        """
        Answer whether a scoped key is present, touching the store at most once.

        Order of checks: readiness, key type, mirror, negative memo, store.
        A store miss is remembered in the negative memo, a store hit is
        deserialized into the mirror.
        """
        if not self._ready:
            return False

        if not _is_valid_key(key):
            return False

        if key in self._cache.get(group, {}):
            return True

        if key in self._not_cached.get(group, ()):
            return False

        row = self._store.select_one(group, key)

        if row is None:
            self._not_cached.setdefault(group, set()).add(key)
            logger.debug(f"Cache lookup - operation=exists, group={group}, key={key}, result=absent")
            return False

        self._cache.setdefault(group, {})[key] = maybe_unserialize(row.data)
        logger.debug(f"Cache lookup - operation=exists, group={group}, key={key}, result=present")
        return True

    def _forget_absence(self, key: CacheKey, group: str) -> None:
        self._not_cached.get(group, set()).discard(key)

    # Reads

    def get_with_found(self, key: CacheKey, group: str = "default") -> Tuple[Any, bool]:
        """
        Retrieve a value and whether it was found.

        Args:
            key: Raw cache key
            group: Cache group (empty means "default")

        Returns:
            ``(value, True)`` on a hit, ``(NOT_FOUND, False)`` otherwise.
            Mutable values are deep copies of the mirrored value.
        """
        if not self._ready:
            return NOT_FOUND, False

        group = normalize_group(group)
        scoped = self._prefixed(key, group)

        if self._exists(scoped, group):
            self._hits[group] += 1
            value = self._cache[group][scoped]

            if not isinstance(value, _IMMUTABLE_TYPES):
                value = copy.deepcopy(value)

            return value, True

        self._misses[group] += 1
        return NOT_FOUND, False

    def get(self, key: CacheKey, group: str = "default") -> Any:
        """
        Retrieve a value.

        Args:
            key: Raw cache key
            group: Cache group (empty means "default")

        Returns:
            The cached value, or ``NOT_FOUND``

        Example:
            >>> cache.get("color", "theme")
            'blue'
            >>> cache.get("missing", "theme") is NOT_FOUND
            True
        """
        value, _ = self.get_with_found(key, group)
        return value

    def get_multiple(self, keys: Iterable[CacheKey], group: str = "default") -> Dict[CacheKey, Any]:
        """Retrieve several keys of one group; equivalent to calling get() per key."""
        return {key: self.get(key, group) for key in keys}

    # Writes

    def set(self, key: CacheKey, data: Any, group: str = "default", expire: int = 0) -> bool:
        """
        Store a value.

        An existing entry is replaced (delete then insert). Values of
        non-persistent groups are only mirrored. The mirror receives the value
        as it would be loaded back from the store.

        Args:
            key: Raw cache key; keys that are neither str nor int are ignored
            data: Value to cache
            group: Cache group (empty means "default")
            expire: Time to live in seconds; 0 or less means never

        Returns:
            Always True

        Raises:
            ValueError: If data cannot be serialized
            StoreUnavailable: If the store rejects a call
        """
        if not self._ready:
            return True

        if not _is_valid_key(key):
            return True

        group = normalize_group(group)
        scoped = self._prefixed(key, group)

        # Force a fresh existence check; another process may have inserted the key.
        self._forget_absence(scoped, group)

        if self._exists(scoped, group):
            self.replace(key, data, group, expire)
            return True

        if group in self._non_persistent_groups:
            self._forget_absence(scoped, group)
            self._cache.setdefault(group, {})[scoped] = copy.deepcopy(data)
            return True

        payload = maybe_serialize(data)
        expire = int(expire or 0)

        if expire > 0:
            now = self._clock()
            expires_at = now + timedelta(seconds=expire)
            ttl_label = timeuntil(expires_at, now)
        else:
            expires_at = None
            ttl_label = NO_EXPIRY_LABEL

        self._store.insert(group, scoped, payload, expires_at, payload_size(payload), ttl_label)

        self._forget_absence(scoped, group)
        self._cache.setdefault(group, {})[scoped] = maybe_unserialize(payload)

        logger.debug(
            f"Cache write - operation=set, group={group}, key={scoped}, "
            f"size={payload_size(payload)}, ttl={ttl_label}"
        )
        return True

    def add(self, key: CacheKey, data: Any, group: str = "default", expire: int = 0) -> bool:
        """
        Store a value only if the key does not exist yet.

        Returns:
            True if stored; False if the key exists, additions are suspended
            or the instance is not ready
        """
        if not self._ready:
            return False

        if self._suspend_additions():
            return False

        group = normalize_group(group)
        scoped = self._prefixed(key, group)

        if self._exists(scoped, group):
            return False

        return self.set(key, data, group, expire)

    def replace(self, key: CacheKey, data: Any, group: str = "default", expire: int = 0) -> bool:
        """
        Overwrite a value only if the key already exists.

        Returns:
            True if replaced, False if the key does not exist
        """
        group = normalize_group(group)
        scoped = self._prefixed(key, group)

        if not self._exists(scoped, group):
            return False

        self.delete(key, group)
        return self.set(key, data, group, expire)

    def delete(self, key: CacheKey, group: str = "default") -> bool:
        """
        Remove a value.

        The negative memo is left alone; the row is gone from the store, so the
        next existence check that reaches the store records the absence.

        Returns:
            True if removed, False if the key does not exist
        """
        group = normalize_group(group)
        scoped = self._prefixed(key, group)

        if not self._exists(scoped, group):
            return False

        if group not in self._non_persistent_groups:
            self._store.delete_row(group, scoped)
        self._cache[group].pop(scoped, None)

        logger.debug(f"Cache write - operation=delete, group={group}, key={scoped}")
        return True

    def _offset(self, key: CacheKey, offset: int, group: str) -> Union[int, float, bool]:
        group = normalize_group(group)
        scoped = self._prefixed(key, group)

        if not self._exists(scoped, group):
            return False

        value = _as_number(self.get(key, group)) + int(offset)
        if value < 0:
            value = 0

        # Counters are stored raw, not through maybe_serialize().
        if group not in self._non_persistent_groups:
            self._store.update_data(group, scoped, str(value))
        self._cache[group][scoped] = value

        logger.debug(f"Cache write - operation=offset, group={group}, key={scoped}, value={value}")
        return value

    def incr(self, key: CacheKey, offset: int = 1, group: str = "default") -> Union[int, float, bool]:
        """
        Increment a numeric value.

        Non-numeric current values count as 0 and the result never drops
        below 0.

        Returns:
            The new value, or False if the key does not exist
        """
        return self._offset(key, int(offset), group)

    def decr(self, key: CacheKey, offset: int = 1, group: str = "default") -> Union[int, float, bool]:
        """
        Decrement a numeric value, clamping at 0.

        Returns:
            The new value, or False if the key does not exist

        Example:
            >>> cache.set("stock", 5)
            True
            >>> cache.decr("stock", 10)
            0
        """
        return self._offset(key, -int(offset), group)

    # Maintenance

    def flush(self) -> bool:
        """
        Delete every row of the store and reinitialize the instance.

        Mirror, negative memo and counters are emptied and the start time is
        renewed. Group declarations and the current tenant are kept.

        Returns:
            Always True
        """
        if not self._ready:
            return True

        self._store.truncate_all()
        self._reset_state()
        self._store.ensure_schema(SCHEMA_VERSION)
        self.expire()

        logger.info("Object cache flushed - operation=flush")
        return True

    def expire(self) -> None:
        """
        Delete rows of the store that expired before this instance started.

        Mirrored values are not touched and stay readable for the rest of the
        instance's lifetime.
        """
        if not self._ready:
            return

        self._store.delete_all_expired(self._start)

    def stats(self) -> Dict[str, Any]:
        """
        Summarize hits and misses.

        Never raises; values that cannot be sized count as zero bytes.

        Returns:
            Dictionary with:
            - cache_hits: hits across all groups
            - cache_misses: misses across all groups
            - groups: {group: {"hits", "misses", "size_bytes"}} sorted by name

        Example:
            >>> cache.stats()["groups"]["theme"]["hits"]
            1
        """
        groups = sorted(set(self._cache) | set(self._hits) | set(self._misses))

        return {
            "cache_hits": sum(self._hits.values()),
            "cache_misses": sum(self._misses.values()),
            "groups": {
                group: {
                    "hits": self._hits.get(group, 0),
                    "misses": self._misses.get(group, 0),
                    "size_bytes": safe_size(self._cache.get(group, {})),
                }
                for group in groups
            },
        }
