"""
Module-level access to the current object cache instance.

The middleware builds one :class:`ObjectCache` per request and installs it as
the current instance of the handling thread. The ``cache_*`` functions below
forward to that instance so code far from the request can use the cache
without passing it around.

Example Usage:
    >>> from object_cache.shortcuts import cache_get, cache_set
    >>> cache_set("color", "blue", "theme")
    True
    >>> cache_get("color", "theme")
    'blue'
"""

import logging
import threading
from typing import Any, Dict, Iterable, Optional, Union

from object_cache.conf import get_config
from object_cache.engine import ObjectCache
from object_cache.store import DatabaseCacheStore

logger = logging.getLogger(__name__)

_thread_local = threading.local()

# Process-wide override of the SUSPEND_ADDITIONS setting, see suspend_cache_addition().
_suspend_addition: Optional[bool] = None


def suspend_cache_addition(suspend: Optional[bool] = None) -> bool:
    """
    Temporarily suspend cache additions, e.g. during bulk imports.

    Args:
        suspend: True to suspend, False to resume, None to only query

    Returns:
        Whether additions are currently suspended
    """
    global _suspend_addition

    if suspend is not None:
        _suspend_addition = bool(suspend)

    if _suspend_addition is not None:
        return _suspend_addition
    return get_config().suspend_additions


def build_object_cache(tenant_id: Optional[int] = None) -> ObjectCache:
    """
    Construct an uninitialized engine from the configured options.

    Args:
        tenant_id: Active tenant; defaults to the configured default tenant

    Returns:
        A new ObjectCache with the configured global and non-persistent groups
    """
    config = get_config()

    if tenant_id is None:
        tenant_id = config.default_tenant_id

    object_cache = ObjectCache(
        DatabaseCacheStore(using=config.database),
        multi_tenant=config.multi_tenant,
        tenant_id=tenant_id,
        suspend_additions=suspend_cache_addition,
    )
    object_cache.add_global_groups(config.global_groups)
    object_cache.add_non_persistent_groups(config.non_persistent_groups)
    return object_cache


def init_cache(tenant_id: Optional[int] = None) -> ObjectCache:
    """
    Build a new engine, make it current for this thread and attempt setup.

    Setup may be deferred (see ObjectCache.attempt_ready); the app config
    re-attempts it after migrations.

    Args:
        tenant_id: Active tenant; defaults to the configured default tenant

    Returns:
        The new current ObjectCache
    """
    object_cache = build_object_cache(tenant_id)
    _thread_local.object_cache = object_cache
    try:
        object_cache.attempt_ready()
    except Exception:
        release_object_cache()
        raise

    logger.debug(
        f"Object cache initialized - operation=init, tenant_prefix={object_cache.tenant_prefix}, "
        f"ready={object_cache.is_ready}"
    )
    return object_cache


def get_object_cache() -> ObjectCache:
    """Return the current instance, initializing one if the thread has none."""
    object_cache = getattr(_thread_local, "object_cache", None)
    if object_cache is None:
        object_cache = init_cache()
    return object_cache


def peek_object_cache() -> Optional[ObjectCache]:
    """Return the current instance without creating one."""
    return getattr(_thread_local, "object_cache", None)


def release_object_cache() -> None:
    """Drop the current instance of this thread."""
    if hasattr(_thread_local, "object_cache"):
        delattr(_thread_local, "object_cache")


def cache_add(key, data, group: str = "", expire: int = 0) -> bool:
    return get_object_cache().add(key, data, group, int(expire))


def cache_get(key, group: str = "") -> Any:
    return get_object_cache().get(key, group)


def cache_get_multiple(keys: Iterable, group: str = "") -> Dict[Any, Any]:
    return get_object_cache().get_multiple(keys, group)


def cache_set(key, data, group: str = "", expire: int = 0) -> bool:
    return get_object_cache().set(key, data, group, int(expire))


def cache_replace(key, data, group: str = "", expire: int = 0) -> bool:
    return get_object_cache().replace(key, data, group, int(expire))


def cache_delete(key, group: str = "") -> bool:
    return get_object_cache().delete(key, group)


def cache_incr(key, offset: int = 1, group: str = ""):
    return get_object_cache().incr(key, offset, group)


def cache_decr(key, offset: int = 1, group: str = ""):
    return get_object_cache().decr(key, offset, group)


def cache_flush() -> bool:
    return get_object_cache().flush()


def cache_close() -> bool:
    return get_object_cache().close()


def cache_switch_tenant(tenant_id: int) -> None:
    get_object_cache().switch_tenant(tenant_id)


def cache_add_global_groups(groups: Union[str, Iterable[str]]) -> None:
    get_object_cache().add_global_groups(groups)


def cache_add_non_persistent_groups(groups: Union[str, Iterable[str]]) -> None:
    get_object_cache().add_non_persistent_groups(groups)
