"""
Configuration for the object cache.

All options live in a single ``OBJECT_CACHE`` dictionary in Django settings.
Every key is optional:

    OBJECT_CACHE = {
        "MULTI_TENANT": False,          # prefix keys of non-global groups per tenant
        "DEFAULT_TENANT_ID": 1,         # tenant used when no resolver is configured
        "TENANT_RESOLVER": None,        # dotted path to callable(request) -> int
        "GLOBAL_GROUPS": [],            # groups shared by every tenant
        "NON_PERSISTENT_GROUPS": [],    # groups kept in memory only
        "SUSPEND_ADDITIONS": False,     # make add() refuse new entries
        "DATABASE": "default",          # database alias holding the cache table
    }
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from django.conf import settings
from django.utils.module_loading import import_string

DEFAULTS: Dict[str, Any] = {
    "MULTI_TENANT": False,
    "DEFAULT_TENANT_ID": 1,
    "TENANT_RESOLVER": None,
    "GLOBAL_GROUPS": (),
    "NON_PERSISTENT_GROUPS": (),
    "SUSPEND_ADDITIONS": False,
    "DATABASE": "default",
}


@dataclass(frozen=True)
class ObjectCacheSettings:
    """Resolved object cache options."""

    multi_tenant: bool = False
    default_tenant_id: int = 1
    tenant_resolver: Optional[str] = None
    global_groups: Tuple[str, ...] = field(default_factory=tuple)
    non_persistent_groups: Tuple[str, ...] = field(default_factory=tuple)
    suspend_additions: bool = False
    database: str = "default"

    def get_tenant_resolver(self) -> Optional[Callable[[Any], int]]:
        """
        Load the configured tenant resolver.

        Returns:
            The resolver callable, or None when no resolver is configured.

        Raises:
            ImportError: If the dotted path cannot be imported.
        """
        if not self.tenant_resolver:
            return None
        return import_string(self.tenant_resolver)


def _as_tuple(value) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(value)


def get_config() -> ObjectCacheSettings:
    """
    Build the object cache configuration from Django settings.

    Settings are read on every call so ``override_settings`` in tests takes
    effect without reloading modules.

    Returns:
        ObjectCacheSettings with defaults applied for missing keys.
    """
    options = dict(DEFAULTS)
    options.update(getattr(settings, "OBJECT_CACHE", None) or {})

    return ObjectCacheSettings(
        multi_tenant=bool(options["MULTI_TENANT"]),
        default_tenant_id=int(options["DEFAULT_TENANT_ID"]),
        tenant_resolver=options["TENANT_RESOLVER"],
        global_groups=_as_tuple(options["GLOBAL_GROUPS"]),
        non_persistent_groups=_as_tuple(options["NON_PERSISTENT_GROUPS"]),
        suspend_additions=bool(options["SUSPEND_ADDITIONS"]),
        database=options["DATABASE"],
    )
