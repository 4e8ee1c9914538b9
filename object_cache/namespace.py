"""
Key namespacing for multi-tenant deployments.

This module computes the identifier under which a (key, group) pair is stored
and looked up. Keys in ordinary groups are prefixed with the current tenant,
keys in global groups are shared by every tenant.

Key Format:
    Non-global group, multi-tenancy on:  {tenant_id}:{key}
    Global group or single tenant:       {key}

The functions here hold no state; the engine passes in the tenant prefix and
the group's global flag on every call.
"""

from typing import Optional, Union

DEFAULT_GROUP = "default"

# Tenant prefix format: {tenant_id}:
TENANT_PREFIX_FORMAT = "{tenant_id}:"

CacheKey = Union[str, int]


def normalize_group(group: Optional[str]) -> str:
    """
    Return the group name to use for a cache operation.

    Args:
        group: Group name passed by the caller, possibly empty or None

    Returns:
        The group name, or ``"default"`` when the caller passed nothing

    Example:
        >>> normalize_group("")
        'default'
        >>> normalize_group("theme")
        'theme'
    """
    if not group:
        return DEFAULT_GROUP
    return group


def tenant_prefix(tenant_id: int, multi_tenant: bool) -> str:
    """
    Derive the key prefix for a tenant.

    Args:
        tenant_id: Identifier of the active tenant, coerced to int
        multi_tenant: Whether the deployment serves several tenants

    Returns:
        ``"{tenant_id}:"`` under multi-tenancy, an empty string otherwise

    Raises:
        ValueError: If tenant_id cannot be converted to an integer

    Example:
        >>> tenant_prefix(7, True)
        '7:'
        >>> tenant_prefix(7, False)
        ''
    """
    if not multi_tenant:
        return ""
    return TENANT_PREFIX_FORMAT.format(tenant_id=int(tenant_id))


def scope(
    key: CacheKey,
    group: str,
    tenant_prefix: str,
    is_global_group: bool,
    multi_tenant: bool = True,
) -> CacheKey:
    """
    Compute the scoped key for a raw key in a group.

    Args:
        key: Raw cache key supplied by the caller
        group: Normalized group name
        tenant_prefix: Prefix of the active tenant (see :func:`tenant_prefix`)
        is_global_group: Whether the group is shared by every tenant
        multi_tenant: Whether multi-tenancy is enabled

    Returns:
        The key unchanged for global groups or single-tenant deployments,
        otherwise ``tenant_prefix + key``

    Example:
        >>> scope("k", "default", "7:", is_global_group=False)
        '7:k'
        >>> scope("k", "users", "7:", is_global_group=True)
        'k'
    """
    if is_global_group or not multi_tenant or not tenant_prefix:
        return key
    return f"{tenant_prefix}{key}"
