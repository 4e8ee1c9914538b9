"""Exceptions raised by the object cache."""


class ObjectCacheError(Exception):
    """Base class for object cache failures."""


class StoreUnavailable(ObjectCacheError):
    """Raised when the durable store rejects a call."""
