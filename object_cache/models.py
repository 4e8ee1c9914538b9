from django.db import models


class CacheEntry(models.Model):
    """A durable cache row addressed by (cache_group, cache_key)."""

    cache_group = models.CharField(max_length=255)
    cache_key = models.CharField(max_length=255)
    data = models.TextField()
    ttl = models.CharField(max_length=32, default="-")
    size = models.PositiveIntegerField(default=0)
    expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "object_cache_entries"
        verbose_name = "Cache Entry"
        verbose_name_plural = "Cache Entries"
        constraints = [
            models.UniqueConstraint(fields=["cache_group", "cache_key"], name="objcache_group_key_uniq"),
        ]
        indexes = [
            models.Index(fields=["expires_at"], name="objcache_expires_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.cache_group}:{self.cache_key}"


class CacheOption(models.Model):
    """Named setting used for schema bookkeeping of the cache table."""

    name = models.CharField(max_length=191, unique=True)
    value = models.CharField(max_length=255, blank=True, default="")
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "object_cache_options"
        verbose_name = "Cache Option"
        verbose_name_plural = "Cache Options"

    def __str__(self) -> str:
        return f"{self.name}={self.value}"
