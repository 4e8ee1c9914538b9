"""
Object cache API serializers.

Provides serializers for cache statistics and maintenance operations.
"""

from rest_framework import serializers


class CacheGroupStatsSerializer(serializers.Serializer):
    """Serializer for the statistics of one cache group."""

    hits = serializers.IntegerField(min_value=0)
    misses = serializers.IntegerField(min_value=0)
    size_bytes = serializers.IntegerField(
        min_value=0,
        help_text="Approximate serialized size of the group's mirrored values"
    )


class CacheStatsSerializer(serializers.Serializer):
    """Serializer for cache statistics response."""

    cache_hits = serializers.IntegerField(
        help_text="Hits across all groups",
        min_value=0
    )
    cache_misses = serializers.IntegerField(
        help_text="Misses across all groups",
        min_value=0
    )
    groups = serializers.DictField(child=CacheGroupStatsSerializer())
    ready = serializers.BooleanField(
        help_text="Whether the cache instance finished its setup"
    )


class CacheActionSerializer(serializers.Serializer):
    """Serializer for flush and expire responses."""

    flushed = serializers.BooleanField(required=False)
    expired = serializers.BooleanField(required=False)
    message = serializers.CharField(
        required=False,
        help_text="Optional status message"
    )
