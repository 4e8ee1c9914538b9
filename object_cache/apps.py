"""
Django app configuration for the object cache.

Setup of a cache instance is deferred while the app's tables are not migrated.
This config re-attempts that setup once migrations have run.
"""

import logging

from django.apps import AppConfig
from django.db.models.signals import post_migrate

logger = logging.getLogger(__name__)


def _retry_setup(sender, **kwargs):
    """Re-attempt setup of the current thread's cache instance after migrations."""
    from object_cache.shortcuts import peek_object_cache

    object_cache = peek_object_cache()
    if object_cache is None or object_cache.is_ready:
        return

    if object_cache.attempt_ready():
        logger.info("Object cache setup completed - operation=attempt_ready, trigger=post_migrate")


class ObjectCacheConfig(AppConfig):
    """
    Configuration for the object cache Django app.

    This app provides:
    - A database table holding durable cache rows
    - A per-request cache engine with an in-memory mirror
    - Administrative commands to reset or destroy the cache table
    """

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'object_cache'
    verbose_name = 'Object Cache'

    def ready(self):
        post_migrate.connect(_retry_setup, sender=self, dispatch_uid="object_cache_retry_setup")
