from django.core.management.base import BaseCommand, CommandError

from object_cache.conf import get_config
from object_cache.exceptions import StoreUnavailable
from object_cache.shortcuts import build_object_cache
from object_cache.store import DatabaseCacheStore


class Command(BaseCommand):
    help = "Forget the cache schema version and delete every cached row"

    def handle(self, *args, **options):
        store = DatabaseCacheStore(using=get_config().database)

        try:
            store.reset_schema_version()

            # Setup re-provisions the table and records the schema version again.
            object_cache = build_object_cache()
            if not object_cache.attempt_ready():
                raise CommandError("Cache tables are not migrated yet; run migrate first")
            object_cache.flush()
        except StoreUnavailable as e:
            raise CommandError(f"Error resetting cache: {e}") from e

        self.stdout.write(self.style.SUCCESS("Object cache has been reset!"))
