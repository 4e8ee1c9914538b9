from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from object_cache.conf import get_config
from object_cache.exceptions import StoreUnavailable
from object_cache.store import DatabaseCacheStore


class Command(BaseCommand):
    help = "Delete cached rows whose expiry time has passed"

    def handle(self, *args, **options):
        store = DatabaseCacheStore(using=get_config().database)

        try:
            deleted = store.delete_all_expired(timezone.now())
        except StoreUnavailable as e:
            raise CommandError(f"Error expiring cache rows: {e}") from e

        self.stdout.write(self.style.SUCCESS(f"Removed {deleted} expired cache rows"))
