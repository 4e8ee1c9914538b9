from django.core.management.base import BaseCommand, CommandError

from object_cache.conf import get_config
from object_cache.exceptions import StoreUnavailable
from object_cache.store import DatabaseCacheStore


class Command(BaseCommand):
    help = "Drop the cache table and forget its schema version"

    def add_arguments(self, parser):
        parser.add_argument(
            "--noinput",
            "--no-input",
            action="store_false",
            dest="interactive",
            help="Do not prompt for confirmation",
        )

    def handle(self, *args, **options):
        if options["interactive"]:
            answer = input("This drops the object cache table. Type 'yes' to continue: ")
            if answer.strip().lower() != "yes":
                self.stdout.write(self.style.WARNING("Cancelled."))
                return

        store = DatabaseCacheStore(using=get_config().database)

        try:
            store.drop_schema()
        except StoreUnavailable as e:
            raise CommandError(f"Error dropping cache table: {e}") from e

        self.stdout.write(self.style.SUCCESS("Object cache table has been dropped!"))
