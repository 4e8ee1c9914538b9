"""
Durable storage for the object cache.

The engine talks to its backing table only through the :class:`CacheStore`
interface. :class:`DatabaseCacheStore` implements it on top of the Django ORM
and schema editor so the table can be provisioned at runtime, reset and dropped
by the administrative commands.

Every database failure is re-raised as :class:`StoreUnavailable`; this layer
does not retry.
"""

import abc
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from django.db import DatabaseError, IntegrityError, connections, transaction

from object_cache.exceptions import StoreUnavailable
from object_cache.models import CacheEntry, CacheOption

logger = logging.getLogger(__name__)

SCHEMA_VERSION_OPTION = "object_cache_schema_version"


@dataclass(frozen=True)
class StoredRow:
    """A row loaded from the durable store."""

    data: str
    expires_at: Optional[datetime]


class CacheStore(abc.ABC):
    """Interface of the durable key/value store behind the object cache."""

    @abc.abstractmethod
    def ensure_schema(self, expected_version: int) -> bool:
        """Make sure the backing table exists at ``expected_version``.

        Returns False when provisioning has to wait for the host framework.
        """

    @abc.abstractmethod
    def select_one(self, group: str, key: str) -> Optional[StoredRow]:
        """Return the row matching (group, key) exactly, or None."""

    @abc.abstractmethod
    def insert(
        self,
        group: str,
        key: str,
        data: str,
        expires_at: Optional[datetime],
        size_hint: int,
        ttl_label: str,
    ) -> None:
        """Insert a new row."""

    @abc.abstractmethod
    def update_data(self, group: str, key: str, new_data: str) -> None:
        """Replace the payload of an existing row in place."""

    @abc.abstractmethod
    def delete_row(self, group: str, key: str) -> None:
        """Delete the row matching (group, key)."""

    @abc.abstractmethod
    def delete_all_expired(self, now: datetime) -> int:
        """Delete rows whose expiry is set and earlier than ``now``."""

    @abc.abstractmethod
    def truncate_all(self) -> int:
        """Delete every row."""


class DatabaseCacheStore(CacheStore):
    """
    CacheStore backed by the ``object_cache_entries`` table.

    The schema version is kept in ``object_cache_options`` which is created by
    the app's migrations. The entries table is also created by migrations but
    is re-provisioned on demand after it has been dropped.

    Concurrent inserts of the same (group, key) collide on the table's unique
    constraint; the later insert then overwrites the row.

    Example Usage:
        >>> store = DatabaseCacheStore()
        >>> store.ensure_schema(1)
        True
        >>> store.insert("theme", "color", "blue", None, 4, "-")
        >>> store.select_one("theme", "color").data
        'blue'
    """

    def __init__(self, using: str = "default"):
        """
        Initialize the store.

        Args:
            using: Database alias holding the cache tables
        """
        self.using = using

    @contextmanager
    def _store_call(self, operation: str, group: str = "", key: str = ""):
        try:
            yield
        except DatabaseError as e:
            logger.error(
                f"Cache store error - operation={operation}, group={group}, "
                f"key={key}, database={self.using}, error={str(e)}",
                exc_info=True
            )
            raise StoreUnavailable(f"Cache store failed during {operation}: {e}") from e

    def _entries(self):
        return CacheEntry.objects.using(self.using)

    def _table_names(self):
        with connections[self.using].cursor() as cursor:
            return set(connections[self.using].introspection.table_names(cursor))

    def get_schema_version(self) -> int:
        """
        Read the recorded schema version.

        Returns:
            Recorded version, or 0 when none has been recorded yet
        """
        with self._store_call("schema_version_get"):
            value = (
                CacheOption.objects.using(self.using)
                .filter(name=SCHEMA_VERSION_OPTION)
                .values_list("value", flat=True)
                .first()
            )
        try:
            return int(value or 0)
        except ValueError:
            return 0

    def ensure_schema(self, expected_version: int) -> bool:
        """
        Provision the entries table if needed and record the schema version.

        Provisioning is deferred (False) while the options table is missing,
        which is the case until the app's migrations have run.

        Args:
            expected_version: Schema version the engine expects

        Returns:
            True once the table is usable, False if setup must be re-attempted

        Raises:
            StoreUnavailable: If the database rejects a call
        """
        with self._store_call("ensure_schema"):
            tables = self._table_names()

        if CacheOption._meta.db_table not in tables:
            logger.info(
                "Cache schema deferred - operation=ensure_schema, "
                "reason=options_table_missing"
            )
            return False

        version = self.get_schema_version()
        if version == expected_version:
            return True

        with self._store_call("ensure_schema"):
            if CacheEntry._meta.db_table not in tables:
                with connections[self.using].schema_editor() as editor:
                    editor.create_model(CacheEntry)
                logger.info(
                    f"Cache table created - operation=ensure_schema, "
                    f"table={CacheEntry._meta.db_table}, database={self.using}"
                )

            CacheOption.objects.using(self.using).update_or_create(
                name=SCHEMA_VERSION_OPTION,
                defaults={"value": str(expected_version)},
            )

        logger.info(
            f"Cache schema ready - operation=ensure_schema, "
            f"old_version={version}, new_version={expected_version}"
        )
        return True

    def select_one(self, group: str, key: str) -> Optional[StoredRow]:
        with self._store_call("select", group, key):
            rows = list(
                self._entries()
                .filter(cache_group=group, cache_key=str(key))
                .values("data", "expires_at")[:1]
            )

        if not rows:
            return None
        return StoredRow(data=rows[0]["data"], expires_at=rows[0]["expires_at"])

    def insert(self, group, key, data, expires_at, size_hint, ttl_label) -> None:
        fields = {
            "data": data,
            "expires_at": expires_at,
            "size": size_hint,
            "ttl": ttl_label,
        }
        with self._store_call("insert", group, key):
            try:
                with transaction.atomic(using=self.using):
                    self._entries().create(cache_group=group, cache_key=str(key), **fields)
            except IntegrityError:
                # Another instance inserted the same row since our existence check.
                logger.warning(
                    f"Cache insert collided - operation=insert, group={group}, "
                    f"key={key}, resolution=overwrite"
                )
                self._entries().filter(cache_group=group, cache_key=str(key)).update(**fields)

    def update_data(self, group: str, key: str, new_data: str) -> None:
        with self._store_call("update", group, key):
            self._entries().filter(cache_group=group, cache_key=str(key)).update(data=new_data)

    def delete_row(self, group: str, key: str) -> None:
        with self._store_call("delete", group, key):
            self._entries().filter(cache_group=group, cache_key=str(key)).delete()

    def delete_all_expired(self, now: datetime) -> int:
        with self._store_call("expire"):
            deleted, _ = self._entries().filter(
                expires_at__isnull=False,
                expires_at__lt=now,
            ).delete()

        if deleted:
            logger.debug(f"Cache rows expired - operation=expire, count={deleted}, now={now.isoformat()}")
        return deleted

    def truncate_all(self) -> int:
        with self._store_call("truncate"):
            deleted, _ = self._entries().all().delete()

        logger.info(f"Cache table truncated - operation=truncate, count={deleted}")
        return deleted

    def reset_schema_version(self) -> None:
        """Forget the recorded schema version so the next setup re-provisions."""
        with self._store_call("schema_version_reset"):
            CacheOption.objects.using(self.using).filter(name=SCHEMA_VERSION_OPTION).delete()

        logger.info("Cache schema version reset - operation=schema_version_reset")

    def drop_schema(self) -> None:
        """
        Drop the entries table and forget the schema version.

        Raises:
            StoreUnavailable: If the database rejects a call
        """
        self.reset_schema_version()

        with self._store_call("drop_schema"):
            if CacheEntry._meta.db_table in self._table_names():
                with connections[self.using].schema_editor() as editor:
                    editor.delete_model(CacheEntry)

        logger.info(
            f"Cache table dropped - operation=drop_schema, "
            f"table={CacheEntry._meta.db_table}, database={self.using}"
        )
