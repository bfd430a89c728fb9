"""Cached catalog lookups on top of a DataFetcher."""

import logging
from typing import Dict, List, Tuple

from pgsql_to_mariadb.base import DataFetcher
from pgsql_to_mariadb.descriptors import ForeignKeyDescriptor, IndexDescriptor, TableDescriptor
from pgsql_to_mariadb.errors import ConnectivityError, IntrospectionError

logger = logging.getLogger(__name__)


class MetadataCache:
    """Catalog metadata memoised for the lifetime of one run."""

    def __init__(self):
        self.tables: Dict[str, TableDescriptor] = {}
        self.foreign_keys: Dict[str, Tuple[ForeignKeyDescriptor, ...]] = {}
        self.indexes: Dict[str, Tuple[IndexDescriptor, ...]] = {}

    def clear(self):
        self.tables.clear()
        self.foreign_keys.clear()
        self.indexes.clear()


class SchemaIntrospector:
    """Turns catalog queries into descriptors, raising IntrospectionError per table."""

    def __init__(self, fetcher: DataFetcher):
        self.fetcher = fetcher

    def _guard(self, table_name, what, call):
        try:
            return call()
        except ConnectivityError:
            raise
        except Exception as e:
            if not self.fetcher.is_connected():
                raise ConnectivityError(f"Lost source connection while reading {what} of {table_name}: {e}",
                                        table=table_name) from e
            raise IntrospectionError(f"Cannot read {what} of {table_name}: {e}", table=table_name) from e

    def list_tables(self) -> List[str]:
        try:
            return list(self.fetcher.get_table_list())
        except Exception as e:
            raise ConnectivityError(f"Cannot list source tables: {e}") from e

    def describe_table(self, table_name: str, cache: MetadataCache) -> TableDescriptor:
        if table_name in cache.tables:
            return cache.tables[table_name]
        columns = self._guard(table_name, "columns", lambda: self.fetcher.get_table_columns(table_name))
        if not columns:
            raise IntrospectionError(f"No columns found for table {table_name}", table=table_name)
        descriptor = TableDescriptor.build(table_name, columns)
        cache.tables[table_name] = descriptor
        return descriptor

    def foreign_keys(self, table_name: str, cache: MetadataCache) -> Tuple[ForeignKeyDescriptor, ...]:
        if table_name not in cache.foreign_keys:
            cache.foreign_keys[table_name] = tuple(
                self._guard(table_name, "foreign keys", lambda: self.fetcher.get_foreign_keys(table_name))
            )
        return cache.foreign_keys[table_name]

    def indexes(self, table_name: str, cache: MetadataCache) -> Tuple[IndexDescriptor, ...]:
        if table_name not in cache.indexes:
            cache.indexes[table_name] = tuple(
                self._guard(table_name, "indexes", lambda: self.fetcher.get_indexes(table_name))
            )
        return cache.indexes[table_name]
