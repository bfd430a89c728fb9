import logging
from typing import Dict, List, Optional, Sequence

from pgsql_to_mariadb.base import MigrationManager
from pgsql_to_mariadb.config import MigrationSettings
from pgsql_to_mariadb.dependency_graph import DependencyGraph, TableOrder, resolve_table_order
from pgsql_to_mariadb.descriptors import TableDescriptor
from pgsql_to_mariadb.errors import ConnectivityError, IntrospectionError
from pgsql_to_mariadb.introspection import MetadataCache, SchemaIntrospector
from pgsql_to_mariadb.mariadb_writer import MariaDBWriter
from pgsql_to_mariadb.pgsql_fetcher import PostgresFetcher
from pgsql_to_mariadb.report import MigrationReport, Stage
from pgsql_to_mariadb.stages import (
    BatchTransferEngine,
    ConstraintBuilder,
    IndexBuilder,
    TableBuilder,
    TransferResult,
)

logger = logging.getLogger(__name__)


class PgSQLtoMariaDBBaseManager(MigrationManager):
    """Base manager with the shared infrastructure for PostgreSQL to MariaDB migrations.

    Holds the connections, the run-scoped metadata cache and the report, and
    knows how to introspect and order tables. Child classes decide which
    stages run.
    """

    def __init__(self, fetcher=None, writer=None, settings=None, on_progress=None):
        self.settings = settings or MigrationSettings.from_env()
        self.fetcher = fetcher or PostgresFetcher(schema=self.settings.schema)
        self.writer = writer or MariaDBWriter()
        self.on_progress = on_progress
        self.introspector = SchemaIntrospector(self.fetcher)
        self.cache = MetadataCache()
        self.report = MigrationReport()
        self.order: Optional[TableOrder] = None
        self.descriptors: Dict[str, TableDescriptor] = {}

    def create_connections(self):
        """Create connections to PostgreSQL and MariaDB."""
        self.fetcher.connect()
        try:
            self.writer.connect()
        except ConnectivityError:
            self.fetcher.close()
            raise

    def close_connections(self):
        """Close all database connections."""
        self.fetcher.close()
        self.writer.close()

    def _stage(self, cls, **kwargs):
        return cls(self.fetcher, self.writer, self.report, settings=self.settings,
                   on_progress=self.on_progress, **kwargs)

    def prepare(self, table_names: Optional[Sequence[str]] = None) -> TableOrder:
        """Introspect tables and resolve the creation order.

        Tables whose metadata cannot be read are marked failed and left out.
        """
        if table_names is None:
            table_names = self.introspector.list_tables()
        if not table_names:
            logger.warning("No tables found in the PostgreSQL database.")

        foreign_keys = {}
        readable: List[str] = []
        for table in table_names:
            self.report.register(table)
            try:
                self.descriptors[table] = self.introspector.describe_table(table, self.cache)
                foreign_keys[table] = self.introspector.foreign_keys(table, self.cache)
            except IntrospectionError as e:
                logger.error(f"Skipping table {table}: {e}", extra={"table": table})
                self.report.failed(table, Stage.INTROSPECT, str(e), exclude=True)
                continue
            readable.append(table)

        graph = DependencyGraph.from_foreign_keys(readable, foreign_keys)
        self.order = resolve_table_order(graph)
        logger.info(f"Table order: {', '.join(self.order.tables)}")
        return self.order

    def ordered_descriptors(self) -> List[TableDescriptor]:
        tables = self.order.tables if self.order else ()
        return [self.descriptors[t] for t in tables if not self.report.is_failed(t)]

    def build_tables(self):
        logger.info("=== Creating tables in MariaDB ===")
        self._stage(TableBuilder).run(self.ordered_descriptors())

    def transfer_data(self, tables: Optional[Sequence[TableDescriptor]] = None) -> Dict[str, TransferResult]:
        logger.info("=== Starting data migration ===")
        return self._stage(BatchTransferEngine).run(tables if tables is not None else self.ordered_descriptors())

    def attach_constraints(self):
        logger.info("=== Adding foreign keys ===")
        stage = self._stage(ConstraintBuilder, introspector=self.introspector, cache=self.cache)
        stage.run(self.order.tables if self.order else (), self.order)

    def build_indexes(self):
        logger.info("=== Creating indexes ===")
        stage = self._stage(IndexBuilder, introspector=self.introspector, cache=self.cache)
        stage.run(self.order.tables if self.order else ())

    def execute(self, steps) -> MigrationReport:
        """Run the given steps in order; a lost connection aborts the run."""
        try:
            for step in steps:
                step()
        except ConnectivityError as e:
            self.report.aborted = str(e)
            raise
        finally:
            self.report.log_summary()
            self.cache.clear()
        return self.report

    # Abstract methods - child classes must implement
    def create_tables(self):
        raise NotImplementedError("Child classes must implement create_tables()")

    def migrate_table(self, table_name: str) -> None:
        raise NotImplementedError("Child classes must implement migrate_table()")

    def migrate_all(self) -> None:
        raise NotImplementedError("Child classes must implement migrate_all()")


# ========== Specialized Manager Classes ==========


class PgSQLtoMariaDBCreateTablesManager(PgSQLtoMariaDBBaseManager):
    """Manager for creating table structures in MariaDB (no data migration)."""

    def create_tables(self):
        self.prepare()
        self.build_tables()

    def migrate_table(self, table_name: str) -> None:
        raise NotImplementedError("This manager only creates tables")

    def migrate_all(self) -> None:
        raise NotImplementedError("This manager only creates tables")

    def run(self) -> MigrationReport:
        logger.info("Creating all tables in MariaDB...")
        report = self.execute([self.create_tables])
        logger.info("Table creation completed!")
        return report


class PgSQLtoMariaDBSingleTableManager(PgSQLtoMariaDBBaseManager):
    """Manager for migrating a single table.

    Foreign keys to tables that do not exist in MariaDB yet are skipped.
    """

    def __init__(self, table_name: str, fetcher=None, writer=None, settings=None, on_progress=None):
        super().__init__(fetcher, writer, settings, on_progress)
        self.table_name = table_name

    def create_tables(self):
        logger.info(f"Creating table: {self.table_name}")
        self.prepare([self.table_name])
        self.build_tables()

    def migrate_table(self, table_name: str) -> None:
        self.transfer_data([d for d in self.ordered_descriptors() if d.name == table_name])

    def migrate_all(self) -> None:
        self.migrate_table(self.table_name)

    def run(self) -> MigrationReport:
        logger.info(f"Starting migration for table: {self.table_name}")
        report = self.execute([
            self.create_tables,
            self.migrate_all,
            self.attach_constraints,
            self.build_indexes,
        ])
        logger.info(f"Migration completed for {self.table_name}!")
        return report


class PgSQLtoMariaDBFullMigrationManager(PgSQLtoMariaDBBaseManager):
    """Manager for full migration: create tables, copy data, add foreign keys and indexes.

    Each stage finishes for every table before the next one starts.
    """

    def create_tables(self):
        self.prepare()
        self.build_tables()

    def migrate_table(self, table_name: str) -> None:
        self.transfer_data([d for d in self.ordered_descriptors() if d.name == table_name])

    def migrate_all(self) -> None:
        self.transfer_data()

    def run(self) -> MigrationReport:
        logger.info("Starting full PostgreSQL to MariaDB migration...")
        report = self.execute([
            self.create_tables,
            self.migrate_all,
            self.attach_constraints,
            self.build_indexes,
        ])
        if report.succeeded:
            logger.info("=== Migration completed successfully! ===")
        else:
            logger.warning("=== Migration completed with errors, see report ===")
        return report
