"""Pipeline stages. Each stage runs over every table before the next starts."""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from pgsql_to_mariadb.base import DataFetcher, DataWriter
from pgsql_to_mariadb.config import MigrationSettings
from pgsql_to_mariadb.dependency_graph import TableOrder
from pgsql_to_mariadb.descriptors import ForeignKeyDescriptor, TableDescriptor
from pgsql_to_mariadb.errors import (
    ConnectivityError,
    ConstraintError,
    IndexBuildError,
    IntrospectionError,
    SchemaCreationError,
    TransferError,
)
from pgsql_to_mariadb.introspection import MetadataCache, SchemaIntrospector
from pgsql_to_mariadb.mariadb_ddl import (
    normalize_rule,
    referenced_index_name,
    render_create_index,
    render_create_table,
    render_foreign_key,
    truncate_identifier,
)
from pgsql_to_mariadb.pgsql_mariadb_mapping import frame_to_rows, rows_to_frame, sanitize_frame
from pgsql_to_mariadb.report import MigrationReport, OutcomeStatus, Stage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    stage: str
    table: str
    current: int
    total: int


def log_progress(event: ProgressEvent) -> None:
    logger.info(f"Progress: {event.current}/{event.total} {event.stage} for {event.table}")


ProgressCallback = Callable[[ProgressEvent], None]


class StageRunner:
    stage: Stage

    def __init__(
        self,
        fetcher: DataFetcher,
        writer: DataWriter,
        report: MigrationReport,
        settings: Optional[MigrationSettings] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.fetcher = fetcher
        self.writer = writer
        self.report = report
        self.settings = settings or MigrationSettings()
        self.on_progress = on_progress or log_progress

    def progress(self, table: str, current: int, total: int) -> None:
        self.on_progress(ProgressEvent(self.stage.value, table, current, total))

    def check_connections(self, error: Exception) -> None:
        """Escalate to ConnectivityError when either connection is gone."""
        if isinstance(error, ConnectivityError):
            raise error
        if not self.fetcher.is_connected():
            raise ConnectivityError(f"Lost connection to PostgreSQL: {error}") from error
        if not self.writer.is_connected():
            raise ConnectivityError(f"Lost connection to MariaDB: {error}") from error


class TableBuilder(StageRunner):
    stage = Stage.CREATE

    def run(self, tables: Sequence[TableDescriptor]) -> None:
        total = len(tables)
        for position, table in enumerate(tables, 1):
            self.progress(table.name, position, total)
            self.build(table)

    def build(self, table: TableDescriptor) -> bool:
        statement = render_create_table(
            table, self.settings.engine, self.settings.charset, self.settings.collation
        )
        try:
            self.writer.create_table(statement, table.name)
        except Exception as e:
            self.check_connections(e)
            error = SchemaCreationError(f"Error creating table {table.name}: {e}", table=table.name)
            logger.error(str(error), extra={"table": table.name})
            self.report.failed(table.name, self.stage, str(error), exclude=True)
            return False
        self.report.success(table.name, self.stage)
        return True


@dataclass
class TransferResult:
    table: str
    total_rows: int = 0
    rows_committed: int = 0
    pages_committed: int = 0
    pages_failed: int = 0
    page_sizes: List[int] = field(default_factory=list)
    read_error: Optional[str] = None


class BatchTransferEngine(StageRunner):
    """Copies rows page by page, one destination transaction per page.

    Paging uses LIMIT/OFFSET and assumes the source table is not written to
    while it is copied; concurrent inserts or deletes can skip or duplicate rows.
    """
    stage = Stage.TRANSFER

    def run(self, tables: Sequence[TableDescriptor]) -> Dict[str, TransferResult]:
        results = {}
        for table in tables:
            if self.report.is_failed(table.name):
                logger.info(f"Skipping data transfer for failed table {table.name}")
                continue
            results[table.name] = self.transfer_table(table)
        return results

    def transfer_table(self, table: TableDescriptor) -> TransferResult:
        batch_size = self.settings.batch_size
        result = TransferResult(table=table.name)

        try:
            result.total_rows = self.fetcher.get_total_rows(table.name)
        except Exception as e:
            self.check_connections(e)
            return self._read_failed(result, 0, e)

        logger.info(f"Migrating {result.total_rows} rows from {table.name}")
        offset = 0
        processed = 0
        while True:
            try:
                rows = self.fetcher.fetch_data_in_batch(table, offset, batch_size)
            except Exception as e:
                self.check_connections(e)
                return self._read_failed(result, offset, e)
            if not rows:
                break

            data = sanitize_frame(rows_to_frame(rows, table.column_names), table.columns)
            try:
                inserted = self.writer.insert_batch(table.name, table.column_names, frame_to_rows(data))
            except Exception as e:
                self.check_connections(e)
                error = TransferError(
                    f"Page at offset {offset} of {table.name} rolled back: {e}",
                    table=table.name,
                    offset=offset,
                )
                logger.error(str(error), extra={"table": table.name})
                result.pages_failed += 1
            else:
                result.pages_committed += 1
                result.rows_committed += inserted
                result.page_sizes.append(inserted)

            processed += len(rows)
            offset += batch_size
            self.progress(table.name, processed, max(result.total_rows, processed))

        if result.pages_failed:
            self.report.failed(
                table.name,
                self.stage,
                f"{result.pages_failed} of {result.pages_failed + result.pages_committed} pages rolled back",
                rows=result.rows_committed,
            )
        else:
            logger.info(f"Data transferred for table {table.name}: {result.rows_committed} rows")
            self.report.success(table.name, self.stage, rows=result.rows_committed)
        return result

    def _read_failed(self, result: TransferResult, offset: int, error: Exception) -> TransferResult:
        failure = TransferError(
            f"Cannot read {result.table} at offset {offset}: {error}", table=result.table, offset=offset
        )
        logger.error(str(failure), extra={"table": result.table})
        result.read_error = str(failure)
        self.report.failed(result.table, self.stage, str(failure), rows=result.rows_committed)
        return result


class _CatalogStage(StageRunner):
    """Stage that reads catalog metadata through the run cache."""

    def __init__(self, fetcher, writer, report, introspector: SchemaIntrospector, cache: MetadataCache,
                 settings=None, on_progress=None):
        super().__init__(fetcher, writer, report, settings, on_progress)
        self.introspector = introspector
        self.cache = cache

    def _finish(self, table: str, results: List[tuple]) -> None:
        failures = [reason for status, reason in results if status == OutcomeStatus.FAILED]
        skips = [reason for status, reason in results if status == OutcomeStatus.SKIPPED]
        if failures:
            self.report.failed(table, self.stage, "; ".join(failures))
        elif results and len(skips) == len(results):
            self.report.skipped(table, self.stage, "; ".join(skips))
        else:
            self.report.success(table, self.stage)


class ConstraintBuilder(_CatalogStage):
    """Attaches foreign keys once every table exists and holds its data."""
    stage = Stage.CONSTRAIN

    def run(self, tables: Sequence[str], order: Optional[TableOrder] = None) -> None:
        results: Dict[str, List[tuple]] = {}
        deferred: List[ForeignKeyDescriptor] = []
        active = self.report.active_tables(tables)
        total = len(active)

        for position, table in enumerate(active, 1):
            self.progress(table, position, total)
            try:
                foreign_keys = self.introspector.foreign_keys(table, self.cache)
            except IntrospectionError as e:
                logger.error(str(e), extra={"table": table})
                self.report.failed(table, self.stage, str(e))
                continue
            results[table] = []
            for fk in foreign_keys:
                if order is not None and order.is_deferred(fk.table, fk.referenced_table):
                    deferred.append(fk)
                    continue
                results[table].append(self.attach(fk))

        # Edges broken to escape a cycle: both tables exist by now.
        for fk in deferred:
            logger.info(f"Attaching deferred foreign key {fk.name} on {fk.table}")
            results[fk.table].append(self.attach(fk))

        for table, table_results in results.items():
            self._finish(table, table_results)

    def attach(self, fk: ForeignKeyDescriptor) -> tuple:
        on_update = normalize_rule(fk.update_rule, fk.name, fk.table, "ON UPDATE")
        on_delete = normalize_rule(fk.delete_rule, fk.name, fk.table, "ON DELETE")

        if self.report.is_failed(fk.referenced_table):
            reason = f"{fk.name}: referenced table {fk.referenced_table} failed"
            logger.warning(f"Skipping foreign key {reason}", extra={"table": fk.table})
            return OutcomeStatus.SKIPPED, reason

        try:
            if not self.writer.table_exists(fk.referenced_table):
                reason = f"{fk.name}: referenced table {fk.referenced_table} does not exist"
                logger.error(f"Skipping foreign key {reason}", extra={"table": fk.table})
                return OutcomeStatus.SKIPPED, reason

            if not self.writer.column_exists(fk.referenced_table, fk.referenced_column):
                reason = (f"{fk.name}: referenced column {fk.referenced_table}.{fk.referenced_column} "
                          f"does not exist")
                logger.error(f"Skipping foreign key {reason}", extra={"table": fk.table})
                return OutcomeStatus.SKIPPED, reason

            if self.writer.constraint_exists(fk.table, truncate_identifier(fk.name)):
                logger.info(f"Foreign key {fk.name} already exists on {fk.table}")
                return OutcomeStatus.SKIPPED, f"{fk.name}: already exists"

            if not self.writer.has_index_on(fk.referenced_table, fk.referenced_column):
                index_name = referenced_index_name(fk.referenced_table, fk.referenced_column)
                self.writer.execute(render_create_index(
                    index_name,
                    fk.referenced_table,
                    [fk.referenced_column],
                    table=self.cache.tables.get(fk.referenced_table),
                ))
                logger.info(f"Created index {index_name} on {fk.referenced_table}({fk.referenced_column})")

            self.writer.execute(render_foreign_key(fk, on_update, on_delete))
        except Exception as e:
            self.check_connections(e)
            error = ConstraintError(f"Failed to add foreign key {fk.name} on {fk.table}: {e}", table=fk.table)
            logger.error(str(error), extra={"table": fk.table})
            return OutcomeStatus.FAILED, str(error)

        logger.info(f"Added foreign key constraint {fk.name} to {fk.table} "
                    f"(ON DELETE {on_delete} ON UPDATE {on_update})")
        return OutcomeStatus.SUCCESS, None


class IndexBuilder(_CatalogStage):
    stage = Stage.INDEX

    def run(self, tables: Sequence[str]) -> None:
        active = self.report.active_tables(tables)
        total = len(active)
        for position, table in enumerate(active, 1):
            self.progress(table, position, total)
            try:
                indexes = self.introspector.indexes(table, self.cache)
            except IntrospectionError as e:
                logger.error(str(e), extra={"table": table})
                self.report.failed(table, self.stage, str(e))
                continue
            descriptor = self.cache.tables.get(table)
            self._finish(table, [self.build(index, descriptor) for index in indexes])

    def build(self, index, descriptor: Optional[TableDescriptor]) -> tuple:
        name = truncate_identifier(index.name)
        if descriptor is not None:
            missing = [c for c in index.columns if descriptor.column(c) is None]
            if missing:
                reason = f"{index.name}: unknown columns {', '.join(missing)}"
                logger.warning(f"Skipping index {reason}", extra={"table": index.table})
                return OutcomeStatus.SKIPPED, reason
        try:
            if self.writer.index_exists(index.table, name):
                logger.info(f"Index {name} already exists on {index.table}")
                return OutcomeStatus.SKIPPED, f"{index.name}: already exists"
            self.writer.execute(render_create_index(name, index.table, index.columns, index.is_unique, descriptor))
        except Exception as e:
            self.check_connections(e)
            error = IndexBuildError(f"Failed to create index {index.name} on {index.table}: {e}", table=index.table)
            logger.error(str(error), extra={"table": index.table})
            return OutcomeStatus.FAILED, str(error)
        logger.info(f"Created index {name} on {index.table}({', '.join(index.columns)})")
        return OutcomeStatus.SUCCESS, None
