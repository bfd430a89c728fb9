"""PostgreSQL to MariaDB migration package.

This package provides tools and utilities for migrating schema and data from PostgreSQL to MariaDB.
"""

from pgsql_to_mariadb.base import MigrationManager, DataFetcher, DataWriter
from pgsql_to_mariadb.config import PGSQL_CONFIG, MARIADB_CONFIG, MigrationSettings
from pgsql_to_mariadb.dependency_graph import DependencyGraph, TableOrder, resolve_table_order
from pgsql_to_mariadb.descriptors import (
    ColumnDescriptor,
    ForeignKeyDescriptor,
    IndexDescriptor,
    TableDescriptor,
)
from pgsql_to_mariadb.errors import (
    MigrationError,
    ConnectivityError,
    IntrospectionError,
    SchemaCreationError,
    TransferError,
    ConstraintError,
    IndexBuildError,
)
from pgsql_to_mariadb.pgsql_fetcher import PostgresFetcher
from pgsql_to_mariadb.mariadb_writer import MariaDBWriter
from pgsql_to_mariadb.pgsql_to_mariadb_manager import (
    PgSQLtoMariaDBBaseManager,
    PgSQLtoMariaDBCreateTablesManager,
    PgSQLtoMariaDBSingleTableManager,
    PgSQLtoMariaDBFullMigrationManager,
)
from pgsql_to_mariadb.pgsql_mariadb_mapping import (
    map_pgsql_to_mariadb_type,
    get_pgsql_type_category,
    sanitize_value,
    sanitize_row,
    sanitize_frame,
)
from pgsql_to_mariadb.report import MigrationReport, TableState
from pgsql_to_mariadb.stages import ProgressEvent

__all__ = [
    # Base classes
    "MigrationManager",
    "DataFetcher",
    "DataWriter",
    # Config
    "PGSQL_CONFIG",
    "MARIADB_CONFIG",
    "MigrationSettings",
    # Descriptors and ordering
    "ColumnDescriptor",
    "ForeignKeyDescriptor",
    "IndexDescriptor",
    "TableDescriptor",
    "DependencyGraph",
    "TableOrder",
    "resolve_table_order",
    # Errors
    "MigrationError",
    "ConnectivityError",
    "IntrospectionError",
    "SchemaCreationError",
    "TransferError",
    "ConstraintError",
    "IndexBuildError",
    # Fetcher and Writer
    "PostgresFetcher",
    "MariaDBWriter",
    # Managers
    "PgSQLtoMariaDBBaseManager",
    "PgSQLtoMariaDBCreateTablesManager",
    "PgSQLtoMariaDBSingleTableManager",
    "PgSQLtoMariaDBFullMigrationManager",
    # Mapping functions
    "map_pgsql_to_mariadb_type",
    "get_pgsql_type_category",
    "sanitize_value",
    "sanitize_row",
    "sanitize_frame",
    # Reporting
    "MigrationReport",
    "TableState",
    "ProgressEvent",
]

__version__ = "0.1.0"
