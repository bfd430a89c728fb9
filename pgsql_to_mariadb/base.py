from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence, Tuple

from pgsql_to_mariadb.descriptors import (
    ColumnDescriptor,
    ForeignKeyDescriptor,
    IndexDescriptor,
    TableDescriptor,
)


class MigrationManager(ABC):
    """Abstract base class for all migration types."""

    @abstractmethod
    def __init__(self, fetcher, writer, settings=None):
        """Wire a source fetcher and a destination writer under shared settings."""
        pass

    @abstractmethod
    def create_connections(self) -> None:
        """Open the PostgreSQL and MariaDB connections."""
        pass

    @abstractmethod
    def close_connections(self) -> None:
        """Close all connections."""
        pass

    def __enter__(self):
        """Enter context manager - establish connections."""
        self.create_connections()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager - close all connections."""
        self.close_connections()
        return False

    @abstractmethod
    def create_tables(self) -> None:
        """Introspect the source and create the tables in MariaDB."""
        pass

    @abstractmethod
    def migrate_table(self, table_name: str) -> None:
        """Copy the rows of one table."""
        pass

    @abstractmethod
    def migrate_all(self) -> None:
        """Copy the rows of every table that was created."""
        pass


class DataFetcher(ABC):
    """Abstract base for the source database (catalog introspection and row pages)."""

    @abstractmethod
    def connect(self) -> Any:
        """Connect to data source and return connection object."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Close connection to data source."""
        ...

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @abstractmethod
    def is_connected(self) -> bool:
        """True while the underlying connection is usable."""
        ...

    @abstractmethod
    def get_table_list(self) -> List[str]:
        """Get list of all tables."""
        ...

    @abstractmethod
    def get_table_columns(self, table_name: str) -> List[ColumnDescriptor]:
        ...

    @abstractmethod
    def get_foreign_keys(self, table_name: str) -> List[ForeignKeyDescriptor]:
        ...

    @abstractmethod
    def get_indexes(self, table_name: str) -> List[IndexDescriptor]:
        """Secondary indexes, primary key index excluded."""
        ...

    @abstractmethod
    def fetch_data_in_batch(self, table: TableDescriptor, offset: int, batch_size: int) -> List[Tuple[Any, ...]]:
        """Fetch one page of rows, columns in descriptor order."""
        ...

    @abstractmethod
    def get_total_rows(self, table_name: str) -> int:
        """Get total number of rows in table."""
        ...


class DataWriter(ABC):
    """Abstract base for the destination database."""

    @abstractmethod
    def connect(self) -> Any:
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @abstractmethod
    def is_connected(self) -> bool:
        ...

    @abstractmethod
    def execute(self, statement: str, params: Optional[Sequence[Any]] = None) -> None:
        """Execute and commit a single statement."""
        ...

    @abstractmethod
    def create_table(self, statement: str, table_name: str) -> None:
        """Run a rendered CREATE TABLE statement."""
        ...

    @abstractmethod
    def insert_batch(self, table_name: str, column_names: Sequence[str], rows: Sequence[Sequence[Any]]) -> int:
        """Insert rows one by one inside a single transaction; all or nothing."""
        ...

    @abstractmethod
    def table_exists(self, table_name: str) -> bool:
        ...

    @abstractmethod
    def column_exists(self, table_name: str, column_name: str) -> bool:
        ...

    @abstractmethod
    def has_index_on(self, table_name: str, column_name: str) -> bool:
        """True when an index leads with the given column."""
        ...

    @abstractmethod
    def index_exists(self, table_name: str, index_name: str) -> bool:
        ...

    @abstractmethod
    def constraint_exists(self, table_name: str, constraint_name: str) -> bool:
        ...
