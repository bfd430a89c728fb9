"""Exceptions raised by the PostgreSQL to MariaDB migration."""


class MigrationError(Exception):
    """Base exception for migration errors."""

    def __init__(self, message, table=None):
        super().__init__(message)
        self.table = table


class ConnectivityError(MigrationError):
    """A database connection could not be opened or was lost. Aborts the run."""


class IntrospectionError(MigrationError):
    """Catalog metadata for a table could not be read."""


class SchemaCreationError(MigrationError):
    """The CREATE TABLE statement for a table failed."""


class TransferError(MigrationError):
    """A page of rows could not be read or written."""

    def __init__(self, message, table=None, offset=None):
        super().__init__(message, table)
        self.offset = offset


class ConstraintError(MigrationError):
    """A foreign key constraint could not be attached."""


class IndexBuildError(MigrationError):
    """A secondary index could not be created."""
