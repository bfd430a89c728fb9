"""Render MariaDB DDL from source descriptors."""

import logging
from typing import Iterable, Optional, Sequence

from pgsql_to_mariadb.descriptors import ColumnDescriptor, ForeignKeyDescriptor, TableDescriptor
from pgsql_to_mariadb.pgsql_mariadb_mapping import map_pgsql_to_mariadb_type, needs_key_prefix

logger = logging.getLogger(__name__)

MAX_IDENTIFIER_LENGTH = 64
KEY_PREFIX_LENGTH = 255

NO_ACTION = "NO ACTION"
VALID_RULES = ("NO ACTION", "CASCADE", "SET NULL", "RESTRICT", "SET DEFAULT")


def truncate_identifier(name: str) -> str:
    return name[:MAX_IDENTIFIER_LENGTH]


def quote_identifier(name: str) -> str:
    return "`" + truncate_identifier(name).replace("`", "``") + "`"


def _key_part(column: Optional[ColumnDescriptor], name: str) -> str:
    if column is not None and needs_key_prefix(column.data_type):
        return f"{quote_identifier(name)}({KEY_PREFIX_LENGTH})"
    return quote_identifier(name)


def render_column(column: ColumnDescriptor, auto_increment: bool = False) -> str:
    parts = [
        quote_identifier(column.name),
        map_pgsql_to_mariadb_type(column.data_type),
        "NULL" if column.is_nullable else "NOT NULL",
    ]
    if auto_increment:
        parts.append("AUTO_INCREMENT")
    return " ".join(parts)


def render_create_table(table: TableDescriptor, engine: str, charset: str, collation: str) -> str:
    """Render an idempotent CREATE TABLE statement.

    Only the primary key column can carry AUTO_INCREMENT in MariaDB, so any
    other identity column is created as a plain column.
    """
    clauses = []
    for col in table.columns:
        auto = col.is_identity and col.name == table.primary_key
        if col.is_identity and not auto:
            logger.warning(
                f"Column {table.name}.{col.name} is an identity column but not the primary key; "
                f"created without AUTO_INCREMENT"
            )
        clauses.append(render_column(col, auto_increment=auto))

    if table.primary_key:
        pk = _key_part(table.column(table.primary_key), table.primary_key)
        clauses.append(f"PRIMARY KEY ({pk})")

    return (
        f"CREATE TABLE IF NOT EXISTS {quote_identifier(table.name)} ({', '.join(clauses)}) "
        f"ENGINE={engine} DEFAULT CHARSET={charset} COLLATE={collation}"
    )


def normalize_rule(rule: Optional[str], constraint_name: str, table_name: str, kind: str) -> str:
    """Validate an ON UPDATE / ON DELETE rule, falling back to NO ACTION."""
    normalized = " ".join((rule or NO_ACTION).upper().split())
    if normalized not in VALID_RULES:
        logger.warning(
            f"Invalid {kind} action '{rule}' for {constraint_name} in {table_name}. "
            f"Defaulting to '{NO_ACTION}'."
        )
        return NO_ACTION
    return normalized


def render_foreign_key(fk: ForeignKeyDescriptor, on_update: str, on_delete: str) -> str:
    return (
        f"ALTER TABLE {quote_identifier(fk.table)} "
        f"ADD CONSTRAINT {quote_identifier(fk.name)} "
        f"FOREIGN KEY ({quote_identifier(fk.column)}) "
        f"REFERENCES {quote_identifier(fk.referenced_table)} ({quote_identifier(fk.referenced_column)}) "
        f"ON DELETE {on_delete} ON UPDATE {on_update}"
    )


def referenced_index_name(table_name: str, column_name: str) -> str:
    return truncate_identifier(f"idx_{table_name}_{column_name}")


def render_create_index(
    index_name: str,
    table_name: str,
    columns: Sequence[str],
    unique: bool = False,
    table: Optional[TableDescriptor] = None,
) -> str:
    key_parts: Iterable[str] = (
        _key_part(table.column(c) if table is not None else None, c) for c in columns
    )
    return (
        f"CREATE {'UNIQUE ' if unique else ''}INDEX {quote_identifier(index_name)} "
        f"ON {quote_identifier(table_name)} ({', '.join(key_parts)})"
    )
