import logging
from decimal import Decimal
from typing import Any, Optional, Sequence

import pandas as pd

from pgsql_to_mariadb.descriptors import ColumnDescriptor

logger = logging.getLogger(__name__)

# information_schema.columns.data_type -> category
_CATEGORIES = {
    "smallint": "smallint",
    "integer": "int",
    "bigint": "bigint",
    "boolean": "boolean",
    "numeric": "numeric",
    "decimal": "numeric",
    "real": "float",
    "double precision": "double",
    "character varying": "string",
    "character": "char",
    "text": "text",
    "timestamp without time zone": "datetime",
    "timestamp with time zone": "datetime",
    "date": "date",
    "time without time zone": "time",
    "json": "json",
    "jsonb": "json",
    "uuid": "uuid",
    "bytea": "binary",
}

_NUMERIC_CATEGORIES = {"smallint", "int", "bigint", "numeric", "float", "double"}

# NUMERIC is narrowed to DECIMAL(20,6): source values with more than 6
# fractional digits are rounded by MariaDB and values above 10^14 are rejected.
_MARIADB_TYPES = {
    "smallint": "SMALLINT",
    "int": "INT",
    "bigint": "BIGINT",
    "boolean": "TINYINT(1)",
    "numeric": "DECIMAL(20,6)",
    "float": "FLOAT",
    "double": "DOUBLE",
    "string": "VARCHAR(255)",
    "char": "CHAR(255)",
    "text": "TEXT",
    "datetime": "DATETIME",
    "date": "DATE",
    "time": "TIME",
    "json": "LONGTEXT",
    "uuid": "CHAR(36)",
    "binary": "LONGBLOB",
}

FALLBACK_TYPE = "TEXT"

# Types that need a key prefix length when indexed.
PREFIX_KEY_TYPES = {"TEXT", "LONGTEXT", "LONGBLOB"}

_TRUTHY = {"1", "true", "on", "yes"}


def get_pgsql_type_category(pgsql_type: Optional[str]) -> str:
    """Determine the category of a PostgreSQL data type."""
    return _CATEGORIES.get((pgsql_type or "").strip().lower(), "unknown")


def map_pgsql_to_mariadb_type(pgsql_type: Optional[str]) -> str:
    """Map a PostgreSQL data type to a MariaDB column type.

    Unrecognised types fall back to TEXT.
    """
    category = get_pgsql_type_category(pgsql_type)
    if category in _MARIADB_TYPES:
        return _MARIADB_TYPES[category]
    logger.debug(f"Unknown PostgreSQL type: {pgsql_type}, using {FALLBACK_TYPE}")
    return FALLBACK_TYPE


def is_numeric_type(pgsql_type: Optional[str]) -> bool:
    return get_pgsql_type_category(pgsql_type) in _NUMERIC_CATEGORIES


def is_boolean_type(pgsql_type: Optional[str]) -> bool:
    return get_pgsql_type_category(pgsql_type) == "boolean"


def needs_key_prefix(pgsql_type: Optional[str]) -> bool:
    """True when the mapped MariaDB type can only be indexed with a prefix length."""
    return map_pgsql_to_mariadb_type(pgsql_type) in PREFIX_KEY_TYPES


def coerce_boolean(value: Any) -> int:
    """Parse a truthy value into 1 or 0.

    True, the number 1 and the strings "1", "true", "on", "yes" (any case,
    surrounding whitespace ignored) give 1. Everything else gives 0.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float, Decimal)):
        return 1 if value == 1 else 0
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    if isinstance(value, str):
        return 1 if value.strip().lower() in _TRUTHY else 0
    return 0


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def sanitize_value(value: Any, column: ColumnDescriptor) -> Any:
    """Normalise one value before it is written to MariaDB.

    Missing values are defaulted first. Boolean coercion runs second on every
    boolean column, so a NULL boolean is written as 0.
    """
    if _is_missing(value):
        if column.is_nullable:
            value = None
        elif is_numeric_type(column.data_type):
            value = 0
        elif is_boolean_type(column.data_type):
            value = 0
        else:
            value = ""

    if is_boolean_type(column.data_type):
        value = coerce_boolean(value)
    return value


def sanitize_row(row: dict, columns: Sequence[ColumnDescriptor]) -> dict:
    """Return a sanitized copy of a row keyed by column name."""
    clean = dict(row)
    for col in columns:
        clean[col.name] = sanitize_value(row.get(col.name), col)
    return clean


def sanitize_frame(data: pd.DataFrame, columns: Sequence[ColumnDescriptor]) -> pd.DataFrame:
    """Apply sanitize_value column by column on a page of rows.

    Columns keep the object dtype so values reach the driver as plain Python
    objects (no NaN, no numpy scalars).
    """
    data = data.astype(object)
    for col in columns:
        if col.name not in data.columns:
            continue
        data[col.name] = pd.Series(
            [sanitize_value(v, col) for v in data[col.name].tolist()],
            index=data.index,
            dtype=object,
        )
    return data


def rows_to_frame(rows: Sequence[Sequence[Any]], column_names: Sequence[str]) -> pd.DataFrame:
    return pd.DataFrame(list(rows), columns=list(column_names), dtype=object)


def frame_to_rows(data: pd.DataFrame) -> list:
    return list(data.itertuples(index=False, name=None))
