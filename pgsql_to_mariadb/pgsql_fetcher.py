import logging
from collections import OrderedDict
from typing import Any, List, Optional, Tuple

import psycopg2
from psycopg2 import sql
from psycopg2.extensions import connection as PostgresConnection

from pgsql_to_mariadb.base import DataFetcher
from pgsql_to_mariadb.config import PGSQL_CONFIG
from pgsql_to_mariadb.descriptors import (
    ColumnDescriptor,
    ForeignKeyDescriptor,
    IndexDescriptor,
    TableDescriptor,
)
from pgsql_to_mariadb.errors import ConnectivityError

logger = logging.getLogger(__name__)

TABLES_QUERY = """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = %s AND table_type = 'BASE TABLE'
    ORDER BY table_name;
"""

COLUMNS_QUERY = """
    SELECT column_name, data_type, is_nullable, column_default, ordinal_position,
        CASE
            WHEN column_default LIKE 'nextval(%%::regclass)' OR is_identity = 'YES' THEN 1
            ELSE 0
        END AS is_identity
    FROM information_schema.columns
    WHERE table_schema = %s AND table_name = %s
    ORDER BY ordinal_position;
"""

FOREIGN_KEYS_QUERY = """
    SELECT
        tc.constraint_name,
        kcu.column_name,
        ref.table_name AS referenced_table,
        ref.column_name AS referenced_column,
        rc.update_rule,
        rc.delete_rule
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
        ON kcu.constraint_name = tc.constraint_name
        AND kcu.constraint_schema = tc.constraint_schema
    JOIN information_schema.referential_constraints rc
        ON rc.constraint_name = tc.constraint_name
        AND rc.constraint_schema = tc.constraint_schema
    JOIN information_schema.key_column_usage ref
        ON ref.constraint_name = rc.unique_constraint_name
        AND ref.constraint_schema = rc.unique_constraint_schema
        AND ref.ordinal_position = kcu.position_in_unique_constraint
    WHERE tc.constraint_type = 'FOREIGN KEY'
        AND tc.table_schema = %s
        AND tc.table_name = %s
    ORDER BY tc.constraint_name, kcu.ordinal_position;
"""

# Expression and partial indexes have no MariaDB equivalent and are left out.
INDEXES_QUERY = """
    SELECT
        i.relname AS index_name,
        a.attname AS column_name,
        ix.indisunique AS is_unique
    FROM pg_class t
    JOIN pg_namespace n ON n.oid = t.relnamespace
    JOIN pg_index ix ON ix.indrelid = t.oid
    JOIN pg_class i ON i.oid = ix.indexrelid
    JOIN LATERAL unnest(ix.indkey::int2[]) WITH ORDINALITY AS k(attnum, ord) ON true
    JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = k.attnum
    WHERE n.nspname = %s
        AND t.relname = %s
        AND NOT ix.indisprimary
        AND ix.indexprs IS NULL
        AND ix.indpred IS NULL
    ORDER BY i.relname, k.ord;
"""


# PostgreSQL Data Fetcher Implementation
class PostgresFetcher(DataFetcher):

    def __init__(self, config=None, schema: str = "public"):
        self.config = config if config is not None else PGSQL_CONFIG
        self.schema = schema
        self.conn: Optional[PostgresConnection] = None

    def connect(self):
        """Create and return a read-only, autocommit PostgreSQL connection."""
        try:
            self.conn = psycopg2.connect(**self.config)
            self.conn.set_session(readonly=True, autocommit=True)
        except psycopg2.OperationalError as e:
            logger.error(f"PostgreSQL connection failed: {e}")
            raise ConnectivityError(f"Unable to connect to PostgreSQL: {e}") from e
        logger.info(f"Connected to PostgreSQL database {self.config.get('dbname', '')}")
        return self.conn

    def close(self):
        if self.conn:
            self.conn.close()
            self.conn = None

    def is_connected(self) -> bool:
        return self.conn is not None and self.conn.closed == 0

    def _query(self, query, params=None) -> List[Tuple[Any, ...]]:
        assert self.conn is not None, "Connection not established. Call connect() first."
        with self.conn.cursor() as cursor:
            cursor.execute(query, params)
            return list(cursor.fetchall())

    def get_table_list(self):
        """Fetch the list of base tables in the configured schema."""
        return [row[0] for row in self._query(TABLES_QUERY, (self.schema,))]

    def get_table_columns(self, table_name: str):
        rows = self._query(COLUMNS_QUERY, (self.schema, table_name))
        return [
            ColumnDescriptor(
                name=row[0],
                data_type=row[1],
                is_nullable=row[2] == "YES",
                default=row[3],
                ordinal_position=int(row[4]),
                is_identity=bool(row[5]),
            )
            for row in rows
        ]

    def get_foreign_keys(self, table_name: str):
        """Fetch single-column foreign keys declared on a table."""
        grouped = OrderedDict()
        for row in self._query(FOREIGN_KEYS_QUERY, (self.schema, table_name)):
            grouped.setdefault(row[0], []).append(row)

        foreign_keys = []
        for name, rows in grouped.items():
            if len(rows) > 1:
                logger.warning(f"Skipping composite foreign key {name} on {table_name}")
                continue
            _, column, ref_table, ref_column, update_rule, delete_rule = rows[0]
            foreign_keys.append(ForeignKeyDescriptor(
                name=name,
                table=table_name,
                column=column,
                referenced_table=ref_table,
                referenced_column=ref_column,
                update_rule=update_rule or "NO ACTION",
                delete_rule=delete_rule or "NO ACTION",
            ))
        return foreign_keys

    def get_indexes(self, table_name: str):
        grouped = OrderedDict()
        for index_name, column, is_unique in self._query(INDEXES_QUERY, (self.schema, table_name)):
            entry = grouped.setdefault(index_name, {"columns": [], "unique": bool(is_unique)})
            entry["columns"].append(column)
        return [
            IndexDescriptor(name=name, table=table_name, columns=tuple(entry["columns"]), is_unique=entry["unique"])
            for name, entry in grouped.items()
        ]

    # Fetch data in batches
    # Rows come back in physical (ctid) order, stable while the table is not written to.
    def fetch_data_in_batch(self, table: TableDescriptor, offset: int, batch_size: int):
        """Fetch a batch of data from PostgreSQL using LIMIT and OFFSET."""
        query = sql.SQL("SELECT {columns} FROM {table} ORDER BY ctid LIMIT %s OFFSET %s;").format(
            columns=sql.SQL(", ").join(sql.Identifier(c) for c in table.column_names),
            table=sql.Identifier(self.schema, table.name),
        )
        return self._query(query, (batch_size, offset))

    def get_total_rows(self, table_name: str):
        """Get the total number of rows in a PostgreSQL table."""
        query = sql.SQL("SELECT COUNT(*) FROM {table};").format(
            table=sql.Identifier(self.schema, table_name),
        )
        rows = self._query(query)
        if not rows:
            return 0
        return int(rows[0][0])
