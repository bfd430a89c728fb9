import logging
from typing import Any, Optional, Sequence

import pymysql
from pymysql.connections import Connection

from pgsql_to_mariadb.base import DataWriter
from pgsql_to_mariadb.config import MARIADB_CONFIG
from pgsql_to_mariadb.errors import ConnectivityError
from pgsql_to_mariadb.mariadb_ddl import quote_identifier

logger = logging.getLogger(__name__)


class MariaDBWriter(DataWriter):
    def __init__(self, config=None):
        self.config = config if config is not None else MARIADB_CONFIG
        self.conn: Optional[Connection] = None

    def connect(self):
        """Create and return a MariaDB connection with autocommit off."""
        try:
            self.conn = pymysql.connect(**self.config, autocommit=False)
        except pymysql.err.OperationalError as e:
            logger.error(f"MariaDB connection failed: {e}")
            raise ConnectivityError(f"Unable to connect to MariaDB: {e}") from e
        logger.info(f"Connected to MariaDB database {self.config.get('database', '')}")
        return self.conn

    def close(self):
        if self.conn:
            self.conn.close()
            self.conn = None

    def is_connected(self) -> bool:
        return self.conn is not None and bool(self.conn.open)

    def _require_conn(self) -> Connection:
        if not self.conn:
            raise RuntimeError("MariaDB connection not established")
        return self.conn

    def _rollback(self):
        if self.is_connected():
            self.conn.rollback()

    def _exists(self, query: str, params: Sequence[Any]) -> bool:
        conn = self._require_conn()
        with conn.cursor() as cursor:
            cursor.execute(query, params)
            found = cursor.fetchone() is not None
        # Close the read snapshot so later checks see DDL from this session.
        conn.commit()
        return found

    def execute(self, statement: str, params=None) -> None:
        conn = self._require_conn()
        try:
            with conn.cursor() as cursor:
                cursor.execute(statement, params)
            conn.commit()
        except Exception:
            self._rollback()
            raise

    def create_table(self, statement: str, table_name: str) -> None:
        try:
            self.execute(statement)
        except Exception as e:
            logger.error(f"Error creating table {table_name}: {e}")
            logger.error(f"SQL was: {statement}")
            raise
        logger.info(f"Created table {table_name}")

    def insert_batch(self, table_name, column_names, rows) -> int:
        """Insert a page of rows one at a time in one transaction."""
        if not rows:
            return 0
        conn = self._require_conn()
        # pymysql interpolates with %, so literal % in identifiers is doubled.
        columns = ", ".join(quote_identifier(c).replace("%", "%%") for c in column_names)
        placeholders = ", ".join(["%s"] * len(column_names))
        table = quote_identifier(table_name).replace("%", "%%")
        insert_query = f"INSERT INTO {table} ({columns}) VALUES ({placeholders})"

        conn.begin()
        try:
            with conn.cursor() as cursor:
                for row in rows:
                    cursor.execute(insert_query, tuple(row))
            conn.commit()
        except Exception as e:
            self._rollback()
            logger.error(f"Error inserting into {table_name}: {e}")
            raise
        return len(rows)

    def table_exists(self, table_name: str) -> bool:
        return self._exists(
            "SELECT 1 FROM information_schema.TABLES "
            "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = %s LIMIT 1",
            (table_name,),
        )

    def column_exists(self, table_name: str, column_name: str) -> bool:
        return self._exists(
            "SELECT 1 FROM information_schema.COLUMNS "
            "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = %s AND COLUMN_NAME = %s LIMIT 1",
            (table_name, column_name),
        )

    def has_index_on(self, table_name: str, column_name: str) -> bool:
        return self._exists(
            "SELECT 1 FROM information_schema.STATISTICS "
            "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = %s AND COLUMN_NAME = %s "
            "AND SEQ_IN_INDEX = 1 LIMIT 1",
            (table_name, column_name),
        )

    def index_exists(self, table_name: str, index_name: str) -> bool:
        return self._exists(
            "SELECT 1 FROM information_schema.STATISTICS "
            "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = %s AND INDEX_NAME = %s LIMIT 1",
            (table_name, index_name),
        )

    def constraint_exists(self, table_name: str, constraint_name: str) -> bool:
        return self._exists(
            "SELECT 1 FROM information_schema.TABLE_CONSTRAINTS "
            "WHERE CONSTRAINT_SCHEMA = DATABASE() AND TABLE_NAME = %s "
            "AND CONSTRAINT_NAME = %s AND CONSTRAINT_TYPE = 'FOREIGN KEY' LIMIT 1",
            (table_name, constraint_name),
        )
