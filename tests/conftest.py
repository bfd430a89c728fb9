import re

import pytest

from pgsql_to_mariadb.base import DataFetcher, DataWriter
from pgsql_to_mariadb.config import MigrationSettings
from pgsql_to_mariadb.descriptors import ColumnDescriptor, ForeignKeyDescriptor, IndexDescriptor
from pgsql_to_mariadb.introspection import MetadataCache, SchemaIntrospector
from pgsql_to_mariadb.report import MigrationReport

COLUMN_RE = re.compile(r"`([^`]+)` [A-Z]")
PK_RE = re.compile(r"PRIMARY KEY \(`([^`]+)`")
CREATE_TABLE_RE = re.compile(r"CREATE TABLE IF NOT EXISTS `([^`]+)`")
FK_RE = re.compile(
    r"ALTER TABLE `([^`]+)` ADD CONSTRAINT `([^`]+)` FOREIGN KEY \(`([^`]+)`\) "
    r"REFERENCES `([^`]+)` \(`([^`]+)`\) ON DELETE (.+) ON UPDATE (.+)$"
)
INDEX_RE = re.compile(r"CREATE (UNIQUE )?INDEX `([^`]+)` ON `([^`]+)` \((.+)\)$")


def col(name, data_type="integer", nullable=True, position=1, identity=False, default=None):
    return ColumnDescriptor(
        name=name,
        data_type=data_type,
        is_nullable=nullable,
        default=default,
        ordinal_position=position,
        is_identity=identity,
    )


def fk(table, column, ref_table, ref_column="id", name=None, on_update="NO ACTION", on_delete="NO ACTION"):
    return ForeignKeyDescriptor(
        name=name or f"{table}_{column}_fkey",
        table=table,
        column=column,
        referenced_table=ref_table,
        referenced_column=ref_column,
        update_rule=on_update,
        delete_rule=on_delete,
    )


class FakeFetcher(DataFetcher):
    """In-memory source database.

    `tables` maps a table name to a dict with `columns` (ColumnDescriptor list),
    `rows` (list of dicts), and optional `foreign_keys` / `indexes`.
    """

    def __init__(self, tables=None, broken_tables=()):
        self.tables = tables or {}
        self.broken_tables = set(broken_tables)
        self.connected = False
        self.page_requests = []
        self.column_reads = []

    def connect(self):
        self.connected = True
        return self

    def close(self):
        self.connected = False

    def is_connected(self):
        return self.connected

    def get_table_list(self):
        return list(self.tables)

    def get_table_columns(self, table_name):
        self.column_reads.append(table_name)
        if table_name in self.broken_tables:
            raise RuntimeError(f"permission denied for table {table_name}")
        return list(self.tables[table_name]["columns"])

    def get_foreign_keys(self, table_name):
        return list(self.tables[table_name].get("foreign_keys", []))

    def get_indexes(self, table_name):
        return list(self.tables[table_name].get("indexes", []))

    def fetch_data_in_batch(self, table, offset, batch_size):
        self.page_requests.append((table.name, offset, batch_size))
        rows = self.tables[table.name].get("rows", [])
        return [tuple(row.get(c) for c in table.column_names) for row in rows[offset:offset + batch_size]]

    def get_total_rows(self, table_name):
        return len(self.tables[table_name].get("rows", []))


class FakeWriter(DataWriter):
    """In-memory destination that understands the DDL this package renders."""

    def __init__(self, failing_tables=(), failing_statements=(), reject_row=None):
        self.failing_tables = set(failing_tables)
        self.failing_statements = list(failing_statements)
        self.reject_row = reject_row
        self.connected = False
        self.tables = {}
        self.primary_keys = {}
        self.indexes = {}
        self.constraints = {}
        self.committed_pages = []
        self.log = []

    def connect(self):
        self.connected = True
        return self

    def close(self):
        self.connected = False

    def is_connected(self):
        return self.connected

    def create_table(self, statement, table_name):
        self.log.append(("create", table_name))
        if table_name in self.failing_tables:
            raise RuntimeError(f"Can't create table `{table_name}`")
        name = CREATE_TABLE_RE.search(statement).group(1)
        if name in self.tables:
            return
        self.tables[name] = {"columns": COLUMN_RE.findall(statement), "rows": []}
        pk = PK_RE.search(statement)
        if pk:
            self.primary_keys[name] = pk.group(1)

    def insert_batch(self, table_name, column_names, rows):
        self.log.append(("insert", table_name))
        pending = []
        for row in rows:
            if self.reject_row and self.reject_row(table_name, row):
                raise RuntimeError(f"Incorrect value for row {row!r}")
            pending.append(dict(zip(column_names, row)))
        self.tables[table_name]["rows"].extend(pending)
        self.committed_pages.append((table_name, len(pending)))
        return len(pending)

    def execute(self, statement, params=None):
        for fragment in self.failing_statements:
            if fragment in statement:
                raise RuntimeError(f"Statement failed: {statement}")
        match = FK_RE.search(statement)
        if match:
            table, name, column, ref_table, ref_column, on_delete, on_update = match.groups()
            self.log.append(("constraint", table))
            self.constraints.setdefault(table, {})[name] = {
                "column": column,
                "referenced_table": ref_table,
                "referenced_column": ref_column,
                "on_delete": on_delete,
                "on_update": on_update,
            }
            return
        match = INDEX_RE.search(statement)
        if match:
            unique, name, table, key_parts = match.groups()
            self.log.append(("index", table))
            self.indexes.setdefault(table, {})[name] = {
                "columns": re.findall(r"`([^`]+)`", key_parts),
                "unique": bool(unique),
            }
            return
        raise AssertionError(f"Unexpected statement: {statement}")

    def table_exists(self, table_name):
        return table_name in self.tables

    def column_exists(self, table_name, column_name):
        return table_name in self.tables and column_name in self.tables[table_name]["columns"]

    def has_index_on(self, table_name, column_name):
        if self.primary_keys.get(table_name) == column_name:
            return True
        return any(ix["columns"][0] == column_name for ix in self.indexes.get(table_name, {}).values())

    def index_exists(self, table_name, index_name):
        return index_name in self.indexes.get(table_name, {})

    def constraint_exists(self, table_name, constraint_name):
        return constraint_name in self.constraints.get(table_name, {})

    def rows(self, table_name):
        return self.tables[table_name]["rows"]


@pytest.fixture
def settings():
    return MigrationSettings(batch_size=100)


@pytest.fixture
def report():
    return MigrationReport()


@pytest.fixture
def cache():
    return MetadataCache()


@pytest.fixture
def shop_tables():
    """users <- orders <- order_items, plus a users.code lookup column."""
    return {
        "order_items": {
            "columns": [
                col("id", identity=True, nullable=False, position=1),
                col("order_id", nullable=False, position=2),
                col("quantity", nullable=False, position=3),
            ],
            "rows": [{"id": i, "order_id": 1 + i % 3, "quantity": ""} for i in range(1, 6)],
            "foreign_keys": [fk("order_items", "order_id", "orders", on_delete="cascade")],
        },
        "orders": {
            "columns": [
                col("id", identity=True, nullable=False, position=1),
                col("user_id", nullable=False, position=2),
                col("note", "text", position=3),
            ],
            "rows": [{"id": i, "user_id": 1, "note": None} for i in range(1, 4)],
            "foreign_keys": [fk("orders", "user_id", "users", on_delete="CASCADE", on_update="bogus")],
            "indexes": [IndexDescriptor("orders_user_id_idx", "orders", ("user_id",))],
        },
        "users": {
            "columns": [
                col("id", identity=True, nullable=False, position=1),
                col("name", "character varying", position=2),
                col("active", "boolean", nullable=False, position=3),
            ],
            "rows": [
                {"id": 1, "name": "ann", "active": True},
                {"id": 2, "name": "", "active": "false"},
                {"id": 3, "name": None, "active": None},
            ],
            "indexes": [IndexDescriptor("users_name_key", "users", ("name",), is_unique=True)],
        },
    }


@pytest.fixture
def fetcher(shop_tables):
    f = FakeFetcher(shop_tables)
    f.connect()
    return f


@pytest.fixture
def writer():
    w = FakeWriter()
    w.connect()
    return w


@pytest.fixture
def introspector(fetcher):
    return SchemaIntrospector(fetcher)
