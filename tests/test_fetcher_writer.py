import logging

import psycopg2
from psycopg2 import sql
import pymysql
import pytest

from conftest import col
from pgsql_to_mariadb.descriptors import TableDescriptor
from pgsql_to_mariadb.errors import ConnectivityError
from pgsql_to_mariadb.mariadb_writer import MariaDBWriter
from pgsql_to_mariadb.pgsql_fetcher import PostgresFetcher


def cursor_of(conn):
    return conn.cursor.return_value.__enter__.return_value


@pytest.fixture
def pg_conn(mocker):
    conn = mocker.MagicMock(closed=0)
    mocker.patch("pgsql_to_mariadb.pgsql_fetcher.psycopg2.connect", return_value=conn)
    return conn


@pytest.fixture
def pg(pg_conn):
    fetcher = PostgresFetcher(config={"host": "pg", "dbname": "shop"}, schema="sales")
    fetcher.connect()
    return fetcher


@pytest.fixture
def maria_conn(mocker):
    conn = mocker.MagicMock(open=True)
    mocker.patch("pgsql_to_mariadb.mariadb_writer.pymysql.connect", return_value=conn)
    return conn


@pytest.fixture
def maria(maria_conn):
    writer = MariaDBWriter(config={"host": "maria", "database": "shop"})
    writer.connect()
    return writer


class TestPostgresFetcher:

    def test_connect_is_read_only(self, pg, pg_conn):
        pg_conn.set_session.assert_called_once_with(readonly=True, autocommit=True)
        assert pg.is_connected()

        pg.close()
        pg_conn.close.assert_called_once()
        assert not pg.is_connected()

    def test_connect_failure_raises_connectivity_error(self, mocker):
        mocker.patch(
            "pgsql_to_mariadb.pgsql_fetcher.psycopg2.connect",
            side_effect=psycopg2.OperationalError("could not connect to server"),
        )
        with pytest.raises(ConnectivityError, match="could not connect"):
            PostgresFetcher(config={}).connect()

    def test_closed_connection_is_reported(self, pg, pg_conn):
        pg_conn.closed = 2
        assert not pg.is_connected()

    def test_table_list_uses_schema(self, pg, pg_conn):
        cursor_of(pg_conn).fetchall.return_value = [("orders",), ("users",)]

        assert pg.get_table_list() == ["orders", "users"]
        assert cursor_of(pg_conn).execute.call_args[0][1] == ("sales",)

    def test_columns(self, pg, pg_conn):
        cursor_of(pg_conn).fetchall.return_value = [
            ("id", "integer", "NO", "nextval('users_id_seq'::regclass)", 1, 1),
            ("name", "character varying", "YES", None, 2, 0),
        ]

        columns = pg.get_table_columns("users")

        assert [c.name for c in columns] == ["id", "name"]
        assert columns[0].is_identity and not columns[0].is_nullable
        assert columns[1].is_nullable and not columns[1].is_identity
        assert cursor_of(pg_conn).execute.call_args[0][1] == ("sales", "users")

    def test_composite_foreign_keys_are_skipped(self, pg, pg_conn, caplog):
        cursor_of(pg_conn).fetchall.return_value = [
            ("orders_user_id_fkey", "user_id", "users", "id", "NO ACTION", "CASCADE"),
            ("orders_sku_fkey", "sku", "products", "sku", "NO ACTION", "NO ACTION"),
            ("orders_sku_fkey", "warehouse", "products", "warehouse", "NO ACTION", "NO ACTION"),
        ]

        with caplog.at_level(logging.WARNING):
            foreign_keys = pg.get_foreign_keys("orders")

        assert len(foreign_keys) == 1
        assert foreign_keys[0].referenced_table == "users"
        assert foreign_keys[0].delete_rule == "CASCADE"
        assert "composite foreign key orders_sku_fkey" in caplog.text

    def test_indexes_are_grouped(self, pg, pg_conn):
        cursor_of(pg_conn).fetchall.return_value = [
            ("orders_a_b_idx", "a", False),
            ("orders_a_b_idx", "b", False),
            ("orders_code_key", "code", True),
        ]

        indexes = pg.get_indexes("orders")

        assert [(i.name, i.columns, i.is_unique) for i in indexes] == [
            ("orders_a_b_idx", ("a", "b"), False),
            ("orders_code_key", ("code",), True),
        ]

    def test_fetch_page_params(self, pg, pg_conn):
        cursor_of(pg_conn).fetchall.return_value = [(1, "ann")]
        table = TableDescriptor.build("users", [col("id", position=1), col("name", "text", position=2)])

        assert pg.fetch_data_in_batch(table, 200, 100) == [(1, "ann")]
        query, params = cursor_of(pg_conn).execute.call_args[0]
        assert isinstance(query, sql.Composed)
        assert params == (100, 200)

    def test_total_rows(self, pg, pg_conn):
        cursor_of(pg_conn).fetchall.return_value = [(250,)]
        assert pg.get_total_rows("users") == 250


class TestMariaDBWriter:

    def test_connect_disables_autocommit(self, maria, mocker):
        pymysql.connect.assert_called_once_with(host="maria", database="shop", autocommit=False)
        assert maria.is_connected()

    def test_connect_failure_raises_connectivity_error(self, mocker):
        mocker.patch(
            "pgsql_to_mariadb.mariadb_writer.pymysql.connect",
            side_effect=pymysql.err.OperationalError(2003, "Can't connect to MySQL server"),
        )
        with pytest.raises(ConnectivityError, match="Can't connect"):
            MariaDBWriter(config={}).connect()

    def test_insert_batch_commits_one_page(self, maria, maria_conn):
        inserted = maria.insert_batch("users", ["id", "name"], [(1, "ann"), (2, None)])

        assert inserted == 2
        maria_conn.begin.assert_called_once()
        cursor = cursor_of(maria_conn)
        assert cursor.execute.call_count == 2
        assert cursor.execute.call_args_list[0][0] == ("INSERT INTO `users` (`id`, `name`) VALUES (%s, %s)", (1, "ann"))
        maria_conn.commit.assert_called_once()
        maria_conn.rollback.assert_not_called()

    def test_insert_batch_rolls_back_on_error(self, maria, maria_conn):
        cursor_of(maria_conn).execute.side_effect = [None, pymysql.err.DataError(1406, "Data too long")]

        with pytest.raises(pymysql.err.DataError):
            maria.insert_batch("users", ["id"], [(1,), (2,), (3,)])

        maria_conn.rollback.assert_called_once()
        maria_conn.commit.assert_not_called()

    def test_insert_batch_escapes_percent_in_names(self, maria, maria_conn):
        maria.insert_batch("stats", ["growth%"], [(5,)])
        query = cursor_of(maria_conn).execute.call_args[0][0]
        assert query == "INSERT INTO `stats` (`growth%%`) VALUES (%s)"

    def test_empty_page_is_a_no_op(self, maria, maria_conn):
        assert maria.insert_batch("users", ["id"], []) == 0
        maria_conn.begin.assert_not_called()

    def test_execute_rolls_back_on_error(self, maria, maria_conn):
        cursor_of(maria_conn).execute.side_effect = pymysql.err.ProgrammingError(1064, "syntax")

        with pytest.raises(pymysql.err.ProgrammingError):
            maria.execute("ALTER TABLE `t` ADD oops")

        maria_conn.rollback.assert_called_once()

    def test_create_table_logs_statement_on_error(self, maria, maria_conn, caplog):
        cursor_of(maria_conn).execute.side_effect = pymysql.err.OperationalError(1005, "Can't create table")

        with caplog.at_level(logging.ERROR), pytest.raises(pymysql.err.OperationalError):
            maria.create_table("CREATE TABLE IF NOT EXISTS `t` (`id` INT)", "t")

        assert "SQL was: CREATE TABLE IF NOT EXISTS `t`" in caplog.text

    @pytest.mark.parametrize("check, args", [
        ("table_exists", ("users",)),
        ("column_exists", ("users", "id")),
        ("has_index_on", ("users", "code")),
        ("index_exists", ("users", "users_code_key")),
        ("constraint_exists", ("orders", "orders_user_id_fkey")),
    ])
    def test_existence_checks(self, maria, maria_conn, check, args):
        cursor = cursor_of(maria_conn)
        cursor.fetchone.return_value = (1,)
        assert getattr(maria, check)(*args) is True
        assert cursor.execute.call_args[0][1] == args

        cursor.fetchone.return_value = None
        assert getattr(maria, check)(*args) is False
        assert maria_conn.commit.call_count == 2

    def test_requires_connection(self):
        with pytest.raises(RuntimeError):
            MariaDBWriter(config={}).table_exists("users")
