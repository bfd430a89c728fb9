from pgsql_to_mariadb.pgsql_to_mariadb_manager import PgSQLtoMariaDBSingleTableManager


class SingleTableScenario:
    """Migrate a single specified table."""

    def __init__(self, table_name, fetcher=None, writer=None, settings=None, on_progress=None):
        self.table_name = table_name
        self.manager = PgSQLtoMariaDBSingleTableManager(table_name, fetcher, writer, settings, on_progress)

    def run(self):
        with self.manager:
            return self.manager.run()
