from pgsql_to_mariadb.pgsql_to_mariadb_manager import PgSQLtoMariaDBCreateTablesManager


class CreateTablesScenario:
    """Create all target MariaDB tables based on the PostgreSQL structure."""

    def __init__(self, fetcher=None, writer=None, settings=None, on_progress=None):
        self.manager = PgSQLtoMariaDBCreateTablesManager(fetcher, writer, settings, on_progress)

    def run(self):
        with self.manager:
            return self.manager.run()
