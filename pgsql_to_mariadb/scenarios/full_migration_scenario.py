from pgsql_to_mariadb.pgsql_to_mariadb_manager import PgSQLtoMariaDBFullMigrationManager


class FullMigrationScenario:
    """Perform a full migration of all tables from PostgreSQL to MariaDB."""

    def __init__(self, fetcher=None, writer=None, settings=None, on_progress=None):
        self.manager = PgSQLtoMariaDBFullMigrationManager(fetcher, writer, settings, on_progress)

    def run(self):
        with self.manager:
            return self.manager.run()
