"""CLI runner to invoke migration scenarios."""
import argparse
import logging
import sys

from pgsql_to_mariadb.config import MARIADB_CONFIG, PGSQL_CONFIG, MigrationSettings, masked
from pgsql_to_mariadb.errors import ConnectivityError
from pgsql_to_mariadb.scenarios import CreateTablesScenario, FullMigrationScenario, SingleTableScenario

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_PARTIAL = 1
EXIT_ABORTED = 2
EXIT_CANCELLED = 3

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE_FORMAT = "%(asctime)s - [%(levelname)s] %(message)s"

WARNING_BANNER = """\
############################ WARNING ################################
This script is provided as-is, and you use it at your own risk.
This script migrates schema and data from PostgreSQL to MariaDB.
Ensure all necessary backups are taken before proceeding.
The source database must not be written to while the migration runs.
######################################################################"""


def build_parser():
    parser = argparse.ArgumentParser(description="Run PostgreSQL to MariaDB migration")
    parser.add_argument("scenario", nargs="?", choices=["create-tables", "full", "single"],
                        help="Migration scenario to run")
    parser.add_argument("--table", help="Table name for the single scenario")
    parser.add_argument("--batch-size", type=int, default=None, help="Rows per committed page")
    parser.add_argument("--engine", default=None, help="MariaDB storage engine (default InnoDB)")
    parser.add_argument("--schema", default=None, help="PostgreSQL schema to migrate (default public)")
    parser.add_argument("--dry-run", action="store_true", help="Don't connect to DB; just print actions")
    parser.add_argument("--config-preview", action="store_true", help="Print resolved DB config and exit")
    parser.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    parser.add_argument("--report", help="Write the migration report to this .csv or .json file")
    parser.add_argument("--log-file", help="Also write log messages to this file")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def configure_logging(verbose=False, log_file=None):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    if log_file:
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FILE_FORMAT))
        handler.setLevel(level)
        logging.getLogger().addHandler(handler)


def confirm(input_func=input):
    print(WARNING_BANNER)
    answer = input_func("Type 'YES' to confirm you have read and understood the warning: ")
    return answer.strip().upper() == "YES"


def build_scenario(args, settings):
    if args.scenario == "create-tables":
        return CreateTablesScenario(settings=settings)
    if args.scenario == "full":
        return FullMigrationScenario(settings=settings)
    return SingleTableScenario(args.table, settings=settings)


def main(argv=None, input_func=input):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.config_preview:
        print("PGSQL_CONFIG:")
        print(masked(PGSQL_CONFIG))
        print("\nMARIADB_CONFIG:")
        print(masked(MARIADB_CONFIG))
        return EXIT_OK

    if not args.scenario:
        parser.print_help()
        return EXIT_OK

    if args.scenario == "single" and not args.table:
        parser.error("--table is required for 'single' scenario")

    settings = MigrationSettings.from_env(batch_size=args.batch_size, engine=args.engine, schema=args.schema)

    if args.dry_run:
        print(f"DRY RUN: would execute scenario '{args.scenario}'")
        if args.scenario == "single":
            print(f"Would migrate single table: {args.table}")
        print(f"Schema: {settings.schema}, batch size: {settings.batch_size}, "
              f"engine: {settings.engine}, charset: {settings.charset}, collation: {settings.collation}")
        return EXIT_OK

    if not args.yes and not confirm(input_func):
        print("Operation cancelled by user.")
        return EXIT_CANCELLED

    # Real execution
    configure_logging(args.verbose, args.log_file)

    scenario = build_scenario(args, settings)
    try:
        report = scenario.run()
    except ConnectivityError as e:
        logger.error(f"Migration aborted: {e}")
        report = scenario.manager.report
        report.aborted = report.aborted or str(e)
        exit_code = EXIT_ABORTED
    else:
        exit_code = EXIT_OK if report.succeeded else EXIT_PARTIAL

    if args.report:
        report.write(args.report)
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
