"""Scenario package for migration strategies."""

from .create_tables_scenario import CreateTablesScenario
from .full_migration_scenario import FullMigrationScenario
from .single_table_scenario import SingleTableScenario

__all__ = [
    "CreateTablesScenario",
    "FullMigrationScenario",
    "SingleTableScenario",
]
