import json
import logging

import pytest

from pgsql_to_mariadb import runner
from pgsql_to_mariadb.errors import ConnectivityError
from pgsql_to_mariadb.report import MigrationReport, Stage
from pgsql_to_mariadb.scenarios import FullMigrationScenario, SingleTableScenario


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("MIGRATION_BATCH_SIZE", "TABLE_ENGINE", "TABLE_CHARSET", "TABLE_COLLATION", "PGSQL_SCHEMA"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def scenario(mocker):
    mocker.patch("pgsql_to_mariadb.runner.configure_logging")
    fake = mocker.MagicMock()
    fake.run.return_value = MigrationReport()
    mocker.patch("pgsql_to_mariadb.runner.build_scenario", return_value=fake)
    return fake


def test_config_preview_masks_passwords(mocker, capsys):
    mocker.patch("pgsql_to_mariadb.runner.PGSQL_CONFIG", {"host": "pg", "password": "s3cret"})
    mocker.patch("pgsql_to_mariadb.runner.MARIADB_CONFIG", {"host": "maria", "password": "hunter2"})

    assert runner.main(["--config-preview"]) == runner.EXIT_OK

    out = capsys.readouterr().out
    assert "'host': 'pg'" in out
    assert "s3cret" not in out and "hunter2" not in out
    assert "***" in out


def test_no_scenario_prints_help(capsys):
    assert runner.main([]) == runner.EXIT_OK
    assert "usage:" in capsys.readouterr().out


def test_single_requires_table(capsys):
    with pytest.raises(SystemExit) as exc:
        runner.main(["single"])
    assert exc.value.code == 2
    assert "--table is required" in capsys.readouterr().err


def test_dry_run_does_not_connect(scenario, capsys):
    assert runner.main(["single", "--table", "users", "--dry-run", "--batch-size", "500"]) == runner.EXIT_OK

    out = capsys.readouterr().out
    assert "would execute scenario 'single'" in out
    assert "Would migrate single table: users" in out
    assert "batch size: 500" in out
    scenario.run.assert_not_called()


def test_declined_confirmation_cancels(scenario, capsys):
    code = runner.main(["full"], input_func=lambda prompt: "no")

    assert code == runner.EXIT_CANCELLED
    assert "Operation cancelled by user." in capsys.readouterr().out
    scenario.run.assert_not_called()


def test_confirmation_accepts_yes(scenario, capsys):
    assert runner.main(["full"], input_func=lambda prompt: " yes ") == runner.EXIT_OK
    assert "WARNING" in capsys.readouterr().out
    scenario.run.assert_called_once()


def test_partial_failure_exit_code(scenario):
    report = MigrationReport()
    report.failed("orders", Stage.INDEX, "duplicate key name")
    scenario.run.return_value = report

    assert runner.main(["full", "--yes"]) == runner.EXIT_PARTIAL


def test_connectivity_error_aborts(scenario, tmp_path, caplog):
    scenario.run.side_effect = ConnectivityError("Unable to connect to MariaDB: refused")
    scenario.manager.report = MigrationReport()
    report_path = tmp_path / "report.json"

    with caplog.at_level(logging.ERROR):
        code = runner.main(["full", "--yes", "--report", str(report_path)])

    assert code == runner.EXIT_ABORTED
    assert "Migration aborted" in caplog.text
    payload = json.loads(report_path.read_text(encoding="utf-8"))
    assert payload["aborted"] == "Unable to connect to MariaDB: refused"


def test_report_is_written_as_csv(scenario, tmp_path):
    report = MigrationReport()
    report.success("users", Stage.CREATE)
    scenario.run.return_value = report
    report_path = tmp_path / "report.csv"

    runner.main(["create-tables", "--yes", "--report", str(report_path)])

    lines = report_path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "table,stage,status,reason,rows"
    assert lines[1].startswith("users,create,success")


def test_cli_overrides_settings(mocker):
    mocker.patch("pgsql_to_mariadb.runner.configure_logging")
    build = mocker.patch("pgsql_to_mariadb.runner.build_scenario")
    build.return_value.run.return_value = MigrationReport()

    runner.main(["full", "--yes", "--batch-size", "250", "--engine", "Aria", "--schema", "sales"])

    settings = build.call_args[0][1]
    assert (settings.batch_size, settings.engine, settings.schema) == (250, "Aria", "sales")
    assert settings.charset == "utf8mb4"


def test_build_scenario_picks_the_scenario():
    parser = runner.build_parser()
    settings = runner.MigrationSettings()

    full = runner.build_scenario(parser.parse_args(["full"]), settings)
    single = runner.build_scenario(parser.parse_args(["single", "--table", "orders"]), settings)

    assert isinstance(full, FullMigrationScenario)
    assert isinstance(single, SingleTableScenario)
    assert single.manager.table_name == "orders"
    assert full.manager.settings is settings


def test_log_file_uses_bracketed_format(tmp_path):
    log_file = tmp_path / "migration.log"
    root = logging.getLogger()
    before = list(root.handlers)
    try:
        runner.configure_logging(log_file=str(log_file))
        logging.getLogger("pgsql_to_mariadb.test").warning("Skipping foreign key fk_x")
    finally:
        for handler in root.handlers[:]:
            if handler not in before:
                handler.close()
                root.removeHandler(handler)

    assert "[WARNING] Skipping foreign key fk_x" in log_file.read_text(encoding="utf-8")
