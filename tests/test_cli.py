"""Unit tests describing the CLI presentation layer contract."""

from __future__ import annotations

import argparse
import json
from datetime import datetime
from pathlib import Path
from unittest.mock import Mock

import openpyxl
import pytest

from graphpos_reports import cli, core_logic, data_manager
from graphpos_reports.constants import SheetName


READ_COMMANDS = {
    "bundle",
    "cash",
    "financial",
    "sales",
    "customers",
    "products",
}


def _registered_choices(parser: argparse.ArgumentParser) -> set[str]:
    for action in parser._actions:
        if isinstance(action, argparse._SubParsersAction):
            return set(action.choices)
    return set()


# ---------------------------------------------------------------------------
# Parser construction
# ---------------------------------------------------------------------------


def test_build_parser_sets_program_metadata():
    """build_parser should set user-facing program metadata."""

    parser = cli.build_parser()
    assert isinstance(parser, argparse.ArgumentParser)
    assert parser.prog == "graphpos-reports"
    assert "GraphPOS" in (parser.description or "")


def test_configure_subcommands_registers_every_command(cli_parser):
    command_table = cli.configure_subcommands(cli_parser)
    assert set(command_table) == READ_COMMANDS | {"export"}
    assert _registered_choices(cli_parser) == READ_COMMANDS | {"export"}


def test_register_read_commands_returns_command_specs(subparsers_action):
    specs = cli.register_read_commands(subparsers_action)
    assert set(specs) == READ_COMMANDS
    for spec in specs.values():
        assert isinstance(spec, cli.CommandSpec)
        assert spec.help_text


def test_tab_command_parses_filters(cli_parser):
    cli.configure_subcommands(cli_parser)
    namespace = cli_parser.parse_args(
        ["sales", "--start-date", "2024-05-01", "--end-date", "2024-05-31", "--status", "entregue"]
    )
    assert namespace.command == "sales"
    assert namespace.tab == "sales"
    filters = cli.translate_filters(namespace)
    assert filters == core_logic.ReportFilters(start_date="2024-05-01", end_date="2024-05-31", status="entregue")


def test_filters_default_to_all_statuses(cli_parser):
    cli.configure_subcommands(cli_parser)
    namespace = cli_parser.parse_args(["bundle"])
    assert cli.translate_filters(namespace) == core_logic.ReportFilters(status="all")


def test_status_choices_are_validated(cli_parser):
    cli.configure_subcommands(cli_parser)
    with pytest.raises(SystemExit):
        cli_parser.parse_args(["cash", "--status", "arquivado"])


def test_cash_command_accepts_period(cli_parser):
    cli.configure_subcommands(cli_parser)
    namespace = cli_parser.parse_args(["cash", "--period", "shift"])
    assert cli.translate_period(namespace) == "shift"
    assert cli.translate_period(cli_parser.parse_args(["cash"])) == "daily"


def test_period_is_only_offered_where_the_cash_series_is_printed(cli_parser):
    cli.configure_subcommands(cli_parser)
    with pytest.raises(SystemExit):
        cli_parser.parse_args(["sales", "--period", "weekly"])
    with pytest.raises(SystemExit):
        cli_parser.parse_args(["cash", "--period", "hourly"])


def test_register_export_command_configures_arguments(subparsers_action, cli_parser, tmp_path):
    spec = cli.register_export_command(subparsers_action)
    spec.register(subparsers_action)
    namespace = cli_parser.parse_args(
        ["export", "--tab", "financial", "--format", "xlsx", "--output", str(tmp_path / "f.xlsx")]
    )
    assert namespace.tab == "financial"
    assert namespace.export_format == "xlsx"
    assert namespace.output == tmp_path / "f.xlsx"


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def test_build_command_table_indexes_specs(command_spec_iterable):
    table = cli.build_command_table(command_spec_iterable)
    assert list(table) == ["alpha", "beta", "gamma"]


def test_build_command_table_rejects_duplicates(command_spec_iterable):
    with pytest.raises(ValueError):
        cli.build_command_table([*command_spec_iterable, command_spec_iterable[0]])


def test_dispatch_command_invokes_executor(context):
    execute = Mock(return_value=0)
    spec = cli.CommandSpec("ping", "ping help", lambda subparsers: subparsers.add_parser("ping"), execute)
    args = argparse.Namespace(command="ping")

    assert cli.dispatch_command(context, args, {"ping": spec}) == 0
    execute.assert_called_once_with(context, args)


def test_dispatch_command_unknown_raises(context):
    with pytest.raises(KeyError):
        cli.dispatch_command(context, argparse.Namespace(command="missing"), {})


@pytest.mark.parametrize(
    "error, code",
    [
        (core_logic.InvalidFilterError("bad date"), 2),
        (FileNotFoundError("config.ini"), 3),
        (core_logic.SourceLoadError("orders", OSError("io")), 4),
        (core_logic.ReportTimeoutError("slow"), 4),
        (RuntimeError("schema"), 1),
    ],
)
def test_handle_cli_error_maps_exit_codes(error, code):
    assert cli.handle_cli_error(error) == code


# ---------------------------------------------------------------------------
# End-to-end through main
# ---------------------------------------------------------------------------


@pytest.fixture
def seeded_config(config_factory, rows) -> Path:
    """Config whose workbook holds one paid order, its payment and an expense."""

    bundle = config_factory()
    workbook = data_manager.open_workbook(bundle.workbook_path)
    data_manager.append_record(
        workbook, SheetName.ORDERS, rows.paid_order("O1", total="120", created_at=datetime(2024, 5, 10, 10))
    )
    data_manager.append_record(
        workbook, SheetName.ORDER_PAYMENTS, rows.payment("PG1", amount="120", created_at=datetime(2024, 5, 10, 10))
    )
    data_manager.append_record(
        workbook, SheetName.FINANCIAL_ENTRIES, rows.entry("F1", amount="20", occurred_at=datetime(2024, 5, 11, 9))
    )
    data_manager.save_workbook(workbook, bundle.workbook_path)
    return bundle.config_path


def test_main_prints_single_tab_json(seeded_config, capsys):
    exit_code = cli.main(
        ["--config", str(seeded_config), "cash", "--start-date", "2024-05-01", "--end-date", "2024-05-31"]
    )

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["summary"] == {"totalIn": 120.0, "totalOut": 20.0, "openingBalance": 0.0, "closingBalance": 100.0}


def test_main_exports_csv(seeded_config, tmp_path, capsys):
    output = tmp_path / "caixa.csv"
    exit_code = cli.main(
        [
            "--config",
            str(seeded_config),
            "export",
            "--tab",
            "cash",
            "--output",
            str(output),
            "--start-date",
            "2024-05-01",
            "--end-date",
            "2024-05-31",
        ]
    )

    assert exit_code == 0
    assert "[SUCCESS] 2 rows" in capsys.readouterr().out
    assert output.read_text(encoding="utf-8-sig").splitlines()[0].startswith("Data;Tipo;Origem")


def test_main_reports_invalid_dates_with_exit_code(seeded_config):
    assert cli.main(["--config", str(seeded_config), "bundle", "--start-date", "05/2024"]) == 2


def test_main_reports_missing_config(tmp_path):
    assert cli.main(["--config", str(tmp_path / "absent.ini"), "bundle"]) == 3


def test_main_rejects_schema_mismatch(config_factory):
    bundle = config_factory(schema_version="0.1.0")
    assert cli.main(["--config", str(bundle.config_path), "bundle"]) == 1


def test_main_never_writes_the_record_store(seeded_config):
    settings = data_manager.parse_settings(data_manager.read_config(seeded_config), base_path=seeded_config.parent)
    before = settings.data_file.stat().st_mtime_ns

    cli.main(["--config", str(seeded_config), "bundle"])

    assert settings.data_file.stat().st_mtime_ns == before


def test_main_prints_cash_series_by_shift(seeded_config, capsys):
    exit_code = cli.main(
        [
            "--config",
            str(seeded_config),
            "cash",
            "--start-date",
            "2024-05-01",
            "--end-date",
            "2024-05-31",
            "--period",
            "shift",
        ]
    )

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["period"] == "shift"
    assert [(bucket["label"], bucket["net"]) for bucket in payload["series"]] == [
        ("10/05/2024 - Manhã", 120.0),
        ("11/05/2024 - Manhã", -20.0),
    ]


def test_main_xlsx_export_records_company_name(seeded_config, tmp_path):
    output = tmp_path / "financeiro.xlsx"
    exit_code = cli.main(
        [
            "--config",
            str(seeded_config),
            "export",
            "--tab",
            "financial",
            "--format",
            "xlsx",
            "--output",
            str(output),
        ]
    )

    assert exit_code == 0
    workbook = openpyxl.load_workbook(output)
    assert workbook.properties.creator == "Grafica Teste"
    assert workbook.properties.title == "Grafica Teste - financial"
    assert workbook.sheetnames == ["financial"]
