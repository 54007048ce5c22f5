"""Command-line entry points for the GraphPOS reporting engine.

All orchestration in this module is limited to argparse wiring and translating
command-line arguments into the filter objects consumed by the business
layer. Every command is read-only: reports are printed as JSON or exported to
CSV/XLSX files, and the record store workbook is never saved back.
"""

from __future__ import annotations

import argparse
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, Mapping, MutableMapping, Optional, Sequence

from . import core_logic, export, log
from .constants import ALL_STATUSES, Granularity, OrderStatus, ReportTab


EXPORT_FORMATS = ("csv", "xlsx")


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="graphpos-reports",
        description="Financial and sales reports for the GraphPOS record store.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (searched upwards from the current directory).",
    )
    return parser


def add_filter_arguments(parser: argparse.ArgumentParser) -> None:
    """Attach the report window and status options shared by every command."""
    parser.add_argument("--start-date", default=None, help="First day of the window (YYYY-MM-DD).")
    parser.add_argument("--end-date", default=None, help="Last day of the window (YYYY-MM-DD).")
    parser.add_argument(
        "--status",
        choices=[ALL_STATUSES, *(member.value for member in OrderStatus)],
        default=ALL_STATUSES,
        help="Restrict orders to one status (default: all).",
    )


def add_period_argument(parser: argparse.ArgumentParser) -> None:
    """Attach the granularity of the cash period series."""
    parser.add_argument(
        "--period",
        choices=[member.value for member in Granularity],
        default=Granularity.DAILY.value,
        help="Bucket the cash series by day, week, month, year or shift (default: daily).",
    )


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    read_specs = register_read_commands(subparsers)
    export_specs = register_export_commands(subparsers)
    return build_command_table([*read_specs.values(), *export_specs.values()])


def register_read_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare commands that print reports as JSON."""
    specs = {
        "bundle": register_bundle_command(subparsers),
        **{tab.value: register_tab_command(subparsers, tab) for tab in ReportTab},
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_export_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare commands that write report tabs to files."""
    specs = {"export": register_export_command(subparsers)}
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_bundle_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``bundle``."""
    name = "bundle"
    help_text = "Print all five reports as one JSON document."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        add_filter_arguments(parser)
        add_period_argument(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_bundle_report)


def register_tab_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    tab: ReportTab,
) -> CommandSpec:
    """Register the parser and executor printing a single report tab."""
    name = tab.value
    help_text = f"Print the {name} report as JSON."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        add_filter_arguments(parser)
        if tab is ReportTab.CASH:
            add_period_argument(parser)
        parser.set_defaults(command=name, tab=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_tab_report)


def register_export_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``export``."""
    name = "export"
    help_text = "Export one report tab to a CSV or XLSX file."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--tab", choices=[tab.value for tab in ReportTab], required=True)
        parser.add_argument("--format", dest="export_format", choices=EXPORT_FORMATS, default="csv")
        parser.add_argument("--output", type=Path, required=True)
        add_filter_arguments(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_export)


def load_runtime_context(config_path: Optional[Path] = None) -> core_logic.RuntimeContext:
    """Resolve the runtime context for CLI operations."""
    context = core_logic.load_runtime_context(Path(config_path) if config_path is not None else None)
    core_logic.ensure_schema_version(context)
    return context


def dispatch_command(
    context: core_logic.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def translate_filters(args: argparse.Namespace) -> core_logic.ReportFilters:
    """Translate CLI args into report filters."""
    return core_logic.ReportFilters(
        start_date=getattr(args, "start_date", None),
        end_date=getattr(args, "end_date", None),
        status=getattr(args, "status", None),
    )


def translate_period(args: argparse.Namespace) -> str:
    """Return the cash series granularity, daily for commands without ``--period``."""
    return getattr(args, "period", None) or Granularity.DAILY.value


def print_json(payload: object) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def run_bundle_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Generate every report and print the full bundle."""
    bundle = core_logic.generate_reports(context, translate_filters(args), cash_period=translate_period(args))
    print_json(export.bundle_to_dict(bundle))
    return 0


def run_tab_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Generate the bundle and print only the requested tab.

    The five reports are always generated together so a single tab never
    disagrees with the others about the same window.
    """
    bundle = core_logic.generate_reports(context, translate_filters(args), cash_period=translate_period(args))
    print_json(export.bundle_to_dict(bundle)[args.tab])
    return 0


def run_export(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Export one tab of the bundle to ``--output``."""
    bundle = core_logic.generate_reports(context, translate_filters(args))
    rows = export.build_export_rows(args.tab, bundle)
    if args.export_format == "xlsx":
        destination = export.export_to_workbook(
            rows,
            args.output,
            title=args.tab,
            company_name=context.settings.company_name,
        )
    else:
        destination = export.export_to_csv(rows, args.output)
    print(f"[SUCCESS] {len(rows)} rows written to {destination}")
    return 0


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, core_logic.InvalidFilterError):
        log.error("%s", error)
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    if isinstance(error, (core_logic.SourceLoadError, core_logic.ReportTimeoutError)):
        log.error("%s", error)
        return 4
    log.error("%s", error)
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        return dispatch_command(context, args, command_table)
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)


if __name__ == "__main__":
    raise SystemExit(main())
