"""Utility for initializing an empty GraphPOS record store workbook.

The module doubles as a script (``graphpos-setup``) and as a library used by
tests that need a workbook with every sheet and header in place. Column order
matches the positional deserializers of :mod:`graphpos_reports.data_manager`.
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

import openpyxl
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from . import data_manager, log
from .constants import SheetName


SHEET_COLUMNS: Mapping[str, Sequence[str]] = {
    SheetName.ORDERS.value: [
        "OrderID",
        "OrderNumber",
        "CustomerID",
        "CustomerName",
        "Status",
        "Subtotal",
        "Discount",
        "Total",
        "PaymentMethod",
        "PaymentStatus",
        "AmountPaid",
        "CreatedAt",
    ],
    SheetName.ORDER_ITEMS.value: [
        "ItemID",
        "OrderID",
        "ProductID",
        "ProductName",
        "Quantity",
        "UnitPrice",
        "Total",
    ],
    SheetName.ORDER_PAYMENTS.value: [
        "PaymentID",
        "OrderID",
        "Amount",
        "Status",
        "Method",
        "PaidAt",
        "CreatedAt",
    ],
    SheetName.SALES.value: [
        "SaleID",
        "CustomerID",
        "Subtotal",
        "Discount",
        "Total",
        "PaymentMethod",
        "AmountPaid",
        "CreatedAt",
    ],
    SheetName.SALE_ITEMS.value: [
        "ItemID",
        "SaleID",
        "ProductID",
        "ProductName",
        "Quantity",
        "UnitPrice",
        "Total",
    ],
    SheetName.FINANCIAL_ENTRIES.value: [
        "EntryID",
        "Type",
        "Origin",
        "CategoryID",
        "Amount",
        "Status",
        "PaymentMethod",
        "Description",
        "Notes",
        "OccurredAt",
        "PaidAt",
    ],
    SheetName.EXPENSE_CATEGORIES.value: ["CategoryID", "Name"],
    SheetName.CUSTOMERS.value: ["CustomerID", "Name"],
    SheetName.PRODUCTS.value: [
        "ProductID",
        "Name",
        "BaseCost",
        "LaborCost",
        "WastePercentage",
    ],
    SheetName.SUPPLIES.value: ["SupplyID", "Name", "CostPerUnit"],
    SheetName.PRODUCT_SUPPLIES.value: ["ProductID", "SupplyID", "Quantity"],
}

HEADER_FONT = Font(bold=True)
MIN_COLUMN_WIDTH = 12


@dataclass(frozen=True)
class SetupSettings:
    """Where the bootstrap writes the empty record store."""

    data_file: Path


def load_settings(config_path: Path) -> SetupSettings:
    """Resolve the workbook destination declared in ``config.ini``.

    Only ``[System] DataFile`` is required, so a workbook can be created before
    the rest of the configuration is filled in. Relative paths are anchored to
    the config file's directory, the same way the report CLI resolves them.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
        KeyError: If ``DataFile`` is missing or empty.
    """

    parser = data_manager.read_config(config_path)
    data_file_raw = parser.get("System", "DataFile", fallback="").strip()
    if not data_file_raw:
        raise KeyError(f"Missing [System] DataFile entry in {config_path}")

    data_file = Path(data_file_raw).expanduser()
    if not data_file.is_absolute():
        data_file = (Path(config_path).expanduser().resolve().parent / data_file).resolve()
    return SetupSettings(data_file=data_file)


def _write_header(worksheet: Worksheet, columns: Sequence[str]) -> None:
    worksheet.append(list(columns))
    for cell in worksheet[1]:
        cell.font = HEADER_FONT
    worksheet.freeze_panes = "A2"
    for index, column in enumerate(columns, start=1):
        worksheet.column_dimensions[get_column_letter(index)].width = max(MIN_COLUMN_WIDTH, len(column) + 2)


def create_master_workbook(
    destination: Path,
    *,
    sheet_columns: Mapping[str, Sequence[str]] = SHEET_COLUMNS,
    overwrite: bool = False,
) -> Path:
    """Write an empty record store with one header-only sheet per entity.

    Args:
        destination (Path): Target ``.xlsx`` path; parent folders are created.
        sheet_columns (Mapping[str, Sequence[str]]): Sheet titles and headers.
        overwrite (bool): Replace an existing file instead of failing.

    Returns:
        Path: Resolved path of the written workbook.

    Raises:
        FileExistsError: If ``destination`` exists and ``overwrite`` is false.
    """

    target = Path(destination).expanduser().resolve()
    if target.exists() and not overwrite:
        raise FileExistsError(f"Record store workbook already exists: {target}")

    workbook = openpyxl.Workbook()
    placeholder = workbook.active
    for sheet_name, columns in sheet_columns.items():
        _write_header(workbook.create_sheet(title=sheet_name), columns)
    if sheet_columns and placeholder is not None:
        workbook.remove(placeholder)

    data_manager.save_workbook(workbook, target)
    log.info("Created record store workbook '%s' with %d sheets", target, len(sheet_columns))
    return target


def run_from_config(config_path: Path, *, overwrite: bool = False) -> Path:
    return create_master_workbook(load_settings(config_path).data_file, overwrite=overwrite)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="graphpos-setup",
        description="Create an empty GraphPOS record store workbook with every sheet and header.",
    )
    parser.add_argument(
        "--config",
        default=data_manager.CONFIG_FILE_NAME,
        help="config.ini whose [System] DataFile names the workbook to create.",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Replace an existing workbook with an empty one.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the ``graphpos-setup`` script."""

    args = parse_args(argv)
    config_path = Path(args.config).expanduser().resolve()

    print("--- GraphPOS Reports Setup ---")
    print(f"Configuration: {config_path}")

    try:
        output_path = run_from_config(config_path, overwrite=args.force)
    except FileExistsError as exc:
        print(f"\n[ERROR] {exc}")
        print("Pass --force to replace it with an empty record store.")
        return 1
    except (FileNotFoundError, KeyError) as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    except OSError as exc:
        print(f"\n[ERROR] Could not write the record store: {exc}")
        return 1

    print(f"\n[SUCCESS] Empty record store written to '{output_path}'.")
    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via manual runs
    sys.exit(main())
