"""Shared pytest fixtures and utilities for GraphPOS report tests."""

from __future__ import annotations

import argparse
import sys
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterator, Optional
from unittest.mock import Mock

import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from graphpos_reports import cli, constants, core_logic, data_manager  # noqa: E402
from graphpos_reports.constants import SheetName  # noqa: E402
from graphpos_reports.setup_excel import create_master_workbook  # noqa: E402

DEFAULT_SCHEMA_VERSION = constants.EXPECTED_SCHEMA_VERSION
DEFAULT_MOMENT = datetime(2024, 5, 10, 10, 0)
_CONFIG_TEMPLATE = (
    "[System]\n"
    "DataFile = {data_file}\n"
    "CompanyName = {company_name}\n"
    "SchemaVersion = {schema_version}\n\n"
    "[Reports]\n"
    "MaxWorkers = {max_workers}\n"
)


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    workbook_path: Path
    schema_version: str
    company_name: str


class RowFactory:
    """Build typed rows with sensible defaults so tests only state what matters."""

    @staticmethod
    def order(
        order_id: str = "O1",
        *,
        order_number: Optional[int] = 1,
        customer_id: Optional[str] = None,
        customer_name: Optional[str] = None,
        status: str = "pendente",
        total: str = "100",
        payment_method: Optional[str] = None,
        payment_status: str = "pendente",
        amount_paid: str = "0",
        created_at: Optional[datetime] = DEFAULT_MOMENT,
    ) -> data_manager.OrderRow:
        return data_manager.OrderRow(
            order_id=order_id,
            order_number=order_number,
            customer_id=customer_id,
            customer_name=customer_name,
            status=status,
            subtotal=Decimal(total),
            discount=Decimal("0"),
            total=Decimal(total),
            payment_method=payment_method,
            payment_status=payment_status,
            amount_paid=Decimal(amount_paid),
            created_at=created_at,
        )

    @staticmethod
    def paid_order(order_id: str = "O1", *, total: str = "100", **overrides) -> data_manager.OrderRow:
        overrides.setdefault("status", "entregue")
        overrides.setdefault("payment_status", "pago")
        overrides.setdefault("amount_paid", total)
        return RowFactory.order(order_id, total=total, **overrides)

    @staticmethod
    def order_item(
        item_id: str = "I1",
        *,
        order_id: str = "O1",
        product_id: Optional[str] = "P1",
        product_name: str = "Banner",
        quantity: str = "1",
        total: str = "100",
    ) -> data_manager.OrderItemRow:
        quantity_value = Decimal(quantity)
        return data_manager.OrderItemRow(
            item_id=item_id,
            order_id=order_id,
            product_id=product_id,
            product_name=product_name,
            quantity=quantity_value,
            unit_price=Decimal(total) / quantity_value,
            total=Decimal(total),
        )

    @staticmethod
    def payment(
        payment_id: str = "PG1",
        *,
        order_id: str = "O1",
        amount: str = "100",
        status: str = "pago",
        method: Optional[str] = "pix",
        paid_at: Optional[datetime] = None,
        created_at: Optional[datetime] = DEFAULT_MOMENT,
    ) -> data_manager.OrderPaymentRow:
        return data_manager.OrderPaymentRow(
            payment_id=payment_id,
            order_id=order_id,
            amount=Decimal(amount),
            status=status,
            method=method,
            paid_at=paid_at,
            created_at=created_at,
        )

    @staticmethod
    def sale(
        sale_id: str = "S1",
        *,
        customer_id: Optional[str] = None,
        total: str = "50",
        amount_paid: Optional[str] = None,
        payment_method: Optional[str] = "dinheiro",
        created_at: Optional[datetime] = DEFAULT_MOMENT,
    ) -> data_manager.SaleRow:
        return data_manager.SaleRow(
            sale_id=sale_id,
            customer_id=customer_id,
            subtotal=Decimal(total),
            discount=Decimal("0"),
            total=Decimal(total),
            payment_method=payment_method,
            amount_paid=Decimal(total if amount_paid is None else amount_paid),
            created_at=created_at,
        )

    @staticmethod
    def sale_item(
        item_id: str = "SI1",
        *,
        sale_id: str = "S1",
        product_id: Optional[str] = "P1",
        product_name: str = "Banner",
        quantity: str = "1",
        total: str = "50",
    ) -> data_manager.SaleItemRow:
        quantity_value = Decimal(quantity)
        return data_manager.SaleItemRow(
            item_id=item_id,
            sale_id=sale_id,
            product_id=product_id,
            product_name=product_name,
            quantity=quantity_value,
            unit_price=Decimal(total) / quantity_value,
            total=Decimal(total),
        )

    @staticmethod
    def entry(
        entry_id: str = "F1",
        *,
        entry_type: str = "despesa",
        origin: Optional[str] = None,
        category_id: Optional[str] = None,
        amount: str = "20",
        status: str = "pago",
        payment_method: Optional[str] = None,
        description: Optional[str] = None,
        notes: Optional[str] = None,
        occurred_at: Optional[datetime] = DEFAULT_MOMENT,
        paid_at: Optional[datetime] = None,
    ) -> data_manager.FinancialEntryRow:
        return data_manager.FinancialEntryRow(
            entry_id=entry_id,
            entry_type=entry_type,
            origin=origin,
            category_id=category_id,
            amount=Decimal(amount),
            status=status,
            payment_method=payment_method,
            description=description,
            notes=notes,
            occurred_at=occurred_at,
            paid_at=paid_at,
        )

    @staticmethod
    def category(category_id: str = "C1", name: str = "Aluguel") -> data_manager.ExpenseCategoryRow:
        return data_manager.ExpenseCategoryRow(category_id=category_id, name=name)

    @staticmethod
    def customer(customer_id: str = "CL1", name: str = "Maria") -> data_manager.CustomerRow:
        return data_manager.CustomerRow(customer_id=customer_id, name=name)

    @staticmethod
    def product(
        product_id: str = "P1",
        *,
        name: str = "Banner",
        base_cost: str = "0",
        labor_cost: str = "0",
        waste_percentage: str = "0",
    ) -> data_manager.ProductRow:
        return data_manager.ProductRow(
            product_id=product_id,
            name=name,
            base_cost=Decimal(base_cost),
            labor_cost=Decimal(labor_cost),
            waste_percentage=Decimal(waste_percentage),
        )

    @staticmethod
    def supply(supply_id: str = "SUP1", *, name: str = "Lona", cost_per_unit: str = "3") -> data_manager.SupplyRow:
        return data_manager.SupplyRow(supply_id=supply_id, name=name, cost_per_unit=Decimal(cost_per_unit))

    @staticmethod
    def product_supply(
        product_id: str = "P1",
        *,
        supply_id: str = "SUP1",
        quantity: str = "1",
        supply_cost_per_unit: Optional[str] = "3",
    ) -> data_manager.ProductSupplyRow:
        return data_manager.ProductSupplyRow(
            product_id=product_id,
            supply_id=supply_id,
            quantity=Decimal(quantity),
            supply_cost_per_unit=None if supply_cost_per_unit is None else Decimal(supply_cost_per_unit),
        )


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the repository root path."""

    return PROJECT_ROOT


@pytest.fixture
def rows() -> type[RowFactory]:
    """Expose the row builders to tests."""

    return RowFactory


@pytest.fixture
def workbook_factory(tmp_path: Path) -> Callable[..., Path]:
    """Factory that creates an initialized master workbook in a temp folder."""

    def _create_workbook(
        *,
        subdir: str | None = None,
        filename: str = "master_workbook.xlsx",
    ) -> Path:
        base_dir = tmp_path if subdir is None else tmp_path / subdir
        base_dir.mkdir(parents=True, exist_ok=True)
        workbook_path = base_dir / filename
        create_master_workbook(workbook_path, overwrite=True)
        return workbook_path

    return _create_workbook


@pytest.fixture
def master_workbook_path(workbook_factory: Callable[..., Path]) -> Path:
    """Return a fresh master workbook ready for use in a test."""

    unique_dir = f"workbook_{uuid.uuid4().hex}"
    return workbook_factory(subdir=unique_dir)


@pytest.fixture
def empty_workbook(master_workbook_path: Path):
    """Open a fresh master workbook in memory."""

    return data_manager.open_workbook(master_workbook_path)


@pytest.fixture
def seed() -> Callable[..., None]:
    """Append row dataclasses to an open workbook through the data layer."""

    def _seed(workbook, sheet: SheetName, *records: object) -> None:
        for record in records:
            data_manager.append_record(workbook, sheet, record)

    return _seed


@pytest.fixture
def config_factory(tmp_path: Path, workbook_factory: Callable[..., Path]) -> Callable[..., ConfigBundle]:
    """Provide a callable that creates config/workbook bundles on demand."""

    def _create_config(
        *,
        make_relative: bool = False,
        company_name: str = "Grafica Teste",
        schema_version: str = DEFAULT_SCHEMA_VERSION,
        max_workers: int = 2,
    ) -> ConfigBundle:
        bundle_id = uuid.uuid4().hex
        bundle_dir = tmp_path / f"bundle_{bundle_id}"
        bundle_dir.mkdir(parents=True, exist_ok=True)
        workbook_path = workbook_factory(subdir=f"bundle_{bundle_id}")
        data_file_entry = workbook_path.name if make_relative else str(workbook_path)
        config_path = bundle_dir / "config.ini"
        config_path.write_text(
            _CONFIG_TEMPLATE.format(
                data_file=data_file_entry,
                company_name=company_name,
                schema_version=schema_version,
                max_workers=max_workers,
            ),
            encoding="utf-8",
        )
        return ConfigBundle(
            directory=bundle_dir,
            config_path=config_path,
            workbook_path=workbook_path,
            schema_version=schema_version,
            company_name=company_name,
        )

    return _create_config


@pytest.fixture
def config_file(config_factory: Callable[..., ConfigBundle]) -> Path:
    """Convenience fixture returning only the config path."""

    return config_factory().config_path


@pytest.fixture
def runtime_context(config_file: Path) -> core_logic.RuntimeContext:
    """Load the runtime context for tests through the public API."""

    context = core_logic.load_runtime_context(config_file)
    core_logic.ensure_schema_version(context)
    return context


# ---------------------------------------------------------------------------
# CLI layer fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_parser() -> argparse.ArgumentParser:
    """Return a fresh CLI parser instance for tests."""

    return argparse.ArgumentParser(prog="graphpos-reports", description="GraphPOS reports")


@pytest.fixture
def subparsers_action(
    cli_parser: argparse.ArgumentParser,
) -> argparse._SubParsersAction[argparse.ArgumentParser]:
    """Return the subparser action used to register commands."""

    return cli_parser.add_subparsers(dest="command")


@pytest.fixture
def command_spec_iterable() -> list[cli.CommandSpec]:
    """Provide a list of command specs for indexing tests."""

    def _make_spec(name: str) -> cli.CommandSpec:
        return cli.CommandSpec(
            name,
            f"{name} help",
            lambda subparsers: subparsers.add_parser(name),
            lambda *_: 0,
        )

    return [_make_spec("alpha"), _make_spec("beta"), _make_spec("gamma")]


# ---------------------------------------------------------------------------
# Core logic fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> data_manager.ConfigSettings:
    """Provide default configuration settings for runtime context tests."""

    return data_manager.ConfigSettings(
        data_file=tmp_path / "master_workbook.xlsx",
        company_name="Grafica Teste",
        schema_version=constants.EXPECTED_SCHEMA_VERSION,
    )


@pytest.fixture
def context(settings: data_manager.ConfigSettings) -> core_logic.RuntimeContext:
    """Assemble a runtime context from injected settings and a workbook mock."""

    return core_logic.RuntimeContext(settings=settings, workbook=Mock(name="workbook"))


@pytest.fixture
def sample_sources(rows: type[RowFactory]) -> core_logic.ReportSources:
    """A small but complete set of raw collections for one window."""

    return core_logic.ReportSources(
        orders=(
            rows.paid_order("O1", total="100", customer_id="CL1", created_at=datetime(2024, 5, 10, 9, 0)),
            rows.order("O2", total="80", customer_name="Joao", amount_paid="30", created_at=datetime(2024, 5, 11, 15, 0)),
            rows.order("O3", total="40", status="orcamento", created_at=datetime(2024, 5, 12, 11, 0)),
        ),
        order_items=(
            rows.order_item("I1", order_id="O1", product_id="P1", product_name="Banner", quantity="5", total="100"),
            rows.order_item("I2", order_id="O2", product_id="P2", product_name="Adesivo", quantity="10", total="80"),
        ),
        order_payments=(
            rows.payment("PG1", order_id="O1", amount="100", method="pix", created_at=datetime(2024, 5, 10, 9, 30)),
            rows.payment("PG2", order_id="O2", amount="30", status="pendente", created_at=datetime(2024, 5, 11, 15, 5)),
        ),
        sales=(
            rows.sale("S1", total="50", created_at=datetime(2024, 5, 11, 16, 0)),
            rows.sale("S2", total="40", amount_paid="10", created_at=datetime(2024, 5, 12, 12, 0)),
        ),
        sale_items=(
            rows.sale_item("SI1", sale_id="S1", product_id="P1", product_name="Banner", quantity="2", total="50"),
        ),
        customers=(rows.customer("CL1", "Maria"),),
        products=(rows.product("P1", base_cost="10", labor_cost="2", waste_percentage="10"),),
        product_supplies=(rows.product_supply("P1", quantity="1", supply_cost_per_unit="3"),),
        financial_entries=(
            rows.entry("F1", entry_type="despesa", amount="20", category_id="C1", occurred_at=datetime(2024, 5, 12, 8, 0)),
            rows.entry("F2", entry_type="receita", amount="15", payment_method="pix", occurred_at=datetime(2024, 5, 12, 9, 0)),
            rows.entry("F3", entry_type="despesa", amount="5", status="pendente", occurred_at=datetime(2024, 5, 12, 10, 0)),
        ),
        expense_categories=(rows.category("C1", "Aluguel"),),
    )


@pytest.fixture
def sample_bundle(sample_sources: core_logic.ReportSources) -> core_logic.ReportBundle:
    """Bundle built directly from :func:`sample_sources` with a zero opening balance."""

    return core_logic.ReportBundle(
        cash=core_logic.build_cash_report(sample_sources, Decimal("0")),
        financial=core_logic.build_financial_report(sample_sources),
        sales=core_logic.build_sales_report(sample_sources),
        customers=core_logic.build_customer_report(sample_sources),
        products=core_logic.build_product_report(sample_sources),
    )
