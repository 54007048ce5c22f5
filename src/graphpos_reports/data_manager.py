"""Data access layer for the GraphPOS reporting engine.

This module provides low-level helpers that read the ``master_workbook.xlsx``
record store exported from the point-of-sale backend. Reporting rules belong
elsewhere; the engine never writes business data back to the workbook.

The public API is designed around three responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Workbook lifecycle: opening and persisting the Excel file.
3. Sheet operations: streaming structured records out of each sheet and
   appending rows when seeding a workbook.
"""


from __future__ import annotations

import configparser
from dataclasses import dataclass, fields
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence, TypeVar

from openpyxl.workbook import Workbook
import openpyxl

from . import log
from .constants import SheetName


CONFIG_FILE_NAME = "config.ini"
DEFAULT_MAX_WORKERS = 4

RowT = TypeVar("RowT")


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    company_name: str
    schema_version: str
    max_workers: int = DEFAULT_MAX_WORKERS
    timeout_seconds: Optional[float] = None


@dataclass(frozen=True)
class OrderRow:
    """In-memory view of a row from the ``Orders`` sheet."""

    order_id: str
    order_number: Optional[int]
    customer_id: Optional[str]
    customer_name: Optional[str]
    status: str
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    payment_method: Optional[str]
    payment_status: str
    amount_paid: Decimal
    created_at: Optional[datetime]


@dataclass(frozen=True)
class OrderItemRow:
    """In-memory view of a row from the ``OrderItems`` sheet."""

    item_id: str
    order_id: str
    product_id: Optional[str]
    product_name: str
    quantity: Decimal
    unit_price: Decimal
    total: Decimal


@dataclass(frozen=True)
class OrderPaymentRow:
    """In-memory view of a row from the ``OrderPayments`` sheet."""

    payment_id: str
    order_id: str
    amount: Decimal
    status: str
    method: Optional[str]
    paid_at: Optional[datetime]
    created_at: Optional[datetime]


@dataclass(frozen=True)
class SaleRow:
    """In-memory view of a row from the ``Sales`` sheet (point of sale)."""

    sale_id: str
    customer_id: Optional[str]
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    payment_method: Optional[str]
    amount_paid: Decimal
    created_at: Optional[datetime]


@dataclass(frozen=True)
class SaleItemRow:
    """In-memory view of a row from the ``SaleItems`` sheet."""

    item_id: str
    sale_id: str
    product_id: Optional[str]
    product_name: str
    quantity: Decimal
    unit_price: Decimal
    total: Decimal


@dataclass(frozen=True)
class FinancialEntryRow:
    """In-memory view of a row from the ``FinancialEntries`` manual ledger."""

    entry_id: str
    entry_type: str
    origin: Optional[str]
    category_id: Optional[str]
    amount: Decimal
    status: str
    payment_method: Optional[str]
    description: Optional[str]
    notes: Optional[str]
    occurred_at: Optional[datetime]
    paid_at: Optional[datetime]


@dataclass(frozen=True)
class ExpenseCategoryRow:
    """In-memory view of a row from the ``ExpenseCategories`` sheet."""

    category_id: str
    name: str


@dataclass(frozen=True)
class CustomerRow:
    """In-memory view of a row from the ``Customers`` sheet."""

    customer_id: str
    name: str


@dataclass(frozen=True)
class ProductRow:
    """In-memory view of a row from the ``Products`` sheet."""

    product_id: str
    name: str
    base_cost: Decimal
    labor_cost: Decimal
    waste_percentage: Decimal


@dataclass(frozen=True)
class SupplyRow:
    """In-memory view of a row from the ``Supplies`` sheet."""

    supply_id: str
    name: str
    cost_per_unit: Decimal


@dataclass(frozen=True)
class ProductSupplyRow:
    """Bill-of-materials line linking a product to a supply.

    ``supply_cost_per_unit`` is not stored on the ``ProductSupplies`` sheet; it
    is joined from ``Supplies`` by the record store and stays ``None`` until
    then.
    """

    product_id: str
    supply_id: str
    quantity: Decimal
    supply_cost_per_unit: Optional[Decimal] = None


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the data layer behaves.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification. Otherwise the function walks up from the current
    working directory toward the filesystem root looking for a file named
    ``CONFIG_FILE_NAME``; the first match is considered authoritative.

    Args:
        explicit_path (Path | None): Optional path to use instead of performing
            the upward search.

    Returns:
        Path: The path provided by the caller or the discovered configuration
            file.

    Raises:
        FileNotFoundError: If the search exhausts all parent directories without
            finding ``CONFIG_FILE_NAME``.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(
        f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Args:
        config_path (Path): Path to the configuration file, relative or
            absolute. ``~`` is expanded.

    Returns:
        configparser.ConfigParser: Initialized parser containing the raw
            configuration data. Validation happens in :func:`parse_settings`.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist after expansion and
            resolution.
    """

    config_path = config_path.expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path, encoding="utf-8")
    return parser


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    ``[System]`` entries are mandatory. The ``[Reports]`` section is optional
    and tunes the fan-out pool (``MaxWorkers``) and the caller-level timeout
    (``TimeoutSeconds``). Relative ``DataFile`` paths are anchored to
    ``base_path`` (or the current working directory).

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Directory used to resolve relative paths.

    Returns:
        ConfigSettings: Immutable settings container.

    Raises:
        KeyError: If one of the required sections or options is missing.
        ValueError: If ``MaxWorkers`` or ``TimeoutSeconds`` are not positive
            numbers.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        company_name = parser.get("System", "CompanyName")
        schema_version = parser.get("System", "SchemaVersion")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    max_workers = parser.getint("Reports", "MaxWorkers", fallback=DEFAULT_MAX_WORKERS)
    timeout_raw = parser.get("Reports", "TimeoutSeconds", fallback="").strip()
    timeout_seconds = float(timeout_raw) if timeout_raw else None
    if max_workers <= 0:
        raise ValueError(f"MaxWorkers must be positive, got {max_workers}")
    if timeout_seconds is not None and timeout_seconds <= 0:
        raise ValueError(f"TimeoutSeconds must be positive, got {timeout_seconds}")

    data_file_path = Path(data_file_raw)
    if not data_file_path.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        data_file_path = (base_path / data_file_path).resolve()

    return ConfigSettings(
        data_file=data_file_path,
        company_name=company_name,
        schema_version=schema_version,
        max_workers=max_workers,
        timeout_seconds=timeout_seconds,
    )


def open_workbook(data_file: Path) -> Workbook:
    """Open the master Excel workbook and return a live ``openpyxl`` workbook.

    Args:
        data_file (Path): Filesystem path to the ``master_workbook.xlsx`` file.

    Returns:
        Workbook: ``openpyxl`` workbook instance backed by the provided file.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist after expansion and
            resolution.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Workbook not found: {data_file}")

    wb = openpyxl.load_workbook(data_file)
    log.debug("Opened workbook '%s' with sheets %s", data_file, wb.sheetnames)
    return wb


def save_workbook(workbook: Workbook, destination: Path) -> None:
    """Persist the workbook to disk, creating parent directories on demand."""

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(dest)


def _iter_sheet(workbook: Workbook, sheet: SheetName, deserialize: Callable[[Sequence[object]], RowT]) -> Iterable[RowT]:
    """Yield deserialized rows of ``sheet`` skipping the header and blank rows."""

    worksheet = workbook[sheet.value]
    for raw in worksheet.iter_rows(min_row=2, values_only=True):
        # skip fully empty rows
        if any(cell is not None for cell in raw):
            yield deserialize(raw)


def iter_orders(workbook: Workbook) -> Iterable[OrderRow]:
    """Stream order records from the ``Orders`` worksheet."""

    return _iter_sheet(workbook, SheetName.ORDERS, deserialize_order)


def iter_order_items(workbook: Workbook) -> Iterable[OrderItemRow]:
    """Stream order line items from the ``OrderItems`` worksheet."""

    return _iter_sheet(workbook, SheetName.ORDER_ITEMS, deserialize_order_item)


def iter_order_payments(workbook: Workbook) -> Iterable[OrderPaymentRow]:
    """Stream payments recorded against orders."""

    return _iter_sheet(workbook, SheetName.ORDER_PAYMENTS, deserialize_order_payment)


def iter_sales(workbook: Workbook) -> Iterable[SaleRow]:
    """Stream point-of-sale tickets from the ``Sales`` worksheet."""

    return _iter_sheet(workbook, SheetName.SALES, deserialize_sale)


def iter_sale_items(workbook: Workbook) -> Iterable[SaleItemRow]:
    """Stream point-of-sale line items."""

    return _iter_sheet(workbook, SheetName.SALE_ITEMS, deserialize_sale_item)


def iter_financial_entries(workbook: Workbook) -> Iterable[FinancialEntryRow]:
    """Stream manual ledger entries from the ``FinancialEntries`` worksheet."""

    return _iter_sheet(workbook, SheetName.FINANCIAL_ENTRIES, deserialize_financial_entry)


def iter_expense_categories(workbook: Workbook) -> Iterable[ExpenseCategoryRow]:
    return _iter_sheet(workbook, SheetName.EXPENSE_CATEGORIES, deserialize_expense_category)


def iter_customers(workbook: Workbook) -> Iterable[CustomerRow]:
    return _iter_sheet(workbook, SheetName.CUSTOMERS, deserialize_customer)


def iter_products(workbook: Workbook) -> Iterable[ProductRow]:
    return _iter_sheet(workbook, SheetName.PRODUCTS, deserialize_product)


def iter_supplies(workbook: Workbook) -> Iterable[SupplyRow]:
    return _iter_sheet(workbook, SheetName.SUPPLIES, deserialize_supply)


def iter_product_supplies(workbook: Workbook) -> Iterable[ProductSupplyRow]:
    """Stream bill-of-materials lines; supply costs are joined later."""

    return _iter_sheet(workbook, SheetName.PRODUCT_SUPPLIES, deserialize_product_supply)


def append_record(workbook: Workbook, sheet: SheetName, record: object) -> None:
    """Append a row dataclass to ``sheet`` using :func:`serialize_record`.

    The reporting engine never calls this helper; it exists for the workbook
    bootstrap script and for tests that need to seed a record store.
    """

    workbook[sheet.value].append(serialize_record(record))


def serialize_record(record: object) -> list[object]:
    """Convert a row dataclass into the worksheet column ordering.

    Datetimes are written as ISO-8601 strings, mirroring how the backend
    exports timestamps. Joined fields (``supply_cost_per_unit``) are not part
    of the sheet and are dropped.
    """

    values: list[object] = []
    for field_info in fields(record):
        if field_info.name == "supply_cost_per_unit":
            continue
        value = getattr(record, field_info.name)
        if isinstance(value, datetime):
            value = value.isoformat()
        values.append(value)
    return values


def parse_timestamp(raw: object) -> Optional[datetime]:
    """Normalize a worksheet timestamp into a naive local ``datetime``.

    Excel may hand back native ``datetime``/``date`` objects while exported
    rows carry ISO-8601 strings (optionally with a ``Z`` or offset suffix).
    Timezone-aware values are converted to local time and made naive so that
    period labels and window comparisons use the same wall clock.

    Args:
        raw (object): Cell value.

    Returns:
        datetime | None: Parsed timestamp, or ``None`` for blank cells.

    Raises:
        ValueError: If a non-blank value cannot be interpreted as a timestamp.
    """

    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        moment = raw
    elif isinstance(raw, date):
        moment = datetime(raw.year, raw.month, raw.day)
    else:
        moment = datetime.fromisoformat(str(raw).strip())
    if moment.tzinfo is not None:
        moment = moment.astimezone().replace(tzinfo=None)
    return moment


def _to_decimal(raw: object) -> Decimal:
    if raw is None or raw == "":
        return Decimal("0")
    try:
        return Decimal(str(raw))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid numeric cell value: {raw!r}") from exc


def _to_text(raw: object) -> Optional[str]:
    if raw is None:
        return None
    text = str(raw)
    return text if text.strip() else None


def deserialize_order(raw_row: Sequence[object]) -> OrderRow:
    """Convert a raw ``Orders`` row into a strongly typed record.

    Identifiers are coerced to ``str`` to avoid surprises caused by Excel
    interpreting numeric ids, money columns become :class:`~decimal.Decimal`
    and ``CreatedAt`` is parsed with :func:`parse_timestamp`.
    """

    (
        order_id,
        order_number,
        customer_id,
        customer_name,
        status,
        subtotal,
        discount,
        total,
        payment_method,
        payment_status,
        amount_paid,
        created_at,
    ) = raw_row[:12]

    return OrderRow(
        order_id=str(order_id),
        order_number=int(order_number) if order_number not in (None, "") else None,
        customer_id=_to_text(customer_id),
        customer_name=_to_text(customer_name),
        status=str(status) if status is not None else "",
        subtotal=_to_decimal(subtotal),
        discount=_to_decimal(discount),
        total=_to_decimal(total),
        payment_method=_to_text(payment_method),
        payment_status=str(payment_status) if payment_status is not None else "",
        amount_paid=_to_decimal(amount_paid),
        created_at=parse_timestamp(created_at),
    )


def deserialize_order_item(raw_row: Sequence[object]) -> OrderItemRow:
    item_id, order_id, product_id, product_name, quantity, unit_price, total = raw_row[:7]
    return OrderItemRow(
        item_id=str(item_id),
        order_id=str(order_id),
        product_id=_to_text(product_id),
        product_name=str(product_name) if product_name is not None else "",
        quantity=_to_decimal(quantity),
        unit_price=_to_decimal(unit_price),
        total=_to_decimal(total),
    )


def deserialize_order_payment(raw_row: Sequence[object]) -> OrderPaymentRow:
    payment_id, order_id, amount, status, method, paid_at, created_at = raw_row[:7]
    return OrderPaymentRow(
        payment_id=str(payment_id),
        order_id=str(order_id),
        amount=_to_decimal(amount),
        status=str(status) if status is not None else "",
        method=_to_text(method),
        paid_at=parse_timestamp(paid_at),
        created_at=parse_timestamp(created_at),
    )


def deserialize_sale(raw_row: Sequence[object]) -> SaleRow:
    sale_id, customer_id, subtotal, discount, total, payment_method, amount_paid, created_at = raw_row[:8]
    return SaleRow(
        sale_id=str(sale_id),
        customer_id=_to_text(customer_id),
        subtotal=_to_decimal(subtotal),
        discount=_to_decimal(discount),
        total=_to_decimal(total),
        payment_method=_to_text(payment_method),
        amount_paid=_to_decimal(amount_paid),
        created_at=parse_timestamp(created_at),
    )


def deserialize_sale_item(raw_row: Sequence[object]) -> SaleItemRow:
    item_id, sale_id, product_id, product_name, quantity, unit_price, total = raw_row[:7]
    return SaleItemRow(
        item_id=str(item_id),
        sale_id=str(sale_id),
        product_id=_to_text(product_id),
        product_name=str(product_name) if product_name is not None else "",
        quantity=_to_decimal(quantity),
        unit_price=_to_decimal(unit_price),
        total=_to_decimal(total),
    )


def deserialize_financial_entry(raw_row: Sequence[object]) -> FinancialEntryRow:
    """Convert a raw ``FinancialEntries`` row into a typed ledger entry.

    ``Origin``, ``CategoryID``, ``PaymentMethod``, ``Description`` and
    ``Notes`` stay ``None`` when blank so that the report builders can apply
    their sentinel fallbacks.
    """

    (
        entry_id,
        entry_type,
        origin,
        category_id,
        amount,
        status,
        payment_method,
        description,
        notes,
        occurred_at,
        paid_at,
    ) = raw_row[:11]

    return FinancialEntryRow(
        entry_id=str(entry_id),
        entry_type=str(entry_type) if entry_type is not None else "",
        origin=_to_text(origin),
        category_id=_to_text(category_id),
        amount=_to_decimal(amount),
        status=str(status) if status is not None else "",
        payment_method=_to_text(payment_method),
        description=_to_text(description),
        notes=_to_text(notes),
        occurred_at=parse_timestamp(occurred_at),
        paid_at=parse_timestamp(paid_at),
    )


def deserialize_expense_category(raw_row: Sequence[object]) -> ExpenseCategoryRow:
    category_id, name = raw_row[:2]
    return ExpenseCategoryRow(category_id=str(category_id), name=str(name) if name is not None else "")


def deserialize_customer(raw_row: Sequence[object]) -> CustomerRow:
    customer_id, name = raw_row[:2]
    return CustomerRow(customer_id=str(customer_id), name=str(name) if name is not None else "")


def deserialize_product(raw_row: Sequence[object]) -> ProductRow:
    product_id, name, base_cost, labor_cost, waste_percentage = raw_row[:5]
    return ProductRow(
        product_id=str(product_id),
        name=str(name) if name is not None else "",
        base_cost=_to_decimal(base_cost),
        labor_cost=_to_decimal(labor_cost),
        waste_percentage=_to_decimal(waste_percentage),
    )


def deserialize_supply(raw_row: Sequence[object]) -> SupplyRow:
    supply_id, name, cost_per_unit = raw_row[:3]
    return SupplyRow(
        supply_id=str(supply_id),
        name=str(name) if name is not None else "",
        cost_per_unit=_to_decimal(cost_per_unit),
    )


def deserialize_product_supply(raw_row: Sequence[object]) -> ProductSupplyRow:
    product_id, supply_id, quantity = raw_row[:3]
    return ProductSupplyRow(
        product_id=str(product_id),
        supply_id=str(supply_id),
        quantity=_to_decimal(quantity),
    )
