"""Business logic layer for the GraphPOS reporting engine.

This module turns the raw collections loaded by :mod:`record_store` into the
five analytical views presented together on the reports screen: cash,
financial, sales, customers and products. Builders are pure functions over an
immutable :class:`~graphpos_reports.record_store.ReportSources` bundle, so they
can run concurrently and produce identical output for identical input.
"""

from __future__ import annotations

import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar, Union

from openpyxl.workbook import Workbook

from . import data_manager, log
from .constants import (
    DEFAULT_CUSTOMER_NAME,
    EXPECTED_SCHEMA_VERSION,
    NO_CUSTOMER_KEY,
    SALES_GRANULARITIES,
    UNCATEGORIZED,
    UNDEFINED_METHOD,
    CashFlowType,
    CashOrigin,
    Granularity,
    OrderStatus,
    PaymentStatus,
)
from .ledger import (
    ZERO,
    CashTransaction,
    PeriodBucket,
    build_period_series,
    calculate_opening_balance,
    is_entry_realized,
    is_expense_entry,
    is_payment_realized,
    is_revenue_entry,
    is_sale_realized,
    sum_amounts,
    unify_transactions,
)
from .record_store import (
    InvalidFilterError,
    RecordStore,
    ReportError,
    ReportFilters,
    ReportSources,
    ReportTimeoutError,
    SourceLoadError,
    WorkbookRecordStore,
    load_sources,
)


HUNDRED = Decimal("100")
TOP_CUSTOMERS = 5
TOP_PRODUCTS = 5
TOP_PRODUCT_REVENUE = 10

RowT = TypeVar("RowT")
KeyT = TypeVar("KeyT", bound=Hashable)


@dataclass(frozen=True)
class RuntimeContext:
    """Container for configuration and workbook references used by the BLL."""

    settings: data_manager.ConfigSettings
    workbook: Workbook


@dataclass(frozen=True)
class CashSummary:
    total_in: Decimal
    total_out: Decimal
    opening_balance: Decimal
    closing_balance: Decimal


@dataclass(frozen=True)
class CashReport:
    """Unified ledger for the window, most recent transaction first.

    ``series`` buckets the same transactions by ``period`` in chronological
    order.
    """

    transactions: Tuple[CashTransaction, ...]
    summary: CashSummary
    period: Granularity = Granularity.DAILY
    series: Tuple[PeriodBucket, ...] = ()


@dataclass(frozen=True)
class FinancialReport:
    revenue_total: Decimal
    expense_total: Decimal
    profit: Decimal
    margin: Decimal
    revenue_by_origin: Dict[str, Decimal]
    revenue_by_method: Dict[str, Decimal]
    expenses_by_category: Dict[str, Decimal]
    expenses_by_status: Dict[str, Decimal]
    cashflow: Tuple[PeriodBucket, ...]


@dataclass(frozen=True)
class SalesPeriodPoint:
    label: str
    total: Decimal


@dataclass(frozen=True)
class ProductSales:
    id: str
    name: str
    quantity: Decimal
    total: Decimal


@dataclass(frozen=True)
class CustomerSales:
    id: str
    name: str
    orders: int
    total: Decimal


@dataclass(frozen=True)
class SalesReport:
    total_sales: Decimal
    order_count: int
    ticket_average: Decimal
    status_counts: Dict[str, int]
    sales_by_period: Dict[str, Tuple[SalesPeriodPoint, ...]]
    sales_by_product: Tuple[ProductSales, ...]
    sales_by_customer: Tuple[CustomerSales, ...]


@dataclass(frozen=True)
class CustomerStats:
    """Per-customer aggregate over every order in the window.

    ``total`` only counts paid orders while ``balance`` sums what is still
    owed on every order (never negative per order).
    """

    id: str
    name: str
    orders: int
    total: Decimal
    balance: Decimal
    last_order_at: Optional[datetime]


@dataclass(frozen=True)
class CustomerReport:
    most_active: Tuple[CustomerStats, ...]
    highest_revenue: Tuple[CustomerStats, ...]
    pending_balances: Tuple[CustomerStats, ...]
    insights: Tuple[str, ...]
    history: Tuple[CustomerStats, ...]


@dataclass(frozen=True)
class ProductMargin:
    id: str
    name: str
    margin: Decimal
    margin_pct: Decimal


@dataclass(frozen=True)
class ProductTurnover:
    id: str
    name: str
    quantity: Decimal


@dataclass(frozen=True)
class ProductReport:
    most_sold: Tuple[ProductSales, ...]
    least_sold: Tuple[ProductSales, ...]
    revenue_by_product: Tuple[ProductSales, ...]
    margin_by_product: Tuple[ProductMargin, ...]
    low_turnover: Tuple[ProductTurnover, ...]


@dataclass(frozen=True)
class ReportBundle:
    """The five reports of one invocation, always produced together."""

    cash: CashReport
    financial: FinancialReport
    sales: SalesReport
    customers: CustomerReport
    products: ProductReport


# ---------------------------------------------------------------------------
# Runtime/context management
# ---------------------------------------------------------------------------


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Load configuration settings and the record store workbook.

    Args:
        config_path (Path | None): Optional override path for the configuration
            file. When omitted the data layer performs its upward search from
            the current working directory.

    Returns:
        RuntimeContext: Settings bundled with the opened workbook.

    Raises:
        FileNotFoundError: If the configuration file or workbook cannot be
            located.
        KeyError: When mandatory configuration options are missing.
    """
    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    workbook = data_manager.open_workbook(settings.data_file)
    log.info("Loaded runtime context for workbook '%s'", settings.data_file)
    return RuntimeContext(settings=settings, workbook=workbook)


def ensure_schema_version(context: RuntimeContext) -> None:
    """Validate workbook compatibility before reading it.

    Raises:
        RuntimeError: If the schema version declared in the configuration does
            not match ``EXPECTED_SCHEMA_VERSION``.
    """
    if context.settings.schema_version != EXPECTED_SCHEMA_VERSION:
        log.error(
            "Workbook schema mismatch: expected %s, found %s",
            EXPECTED_SCHEMA_VERSION,
            context.settings.schema_version,
        )
        raise RuntimeError(
            "Workbook schema mismatch: expected %s, found %s"
            % (EXPECTED_SCHEMA_VERSION, context.settings.schema_version)
        )

    log.debug("Schema version '%s' validated", context.settings.schema_version)


# ---------------------------------------------------------------------------
# Grouping and identity policies
# ---------------------------------------------------------------------------


def group_by(rows: Iterable[RowT], key: Callable[[RowT], KeyT]) -> Dict[KeyT, List[RowT]]:
    """Group ``rows`` by ``key`` preserving first-seen key order."""

    groups: Dict[KeyT, List[RowT]] = {}
    for row in rows:
        groups.setdefault(key(row), []).append(row)
    return groups


def customer_key(order: data_manager.OrderRow) -> str:
    """Identity of the customer behind an order: id, else typed name, else none."""

    return order.customer_id or order.customer_name or NO_CUSTOMER_KEY


def customer_display_name(order: data_manager.OrderRow, customers: Mapping[str, data_manager.CustomerRow]) -> str:
    if order.customer_name:
        return order.customer_name
    customer = customers.get(order.customer_id) if order.customer_id else None
    if customer is not None and customer.name:
        return customer.name
    return DEFAULT_CUSTOMER_NAME


def product_key(item: Union[data_manager.OrderItemRow, data_manager.SaleItemRow]) -> str:
    """Identity of a sold product: catalogue id, else the free-text name."""

    return item.product_id or item.product_name


def is_order_paid(order: data_manager.OrderRow) -> bool:
    """Orders count as revenue once paid, unless they are still a quote."""

    return order.status != OrderStatus.QUOTE.value and order.payment_status == PaymentStatus.PAID.value


def percentage(part: Decimal, whole: Decimal) -> Decimal:
    """``part / whole * 100``, or zero when ``whole`` is not positive."""

    if whole <= ZERO:
        return ZERO
    return part / whole * HUNDRED


def _add(totals: Dict[str, Decimal], key: str, amount: Decimal) -> None:
    totals[key] = totals.get(key, ZERO) + amount


def _aggregate_products(
    items: Iterable[Union[data_manager.OrderItemRow, data_manager.SaleItemRow]],
) -> List[ProductSales]:
    return [
        ProductSales(
            id=key,
            name=rows[0].product_name,
            quantity=sum((row.quantity for row in rows), ZERO),
            total=sum((row.total for row in rows), ZERO),
        )
        for key, rows in group_by(items, product_key).items()
    ]


# ---------------------------------------------------------------------------
# Report builders
# ---------------------------------------------------------------------------


def build_cash_report(
    sources: ReportSources,
    opening_balance: Decimal,
    period: Union[Granularity, str] = Granularity.DAILY,
) -> CashReport:
    """Unified cash ledger of the window with opening and closing balances.

    Raises:
        InvalidFilterError: If ``period`` is not a known granularity.
    """

    transactions = unify_transactions(sources.order_payments, sources.sales, sources.financial_entries)
    transactions.sort(key=lambda tx: tx.date, reverse=True)
    total_in = sum_amounts(transactions, CashFlowType.INFLOW)
    total_out = sum_amounts(transactions, CashFlowType.OUTFLOW)
    summary = CashSummary(
        total_in=total_in,
        total_out=total_out,
        opening_balance=opening_balance,
        closing_balance=opening_balance + total_in - total_out,
    )
    log.debug("Cash report: in=%s out=%s closing=%s", total_in, total_out, summary.closing_balance)
    series = build_period_series(transactions, period)
    return CashReport(
        transactions=tuple(transactions),
        summary=summary,
        period=Granularity(period),
        series=tuple(series),
    )


def build_financial_report(sources: ReportSources) -> FinancialReport:
    """Revenue, expenses, profit and their breakdowns for the window.

    Revenue combines paid order payments, fully paid POS tickets and paid
    ``receita`` ledger entries; expenses only come from paid ``despesa``
    entries. The category and status breakdowns describe every expense entry
    of the window, paid or not, so outstanding bills stay visible.
    """

    paid_payments = [payment for payment in sources.order_payments if is_payment_realized(payment)]
    paid_sales = [sale for sale in sources.sales if is_sale_realized(sale)]
    paid_entries = [entry for entry in sources.financial_entries if is_entry_realized(entry)]
    revenue_entries = [entry for entry in paid_entries if is_revenue_entry(entry)]

    revenue_from_orders = sum((payment.amount for payment in paid_payments), ZERO)
    revenue_from_sales = sum((sale.total for sale in paid_sales), ZERO)
    revenue_from_manual = sum((entry.amount for entry in revenue_entries), ZERO)
    expense_total = sum((entry.amount for entry in paid_entries if is_expense_entry(entry)), ZERO)

    revenue_total = revenue_from_orders + revenue_from_sales + revenue_from_manual
    profit = revenue_total - expense_total

    revenue_by_method: Dict[str, Decimal] = {}
    for payment in paid_payments:
        _add(revenue_by_method, payment.method or UNDEFINED_METHOD, payment.amount)
    for sale in paid_sales:
        _add(revenue_by_method, sale.payment_method or UNDEFINED_METHOD, sale.total)
    for entry in revenue_entries:
        _add(revenue_by_method, entry.payment_method or UNDEFINED_METHOD, entry.amount)

    category_names = {category.category_id: category.name for category in sources.expense_categories}
    expenses_by_category: Dict[str, Decimal] = {}
    expenses_by_status: Dict[str, Decimal] = {}
    for entry in sources.financial_entries:
        if not is_expense_entry(entry):
            continue
        category = category_names.get(entry.category_id) if entry.category_id else None
        if entry.category_id and category is None:
            log.warning("Expense entry '%s' references unknown category '%s'", entry.entry_id, entry.category_id)
        _add(expenses_by_category, category or UNCATEGORIZED, entry.amount)
        _add(expenses_by_status, entry.status, entry.amount)

    transactions = unify_transactions(sources.order_payments, sources.sales, sources.financial_entries)
    return FinancialReport(
        revenue_total=revenue_total,
        expense_total=expense_total,
        profit=profit,
        margin=percentage(profit, revenue_total),
        revenue_by_origin={
            CashOrigin.ORDER.value: revenue_from_orders,
            CashOrigin.POS.value: revenue_from_sales,
            CashOrigin.MANUAL.value: revenue_from_manual,
        },
        revenue_by_method=revenue_by_method,
        expenses_by_category=expenses_by_category,
        expenses_by_status=expenses_by_status,
        cashflow=tuple(build_period_series(transactions, "daily")),
    )


def _sales_transactions(
    paid_orders: Sequence[data_manager.OrderRow],
    paid_sales: Sequence[data_manager.SaleRow],
) -> List[CashTransaction]:
    """Synthetic inflows for the sales trend: paid orders plus paid tickets."""

    transactions: List[CashTransaction] = []
    for order in paid_orders:
        if order.created_at is None:
            continue
        transactions.append(
            CashTransaction(
                id=order.order_id,
                date=order.created_at,
                type=CashFlowType.INFLOW,
                origin=CashOrigin.ORDER.value,
                description=f"Pedido #{order.order_number}",
                amount=order.total,
                method=order.payment_method,
                status=order.status,
            )
        )
    for sale in paid_sales:
        if sale.created_at is None:
            continue
        transactions.append(
            CashTransaction(
                id=sale.sale_id,
                date=sale.created_at,
                type=CashFlowType.INFLOW,
                origin=CashOrigin.POS.value,
                description=f"Venda PDV {sale.sale_id}",
                amount=sale.total,
                method=sale.payment_method,
                status=PaymentStatus.PAID.value,
            )
        )
    return transactions


def build_sales_report(sources: ReportSources) -> SalesReport:
    """Sales volume, ticket average, trends and rankings for the window.

    Only paid, non-quote orders and fully paid POS tickets count as sales.
    ``status_counts`` still tallies every order so the status distribution is
    complete. ``order_count`` is the number of counted transactions (orders
    plus tickets), the same denominator as the ticket average.
    """

    paid_orders = [order for order in sources.orders if is_order_paid(order)]
    paid_sales = [sale for sale in sources.sales if is_sale_realized(sale)]
    total_sales = sum((order.total for order in paid_orders), ZERO) + sum((sale.total for sale in paid_sales), ZERO)
    transaction_count = len(paid_orders) + len(paid_sales)
    ticket_average = total_sales / transaction_count if transaction_count else ZERO

    status_counts: Dict[str, int] = {}
    for order in sources.orders:
        status_counts[order.status] = status_counts.get(order.status, 0) + 1

    paid_order_ids = {order.order_id for order in paid_orders}
    paid_sale_ids = {sale.sale_id for sale in paid_sales}
    items = [
        *(item for item in sources.order_items if item.order_id in paid_order_ids),
        *(item for item in sources.sale_items if item.sale_id in paid_sale_ids),
    ]
    sales_by_product = sorted(_aggregate_products(items), key=lambda row: row.total, reverse=True)

    customers = {customer.customer_id: customer for customer in sources.customers}
    sales_by_customer = sorted(
        (
            CustomerSales(
                id=key,
                name=customer_display_name(rows[0], customers),
                orders=len(rows),
                total=sum((row.total for row in rows), ZERO),
            )
            for key, rows in group_by(paid_orders, customer_key).items()
        ),
        key=lambda row: row.total,
        reverse=True,
    )

    trend = _sales_transactions(paid_orders, paid_sales)
    sales_by_period = {
        granularity.value: tuple(
            SalesPeriodPoint(label=bucket.label, total=bucket.inflow)
            for bucket in build_period_series(trend, granularity)
        )
        for granularity in SALES_GRANULARITIES
    }

    return SalesReport(
        total_sales=total_sales,
        order_count=transaction_count,
        ticket_average=ticket_average,
        status_counts=status_counts,
        sales_by_period=sales_by_period,
        sales_by_product=tuple(sales_by_product),
        sales_by_customer=tuple(sales_by_customer),
    )


def _customer_insights(
    most_active: Sequence[CustomerStats],
    highest_revenue: Sequence[CustomerStats],
    pending_balances: Sequence[CustomerStats],
) -> Tuple[str, ...]:
    insights: List[str] = []
    if most_active:
        insights.append(f"Cliente mais ativo: {most_active[0].name}.")
    if pending_balances:
        insights.append(f"Maior saldo pendente a receber: {pending_balances[0].name}.")
    if highest_revenue:
        insights.append(f"Maior faturamento: {highest_revenue[0].name}.")
    return tuple(insights)


def _sort_history(stats: Iterable[CustomerStats]) -> List[CustomerStats]:
    dated = sorted(
        (row for row in stats if row.last_order_at is not None),
        key=lambda row: row.last_order_at,
        reverse=True,
    )
    undated = [row for row in stats if row.last_order_at is None]
    return [*dated, *undated]


def build_customer_report(sources: ReportSources) -> CustomerReport:
    """Customer activity, revenue ranking and receivables for the window."""

    customers = {customer.customer_id: customer for customer in sources.customers}
    stats: List[CustomerStats] = []
    for key, rows in group_by(sources.orders, customer_key).items():
        dates = [row.created_at for row in rows if row.created_at is not None]
        stats.append(
            CustomerStats(
                id=key,
                name=customer_display_name(rows[0], customers),
                orders=len(rows),
                total=sum((row.total for row in rows if is_order_paid(row)), ZERO),
                balance=sum((max(ZERO, row.total - row.amount_paid) for row in rows), ZERO),
                last_order_at=max(dates) if dates else None,
            )
        )

    most_active = sorted(stats, key=lambda row: row.orders, reverse=True)[:TOP_CUSTOMERS]
    highest_revenue = sorted(stats, key=lambda row: row.total, reverse=True)[:TOP_CUSTOMERS]
    pending_balances = sorted(
        (row for row in stats if row.balance > ZERO),
        key=lambda row: row.balance,
        reverse=True,
    )[:TOP_CUSTOMERS]

    return CustomerReport(
        most_active=tuple(most_active),
        highest_revenue=tuple(highest_revenue),
        pending_balances=tuple(pending_balances),
        insights=_customer_insights(most_active, highest_revenue, pending_balances),
        history=tuple(_sort_history(stats)),
    )


def unit_cost_with_waste(product: Optional[data_manager.ProductRow], supply_cost: Decimal) -> Decimal:
    """Fully loaded unit cost: base + labor + supplies, inflated by waste."""

    if product is None:
        return supply_cost
    raw_cost = product.base_cost + product.labor_cost + supply_cost
    return raw_cost * (1 + product.waste_percentage / HUNDRED)


def build_product_report(sources: ReportSources) -> ProductReport:
    """Product rankings and margins from paid order items.

    POS ticket items are deliberately left out: margins are computed for the
    made-to-order catalogue, whose costs are tracked through supplies.
    """

    supply_costs: Dict[str, Decimal] = {}
    for line in sources.product_supplies:
        _add(supply_costs, line.product_id, line.quantity * (line.supply_cost_per_unit or ZERO))

    paid_order_ids = {order.order_id for order in sources.orders if is_order_paid(order)}
    rows = _aggregate_products(item for item in sources.order_items if item.order_id in paid_order_ids)
    products = {product.product_id: product for product in sources.products}

    margins: List[ProductMargin] = []
    for row in rows:
        unit_cost = unit_cost_with_waste(products.get(row.id), supply_costs.get(row.id, ZERO))
        margin = row.total - unit_cost * row.quantity
        margins.append(ProductMargin(id=row.id, name=row.name, margin=margin, margin_pct=percentage(margin, row.total)))

    by_quantity_desc = sorted(rows, key=lambda row: row.quantity, reverse=True)
    by_quantity_asc = sorted(rows, key=lambda row: row.quantity)
    return ProductReport(
        most_sold=tuple(by_quantity_desc[:TOP_PRODUCTS]),
        least_sold=tuple(by_quantity_asc[:TOP_PRODUCTS]),
        revenue_by_product=tuple(sorted(rows, key=lambda row: row.total, reverse=True)[:TOP_PRODUCT_REVENUE]),
        margin_by_product=tuple(margins),
        low_turnover=tuple(
            ProductTurnover(id=row.id, name=row.name, quantity=row.quantity)
            for row in by_quantity_asc[:TOP_PRODUCTS]
        ),
    )


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


def _remaining(timeout: Optional[float], started: float) -> Optional[float]:
    if timeout is None:
        return None
    remaining = timeout - (time.monotonic() - started)
    if remaining <= 0:
        raise ReportTimeoutError(f"Report timed out after {timeout} seconds")
    return remaining


def resolve_cash_period(period: Union[Granularity, str]) -> Granularity:
    """Validate the granularity of the cash period series."""

    try:
        return Granularity(period)
    except ValueError as exc:
        log.error("Unknown cash period: %r", period)
        raise InvalidFilterError(f"Unknown period granularity: {period!r}") from exc


def _collect(future: Future, name: str, timeout: Optional[float], started: float):
    try:
        return future.result(timeout=_remaining(timeout, started))
    except FuturesTimeoutError as exc:
        log.error("Timed out while building the %s report", name)
        raise ReportTimeoutError(f"Timed out while building the {name} report") from exc


def build_report_bundle(
    store: RecordStore,
    filters: ReportFilters,
    *,
    max_workers: int = data_manager.DEFAULT_MAX_WORKERS,
    timeout: Optional[float] = None,
    now: Optional[datetime] = None,
    cash_period: Union[Granularity, str] = Granularity.DAILY,
) -> ReportBundle:
    """Load the raw sources once and derive all five reports from them.

    Builders only read the shared immutable sources, so they run concurrently.
    Any failure (load error, timeout, invalid filter) propagates: a bundle is
    either complete or not returned at all. ``timeout`` covers loading and
    building alike.

    Args:
        store (RecordStore): Query surface to read from.
        filters (ReportFilters): Report window and order status filter.
        max_workers (int): Thread pool size for fetches and builders.
        timeout (float | None): Seconds allowed for the whole bundle.
        now (datetime | None): Reference moment for the default window.
        cash_period (Granularity | str): Buckets of the cash period series.

    Returns:
        ReportBundle: Cash, financial, sales, customer and product reports.
    """

    started = time.monotonic()
    period = resolve_cash_period(cash_period)
    sources = load_sources(store, filters, max_workers=max_workers, timeout=timeout, now=now)
    opening_balance = calculate_opening_balance(
        store,
        filters,
        max_workers=max_workers,
        timeout=_remaining(timeout, started),
    )

    executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="report-builder")
    try:
        futures = {
            "cash": executor.submit(build_cash_report, sources, opening_balance, period),
            "financial": executor.submit(build_financial_report, sources),
            "sales": executor.submit(build_sales_report, sources),
            "customers": executor.submit(build_customer_report, sources),
            "products": executor.submit(build_product_report, sources),
        }
        bundle = ReportBundle(**{name: _collect(future, name, timeout, started) for name, future in futures.items()})
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    log.info(
        "Built report bundle: %d cash transactions, revenue=%s, sales=%s",
        len(bundle.cash.transactions),
        bundle.financial.revenue_total,
        bundle.sales.total_sales,
    )
    return bundle


def generate_reports(
    context: RuntimeContext,
    filters: ReportFilters,
    *,
    now: Optional[datetime] = None,
    cash_period: Union[Granularity, str] = Granularity.DAILY,
) -> ReportBundle:
    """Produce the report bundle for the workbook held by ``context``."""

    return build_report_bundle(
        WorkbookRecordStore(context.workbook),
        filters,
        max_workers=context.settings.max_workers,
        timeout=context.settings.timeout_seconds,
        now=now,
        cash_period=cash_period,
    )


__all__ = [
    "RuntimeContext",
    "ReportError",
    "SourceLoadError",
    "ReportTimeoutError",
    "InvalidFilterError",
    "RecordStore",
    "WorkbookRecordStore",
    "ReportFilters",
    "ReportSources",
    "ReportBundle",
    "CashSummary",
    "CashReport",
    "FinancialReport",
    "SalesPeriodPoint",
    "ProductSales",
    "CustomerSales",
    "SalesReport",
    "CustomerStats",
    "CustomerReport",
    "ProductMargin",
    "ProductTurnover",
    "ProductReport",
    "load_runtime_context",
    "ensure_schema_version",
    "build_cash_report",
    "build_financial_report",
    "build_sales_report",
    "build_customer_report",
    "build_product_report",
    "resolve_cash_period",
    "build_report_bundle",
    "generate_reports",
]
