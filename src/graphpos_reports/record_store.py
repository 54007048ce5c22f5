"""Record store adapter feeding the reporting engine.

The engine reads raw rows through the :class:`RecordStore` query surface:
filter-by-date, filter-by-status and id-set joins. Anything able to answer
those queries (the Excel workbook shipped with the tooling, a database, a
remote API client) can back a report run. :class:`WorkbookRecordStore` is the
``openpyxl`` implementation used by the CLI.

Loading happens in a staged fan-out. Collections that only depend on the
report window are fetched concurrently first; child rows and lookups keyed by
the ids found in stage one are fetched in a second concurrent batch; product
cost lookups, which depend on the item rows, close the load. Any failing fetch
aborts the whole load: the caller never receives silently empty collections.
"""

from __future__ import annotations

import time
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, replace
from datetime import date, datetime, time as clock_time, timedelta
from typing import Callable, Dict, FrozenSet, Iterable, Mapping, Optional, Protocol, Sequence, Tuple

from openpyxl.workbook import Workbook

from . import data_manager, log
from .constants import ALL_STATUSES, DEFAULT_RANGE_DAYS, OrderStatus


class ReportError(Exception):
    """Base class for every failure raised while producing reports."""


class SourceLoadError(ReportError):
    """Raised when one raw collection cannot be loaded from the record store."""

    def __init__(self, collection: str, cause: Optional[BaseException] = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to load '{collection}'{detail}")
        self.collection = collection


class ReportTimeoutError(ReportError):
    """Raised when the caller-level timeout elapses before all sources load."""


class InvalidFilterError(ReportError, ValueError):
    """Raised for malformed report filters (dates, statuses, granularities)."""


@dataclass(frozen=True)
class ReportFilters:
    """Caller input for one report run.

    Dates are ISO calendar dates (``YYYY-MM-DD``). ``status`` restricts the
    order collection; ``None`` or ``"all"`` keeps every status.
    """

    start_date: Optional[str] = None
    end_date: Optional[str] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class DateRange:
    """Inclusive local-time window ``[start, end]``."""

    start: datetime
    end: datetime

    def contains(self, moment: Optional[datetime]) -> bool:
        return moment is not None and self.start <= moment <= self.end


@dataclass(frozen=True)
class ReportSources:
    """Immutable bundle of raw collections shared by all report builders."""

    orders: Tuple[data_manager.OrderRow, ...] = ()
    order_items: Tuple[data_manager.OrderItemRow, ...] = ()
    order_payments: Tuple[data_manager.OrderPaymentRow, ...] = ()
    sales: Tuple[data_manager.SaleRow, ...] = ()
    sale_items: Tuple[data_manager.SaleItemRow, ...] = ()
    customers: Tuple[data_manager.CustomerRow, ...] = ()
    products: Tuple[data_manager.ProductRow, ...] = ()
    product_supplies: Tuple[data_manager.ProductSupplyRow, ...] = ()
    financial_entries: Tuple[data_manager.FinancialEntryRow, ...] = ()
    expense_categories: Tuple[data_manager.ExpenseCategoryRow, ...] = ()


@dataclass(frozen=True)
class OpeningSources:
    """Realization-candidate rows recorded before the report window."""

    order_payments: Tuple[data_manager.OrderPaymentRow, ...] = ()
    sales: Tuple[data_manager.SaleRow, ...] = ()
    financial_entries: Tuple[data_manager.FinancialEntryRow, ...] = ()


class RecordStore(Protocol):
    """Read-only query surface the engine requires from a record store."""

    def fetch_orders(self, window: DateRange, status: Optional[str]) -> Sequence[data_manager.OrderRow]: ...

    def fetch_order_items(self, order_ids: FrozenSet[str]) -> Sequence[data_manager.OrderItemRow]: ...

    def fetch_order_payments(self, window: DateRange) -> Sequence[data_manager.OrderPaymentRow]: ...

    def fetch_sales(self, window: DateRange) -> Sequence[data_manager.SaleRow]: ...

    def fetch_sale_items(self, sale_ids: FrozenSet[str]) -> Sequence[data_manager.SaleItemRow]: ...

    def fetch_financial_entries(self, window: DateRange) -> Sequence[data_manager.FinancialEntryRow]: ...

    def fetch_expense_categories(self) -> Sequence[data_manager.ExpenseCategoryRow]: ...

    def fetch_customers(self, customer_ids: FrozenSet[str]) -> Sequence[data_manager.CustomerRow]: ...

    def fetch_products(self, product_ids: FrozenSet[str]) -> Sequence[data_manager.ProductRow]: ...

    def fetch_product_supplies(self, product_ids: FrozenSet[str]) -> Sequence[data_manager.ProductSupplyRow]: ...

    def fetch_order_payments_before(self, instant: datetime) -> Sequence[data_manager.OrderPaymentRow]: ...

    def fetch_sales_before(self, instant: datetime) -> Sequence[data_manager.SaleRow]: ...

    def fetch_financial_entries_before(self, instant: datetime) -> Sequence[data_manager.FinancialEntryRow]: ...


def _before(moment: Optional[datetime], instant: datetime) -> bool:
    return moment is not None and moment < instant


class WorkbookRecordStore:
    """:class:`RecordStore` backed by the ``openpyxl`` master workbook.

    Every query streams its sheet through the data layer and filters in
    memory. The workbook is only read, so concurrent fetches are safe.
    """

    def __init__(self, workbook: Workbook) -> None:
        self.workbook = workbook

    def fetch_orders(self, window: DateRange, status: Optional[str]) -> list[data_manager.OrderRow]:
        return [
            order
            for order in data_manager.iter_orders(self.workbook)
            if window.contains(order.created_at) and (status is None or order.status == status)
        ]

    def fetch_order_items(self, order_ids: FrozenSet[str]) -> list[data_manager.OrderItemRow]:
        return [item for item in data_manager.iter_order_items(self.workbook) if item.order_id in order_ids]

    def fetch_order_payments(self, window: DateRange) -> list[data_manager.OrderPaymentRow]:
        return [
            payment
            for payment in data_manager.iter_order_payments(self.workbook)
            if window.contains(payment.created_at)
        ]

    def fetch_sales(self, window: DateRange) -> list[data_manager.SaleRow]:
        return [sale for sale in data_manager.iter_sales(self.workbook) if window.contains(sale.created_at)]

    def fetch_sale_items(self, sale_ids: FrozenSet[str]) -> list[data_manager.SaleItemRow]:
        return [item for item in data_manager.iter_sale_items(self.workbook) if item.sale_id in sale_ids]

    def fetch_financial_entries(self, window: DateRange) -> list[data_manager.FinancialEntryRow]:
        return [
            entry
            for entry in data_manager.iter_financial_entries(self.workbook)
            if window.contains(entry.occurred_at)
        ]

    def fetch_expense_categories(self) -> list[data_manager.ExpenseCategoryRow]:
        return list(data_manager.iter_expense_categories(self.workbook))

    def fetch_customers(self, customer_ids: FrozenSet[str]) -> list[data_manager.CustomerRow]:
        return [
            customer
            for customer in data_manager.iter_customers(self.workbook)
            if customer.customer_id in customer_ids
        ]

    def fetch_products(self, product_ids: FrozenSet[str]) -> list[data_manager.ProductRow]:
        return [
            product
            for product in data_manager.iter_products(self.workbook)
            if product.product_id in product_ids
        ]

    def fetch_product_supplies(self, product_ids: FrozenSet[str]) -> list[data_manager.ProductSupplyRow]:
        """Return bill-of-materials lines with ``supply_cost_per_unit`` joined.

        Lines pointing at an unknown supply keep ``supply_cost_per_unit`` as
        ``None``; the product report treats that as a zero cost.
        """

        costs = {supply.supply_id: supply.cost_per_unit for supply in data_manager.iter_supplies(self.workbook)}
        return [
            replace(line, supply_cost_per_unit=costs.get(line.supply_id))
            for line in data_manager.iter_product_supplies(self.workbook)
            if line.product_id in product_ids
        ]

    def fetch_order_payments_before(self, instant: datetime) -> list[data_manager.OrderPaymentRow]:
        return [
            payment
            for payment in data_manager.iter_order_payments(self.workbook)
            if _before(payment.created_at, instant)
        ]

    def fetch_sales_before(self, instant: datetime) -> list[data_manager.SaleRow]:
        return [sale for sale in data_manager.iter_sales(self.workbook) if _before(sale.created_at, instant)]

    def fetch_financial_entries_before(self, instant: datetime) -> list[data_manager.FinancialEntryRow]:
        return [
            entry
            for entry in data_manager.iter_financial_entries(self.workbook)
            if _before(entry.occurred_at, instant)
        ]


def parse_report_date(value: str, *, field_name: str = "date") -> date:
    """Parse an ISO calendar date supplied as a report filter.

    Raises:
        InvalidFilterError: If ``value`` is not a ``YYYY-MM-DD`` date.
    """

    try:
        return date.fromisoformat(value.strip())
    except (AttributeError, ValueError) as exc:
        log.error("Invalid %s filter: %r", field_name, value)
        raise InvalidFilterError(f"Invalid {field_name}: {value!r} (expected YYYY-MM-DD)") from exc


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, clock_time.min)


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, clock_time.max)


def normalize_range(filters: ReportFilters, *, now: Optional[datetime] = None) -> DateRange:
    """Resolve the inclusive report window from optional filter dates.

    The end defaults to the last instant of today and the start to midnight
    ``DEFAULT_RANGE_DAYS`` days earlier. Each explicit date overrides its own
    bound independently and is snapped to the start (or end) of that day.

    Args:
        filters (ReportFilters): Caller filters.
        now (datetime | None): Reference moment; defaults to the local clock.

    Returns:
        DateRange: Local-time window used by every dated fetch.
    """

    today = (now or datetime.now()).date()
    if filters.start_date:
        start = start_of_day(parse_report_date(filters.start_date, field_name="start_date"))
    else:
        start = start_of_day(today - timedelta(days=DEFAULT_RANGE_DAYS))
    if filters.end_date:
        end = end_of_day(parse_report_date(filters.end_date, field_name="end_date"))
    else:
        end = end_of_day(today)
    if start > end:
        log.warning("Report window starts after it ends (%s > %s); reports will be empty", start, end)
    return DateRange(start=start, end=end)


def resolve_status_filter(filters: ReportFilters) -> Optional[str]:
    """Return the order status to filter on, or ``None`` for every status."""

    status = filters.status
    if status is None or status == ALL_STATUSES:
        return None
    try:
        return OrderStatus(status).value
    except ValueError as exc:
        log.error("Unknown order status filter: %r", status)
        raise InvalidFilterError(f"Unknown order status: {status!r}") from exc


class _Deadline:
    """Track the remaining share of a caller-level timeout across stages."""

    def __init__(self, timeout: Optional[float]) -> None:
        self._expires_at = None if timeout is None else time.monotonic() + timeout

    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())


def _run_stage(
    executor: ThreadPoolExecutor,
    tasks: Mapping[str, Callable[[], Iterable]],
    deadline: _Deadline,
) -> Dict[str, tuple]:
    """Submit ``tasks`` concurrently and collect their results as tuples.

    Raises:
        ReportTimeoutError: If the deadline elapses before every task finishes.
        SourceLoadError: For the first collection (in declaration order) whose
            fetch raised.
    """

    futures: Dict[str, Future] = {name: executor.submit(task) for name, task in tasks.items()}
    if not futures:
        return {}
    done, pending = wait(futures.values(), timeout=deadline.remaining(), return_when=FIRST_EXCEPTION)
    failed = [name for name, future in futures.items() if future in done and future.exception() is not None]
    if failed:
        for future in pending:
            future.cancel()
        name = failed[0]
        cause = futures[name].exception()
        log.error("Loading '%s' failed: %s", name, cause)
        raise SourceLoadError(name, cause) from cause
    if pending:
        for future in pending:
            future.cancel()
        names = sorted(name for name, future in futures.items() if future in pending)
        log.error("Timed out while loading %s", ", ".join(names))
        raise ReportTimeoutError(f"Timed out while loading: {', '.join(names)}")

    results = {name: tuple(future.result()) for name, future in futures.items()}
    for name, rows in results.items():
        log.debug("Loaded %d '%s' rows", len(rows), name)
    return results


def _empty() -> tuple:
    return ()


def load_sources(
    store: RecordStore,
    filters: ReportFilters,
    *,
    max_workers: int = data_manager.DEFAULT_MAX_WORKERS,
    timeout: Optional[float] = None,
    now: Optional[datetime] = None,
) -> ReportSources:
    """Load every raw collection for the report window.

    Args:
        store (RecordStore): Query surface to read from.
        filters (ReportFilters): Caller filters; validated before any fetch.
        max_workers (int): Thread pool size used for each fan-out stage.
        timeout (float | None): Seconds allowed for the whole load.
        now (datetime | None): Reference moment for the default window.

    Returns:
        ReportSources: Immutable bundle shared by the report builders.

    Raises:
        InvalidFilterError: If the filters are malformed.
        SourceLoadError: If any fetch fails.
        ReportTimeoutError: If ``timeout`` elapses first.
    """

    window = normalize_range(filters, now=now)
    status = resolve_status_filter(filters)
    deadline = _Deadline(timeout)
    log.info("Loading report sources for %s .. %s (status=%s)", window.start, window.end, status or ALL_STATUSES)

    executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="report-source")
    try:
        first = _run_stage(
            executor,
            {
                "orders": lambda: store.fetch_orders(window, status),
                "order_payments": lambda: store.fetch_order_payments(window),
                "sales": lambda: store.fetch_sales(window),
                "financial_entries": lambda: store.fetch_financial_entries(window),
                "expense_categories": store.fetch_expense_categories,
            },
            deadline,
        )

        order_ids = frozenset(order.order_id for order in first["orders"])
        sale_ids = frozenset(sale.sale_id for sale in first["sales"])
        customer_ids = frozenset(order.customer_id for order in first["orders"] if order.customer_id)
        second = _run_stage(
            executor,
            {
                "order_items": (lambda: store.fetch_order_items(order_ids)) if order_ids else _empty,
                "sale_items": (lambda: store.fetch_sale_items(sale_ids)) if sale_ids else _empty,
                "customers": (lambda: store.fetch_customers(customer_ids)) if customer_ids else _empty,
            },
            deadline,
        )

        product_ids = frozenset(
            item.product_id
            for item in (*second["order_items"], *second["sale_items"])
            if item.product_id
        )
        third = _run_stage(
            executor,
            {
                "products": (lambda: store.fetch_products(product_ids)) if product_ids else _empty,
                "product_supplies": (lambda: store.fetch_product_supplies(product_ids)) if product_ids else _empty,
            },
            deadline,
        )
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    return ReportSources(
        orders=first["orders"],
        order_items=second["order_items"],
        order_payments=first["order_payments"],
        sales=first["sales"],
        sale_items=second["sale_items"],
        customers=second["customers"],
        products=third["products"],
        product_supplies=third["product_supplies"],
        financial_entries=first["financial_entries"],
        expense_categories=first["expense_categories"],
    )


def load_opening_sources(
    store: RecordStore,
    before: datetime,
    *,
    max_workers: int = data_manager.DEFAULT_MAX_WORKERS,
    timeout: Optional[float] = None,
) -> OpeningSources:
    """Load payments, sales and ledger entries recorded strictly before ``before``.

    Rows are selected on the same primary timestamp the report window uses
    (``created_at`` / ``occurred_at``) so every row falls either before the
    window or inside it, never both.
    """

    executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="report-opening")
    try:
        rows = _run_stage(
            executor,
            {
                "order_payments": lambda: store.fetch_order_payments_before(before),
                "sales": lambda: store.fetch_sales_before(before),
                "financial_entries": lambda: store.fetch_financial_entries_before(before),
            },
            _Deadline(timeout),
        )
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    return OpeningSources(
        order_payments=rows["order_payments"],
        sales=rows["sales"],
        financial_entries=rows["financial_entries"],
    )
