"""Unified cash ledger helpers.

Three independent sources move cash in the backend: payments recorded against
orders, point-of-sale tickets and manual ledger entries. This module maps the
realized events of each source onto one :class:`CashTransaction` shape,
buckets transaction lists into calendar periods and computes the opening
balance that precedes a report window.

The realization rules live here and nowhere else. The cash, financial and
opening-balance computations all go through the same predicates and the same
"effective realization date" resolvers, so they never disagree about whether
or when cash moved.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Tuple, Union

from . import data_manager, log
from .constants import (
    MANUAL_ENTRY_DESCRIPTION,
    CashFlowType,
    CashOrigin,
    FinancialEntryStatus,
    FinancialEntryType,
    Granularity,
    PaymentStatus,
)
from .record_store import (
    InvalidFilterError,
    RecordStore,
    ReportFilters,
    load_opening_sources,
    parse_report_date,
    start_of_day,
)


ZERO = Decimal("0")

# (name, first hour, last hour exclusive); anything outside is the night shift.
SHIFTS: Tuple[Tuple[str, int, int], ...] = (
    ("Manhã", 6, 14),
    ("Tarde", 14, 22),
)
NIGHT_SHIFT = "Noite"


@dataclass(frozen=True)
class CashTransaction:
    """One realized movement of cash, whatever subsystem produced it."""

    id: str
    date: datetime
    type: CashFlowType
    origin: str
    description: str
    amount: Decimal
    method: Optional[str]
    status: str


@dataclass(frozen=True)
class PeriodBucket:
    """Inflow/outflow totals for one labeled time slot."""

    label: str
    inflow: Decimal
    outflow: Decimal
    net: Decimal


class _PeriodSlot(NamedTuple):
    label: str
    sort_key: int


# ---------------------------------------------------------------------------
# Realization rules
# ---------------------------------------------------------------------------


def payment_realized_at(payment: data_manager.OrderPaymentRow) -> Optional[datetime]:
    """Moment cash moved for an order payment: ``paid_at``, else ``created_at``."""

    return payment.paid_at or payment.created_at


def sale_realized_at(sale: data_manager.SaleRow) -> Optional[datetime]:
    return sale.created_at


def entry_realized_at(entry: data_manager.FinancialEntryRow) -> Optional[datetime]:
    """Moment cash moved for a ledger entry: ``paid_at``, else ``occurred_at``."""

    return entry.paid_at or entry.occurred_at


def is_payment_realized(payment: data_manager.OrderPaymentRow) -> bool:
    return payment.status == PaymentStatus.PAID.value


def is_sale_realized(sale: data_manager.SaleRow) -> bool:
    """A POS ticket counts only when fully paid.

    The comparison is exact. Amounts are :class:`~decimal.Decimal`, so a
    ticket paid to the cent is never misread because of binary rounding.
    """

    return sale.amount_paid >= sale.total


def is_entry_realized(entry: data_manager.FinancialEntryRow) -> bool:
    return entry.status == FinancialEntryStatus.PAID.value


def is_revenue_entry(entry: data_manager.FinancialEntryRow) -> bool:
    return entry.entry_type == FinancialEntryType.REVENUE.value


def is_expense_entry(entry: data_manager.FinancialEntryRow) -> bool:
    return entry.entry_type == FinancialEntryType.EXPENSE.value


# ---------------------------------------------------------------------------
# Transaction unifier
# ---------------------------------------------------------------------------


def payment_to_transaction(payment: data_manager.OrderPaymentRow, realized_at: datetime) -> CashTransaction:
    return CashTransaction(
        id=payment.payment_id,
        date=realized_at,
        type=CashFlowType.INFLOW,
        origin=CashOrigin.ORDER.value,
        description=f"Pagamento pedido {payment.order_id}",
        amount=payment.amount,
        method=payment.method,
        status=payment.status,
    )


def sale_to_transaction(sale: data_manager.SaleRow, realized_at: datetime) -> CashTransaction:
    return CashTransaction(
        id=sale.sale_id,
        date=realized_at,
        type=CashFlowType.INFLOW,
        origin=CashOrigin.POS.value,
        description=f"Venda PDV {sale.sale_id}",
        amount=sale.total,
        method=sale.payment_method,
        status=PaymentStatus.PAID.value,
    )


def entry_to_transaction(entry: data_manager.FinancialEntryRow, realized_at: datetime) -> CashTransaction:
    return CashTransaction(
        id=entry.entry_id,
        date=realized_at,
        type=CashFlowType.INFLOW if is_revenue_entry(entry) else CashFlowType.OUTFLOW,
        origin=entry.origin or CashOrigin.MANUAL.value,
        description=entry.description or entry.notes or MANUAL_ENTRY_DESCRIPTION,
        amount=entry.amount,
        method=entry.payment_method,
        status=entry.status,
    )


_SourceRow = Union[data_manager.OrderPaymentRow, data_manager.SaleRow, data_manager.FinancialEntryRow]


def _map_realized(
    rows: Iterable[_SourceRow],
    is_realized: Callable[[_SourceRow], bool],
    realized_at: Callable[[_SourceRow], Optional[datetime]],
    to_transaction: Callable[[_SourceRow, datetime], CashTransaction],
) -> List[CashTransaction]:
    transactions: List[CashTransaction] = []
    for row in rows:
        if not is_realized(row):
            continue
        moment = realized_at(row)
        if moment is None:
            log.warning("Skipping realized %s without any timestamp: %r", type(row).__name__, row)
            continue
        transactions.append(to_transaction(row, moment))
    return transactions


def unify_transactions(
    payments: Iterable[data_manager.OrderPaymentRow],
    sales: Iterable[data_manager.SaleRow],
    entries: Iterable[data_manager.FinancialEntryRow],
) -> List[CashTransaction]:
    """Map every realized payment, sale and ledger entry to a cash transaction.

    Unrealized rows (pending or partial payments, partially paid tickets,
    unpaid ledger entries) never appear. The result order is unspecified;
    callers sort as needed.
    """

    transactions = [
        *_map_realized(payments, is_payment_realized, payment_realized_at, payment_to_transaction),
        *_map_realized(sales, is_sale_realized, sale_realized_at, sale_to_transaction),
        *_map_realized(entries, is_entry_realized, entry_realized_at, entry_to_transaction),
    ]
    log.debug("Unified %d cash transactions", len(transactions))
    return transactions


def sum_amounts(transactions: Iterable[CashTransaction], flow: CashFlowType) -> Decimal:
    return sum((tx.amount for tx in transactions if tx.type is flow), ZERO)


def net_balance(transactions: Iterable[CashTransaction]) -> Decimal:
    """Net cash position: inflows count positive, outflows negative."""

    total = ZERO
    for tx in transactions:
        total += tx.amount if tx.type is CashFlowType.INFLOW else -tx.amount
    return total


# ---------------------------------------------------------------------------
# Period bucketer
# ---------------------------------------------------------------------------


def shift_for(moment: datetime) -> Tuple[str, int]:
    """Return the shift name and its ordinal within the day for ``moment``."""

    for index, (name, first_hour, end_hour) in enumerate(SHIFTS):
        if first_hour <= moment.hour < end_hour:
            return name, index
    return NIGHT_SHIFT, len(SHIFTS)


def _format_day(moment: datetime) -> str:
    return moment.strftime("%d/%m/%Y")


def _week_start(moment: datetime) -> datetime:
    # weeks start on Sunday
    return moment - timedelta(days=(moment.weekday() + 1) % 7)


def _slot_for(moment: datetime, granularity: Granularity) -> _PeriodSlot:
    day = moment.date()
    if granularity is Granularity.SHIFT:
        name, index = shift_for(moment)
        return _PeriodSlot(f"{_format_day(moment)} - {name}", day.toordinal() * (len(SHIFTS) + 1) + index)
    if granularity is Granularity.WEEKLY:
        sunday = _week_start(moment)
        return _PeriodSlot(f"Sem {_format_day(sunday)}", sunday.date().toordinal())
    if granularity is Granularity.MONTHLY:
        return _PeriodSlot(f"{moment.month}/{moment.year}", moment.year * 12 + moment.month - 1)
    if granularity is Granularity.ANNUAL:
        return _PeriodSlot(str(moment.year), moment.year)
    return _PeriodSlot(_format_day(moment), day.toordinal())


def _coerce_granularity(granularity: Union[Granularity, str]) -> Granularity:
    try:
        return Granularity(granularity)
    except ValueError as exc:
        raise InvalidFilterError(f"Unknown period granularity: {granularity!r}") from exc


def build_period_series(
    transactions: Iterable[CashTransaction],
    granularity: Union[Granularity, str],
) -> List[PeriodBucket]:
    """Group transactions into labeled calendar buckets in chronological order.

    Labels are Brazilian Portuguese: ``dd/mm/yyyy`` days, ``Sem dd/mm/yyyy``
    weeks (starting on Sunday), ``m/yyyy`` months, ``yyyy`` years and
    ``dd/mm/yyyy - Manhã|Tarde|Noite`` shifts. Buckets are ordered by the slot
    of the first transaction seen for each label, never by the label text.

    Args:
        transactions (Iterable[CashTransaction]): Any unified transaction list.
        granularity (Granularity | str): ``daily``, ``weekly``, ``monthly``,
            ``annual`` or ``shift``.

    Returns:
        list[PeriodBucket]: One bucket per label; empty for empty input.

    Raises:
        InvalidFilterError: If ``granularity`` is unknown.
    """

    period = _coerce_granularity(granularity)
    slots: Dict[str, _PeriodSlot] = {}
    inflows: Dict[str, Decimal] = {}
    outflows: Dict[str, Decimal] = {}

    for tx in transactions:
        slot = _slot_for(tx.date, period)
        if slot.label not in slots:
            slots[slot.label] = slot
            inflows[slot.label] = ZERO
            outflows[slot.label] = ZERO
        if tx.type is CashFlowType.INFLOW:
            inflows[slot.label] += tx.amount
        else:
            outflows[slot.label] += tx.amount

    ordered = sorted(slots.values(), key=lambda slot: slot.sort_key)
    return [
        PeriodBucket(
            label=slot.label,
            inflow=inflows[slot.label],
            outflow=outflows[slot.label],
            net=inflows[slot.label] - outflows[slot.label],
        )
        for slot in ordered
    ]


# ---------------------------------------------------------------------------
# Opening balance
# ---------------------------------------------------------------------------


def calculate_opening_balance(
    store: RecordStore,
    filters: ReportFilters,
    *,
    max_workers: int = data_manager.DEFAULT_MAX_WORKERS,
    timeout: Optional[float] = None,
) -> Decimal:
    """Net of every realized cash event recorded before the report window.

    Only ``filters.start_date`` matters: without it the balance is zero.
    Otherwise payments, sales and ledger entries recorded strictly before
    midnight of that day are unified with :func:`unify_transactions` and
    netted with :func:`net_balance`.

    Raises:
        InvalidFilterError: If ``start_date`` is malformed.
        SourceLoadError: If any of the three fetches fails.
    """

    if not filters.start_date:
        return ZERO

    before = start_of_day(parse_report_date(filters.start_date, field_name="start_date"))
    sources = load_opening_sources(store, before, max_workers=max_workers, timeout=timeout)
    transactions = unify_transactions(sources.order_payments, sources.sales, sources.financial_entries)
    balance = net_balance(transactions)
    log.debug("Opening balance before %s: %s (%d transactions)", before, balance, len(transactions))
    return balance
