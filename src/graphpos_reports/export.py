"""Serialization and tabular export of report bundles.

``bundle_to_dict`` renders the external camelCase shape consumed by the
reports screen. ``build_export_rows`` flattens one report tab into rows with
pt-BR column titles, which ``export_to_csv`` and ``export_to_workbook`` write
to disk.
"""

from __future__ import annotations

import csv
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import openpyxl
from openpyxl.styles import Font

from . import log
from .constants import ReportTab
from .core_logic import (
    CashReport,
    CustomerReport,
    CustomerStats,
    FinancialReport,
    ProductReport,
    ProductSales,
    ReportBundle,
    SalesReport,
)
from .ledger import CashTransaction, PeriodBucket


CENTS = Decimal("0.01")
CSV_DELIMITER = ";"
EMPTY_METHOD = "-"

ExportRow = Dict[str, Union[str, int]]


def format_brl(value: Decimal) -> str:
    """Format a number as Brazilian Real (R$ 150.000,50)."""
    rounded = Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)
    text = f"{abs(rounded):,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return f"-R$ {text}" if rounded < 0 else f"R$ {text}"


def format_percent(value: Decimal, decimals: int = 1) -> str:
    """Format a number as a percentage (e.g. 23.5%)."""
    return f"{value:.{decimals}f}%"


def format_quantity(value: Decimal) -> str:
    """Render quantities with a decimal comma, dropping trailing zeros."""
    normalized = value.normalize()
    if normalized == normalized.to_integral_value():
        return str(int(normalized))
    return format(normalized, "f").replace(".", ",")


def format_timestamp(value: datetime) -> str:
    return value.strftime("%d/%m/%Y %H:%M:%S")


# ---------------------------------------------------------------------------
# JSON shape
# ---------------------------------------------------------------------------


def _money(value: Decimal) -> float:
    return float(value.quantize(CENTS, rounding=ROUND_HALF_UP))


def _quantity(value: Decimal) -> float:
    return float(value)


def _amounts(values: Dict[str, Decimal]) -> Dict[str, float]:
    return {key: _money(value) for key, value in values.items()}


def _transaction_to_dict(tx: CashTransaction) -> Dict[str, Any]:
    return {
        "id": tx.id,
        "date": tx.date.isoformat(),
        "type": tx.type.value,
        "origin": tx.origin,
        "description": tx.description,
        "amount": _money(tx.amount),
        "method": tx.method,
        "status": tx.status,
    }


def _bucket_to_dict(bucket: PeriodBucket) -> Dict[str, Any]:
    return {
        "label": bucket.label,
        "inflow": _money(bucket.inflow),
        "outflow": _money(bucket.outflow),
        "net": _money(bucket.net),
    }


def _product_to_dict(row: ProductSales) -> Dict[str, Any]:
    return {"id": row.id, "name": row.name, "quantity": _quantity(row.quantity), "total": _money(row.total)}


def cash_to_dict(report: CashReport) -> Dict[str, Any]:
    summary = report.summary
    return {
        "transactions": [_transaction_to_dict(tx) for tx in report.transactions],
        "summary": {
            "totalIn": _money(summary.total_in),
            "totalOut": _money(summary.total_out),
            "openingBalance": _money(summary.opening_balance),
            "closingBalance": _money(summary.closing_balance),
        },
        "period": report.period.value,
        "series": [_bucket_to_dict(bucket) for bucket in report.series],
    }


def financial_to_dict(report: FinancialReport) -> Dict[str, Any]:
    return {
        "revenueTotal": _money(report.revenue_total),
        "expenseTotal": _money(report.expense_total),
        "profit": _money(report.profit),
        "margin": _money(report.margin),
        "revenueByOrigin": _amounts(report.revenue_by_origin),
        "revenueByMethod": _amounts(report.revenue_by_method),
        "expensesByCategory": _amounts(report.expenses_by_category),
        "expensesByStatus": _amounts(report.expenses_by_status),
        "cashflow": [_bucket_to_dict(bucket) for bucket in report.cashflow],
    }


def sales_to_dict(report: SalesReport) -> Dict[str, Any]:
    return {
        "totalSales": _money(report.total_sales),
        "orderCount": report.order_count,
        "ticketAverage": _money(report.ticket_average),
        "statusCounts": dict(report.status_counts),
        "salesByPeriod": {
            granularity: [{"label": point.label, "total": _money(point.total)} for point in points]
            for granularity, points in report.sales_by_period.items()
        },
        "salesByProduct": [_product_to_dict(row) for row in report.sales_by_product],
        "salesByCustomer": [
            {"id": row.id, "name": row.name, "orders": row.orders, "total": _money(row.total)}
            for row in report.sales_by_customer
        ],
    }


def _last_order(row: CustomerStats) -> Optional[str]:
    return row.last_order_at.isoformat() if row.last_order_at else None


def customers_to_dict(report: CustomerReport) -> Dict[str, Any]:
    return {
        "mostActive": [
            {"id": row.id, "name": row.name, "orders": row.orders, "total": _money(row.total)}
            for row in report.most_active
        ],
        "highestRevenue": [
            {"id": row.id, "name": row.name, "total": _money(row.total)} for row in report.highest_revenue
        ],
        "pendingBalances": [
            {"id": row.id, "name": row.name, "balance": _money(row.balance)} for row in report.pending_balances
        ],
        "insights": list(report.insights),
        "history": [
            {
                "id": row.id,
                "name": row.name,
                "orders": row.orders,
                "total": _money(row.total),
                "lastOrderAt": _last_order(row),
            }
            for row in report.history
        ],
    }


def products_to_dict(report: ProductReport) -> Dict[str, Any]:
    return {
        "mostSold": [_product_to_dict(row) for row in report.most_sold],
        "leastSold": [_product_to_dict(row) for row in report.least_sold],
        "revenueByProduct": [
            {"id": row.id, "name": row.name, "total": _money(row.total)} for row in report.revenue_by_product
        ],
        "marginByProduct": [
            {"id": row.id, "name": row.name, "margin": _money(row.margin), "marginPct": _money(row.margin_pct)}
            for row in report.margin_by_product
        ],
        "lowTurnover": [
            {"id": row.id, "name": row.name, "quantity": _quantity(row.quantity)} for row in report.low_turnover
        ],
    }


TAB_SERIALIZERS = {
    ReportTab.CASH: lambda bundle: cash_to_dict(bundle.cash),
    ReportTab.FINANCIAL: lambda bundle: financial_to_dict(bundle.financial),
    ReportTab.SALES: lambda bundle: sales_to_dict(bundle.sales),
    ReportTab.CUSTOMERS: lambda bundle: customers_to_dict(bundle.customers),
    ReportTab.PRODUCTS: lambda bundle: products_to_dict(bundle.products),
}


def bundle_to_dict(bundle: ReportBundle) -> Dict[str, Any]:
    """Render the whole bundle as JSON-ready primitives.

    Money is rounded to cents and emitted as ``float``; timestamps are ISO
    strings. Dictionary and list ordering follows the report builders, so
    identical bundles always serialize identically.
    """

    return {tab.value: serialize(bundle) for tab, serialize in TAB_SERIALIZERS.items()}


# ---------------------------------------------------------------------------
# Tabular export
# ---------------------------------------------------------------------------


def _cash_rows(report: CashReport) -> List[ExportRow]:
    return [
        {
            "Data": format_timestamp(tx.date),
            "Tipo": tx.type.value,
            "Origem": tx.origin,
            "Descricao": tx.description,
            "Metodo": tx.method or EMPTY_METHOD,
            "Valor": format_brl(tx.amount),
            "Status": tx.status,
        }
        for tx in report.transactions
    ]


def _financial_rows(report: FinancialReport) -> List[ExportRow]:
    rows: List[ExportRow] = [
        {"Secao": "Resumo", "Descricao": "Receita total", "Valor": format_brl(report.revenue_total)},
        {"Secao": "Resumo", "Descricao": "Despesa total", "Valor": format_brl(report.expense_total)},
        {"Secao": "Resumo", "Descricao": "Lucro", "Valor": format_brl(report.profit)},
        {"Secao": "Resumo", "Descricao": "Margem", "Valor": format_percent(report.margin)},
    ]
    sections = (
        ("Receita por origem", report.revenue_by_origin),
        ("Receita por forma", report.revenue_by_method),
        ("Despesas por categoria", report.expenses_by_category),
        ("Despesas por status", report.expenses_by_status),
    )
    for section, values in sections:
        for label, value in values.items():
            rows.append({"Secao": section, "Descricao": label, "Valor": format_brl(value)})
    return rows


def _sales_rows(report: SalesReport) -> List[ExportRow]:
    rows: List[ExportRow] = []
    for row in report.sales_by_product:
        rows.append(
            {
                "Secao": "Vendas por produto",
                "Produto": row.name,
                "Quantidade": format_quantity(row.quantity),
                "Total": format_brl(row.total),
            }
        )
    for row in report.sales_by_customer:
        rows.append(
            {
                "Secao": "Vendas por cliente",
                "Cliente": row.name,
                "Pedidos": row.orders,
                "Total": format_brl(row.total),
            }
        )
    return rows


def _customer_rows(report: CustomerReport) -> List[ExportRow]:
    rows: List[ExportRow] = []
    for row in report.most_active:
        rows.append({"Secao": "Clientes ativos", "Cliente": row.name, "Pedidos": row.orders, "Total": format_brl(row.total)})
    for row in report.highest_revenue:
        rows.append({"Secao": "Maior faturamento", "Cliente": row.name, "Total": format_brl(row.total)})
    for row in report.pending_balances:
        rows.append({"Secao": "Saldo pendente", "Cliente": row.name, "Saldo": format_brl(row.balance)})
    return rows


def _product_rows(report: ProductReport) -> List[ExportRow]:
    return [
        {"Produto": row.name, "Margem": format_brl(row.margin), "Percentual": format_percent(row.margin_pct)}
        for row in report.margin_by_product
    ]


def build_export_rows(tab: Union[ReportTab, str], bundle: ReportBundle) -> List[ExportRow]:
    """Flatten one report tab into export rows with pt-BR column titles.

    Args:
        tab (ReportTab | str): ``cash``, ``financial``, ``sales``,
            ``customers`` or ``products``.
        bundle (ReportBundle): Bundle produced by
            :func:`~graphpos_reports.core_logic.generate_reports`.

    Returns:
        list[dict]: Rows ready for :func:`export_to_csv` or
            :func:`export_to_workbook`. Sections of one tab may use different
            columns.

    Raises:
        ValueError: If ``tab`` is not a known report tab.
    """

    tab = ReportTab(tab)
    if tab is ReportTab.CASH:
        return _cash_rows(bundle.cash)
    if tab is ReportTab.FINANCIAL:
        return _financial_rows(bundle.financial)
    if tab is ReportTab.SALES:
        return _sales_rows(bundle.sales)
    if tab is ReportTab.CUSTOMERS:
        return _customer_rows(bundle.customers)
    return _product_rows(bundle.products)


def collect_headers(rows: Iterable[ExportRow]) -> List[str]:
    """Union of the row keys in first-seen order."""

    headers: Dict[str, None] = {}
    for row in rows:
        for key in row:
            headers.setdefault(key, None)
    return list(headers)


def _cell(value: Union[str, int, None]) -> Union[str, int]:
    return "" if value is None else value


def export_to_csv(rows: Sequence[ExportRow], destination: Path) -> Path:
    """Write ``rows`` as ``;``-separated UTF-8 CSV (with BOM, for Excel).

    Returns:
        Path: Resolved destination path.
    """

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    headers = collect_headers(rows)
    with dest.open("w", encoding="utf-8-sig", newline="") as handle:
        writer = csv.writer(handle, delimiter=CSV_DELIMITER)
        if headers:
            writer.writerow(headers)
        for row in rows:
            writer.writerow([_cell(row.get(header)) for header in headers])

    log.info("Exported %d rows to '%s'", len(rows), dest)
    return dest


def export_to_workbook(
    rows: Sequence[ExportRow],
    destination: Path,
    title: str = "Relatorio",
    company_name: Optional[str] = None,
) -> Path:
    """Write ``rows`` to a single-sheet ``.xlsx`` workbook with a bold header.

    ``company_name`` is recorded as the document creator and prefixes the
    document title, so exports from different shops stay distinguishable.
    """

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    headers = collect_headers(rows)

    workbook = openpyxl.Workbook()
    if company_name:
        workbook.properties.creator = company_name
        workbook.properties.title = f"{company_name} - {title}"
    sheet = workbook.active
    # Excel caps sheet titles at 31 characters
    sheet.title = title[:31]
    if headers:
        sheet.append(headers)
        for cell in sheet[1]:
            cell.font = Font(bold=True)
    for row in rows:
        sheet.append([_cell(row.get(header)) for header in headers])

    workbook.save(dest)
    log.info("Exported %d rows to workbook '%s'", len(rows), dest)
    return dest


__all__ = [
    "format_brl",
    "format_percent",
    "bundle_to_dict",
    "build_export_rows",
    "export_to_csv",
    "export_to_workbook",
]
