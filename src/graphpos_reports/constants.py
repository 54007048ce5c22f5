"""Enumerations and sentinels shared across the reporting engine.

Centralises the status vocabularies of the point-of-sale backend so that the
data access layer (DAL), the ledger helpers and the report builders agree on
which raw values mean "cash has moved".
"""

from __future__ import annotations

from enum import Enum


# Central schema version expected by all layers when validating workbooks.
EXPECTED_SCHEMA_VERSION = "1.0.0"

# Width of the report window when the caller does not supply a start date.
DEFAULT_RANGE_DAYS = 30

# Fallbacks used whenever an optional field is blank.
UNDEFINED_METHOD = "indefinido"
UNCATEGORIZED = "Sem categoria"
DEFAULT_CUSTOMER_NAME = "Cliente"
NO_CUSTOMER_KEY = "sem-cliente"
MANUAL_ENTRY_DESCRIPTION = "Lançamento manual"

ALL_STATUSES = "all"


class OrderStatus(str, Enum):
    """Enumerate the production workflow states of an order."""

    QUOTE = "orcamento"
    PENDING = "pendente"
    ART_IN_PROGRESS = "produzindo_arte"
    ART_APPROVED = "arte_aprovada"
    IN_PRODUCTION = "em_producao"
    FINISHED = "finalizado"
    READY = "pronto"
    AWAITING_PICKUP = "aguardando_retirada"
    DELIVERED = "entregue"
    CANCELLED = "cancelado"


class PaymentStatus(str, Enum):
    """Enumerate the settlement states of orders and order payments."""

    PENDING = "pendente"
    PARTIAL = "parcial"
    PAID = "pago"


class FinancialEntryType(str, Enum):
    """Enumerate the direction of a manual ledger entry."""

    REVENUE = "receita"
    EXPENSE = "despesa"


class FinancialEntryStatus(str, Enum):
    """Enumerate the settlement states of a manual ledger entry."""

    PENDING = "pendente"
    PAID = "pago"
    OVERDUE = "atrasado"


class CashFlowType(str, Enum):
    """Enumerate the direction of a unified cash transaction."""

    INFLOW = "entrada"
    OUTFLOW = "saida"


class CashOrigin(str, Enum):
    """Enumerate the subsystems that produce cash transactions."""

    ORDER = "pedido"
    POS = "pdv"
    MANUAL = "manual"


class Granularity(str, Enum):
    """Enumerate the calendar slots supported by the period bucketer."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ANNUAL = "annual"
    SHIFT = "shift"


# Granularities reported in the sales trend (shifts are cash-only).
SALES_GRANULARITIES: tuple[Granularity, ...] = (
    Granularity.DAILY,
    Granularity.WEEKLY,
    Granularity.MONTHLY,
    Granularity.ANNUAL,
)


class ReportTab(str, Enum):
    """Enumerate the five reports produced for one invocation."""

    CASH = "cash"
    FINANCIAL = "financial"
    SALES = "sales"
    CUSTOMERS = "customers"
    PRODUCTS = "products"


class SheetName(str, Enum):
    """Enumerate the workbook sheet names read by the DAL."""

    ORDERS = "Orders"
    ORDER_ITEMS = "OrderItems"
    ORDER_PAYMENTS = "OrderPayments"
    SALES = "Sales"
    SALE_ITEMS = "SaleItems"
    FINANCIAL_ENTRIES = "FinancialEntries"
    EXPENSE_CATEGORIES = "ExpenseCategories"
    CUSTOMERS = "Customers"
    PRODUCTS = "Products"
    SUPPLIES = "Supplies"
    PRODUCT_SUPPLIES = "ProductSupplies"


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "DEFAULT_RANGE_DAYS",
    "UNDEFINED_METHOD",
    "UNCATEGORIZED",
    "DEFAULT_CUSTOMER_NAME",
    "NO_CUSTOMER_KEY",
    "MANUAL_ENTRY_DESCRIPTION",
    "ALL_STATUSES",
    "OrderStatus",
    "PaymentStatus",
    "FinancialEntryType",
    "FinancialEntryStatus",
    "CashFlowType",
    "CashOrigin",
    "Granularity",
    "SALES_GRANULARITIES",
    "ReportTab",
    "SheetName",
]
