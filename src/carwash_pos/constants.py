"""Enumerations and fixed values shared across the car wash POS modules.

Centralises domain identifiers so that the storage backends, the sale workflow,
the metrics engine and the command line rely on a single source of truth.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Mapping


# Central schema version expected by all layers when validating storage.
EXPECTED_SCHEMA_VERSION = "1.0.0"

CENT = Decimal("0.01")
DEFAULT_TAX_RATE = Decimal("15")
DEFAULT_CURRENCY = "L"

# Minutes assumed for a sale that carries no completion estimate.
DEFAULT_SERVICE_MINUTES = 30

# Stock at or below ``min_stock * MEDIUM_STOCK_FACTOR`` is reported as medium.
MEDIUM_STOCK_FACTOR = Decimal("1.5")

# Monthly averages divide by a flat 30 days regardless of the month length.
DAYS_PER_MONTH = 30

COMMON_VEHICLE_TYPES: tuple[str, ...] = (
    "sedan",
    "suv",
    "pickup",
    "hatchback",
    "van",
    "motorcycle",
)


class PaymentMethod(str, Enum):
    """Enumerate the payment mechanisms accepted at the counter."""

    CASH = "efectivo"
    CARD = "tarjeta"
    DIGITAL = "digital"


class SaleStatus(str, Enum):
    """Enumerate the lifecycle states of a sale."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PurchaseStatus(str, Enum):
    """Enumerate the lifecycle states of a supplier purchase."""

    PENDING = "pending"
    RECEIVED = "received"
    CANCELLED = "cancelled"


class StockLevel(str, Enum):
    """Enumerate the stock badges shown for inventory items."""

    LOW = "low"
    MEDIUM = "medium"
    OK = "ok"


class UserRole(str, Enum):
    """Enumerate the roles a user account may hold."""

    ADMIN = "admin"
    USER = "user"


class Backend(str, Enum):
    """Enumerate the storage backends selectable from ``config.ini``."""

    MEMORY = "memory"
    WORKBOOK = "workbook"
    SQL = "sql"


class SheetName(str, Enum):
    """Enumerate the workbook sheet names managed by the data layer."""

    USERS = "Users"
    CUSTOMERS = "Customers"
    VEHICLES = "Vehicles"
    SERVICES = "Services"
    INVENTORY = "Inventory"
    SUPPLIERS = "Suppliers"
    PURCHASES = "Purchases"
    PURCHASE_ITEMS = "PurchaseItems"
    SALES = "Sales"
    SALE_LINE_ITEMS = "SaleLineItems"


SALE_TRANSITIONS: Mapping[SaleStatus, frozenset[SaleStatus]] = {
    SaleStatus.PENDING: frozenset({SaleStatus.IN_PROGRESS, SaleStatus.CANCELLED}),
    SaleStatus.IN_PROGRESS: frozenset({SaleStatus.COMPLETED, SaleStatus.CANCELLED}),
    SaleStatus.COMPLETED: frozenset(),
    SaleStatus.CANCELLED: frozenset(),
}

PURCHASE_TRANSITIONS: Mapping[PurchaseStatus, frozenset[PurchaseStatus]] = {
    PurchaseStatus.PENDING: frozenset({PurchaseStatus.RECEIVED, PurchaseStatus.CANCELLED}),
    PurchaseStatus.RECEIVED: frozenset(),
    PurchaseStatus.CANCELLED: frozenset(),
}

TERMINAL_SALE_STATUSES = frozenset(
    status for status, targets in SALE_TRANSITIONS.items() if not targets
)


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "CENT",
    "DEFAULT_TAX_RATE",
    "DEFAULT_CURRENCY",
    "DEFAULT_SERVICE_MINUTES",
    "MEDIUM_STOCK_FACTOR",
    "DAYS_PER_MONTH",
    "COMMON_VEHICLE_TYPES",
    "PaymentMethod",
    "SaleStatus",
    "PurchaseStatus",
    "StockLevel",
    "UserRole",
    "Backend",
    "SheetName",
    "SALE_TRANSITIONS",
    "PURCHASE_TRANSITIONS",
    "TERMINAL_SALE_STATUSES",
]
