"""Data access helpers for the car wash POS.

This module provides low-level helpers that read ``config.ini`` and move
records between entity dataclasses and the ``carwash_master.xlsx`` workbook.
Business logic belongs elsewhere.

The public API is designed around three responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Workbook lifecycle: opening, validating, and persisting the Excel file.
3. Sheet operations: converting rows to entities and rewriting whole sheets.
"""


from __future__ import annotations

import configparser
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Type

from openpyxl.styles import Font
from openpyxl.workbook import Workbook
import openpyxl

from . import log
from .constants import DEFAULT_CURRENCY, DEFAULT_TAX_RATE, Backend, SheetName
from .entities import (
    Customer,
    InventoryItem,
    Purchase,
    PurchaseItem,
    Sale,
    SaleLineItem,
    Service,
    Supplier,
    User,
    Vehicle,
)


CONFIG_FILE_NAME = "config.ini"


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    shop_name: str
    schema_version: str
    backend: Backend = Backend.WORKBOOK
    database_url: Optional[str] = None
    tax_rate: Decimal = DEFAULT_TAX_RATE
    currency: str = DEFAULT_CURRENCY


@dataclass(frozen=True)
class Column:
    """One worksheet column: header title, entity attribute and cell codec."""

    header: str
    attribute: str
    kind: str = "text"


@dataclass(frozen=True)
class SheetLayout:
    entity_type: Type[Any]
    columns: Tuple[Column, ...]

    @property
    def headers(self) -> List[str]:
        return [column.header for column in self.columns]


SHEET_LAYOUTS: Mapping[SheetName, SheetLayout] = {
    SheetName.USERS: SheetLayout(
        User,
        (
            Column("UserID", "id", "int"),
            Column("Username", "username"),
            Column("PasswordHash", "password_hash"),
            Column("Role", "role"),
        ),
    ),
    SheetName.CUSTOMERS: SheetLayout(
        Customer,
        (
            Column("CustomerID", "id", "int"),
            Column("Name", "name"),
            Column("Phone", "phone"),
            Column("Email", "email"),
        ),
    ),
    SheetName.VEHICLES: SheetLayout(
        Vehicle,
        (
            Column("VehicleID", "id", "int"),
            Column("CustomerID", "customer_id", "int"),
            Column("LicensePlate", "license_plate"),
            Column("VehicleType", "vehicle_type"),
            Column("Color", "color"),
            Column("Year", "year", "int"),
            Column("Brand", "brand"),
            Column("Model", "model"),
        ),
    ),
    SheetName.SERVICES: SheetLayout(
        Service,
        (
            Column("ServiceID", "id", "int"),
            Column("Name", "name"),
            Column("Description", "description"),
            Column("Price", "price", "decimal"),
            Column("EstimatedMinutes", "estimated_minutes", "int"),
            Column("IsActive", "is_active", "bool"),
        ),
    ),
    SheetName.INVENTORY: SheetLayout(
        InventoryItem,
        (
            Column("ItemID", "id", "int"),
            Column("Name", "name"),
            Column("Description", "description"),
            Column("CurrentStock", "current_stock", "decimal"),
            Column("MinStock", "min_stock", "decimal"),
            Column("Unit", "unit"),
            Column("CostPerUnit", "cost_per_unit", "decimal"),
        ),
    ),
    SheetName.SUPPLIERS: SheetLayout(
        Supplier,
        (
            Column("SupplierID", "id", "int"),
            Column("Name", "name"),
            Column("Contact", "contact"),
            Column("Phone", "phone"),
            Column("Email", "email"),
            Column("Address", "address"),
        ),
    ),
    SheetName.PURCHASES: SheetLayout(
        Purchase,
        (
            Column("PurchaseID", "id", "int"),
            Column("SupplierID", "supplier_id", "int"),
            Column("InvoiceNumber", "invoice_number"),
            Column("TotalAmount", "total_amount", "decimal"),
            Column("PurchaseDate", "purchase_date", "datetime"),
            Column("Status", "status"),
        ),
    ),
    SheetName.PURCHASE_ITEMS: SheetLayout(
        PurchaseItem,
        (
            Column("PurchaseItemID", "id", "int"),
            Column("PurchaseID", "purchase_id", "int"),
            Column("ItemID", "inventory_item_id", "int"),
            Column("Quantity", "quantity", "decimal"),
            Column("UnitPrice", "unit_price", "decimal"),
            Column("TotalPrice", "total_price", "decimal"),
        ),
    ),
    SheetName.SALES: SheetLayout(
        Sale,
        (
            Column("SaleID", "id", "int"),
            Column("CustomerID", "customer_id", "int"),
            Column("VehicleID", "vehicle_id", "int"),
            Column("Subtotal", "subtotal", "decimal"),
            Column("TaxAmount", "tax_amount", "decimal"),
            Column("TotalAmount", "total_amount", "decimal"),
            Column("PaymentMethod", "payment_method"),
            Column("Status", "status"),
            Column("SaleDate", "sale_date", "datetime"),
            Column("EstimatedMinutes", "estimated_completion_time", "int"),
        ),
    ),
    SheetName.SALE_LINE_ITEMS: SheetLayout(
        SaleLineItem,
        (
            Column("LineItemID", "id", "int"),
            Column("SaleID", "sale_id", "int"),
            Column("ServiceID", "service_id", "int"),
            Column("Quantity", "quantity", "int"),
            Column("UnitPrice", "unit_price", "decimal"),
            Column("TotalPrice", "total_price", "decimal"),
        ),
    ),
}

SHEET_COLUMNS: Mapping[str, Sequence[str]] = {
    sheet.value: layout.headers for sheet, layout in SHEET_LAYOUTS.items()
}


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the application behaves.

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

    ``[System]`` must provide ``DataFile``, ``ShopName`` and ``SchemaVersion``.
    ``Backend`` defaults to ``workbook``; ``DatabaseUrl`` is mandatory when it
    is ``sql``. ``[Sales] TaxRate`` is a percentage and defaults to 15.
    Relative ``DataFile`` entries are anchored to ``base_path`` (or the
    current working directory).

    Raises:
        KeyError: If a required section or option is missing.
        ValueError: If ``Backend`` or ``TaxRate`` hold unusable values.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        shop_name = parser.get("System", "ShopName")
        schema_version = parser.get("System", "SchemaVersion")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    backend_raw = parser.get("System", "Backend", fallback=Backend.WORKBOOK.value)
    try:
        backend = Backend(backend_raw.strip().lower())
    except ValueError as exc:
        raise ValueError(f"Unsupported backend in configuration: {backend_raw}") from exc

    database_url = parser.get("System", "DatabaseUrl", fallback="").strip() or None
    if backend is Backend.SQL and not database_url:
        raise KeyError("Missing required configuration entry: DatabaseUrl for the sql backend")

    tax_raw = parser.get("Sales", "TaxRate", fallback=str(DEFAULT_TAX_RATE))
    try:
        tax_rate = Decimal(tax_raw.strip())
    except InvalidOperation as exc:
        raise ValueError(f"TaxRate must be a decimal percentage, got {tax_raw!r}") from exc
    if tax_rate < 0 or tax_rate > 100:
        raise ValueError(f"TaxRate must be between 0 and 100, got {tax_rate}")

    currency = parser.get("Sales", "Currency", fallback=DEFAULT_CURRENCY)

    data_file_path = Path(data_file_raw)
    if not data_file_path.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        data_file_path = (base_path / data_file_path).resolve()

    return ConfigSettings(
        data_file=data_file_path,
        shop_name=shop_name,
        schema_version=schema_version,
        backend=backend,
        database_url=database_url,
        tax_rate=tax_rate,
        currency=currency,
    )


def create_workbook(sheet_columns: Mapping[str, Sequence[str]] = SHEET_COLUMNS) -> Workbook:
    """Build an empty workbook with one header row per sheet."""

    workbook = openpyxl.Workbook()
    # Remove the default sheet openpyxl generates so we can create ours.
    if workbook.active and workbook.active.title == "Sheet":
        workbook.remove(workbook.active)

    bold_font = Font(bold=True)
    for sheet_name, columns in sheet_columns.items():
        worksheet = workbook.create_sheet(title=sheet_name)
        for column_index, column_name in enumerate(columns, start=1):
            cell = worksheet.cell(row=1, column=column_index)
            cell.value = column_name
            cell.font = bold_font
    return workbook


def open_workbook(data_file: Path) -> Workbook:
    """Open the master Excel workbook and return a live ``openpyxl`` workbook.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist after expansion and
            resolution.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Workbook not found: {data_file}")

    wb = openpyxl.load_workbook(data_file)
    return wb


def save_workbook(workbook: Workbook, destination: Path) -> None:
    """Persist the workbook to disk, creating parent directories on demand."""

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(dest)


def validate_workbook(workbook: Workbook) -> None:
    """Check that every expected sheet exists with the expected header row.

    Raises:
        KeyError: If a sheet is missing or its headers differ.
    """

    for sheet, layout in SHEET_LAYOUTS.items():
        if sheet.value not in workbook.sheetnames:
            raise KeyError(f"Workbook is missing sheet: {sheet.value}")
        headers = [cell.value for cell in workbook[sheet.value][1]]
        if headers[: len(layout.headers)] != layout.headers:
            raise KeyError(f"Unexpected headers in sheet {sheet.value}: {headers}")


def _decode_int(raw: object) -> Optional[int]:
    if raw is None or raw == "":
        return None
    return int(raw)


def _decode_decimal(raw: object) -> Optional[Decimal]:
    if raw is None or raw == "":
        return None
    # Excel hands numbers back as floats; str() keeps their shortest repr.
    return Decimal(str(raw))


def _decode_datetime(raw: object) -> Optional[datetime]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw
    return datetime.fromisoformat(str(raw))


def _decode_text(raw: object) -> Optional[str]:
    if raw is None:
        return None
    return str(raw)


_DECODERS: Dict[str, Callable[[object], Any]] = {
    "int": _decode_int,
    "decimal": _decode_decimal,
    "datetime": _decode_datetime,
    "bool": lambda raw: bool(raw) if raw is not None else True,
    "text": _decode_text,
}


def _encode(value: Any) -> object:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        # ISO text keeps microseconds that Excel date serials would drop.
        return value.isoformat()
    return value


def serialize_record(sheet: SheetName, record: Any) -> List[object]:
    """Convert an entity into the worksheet column ordering of ``sheet``."""

    layout = SHEET_LAYOUTS[sheet]
    return [_encode(getattr(record, column.attribute)) for column in layout.columns]


def deserialize_record(sheet: SheetName, raw_row: Sequence[object]) -> Any:
    """Convert a raw worksheet row of ``sheet`` into its entity dataclass.

    Entity validation runs as part of construction, so a corrupted row raises
    :class:`~carwash_pos.errors.ValidationError`.
    """

    layout = SHEET_LAYOUTS[sheet]
    values = {}
    for index, column in enumerate(layout.columns):
        raw = raw_row[index] if index < len(raw_row) else None
        values[column.attribute] = _DECODERS[column.kind](raw)
    return layout.entity_type(**values)


def iter_records(workbook: Workbook, sheet: SheetName) -> Iterable[Any]:
    """Iterate over the entities stored on ``sheet``, skipping empty rows."""

    worksheet = workbook[sheet.value]
    for raw in worksheet.iter_rows(min_row=2, values_only=True):
        if any(cell is not None for cell in raw):
            yield deserialize_record(sheet, raw)


def write_records(workbook: Workbook, sheet: SheetName, records: Iterable[Any]) -> int:
    """Replace every data row of ``sheet`` with ``records``; return the row count."""

    worksheet = workbook[sheet.value]
    if worksheet.max_row > 1:
        worksheet.delete_rows(2, worksheet.max_row - 1)
    count = 0
    for record in records:
        worksheet.append(serialize_record(sheet, record))
        count += 1
    log.debug("Wrote %d rows to sheet '%s'", count, sheet.value)
    return count
