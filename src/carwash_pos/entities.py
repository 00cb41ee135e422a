"""Domain entities for the car wash POS.

Every entity is an immutable dataclass whose ``__post_init__`` enforces the
field constraints of the data model. Entities carry no persistence logic; a
record without an ``id`` is a draft that a repository has not stored yet.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional, Type, TypeVar

from werkzeug.security import check_password_hash, generate_password_hash

from .constants import CENT, PaymentMethod, PurchaseStatus, SaleStatus, UserRole
from .errors import ValidationError


E = TypeVar("E", bound=Enum)


def coerce_decimal(value: Any, field_name: str) -> Decimal:
    """Convert ``value`` into a :class:`~decimal.Decimal` without float drift.

    Strings and integers are parsed exactly. Binary floats are refused because
    they cannot represent most cent amounts; callers that read floats from a
    storage medium convert them with ``Decimal(str(value))`` first.

    Raises:
        ValidationError: If the value is missing, a float, or not numeric.
    """

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or isinstance(value, float) or value is None:
        raise ValidationError(f"{field_name} must be a decimal amount, got {value!r}")
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as exc:
            raise ValidationError(f"{field_name} must be a decimal amount, got {value!r}") from exc
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be a finite amount")
    return result


def coerce_enum(enum_type: Type[E], value: Any, field_name: str) -> E:
    """Return the ``enum_type`` member matching ``value`` or raise ValidationError."""

    try:
        return enum_type(value)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_type)
        raise ValidationError(f"{field_name} must be one of: {allowed}; got {value!r}") from exc


def _require_text(value: Optional[str], field_name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def _optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _to_cents(amount: Decimal, field_name: str) -> Decimal:
    # Storage columns are NUMERIC(10, 2); anything finer cannot round-trip.
    if amount != amount.quantize(CENT):
        raise ValidationError(f"{field_name} allows at most two decimal places, got {amount}")
    return amount.quantize(CENT)


def _require_nonnegative(value: Any, field_name: str) -> Decimal:
    amount = coerce_decimal(value, field_name)
    if amount < 0:
        raise ValidationError(f"{field_name} must be zero or positive")
    return _to_cents(amount, field_name)


def _require_positive_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field_name} must be an integer, got {value!r}")
    if value < 1:
        raise ValidationError(f"{field_name} must be greater than zero")
    return value


def _optional_id(value: Any, field_name: str) -> Optional[int]:
    if value is None:
        return None
    return _require_positive_int(value, field_name)


def _set(instance: object, name: str, value: Any) -> None:
    object.__setattr__(instance, name, value)


@dataclass(frozen=True)
class User:
    """A login account. Only a password hash is ever stored."""

    username: str
    password_hash: str
    role: UserRole = UserRole.USER
    id: Optional[int] = None

    def __post_init__(self) -> None:
        _set(self, "username", _require_text(self.username, "username"))
        _set(self, "password_hash", _require_text(self.password_hash, "password_hash"))
        _set(self, "role", coerce_enum(UserRole, self.role, "role"))
        _set(self, "id", _optional_id(self.id, "id"))

    @classmethod
    def with_password(cls, username: str, password: str, role: UserRole = UserRole.USER) -> "User":
        """Build a draft user, hashing ``password`` with Werkzeug."""

        if not password:
            raise ValidationError("password is required")
        return cls(username=username, password_hash=generate_password_hash(password), role=role)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN


@dataclass(frozen=True)
class Customer:
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    id: Optional[int] = None

    def __post_init__(self) -> None:
        _set(self, "name", _require_text(self.name, "name"))
        _set(self, "phone", _optional_text(self.phone))
        _set(self, "email", _optional_text(self.email))
        _set(self, "id", _optional_id(self.id, "id"))


@dataclass(frozen=True)
class Vehicle:
    """A vehicle brought in for service.

    Plates are normalised to upper case and vehicle types to lower case so
    that lookups by plate are stable across spellings. The vehicle type is an
    open set; :data:`~carwash_pos.constants.COMMON_VEHICLE_TYPES` only lists
    the usual values.
    """

    license_plate: str
    vehicle_type: str
    customer_id: Optional[int] = None
    color: Optional[str] = None
    year: Optional[int] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    id: Optional[int] = None

    def __post_init__(self) -> None:
        _set(self, "license_plate", _require_text(self.license_plate, "license_plate").upper())
        _set(self, "vehicle_type", _require_text(self.vehicle_type, "vehicle_type").lower())
        _set(self, "customer_id", _optional_id(self.customer_id, "customer_id"))
        _set(self, "color", _optional_text(self.color))
        if self.year is not None:
            _require_positive_int(self.year, "year")
        _set(self, "brand", _optional_text(self.brand))
        _set(self, "model", _optional_text(self.model))
        _set(self, "id", _optional_id(self.id, "id"))


@dataclass(frozen=True)
class Service:
    """A sellable catalog entry. Inactive services stay visible in history."""

    name: str
    price: Decimal
    estimated_minutes: int
    description: Optional[str] = None
    is_active: bool = True
    id: Optional[int] = None

    def __post_init__(self) -> None:
        _set(self, "name", _require_text(self.name, "name"))
        _set(self, "price", _require_nonnegative(self.price, "price"))
        _require_positive_int(self.estimated_minutes, "estimated_minutes")
        _set(self, "description", _optional_text(self.description))
        _set(self, "is_active", bool(self.is_active))
        _set(self, "id", _optional_id(self.id, "id"))


@dataclass(frozen=True)
class InventoryItem:
    name: str
    current_stock: Decimal
    min_stock: Decimal
    unit: str
    cost_per_unit: Decimal
    description: Optional[str] = None
    id: Optional[int] = None

    def __post_init__(self) -> None:
        _set(self, "name", _require_text(self.name, "name"))
        _set(self, "current_stock", _require_nonnegative(self.current_stock, "current_stock"))
        _set(self, "min_stock", _require_nonnegative(self.min_stock, "min_stock"))
        _set(self, "unit", _require_text(self.unit, "unit"))
        _set(self, "cost_per_unit", _require_nonnegative(self.cost_per_unit, "cost_per_unit"))
        _set(self, "description", _optional_text(self.description))
        _set(self, "id", _optional_id(self.id, "id"))

    @property
    def is_low_stock(self) -> bool:
        return self.current_stock <= self.min_stock


@dataclass(frozen=True)
class Supplier:
    name: str
    contact: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    id: Optional[int] = None

    def __post_init__(self) -> None:
        _set(self, "name", _require_text(self.name, "name"))
        for field_name in ("contact", "phone", "email", "address"):
            _set(self, field_name, _optional_text(getattr(self, field_name)))
        _set(self, "id", _optional_id(self.id, "id"))


@dataclass(frozen=True)
class Purchase:
    total_amount: Decimal
    purchase_date: datetime
    supplier_id: Optional[int] = None
    invoice_number: Optional[str] = None
    status: PurchaseStatus = PurchaseStatus.PENDING
    id: Optional[int] = None

    def __post_init__(self) -> None:
        _set(self, "total_amount", _require_nonnegative(self.total_amount, "total_amount"))
        if not isinstance(self.purchase_date, datetime):
            raise ValidationError("purchase_date must be a datetime")
        _set(self, "supplier_id", _optional_id(self.supplier_id, "supplier_id"))
        _set(self, "invoice_number", _optional_text(self.invoice_number))
        _set(self, "status", coerce_enum(PurchaseStatus, self.status, "status"))
        _set(self, "id", _optional_id(self.id, "id"))


@dataclass(frozen=True)
class PurchaseItem:
    """One inventory line of a purchase.

    Both factors carry cents, so ``total_price`` is their product rounded
    half-up to cents; it is computed when omitted.
    """

    purchase_id: int
    inventory_item_id: int
    quantity: Decimal
    unit_price: Decimal
    total_price: Optional[Decimal] = None
    id: Optional[int] = None

    def __post_init__(self) -> None:
        _require_positive_int(self.purchase_id, "purchase_id")
        _require_positive_int(self.inventory_item_id, "inventory_item_id")
        quantity = _require_nonnegative(self.quantity, "quantity")
        if quantity == 0:
            raise ValidationError("quantity must be greater than zero")
        _set(self, "quantity", quantity)
        _set(self, "unit_price", _require_nonnegative(self.unit_price, "unit_price"))
        expected = (self.unit_price * quantity).quantize(CENT, rounding=ROUND_HALF_UP)
        if self.total_price is None:
            _set(self, "total_price", expected)
        else:
            total = coerce_decimal(self.total_price, "total_price")
            if total != expected:
                raise ValidationError(
                    f"total_price {total} does not equal unit_price x quantity ({expected})"
                )
            _set(self, "total_price", expected)
        _set(self, "id", _optional_id(self.id, "id"))


@dataclass(frozen=True)
class Sale:
    """A priced sale. Totals and ``sale_date`` never change after creation."""

    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    payment_method: PaymentMethod
    sale_date: datetime
    customer_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    status: SaleStatus = SaleStatus.PENDING
    estimated_completion_time: Optional[int] = None
    id: Optional[int] = None

    def __post_init__(self) -> None:
        _set(self, "subtotal", _require_nonnegative(self.subtotal, "subtotal"))
        _set(self, "tax_amount", _require_nonnegative(self.tax_amount, "tax_amount"))
        _set(self, "total_amount", _require_nonnegative(self.total_amount, "total_amount"))
        if self.total_amount != self.subtotal + self.tax_amount:
            raise ValidationError(
                f"total_amount {self.total_amount} does not equal subtotal + tax_amount "
                f"({self.subtotal + self.tax_amount})"
            )
        _set(self, "payment_method", coerce_enum(PaymentMethod, self.payment_method, "payment_method"))
        if not isinstance(self.sale_date, datetime):
            raise ValidationError("sale_date must be a datetime")
        _set(self, "customer_id", _optional_id(self.customer_id, "customer_id"))
        _set(self, "vehicle_id", _optional_id(self.vehicle_id, "vehicle_id"))
        _set(self, "status", coerce_enum(SaleStatus, self.status, "status"))
        if self.estimated_completion_time is not None:
            _require_positive_int(self.estimated_completion_time, "estimated_completion_time")
        _set(self, "id", _optional_id(self.id, "id"))


@dataclass(frozen=True)
class SaleLineItem:
    """One service selection within a sale.

    ``unit_price`` is the catalog price captured when the sale was made and is
    never recomputed from the current catalog.
    """

    sale_id: int
    service_id: int
    unit_price: Decimal
    quantity: int = 1
    total_price: Optional[Decimal] = None
    id: Optional[int] = None

    def __post_init__(self) -> None:
        _require_positive_int(self.sale_id, "sale_id")
        _require_positive_int(self.service_id, "service_id")
        _set(self, "unit_price", _require_nonnegative(self.unit_price, "unit_price"))
        _require_positive_int(self.quantity, "quantity")
        expected = self.unit_price * self.quantity
        if self.total_price is None:
            _set(self, "total_price", expected)
        else:
            total = coerce_decimal(self.total_price, "total_price")
            if total != expected:
                raise ValidationError(
                    f"total_price {total} does not equal unit_price x quantity ({expected})"
                )
            _set(self, "total_price", expected)
        _set(self, "id", _optional_id(self.id, "id"))


__all__ = [
    "coerce_decimal",
    "coerce_enum",
    "User",
    "Customer",
    "Vehicle",
    "Service",
    "InventoryItem",
    "Supplier",
    "Purchase",
    "PurchaseItem",
    "Sale",
    "SaleLineItem",
]
