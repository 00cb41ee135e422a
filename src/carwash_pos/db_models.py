"""SQLAlchemy table mappings for the relational backend."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Optional, Type

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from .constants import PaymentMethod, PurchaseStatus, SaleStatus, UserRole


class Money(TypeDecorator):
    """``NUMERIC(10, 2)`` that always round-trips :class:`~decimal.Decimal` exactly.

    SQLite has no decimal storage class, so there the value is kept as its
    fixed-point string instead of a lossy REAL.
    """

    impl = Numeric(10, 2)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(20))
        return dialect.type_descriptor(Numeric(10, 2, asdecimal=True))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "sqlite":
            return str(value)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(str(value))


def _enum_column(enum_type: Type[PyEnum]) -> Enum:
    # Persist the enum value ("in-progress"), not the member name.
    return Enum(
        enum_type,
        values_callable=lambda members: [member.value for member in members],
        native_enum=False,
        validate_strings=True,
        name=enum_type.__name__.lower(),
    )


class Base(DeclarativeBase):
    pass


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(Text, unique=True)
    password_hash: Mapped[str] = mapped_column("password", Text)
    role: Mapped[UserRole] = mapped_column(_enum_column(UserRole), default=UserRole.USER)


class CustomerRow(Base):
    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(Text)
    phone: Mapped[Optional[str]] = mapped_column(Text)
    email: Mapped[Optional[str]] = mapped_column(Text)


class VehicleRow(Base):
    __tablename__ = "vehicles"

    id: Mapped[int] = mapped_column(primary_key=True)
    customer_id: Mapped[Optional[int]] = mapped_column(ForeignKey("customers.id"))
    license_plate: Mapped[str] = mapped_column(Text)
    vehicle_type: Mapped[str] = mapped_column(Text)
    color: Mapped[Optional[str]] = mapped_column(Text)
    year: Mapped[Optional[int]] = mapped_column(Integer)
    brand: Mapped[Optional[str]] = mapped_column(Text)
    model: Mapped[Optional[str]] = mapped_column(Text)


class ServiceRow(Base):
    __tablename__ = "car_wash_services"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(Text)
    description: Mapped[Optional[str]] = mapped_column(Text)
    price: Mapped[Decimal] = mapped_column(Money)
    estimated_minutes: Mapped[int] = mapped_column(Integer)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class InventoryItemRow(Base):
    __tablename__ = "inventory_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(Text)
    description: Mapped[Optional[str]] = mapped_column(Text)
    current_stock: Mapped[Decimal] = mapped_column(Money)
    min_stock: Mapped[Decimal] = mapped_column(Money)
    unit: Mapped[str] = mapped_column(Text)
    cost_per_unit: Mapped[Decimal] = mapped_column(Money)


class SupplierRow(Base):
    __tablename__ = "suppliers"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(Text)
    contact: Mapped[Optional[str]] = mapped_column(Text)
    phone: Mapped[Optional[str]] = mapped_column(Text)
    email: Mapped[Optional[str]] = mapped_column(Text)
    address: Mapped[Optional[str]] = mapped_column(Text)


class PurchaseRow(Base):
    __tablename__ = "purchases"

    id: Mapped[int] = mapped_column(primary_key=True)
    supplier_id: Mapped[Optional[int]] = mapped_column(ForeignKey("suppliers.id"))
    invoice_number: Mapped[Optional[str]] = mapped_column(Text)
    total_amount: Mapped[Decimal] = mapped_column(Money)
    purchase_date: Mapped[datetime] = mapped_column(DateTime)
    status: Mapped[PurchaseStatus] = mapped_column(
        _enum_column(PurchaseStatus), default=PurchaseStatus.PENDING
    )


class PurchaseItemRow(Base):
    __tablename__ = "purchase_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    purchase_id: Mapped[int] = mapped_column(ForeignKey("purchases.id"))
    inventory_item_id: Mapped[int] = mapped_column(ForeignKey("inventory_items.id"))
    quantity: Mapped[Decimal] = mapped_column(Money)
    unit_price: Mapped[Decimal] = mapped_column(Money)
    total_price: Mapped[Decimal] = mapped_column(Money)


class SaleRow(Base):
    __tablename__ = "sales"

    id: Mapped[int] = mapped_column(primary_key=True)
    customer_id: Mapped[Optional[int]] = mapped_column(ForeignKey("customers.id"))
    vehicle_id: Mapped[Optional[int]] = mapped_column(ForeignKey("vehicles.id"))
    subtotal: Mapped[Decimal] = mapped_column(Money)
    tax_amount: Mapped[Decimal] = mapped_column(Money)
    total_amount: Mapped[Decimal] = mapped_column(Money)
    payment_method: Mapped[PaymentMethod] = mapped_column(_enum_column(PaymentMethod))
    status: Mapped[SaleStatus] = mapped_column(_enum_column(SaleStatus), default=SaleStatus.PENDING)
    sale_date: Mapped[datetime] = mapped_column(DateTime)
    estimated_completion_time: Mapped[Optional[int]] = mapped_column(Integer)


class SaleLineItemRow(Base):
    __tablename__ = "sale_services"

    id: Mapped[int] = mapped_column(primary_key=True)
    sale_id: Mapped[int] = mapped_column(ForeignKey("sales.id"))
    service_id: Mapped[int] = mapped_column(ForeignKey("car_wash_services.id"))
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Money)
    total_price: Mapped[Decimal] = mapped_column(Money)


__all__ = [
    "Base",
    "Money",
    "UserRow",
    "CustomerRow",
    "VehicleRow",
    "ServiceRow",
    "InventoryItemRow",
    "SupplierRow",
    "PurchaseRow",
    "PurchaseItemRow",
    "SaleRow",
    "SaleLineItemRow",
]
