"""Storage capability interface for the car wash POS.

:class:`Repository` is the single contract that the sale workflow, the
metrics engine and the command line depend on. Backends implement the
abstract create/read/update/list operations; transaction bookkeeping, the
derived queries and a few lookups are implemented once here so that every
backend behaves identically.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from . import log, metrics
from .constants import PurchaseStatus, SaleStatus
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
    coerce_decimal,
)
from .errors import ValidationError


class IdAllocator:
    """Hand out sequential integer ids, one independent sequence per collection.

    The allocator is owned by the repository that uses it; backends that load
    existing rows call :meth:`observe` so new ids continue after the highest
    stored one.
    """

    def __init__(self, start: int = 1) -> None:
        self._start = start
        self._next: Dict[str, int] = {}

    def allocate(self, collection: str) -> int:
        value = self._next.get(collection, self._start)
        self._next[collection] = value + 1
        return value

    def observe(self, collection: str, existing_id: int) -> None:
        if existing_id >= self._next.get(collection, self._start):
            self._next[collection] = existing_id + 1

    def snapshot(self) -> Dict[str, int]:
        return dict(self._next)

    def restore(self, state: Mapping[str, int]) -> None:
        self._next = dict(state)


class Repository(ABC):
    """Abstract storage for every entity type.

    ``get_*`` methods raise :class:`~carwash_pos.errors.NotFoundError` for
    unknown ids and ``list_*`` methods return records in insertion order.
    Mutations made inside :meth:`transaction` either all persist or none do.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._depth = 0

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the enclosed block as one atomic, serialized unit.

        Nested calls join the outermost transaction. The outermost block
        commits when it exits normally and rolls back when any exception
        escapes; backend exceptions are translated into
        :class:`~carwash_pos.errors.StorageError` on the way out.
        """

        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return

            self._depth = 1
            try:
                self._begin()
                try:
                    yield
                except BaseException as exc:
                    self._rollback()
                    translated = self._translate_error(exc)
                    if translated is not None:
                        raise translated from exc
                    raise
                try:
                    self._commit()
                except Exception as exc:
                    translated = self._translate_error(exc)
                    if translated is not None:
                        raise translated from exc
                    raise
            finally:
                self._depth = 0

    @abstractmethod
    def _begin(self) -> None:
        """Open a unit of work."""

    @abstractmethod
    def _commit(self) -> None:
        """Make the current unit of work durable."""

    @abstractmethod
    def _rollback(self) -> None:
        """Discard every change made in the current unit of work."""

    def _translate_error(self, exc: BaseException) -> Optional[Exception]:
        """Return a replacement for backend-specific ``exc``, or ``None`` to re-raise it."""

        return None

    def persist(self) -> None:
        """Flush committed state to durable storage when the backend defers writes."""

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    @abstractmethod
    def add_user(self, user: User) -> User: ...

    @abstractmethod
    def get_user(self, user_id: int) -> User: ...

    @abstractmethod
    def list_users(self) -> List[User]: ...

    def find_user_by_username(self, username: str) -> Optional[User]:
        for user in self.list_users():
            if user.username == username:
                return user
        return None

    # ------------------------------------------------------------------
    # Customers and vehicles
    # ------------------------------------------------------------------

    @abstractmethod
    def add_customer(self, customer: Customer) -> Customer: ...

    @abstractmethod
    def get_customer(self, customer_id: int) -> Customer: ...

    @abstractmethod
    def list_customers(self) -> List[Customer]: ...

    @abstractmethod
    def add_vehicle(self, vehicle: Vehicle) -> Vehicle: ...

    @abstractmethod
    def get_vehicle(self, vehicle_id: int) -> Vehicle: ...

    @abstractmethod
    def list_vehicles(self) -> List[Vehicle]: ...

    def list_vehicles_for_customer(self, customer_id: int) -> List[Vehicle]:
        return [vehicle for vehicle in self.list_vehicles() if vehicle.customer_id == customer_id]

    # ------------------------------------------------------------------
    # Service catalog
    # ------------------------------------------------------------------

    @abstractmethod
    def add_service(self, service: Service) -> Service: ...

    @abstractmethod
    def get_service(self, service_id: int) -> Service: ...

    @abstractmethod
    def list_services(self) -> List[Service]: ...

    @abstractmethod
    def update_service(self, service_id: int, changes: Mapping[str, Any]) -> Service:
        """Apply ``changes`` (field name -> value) and return the updated service."""

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    @abstractmethod
    def add_inventory_item(self, item: InventoryItem) -> InventoryItem: ...

    @abstractmethod
    def get_inventory_item(self, item_id: int) -> InventoryItem: ...

    @abstractmethod
    def list_inventory_items(self) -> List[InventoryItem]: ...

    @abstractmethod
    def update_inventory_item(self, item_id: int, changes: Mapping[str, Any]) -> InventoryItem:
        """Apply ``changes`` (field name -> value) and return the updated item."""

    def adjust_stock(self, item_id: int, delta: Union[Decimal, int, str]) -> InventoryItem:
        """Add ``delta`` to an item's stock as one serialized read-modify-write.

        Raises:
            NotFoundError: If the item does not exist.
            ValidationError: If the resulting stock would be negative.
        """

        delta = coerce_decimal(delta, "delta")
        with self.transaction():
            item = self.get_inventory_item(item_id)
            new_stock = item.current_stock + delta
            if new_stock < 0:
                log.warning(
                    "Rejected stock adjustment of %s on item %s (stock %s)",
                    delta,
                    item_id,
                    item.current_stock,
                )
                raise ValidationError(
                    f"Stock for item {item_id} cannot go below zero ({item.current_stock} + {delta})"
                )
            return self.update_inventory_item(item_id, {"current_stock": new_stock})

    # ------------------------------------------------------------------
    # Suppliers and purchases
    # ------------------------------------------------------------------

    @abstractmethod
    def add_supplier(self, supplier: Supplier) -> Supplier: ...

    @abstractmethod
    def get_supplier(self, supplier_id: int) -> Supplier: ...

    @abstractmethod
    def list_suppliers(self) -> List[Supplier]: ...

    @abstractmethod
    def add_purchase(self, purchase: Purchase) -> Purchase: ...

    @abstractmethod
    def get_purchase(self, purchase_id: int) -> Purchase: ...

    @abstractmethod
    def list_purchases(self) -> List[Purchase]: ...

    @abstractmethod
    def update_purchase_status(
        self, purchase_id: int, status: PurchaseStatus, *, expected: Optional[PurchaseStatus] = None
    ) -> Purchase:
        """Store ``status``; with ``expected``, only if the stored status still equals it."""

    @abstractmethod
    def add_purchase_item(self, item: PurchaseItem) -> PurchaseItem: ...

    @abstractmethod
    def list_purchase_items(self, purchase_id: int) -> List[PurchaseItem]: ...

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------

    @abstractmethod
    def add_sale(self, sale: Sale) -> Sale: ...

    @abstractmethod
    def get_sale(self, sale_id: int) -> Sale: ...

    @abstractmethod
    def list_sales(self) -> List[Sale]: ...

    @abstractmethod
    def update_sale_status(
        self, sale_id: int, status: SaleStatus, *, expected: Optional[SaleStatus] = None
    ) -> Sale:
        """Overwrite the stored status; lifecycle rules live in the workflow.

        When ``expected`` is given the write is a compare-and-set: it raises
        :class:`~carwash_pos.errors.InvalidTransitionError` if another writer
        changed the status since the caller read it.
        """

    @abstractmethod
    def add_sale_line_item(self, line_item: SaleLineItem) -> SaleLineItem: ...

    @abstractmethod
    def list_sale_line_items(self, sale_id: int) -> List[SaleLineItem]: ...

    # ------------------------------------------------------------------
    # Derived queries
    # ------------------------------------------------------------------

    def low_stock_items(self) -> List[InventoryItem]:
        """Return the inventory items at or below their minimum stock."""

        return metrics.low_stock_items(self.list_inventory_items())

    def sales_metrics(self, reference_date: Union[date, datetime, None] = None) -> metrics.DailyMetrics:
        """Return the dashboard metrics for ``reference_date`` (today by default)."""

        with self.transaction():
            sales = self.list_sales()
            items = self.list_inventory_items()
        return metrics.daily_metrics(sales, items, reference_date)


__all__ = ["IdAllocator", "Repository"]
