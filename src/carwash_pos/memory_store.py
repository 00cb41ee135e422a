"""Dictionary-backed repository used for tests, demos and as a workbook cache."""

from __future__ import annotations

import dataclasses
from typing import Any, Dict, List, Mapping, Optional, TypeVar

from . import log
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
)
from .errors import InvalidTransitionError, NotFoundError, ValidationError
from .repository import IdAllocator, Repository


T = TypeVar("T")

USERS = "users"
CUSTOMERS = "customers"
VEHICLES = "vehicles"
SERVICES = "services"
INVENTORY = "inventory_items"
SUPPLIERS = "suppliers"
PURCHASES = "purchases"
PURCHASE_ITEMS = "purchase_items"
SALES = "sales"
SALE_LINE_ITEMS = "sale_line_items"

COLLECTIONS = (
    USERS,
    CUSTOMERS,
    VEHICLES,
    SERVICES,
    INVENTORY,
    SUPPLIERS,
    PURCHASES,
    PURCHASE_ITEMS,
    SALES,
    SALE_LINE_ITEMS,
)

_LABELS = {
    USERS: "user",
    CUSTOMERS: "customer",
    VEHICLES: "vehicle",
    SERVICES: "service",
    INVENTORY: "inventory item",
    SUPPLIERS: "supplier",
    PURCHASES: "purchase",
    PURCHASE_ITEMS: "purchase item",
    SALES: "sale",
    SALE_LINE_ITEMS: "sale line item",
}


class InMemoryRepository(Repository):
    """Keep every collection in an insertion-ordered ``dict`` keyed by id.

    Entities are frozen, so a transaction snapshot only needs shallow copies
    of the dictionaries plus the allocator state.
    """

    def __init__(self, id_allocator: Optional[IdAllocator] = None) -> None:
        super().__init__()
        self._ids = id_allocator if id_allocator is not None else IdAllocator()
        self._tables: Dict[str, Dict[int, Any]] = {name: {} for name in COLLECTIONS}
        self._snapshot: Optional[tuple[Dict[str, Dict[int, Any]], Dict[str, int]]] = None

    # ------------------------------------------------------------------
    # Transaction hooks
    # ------------------------------------------------------------------

    def _begin(self) -> None:
        self._snapshot = (
            {name: dict(rows) for name, rows in self._tables.items()},
            self._ids.snapshot(),
        )

    def _commit(self) -> None:
        self._snapshot = None

    def _rollback(self) -> None:
        if self._snapshot is None:
            return
        tables, ids = self._snapshot
        self._tables = tables
        self._ids.restore(ids)
        self._snapshot = None
        log.debug("Rolled back in-memory transaction")

    # ------------------------------------------------------------------
    # Generic helpers
    # ------------------------------------------------------------------

    def _insert(self, collection: str, record: T) -> T:
        with self.transaction():
            if getattr(record, "id") is not None:
                raise ValidationError(f"New {_LABELS[collection]} must not carry an id")
            stored = dataclasses.replace(record, id=self._ids.allocate(collection))
            self._tables[collection][stored.id] = stored
            return stored

    def _load(self, collection: str, record: Any) -> None:
        """Store an already-identified record, keeping the allocator ahead of it."""

        self._tables[collection][record.id] = record
        self._ids.observe(collection, record.id)

    def _get(self, collection: str, record_id: int) -> Any:
        with self._lock:
            try:
                return self._tables[collection][record_id]
            except KeyError as exc:
                log.warning("Lookup failed for %s id '%s'", _LABELS[collection], record_id)
                raise NotFoundError(f"Unknown {_LABELS[collection]} id: {record_id}") from exc

    def _list(self, collection: str) -> List[Any]:
        with self._lock:
            return list(self._tables[collection].values())

    def _update(self, collection: str, record_id: int, changes: Mapping[str, Any]) -> Any:
        if "id" in changes:
            raise ValidationError("id cannot be changed")
        with self.transaction():
            current = self._get(collection, record_id)
            try:
                updated = dataclasses.replace(current, **dict(changes))
            except TypeError as exc:
                raise ValidationError(f"Unknown {_LABELS[collection]} field in {sorted(changes)}") from exc
            self._tables[collection][record_id] = updated
            return updated

    def _set_status(self, collection: str, record_id: int, status: Any, expected: Optional[Any]) -> Any:
        with self.transaction():
            current = self._get(collection, record_id)
            if expected is not None and current.status is not type(current.status)(expected):
                log.warning(
                    "Stale %s %s status: now %s", _LABELS[collection], record_id, current.status.value
                )
                raise InvalidTransitionError(
                    f"{_LABELS[collection].capitalize()} {record_id} is already '{current.status.value}'"
                )
            return self._update(collection, record_id, {"status": status})

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def add_user(self, user: User) -> User:
        with self.transaction():
            if self.find_user_by_username(user.username) is not None:
                raise ValidationError(f"Username already exists: {user.username}")
            return self._insert(USERS, user)

    def get_user(self, user_id: int) -> User:
        return self._get(USERS, user_id)

    def list_users(self) -> List[User]:
        return self._list(USERS)

    # ------------------------------------------------------------------
    # Customers and vehicles
    # ------------------------------------------------------------------

    def add_customer(self, customer: Customer) -> Customer:
        return self._insert(CUSTOMERS, customer)

    def get_customer(self, customer_id: int) -> Customer:
        return self._get(CUSTOMERS, customer_id)

    def list_customers(self) -> List[Customer]:
        return self._list(CUSTOMERS)

    def add_vehicle(self, vehicle: Vehicle) -> Vehicle:
        with self.transaction():
            if vehicle.customer_id is not None:
                self.get_customer(vehicle.customer_id)
            return self._insert(VEHICLES, vehicle)

    def get_vehicle(self, vehicle_id: int) -> Vehicle:
        return self._get(VEHICLES, vehicle_id)

    def list_vehicles(self) -> List[Vehicle]:
        return self._list(VEHICLES)

    # ------------------------------------------------------------------
    # Service catalog
    # ------------------------------------------------------------------

    def add_service(self, service: Service) -> Service:
        return self._insert(SERVICES, service)

    def get_service(self, service_id: int) -> Service:
        return self._get(SERVICES, service_id)

    def list_services(self) -> List[Service]:
        return self._list(SERVICES)

    def update_service(self, service_id: int, changes: Mapping[str, Any]) -> Service:
        return self._update(SERVICES, service_id, changes)

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    def add_inventory_item(self, item: InventoryItem) -> InventoryItem:
        return self._insert(INVENTORY, item)

    def get_inventory_item(self, item_id: int) -> InventoryItem:
        return self._get(INVENTORY, item_id)

    def list_inventory_items(self) -> List[InventoryItem]:
        return self._list(INVENTORY)

    def update_inventory_item(self, item_id: int, changes: Mapping[str, Any]) -> InventoryItem:
        return self._update(INVENTORY, item_id, changes)

    # ------------------------------------------------------------------
    # Suppliers and purchases
    # ------------------------------------------------------------------

    def add_supplier(self, supplier: Supplier) -> Supplier:
        return self._insert(SUPPLIERS, supplier)

    def get_supplier(self, supplier_id: int) -> Supplier:
        return self._get(SUPPLIERS, supplier_id)

    def list_suppliers(self) -> List[Supplier]:
        return self._list(SUPPLIERS)

    def add_purchase(self, purchase: Purchase) -> Purchase:
        with self.transaction():
            if purchase.supplier_id is not None:
                self.get_supplier(purchase.supplier_id)
            return self._insert(PURCHASES, purchase)

    def get_purchase(self, purchase_id: int) -> Purchase:
        return self._get(PURCHASES, purchase_id)

    def list_purchases(self) -> List[Purchase]:
        return self._list(PURCHASES)

    def update_purchase_status(
        self, purchase_id: int, status: PurchaseStatus, *, expected: Optional[PurchaseStatus] = None
    ) -> Purchase:
        return self._set_status(PURCHASES, purchase_id, status, expected)

    def add_purchase_item(self, item: PurchaseItem) -> PurchaseItem:
        with self.transaction():
            self.get_purchase(item.purchase_id)
            self.get_inventory_item(item.inventory_item_id)
            return self._insert(PURCHASE_ITEMS, item)

    def list_purchase_items(self, purchase_id: int) -> List[PurchaseItem]:
        return [item for item in self._list(PURCHASE_ITEMS) if item.purchase_id == purchase_id]

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------

    def add_sale(self, sale: Sale) -> Sale:
        with self.transaction():
            if sale.customer_id is not None:
                self.get_customer(sale.customer_id)
            if sale.vehicle_id is not None:
                self.get_vehicle(sale.vehicle_id)
            return self._insert(SALES, sale)

    def get_sale(self, sale_id: int) -> Sale:
        return self._get(SALES, sale_id)

    def list_sales(self) -> List[Sale]:
        return self._list(SALES)

    def update_sale_status(
        self, sale_id: int, status: SaleStatus, *, expected: Optional[SaleStatus] = None
    ) -> Sale:
        return self._set_status(SALES, sale_id, status, expected)

    def add_sale_line_item(self, line_item: SaleLineItem) -> SaleLineItem:
        with self.transaction():
            self.get_sale(line_item.sale_id)
            self.get_service(line_item.service_id)
            return self._insert(SALE_LINE_ITEMS, line_item)

    def list_sale_line_items(self, sale_id: int) -> List[SaleLineItem]:
        return [item for item in self._list(SALE_LINE_ITEMS) if item.sale_id == sale_id]


__all__ = ["InMemoryRepository", "COLLECTIONS"]
