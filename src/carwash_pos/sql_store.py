"""Relational repository built on SQLAlchemy.

Each outermost :meth:`~carwash_pos.repository.Repository.transaction` owns
one ORM session; nested calls reuse it, so a sale and its line items commit
in a single database transaction.
"""

from __future__ import annotations

import dataclasses
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Type, Union

from sqlalchemy import create_engine, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from . import log
from .constants import PurchaseStatus, SaleStatus
from .db_models import (
    Base,
    CustomerRow,
    InventoryItemRow,
    PurchaseItemRow,
    PurchaseRow,
    SaleLineItemRow,
    SaleRow,
    ServiceRow,
    SupplierRow,
    UserRow,
    VehicleRow,
)
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
    coerce_enum,
)
from .errors import InvalidTransitionError, NotFoundError, StorageError, ValidationError
from .repository import Repository


ROW_TYPES: Dict[type, Type[Base]] = {
    User: UserRow,
    Customer: CustomerRow,
    Vehicle: VehicleRow,
    Service: ServiceRow,
    InventoryItem: InventoryItemRow,
    Supplier: SupplierRow,
    Purchase: PurchaseRow,
    PurchaseItem: PurchaseItemRow,
    Sale: SaleRow,
    SaleLineItem: SaleLineItemRow,
}

_LABELS = {
    User: "user",
    Customer: "customer",
    Vehicle: "vehicle",
    Service: "service",
    InventoryItem: "inventory item",
    Supplier: "supplier",
    Purchase: "purchase",
    PurchaseItem: "purchase item",
    Sale: "sale",
    SaleLineItem: "sale line item",
}


def build_engine(database_url: str, *, echo: bool = False) -> Engine:
    """Create an engine for ``database_url``.

    In-memory SQLite gets a single shared connection so every session sees
    the same database.
    """

    kwargs: Dict[str, Any] = {"echo": echo}
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        kwargs.update({"connect_args": {"check_same_thread": False}, "poolclass": StaticPool})
    return create_engine(database_url, **kwargs)


def _to_row(record: Any) -> Base:
    row_type = ROW_TYPES[type(record)]
    values = {field.name: getattr(record, field.name) for field in dataclasses.fields(record)}
    values.pop("id")
    return row_type(**values)


def _to_entity(entity_type: type, row: Base) -> Any:
    return entity_type(**{field.name: getattr(row, field.name) for field in dataclasses.fields(entity_type)})


class SqlRepository(Repository):
    """Store entities in a relational database through SQLAlchemy sessions."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        *,
        engine: Optional[Engine] = None,
        create_schema: bool = True,
    ) -> None:
        super().__init__()
        if engine is None:
            if not database_url:
                raise ValueError("A database URL or an engine is required")
            engine = build_engine(database_url)
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        self._session: Optional[Session] = None
        if create_schema:
            try:
                Base.metadata.create_all(engine)
            except SQLAlchemyError as exc:
                raise StorageError(f"Unable to prepare database schema: {exc}") from exc
        log.info("Opened SQL repository on %s", engine.url.render_as_string(hide_password=True))

    # ------------------------------------------------------------------
    # Transaction hooks
    # ------------------------------------------------------------------

    def _begin(self) -> None:
        self._session = self._session_factory()

    def _commit(self) -> None:
        session = self._require_session()
        try:
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()
            self._session = None

    def _rollback(self) -> None:
        if self._session is None:
            return
        try:
            self._session.rollback()
        finally:
            self._session.close()
            self._session = None
        log.debug("Rolled back SQL transaction")

    def _translate_error(self, exc: BaseException) -> Optional[Exception]:
        if isinstance(exc, SQLAlchemyError):
            log.error("Database error: %s", exc)
            return StorageError(f"Database error: {exc}")
        return None

    def _require_session(self) -> Session:
        if self._session is None:
            raise StorageError("No active database session")
        return self._session

    # ------------------------------------------------------------------
    # Generic helpers
    # ------------------------------------------------------------------

    def _insert(self, record: Any) -> Any:
        with self.transaction():
            if record.id is not None:
                raise ValidationError(f"New {_LABELS[type(record)]} must not carry an id")
            session = self._require_session()
            row = _to_row(record)
            session.add(row)
            session.flush()
            return dataclasses.replace(record, id=row.id)

    def _get_row(self, entity_type: type, record_id: int, *, for_update: bool = False) -> Base:
        row_type = ROW_TYPES[entity_type]
        statement = select(row_type).where(row_type.id == record_id)
        if for_update:
            statement = statement.with_for_update()
        row = self._require_session().scalars(statement).first()
        if row is None:
            log.warning("Lookup failed for %s id '%s'", _LABELS[entity_type], record_id)
            raise NotFoundError(f"Unknown {_LABELS[entity_type]} id: {record_id}")
        return row

    def _get(self, entity_type: type, record_id: int) -> Any:
        with self.transaction():
            return _to_entity(entity_type, self._get_row(entity_type, record_id))

    def _list(self, entity_type: type, **filters: Any) -> List[Any]:
        row_type = ROW_TYPES[entity_type]
        statement = select(row_type).filter_by(**filters).order_by(row_type.id)
        with self.transaction():
            rows = self._require_session().scalars(statement).all()
            return [_to_entity(entity_type, row) for row in rows]

    def _update(self, entity_type: type, record_id: int, changes: Mapping[str, Any], *, for_update: bool = False) -> Any:
        if "id" in changes:
            raise ValidationError("id cannot be changed")
        with self.transaction():
            row = self._get_row(entity_type, record_id, for_update=for_update)
            current = _to_entity(entity_type, row)
            try:
                updated = dataclasses.replace(current, **dict(changes))
            except TypeError as exc:
                raise ValidationError(f"Unknown {_LABELS[entity_type]} field in {sorted(changes)}") from exc
            for field in dataclasses.fields(updated):
                if field.name != "id":
                    setattr(row, field.name, getattr(updated, field.name))
            self._require_session().flush()
            return updated

    def _set_status(
        self, entity_type: type, status_type: type, record_id: int, status: Any, expected: Optional[Any]
    ) -> Any:
        """Write ``status`` with a conditional UPDATE so a stale writer in another
        process cannot overwrite a status it did not read.
        """

        if expected is None:
            return self._update(entity_type, record_id, {"status": status})
        status = coerce_enum(status_type, status, "status")
        expected = coerce_enum(status_type, expected, "expected status")
        row_type = ROW_TYPES[entity_type]
        statement = (
            update(row_type)
            .where(row_type.id == record_id, row_type.status == expected)
            .values(status=status)
            .execution_options(synchronize_session=False)
        )
        with self.transaction():
            session = self._require_session()
            if session.execute(statement).rowcount == 0:
                current = self._get_row(entity_type, record_id).status
                log.warning("Stale %s %s status: now %s", _LABELS[entity_type], record_id, current.value)
                raise InvalidTransitionError(
                    f"{_LABELS[entity_type].capitalize()} {record_id} is already '{current.value}'"
                )
            row = session.scalars(
                select(row_type).where(row_type.id == record_id).execution_options(populate_existing=True)
            ).one()
            return _to_entity(entity_type, row)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def add_user(self, user: User) -> User:
        with self.transaction():
            if self.find_user_by_username(user.username) is not None:
                raise ValidationError(f"Username already exists: {user.username}")
            return self._insert(user)

    def get_user(self, user_id: int) -> User:
        return self._get(User, user_id)

    def list_users(self) -> List[User]:
        return self._list(User)

    def find_user_by_username(self, username: str) -> Optional[User]:
        users = self._list(User, username=username)
        return users[0] if users else None

    # ------------------------------------------------------------------
    # Customers and vehicles
    # ------------------------------------------------------------------

    def add_customer(self, customer: Customer) -> Customer:
        return self._insert(customer)

    def get_customer(self, customer_id: int) -> Customer:
        return self._get(Customer, customer_id)

    def list_customers(self) -> List[Customer]:
        return self._list(Customer)

    def add_vehicle(self, vehicle: Vehicle) -> Vehicle:
        with self.transaction():
            if vehicle.customer_id is not None:
                self.get_customer(vehicle.customer_id)
            return self._insert(vehicle)

    def get_vehicle(self, vehicle_id: int) -> Vehicle:
        return self._get(Vehicle, vehicle_id)

    def list_vehicles(self) -> List[Vehicle]:
        return self._list(Vehicle)

    def list_vehicles_for_customer(self, customer_id: int) -> List[Vehicle]:
        return self._list(Vehicle, customer_id=customer_id)

    # ------------------------------------------------------------------
    # Service catalog
    # ------------------------------------------------------------------

    def add_service(self, service: Service) -> Service:
        return self._insert(service)

    def get_service(self, service_id: int) -> Service:
        return self._get(Service, service_id)

    def list_services(self) -> List[Service]:
        return self._list(Service)

    def update_service(self, service_id: int, changes: Mapping[str, Any]) -> Service:
        return self._update(Service, service_id, changes)

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    def add_inventory_item(self, item: InventoryItem) -> InventoryItem:
        return self._insert(item)

    def get_inventory_item(self, item_id: int) -> InventoryItem:
        return self._get(InventoryItem, item_id)

    def list_inventory_items(self) -> List[InventoryItem]:
        return self._list(InventoryItem)

    def update_inventory_item(self, item_id: int, changes: Mapping[str, Any]) -> InventoryItem:
        return self._update(InventoryItem, item_id, changes)

    def adjust_stock(self, item_id: int, delta: Union[Decimal, int, str]) -> InventoryItem:
        """Row-locking variant of :meth:`Repository.adjust_stock`.

        ``SELECT ... FOR UPDATE`` keeps concurrent processes from losing an
        update on databases that support it; SQLite ignores the clause and
        relies on its database-level write lock.
        """

        delta = coerce_decimal(delta, "delta")
        with self.transaction():
            row = self._get_row(InventoryItem, item_id, for_update=True)
            current = Decimal(row.current_stock)
            if current + delta < 0:
                log.warning(
                    "Rejected stock adjustment of %s on item %s (stock %s)", delta, item_id, current
                )
                raise ValidationError(
                    f"Stock for item {item_id} cannot go below zero ({current} + {delta})"
                )
            return self._update(InventoryItem, item_id, {"current_stock": current + delta})

    # ------------------------------------------------------------------
    # Suppliers and purchases
    # ------------------------------------------------------------------

    def add_supplier(self, supplier: Supplier) -> Supplier:
        return self._insert(supplier)

    def get_supplier(self, supplier_id: int) -> Supplier:
        return self._get(Supplier, supplier_id)

    def list_suppliers(self) -> List[Supplier]:
        return self._list(Supplier)

    def add_purchase(self, purchase: Purchase) -> Purchase:
        with self.transaction():
            if purchase.supplier_id is not None:
                self.get_supplier(purchase.supplier_id)
            return self._insert(purchase)

    def get_purchase(self, purchase_id: int) -> Purchase:
        return self._get(Purchase, purchase_id)

    def list_purchases(self) -> List[Purchase]:
        return self._list(Purchase)

    def update_purchase_status(
        self, purchase_id: int, status: PurchaseStatus, *, expected: Optional[PurchaseStatus] = None
    ) -> Purchase:
        return self._set_status(Purchase, PurchaseStatus, purchase_id, status, expected)

    def add_purchase_item(self, item: PurchaseItem) -> PurchaseItem:
        with self.transaction():
            self.get_purchase(item.purchase_id)
            self.get_inventory_item(item.inventory_item_id)
            return self._insert(item)

    def list_purchase_items(self, purchase_id: int) -> List[PurchaseItem]:
        return self._list(PurchaseItem, purchase_id=purchase_id)

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------

    def add_sale(self, sale: Sale) -> Sale:
        with self.transaction():
            if sale.customer_id is not None:
                self.get_customer(sale.customer_id)
            if sale.vehicle_id is not None:
                self.get_vehicle(sale.vehicle_id)
            return self._insert(sale)

    def get_sale(self, sale_id: int) -> Sale:
        return self._get(Sale, sale_id)

    def list_sales(self) -> List[Sale]:
        return self._list(Sale)

    def update_sale_status(
        self, sale_id: int, status: SaleStatus, *, expected: Optional[SaleStatus] = None
    ) -> Sale:
        return self._set_status(Sale, SaleStatus, sale_id, status, expected)

    def add_sale_line_item(self, line_item: SaleLineItem) -> SaleLineItem:
        with self.transaction():
            self.get_sale(line_item.sale_id)
            self.get_service(line_item.service_id)
            return self._insert(line_item)

    def list_sale_line_items(self, sale_id: int) -> List[SaleLineItem]:
        return self._list(SaleLineItem, sale_id=sale_id)

    def close(self) -> None:
        self.engine.dispose()


__all__ = ["SqlRepository", "build_engine"]
