"""Business logic layer for the car wash POS.

This module contains the sale workflow and the catalog, inventory and purchase
operations. It consumes a :class:`~carwash_pos.repository.Repository` for all
I/O and makes sure every mutation passes through the domain rules: priced line
items, configured tax, and the sale and purchase status lifecycles.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

from . import data_manager, log, metrics
from .constants import (
    CENT,
    EXPECTED_SCHEMA_VERSION,
    PURCHASE_TRANSITIONS,
    SALE_TRANSITIONS,
    TERMINAL_SALE_STATUSES,
    Backend,
    PaymentMethod,
    PurchaseStatus,
    SaleStatus,
    StockLevel,
    UserRole,
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
from .errors import InvalidTransitionError, ValidationError
from .memory_store import InMemoryRepository
from .repository import Repository
from .sql_store import SqlRepository
from .workbook_store import WorkbookRepository


@dataclass(frozen=True)
class RuntimeContext:
    """Container for configuration and the repository used by the BLL."""

    settings: data_manager.ConfigSettings
    repository: Repository


@dataclass(frozen=True)
class CustomerInfo:
    """Who the sale is for: an existing ``customer_id`` or details to match or create."""

    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    customer_id: Optional[int] = None


@dataclass(frozen=True)
class VehicleInfo:
    """The vehicle being serviced: an existing ``vehicle_id`` or its details."""

    license_plate: Optional[str] = None
    vehicle_type: Optional[str] = None
    color: Optional[str] = None
    year: Optional[int] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    vehicle_id: Optional[int] = None


@dataclass(frozen=True)
class LineSelection:
    """One requested service. ``quantity`` of ``None`` means one."""

    service_id: int
    quantity: Optional[int] = 1


@dataclass(frozen=True)
class SaleCommand:
    """User intent for ringing up a sale."""

    customer: CustomerInfo
    vehicle: VehicleInfo
    selections: Sequence[LineSelection]
    payment_method: Union[PaymentMethod, str]
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class SaleResult:
    sale: Sale
    line_items: List[SaleLineItem]
    customer: Customer
    vehicle: Vehicle


@dataclass(frozen=True)
class SaleDetails:
    sale: Sale
    line_items: List[SaleLineItem]


@dataclass(frozen=True)
class PurchaseLine:
    """One inventory line of a supplier purchase."""

    inventory_item_id: int
    quantity: Union[Decimal, int, str]
    unit_price: Union[Decimal, int, str]


@dataclass(frozen=True)
class PurchaseCommand:
    """User intent for recording a supplier purchase.

    With ``lines`` the total is their sum; without lines ``total_amount`` is
    required.
    """

    supplier_id: Optional[int] = None
    invoice_number: Optional[str] = None
    lines: Sequence[PurchaseLine] = ()
    total_amount: Optional[Union[Decimal, int, str]] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class PurchaseResult:
    purchase: Purchase
    items: List[PurchaseItem]


def _resolve_timestamp(candidate: Optional[datetime]) -> datetime:
    """Return ``candidate`` or the current local time.

    Sale and purchase dates are naive local datetimes because the daily
    metrics compare calendar days in local time.
    """

    return candidate if candidate is not None else datetime.now()


def build_repository(settings: data_manager.ConfigSettings) -> Repository:
    """Instantiate the repository selected by ``settings.backend``.

    Raises:
        FileNotFoundError: If the workbook backend is selected and the
            workbook does not exist.
        StorageError: If the backend cannot be opened.
    """

    if settings.backend is Backend.MEMORY:
        return InMemoryRepository()
    if settings.backend is Backend.SQL:
        return SqlRepository(settings.database_url)
    return WorkbookRepository(settings.data_file)


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Load configuration settings and open the configured repository.

    The helper resolves ``config.ini``, parses the settings and builds the
    backend they select. The resulting :class:`RuntimeContext` is the first
    argument of every business operation.

    Args:
        config_path (Path | None): Optional override path for the configuration
            file. When omitted the data layer performs its upward search from
            the current working directory.

    Returns:
        RuntimeContext: Settings plus a ready repository.

    Raises:
        FileNotFoundError: If the configuration file or workbook cannot be
            located.
        KeyError: When mandatory configuration options are missing.
        ValueError: When configuration values are malformed.
    """

    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    repository = build_repository(settings)
    log.info("Loaded runtime context (%s backend) for '%s'", settings.backend.value, settings.shop_name)
    return RuntimeContext(settings=settings, repository=repository)


def ensure_schema_version(context: RuntimeContext) -> None:
    """Validate storage compatibility before mutating state.

    Raises:
        RuntimeError: If the schema version declared in the configuration does
            not match ``EXPECTED_SCHEMA_VERSION``.
    """

    if context.settings.schema_version != EXPECTED_SCHEMA_VERSION:
        log.error(
            "Schema mismatch: expected %s, found %s",
            EXPECTED_SCHEMA_VERSION,
            context.settings.schema_version,
        )
        raise RuntimeError(
            "Schema mismatch: expected %s, found %s"
            % (EXPECTED_SCHEMA_VERSION, context.settings.schema_version)
        )

    log.debug("Schema version '%s' validated", context.settings.schema_version)


def persist_context(context: RuntimeContext) -> None:
    """Flush committed repository state to durable storage.

    Only the workbook backend defers its writes; for the other backends this
    is a no-op because every transaction is already durable on commit.
    """

    context.repository.persist()


# ----------------------------------------------------------------------
# Sale workflow
# ----------------------------------------------------------------------


def calculate_tax(subtotal: Decimal, tax_rate: Decimal) -> Decimal:
    """Return ``subtotal * tax_rate / 100`` rounded half-up to cents."""

    return (subtotal * tax_rate / Decimal("100")).quantize(CENT, rounding=ROUND_HALF_UP)


def _validate_selections(selections: Sequence[LineSelection]) -> List[Tuple[int, int]]:
    if not selections:
        log.warning("Rejected sale without service selections")
        raise ValidationError("A sale needs at least one service selection")

    validated: List[Tuple[int, int]] = []
    for selection in selections:
        quantity = 1 if selection.quantity is None else selection.quantity
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            log.warning("Rejected quantity %r for service %s", selection.quantity, selection.service_id)
            raise ValidationError(f"quantity must be an integer of at least 1, got {selection.quantity!r}")
        if isinstance(selection.service_id, bool) or not isinstance(selection.service_id, int):
            raise ValidationError(f"service id must be an integer, got {selection.service_id!r}")
        validated.append((selection.service_id, quantity))
    return validated


def _draft_customer(info: CustomerInfo) -> Optional[Customer]:
    if info.customer_id is not None:
        return None
    return Customer(name=info.name, phone=info.phone, email=info.email)


def _draft_vehicle(info: VehicleInfo) -> Optional[Vehicle]:
    if info.vehicle_id is not None:
        return None
    return Vehicle(
        license_plate=info.license_plate,
        vehicle_type=info.vehicle_type,
        color=info.color,
        year=info.year,
        brand=info.brand,
        model=info.model,
    )


def _resolve_customer(repository: Repository, info: CustomerInfo, draft: Optional[Customer]) -> Customer:
    if draft is None:
        return repository.get_customer(info.customer_id)

    if draft.phone is not None:
        for customer in repository.list_customers():
            if customer.phone == draft.phone and customer.name.casefold() == draft.name.casefold():
                log.debug("Matched existing customer %s", customer.id)
                return customer
    return repository.add_customer(draft)


def _resolve_vehicle(
    repository: Repository,
    info: VehicleInfo,
    draft: Optional[Vehicle],
    customer: Customer,
) -> Vehicle:
    if draft is None:
        return repository.get_vehicle(info.vehicle_id)

    for vehicle in repository.list_vehicles_for_customer(customer.id):
        if vehicle.license_plate == draft.license_plate:
            log.debug("Matched existing vehicle %s", vehicle.id)
            return vehicle
    return repository.add_vehicle(dataclasses.replace(draft, customer_id=customer.id))


def create_sale(context: RuntimeContext, command: SaleCommand) -> SaleResult:
    """Validate, price and persist a sale with its line items.

    Input that can be checked without storage (selections, quantities,
    payment method, customer and vehicle details) is validated before any
    write. Service lookups, customer and vehicle resolution, the sale and its
    line items then run inside a single repository transaction, so a failure
    at any step leaves nothing behind.

    Each line item captures the service's current price. The subtotal is the
    sum of line totals, the tax is ``subtotal * TaxRate / 100`` rounded to
    cents, and the estimated completion time is the sum of the services'
    minutes multiplied by their quantities.

    Args:
        context (RuntimeContext): Runtime context providing settings and the
            repository.
        command (SaleCommand): Structured intent describing the sale request.

    Returns:
        SaleResult: The stored pending sale, its line items, and the customer
            and vehicle it was attached to.

    Raises:
        ValidationError: If selections are empty, a quantity is below one,
            the payment method is unknown, a service is inactive, or customer
            or vehicle details are incomplete.
        NotFoundError: If a service, customer or vehicle id does not exist.
    """

    selections = _validate_selections(command.selections)
    payment_method = coerce_enum(PaymentMethod, command.payment_method, "payment_method")
    customer_draft = _draft_customer(command.customer)
    vehicle_draft = _draft_vehicle(command.vehicle)
    timestamp = _resolve_timestamp(command.timestamp)
    repository = context.repository

    with repository.transaction():
        priced: List[Tuple[Service, int]] = []
        for service_id, quantity in selections:
            service = repository.get_service(service_id)
            if not service.is_active:
                log.warning("Attempted sale of inactive service '%s'", service_id)
                raise ValidationError(f"Service '{service.name}' is not active")
            priced.append((service, quantity))

        subtotal = sum((service.price * quantity for service, quantity in priced), Decimal("0"))
        tax_amount = calculate_tax(subtotal, context.settings.tax_rate)
        minutes = sum(service.estimated_minutes * quantity for service, quantity in priced)

        customer = _resolve_customer(repository, command.customer, customer_draft)
        vehicle = _resolve_vehicle(repository, command.vehicle, vehicle_draft, customer)
        sale = repository.add_sale(
            Sale(
                subtotal=subtotal,
                tax_amount=tax_amount,
                total_amount=subtotal + tax_amount,
                payment_method=payment_method,
                sale_date=timestamp,
                customer_id=customer.id,
                vehicle_id=vehicle.id,
                status=SaleStatus.PENDING,
                estimated_completion_time=minutes,
            )
        )
        line_items = [
            repository.add_sale_line_item(
                SaleLineItem(
                    sale_id=sale.id,
                    service_id=service.id,
                    unit_price=service.price,
                    quantity=quantity,
                )
            )
            for service, quantity in priced
        ]

    log.info(
        "Recorded sale %s for customer %s (lines=%d, total=%s, minutes=%s)",
        sale.id,
        customer.id,
        len(line_items),
        sale.total_amount,
        minutes,
    )
    return SaleResult(sale=sale, line_items=line_items, customer=customer, vehicle=vehicle)


def _check_transition(graph: Mapping[Any, frozenset], current: Any, target: Any, label: str) -> None:
    if target not in graph[current]:
        log.warning("Rejected %s transition %s -> %s", label, current.value, target.value)
        raise InvalidTransitionError(
            f"Cannot move {label} from '{current.value}' to '{target.value}'"
        )


def _coerce_status(enum_type: type, value: Any, label: str) -> Any:
    try:
        return enum_type(value)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_type)
        log.warning("Rejected unknown %s status %r", label, value)
        raise InvalidTransitionError(f"Unknown {label} status {value!r}; expected one of: {allowed}") from exc


def update_sale_status(context: RuntimeContext, sale_id: int, new_status: Union[SaleStatus, str]) -> Sale:
    """Move a sale along its lifecycle.

    ``pending`` may become ``in-progress`` or ``cancelled`` and ``in-progress``
    may become ``completed`` or ``cancelled``; ``completed`` and
    ``cancelled`` are terminal. The read, check and write happen in one
    transaction so concurrent updates of the same sale are serialized.

    Raises:
        NotFoundError: If the sale does not exist.
        InvalidTransitionError: If ``new_status`` is unknown or not reachable
            from the current status.
    """

    repository = context.repository
    with repository.transaction():
        sale = repository.get_sale(sale_id)
        target = _coerce_status(SaleStatus, new_status, "sale")
        if sale.status in TERMINAL_SALE_STATUSES:
            log.warning("Rejected change of closed sale %s (%s)", sale_id, sale.status.value)
            raise InvalidTransitionError(f"Sale {sale_id} is already {sale.status.value} and cannot change")
        _check_transition(SALE_TRANSITIONS, sale.status, target, "sale")
        updated = repository.update_sale_status(sale_id, target, expected=sale.status)
    log.info("Sale %s moved from %s to %s", sale_id, sale.status.value, target.value)
    return updated


def get_sale_details(context: RuntimeContext, sale_id: int) -> SaleDetails:
    """Return a sale together with its line items."""

    repository = context.repository
    with repository.transaction():
        sale = repository.get_sale(sale_id)
        line_items = repository.list_sale_line_items(sale_id)
    return SaleDetails(sale=sale, line_items=line_items)


def list_sales(context: RuntimeContext, *, status: Optional[Union[SaleStatus, str]] = None) -> List[Sale]:
    sales = context.repository.list_sales()
    if status is None:
        return sales
    wanted = coerce_enum(SaleStatus, status, "status")
    return [sale for sale in sales if sale.status is wanted]


# ----------------------------------------------------------------------
# Customers and vehicles
# ----------------------------------------------------------------------


def add_customer(
    context: RuntimeContext, *, name: str, phone: Optional[str] = None, email: Optional[str] = None
) -> Customer:
    """Register a customer outside of a sale."""

    customer = context.repository.add_customer(Customer(name=name, phone=phone, email=email))
    log.info("Added customer %s '%s'", customer.id, customer.name)
    return customer


def list_customers(context: RuntimeContext) -> List[Customer]:
    return context.repository.list_customers()


def add_vehicle(
    context: RuntimeContext,
    *,
    license_plate: str,
    vehicle_type: str,
    customer_id: Optional[int] = None,
    color: Optional[str] = None,
    year: Optional[int] = None,
    brand: Optional[str] = None,
    model: Optional[str] = None,
) -> Vehicle:
    """Register a vehicle, optionally linked to an existing customer.

    Raises:
        NotFoundError: If ``customer_id`` does not name a stored customer.
        ValidationError: If the plate or type is blank or the year is invalid.
    """

    vehicle = context.repository.add_vehicle(
        Vehicle(
            customer_id=customer_id,
            license_plate=license_plate,
            vehicle_type=vehicle_type,
            color=color,
            year=year,
            brand=brand,
            model=model,
        )
    )
    log.info("Added vehicle %s (%s)", vehicle.id, vehicle.license_plate)
    return vehicle


def list_vehicles(context: RuntimeContext, *, customer_id: Optional[int] = None) -> List[Vehicle]:
    if customer_id is None:
        return context.repository.list_vehicles()
    context.repository.get_customer(customer_id)
    return context.repository.list_vehicles_for_customer(customer_id)


# ----------------------------------------------------------------------
# Service catalog
# ----------------------------------------------------------------------


def add_service(
    context: RuntimeContext,
    *,
    name: str,
    price: Union[Decimal, int, str],
    estimated_minutes: int,
    description: Optional[str] = None,
    is_active: bool = True,
) -> Service:
    service = context.repository.add_service(
        Service(
            name=name,
            price=price,
            estimated_minutes=estimated_minutes,
            description=description,
            is_active=is_active,
        )
    )
    log.info("Added service %s '%s' at %s", service.id, service.name, service.price)
    return service


def update_service(context: RuntimeContext, service_id: int, changes: Mapping[str, Any]) -> Service:
    """Apply field changes to a catalog entry.

    Past line items keep the price they were sold at, so a price change only
    affects future sales.
    """

    service = context.repository.update_service(service_id, changes)
    log.info("Updated service %s (%s)", service_id, ", ".join(sorted(changes)))
    return service


def list_services(context: RuntimeContext, *, include_inactive: bool = False) -> List[Service]:
    services = context.repository.list_services()
    if include_inactive:
        return services
    return [service for service in services if service.is_active]


def list_available_services(context: RuntimeContext) -> List[Service]:
    """Return the services that can currently be sold."""

    return list_services(context)


# ----------------------------------------------------------------------
# Inventory
# ----------------------------------------------------------------------


def add_inventory_item(
    context: RuntimeContext,
    *,
    name: str,
    current_stock: Union[Decimal, int, str],
    min_stock: Union[Decimal, int, str],
    unit: str,
    cost_per_unit: Union[Decimal, int, str],
    description: Optional[str] = None,
) -> InventoryItem:
    item = context.repository.add_inventory_item(
        InventoryItem(
            name=name,
            current_stock=current_stock,
            min_stock=min_stock,
            unit=unit,
            cost_per_unit=cost_per_unit,
            description=description,
        )
    )
    log.info("Added inventory item %s '%s' (stock=%s %s)", item.id, item.name, item.current_stock, item.unit)
    return item


def update_inventory_item(context: RuntimeContext, item_id: int, changes: Mapping[str, Any]) -> InventoryItem:
    item = context.repository.update_inventory_item(item_id, changes)
    log.info("Updated inventory item %s (%s)", item_id, ", ".join(sorted(changes)))
    return item


def adjust_stock(context: RuntimeContext, item_id: int, delta: Union[Decimal, int, str]) -> InventoryItem:
    """Add ``delta`` (negative to consume) to an item's stock.

    Raises:
        NotFoundError: If the item does not exist.
        ValidationError: If the stock would drop below zero.
    """

    item = context.repository.adjust_stock(item_id, delta)
    log.info("Adjusted stock of item %s by %s (now %s)", item_id, delta, item.current_stock)
    return item


def list_inventory(context: RuntimeContext) -> List[Tuple[InventoryItem, StockLevel]]:
    """Return every item paired with its stock badge."""

    return [(item, metrics.stock_level(item)) for item in context.repository.list_inventory_items()]


def low_stock_items(context: RuntimeContext) -> List[InventoryItem]:
    return context.repository.low_stock_items()


# ----------------------------------------------------------------------
# Suppliers and purchases
# ----------------------------------------------------------------------


def add_supplier(
    context: RuntimeContext,
    *,
    name: str,
    contact: Optional[str] = None,
    phone: Optional[str] = None,
    email: Optional[str] = None,
    address: Optional[str] = None,
) -> Supplier:
    supplier = context.repository.add_supplier(
        Supplier(name=name, contact=contact, phone=phone, email=email, address=address)
    )
    log.info("Added supplier %s '%s'", supplier.id, supplier.name)
    return supplier


def list_suppliers(context: RuntimeContext) -> List[Supplier]:
    return context.repository.list_suppliers()


def list_purchases(
    context: RuntimeContext, *, status: Optional[Union[PurchaseStatus, str]] = None
) -> List[Purchase]:
    purchases = context.repository.list_purchases()
    if status is None:
        return purchases
    wanted = coerce_enum(PurchaseStatus, status, "status")
    return [purchase for purchase in purchases if purchase.status is wanted]


def _price_purchase_lines(lines: Sequence[PurchaseLine]) -> List[Tuple[PurchaseLine, Decimal, Decimal]]:
    priced = []
    for line in lines:
        quantity = coerce_decimal(line.quantity, "quantity")
        unit_price = coerce_decimal(line.unit_price, "unit_price")
        if quantity <= 0:
            raise ValidationError("quantity must be greater than zero")
        if unit_price < 0:
            raise ValidationError("unit_price must be zero or positive")
        priced.append((line, quantity, unit_price))
    return priced


def record_purchase(context: RuntimeContext, command: PurchaseCommand) -> PurchaseResult:
    """Record a pending supplier purchase and its lines.

    Args:
        context (RuntimeContext): Runtime context providing the repository.
        command (PurchaseCommand): Supplier, invoice and either purchase lines
            or an explicit total.

    Returns:
        PurchaseResult: The stored purchase and its items.

    Raises:
        ValidationError: If neither lines nor a total are given, or an
            explicit total disagrees with the lines.
        NotFoundError: If the supplier or an inventory item does not exist.
    """

    priced = _price_purchase_lines(command.lines)
    line_total = sum(
        ((unit_price * quantity).quantize(CENT, rounding=ROUND_HALF_UP) for _, quantity, unit_price in priced),
        Decimal("0"),
    )
    if command.total_amount is None:
        if not priced:
            raise ValidationError("A purchase needs lines or a total amount")
        total_amount = line_total
    else:
        total_amount = coerce_decimal(command.total_amount, "total_amount")
        if priced and total_amount != line_total:
            log.warning("Purchase total %s disagrees with line total %s", total_amount, line_total)
            raise ValidationError(f"total_amount {total_amount} does not match the lines ({line_total})")

    repository = context.repository
    with repository.transaction():
        purchase = repository.add_purchase(
            Purchase(
                total_amount=total_amount,
                purchase_date=_resolve_timestamp(command.timestamp),
                supplier_id=command.supplier_id,
                invoice_number=command.invoice_number,
            )
        )
        items = [
            repository.add_purchase_item(
                PurchaseItem(
                    purchase_id=purchase.id,
                    inventory_item_id=line.inventory_item_id,
                    quantity=quantity,
                    unit_price=unit_price,
                )
            )
            for line, quantity, unit_price in priced
        ]
    log.info("Recorded purchase %s (lines=%d, total=%s)", purchase.id, len(items), purchase.total_amount)
    return PurchaseResult(purchase=purchase, items=items)


def receive_purchase(context: RuntimeContext, purchase_id: int) -> Purchase:
    """Mark a pending purchase as received and add its quantities to stock.

    Raises:
        NotFoundError: If the purchase does not exist.
        InvalidTransitionError: If the purchase is no longer pending.
    """

    repository = context.repository
    with repository.transaction():
        purchase = repository.get_purchase(purchase_id)
        _check_transition(PURCHASE_TRANSITIONS, purchase.status, PurchaseStatus.RECEIVED, "purchase")
        # The status is claimed before any stock moves.
        updated = repository.update_purchase_status(
            purchase_id, PurchaseStatus.RECEIVED, expected=purchase.status
        )
        for item in repository.list_purchase_items(purchase_id):
            repository.adjust_stock(item.inventory_item_id, item.quantity)
    log.info("Received purchase %s", purchase_id)
    return updated


def cancel_purchase(context: RuntimeContext, purchase_id: int) -> Purchase:
    repository = context.repository
    with repository.transaction():
        purchase = repository.get_purchase(purchase_id)
        _check_transition(PURCHASE_TRANSITIONS, purchase.status, PurchaseStatus.CANCELLED, "purchase")
        updated = repository.update_purchase_status(
            purchase_id, PurchaseStatus.CANCELLED, expected=purchase.status
        )
    log.info("Cancelled purchase %s", purchase_id)
    return updated


def purchase_summary(
    context: RuntimeContext, reference: Optional[Union[date, datetime]] = None
) -> metrics.PurchaseSummary:
    return metrics.purchase_summary(context.repository.list_purchases(), reference)


# ----------------------------------------------------------------------
# Users
# ----------------------------------------------------------------------


def create_user(
    context: RuntimeContext,
    *,
    username: str,
    password: str,
    role: Union[UserRole, str] = UserRole.USER,
) -> User:
    user = context.repository.add_user(
        User.with_password(username, password, coerce_enum(UserRole, role, "role"))
    )
    log.info("Created %s user '%s'", user.role.value, user.username)
    return user


# ----------------------------------------------------------------------
# Metrics
# ----------------------------------------------------------------------


def sales_metrics(
    context: RuntimeContext, reference_date: Optional[Union[date, datetime]] = None
) -> metrics.DailyMetrics:
    """Return the dashboard metrics for ``reference_date`` (today by default)."""

    return context.repository.sales_metrics(reference_date)


def revenue_report(
    context: RuntimeContext, reference: Optional[Union[date, datetime]] = None
) -> metrics.RevenueReport:
    return metrics.revenue_report(context.repository.list_sales(), reference)


__all__ = [
    "RuntimeContext",
    "CustomerInfo",
    "VehicleInfo",
    "LineSelection",
    "SaleCommand",
    "SaleResult",
    "SaleDetails",
    "PurchaseLine",
    "PurchaseCommand",
    "PurchaseResult",
    "build_repository",
    "load_runtime_context",
    "ensure_schema_version",
    "persist_context",
    "calculate_tax",
    "create_sale",
    "update_sale_status",
    "get_sale_details",
    "list_sales",
    "add_customer",
    "list_customers",
    "add_vehicle",
    "list_vehicles",
    "add_service",
    "update_service",
    "list_services",
    "list_available_services",
    "add_inventory_item",
    "update_inventory_item",
    "adjust_stock",
    "list_inventory",
    "low_stock_items",
    "add_supplier",
    "list_suppliers",
    "list_purchases",
    "record_purchase",
    "receive_purchase",
    "cancel_purchase",
    "purchase_summary",
    "create_user",
    "sales_metrics",
    "revenue_report",
]
