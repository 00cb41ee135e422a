"""Command-line entry points for the car wash POS.

All orchestration in this module is limited to argparse wiring, translating
command-line arguments into the command objects consumed by the business
layer, and printing results as JSON. Keeping the CLI thin lets tests, scripts
or any alternative front-end reuse the same parser configuration.
"""

from __future__ import annotations

import argparse
import contextlib
import io
import json
import sys
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, MutableMapping, Optional, Sequence

from . import core_logic, log, payloads
from .bootstrap import seed_demo_data
from .constants import PaymentMethod, PurchaseStatus, SaleStatus
from .errors import BusinessRuleViolation, StorageError, ValidationError


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]
    writes: bool = False


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="carwash-cli",
        description="Command-line tools for the car wash point of sale.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (defaults to ./config.ini).",
    )
    return parser


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    write_specs = register_write_commands(subparsers)
    read_specs = register_read_commands(subparsers)
    return build_command_table([*write_specs.values(), *read_specs.values()])


def _spec(
    name: str,
    help_text: str,
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int],
    arguments: Callable[[argparse.ArgumentParser], None],
    *,
    writes: bool,
) -> CommandSpec:
    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        arguments(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=execute, writes=writes)


def register_write_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare mutating CLI commands such as sales and stock adjustments."""
    specs = {
        "add-service": register_add_service_command(),
        "update-service": register_update_service_command(),
        "add-item": register_add_item_command(),
        "adjust-stock": register_adjust_stock_command(),
        "add-customer": register_add_customer_command(),
        "add-vehicle": register_add_vehicle_command(),
        "add-supplier": register_add_supplier_command(),
        "purchase": register_purchase_command(),
        "receive-purchase": register_receive_purchase_command(),
        "cancel-purchase": register_cancel_purchase_command(),
        "sale": register_sale_command(),
        "status": register_status_command(),
        "seed": register_seed_command(),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_read_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare read-only CLI commands such as listings and reports."""
    specs = {
        "services": register_services_command(),
        "inventory": register_inventory_command(),
        "low-stock": register_low_stock_command(),
        "sales": register_sales_command(),
        "sale-details": register_sale_details_command(),
        "customers": register_customers_command(),
        "vehicles": register_vehicles_command(),
        "suppliers": register_suppliers_command(),
        "purchases": register_purchases_command(),
        "purchase-summary": register_purchase_summary_command(),
        "metrics": register_metrics_command(),
        "report": register_report_command(),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


# ---------------------------------------------------------------------------
# Write command registration
# ---------------------------------------------------------------------------


def register_add_service_command() -> CommandSpec:
    """Register the parser and executor for ``add-service``."""

    def arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--name", required=True)
        parser.add_argument("--price", required=True)
        parser.add_argument("--minutes", type=int, required=True, help="Estimated minutes per unit.")
        parser.add_argument("--description", default=None)
        parser.add_argument("--inactive", action="store_true", help="Create the service as inactive.")

    return _spec("add-service", "Add a service to the catalog.", run_add_service, arguments, writes=True)


def register_update_service_command() -> CommandSpec:
    """Register the parser and executor for ``update-service``."""

    def arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--service-id", type=int, required=True)
        parser.add_argument("--name", default=None)
        parser.add_argument("--price", default=None)
        parser.add_argument("--minutes", type=int, default=None)
        parser.add_argument("--description", default=None)
        state = parser.add_mutually_exclusive_group()
        state.add_argument("--activate", dest="is_active", action="store_const", const=True)
        state.add_argument("--deactivate", dest="is_active", action="store_const", const=False)

    return _spec("update-service", "Change a catalog service.", run_update_service, arguments, writes=True)


def register_add_item_command() -> CommandSpec:
    """Register the parser and executor for ``add-item``."""

    def arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--name", required=True)
        parser.add_argument("--stock", required=True)
        parser.add_argument("--min-stock", required=True)
        parser.add_argument("--unit", required=True)
        parser.add_argument("--cost", required=True, help="Cost per unit.")
        parser.add_argument("--description", default=None)

    return _spec("add-item", "Add an inventory item.", run_add_item, arguments, writes=True)


def register_adjust_stock_command() -> CommandSpec:
    """Register the parser and executor for ``adjust-stock``."""

    def arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--item-id", type=int, required=True)
        parser.add_argument("--delta", required=True, help="Quantity to add; negative to consume.")

    return _spec("adjust-stock", "Add to or consume inventory stock.", run_adjust_stock, arguments, writes=True)


def register_add_customer_command() -> CommandSpec:
    """Register the parser and executor for ``add-customer``."""

    def arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--name", required=True)
        parser.add_argument("--phone", default=None)
        parser.add_argument("--email", default=None)

    return _spec("add-customer", "Register a customer.", run_add_customer, arguments, writes=True)


def register_add_vehicle_command() -> CommandSpec:
    """Register the parser and executor for ``add-vehicle``."""

    def arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--plate", dest="license_plate", required=True)
        parser.add_argument("--vehicle-type", required=True)
        parser.add_argument("--customer-id", type=int, default=None)
        parser.add_argument("--color", default=None)
        parser.add_argument("--year", type=int, default=None)
        parser.add_argument("--brand", default=None)
        parser.add_argument("--model", default=None)

    return _spec("add-vehicle", "Register a vehicle.", run_add_vehicle, arguments, writes=True)


def register_add_supplier_command() -> CommandSpec:
    """Register the parser and executor for ``add-supplier``."""

    def arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--name", required=True)
        parser.add_argument("--contact", default=None)
        parser.add_argument("--phone", default=None)
        parser.add_argument("--email", default=None)
        parser.add_argument("--address", default=None)

    return _spec("add-supplier", "Register a supplier.", run_add_supplier, arguments, writes=True)


def register_purchase_command() -> CommandSpec:
    """Register the parser and executor for ``purchase``."""

    def arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--supplier-id", type=int, default=None)
        parser.add_argument("--invoice", default=None)
        parser.add_argument(
            "--item",
            action="append",
            default=[],
            metavar="ITEM_ID:QUANTITY:UNIT_PRICE",
            help="Purchase line; repeat for several items.",
        )
        parser.add_argument("--total", default=None, help="Total amount when no lines are given.")

    return _spec("purchase", "Record a supplier purchase.", run_purchase, arguments, writes=True)


def register_receive_purchase_command() -> CommandSpec:
    """Register the parser and executor for ``receive-purchase``."""

    def arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--purchase-id", type=int, required=True)

    return _spec(
        "receive-purchase",
        "Mark a purchase as received and add it to stock.",
        run_receive_purchase,
        arguments,
        writes=True,
    )


def register_cancel_purchase_command() -> CommandSpec:
    """Register the parser and executor for ``cancel-purchase``."""

    def arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--purchase-id", type=int, required=True)

    return _spec("cancel-purchase", "Cancel a pending purchase.", run_cancel_purchase, arguments, writes=True)


def register_sale_command() -> CommandSpec:
    """Register the parser and executor for ``sale``."""

    def arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--customer-name", default=None)
        parser.add_argument("--customer-phone", default=None)
        parser.add_argument("--customer-id", type=int, default=None)
        parser.add_argument("--plate", dest="license_plate", default=None)
        parser.add_argument("--vehicle-type", default=None)
        parser.add_argument("--color", default=None)
        parser.add_argument("--year", type=int, default=None)
        parser.add_argument("--vehicle-id", type=int, default=None)
        parser.add_argument(
            "--service",
            action="append",
            default=[],
            metavar="SERVICE_ID[:QUANTITY]",
            help="Service to sell; repeat for several services.",
        )
        parser.add_argument(
            "--payment-method",
            choices=[member.value for member in PaymentMethod],
            required=True,
        )

    return _spec("sale", "Ring up a sale.", run_sale, arguments, writes=True)


def register_status_command() -> CommandSpec:
    """Register the parser and executor for ``status``."""

    def arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--sale-id", type=int, required=True)
        parser.add_argument("--status", required=True, help="in-progress, completed or cancelled.")

    return _spec("status", "Move a sale to another status.", run_status, arguments, writes=True)


def register_seed_command() -> CommandSpec:
    """Register the parser and executor for ``seed``."""

    def arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--admin-password", default=None)

    return _spec("seed", "Load demo services, inventory and suppliers.", run_seed, arguments, writes=True)


# ---------------------------------------------------------------------------
# Read command registration
# ---------------------------------------------------------------------------


def _no_arguments(parser: argparse.ArgumentParser) -> None:
    return None


def _date_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Reference day as YYYY-MM-DD (defaults to today).",
    )


def register_services_command() -> CommandSpec:
    def arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--all", action="store_true", help="Include inactive services.")

    return _spec("services", "List catalog services.", run_services, arguments, writes=False)


def register_inventory_command() -> CommandSpec:
    return _spec("inventory", "List inventory items with stock levels.", run_inventory, _no_arguments, writes=False)


def register_low_stock_command() -> CommandSpec:
    return _spec("low-stock", "List items at or below minimum stock.", run_low_stock, _no_arguments, writes=False)


def register_sales_command() -> CommandSpec:
    def arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--status", choices=[member.value for member in SaleStatus], default=None)

    return _spec("sales", "List sales.", run_sales, arguments, writes=False)


def register_sale_details_command() -> CommandSpec:
    def arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--sale-id", type=int, required=True)

    return _spec("sale-details", "Show a sale with its services.", run_sale_details, arguments, writes=False)


def register_customers_command() -> CommandSpec:
    return _spec("customers", "List customers.", run_customers, _no_arguments, writes=False)


def register_vehicles_command() -> CommandSpec:
    def arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--customer-id", type=int, default=None, help="Only this customer's vehicles.")

    return _spec("vehicles", "List vehicles.", run_vehicles, arguments, writes=False)


def register_suppliers_command() -> CommandSpec:
    return _spec("suppliers", "List suppliers.", run_suppliers, _no_arguments, writes=False)


def register_purchases_command() -> CommandSpec:
    def arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--status", choices=[member.value for member in PurchaseStatus], default=None)

    return _spec("purchases", "List supplier purchases.", run_purchases, arguments, writes=False)


def register_purchase_summary_command() -> CommandSpec:
    return _spec(
        "purchase-summary",
        "Show purchase totals and counts by status.",
        run_purchase_summary,
        _date_argument,
        writes=False,
    )


def register_metrics_command() -> CommandSpec:
    return _spec("metrics", "Show the daily dashboard metrics.", run_metrics, _date_argument, writes=False)


def register_report_command() -> CommandSpec:
    return _spec("report", "Show revenue by period and payment method.", run_report, _date_argument, writes=False)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def load_runtime_context(config_path: Optional[Path] = None) -> core_logic.RuntimeContext:
    """Resolve the runtime context for CLI operations."""
    target = Path(config_path) if config_path is not None else Path.cwd() / "config.ini"
    return core_logic.load_runtime_context(target)


def dispatch_command(
    context: core_logic.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def emit(payload: Any) -> None:
    """Print ``payload`` as indented JSON on stdout."""
    print(json.dumps(payload, indent=2, ensure_ascii=False))


# ---------------------------------------------------------------------------
# Translation
# ---------------------------------------------------------------------------


def _parse_selection(raw: str) -> core_logic.LineSelection:
    service_part, _, quantity_part = raw.partition(":")
    try:
        service_id = int(service_part)
        quantity = int(quantity_part) if quantity_part else 1
    except ValueError as exc:
        raise ValidationError(f"Invalid service selection '{raw}'; expected SERVICE_ID[:QUANTITY]") from exc
    return core_logic.LineSelection(service_id=service_id, quantity=quantity)


def _parse_purchase_line(raw: str) -> core_logic.PurchaseLine:
    parts = raw.split(":")
    if len(parts) != 3:
        raise ValidationError(f"Invalid purchase line '{raw}'; expected ITEM_ID:QUANTITY:UNIT_PRICE")
    try:
        item_id = int(parts[0])
    except ValueError as exc:
        raise ValidationError(f"Invalid inventory item id in '{raw}'") from exc
    return core_logic.PurchaseLine(inventory_item_id=item_id, quantity=parts[1], unit_price=parts[2])


def translate_sale(args: argparse.Namespace) -> core_logic.SaleCommand:
    """Translate CLI args into a sale command object."""
    return core_logic.SaleCommand(
        customer=core_logic.CustomerInfo(
            name=args.customer_name,
            phone=args.customer_phone,
            customer_id=args.customer_id,
        ),
        vehicle=core_logic.VehicleInfo(
            license_plate=args.license_plate,
            vehicle_type=args.vehicle_type,
            color=args.color,
            year=args.year,
            vehicle_id=args.vehicle_id,
        ),
        selections=[_parse_selection(raw) for raw in args.service],
        payment_method=PaymentMethod(args.payment_method),
    )


def translate_purchase(args: argparse.Namespace) -> core_logic.PurchaseCommand:
    """Translate CLI args into a purchase command object."""
    return core_logic.PurchaseCommand(
        supplier_id=args.supplier_id,
        invoice_number=args.invoice,
        lines=[_parse_purchase_line(raw) for raw in args.item],
        total_amount=args.total,
    )


def translate_service_changes(args: argparse.Namespace) -> Mapping[str, Any]:
    """Collect only the service fields given on the command line."""
    changes: Dict[str, Any] = {}
    for attribute, value in (
        ("name", args.name),
        ("price", args.price),
        ("estimated_minutes", args.minutes),
        ("description", args.description),
        ("is_active", args.is_active),
    ):
        if value is not None:
            changes[attribute] = value
    if not changes:
        raise ValidationError("Nothing to update; pass at least one field")
    return changes


# ---------------------------------------------------------------------------
# Executors
# ---------------------------------------------------------------------------


def run_add_service(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    service = core_logic.add_service(
        context,
        name=args.name,
        price=args.price,
        estimated_minutes=args.minutes,
        description=args.description,
        is_active=not args.inactive,
    )
    emit(payloads.entity_to_payload(service))
    return 0


def run_update_service(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    service = core_logic.update_service(context, args.service_id, translate_service_changes(args))
    emit(payloads.entity_to_payload(service))
    return 0


def run_add_item(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    item = core_logic.add_inventory_item(
        context,
        name=args.name,
        current_stock=args.stock,
        min_stock=args.min_stock,
        unit=args.unit,
        cost_per_unit=args.cost,
        description=args.description,
    )
    emit(payloads.entity_to_payload(item))
    return 0


def run_adjust_stock(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    item = core_logic.adjust_stock(context, args.item_id, args.delta)
    emit(payloads.entity_to_payload(item))
    return 0


def run_add_customer(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    customer = core_logic.add_customer(context, name=args.name, phone=args.phone, email=args.email)
    emit(payloads.entity_to_payload(customer))
    return 0


def run_add_vehicle(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    vehicle = core_logic.add_vehicle(
        context,
        license_plate=args.license_plate,
        vehicle_type=args.vehicle_type,
        customer_id=args.customer_id,
        color=args.color,
        year=args.year,
        brand=args.brand,
        model=args.model,
    )
    emit(payloads.entity_to_payload(vehicle))
    return 0


def run_add_supplier(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    supplier = core_logic.add_supplier(
        context,
        name=args.name,
        contact=args.contact,
        phone=args.phone,
        email=args.email,
        address=args.address,
    )
    emit(payloads.entity_to_payload(supplier))
    return 0


def run_purchase(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    result = core_logic.record_purchase(context, translate_purchase(args))
    payload = payloads.entity_to_payload(result.purchase)
    payload["items"] = [payloads.entity_to_payload(item) for item in result.items]
    emit(payload)
    return 0


def run_receive_purchase(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    emit(payloads.entity_to_payload(core_logic.receive_purchase(context, args.purchase_id)))
    return 0


def run_cancel_purchase(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    emit(payloads.entity_to_payload(core_logic.cancel_purchase(context, args.purchase_id)))
    return 0


def run_sale(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the sale workflow via the BLL."""
    result = core_logic.create_sale(context, translate_sale(args))
    emit(payloads.sale_result_to_payload(result))
    return 0


def run_status(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    sale = core_logic.update_sale_status(context, args.sale_id, args.status)
    emit(payloads.entity_to_payload(sale))
    return 0


def run_seed(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    report = seed_demo_data(context.repository, admin_password=args.admin_password)
    emit(
        {
            "services": report.services,
            "inventoryItems": report.inventory_items,
            "suppliers": report.suppliers,
            "users": report.users,
        }
    )
    return 0


def run_services(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    services = core_logic.list_services(context, include_inactive=args.all)
    emit([payloads.entity_to_payload(service) for service in services])
    return 0


def run_inventory(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    rows = []
    for item, level in core_logic.list_inventory(context):
        row = payloads.entity_to_payload(item)
        row["stockLevel"] = level.value
        rows.append(row)
    emit(rows)
    return 0


def run_low_stock(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    emit([payloads.entity_to_payload(item) for item in core_logic.low_stock_items(context)])
    return 0


def run_sales(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    sales = core_logic.list_sales(context, status=args.status)
    emit([payloads.entity_to_payload(sale) for sale in sales])
    return 0


def run_sale_details(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    emit(payloads.sale_details_to_payload(core_logic.get_sale_details(context, args.sale_id)))
    return 0


def run_customers(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    emit([payloads.entity_to_payload(customer) for customer in core_logic.list_customers(context)])
    return 0


def run_vehicles(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    vehicles = core_logic.list_vehicles(context, customer_id=args.customer_id)
    emit([payloads.entity_to_payload(vehicle) for vehicle in vehicles])
    return 0


def run_suppliers(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    emit([payloads.entity_to_payload(supplier) for supplier in core_logic.list_suppliers(context)])
    return 0


def run_purchases(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    purchases = core_logic.list_purchases(context, status=args.status)
    emit([payloads.entity_to_payload(purchase) for purchase in purchases])
    return 0


def run_purchase_summary(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    emit(payloads.purchase_summary_to_payload(core_logic.purchase_summary(context, args.date)))
    return 0


def run_metrics(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    emit(payloads.metrics_to_payload(core_logic.sales_metrics(context, args.date)))
    return 0


def run_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    emit(payloads.revenue_report_to_payload(core_logic.revenue_report(context, args.date)))
    return 0


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, BusinessRuleViolation):
        log.error("%s", error)
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    if isinstance(error, StorageError):
        log.error("Storage failure: %s", error)
        return 4
    log.error("%s", error)
    return 1


def persist_repository(context: core_logic.RuntimeContext) -> None:
    """Persist repository changes after successful execution."""
    try:
        core_logic.persist_context(context)
    except PermissionError as error:
        raise StorageError(str(error)) from error


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        spec = command_table[args.command]
        if not spec.writes:
            return dispatch_command(context, args, command_table)

        core_logic.ensure_schema_version(context)
        # Output of a write is only shown once its changes are saved.
        output = io.StringIO()
        with contextlib.redirect_stdout(output):
            exit_code = dispatch_command(context, args, command_table)
        if exit_code == 0:
            persist_repository(context)
        sys.stdout.write(output.getvalue())
        return exit_code
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
