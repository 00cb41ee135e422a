"""Unit tests describing the CLI presentation layer contract."""

from __future__ import annotations

import argparse
import json
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Mapping

import pytest

from carwash_pos import cli, constants, core_logic
from carwash_pos.errors import (
    BusinessRuleViolation,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from carwash_pos.workbook_store import WorkbookRepository

from conftest import make_sale_command


WRITE_COMMANDS = {
    "add-service",
    "update-service",
    "add-item",
    "adjust-stock",
    "add-customer",
    "add-vehicle",
    "add-supplier",
    "purchase",
    "receive-purchase",
    "cancel-purchase",
    "sale",
    "status",
    "seed",
}

READ_COMMANDS = {
    "services",
    "inventory",
    "low-stock",
    "sales",
    "sale-details",
    "customers",
    "vehicles",
    "suppliers",
    "purchases",
    "purchase-summary",
    "metrics",
    "report",
}

# ---------------------------------------------------------------------------
# Parser construction
# ---------------------------------------------------------------------------


def test_build_parser_sets_program_metadata():
    """build_parser should set user-facing program metadata."""

    parser = cli.build_parser()
    assert isinstance(parser, argparse.ArgumentParser)
    assert parser.prog == "carwash-cli"
    assert "car wash" in (parser.description or "")


def test_configure_subcommands_registers_every_command(cli_parser):
    """configure_subcommands should wire all read and write sub-commands."""

    command_table = cli.configure_subcommands(cli_parser)
    assert set(command_table) == WRITE_COMMANDS | READ_COMMANDS
    assert _registered_choices(cli_parser) == WRITE_COMMANDS | READ_COMMANDS


def test_write_and_read_commands_are_flagged(subparsers_action):
    """Only mutating commands request persistence."""

    write_specs = cli.register_write_commands(subparsers_action)
    read_specs = cli.register_read_commands(subparsers_action)
    assert set(write_specs) == WRITE_COMMANDS
    assert set(read_specs) == READ_COMMANDS
    assert all(spec.writes for spec in write_specs.values())
    assert not any(spec.writes for spec in read_specs.values())


def test_sale_command_parses_repeated_services():
    parser = cli.build_parser()
    cli.configure_subcommands(parser)
    args = parser.parse_args(
        [
            "sale",
            "--customer-name",
            "Ana",
            "--plate",
            "HAA-1234",
            "--vehicle-type",
            "sedan",
            "--service",
            "1",
            "--service",
            "2:2",
            "--payment-method",
            "tarjeta",
        ]
    )
    assert args.command == "sale"
    assert args.service == ["1", "2:2"]
    assert args.license_plate == "HAA-1234"


def test_sale_command_rejects_unknown_payment_method():
    parser = cli.build_parser()
    cli.configure_subcommands(parser)
    with pytest.raises(SystemExit):
        parser.parse_args(["sale", "--service", "1", "--payment-method", "cheque"])


def test_metrics_command_parses_date():
    parser = cli.build_parser()
    cli.configure_subcommands(parser)
    args = parser.parse_args(["metrics", "--date", "2025-03-10"])
    assert args.date == date(2025, 3, 10)


# ---------------------------------------------------------------------------
# Runtime context helpers
# ---------------------------------------------------------------------------


def test_load_runtime_context_uses_provided_path(config_file, monkeypatch):
    """load_runtime_context should load settings from the specified config path."""

    sentinel_context = object()

    def fake_loader(path: Path | None) -> object:
        assert path == config_file
        return sentinel_context

    monkeypatch.setattr(core_logic, "load_runtime_context", fake_loader)
    assert cli.load_runtime_context(config_file) is sentinel_context


def test_load_runtime_context_supports_defaults(monkeypatch, tmp_path):
    """load_runtime_context should resolve config.ini from the working directory."""

    config_path = tmp_path / "config.ini"
    sentinel_context = object()

    def fake_loader(path: Path | None) -> object:
        assert path == config_path
        return sentinel_context

    monkeypatch.setattr(core_logic, "load_runtime_context", fake_loader)
    monkeypatch.chdir(tmp_path)
    assert cli.load_runtime_context() is sentinel_context


# ---------------------------------------------------------------------------
# Dispatch helpers
# ---------------------------------------------------------------------------


def test_dispatch_command_invokes_executor(memory_context):
    """dispatch_command should call the executor associated with the command."""

    called = {}

    def execute(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
        called["context"] = context
        return 0

    spec = cli.CommandSpec("alpha", "A", lambda s: s.add_parser("alpha"), execute)
    result = cli.dispatch_command(memory_context, argparse.Namespace(command="alpha"), {"alpha": spec})
    assert result == 0
    assert called["context"] is memory_context


def test_dispatch_command_handles_unknown_commands(memory_context):
    with pytest.raises(KeyError):
        cli.dispatch_command(memory_context, argparse.Namespace(command="unknown"), {})


def test_build_command_table_indexes_specs(command_spec_iterable):
    """build_command_table should index specs by their command names."""

    table = cli.build_command_table(command_spec_iterable)
    assert set(table) == {spec.name for spec in command_spec_iterable}


def test_build_command_table_detects_duplicate_commands():
    """build_command_table should guard against duplicate command names."""

    specs = [
        cli.CommandSpec("alpha", "A", lambda s: s.add_parser("alpha"), lambda c, a: 0),
        cli.CommandSpec("alpha", "Duplicate", lambda s: s.add_parser("alpha"), lambda c, a: 0),
    ]
    with pytest.raises(ValueError):
        cli.build_command_table(specs)


# ---------------------------------------------------------------------------
# Translation helpers
# ---------------------------------------------------------------------------


def test_translate_sale_returns_sale_command():
    args = argparse.Namespace(
        customer_name="Ana",
        customer_phone="9999-0000",
        customer_id=None,
        license_plate="HAA-1234",
        vehicle_type="sedan",
        color=None,
        year=2019,
        vehicle_id=None,
        service=["1", "2:2"],
        payment_method="efectivo",
    )
    command = cli.translate_sale(args)
    assert command.customer == core_logic.CustomerInfo(name="Ana", phone="9999-0000")
    assert command.vehicle.year == 2019
    assert command.selections == [core_logic.LineSelection(1, 1), core_logic.LineSelection(2, 2)]
    assert command.payment_method is constants.PaymentMethod.CASH


@pytest.mark.parametrize("raw", ["x", "1:two", ":3"])
def test_translate_sale_rejects_malformed_selection(raw):
    args = argparse.Namespace(
        customer_name="Ana",
        customer_phone=None,
        customer_id=None,
        license_plate="HAA-1234",
        vehicle_type="sedan",
        color=None,
        year=None,
        vehicle_id=None,
        service=[raw],
        payment_method="efectivo",
    )
    with pytest.raises(ValidationError):
        cli.translate_sale(args)


def test_translate_purchase_returns_purchase_command():
    args = argparse.Namespace(supplier_id=1, invoice="F-001", item=["3:10:295.00"], total=None)
    command = cli.translate_purchase(args)
    assert command.lines == [core_logic.PurchaseLine(3, "10", "295.00")]
    assert command.invoice_number == "F-001"


@pytest.mark.parametrize("raw", ["3:10", "a:1:2", "1:2:3:4"])
def test_translate_purchase_rejects_malformed_lines(raw):
    args = argparse.Namespace(supplier_id=None, invoice=None, item=[raw], total=None)
    with pytest.raises(ValidationError):
        cli.translate_purchase(args)


def test_translate_service_changes_keeps_given_fields():
    args = argparse.Namespace(name=None, price="175.00", minutes=None, description=None, is_active=False)
    assert cli.translate_service_changes(args) == {"price": "175.00", "is_active": False}

    empty = argparse.Namespace(name=None, price=None, minutes=None, description=None, is_active=None)
    with pytest.raises(ValidationError):
        cli.translate_service_changes(empty)


# ---------------------------------------------------------------------------
# Executors
# ---------------------------------------------------------------------------


def test_run_sale_invokes_bll(memory_context, monkeypatch, capsys):
    """run_sale should delegate to the business logic layer and print the result."""

    command = object()
    monkeypatch.setattr(cli, "translate_sale", lambda value: command)
    called = {}

    def fake_create(context, cmd):
        called["context"] = context
        called["cmd"] = cmd
        return "result"

    monkeypatch.setattr(cli.core_logic, "create_sale", fake_create)
    monkeypatch.setattr(cli.payloads, "sale_result_to_payload", lambda result: {"sale": result})

    assert cli.run_sale(memory_context, argparse.Namespace()) == 0
    assert called == {"context": memory_context, "cmd": command}
    assert json.loads(capsys.readouterr().out) == {"sale": "result"}


def test_run_status_invokes_bll(memory_context, memory_catalog, capsys):
    sale = core_logic.create_sale(
        memory_context,
        core_logic.SaleCommand(
            customer=core_logic.CustomerInfo(name="Ana"),
            vehicle=core_logic.VehicleInfo(license_plate="HAA-1", vehicle_type="sedan"),
            selections=[core_logic.LineSelection(memory_catalog.basic_wash.id)],
            payment_method="efectivo",
        ),
    ).sale
    assert cli.run_status(memory_context, argparse.Namespace(sale_id=sale.id, status="in-progress")) == 0
    assert json.loads(capsys.readouterr().out)["status"] == "in-progress"


def test_run_inventory_prints_stock_levels(memory_context, memory_catalog, capsys):
    assert cli.run_inventory(memory_context, argparse.Namespace()) == 0
    rows = json.loads(capsys.readouterr().out)
    assert [(row["name"], row["stockLevel"]) for row in rows] == [
        ("Desengrasante", "low"),
        ("Toallas Microfibra", "ok"),
    ]
    assert rows[0]["currentStock"] == "2.00"


def test_run_metrics_prints_numbers(memory_context, memory_catalog, capsys):
    assert cli.run_metrics(memory_context, argparse.Namespace(date=date(2025, 3, 10))) == 0
    assert json.loads(capsys.readouterr().out) == {
        "dailySales": 0.0,
        "servicesCompleted": 0,
        "averageTime": 30,
        "lowStockCount": 1,
    }


def test_run_report_ignores_later_sales(memory_context, memory_catalog, capsys):
    basic = core_logic.LineSelection(memory_catalog.basic_wash.id)
    core_logic.create_sale(memory_context, make_sale_command(basic, timestamp=datetime(2025, 3, 10, 9, 0)))
    core_logic.create_sale(
        memory_context,
        make_sale_command(basic, basic, payment_method="tarjeta", timestamp=datetime(2025, 4, 20, 9, 0)),
    )

    assert cli.run_report(memory_context, argparse.Namespace(date=date(2025, 3, 10))) == 0
    body = json.loads(capsys.readouterr().out)
    assert body["today"] == {"revenue": 172.5, "transactions": 1}
    assert body["week"] == body["today"]
    assert body["month"] == body["today"]
    assert [share["paymentMethod"] for share in body["paymentMethods"]] == ["efectivo"]


def test_run_customer_and_vehicle_commands(memory_context, capsys):
    assert cli.run_add_customer(memory_context, argparse.Namespace(name="Luis", phone="8888-1111", email=None)) == 0
    customer = json.loads(capsys.readouterr().out)

    args = argparse.Namespace(
        license_plate="hbb-0099",
        vehicle_type="SUV",
        customer_id=customer["id"],
        color=None,
        year=2020,
        brand="Toyota",
        model=None,
    )
    assert cli.run_add_vehicle(memory_context, args) == 0
    vehicle = json.loads(capsys.readouterr().out)
    assert (vehicle["licensePlate"], vehicle["vehicleType"]) == ("HBB-0099", "suv")
    assert vehicle["customerId"] == customer["id"]

    assert cli.run_customers(memory_context, argparse.Namespace()) == 0
    assert json.loads(capsys.readouterr().out) == [customer]
    assert cli.run_vehicles(memory_context, argparse.Namespace(customer_id=customer["id"])) == 0
    assert json.loads(capsys.readouterr().out) == [vehicle]


def test_run_add_vehicle_for_unknown_customer_is_rejected(memory_context):
    args = argparse.Namespace(
        license_plate="HBB-0099", vehicle_type="suv", customer_id=404, color=None, year=None, brand=None, model=None
    )
    with pytest.raises(NotFoundError):
        cli.run_add_vehicle(memory_context, args)


def test_run_supplier_and_purchase_listings(memory_context, memory_catalog, capsys):
    supplier = core_logic.add_supplier(memory_context, name="Distribuidora Central")
    kept = core_logic.record_purchase(
        memory_context,
        core_logic.PurchaseCommand(
            supplier_id=supplier.id,
            lines=[core_logic.PurchaseLine(memory_catalog.degreaser.id, "10", "295.00")],
            timestamp=datetime(2025, 3, 1, 8, 0),
        ),
    ).purchase
    dropped = core_logic.record_purchase(
        memory_context,
        core_logic.PurchaseCommand(total_amount="100.00", timestamp=datetime(2025, 3, 2, 8, 0)),
    ).purchase
    core_logic.cancel_purchase(memory_context, dropped.id)

    assert cli.run_suppliers(memory_context, argparse.Namespace()) == 0
    assert [row["name"] for row in json.loads(capsys.readouterr().out)] == ["Distribuidora Central"]

    assert cli.run_purchases(memory_context, argparse.Namespace(status="pending")) == 0
    assert [row["id"] for row in json.loads(capsys.readouterr().out)] == [kept.id]
    assert cli.run_purchases(memory_context, argparse.Namespace(status=None)) == 0
    assert len(json.loads(capsys.readouterr().out)) == 2

    assert cli.run_purchase_summary(memory_context, argparse.Namespace(date=date(2025, 3, 10))) == 0
    assert json.loads(capsys.readouterr().out) == {
        "totalAmount": 3050.0,
        "pendingCount": 1,
        "receivedCount": 0,
        "monthTotal": 3050.0,
    }


# ---------------------------------------------------------------------------
# Error handling and persistence
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "error, expected",
    [
        (BusinessRuleViolation("invalid"), 2),
        (ValidationError("bad quantity"), 2),
        (NotFoundError("no such sale"), 2),
        (InvalidTransitionError("completed -> pending"), 2),
        (FileNotFoundError("missing"), 3),
        (StorageError("disk full"), 4),
        (ValueError("bad value"), 1),
    ],
)
def test_handle_cli_error_returns_exit_code(error: Exception, expected: int, caplog: pytest.LogCaptureFixture):
    """handle_cli_error should convert exceptions into exit codes."""

    caplog.set_level("ERROR")
    exit_code = cli.handle_cli_error(error)
    assert exit_code == expected
    assert any(str(error) in record.getMessage() for record in caplog.records)


def test_persist_repository_saves_changes(memory_context, monkeypatch):
    called = {}

    def fake_persist(context: core_logic.RuntimeContext) -> None:
        called["context"] = context

    monkeypatch.setattr(cli.core_logic, "persist_context", fake_persist)
    cli.persist_repository(memory_context)
    assert called["context"] is memory_context


def test_persist_repository_handles_read_only_files(memory_context, monkeypatch):
    def fake_persist(_: core_logic.RuntimeContext) -> None:
        raise PermissionError("read-only")

    monkeypatch.setattr(cli.core_logic, "persist_context", fake_persist)
    with pytest.raises(StorageError, match="read-only"):
        cli.persist_repository(memory_context)


# ---------------------------------------------------------------------------
# Program entry point
# ---------------------------------------------------------------------------


def test_main_persists_after_write_commands(monkeypatch, memory_context):
    """main should persist repository changes when a write command succeeds."""

    parser = _stub_parser(command="sale")
    command_table = {"sale": cli.CommandSpec("sale", "help", lambda _: parser, lambda *_: 0, writes=True)}

    monkeypatch.setattr(cli, "build_parser", lambda: parser)
    monkeypatch.setattr(cli, "configure_subcommands", lambda _: command_table)
    monkeypatch.setattr(cli, "load_runtime_context", lambda path=None: memory_context)

    called = {}

    def fake_dispatch(context, args, table: Mapping[str, cli.CommandSpec]) -> int:
        called["context"] = context
        called["args"] = args
        return 0

    monkeypatch.setattr(cli, "dispatch_command", fake_dispatch)
    monkeypatch.setattr(cli, "persist_repository", lambda ctx: called.setdefault("persisted", ctx))

    assert cli.main(["sale"]) == 0
    assert called["context"] is memory_context
    assert called["persisted"] is memory_context
    assert called["args"].command == "sale"


def test_main_skips_persist_for_read_commands(monkeypatch, memory_context):
    parser = _stub_parser(command="metrics")
    command_table = {"metrics": cli.CommandSpec("metrics", "help", lambda _: parser, lambda *_: 0)}

    monkeypatch.setattr(cli, "build_parser", lambda: parser)
    monkeypatch.setattr(cli, "configure_subcommands", lambda _: command_table)
    monkeypatch.setattr(cli, "load_runtime_context", lambda path=None: memory_context)
    monkeypatch.setattr(cli, "dispatch_command", lambda *_: 0)
    monkeypatch.setattr(
        cli, "persist_repository", lambda _: (_ for _ in ()).throw(AssertionError("should not persist"))
    )

    assert cli.main(["metrics"]) == 0


def test_main_handles_bll_errors(monkeypatch, memory_context):
    """main should surface business rule violations as non-zero exits."""

    parser = _stub_parser(command="sale")
    command_table = {"sale": cli.CommandSpec("sale", "help", lambda _: parser, lambda *_: 0, writes=True)}

    monkeypatch.setattr(cli, "build_parser", lambda: parser)
    monkeypatch.setattr(cli, "configure_subcommands", lambda _: command_table)
    monkeypatch.setattr(cli, "load_runtime_context", lambda path=None: memory_context)

    def fake_dispatch(*_: object) -> int:
        raise ValidationError("invalid")

    monkeypatch.setattr(cli, "dispatch_command", fake_dispatch)
    monkeypatch.setattr(
        cli, "persist_repository", lambda _: (_ for _ in ()).throw(AssertionError("should not persist"))
    )

    handled = {}

    def fake_handle(error: Exception) -> int:
        handled["error"] = error
        return 99

    monkeypatch.setattr(cli, "handle_cli_error", fake_handle)
    assert cli.main(["sale"]) == 99
    assert isinstance(handled["error"], ValidationError)


def test_main_rejects_schema_mismatch_before_writing(config_factory):
    bundle = config_factory(schema_version="0.1.0")
    exit_code = cli.main(["--config", str(bundle.config_path), "add-supplier", "--name", "Distribuidora"])
    assert exit_code == 1
    assert WorkbookRepository(bundle.workbook_path).list_suppliers() == []


def test_main_end_to_end_with_workbook(config_file, capsys):
    """A full session through the real parser persists to the workbook."""

    def run(*argv: str) -> object:
        assert cli.main(["--config", str(config_file), *argv]) == 0
        return json.loads(capsys.readouterr().out)

    basic = run("add-service", "--name", "Lavado Básico", "--price", "150.00", "--minutes", "30")
    premium = run("add-service", "--name", "Lavado Premium", "--price", "280", "--minutes", "45")
    sale = run(
        "sale",
        "--customer-name",
        "Ana López",
        "--customer-phone",
        "9999-0000",
        "--plate",
        "haa-1234",
        "--vehicle-type",
        "sedan",
        "--service",
        f"{basic['id']}",
        "--service",
        f"{premium['id']}:2",
        "--payment-method",
        "efectivo",
    )
    assert (sale["subtotal"], sale["taxAmount"], sale["totalAmount"]) == ("710.00", "106.50", "816.50")
    assert sale["estimatedCompletionTime"] == 120

    assert run("status", "--sale-id", str(sale["id"]), "--status", "in-progress")["status"] == "in-progress"
    details = run("sale-details", "--sale-id", str(sale["id"]))
    assert details["status"] == "in-progress"
    assert [line["quantity"] for line in details["services"]] == [1, 2]

    assert cli.main(["--config", str(config_file), "status", "--sale-id", str(sale["id"]), "--status", "pending"]) == 2
    capsys.readouterr()

    stored = WorkbookRepository(core_logic.load_runtime_context(config_file).settings.data_file)
    assert stored.get_sale(sale["id"]).total_amount == Decimal("816.50")
    assert stored.get_sale(sale["id"]).status is constants.SaleStatus.IN_PROGRESS


def _emitting_write_table(parser: argparse.ArgumentParser) -> dict:
    def execute(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
        cli.emit({"saved": True})
        return 0

    return {"sale": cli.CommandSpec("sale", "help", lambda _: parser, execute, writes=True)}


def test_main_prints_write_output_only_after_persisting(monkeypatch, memory_context, capsys):
    parser = _stub_parser(command="sale")
    monkeypatch.setattr(cli, "build_parser", lambda: parser)
    monkeypatch.setattr(cli, "configure_subcommands", lambda _: _emitting_write_table(parser))
    monkeypatch.setattr(cli, "load_runtime_context", lambda path=None: memory_context)

    seen_before_persist = []
    monkeypatch.setattr(cli, "persist_repository", lambda _: seen_before_persist.append(capsys.readouterr().out))

    assert cli.main(["sale"]) == 0
    assert seen_before_persist == [""]
    assert json.loads(capsys.readouterr().out) == {"saved": True}


def test_main_withholds_write_output_when_saving_fails(monkeypatch, memory_context, capsys):
    parser = _stub_parser(command="sale")
    monkeypatch.setattr(cli, "build_parser", lambda: parser)
    monkeypatch.setattr(cli, "configure_subcommands", lambda _: _emitting_write_table(parser))
    monkeypatch.setattr(cli, "load_runtime_context", lambda path=None: memory_context)

    def failing_persist(_: core_logic.RuntimeContext) -> None:
        raise StorageError("disk full")

    monkeypatch.setattr(cli, "persist_repository", failing_persist)

    assert cli.main(["sale"]) == 4
    assert capsys.readouterr().out == ""


def test_main_customer_and_vehicle_commands_with_workbook(config_file, capsys):
    def run(*argv: str) -> object:
        assert cli.main(["--config", str(config_file), *argv]) == 0
        return json.loads(capsys.readouterr().out)

    customer = run("add-customer", "--name", "Luis", "--phone", "8888-1111")
    run("add-vehicle", "--plate", "hbb-0099", "--vehicle-type", "suv", "--customer-id", str(customer["id"]))

    assert [row["name"] for row in run("customers")] == ["Luis"]
    assert [row["licensePlate"] for row in run("vehicles", "--customer-id", str(customer["id"]))] == ["HBB-0099"]
    assert run("purchase-summary", "--date", "2025-03-10") == {
        "totalAmount": 0.0,
        "pendingCount": 0,
        "receivedCount": 0,
        "monthTotal": 0.0,
    }


def test_main_missing_config_returns_file_not_found_code(tmp_path):
    assert cli.main(["--config", str(tmp_path / "absent.ini"), "services"]) == 3


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _stub_parser(command: str) -> argparse.ArgumentParser:
    """Create a stub parser that always returns the supplied command."""

    class _Stub(argparse.ArgumentParser):
        def parse_args(self, args: Iterable[str] | None = None, namespace: argparse.Namespace | None = None):  # type: ignore[override]
            return argparse.Namespace(command=command)

    return _Stub(prog="test")


def _registered_choices(parser: argparse.ArgumentParser) -> set[str]:
    """Return the set of registered sub-command names for assertion helpers."""

    actions = getattr(parser, "_subparsers", None)
    if not actions:
        return set()
    group_actions = actions._group_actions  # type: ignore[attr-defined]
    if not group_actions:
        return set()
    return set(group_actions[0].choices)  # type: ignore[index]
