"""Shared pytest fixtures and utilities for car wash POS tests."""

from __future__ import annotations

import argparse
import sys
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterator, Optional

import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from carwash_pos import cli, constants, core_logic, data_manager  # noqa: E402
from carwash_pos.entities import InventoryItem, Service  # noqa: E402
from carwash_pos.memory_store import InMemoryRepository  # noqa: E402
from carwash_pos.repository import Repository  # noqa: E402
from carwash_pos.setup_excel import create_master_workbook  # noqa: E402
from carwash_pos.sql_store import SqlRepository  # noqa: E402
from carwash_pos.workbook_store import WorkbookRepository  # noqa: E402

DEFAULT_SCHEMA_VERSION = constants.EXPECTED_SCHEMA_VERSION
BACKENDS = ("memory", "workbook", "sql")
_CONFIG_TEMPLATE = (
    "[System]\n"
    "DataFile = {data_file}\n"
    "ShopName = {shop_name}\n"
    "SchemaVersion = {schema_version}\n"
    "Backend = {backend}\n"
    "DatabaseUrl = {database_url}\n\n"
    "[Sales]\n"
    "TaxRate = {tax_rate}\n"
)


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    workbook_path: Path
    schema_version: str
    shop_name: str
    backend: str


@dataclass(frozen=True)
class Catalog:
    """Records created by the ``catalog`` fixture."""

    basic_wash: Service
    premium_wash: Service
    degreaser: InventoryItem
    towels: InventoryItem


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


@pytest.fixture
def workbook_factory(tmp_path: Path) -> Callable[..., Path]:
    """Factory that creates an initialized master workbook in a temp folder."""

    def _create_workbook(*, subdir: Optional[str] = None, filename: str = "carwash_master.xlsx") -> Path:
        base_dir = tmp_path if subdir is None else tmp_path / subdir
        base_dir.mkdir(parents=True, exist_ok=True)
        workbook_path = base_dir / filename
        create_master_workbook(workbook_path, overwrite=True)
        return workbook_path

    return _create_workbook


@pytest.fixture
def master_workbook_path(workbook_factory: Callable[..., Path]) -> Path:
    """Return a fresh master workbook ready for use in a test."""

    return workbook_factory(subdir=f"workbook_{uuid.uuid4().hex}")


@pytest.fixture
def config_factory(tmp_path: Path, workbook_factory: Callable[..., Path]) -> Callable[..., ConfigBundle]:
    """Provide a callable that creates config/workbook bundles on demand."""

    def _create_config(
        *,
        make_relative: bool = False,
        shop_name: str = "Test Wash",
        schema_version: str = DEFAULT_SCHEMA_VERSION,
        backend: str = "workbook",
        database_url: str = "",
        tax_rate: str = "15",
    ) -> ConfigBundle:
        bundle_name = f"bundle_{uuid.uuid4().hex}"
        bundle_dir = tmp_path / bundle_name
        bundle_dir.mkdir(parents=True, exist_ok=True)
        workbook_path = workbook_factory(subdir=bundle_name)
        data_file_entry = workbook_path.name if make_relative else str(workbook_path)
        config_path = bundle_dir / "config.ini"
        config_path.write_text(
            _CONFIG_TEMPLATE.format(
                data_file=data_file_entry,
                shop_name=shop_name,
                schema_version=schema_version,
                backend=backend,
                database_url=database_url,
                tax_rate=tax_rate,
            ),
            encoding="utf-8",
        )
        return ConfigBundle(
            directory=bundle_dir,
            config_path=config_path,
            workbook_path=workbook_path,
            schema_version=schema_version,
            shop_name=shop_name,
            backend=backend,
        )

    return _create_config


@pytest.fixture
def config_file(config_factory: Callable[..., ConfigBundle]) -> Path:
    """Convenience fixture returning only the config path."""

    return config_factory().config_path


@pytest.fixture
def runtime_context(config_file: Path) -> core_logic.RuntimeContext:
    """Load a workbook-backed runtime context through the public API."""

    context = core_logic.load_runtime_context(config_file)
    core_logic.ensure_schema_version(context)
    return context


# ---------------------------------------------------------------------------
# Repository fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> data_manager.ConfigSettings:
    """Provide default configuration settings for runtime context tests."""

    return data_manager.ConfigSettings(
        data_file=tmp_path / "carwash_master.xlsx",
        shop_name="Test Wash",
        schema_version=constants.EXPECTED_SCHEMA_VERSION,
        backend=constants.Backend.MEMORY,
        tax_rate=Decimal("15"),
    )


def _open_repository(backend: str, workbook_path: Path) -> Repository:
    if backend == "memory":
        return InMemoryRepository()
    if backend == "workbook":
        return WorkbookRepository(workbook_path)
    return SqlRepository("sqlite:///:memory:")


@pytest.fixture(params=BACKENDS)
def repository(request: pytest.FixtureRequest, master_workbook_path: Path) -> Iterator[Repository]:
    """Yield an empty repository of every backend in turn."""

    repo = _open_repository(request.param, master_workbook_path)
    try:
        yield repo
    finally:
        if isinstance(repo, SqlRepository):
            repo.close()


@pytest.fixture
def memory_repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def context(settings: data_manager.ConfigSettings, repository: Repository) -> core_logic.RuntimeContext:
    """Assemble a runtime context over each backend."""

    return core_logic.RuntimeContext(settings=settings, repository=repository)


@pytest.fixture
def memory_context(
    settings: data_manager.ConfigSettings, memory_repository: InMemoryRepository
) -> core_logic.RuntimeContext:
    return core_logic.RuntimeContext(settings=settings, repository=memory_repository)


def seed_catalog(repository: Repository) -> Catalog:
    """Store two services and two inventory items used across scenarios."""

    return Catalog(
        basic_wash=repository.add_service(
            Service(name="Lavado Básico", price=Decimal("150.00"), estimated_minutes=30)
        ),
        premium_wash=repository.add_service(
            Service(name="Lavado Premium", price=Decimal("280.00"), estimated_minutes=45)
        ),
        degreaser=repository.add_inventory_item(
            InventoryItem(
                name="Desengrasante",
                current_stock=Decimal("2.00"),
                min_stock=Decimal("8.00"),
                unit="L",
                cost_per_unit=Decimal("295.00"),
            )
        ),
        towels=repository.add_inventory_item(
            InventoryItem(
                name="Toallas Microfibra",
                current_stock=Decimal("45.00"),
                min_stock=Decimal("20.00"),
                unit="und",
                cost_per_unit=Decimal("85.00"),
            )
        ),
    )


@pytest.fixture
def catalog(repository: Repository) -> Catalog:
    return seed_catalog(repository)


@pytest.fixture
def memory_catalog(memory_repository: InMemoryRepository) -> Catalog:
    return seed_catalog(memory_repository)


@pytest.fixture
def set_fixed_datetime(monkeypatch: pytest.MonkeyPatch) -> Callable[[datetime], datetime]:
    """Patch ``core_logic.datetime`` so new records get a predetermined moment."""

    def _apply(moment: datetime) -> datetime:
        class _FixedDateTime:
            @staticmethod
            def now(tz=None):
                assert tz is None
                return moment

        monkeypatch.setattr(core_logic, "datetime", _FixedDateTime)
        return moment

    return _apply


def make_sale_command(
    *services: core_logic.LineSelection,
    name: str = "Ana López",
    phone: Optional[str] = "9999-0000",
    plate: str = "HAA-1234",
    vehicle_type: str = "sedan",
    payment_method: str = "efectivo",
    timestamp: Optional[datetime] = None,
) -> core_logic.SaleCommand:
    """Build a sale command for a walk-in customer."""

    return core_logic.SaleCommand(
        customer=core_logic.CustomerInfo(name=name, phone=phone),
        vehicle=core_logic.VehicleInfo(license_plate=plate, vehicle_type=vehicle_type),
        selections=list(services),
        payment_method=payment_method,
        timestamp=timestamp,
    )


# ---------------------------------------------------------------------------
# CLI layer fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_parser() -> argparse.ArgumentParser:
    """Return a fresh CLI parser instance for tests."""

    return argparse.ArgumentParser(prog="carwash-cli", description="Car wash CLI")


@pytest.fixture
def subparsers_action(
    cli_parser: argparse.ArgumentParser,
) -> argparse._SubParsersAction[argparse.ArgumentParser]:
    """Return the subparser action used to register commands."""

    return cli_parser.add_subparsers(dest="command")


@pytest.fixture
def command_spec_iterable() -> list[cli.CommandSpec]:
    """Provide a list of command specs for indexing tests."""

    def _make_spec(name: str) -> cli.CommandSpec:
        return cli.CommandSpec(
            name,
            f"{name} help",
            lambda subparsers: subparsers.add_parser(name),
            lambda *_: 0,
        )

    return [_make_spec("alpha"), _make_spec("beta"), _make_spec("gamma")]
