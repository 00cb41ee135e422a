"""Utility for initializing car wash POS storage.

For the workbook backend this creates the master workbook with one sheet per
entity; for the SQL backend it creates the tables. ``--seed`` loads the demo
catalog, inventory and suppliers. The module doubles as a console script
(``carwash-setup``) and as a library used by tests.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional, Sequence
import sys

from . import data_manager, log
from .bootstrap import SeedReport, seed_demo_data
from .constants import Backend
from .errors import StorageError
from .sql_store import SqlRepository
from .workbook_store import WorkbookRepository


CONFIG_FILE = data_manager.CONFIG_FILE_NAME


def load_settings(config_path: Path) -> data_manager.ConfigSettings:
    """Read ``config.ini`` and return its settings.

    Relative paths inside the config file are resolved against the config
    file's directory.
    """

    config_path = Path(config_path).expanduser().resolve()
    parser = data_manager.read_config(config_path)
    return data_manager.parse_settings(parser, base_path=config_path.parent)


def create_master_workbook(
    destination: Path,
    *,
    overwrite: bool = False,
    seed: bool = False,
    admin_password: Optional[str] = None,
) -> Path:
    """Create the master workbook at ``destination``.

    When ``overwrite`` is ``False`` (the default) this function raises
    ``FileExistsError`` if the target already exists.
    """

    destination = Path(destination).expanduser().resolve()
    if destination.exists() and not overwrite:
        raise FileExistsError(f"Refusing to overwrite existing master workbook: {destination}")

    workbook = data_manager.create_workbook()
    if seed:
        repository = WorkbookRepository(destination, workbook=workbook)
        seed_demo_data(repository, admin_password=admin_password)
        repository.persist()
    else:
        data_manager.save_workbook(workbook, destination)
    log.info("Created master workbook '%s'", destination)
    return destination


def prepare_database(
    database_url: str,
    *,
    seed: bool = False,
    admin_password: Optional[str] = None,
) -> SeedReport:
    """Create the relational schema and optionally seed it."""

    repository = SqlRepository(database_url)
    try:
        if seed:
            return seed_demo_data(repository, admin_password=admin_password)
        return SeedReport()
    finally:
        repository.close()


def run_from_config(
    config_path: Path,
    *,
    overwrite: bool = False,
    seed: bool = False,
    admin_password: Optional[str] = None,
) -> str:
    """Initialize the storage selected by ``config.ini``; return what was created."""

    settings = load_settings(config_path)
    if settings.backend is Backend.SQL:
        prepare_database(settings.database_url, seed=seed, admin_password=admin_password)
        return settings.database_url
    if settings.backend is Backend.MEMORY:
        raise ValueError("The memory backend keeps no data on disk; nothing to set up")
    return str(
        create_master_workbook(
            settings.data_file,
            overwrite=overwrite,
            seed=seed,
            admin_password=admin_password,
        )
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the setup script."""

    parser = argparse.ArgumentParser(prog="carwash-setup", description="Initialize car wash POS storage")
    parser.add_argument(
        "--config",
        default=CONFIG_FILE,
        help="Path to configuration file (default: config.ini)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the target workbook if it already exists.",
    )
    parser.add_argument(
        "--seed",
        action="store_true",
        help="Load the demo services, inventory and suppliers.",
    )
    parser.add_argument(
        "--admin-password",
        default=None,
        help="With --seed, also create an 'admin' account with this password.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the setup script."""

    args = parse_args(argv)
    config_path = Path(args.config).expanduser().resolve()

    print("--- Car Wash POS Setup ---")
    print(f"Using configuration: {config_path}")

    try:
        target = run_from_config(
            config_path,
            overwrite=args.force,
            seed=args.seed,
            admin_password=args.admin_password,
        )
    except (FileNotFoundError, KeyError, ValueError) as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    except FileExistsError as exc:
        print(f"\n[ERROR] {exc}")
        print("Run with --force to overwrite the existing file if appropriate.")
        return 1
    except (OSError, StorageError) as exc:
        print(f"\n[ERROR] Unable to initialize storage: {exc}")
        return 1

    print(f"\n[SUCCESS] Initialized storage at '{target}'.")
    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via manual runs
    sys.exit(main())
