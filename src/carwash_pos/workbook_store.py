"""Repository backed by the Excel master workbook.

The workbook is read once when the repository opens; afterwards it behaves
exactly like :class:`~carwash_pos.memory_store.InMemoryRepository`, including
transaction rollback. :meth:`WorkbookRepository.persist` rewrites every sheet
and saves the file, so callers decide when committed work reaches the disk.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from openpyxl.workbook import Workbook

from . import data_manager, log
from .constants import SheetName
from .errors import StorageError
from .memory_store import (
    CUSTOMERS,
    INVENTORY,
    PURCHASE_ITEMS,
    PURCHASES,
    SALE_LINE_ITEMS,
    SALES,
    SERVICES,
    SUPPLIERS,
    USERS,
    VEHICLES,
    InMemoryRepository,
)
from .repository import IdAllocator


SHEET_COLLECTIONS = {
    SheetName.USERS: USERS,
    SheetName.CUSTOMERS: CUSTOMERS,
    SheetName.VEHICLES: VEHICLES,
    SheetName.SERVICES: SERVICES,
    SheetName.INVENTORY: INVENTORY,
    SheetName.SUPPLIERS: SUPPLIERS,
    SheetName.PURCHASES: PURCHASES,
    SheetName.PURCHASE_ITEMS: PURCHASE_ITEMS,
    SheetName.SALES: SALES,
    SheetName.SALE_LINE_ITEMS: SALE_LINE_ITEMS,
}


class WorkbookRepository(InMemoryRepository):
    """Load the workbook sheets into memory and write them back on demand."""

    def __init__(
        self,
        data_file: Path,
        *,
        workbook: Optional[Workbook] = None,
        id_allocator: Optional[IdAllocator] = None,
    ) -> None:
        super().__init__(id_allocator)
        self.data_file = Path(data_file)
        try:
            self.workbook = workbook if workbook is not None else data_manager.open_workbook(self.data_file)
        except OSError as exc:
            if isinstance(exc, FileNotFoundError):
                raise
            raise StorageError(f"Unable to open workbook '{self.data_file}': {exc}") from exc
        data_manager.validate_workbook(self.workbook)
        self._load_sheets()

    def _load_sheets(self) -> None:
        counts = []
        for sheet, collection in SHEET_COLLECTIONS.items():
            loaded = 0
            for record in data_manager.iter_records(self.workbook, sheet):
                self._load(collection, record)
                loaded += 1
            counts.append(f"{sheet.value}={loaded}")
        log.info("Loaded workbook '%s' (%s)", self.data_file, ", ".join(counts))

    def persist(self) -> None:
        """Rewrite every sheet from the committed in-memory state and save the file.

        Raises:
            StorageError: If the workbook cannot be written.
        """

        with self.transaction():
            for sheet, collection in SHEET_COLLECTIONS.items():
                data_manager.write_records(self.workbook, sheet, self._list(collection))
            try:
                data_manager.save_workbook(self.workbook, self.data_file)
            except OSError as exc:
                log.error("Failed to save workbook '%s': %s", self.data_file, exc)
                raise StorageError(f"Unable to save workbook '{self.data_file}': {exc}") from exc
        log.info("Persisted workbook '%s'", self.data_file)


__all__ = ["WorkbookRepository", "SHEET_COLLECTIONS"]
