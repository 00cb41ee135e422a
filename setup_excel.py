"""Initialize the car wash POS master workbook (``python setup_excel.py``).

Thin script wrapper around :mod:`carwash_pos.setup_excel`; the installed
``carwash-setup`` command runs the same entry point.
"""

from __future__ import annotations

from pathlib import Path
import sys

SRC_DIR = Path(__file__).resolve().parent / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from carwash_pos.setup_excel import main  # noqa: E402


if __name__ == "__main__":  # pragma: no cover - exercised via manual runs
    sys.exit(main())
