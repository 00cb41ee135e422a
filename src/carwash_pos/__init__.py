"""Car wash point of sale: sale workflow, storage backends and metrics.

Importing the package configures the shared ``carwash_pos`` logger that every
module uses as ``from . import log``. Records go to a size-rotated file and to
stderr. ``CARWASH_LOG_DIR`` and ``CARWASH_LOG_LEVEL`` override the location
and threshold, e.g. for a read-only install directory.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


__version__ = "1.0.0"

PROJECT_ROOT = Path(__file__).resolve().parents[2]
LOG_DIR = Path(os.environ.get("CARWASH_LOG_DIR", PROJECT_ROOT / ".logs"))
LOG_FILE = LOG_DIR / "carwash_pos.log"
LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"


def _resolve_level(raw: str | None) -> int:
    if not raw:
        return logging.INFO
    level = logging.getLevelName(raw.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _build_logger(level: int) -> logging.Logger:
    """Attach the file and console handlers once; later imports reuse them."""

    logger = logging.getLogger(__name__)
    if logger.handlers:
        return logger

    logger.setLevel(level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(LOG_FILE, maxBytes=1_000_000, backupCount=5, encoding="utf-8"))
    except OSError as exc:
        # Keep logging to stderr when the log directory is not writable.
        print(f"Warning: cannot write log file '{LOG_FILE}': {exc}", file=sys.stderr)

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


log = _build_logger(_resolve_level(os.environ.get("CARWASH_LOG_LEVEL")))
log.debug("carwash_pos %s logging to %s", __version__, LOG_FILE)
