"""Configuration loading from environment variables and defaults."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")


def _env(key: str, default: str = "") -> str:
    return os.environ.get(key, default)


# Database
DB_PATH = Path(_env("CONTACTDIR_DB_PATH", "") or str(_PROJECT_ROOT / "data" / "contacts.db"))

# Region used when rendering phone numbers for display
PHONE_COUNTRY = _env("CONTACTDIR_PHONE_COUNTRY", "US").upper()

# CSV import
IMPORT_DELIMITER = _env("CONTACTDIR_IMPORT_DELIMITER", ",") or ","

_workers = _env("CONTACTDIR_IMPORT_WORKERS", "4")
try:
    IMPORT_WORKERS = max(1, int(_workers))
except ValueError:
    logging.getLogger(__name__).warning(
        "Invalid CONTACTDIR_IMPORT_WORKERS %r, falling back to 4", _workers,
    )
    IMPORT_WORKERS = 4
