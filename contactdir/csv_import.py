"""Bulk import of contacts from CSV files.

Import runs in two phases:

1. ``ImportReconciler.reconcile`` decides, per row and in file order, whether
   a row is accepted or skipped, using the phone index snapshot for
   duplicates already in the directory and a batch-local reservation set for
   duplicates inside the file (earlier rows win).
2. ``commit_import`` stores accepted rows one by one through the directory
   service. A failed row is downgraded to skipped; rows committed before it
   stay committed. The import is best-effort, not one transaction.
"""

from __future__ import annotations

import csv
import io
import logging
import re
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping

from . import config
from .errors import ContactValidationError, FatalImportFormatError, PersistenceError, UniquenessConflict
from .models import Contact, ImportOutcome, ImportSummary, SkipReason
from .service import DirectoryService
from .validation import normalized, validate_contact

log = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("first_name", "last_name", "email", "primary_phone")

_COLUMN_LABELS = {
    "first_name": "First Name",
    "last_name": "Last Name",
    "email": "Email Address",
    "primary_phone": "Primary Phone Number",
}

# Header aliases, keyed by normalized header
COLUMN_ALIASES: dict[str, str] = {
    "first_name": "first_name",
    "firstname": "first_name",
    "first": "first_name",
    "given_name": "first_name",
    "last_name": "last_name",
    "lastname": "last_name",
    "last": "last_name",
    "surname": "last_name",
    "family_name": "last_name",
    "email": "email",
    "email_address": "email",
    "e_mail": "email",
    "mail": "email",
    "primary_phone": "primary_phone",
    "primary_phone_number": "primary_phone",
    "primaryphone": "primary_phone",
    "phone": "primary_phone",
    "phone_number": "primary_phone",
    "telephone": "primary_phone",
    "tel": "primary_phone",
    "mobile": "primary_phone",
}

# Template offered to users who need a starting file
SAMPLE_CSV = """\
First Name,Last Name,Email Address,Primary Phone Number
John,Doe,john@example.com,+1234567890
Jane,Smith,jane@example.com,+0987654321
"""


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

def normalize_header(header: str) -> str:
    """Normalize a CSV header to its canonical column name (or itself)."""
    h = (header or "").strip().lower()
    h = re.sub(r"[\s\-]+", "_", h)
    h = re.sub(r"__+", "_", h).strip("_")
    return COLUMN_ALIASES.get(h, h)


def map_columns(fieldnames: Iterable[str] | None) -> dict[str, str]:
    """Map canonical column names to the headers present in the file.

    Unrecognized headers are ignored; when two headers map to the same
    column the first one wins. Raises FatalImportFormatError when a required
    column is missing.
    """
    if not fieldnames:
        raise FatalImportFormatError(
            "CSV file is empty or has no header row", missing=REQUIRED_COLUMNS,
        )

    columns: dict[str, str] = {}
    for header in fieldnames:
        name = normalize_header(header)
        if name in REQUIRED_COLUMNS:
            columns.setdefault(name, header)

    missing = tuple(c for c in REQUIRED_COLUMNS if c not in columns)
    if missing:
        labels = ", ".join(_COLUMN_LABELS[c] for c in missing)
        raise FatalImportFormatError(f"Missing required columns: {labels}", missing=missing)
    return columns


@dataclass(frozen=True)
class RawRow:
    """One data row, values keyed by canonical column name.

    ``row_number`` is the file line the row ends on (header is line 1).
    """

    row_number: int
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    primary_phone: str = ""

    def to_contact(self) -> Contact:
        return Contact(
            first_name=self.first_name.strip(),
            last_name=self.last_name.strip(),
            email=self.email.strip(),
            primary_phone=self.primary_phone.strip(),
            additional_phones=[],
            source="csv_import",
        )


def read_rows(source: str | bytes, *, delimiter: str | None = None) -> list[RawRow]:
    """Parse CSV text (or UTF-8 bytes) into RawRows.

    Empty lines before the header are skipped. An empty line between data
    rows is read as a row with every cell blank, so it is reported rather
    than lost; empty lines after the last data row are ignored.

    Raises FatalImportFormatError before returning any row if the header is
    unusable.
    """
    if isinstance(source, bytes):
        try:
            source = source.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise FatalImportFormatError(f"File encoding error: {exc}") from exc
    text = source.lstrip("\ufeff")

    reader = csv.reader(io.StringIO(text), delimiter=delimiter or config.IMPORT_DELIMITER)
    header = next((record for record in reader if record), None)
    columns = map_columns(header)
    log.debug("CSV columns mapped: %s", columns)
    positions = {name: header.index(h) for name, h in columns.items()}

    rows: list[RawRow] = []
    pending_blank: list[int] = []
    for record in reader:
        if not record:
            pending_blank.append(reader.line_num)
            continue
        rows.extend(RawRow(row_number=n) for n in pending_blank)
        pending_blank.clear()
        values = {name: (record[i] if i < len(record) else "") for name, i in positions.items()}
        rows.append(RawRow(row_number=reader.line_num, **values))
    if pending_blank:
        log.debug("Ignored %d trailing empty lines", len(pending_blank))
    return rows


def read_file(path: str | Path, *, delimiter: str | None = None) -> list[RawRow]:
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Path not found: {p}")
    return read_rows(p.read_bytes(), delimiter=delimiter)


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------

class ImportReconciler:
    """Decides accept/skip for every row of an import batch."""

    def __init__(self, workers: int | None = None) -> None:
        self.workers = workers or config.IMPORT_WORKERS

    def reconcile(
        self,
        rows: Iterable[RawRow],
        directory_keys: Mapping[str, str],
        *,
        cancel: threading.Event | None = None,
    ) -> ImportSummary:
        """Plan an import of *rows* against the *directory_keys* snapshot.

        Row checks only read the snapshot, so they run on a thread pool; the
        batch duplicate pass then walks the results in row order so the
        earlier of two rows sharing a phone is the one accepted.
        """
        rows = list(rows)
        if self.workers > 1 and len(rows) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                checked = list(pool.map(lambda r: self.check_row(r, directory_keys), rows))
        else:
            checked = [self.check_row(r, directory_keys) for r in rows]

        summary = ImportSummary()
        claimed: dict[str, int] = {}
        for outcome in checked:
            if cancel is not None and cancel.is_set():
                summary.cancelled = True
                break
            if outcome.accepted:
                key = outcome.phone_key
                first_row = claimed.get(key)
                if first_row is not None:
                    outcome.skip(SkipReason.DUPLICATE_IN_BATCH, f"same phone as row {first_row}")
                else:
                    claimed[key] = outcome.row_number
            summary.outcomes.append(outcome)
            log.debug("Row %d: %s", outcome.row_number,
                      "accepted" if outcome.accepted else outcome.message)
        return summary

    @staticmethod
    def check_row(row: RawRow, directory_keys: Mapping[str, str]) -> ImportOutcome:
        """Validate one row and check its phone against the directory."""
        candidate = row.to_contact()
        outcome = ImportOutcome(row_number=row.row_number, contact=candidate)

        errors = validate_contact(candidate)
        if errors:
            outcome.errors = list(errors.values())
            outcome.skip(SkipReason.VALIDATION_ERROR)
            return outcome

        outcome.contact = normalized(candidate)
        owner = directory_keys.get(outcome.phone_key)
        if owner is not None:
            outcome.skip(SkipReason.DUPLICATE_IN_DIRECTORY, f"owned by contact {owner}")
        return outcome


# ---------------------------------------------------------------------------
# Commit
# ---------------------------------------------------------------------------

def commit_import(
    summary: ImportSummary,
    service: DirectoryService,
    *,
    cancel: threading.Event | None = None,
) -> ImportSummary:
    """Store accepted rows in row order, downgrading rows that fail.

    On cancellation, rows from the first uncommitted accepted row onward are
    discarded from the summary; rows already stored stay stored.
    """
    for position, outcome in enumerate(summary.outcomes):
        if not outcome.accepted:
            continue
        if cancel is not None and cancel.is_set():
            del summary.outcomes[position:]
            summary.cancelled = True
            log.info("Import cancelled before row %d", outcome.row_number)
            break
        try:
            outcome.contact = service.create_contact(outcome.contact, source="csv_import")
        except UniquenessConflict as exc:
            # Someone else claimed the number after the snapshot was taken
            outcome.skip(SkipReason.DUPLICATE_IN_DIRECTORY, f"owned by contact {exc.owner_id}")
            log.info("Row %d skipped at commit: %s", outcome.row_number, exc)
        except ContactValidationError as exc:
            outcome.errors = list(exc.errors.values())
            outcome.skip(SkipReason.VALIDATION_ERROR)
        except PersistenceError as exc:
            outcome.skip(SkipReason.PERSISTENCE_ERROR, str(exc))
            log.warning("Row %d could not be saved: %s", outcome.row_number, exc)
        except Exception as exc:
            outcome.skip(SkipReason.PERSISTENCE_ERROR, str(exc))
            log.warning("Error importing row %d: %s", outcome.row_number, exc)
    return summary


def import_rows(
    rows: Iterable[RawRow],
    service: DirectoryService,
    *,
    workers: int | None = None,
    cancel: threading.Event | None = None,
) -> ImportSummary:
    """Reconcile *rows* against the directory and commit the accepted ones."""
    snapshot = service.ensure_index().snapshot()
    summary = ImportReconciler(workers).reconcile(rows, snapshot, cancel=cancel)
    commit_import(summary, service, cancel=cancel)
    log.info("Import finished: %s", summary.describe())
    return summary


def import_csv(
    source: str | Path,
    service: DirectoryService,
    *,
    workers: int | None = None,
    delimiter: str | None = None,
    cancel: threading.Event | None = None,
) -> ImportSummary:
    """Import a CSV file (a path) or CSV text into the directory.

    Raises FatalImportFormatError before touching the directory when the
    header lacks a required column.
    """
    if isinstance(source, Path):
        rows = read_file(source, delimiter=delimiter)
    else:
        rows = read_rows(source, delimiter=delimiter)
    return import_rows(rows, service, workers=workers, cancel=cancel)
