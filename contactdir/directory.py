"""Persistence boundary for contacts.

``DirectoryGateway`` is the contract the directory service relies on;
``SqliteDirectoryGateway`` stores contacts in the local SQLite database.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

from .database import get_connection
from .errors import ContactNotFoundError, PersistenceError
from .models import Contact

log = logging.getLogger(__name__)


class DirectoryGateway(ABC):
    """Storage operations on whole contacts.

    Writes are atomic: a contact is stored with all of its phones or not at
    all. Storage-level failures are raised as PersistenceError.
    """

    @abstractmethod
    def list(self) -> list[Contact]: ...

    @abstractmethod
    def get(self, contact_id: str) -> Contact:
        """Return the contact or raise ContactNotFoundError."""

    @abstractmethod
    def create(self, contact: Contact) -> Contact:
        """Store a new contact and return it with its assigned id."""

    @abstractmethod
    def update(self, contact_id: str, contact: Contact) -> Contact: ...

    @abstractmethod
    def delete(self, contact_id: str) -> None: ...


class SqliteDirectoryGateway(DirectoryGateway):
    """Gateway over the ``contacts`` / ``contact_phones`` tables."""

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = db_path

    # -- reads --------------------------------------------------------------

    def list(self) -> list[Contact]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM contacts ORDER BY last_name, first_name, created_at"
            ).fetchall()
            phones = conn.execute(
                "SELECT * FROM contact_phones ORDER BY contact_id, position"
            ).fetchall()

        by_contact: dict[str, list] = {}
        for p in phones:
            by_contact.setdefault(p["contact_id"], []).append(p)
        return [Contact.from_row(r, by_contact.get(r["id"], ())) for r in rows]

    def get(self, contact_id: str) -> Contact:
        with get_connection(self.db_path) as conn:
            return self._fetch(conn, contact_id)

    def _fetch(self, conn, contact_id: str) -> Contact:
        row = conn.execute(
            "SELECT * FROM contacts WHERE id = ?", (contact_id,)
        ).fetchone()
        if not row:
            raise ContactNotFoundError(contact_id)
        phones = conn.execute(
            "SELECT * FROM contact_phones WHERE contact_id = ? ORDER BY position",
            (contact_id,),
        ).fetchall()
        return Contact.from_row(row, phones)

    # -- writes -------------------------------------------------------------

    def create(self, contact: Contact) -> Contact:
        row = contact.with_id(contact.id or str(uuid.uuid4())).to_row()
        try:
            with get_connection(self.db_path) as conn:
                conn.execute(
                    "INSERT INTO contacts "
                    "(id, first_name, last_name, email, primary_phone, source, "
                    "created_at, updated_at) "
                    "VALUES (:id, :first_name, :last_name, :email, :primary_phone, "
                    ":source, :created_at, :updated_at)",
                    row,
                )
                self._insert_phones(conn, row["id"], contact, row["updated_at"])
                # read back inside the insert transaction
                created = self._fetch(conn, row["id"])
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not create contact: {exc}") from exc

        log.info("Created contact %s (%s %s)", row["id"], row["first_name"], row["last_name"])
        return created

    def update(self, contact_id: str, contact: Contact) -> Contact:
        now = datetime.now(timezone.utc).isoformat()
        try:
            with get_connection(self.db_path) as conn:
                cur = conn.execute(
                    "UPDATE contacts SET first_name = ?, last_name = ?, email = ?, "
                    "primary_phone = ?, updated_at = ? WHERE id = ?",
                    (contact.first_name, contact.last_name, contact.email,
                     contact.primary_phone, now, contact_id),
                )
                if cur.rowcount == 0:
                    raise ContactNotFoundError(contact_id)
                conn.execute("DELETE FROM contact_phones WHERE contact_id = ?", (contact_id,))
                self._insert_phones(conn, contact_id, contact, now)
                updated = self._fetch(conn, contact_id)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not update contact {contact_id}: {exc}") from exc

        log.info("Updated contact %s", contact_id)
        return updated

    def delete(self, contact_id: str) -> None:
        with get_connection(self.db_path) as conn:
            cur = conn.execute("DELETE FROM contacts WHERE id = ?", (contact_id,))
            if cur.rowcount == 0:
                raise ContactNotFoundError(contact_id)
        log.info("Deleted contact %s", contact_id)

    @staticmethod
    def _insert_phones(conn, contact_id: str, contact: Contact, now: str) -> None:
        conn.executemany(
            "INSERT INTO contact_phones "
            "(id, contact_id, number, phone_type, position, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            [
                (str(uuid.uuid4()), contact_id, p.number, p.type.value, i, now)
                for i, p in enumerate(contact.additional_phones)
            ],
        )
