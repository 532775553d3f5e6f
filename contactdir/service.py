"""Directory service: validated, uniqueness-checked contact writes.

Every write (create, update, delete, import commit) runs inside one
exclusive section per service so two writers can never both pass the
phone uniqueness check for the same number. Reads go straight to the
gateway and the index without taking the write lock.
"""

from __future__ import annotations

import logging
import threading
import uuid

from .directory import DirectoryGateway, SqliteDirectoryGateway
from .errors import NormalizationError, UniquenessConflict
from .models import Contact
from .phone_utils import normalize_phone
from .uniqueness import UniquenessIndex
from .validation import check_contact, drop_blank_phones, normalized, phone_keys

log = logging.getLogger(__name__)


class DirectoryService:
    def __init__(
        self,
        gateway: DirectoryGateway | None = None,
        index: UniquenessIndex | None = None,
    ) -> None:
        self.gateway = gateway or SqliteDirectoryGateway()
        self.index = index or UniquenessIndex()
        self._write_lock = threading.RLock()
        self._index_ready = False

    # ------------------------------------------------------------------
    # Index management
    # ------------------------------------------------------------------

    def rebuild_index(self) -> None:
        """Rebuild the phone index from a full directory scan."""
        with self._write_lock:
            self.index.rebuild(self.gateway.list())
            self._index_ready = True

    def ensure_index(self) -> UniquenessIndex:
        """Prime the phone index on first use."""
        if not self._index_ready:
            self.rebuild_index()
        return self.index

    def check_index(self) -> int:
        """Scan the directory for phone numbers shared by two contacts.

        Raises IndexCorruptionError on the first shared number; returns the
        number of phone keys otherwise. The live index is not touched.
        """
        probe = UniquenessIndex()
        probe.rebuild(self.gateway.list())
        return len(probe)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_contacts(self, search: str | None = None) -> list[Contact]:
        contacts = self.gateway.list()
        if search:
            contacts = [c for c in contacts if c.matches(search)]
        return contacts

    def get_contact(self, contact_id: str) -> Contact:
        return self.gateway.get(contact_id)

    def lookup_owner(self, raw_phone: str) -> str | None:
        """Id of the contact owning *raw_phone*, or None."""
        try:
            key = normalize_phone(raw_phone)
        except NormalizationError:
            return None
        return self.ensure_index().lookup_owner(key)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_contact(self, candidate: Contact, *, source: str = "manual") -> Contact:
        """Validate and store a new contact.

        Additional phone types must be mobile, home or work.

        Raises ContactValidationError, UniquenessConflict or PersistenceError.
        """
        candidate = drop_blank_phones(candidate)
        check_contact(candidate)
        contact = normalized(candidate).with_id(None)
        contact.source = source
        keys = phone_keys(contact)

        with self._write_lock:
            index = self.ensure_index()
            pending = f"pending-{uuid.uuid4()}"
            index.reserve(pending, keys)
            try:
                created = self.gateway.create(contact)
            except Exception:
                index.release(pending)
                raise
            index.transfer(pending, created.id)
        return created

    def update_contact(self, contact_id: str, candidate: Contact) -> Contact:
        """Validate and replace the fields of an existing contact.

        Unknown additional phone types fall back to mobile.

        Raises ContactNotFoundError, ContactValidationError,
        UniquenessConflict or PersistenceError.
        """
        candidate = drop_blank_phones(candidate)
        check_contact(candidate, strict_types=False)
        contact = normalized(candidate).with_id(contact_id)
        keys = phone_keys(contact)

        with self._write_lock:
            index = self.ensure_index()
            self.gateway.get(contact_id)
            previous = index.keys_for(contact_id)
            try:
                index.replace(contact_id, keys)
            except UniquenessConflict as exc:
                log.info("Update of %s rejected: %s", contact_id, exc)
                raise
            try:
                return self.gateway.update(contact_id, contact)
            except Exception:
                index.replace(contact_id, previous)
                raise

    def delete_contact(self, contact_id: str) -> None:
        with self._write_lock:
            self.ensure_index()
            self.gateway.delete(contact_id)
            self.index.release(contact_id)
