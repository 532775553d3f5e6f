"""Directory-wide phone ownership index.

Maps every normalized phone key in the directory to the id of the contact
that owns it. All mutation goes through one lock so a reservation is either
fully visible or not at all.
"""

from __future__ import annotations

import logging
import threading
from types import MappingProxyType
from typing import Iterable, Mapping

from .errors import IndexCorruptionError, UniquenessConflict
from .models import Contact
from .validation import phone_keys

log = logging.getLogger(__name__)


class UniquenessIndex:
    """Phone key -> owning contact id."""

    def __init__(self) -> None:
        self._owners: dict[str, str] = {}
        self._by_contact: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._owners)

    def lookup_owner(self, phone_key: str) -> str | None:
        return self._owners.get(phone_key)

    def keys_for(self, contact_id: str) -> frozenset[str]:
        return frozenset(self._by_contact.get(contact_id, ()))

    def snapshot(self) -> Mapping[str, str]:
        """Read-only copy of the current key -> owner mapping."""
        with self._lock:
            return MappingProxyType(dict(self._owners))

    def _check_free(self, contact_id: str, keys: set[str]) -> None:
        # caller holds the lock
        for key in sorted(keys):
            owner = self._owners.get(key)
            if owner is not None and owner != contact_id:
                raise UniquenessConflict(key, owner)

    def reserve(self, contact_id: str, phone_keys: Iterable[str]) -> None:
        """Claim every key in *phone_keys* for *contact_id*.

        Keys already owned by *contact_id* are fine. If any key belongs to a
        different contact, UniquenessConflict is raised and nothing is claimed.
        """
        keys = set(phone_keys)
        with self._lock:
            self._check_free(contact_id, keys)
            for key in keys:
                self._owners[key] = contact_id
            self._by_contact.setdefault(contact_id, set()).update(keys)

    def release(self, contact_id: str) -> frozenset[str]:
        """Drop every key owned by *contact_id*; returns the released keys."""
        with self._lock:
            keys = self._by_contact.pop(contact_id, set())
            for key in keys:
                if self._owners.get(key) == contact_id:
                    del self._owners[key]
        return frozenset(keys)

    def replace(self, contact_id: str, phone_keys: Iterable[str]) -> None:
        """Atomically swap the keys owned by *contact_id* for *phone_keys*.

        On conflict the previous keys stay claimed.
        """
        keys = set(phone_keys)
        with self._lock:
            self._check_free(contact_id, keys)
            for key in self._by_contact.pop(contact_id, set()):
                if self._owners.get(key) == contact_id:
                    del self._owners[key]
            for key in keys:
                self._owners[key] = contact_id
            self._by_contact[contact_id] = keys

    def transfer(self, old_id: str, new_id: str) -> None:
        """Move every key owned by *old_id* to *new_id* in one step."""
        with self._lock:
            keys = self._by_contact.pop(old_id, set())
            for key in keys:
                self._owners[key] = new_id
            self._by_contact.setdefault(new_id, set()).update(keys)

    def rebuild(self, contacts: Iterable[Contact]) -> None:
        """Replace the whole index with the phones of *contacts*.

        Raises IndexCorruptionError if two contacts in the snapshot share a
        phone key; the current index is left as it was.
        """
        owners: dict[str, str] = {}
        by_contact: dict[str, set[str]] = {}
        for contact in contacts:
            for key in phone_keys(contact):
                owner = owners.get(key)
                if owner is not None and owner != contact.id:
                    raise IndexCorruptionError(key, (owner, contact.id))
                owners[key] = contact.id
                by_contact.setdefault(contact.id, set()).add(key)

        with self._lock:
            self._owners = owners
            self._by_contact = by_contact
        log.info("Phone index rebuilt: %d keys across %d contacts",
                 len(owners), len(by_contact))
