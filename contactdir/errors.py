"""Exception types raised by the contact directory core."""

from __future__ import annotations

from enum import Enum


class ContactDirError(Exception):
    """Base class for every error raised by the directory."""


class NormalizationErrorKind(Enum):
    EMPTY = "empty"


class NormalizationError(ContactDirError, ValueError):
    """A raw phone string could not be reduced to a phone key."""

    def __init__(self, raw: str, kind: NormalizationErrorKind = NormalizationErrorKind.EMPTY) -> None:
        self.raw = raw
        self.kind = kind
        super().__init__(f"Phone number contains no digits: {raw!r}")


class ContactValidationError(ContactDirError, ValueError):
    """One or more fields of a candidate contact are invalid.

    ``errors`` maps the field name to its FieldError, in rule order.
    """

    def __init__(self, errors: dict) -> None:
        self.errors = dict(errors)
        detail = "; ".join(f"{name}: {err.message}" for name, err in self.errors.items())
        super().__init__(f"Invalid contact ({detail})")

    @property
    def first(self):
        """The first blocking field error."""
        return next(iter(self.errors.values()))


class UniquenessConflict(ContactDirError):
    """A phone key is already owned by a different contact."""

    def __init__(self, phone_key: str, owner_id: str) -> None:
        self.phone_key = phone_key
        self.owner_id = owner_id
        super().__init__(
            f"Phone number {phone_key} is already in use by contact {owner_id}"
        )


class IndexCorruptionError(ContactDirError):
    """The directory snapshot assigns one phone key to several contacts."""

    def __init__(self, phone_key: str, owner_ids: tuple[str, str]) -> None:
        self.phone_key = phone_key
        self.owner_ids = owner_ids
        super().__init__(
            f"Phone number {phone_key} is owned by both {owner_ids[0]} and {owner_ids[1]}"
        )


class ContactNotFoundError(ContactDirError, LookupError):
    def __init__(self, contact_id: str) -> None:
        self.contact_id = contact_id
        super().__init__(f"Contact not found: {contact_id}")


class PersistenceError(ContactDirError):
    """The storage collaborator rejected or failed a write."""


class FatalImportFormatError(ContactDirError, ValueError):
    """The import source is unusable as a whole (e.g. missing columns)."""

    def __init__(self, message: str, missing: tuple[str, ...] = ()) -> None:
        self.missing = missing
        super().__init__(message)
