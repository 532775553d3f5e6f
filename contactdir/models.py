"""Data models for the contact directory."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum


class PhoneType(Enum):
    MOBILE = "mobile"
    HOME = "home"
    WORK = "work"

    @classmethod
    def parse(cls, value: str | PhoneType | None, *, lenient: bool = False) -> PhoneType:
        """Resolve a phone type name.

        Unknown names raise ValueError unless *lenient*, in which case they
        fall back to MOBILE (form edits keep whatever the user last picked).
        """
        if isinstance(value, PhoneType):
            return value
        cleaned = (value or "").strip().lower()
        try:
            return cls(cleaned)
        except ValueError:
            if lenient:
                return cls.MOBILE
            raise ValueError(f"Unknown phone type: {value!r}") from None


@dataclass(frozen=True)
class PhoneEntry:
    """An additional phone number owned by a contact."""

    number: str
    type: PhoneType | str = PhoneType.MOBILE

    def to_dict(self) -> dict:
        return {"number": self.number, "type": PhoneType.parse(self.type, lenient=True).value}


@dataclass
class Contact:
    """A directory contact.

    ``id`` is assigned by the directory; it is ``None`` for candidates that
    have not been created yet.
    """

    first_name: str
    last_name: str
    email: str
    primary_phone: str
    additional_phones: list[PhoneEntry] = field(default_factory=list)
    id: str | None = None
    source: str = "manual"
    created_at: str = ""
    updated_at: str = ""

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def all_phones(self) -> list[str]:
        """Primary phone first, then additional numbers in order."""
        return [self.primary_phone] + [p.number for p in self.additional_phones]

    def with_id(self, contact_id: str | None) -> Contact:
        return replace(self, id=contact_id)

    def matches(self, term: str) -> bool:
        """Case-insensitive substring match on name, email and primary phone."""
        needle = term.strip().lower()
        if not needle:
            return True
        return any(
            needle in value.lower()
            for value in (self.first_name, self.last_name, self.email, self.primary_phone)
        )

    def to_row(self) -> dict:
        """Serialize to a dict suitable for INSERT into the contacts table."""
        now = _now_iso()
        return {
            "id": self.id or str(uuid.uuid4()),
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "primary_phone": self.primary_phone,
            "source": self.source,
            "created_at": self.created_at or now,
            "updated_at": now,
        }

    @classmethod
    def from_row(cls, row, phones=()) -> Contact:
        """Construct from a sqlite3.Row (or dict) and its contact_phones rows."""
        r = dict(row)
        return cls(
            id=r["id"],
            first_name=r["first_name"],
            last_name=r["last_name"],
            email=r["email"],
            primary_phone=r["primary_phone"],
            additional_phones=[
                PhoneEntry(p["number"], PhoneType.parse(p["phone_type"], lenient=True))
                for p in phones
            ],
            source=r.get("source") or "manual",
            created_at=r.get("created_at") or "",
            updated_at=r.get("updated_at") or "",
        )

    def to_dict(self) -> dict:
        """camelCase representation printed by ``list --json`` and ``show --json``."""
        return {
            "id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "primaryPhone": self.primary_phone,
            "additionalPhones": [p.to_dict() for p in self.additional_phones],
        }


# ---------------------------------------------------------------------------
# Validation results
# ---------------------------------------------------------------------------

class FieldErrorKind(Enum):
    REQUIRED = "required"
    INVALID_FORMAT = "invalid format"
    INVALID_PHONE = "invalid phone number"
    DUPLICATE_PHONE = "duplicate phone numbers are not allowed"
    INVALID_TYPE = "invalid type"


@dataclass(frozen=True)
class FieldError:
    field: str
    kind: FieldErrorKind

    @property
    def message(self) -> str:
        return self.kind.value

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


# ---------------------------------------------------------------------------
# Import outcomes
# ---------------------------------------------------------------------------

class SkipReason(Enum):
    DUPLICATE_IN_DIRECTORY = "duplicate-in-directory"
    DUPLICATE_IN_BATCH = "duplicate-in-batch"
    VALIDATION_ERROR = "validation-error"
    PERSISTENCE_ERROR = "persistence-error"

    @property
    def is_duplicate(self) -> bool:
        return self in (SkipReason.DUPLICATE_IN_DIRECTORY, SkipReason.DUPLICATE_IN_BATCH)


_REASON_TEXT = {
    SkipReason.DUPLICATE_IN_DIRECTORY: "phone number already belongs to an existing contact",
    SkipReason.DUPLICATE_IN_BATCH: "phone number already used by an earlier row in this import",
    SkipReason.VALIDATION_ERROR: "invalid row",
    SkipReason.PERSISTENCE_ERROR: "could not be saved",
}


@dataclass
class ImportOutcome:
    """Decision for one input row.

    ``contact`` is set for accepted rows (with its id once committed);
    ``reason`` and ``errors``/``detail`` are set for skipped rows.
    """

    row_number: int
    contact: Contact | None = None
    reason: SkipReason | None = None
    errors: list[FieldError] = field(default_factory=list)
    detail: str = ""

    @property
    def accepted(self) -> bool:
        return self.reason is None

    @property
    def phone_key(self) -> str | None:
        return self.contact.primary_phone if self.contact else None

    def skip(self, reason: SkipReason, detail: str = "") -> None:
        self.reason = reason
        self.detail = detail

    @property
    def message(self) -> str:
        """Human readable reason for a skipped row ("" when accepted)."""
        if self.reason is None:
            return ""
        text = _REASON_TEXT[self.reason]
        if self.errors:
            text = f"{text}: " + ", ".join(str(e) for e in self.errors)
        elif self.detail:
            text = f"{text}: {self.detail}"
        return text


@dataclass
class ImportSummary:
    """Aggregate result of a CSV import."""

    outcomes: list[ImportOutcome] = field(default_factory=list)
    cancelled: bool = False

    @property
    def imported(self) -> int:
        return sum(1 for o in self.outcomes if o.accepted)

    @property
    def skipped(self) -> int:
        return len(self.outcomes) - self.imported

    @property
    def duplicates(self) -> int:
        return sum(1 for o in self.outcomes if o.reason is not None and o.reason.is_duplicate)

    def skipped_by(self, reason: SkipReason) -> list[ImportOutcome]:
        return [o for o in self.outcomes if o.reason is reason]

    def describe(self) -> str:
        """One-line summary, e.g. ``"12 imported, 3 duplicates skipped"``."""
        parts = [f"{self.imported} imported"]
        if self.duplicates:
            parts.append(f"{self.duplicates} duplicates skipped")
        invalid = self.skipped - self.duplicates
        if invalid:
            parts.append(f"{invalid} invalid rows skipped")
        if self.cancelled:
            parts.append("cancelled")
        return ", ".join(parts)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
