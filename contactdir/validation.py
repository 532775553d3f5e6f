"""Field validation for candidate contacts.

Rules run in a fixed order and every violation is collected, so a caller
gets all field errors for a row at once:

1. firstName required
2. lastName required
3. email required, then ``\\S+@\\S+\\.\\S+`` shape
4. primaryPhone required
5. additional phone types are mobile, home or work (strict callers only)
6. no two phones of the contact normalize to the same key
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace

from .errors import ContactValidationError, NormalizationError
from .models import Contact, FieldError, FieldErrorKind, PhoneEntry, PhoneType
from .phone_utils import normalize_phone

log = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")


def additional_phone_field(index: int) -> str:
    return f"additionalPhone{index}"


def drop_blank_phones(contact: Contact) -> Contact:
    """Return a copy of *contact* without additional phones left empty.

    An empty additional phone is an unfilled optional row, not an error.
    """
    kept = [p for p in contact.additional_phones if p.number and p.number.strip()]
    if len(kept) == len(contact.additional_phones):
        return contact
    return replace(contact, additional_phones=kept)


def validate_contact(candidate: Contact, *, strict_types: bool = True) -> dict[str, FieldError]:
    """Validate *candidate* and return ``{field: FieldError}``.

    An empty dict means the candidate is valid. The candidate is never
    modified.

    With *strict_types* off, unknown additional phone types are not reported;
    :func:`normalized` resolves them to mobile instead.
    """
    errors: dict[str, FieldError] = {}

    def fail(name: str, kind: FieldErrorKind) -> None:
        errors.setdefault(name, FieldError(name, kind))

    if not (candidate.first_name or "").strip():
        fail("firstName", FieldErrorKind.REQUIRED)
    if not (candidate.last_name or "").strip():
        fail("lastName", FieldErrorKind.REQUIRED)

    email = (candidate.email or "").strip()
    if not email:
        fail("email", FieldErrorKind.REQUIRED)
    elif not EMAIL_PATTERN.search(email):
        fail("email", FieldErrorKind.INVALID_FORMAT)

    if not (candidate.primary_phone or "").strip():
        fail("primaryPhone", FieldErrorKind.REQUIRED)

    if strict_types:
        for i, p in enumerate(candidate.additional_phones):
            try:
                PhoneType.parse(p.type)
            except ValueError:
                fail(additional_phone_field(i), FieldErrorKind.INVALID_TYPE)

    # Intra-contact uniqueness; unparseable numbers are reported on their own field
    phones = [("primaryPhone", candidate.primary_phone)] + [
        (additional_phone_field(i), p.number)
        for i, p in enumerate(candidate.additional_phones)
    ]
    seen: set[str] = set()
    for name, raw in phones:
        if not (raw or "").strip():
            continue
        try:
            key = normalize_phone(raw)
        except NormalizationError:
            fail(name, FieldErrorKind.INVALID_PHONE)
            continue
        if key in seen:
            fail("primaryPhone", FieldErrorKind.DUPLICATE_PHONE)
            break
        seen.add(key)

    if errors:
        log.debug("Contact %r failed validation: %s", candidate.display_name,
                  ", ".join(str(e) for e in errors.values()))
    return errors


def check_contact(candidate: Contact, *, strict_types: bool = True) -> None:
    """Raise ContactValidationError if *candidate* has any field error."""
    errors = validate_contact(candidate, strict_types=strict_types)
    if errors:
        raise ContactValidationError(errors)


def phone_keys(contact: Contact) -> list[str]:
    """Normalized keys of every phone on *contact*, primary first.

    The contact must already have passed validation.
    """
    return [normalize_phone(n) for n in contact.all_phones()]


def normalized(contact: Contact) -> Contact:
    """Copy of a valid *contact* with trimmed fields and phone keys stored."""
    return replace(
        contact,
        first_name=contact.first_name.strip(),
        last_name=contact.last_name.strip(),
        email=contact.email.strip(),
        primary_phone=normalize_phone(contact.primary_phone),
        additional_phones=[
            PhoneEntry(normalize_phone(p.number), PhoneType.parse(p.type, lenient=True))
            for p in contact.additional_phones
        ],
    )
