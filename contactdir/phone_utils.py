"""Phone number normalization and formatting utilities."""

from __future__ import annotations

import re

import phonenumbers

from . import config
from .errors import NormalizationError

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw: str) -> str:
    """Reduce *raw* to the key used to compare phone numbers.

    Every non-digit character is dropped, a leading ``+`` included, so
    ``+1 (234) 567-890`` and ``1234567890`` are the same phone.

    Raises NormalizationError when no digits remain.
    """
    digits = _NON_DIGITS.sub("", raw or "")
    if not digits:
        raise NormalizationError(raw)
    return digits


def format_phone(number: str, country_code: str | None = None) -> str:
    """Format a phone key for display.

    NATIONAL format when the number matches the display country,
    INTERNATIONAL otherwise.  Returns input as-is if unparseable.
    """
    region = (country_code or config.PHONE_COUNTRY).upper()
    try:
        parsed = phonenumbers.parse(number, region)
    except phonenumbers.NumberParseException:
        return number

    if not phonenumbers.is_possible_number(parsed):
        return number

    number_region = phonenumbers.region_code_for_number(parsed)
    if number_region and number_region.upper() == region:
        return phonenumbers.format_number(
            parsed, phonenumbers.PhoneNumberFormat.NATIONAL
        )
    return phonenumbers.format_number(
        parsed, phonenumbers.PhoneNumberFormat.INTERNATIONAL
    )
