"""Tests for contact field validation."""

from __future__ import annotations

import pytest

from contactdir.errors import ContactValidationError
from contactdir.models import Contact, FieldErrorKind, PhoneEntry, PhoneType
from contactdir.validation import (
    check_contact,
    drop_blank_phones,
    normalized,
    phone_keys,
    validate_contact,
)


def _contact(**overrides) -> Contact:
    fields = {
        "first_name": "John",
        "last_name": "Doe",
        "email": "john@example.com",
        "primary_phone": "+1234567890",
    }
    fields.update(overrides)
    return Contact(**fields)


class TestRequiredFields:
    def test_valid_contact(self):
        assert validate_contact(_contact()) == {}

    def test_first_name_required(self):
        errors = validate_contact(_contact(first_name="   "))
        assert errors["firstName"].kind is FieldErrorKind.REQUIRED
        assert str(errors["firstName"]) == "firstName: required"

    def test_last_name_required(self):
        errors = validate_contact(_contact(last_name=""))
        assert errors["lastName"].kind is FieldErrorKind.REQUIRED

    def test_email_required(self):
        errors = validate_contact(_contact(email=" "))
        assert errors["email"].kind is FieldErrorKind.REQUIRED

    @pytest.mark.parametrize("email", ["bademail", "a@b", "@example.com", "john@example."])
    def test_email_invalid_format(self, email):
        errors = validate_contact(_contact(email=email))
        assert errors["email"].kind is FieldErrorKind.INVALID_FORMAT
        assert errors["email"].message == "invalid format"

    def test_primary_phone_required(self):
        errors = validate_contact(_contact(primary_phone="  "))
        assert errors["primaryPhone"].kind is FieldErrorKind.REQUIRED

    def test_primary_phone_without_digits(self):
        errors = validate_contact(_contact(primary_phone="n/a"))
        assert errors["primaryPhone"].kind is FieldErrorKind.INVALID_PHONE

    def test_all_errors_reported_in_rule_order(self):
        errors = validate_contact(Contact("", "", "", ""))
        assert list(errors) == ["firstName", "lastName", "email", "primaryPhone"]

    def test_does_not_mutate_candidate(self):
        candidate = _contact(first_name="  John  ", additional_phones=[PhoneEntry("")])
        validate_contact(candidate)
        assert candidate.first_name == "  John  "
        assert len(candidate.additional_phones) == 1


class TestIntraContactPhones:
    def test_primary_duplicates_additional(self):
        candidate = _contact(
            primary_phone="555-1234",
            additional_phones=[PhoneEntry("(555) 1234", PhoneType.HOME)],
        )
        errors = validate_contact(candidate)
        assert errors["primaryPhone"].kind is FieldErrorKind.DUPLICATE_PHONE
        assert errors["primaryPhone"].message == "duplicate phone numbers are not allowed"

    def test_two_additional_duplicates(self):
        candidate = _contact(additional_phones=[
            PhoneEntry("555-0001"), PhoneEntry("555 0001", PhoneType.WORK),
        ])
        errors = validate_contact(candidate)
        assert errors["primaryPhone"].kind is FieldErrorKind.DUPLICATE_PHONE

    def test_distinct_phones_valid(self):
        candidate = _contact(additional_phones=[
            PhoneEntry("555-0001"), PhoneEntry("555-0002", PhoneType.WORK),
        ])
        assert validate_contact(candidate) == {}

    def test_invalid_additional_phone_reported_on_its_row(self):
        candidate = _contact(additional_phones=[PhoneEntry("555-0001"), PhoneEntry("ext")])
        errors = validate_contact(candidate)
        assert errors["additionalPhone1"].kind is FieldErrorKind.INVALID_PHONE

    def test_unknown_phone_type_reported_on_its_row(self):
        candidate = _contact(additional_phones=[PhoneEntry("555-0001", "work"), PhoneEntry("555-0002", "fax")])
        errors = validate_contact(candidate)
        assert list(errors) == ["additionalPhone1"]
        assert errors["additionalPhone1"].kind is FieldErrorKind.INVALID_TYPE

    def test_unknown_phone_type_allowed_when_lenient(self):
        candidate = _contact(additional_phones=[PhoneEntry("555-0001", "fax")])
        assert validate_contact(candidate, strict_types=False) == {}
        assert normalized(candidate).additional_phones[0].type is PhoneType.MOBILE

    def test_required_error_not_overwritten(self):
        candidate = _contact(primary_phone="", additional_phones=[
            PhoneEntry("555-0001"), PhoneEntry("5550001"),
        ])
        errors = validate_contact(candidate)
        assert errors["primaryPhone"].kind is FieldErrorKind.REQUIRED


class TestHelpers:
    def test_drop_blank_phones(self):
        candidate = _contact(additional_phones=[
            PhoneEntry(""), PhoneEntry("555-0001"), PhoneEntry("   "),
        ])
        cleaned = drop_blank_phones(candidate)
        assert [p.number for p in cleaned.additional_phones] == ["555-0001"]
        assert len(candidate.additional_phones) == 3

    def test_blank_rows_dropped_before_duplicate_check(self):
        candidate = drop_blank_phones(_contact(additional_phones=[PhoneEntry(""), PhoneEntry("")]))
        assert validate_contact(candidate) == {}

    def test_check_contact_raises(self):
        with pytest.raises(ContactValidationError) as exc_info:
            check_contact(_contact(first_name="", email="nope"))
        assert set(exc_info.value.errors) == {"firstName", "email"}
        assert exc_info.value.first.field == "firstName"

    def test_phone_keys_primary_first(self):
        candidate = _contact(primary_phone="(555) 000-1111",
                             additional_phones=[PhoneEntry("555-222-3333")])
        assert phone_keys(candidate) == ["5550001111", "5552223333"]

    def test_normalized_trims_and_keys(self):
        contact = normalized(_contact(first_name=" John ", primary_phone="+1 (234) 567-890"))
        assert contact.first_name == "John"
        assert contact.primary_phone == "1234567890"


class TestPhoneType:
    def test_known_types(self):
        assert PhoneType.parse("Work") is PhoneType.WORK

    def test_unknown_type_strict(self):
        with pytest.raises(ValueError):
            PhoneType.parse("pager")

    def test_unknown_type_lenient_defaults_to_mobile(self):
        assert PhoneType.parse("pager", lenient=True) is PhoneType.MOBILE
        assert PhoneType.parse(None, lenient=True) is PhoneType.MOBILE
