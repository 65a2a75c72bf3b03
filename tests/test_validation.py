"""Tests for the request payload validation layer."""

import datetime

from hospital_app_pkg.validation import Field, validate_payload, parse_iso_datetime, parse_iso_date


SCHEMA = {
    'name': Field('string', required=True, min_length=1),
    'level': Field('integer', min_value=1, max_value=5),
    'kind': Field('string', choices=['a', 'b'], default='a'),
    'tags': Field('string_list'),
    'when': Field('datetime'),
}


class TestValidatePayload:
    """validate_payload returns cleaned values and field errors."""

    def test_valid_payload(self):
        """Valid values pass through; defaults are applied."""
        cleaned, errors = validate_payload({'name': ' Ward A ', 'level': 2}, SCHEMA)
        assert errors == {}
        assert cleaned == {'name': 'Ward A', 'level': 2, 'kind': 'a'}

    def test_missing_required_field(self):
        """Missing required fields are reported."""
        _, errors = validate_payload({}, SCHEMA)
        assert errors == {'name': 'This field is required.'}

    def test_integer_bounds(self):
        """Integers outside the bounds are rejected."""
        _, errors = validate_payload({'name': 'x', 'level': 6}, SCHEMA)
        assert 'level' in errors
        _, errors = validate_payload({'name': 'x', 'level': 0}, SCHEMA)
        assert 'level' in errors

    def test_integer_rejects_bool_and_fraction(self):
        """Booleans and non-integral floats are not integers."""
        assert 'level' in validate_payload({'name': 'x', 'level': True}, SCHEMA)[1]
        assert 'level' in validate_payload({'name': 'x', 'level': 2.5}, SCHEMA)[1]
        cleaned, errors = validate_payload({'name': 'x', 'level': 2.0}, SCHEMA)
        assert errors == {}
        assert cleaned['level'] == 2

    def test_choices(self):
        """Values outside choices are rejected."""
        _, errors = validate_payload({'name': 'x', 'kind': 'c'}, SCHEMA)
        assert errors['kind'].startswith('Must be one of')

    def test_required_field_not_nullable(self):
        """Required fields may not be null."""
        _, errors = validate_payload({'name': None}, SCHEMA)
        assert errors == {'name': 'This field may not be null.'}

    def test_unknown_keys_dropped(self):
        """Keys outside the schema are ignored."""
        cleaned, errors = validate_payload({'name': 'x', 'is_admin': True}, SCHEMA)
        assert errors == {}
        assert 'is_admin' not in cleaned

    def test_partial_update(self):
        """Partial validation skips missing required fields and defaults."""
        cleaned, errors = validate_payload({'level': 4}, SCHEMA, partial=True)
        assert errors == {}
        assert cleaned == {'level': 4}

    def test_non_object_body(self):
        """A body that is not a JSON object is rejected."""
        _, errors = validate_payload(['name'], SCHEMA)
        assert '_body' in errors
        _, errors = validate_payload(None, SCHEMA)
        assert '_body' in errors

    def test_string_list(self):
        """string_list requires a list of strings."""
        assert 'tags' in validate_payload({'name': 'x', 'tags': 'fever'}, SCHEMA)[1]
        assert 'tags' in validate_payload({'name': 'x', 'tags': ['fever', 3]}, SCHEMA)[1]


class TestDateParsing:
    """ISO date and datetime parsing."""

    def test_datetime_with_offset_is_converted_to_naive_utc(self):
        """Offsets are folded into naive UTC."""
        parsed = parse_iso_datetime('2024-03-01T10:00:00+02:00')
        assert parsed == datetime.datetime(2024, 3, 1, 8, 0)
        assert parsed.tzinfo is None

    def test_datetime_zulu(self):
        """A trailing Z is accepted."""
        assert parse_iso_datetime('2024-03-01T10:00:00Z') == datetime.datetime(2024, 3, 1, 10, 0)

    def test_invalid_datetime(self):
        """Garbage returns None."""
        assert parse_iso_datetime('yesterday') is None
        assert parse_iso_datetime(None) is None

    def test_date(self):
        """Dates parse from YYYY-MM-DD."""
        assert parse_iso_date('2024-03-01') == datetime.date(2024, 3, 1)
        assert parse_iso_date('03/01/2024') is None
