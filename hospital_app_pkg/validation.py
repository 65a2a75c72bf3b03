# hospital_app_pkg/validation.py
"""
Declarative request-body validation.

Each route describes its payload as a dict of `Field`s and calls
`validate_payload`, which returns the cleaned values plus a field -> message
dict of problems. Routes return the errors as a 400 before touching the
database. Keys not named in the schema are dropped.
"""
import re
import uuid
from datetime import date, datetime

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


class Field:
    def __init__(self, kind, required=False, nullable=True, choices=None,
                 min_value=None, max_value=None, min_length=None, default=None):
        self.kind = kind
        self.required = required
        # Required fields may never be null.
        self.nullable = nullable and not required
        self.choices = choices
        self.min_value = min_value
        self.max_value = max_value
        self.min_length = min_length
        self.default = default


def parse_iso_datetime(dt_str):
    """Helper: Parse ISO string, returns None on failure."""
    if not dt_str or not isinstance(dt_str, str):
        return None
    try:
        parsed = datetime.fromisoformat(dt_str.replace('Z', '+00:00'))
    except (ValueError, TypeError):
        return None
    # Stored timestamps are naive UTC.
    if parsed.tzinfo is not None:
        parsed = (parsed - parsed.utcoffset()).replace(tzinfo=None)
    return parsed


def parse_iso_date(d_str):
    if not d_str or not isinstance(d_str, str):
        return None
    try:
        return date.fromisoformat(d_str[:10])
    except ValueError:
        return None


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_field(name, field, value):
    """Returns (cleaned_value, error_message)."""
    kind = field.kind

    if kind == 'string':
        if not isinstance(value, str):
            return None, "Must be a string."
        value = value.strip()
        if field.min_length and len(value) < field.min_length:
            return None, "Must not be empty." if field.min_length == 1 else f"Must be at least {field.min_length} characters long."
    elif kind == 'email':
        if not isinstance(value, str) or not EMAIL_RE.match(value.strip()):
            return None, "Must be a valid email address."
        value = value.strip().lower()
    elif kind == 'uuid':
        if not isinstance(value, str):
            return None, "Must be a UUID string."
        try:
            value = str(uuid.UUID(value))
        except ValueError:
            return None, "Must be a valid UUID."
    elif kind == 'integer':
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        if not isinstance(value, int) or isinstance(value, bool):
            return None, "Must be an integer."
    elif kind == 'number':
        if not _is_number(value):
            return None, "Must be a number."
    elif kind == 'boolean':
        if not isinstance(value, bool):
            return None, "Must be true or false."
    elif kind == 'date':
        parsed = parse_iso_date(value) if isinstance(value, str) and len(value) == 10 else None
        if parsed is None:
            return None, "Must be a date in YYYY-MM-DD format."
        value = parsed
    elif kind == 'datetime':
        parsed = parse_iso_datetime(value)
        if parsed is None:
            return None, "Must be an ISO 8601 datetime."
        value = parsed
    elif kind == 'string_list':
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            return None, "Must be a list of strings."
    elif kind == 'dict':
        if not isinstance(value, dict):
            return None, "Must be an object."
    else:
        raise ValueError(f"Unknown field kind '{kind}' for '{name}'")

    if field.choices is not None and value not in field.choices:
        return None, f"Must be one of: {', '.join(str(c) for c in field.choices)}."
    if field.min_value is not None and value < field.min_value:
        return None, f"Must be greater than or equal to {field.min_value}."
    if field.max_value is not None and value > field.max_value:
        return None, f"Must be less than or equal to {field.max_value}."
    return value, None


def validate_payload(data, schema, partial=False):
    """
    Validate `data` against `schema`.

    With partial=True (PUT/PATCH updates) missing required fields are not
    errors and defaults are not applied; only the keys present are returned.
    """
    if not isinstance(data, dict):
        return {}, {"_body": "Request body must be a JSON object."}

    cleaned = {}
    errors = {}
    for name, field in schema.items():
        if name not in data:
            if field.required and not partial:
                errors[name] = "This field is required."
            elif field.default is not None and not partial:
                cleaned[name] = field.default() if callable(field.default) else field.default
            continue

        value = data[name]
        if value is None:
            if field.nullable:
                cleaned[name] = None
            else:
                errors[name] = "This field may not be null."
            continue

        value, error = _check_field(name, field, value)
        if error:
            errors[name] = error
        else:
            cleaned[name] = value
    return cleaned, errors
