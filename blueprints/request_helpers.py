from flask import request

from ledger.errors import ValidationError
from ledger.sanitizer import sanitize_payload


def json_payload():
    """Parse the JSON body of a write request and sanitize every string field."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Invalid or missing JSON body")
    return sanitize_payload(data)


def int_field(payload, key):
    value = payload.get(key)
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an integer")
