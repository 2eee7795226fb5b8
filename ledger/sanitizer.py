import re

_ANGLE_BRACKETS = re.compile(r"[<>]")
_JS_URI = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+=", re.IGNORECASE)


def sanitize(value):
    """Strip markup and inline script fragments from a user supplied string."""
    if not isinstance(value, str):
        return value
    value = _ANGLE_BRACKETS.sub("", value)
    value = _JS_URI.sub("", value)
    value = _EVENT_HANDLER.sub("", value)
    return value.strip()


def sanitize_payload(payload):
    """Apply sanitize() to every string field of a JSON object."""
    if not isinstance(payload, dict):
        return payload
    return {key: sanitize(value) for key, value in payload.items()}
