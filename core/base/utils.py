"""
Field helpers shared by the movement managers.
"""
from datetime import datetime, timezone as dt_timezone

from django.utils import timezone

LOG_VALUE_MAX_LENGTH = 50


def blank_to_none(value):
    """Strip strings; an empty result becomes None. Other values pass through."""
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def normalized_text(value) -> str:
    """Full text form of a field value, used to detect changes."""
    if value is None:
        return ''
    if isinstance(value, datetime) and timezone.is_aware(value):
        value = value.astimezone(dt_timezone.utc)
    return value.isoformat() if hasattr(value, 'isoformat') else str(value)


def log_value(value) -> str:
    """Text used in audit details; long values are shortened."""
    text = normalized_text(value)
    if len(text) > LOG_VALUE_MAX_LENGTH:
        text = text[:LOG_VALUE_MAX_LENGTH - 3] + '...'
    return text


def apply_changes(instance, changes) -> list:
    """
    Set every changed field on instance.

    Values are compared in full; only the returned descriptions are
    shortened. Returns "field: 'before' -> 'after'" entries, empty when
    nothing changed.
    """
    diff = []
    for field, value in changes.items():
        before = getattr(instance, field)
        if normalized_text(before) == normalized_text(value):
            continue
        diff.append(f"{field}: '{log_value(before) or '-'}' -> '{log_value(value) or '-'}'")
        setattr(instance, field, value)
    return diff
