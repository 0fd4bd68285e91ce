"""Shared request/parsing helpers used by the blueprints.

parse_date:        lenient (returns None on bad input)
parse_date_input:  strict (raises ValueError on bad input)
parse_amount:      strict money parser for request bodies
current_user:      identity collaborator, read from request headers
"""
import logging
from datetime import date, datetime

from flask import request

logger = logging.getLogger(__name__)


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def parse_date_input(value):
    """Parse a date string, raising ValueError on bad input.

    Same as parse_date() but raises ValueError instead of returning None.
    Empty input still yields None (the field is optional).
    """
    if not value:
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValueError("Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY.")
    return parsed


def parse_amount(value, field="amount"):
    """Parse a monetary value from JSON input.

    Raises:
        ValueError: when the value is missing or not numeric.
    """
    if value is None or value == "":
        raise ValueError(f"{field} is required")
    if isinstance(value, bool):
        raise ValueError(f"{field} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field} must be a number") from exc


def current_user():
    """Best-effort acting user (no auth enforcement).

    Returns:
        (user_id, display_name) from X-User-Id / X-User-Name headers.
    """
    user_id = request.headers.get("X-User-Id", "") or "system"
    name = request.headers.get("X-User-Name", "") or "System"
    return user_id, name
