from __future__ import annotations

from datetime import datetime, timedelta

from backoffice.services.errors import LedgerError
from backoffice.time_utils import parse_iso_datetime


class ValidationError(LedgerError):
    """400-level request shape problem."""

    status_code = 400


def get_json_payload(request) -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def require_fields(payload: dict, *fields: str) -> None:
    missing = [f for f in fields if payload.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", details={"fields": missing})


def parse_int(value, field: str) -> int | None:
    """
    Strict integer coercion for ids and quantities.

    Rejects floats, booleans, decimals-in-strings and scientific notation.
    """
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lstrip("-").isdigit():
            return int(stripped)
    raise ValidationError(f"{field} must be an integer", details={"field": field})


def parse_datetime(value, field: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return parse_iso_datetime(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime", details={"field": field})


def _is_date_only(value) -> bool:
    return isinstance(value, str) and len(value.strip()) == 10


def parse_inclusive_end(value, field: str = "end") -> datetime | None:
    """A bare date as an inclusive end bound covers that whole day."""
    dt = parse_datetime(value, field)
    if dt is not None and _is_date_only(value):
        dt = dt + timedelta(days=1) - timedelta(microseconds=1)
    return dt


def parse_exclusive_end(value, field: str = "end") -> datetime | None:
    """A bare date as an exclusive end bound means up to the start of the next day."""
    dt = parse_datetime(value, field)
    if dt is not None and _is_date_only(value):
        dt = dt + timedelta(days=1)
    return dt
