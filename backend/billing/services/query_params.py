# Overview: Shared parsing of paging, date-range and config parameters for services.

from __future__ import annotations

from datetime import date

from flask import current_app, has_app_context

from ..errors import ValidationError
from ..time_utils import parse_iso_date


DEFAULTS = {
    "BILL_NUMBER_PREFIX": "INV",
    "COLLECTION_NUMBER_PREFIX": "COL",
    "CUSTOMER_CODE_PREFIX": "CUST",
    "DEFAULT_PAGE_LIMIT": 10,
    "MAX_PAGE_LIMIT": 100,
}


def setting(key: str):
    """Config value from the current app, falling back to the shipped default."""
    if has_app_context():
        value = current_app.config.get(key)
        if value is not None:
            return value
    return DEFAULTS[key]


def _positive_int(value, field: str, default: int) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a positive integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a positive integer")
    if number < 1:
        raise ValidationError(f"{field} must be a positive integer")
    return number


def page_params(page=None, limit=None) -> tuple[int, int]:
    """1-based page and a limit clamped to MAX_PAGE_LIMIT."""
    page = _positive_int(page, "page", 1)
    limit = _positive_int(limit, "limit", int(setting("DEFAULT_PAGE_LIMIT")))
    return page, min(limit, int(setting("MAX_PAGE_LIMIT")))


def parse_date_param(value, field: str) -> date | None:
    try:
        return parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an ISO-8601 date")


def date_range(start_date=None, end_date=None) -> tuple[date | None, date | None]:
    """Inclusive range; either end may be open."""
    start = parse_date_param(start_date, "start_date")
    end = parse_date_param(end_date, "end_date")
    if start and end and start > end:
        raise ValidationError("start_date must be on or before end_date")
    return start, end


def optional_id(value, field: str) -> int | None:
    if value is None or value == "":
        return None
    return _positive_int(value, field, 0)
