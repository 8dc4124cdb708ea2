"""Utility helpers for working with date-like spreadsheet values."""

from __future__ import annotations

import math
import re
from datetime import date as date_cls
from datetime import datetime, timedelta
from typing import Optional

import pandas as pd

from utils.helpers import _is_missing

_EXCEL_EPOCH = datetime(1899, 12, 30)
_GHOST_DATES = {date_cls(1900, 1, 1)}  # Excel "empty" date

# Malaysian sheets are day-first; ISO is accepted as well.
_DATE_PATTERNS = (
    (re.compile(r"^\d{4}-\d{1,2}-\d{1,2}$"), "%Y-%m-%d"),
    (re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$"), "%d/%m/%Y"),
    (re.compile(r"^\d{1,2}-\d{1,2}-\d{4}$"), "%d-%m-%Y"),
    (re.compile(r"^\d{1,2}\.\d{1,2}\.\d{4}$"), "%d.%m.%Y"),
)


def _is_excel_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_excel_number(value: object) -> Optional[datetime]:
    """Convert an Excel serial number (days since 1899-12-30) to datetime."""

    if not _is_excel_number(value):
        return None
    number = float(value)
    if math.isnan(number) or number <= 0:
        return None
    try:
        return _EXCEL_EPOCH + timedelta(days=number)
    except OverflowError:
        return None


def _parse_date_string(value: str) -> Optional[datetime]:
    text = value.strip()
    if not text:
        return None
    # "2024-01-05 00:00:00" from stringified datetimes
    text = text.split(" ", 1)[0] if re.match(r"^\d{4}-\d{2}-\d{2} ", text) else text
    for pattern, fmt in _DATE_PATTERNS:
        if pattern.match(text):
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                return None
    return None


def coerce_date(value: object) -> Optional[date_cls]:
    """
    Best-effort coercion of a cell into a ``date``.

    Supports strings, datetime/date objects, pandas ``Timestamp`` values, and
    Excel serial numbers. Unparseable values and ghost dates return ``None``.
    """

    if _is_missing(value):
        return None

    parsed: Optional[datetime]
    if isinstance(value, pd.Timestamp):
        parsed = value.to_pydatetime()
    elif isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date_cls):
        parsed = datetime(value.year, value.month, value.day)
    elif _is_excel_number(value):
        parsed = _parse_excel_number(value)
    elif isinstance(value, str):
        parsed = _parse_date_string(value)
    else:
        parsed = None

    if parsed is None:
        return None
    result = parsed.date()
    if result in _GHOST_DATES:
        return None
    return result


def to_iso_date(value: object) -> Optional[str]:
    """Return ``YYYY-MM-DD`` for a date-like cell, or ``None``."""

    parsed = coerce_date(value)
    return parsed.isoformat() if parsed else None


def age_on(birth: date_cls, today: date_cls) -> Optional[int]:
    """Completed years between ``birth`` and ``today``; ``None`` for future dates."""

    if birth > today:
        return None
    years = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        years -= 1
    return years


__all__ = ["coerce_date", "to_iso_date", "age_on"]
