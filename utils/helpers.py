from __future__ import annotations

import math
import re
from typing import Optional

import pandas as pd

_WHITESPACE_RE = re.compile(r"\s+")
_NON_DIGITS_RE = re.compile(r"\D")


def _normalize(s: Optional[str]) -> str:
    """Normalize whitespace and coerce None to an empty string."""

    return _WHITESPACE_RE.sub(" ", (s or "").strip())


def _is_missing(value: object) -> bool:
    """True for None, NaN/NaT and whitespace-only strings."""

    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _cell_text(value: object) -> str:
    """
    Render a spreadsheet cell as trimmed text.

    Excel stores long digit strings (IC numbers, phones) as floats, so
    ``880101145678.0`` becomes ``"880101145678"`` instead of scientific noise.
    """

    if _is_missing(value):
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return repr(value)
    return _normalize(str(value))


def empty_to_none(value: object) -> Optional[str]:
    """Treat NaN, empty, or whitespace-only as None."""

    text = _cell_text(value)
    return text or None


def digits_only(value: object) -> str:
    """Strip every non-digit character."""

    return _NON_DIGITS_RE.sub("", _cell_text(value))


def _coerce_int(value: object) -> Optional[int]:
    """Parse an integer, returning None (never 0) when it cannot be parsed."""

    if _is_missing(value) or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or not number.is_integer():
        return None
    return int(number)
