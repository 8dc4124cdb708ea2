"""Phone normalization helpers.

Member phones are kept in the local leading-zero form used by Malaysian
mobile numbers (``0123456789``): digits only, no ``+`` or country code.
Numbers written in international form are parsed with :mod:`phonenumbers`;
Malaysian ones are folded back to the local form, foreign ones keep their
country code as plain digits (E.164 without the ``+``).

:func:`normalize_phone` is forgiving and never rejects a value, so partial
numbers stay visible during duplicate review; :func:`is_local_mobile` is the
stricter check applied at import time.
"""

from __future__ import annotations

import re
from typing import Optional

import phonenumbers

from utils.helpers import _cell_text, digits_only

COUNTRY_CODE = "60"
LOCAL_MOBILE_RE = re.compile(r"^01\d{8,9}$")


def _normalize_international(text: str) -> Optional[str]:
    if text.startswith("00"):
        text = "+" + text[2:]
    try:
        num = phonenumbers.parse(text, None)
    except phonenumbers.NumberParseException:
        return None
    if num.country_code == int(COUNTRY_CODE):
        return "0" + str(num.national_number)
    return phonenumbers.format_number(num, phonenumbers.PhoneNumberFormat.E164).lstrip("+")


def normalize_phone(value: object) -> Optional[str]:
    """Return ``value`` in leading-zero form, or ``None`` if it has no digits."""

    digits = digits_only(value)
    if not digits:
        return None

    text = _cell_text(value)
    if text.startswith(("+", "00")):
        international = _normalize_international(text)
        if international:
            return international

    # 60 12-345 6789 -> 0123456789
    if digits.startswith(COUNTRY_CODE) and len(digits) in (11, 12) and digits[2] == "1":
        return "0" + digits[2:]

    # Spreadsheets drop the leading zero: 123456789 -> 0123456789
    if len(digits) == 9 and not digits.startswith("0"):
        return "0" + digits

    return digits


def is_local_mobile(phone: Optional[str]) -> bool:
    """True when ``phone`` is a 10 or 11 digit number starting with ``01``."""

    return bool(phone) and bool(LOCAL_MOBILE_RE.match(phone))
