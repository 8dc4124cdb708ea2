"""Demographic inference from Malaysian NRIC (MyKad) numbers.

A 12-digit NRIC is laid out as ``YYMMDD-PB-###G``: birth date, place-of-birth
code, a serial and a final digit whose parity conventionally marks gender
(odd = male, even = female).

Everything here is pure so a deployment can disable or replace it without
touching the parser.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from utils.dates import age_on
from utils.helpers import digits_only

IC_LENGTH = 12


@dataclass(frozen=True)
class ICDemographics:
    date_of_birth: Optional[date] = None
    age: Optional[int] = None
    gender: Optional[str] = None


def birth_date_from_ic(ic: object, today: Optional[date] = None) -> Optional[date]:
    """
    Decode the ``YYMMDD`` prefix.

    The century is 20xx unless that would put the birth date after ``today``,
    in which case 19xx is used.
    """

    digits = digits_only(ic)
    if len(digits) != IC_LENGTH:
        return None

    today = today or date.today()
    yy, mm, dd = int(digits[0:2]), int(digits[2:4]), int(digits[4:6])
    for century in (2000, 1900):
        try:
            candidate = date(century + yy, mm, dd)
        except ValueError:
            return None
        if candidate <= today:
            return candidate
    return None


def gender_from_ic(ic: object) -> Optional[str]:
    """``"M"`` for an odd final digit, ``"F"`` for even."""

    digits = digits_only(ic)
    if len(digits) != IC_LENGTH:
        return None
    return "M" if int(digits[-1]) % 2 else "F"


def infer_from_ic(
    ic: object,
    today: Optional[date] = None,
    *,
    include_gender: bool = False,
) -> ICDemographics:
    """Return whatever demographics can be derived from ``ic``."""

    today = today or date.today()
    birth = birth_date_from_ic(ic, today)
    return ICDemographics(
        date_of_birth=birth,
        age=age_on(birth, today) if birth else None,
        gender=gender_from_ic(ic) if include_gender else None,
    )
