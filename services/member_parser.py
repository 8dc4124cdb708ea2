# services/member_parser.py
"""
Row parsing: one raw spreadsheet row -> :class:`CanonicalMember`.

Parsing is forgiving. IC numbers and phones are reduced to digits but never
length-checked here, so incomplete data is still visible when duplicates are
reviewed; the importer enforces the strict rules. A row without a name is a
parse failure: it keeps its ``source_row`` and whatever fields were readable,
and carries ``parse_error`` instead of being dropped.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence

from email_validator import EmailNotValidError, validate_email

from config import settings
from domain.models.member import CanonicalMember, Gender
from services.file_reader import SheetData
from utils.dates import to_iso_date
from utils.headers import map_headers
from utils.helpers import _cell_text, _coerce_int, digits_only
from utils.ic import infer_from_ic
from utils.normalize_phones import normalize_phone
from utils.postcodes import normalize_postcode, state_from_postcode

logger = logging.getLogger(__name__)

MISSING_NAME = "missing name"

_GENDER_LETTERS = {
    "m": Gender.male,
    "l": Gender.male,    # Lelaki
    "f": Gender.female,
    "p": Gender.female,  # Perempuan
    "w": Gender.female,  # Wanita
}

_TEXT_FIELDS = (
    "address", "city", "state", "member_no", "race", "branch",
    "occupation", "membership_type", "remarks",
)


def _cell(raw: Sequence[Any], header_map: Mapping[str, int], field: str) -> Any:
    index = header_map.get(field)
    if index is None or index >= len(raw):
        return None
    return raw[index]


def parse_gender(value: object) -> Optional[Gender]:
    """First letter M/F (English) or L/P (Malay); anything else is unknown."""

    text = _cell_text(value).lower()
    if not text:
        return None
    return _GENDER_LETTERS.get(text[0])


def parse_email(value: object) -> Optional[str]:
    """Return a normalized email address, or ``None`` if it is not syntactically valid."""

    text = _cell_text(value)
    if not text:
        return None
    try:
        return validate_email(text, check_deliverability=False).normalized
    except EmailNotValidError:
        return None


def _combine_address(first: Optional[str], second: Optional[str]) -> Optional[str]:
    if first and second:
        return f"{first}, {second}"
    return first or second


def parse_row(
    raw: Sequence[Any],
    header_map: Mapping[str, int],
    source_row: int,
    *,
    today: Optional[date] = None,
    infer_gender: Optional[bool] = None,
) -> CanonicalMember:
    """Convert one raw row into a canonical member (possibly carrying ``parse_error``)."""

    if infer_gender is None:
        infer_gender = settings.IC_INFER_GENDER

    values: Dict[str, Any] = {"source_row": source_row}
    values["name"] = _cell_text(_cell(raw, header_map, "name"))

    ic_no = digits_only(_cell(raw, header_map, "ic_no")) or None
    values["ic_no"] = ic_no
    values["phone"] = normalize_phone(_cell(raw, header_map, "phone"))
    values["email"] = parse_email(_cell(raw, header_map, "email"))

    for field in _TEXT_FIELDS:
        values[field] = _cell_text(_cell(raw, header_map, field)) or None
    values["address"] = _combine_address(
        values["address"], _cell_text(_cell(raw, header_map, "address_2")) or None
    )

    postcode = normalize_postcode(_cell(raw, header_map, "postcode"))
    values["postcode"] = postcode
    if not values["state"] and postcode:
        values["state"] = state_from_postcode(postcode)

    values["gender"] = parse_gender(_cell(raw, header_map, "gender"))
    values["date_of_birth"] = to_iso_date(_cell(raw, header_map, "date_of_birth"))
    values["join_date"] = to_iso_date(_cell(raw, header_map, "join_date"))
    values["age"] = _coerce_int(_cell(raw, header_map, "age"))

    if ic_no:
        inferred = infer_from_ic(ic_no, today, include_gender=infer_gender)
        if values["age"] is None:
            values["age"] = inferred.age
        if values["date_of_birth"] is None and inferred.date_of_birth:
            values["date_of_birth"] = inferred.date_of_birth.isoformat()
        if values["gender"] is None:
            values["gender"] = inferred.gender

    if not values["name"]:
        values["parse_error"] = MISSING_NAME

    return CanonicalMember.model_validate(values)


def parse_sheet(
    sheet: SheetData,
    *,
    today: Optional[date] = None,
    infer_gender: Optional[bool] = None,
) -> List[CanonicalMember]:
    """
    Map the header row and parse every data row.

    Raises :class:`~middleware.errors.FileFormatError` before touching any row
    when the header has no name column.
    """

    header_map = map_headers(sheet.headers)
    members = [
        parse_row(cells, header_map, source_row, today=today, infer_gender=infer_gender)
        for source_row, cells in sheet.rows
    ]
    failures = sum(1 for m in members if not m.is_valid)
    if failures and settings.DEBUG_PRINT:
        logger.info("[PARSE] %d of %d rows failed to parse", failures, len(members))
    return members
