# utils/headers.py
"""Header normalization: bilingual spreadsheet headers -> canonical fields."""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional

from middleware.errors import FileFormatError
from utils.helpers import _cell_text

# ─────────────────────────────────────────────────────────────────────────────
# Canonical field -> accepted header spellings (English / Malay).
# Keep this as the single source of truth for column recognition.
# ─────────────────────────────────────────────────────────────────────────────
HEADER_SYNONYMS: Dict[str, List[str]] = {
    "name": ["name", "full name", "member name", "nama", "nama penuh", "full_name"],
    "ic_no": [
        "ic", "ic_no", "ic no", "nric", "ic number", "identity card",
        "kad pengenalan", "no ic", "no kad pengenalan",
        "i/c", "i/c no", "no. i/c", "k/p", "no. k/p",
    ],
    "phone": [
        "phone", "mobile", "phone number", "mobile number", "telefon",
        "no telefon", "no tel", "tel",
    ],
    "email": ["email", "email address", "e-mail", "emel"],
    "address": ["address", "home address", "alamat", "alamat 1", "address 1"],
    "address_2": ["address 2", "address2", "alamat 2", "alamat2"],
    "city": ["city", "town", "bandar"],
    "state": ["state", "negeri"],
    "postcode": ["postcode", "poskod", "zip", "postal code"],
    "occupation": ["occupation", "pekerjaan", "job", "work"],
    "gender": ["gender", "jantina", "sex"],
    "date_of_birth": ["date of birth", "date_of_birth", "dob", "birth date", "tarikh lahir"],
    "membership_type": ["membership type", "member type", "jenis keahlian"],
    "join_date": ["join date", "date joined", "tarikh sertai"],
    "remarks": ["remarks", "notes", "catatan"],
    "age": ["age", "umur"],
    "member_no": ["member no", "membership no", "no anggota", "no. anggota", "no ahli"],
    "race": ["race", "ethnicity", "bangsa"],
    "branch": ["branch", "ranting", "cawangan"],
}

REQUIRED_FIELD = "name"

_PUNCT_RE = re.compile(r"[^\w\s]|_")
_SPACES_RE = re.compile(r"\s+")


def normalize_header(value: object) -> str:
    """
    Fold a header for comparison: trim, punctuation to space, collapse
    internal whitespace, case-fold. ``" No. I/C "`` -> ``"no i c"``.
    """

    text = _PUNCT_RE.sub(" ", _cell_text(value))
    return _SPACES_RE.sub(" ", text).strip().casefold()


def _build_lookup() -> Dict[str, str]:
    lookup: Dict[str, str] = {}
    for field, spellings in HEADER_SYNONYMS.items():
        for spelling in spellings:
            lookup.setdefault(normalize_header(spelling), field)
    return lookup


_HEADER_LOOKUP = _build_lookup()


def canonical_field(header: object) -> Optional[str]:
    """Return the canonical field for one header, or ``None`` if unrecognized."""

    return _HEADER_LOOKUP.get(normalize_header(header))


def map_headers(headers: Iterable[object]) -> Dict[str, int]:
    """
    Map canonical field name -> column index for a header row.

    The first column recognized for a field wins; unknown columns are ignored.
    Raises :class:`FileFormatError` if no column maps to ``name``.
    """

    mapping: Dict[str, int] = {}
    seen: List[str] = []
    for index, header in enumerate(headers):
        seen.append(_cell_text(header))
        field = canonical_field(header)
        if field and field not in mapping:
            mapping[field] = index

    if REQUIRED_FIELD not in mapping:
        raise FileFormatError(
            "No name column found. Expected one of: Name, Full Name, Member Name, Nama.",
            details={"headers": [h for h in seen if h]},
        )
    return mapping
