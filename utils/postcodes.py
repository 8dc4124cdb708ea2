# utils/postcodes.py
"""Infer the Malaysian state from a five-digit postcode."""

from __future__ import annotations

from typing import Optional

from utils.helpers import digits_only

# (first postcode, last postcode, state); checked in order so the narrow
# federal territory ranges win over the wider state ranges around them.
POSTCODE_RANGES: list[tuple[int, int, str]] = [
    (62000, 62999, "Putrajaya"),
    (87000, 87999, "Labuan"),
    (50000, 60999, "Kuala Lumpur"),
    (1000, 2999, "Perlis"),
    (5000, 9999, "Kedah"),
    (10000, 14999, "Pulau Pinang"),
    (15000, 18999, "Kelantan"),
    (20000, 24999, "Terengganu"),
    (25000, 28999, "Pahang"),
    (39000, 39999, "Pahang"),
    (49000, 49999, "Pahang"),
    (30000, 36999, "Perak"),
    (40000, 48999, "Selangor"),
    (63000, 68999, "Selangor"),
    (70000, 73999, "Negeri Sembilan"),
    (75000, 78999, "Melaka"),
    (79000, 86999, "Johor"),
    (88000, 91999, "Sabah"),
    (93000, 98999, "Sarawak"),
]


def normalize_postcode(value: object) -> Optional[str]:
    """Return the postcode as digits, restoring a dropped leading zero."""

    digits = digits_only(value)
    if not digits:
        return None
    if len(digits) == 4:
        digits = "0" + digits
    return digits


def state_from_postcode(postcode: object) -> Optional[str]:
    """Return the state for ``postcode`` or ``None`` if it is not a known range."""

    digits = normalize_postcode(postcode)
    if not digits or len(digits) != 5:
        return None
    number = int(digits)
    for low, high, state in POSTCODE_RANGES:
        if low <= number <= high:
            return state
    return None
