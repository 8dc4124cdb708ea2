# services/duplicate_detector.py
"""
Duplicate detection for an upload batch.

A record is a duplicate when its name (case-insensitive), IC number or phone
equals that of an already persisted member or of another row in the batch.
Persisted members are fetched with one query on the batch's keys and indexed
by key; batch rows are bucketed by key. Each record is then compared only
against its own buckets instead of against every other row.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from domain.models.member import (
    CanonicalMember,
    DatabaseDuplicate,
    DuplicateFlag,
    ImportDuplicate,
    Member,
    name_key,
)

MATCH_FIELDS = ("name", "ic_no", "phone")


class MemberLookup(Protocol):
    def find_matching(
        self,
        *,
        name_keys: Iterable[str] = (),
        ic_numbers: Iterable[str] = (),
        phones: Iterable[str] = (),
    ) -> List[Member]:
        ...


def match_keys(name: Optional[str], ic_no: Optional[str], phone: Optional[str]) -> Dict[str, str]:
    """Per-field lookup keys; blank values are left out and never match."""

    keys = {
        "name": name_key(name),
        "ic_no": (ic_no or "").strip(),
        "phone": (phone or "").strip(),
    }
    return {field: value for field, value in keys.items() if value}


def _bucket(items: Iterable[tuple[object, Dict[str, str]]]) -> Dict[str, Dict[str, List[object]]]:
    index: Dict[str, Dict[str, List[object]]] = {f: defaultdict(list) for f in MATCH_FIELDS}
    for item, keys in items:
        for field, value in keys.items():
            index[field][value].append(item)
    return index


def find_duplicates(
    records: Sequence[CanonicalMember],
    existing: Sequence[Member] = (),
) -> List[DuplicateFlag]:
    """
    Flag every record matching a persisted member or another batch row.

    Matching is symmetric within the batch, a row never matches itself, and
    records with no match are not returned. Output is ordered by row.
    """

    record_keys = {r.source_row: match_keys(r.name, r.ic_no, r.phone) for r in records}
    batch_index = _bucket((r, record_keys[r.source_row]) for r in records)
    db_index = _bucket((m, match_keys(m.name, m.ic_no, m.phone)) for m in existing)

    flags: List[DuplicateFlag] = []
    for record in sorted(records, key=lambda r: r.source_row):
        keys = record_keys[record.source_row]

        db_hits: Dict[int, tuple[Member, List[str]]] = {}
        batch_hits: Dict[int, tuple[CanonicalMember, List[str]]] = {}
        for field, value in keys.items():
            for member in db_index[field].get(value, ()):
                db_hits.setdefault(id(member), (member, []))[1].append(field)
            for other in batch_index[field].get(value, ()):
                if other.source_row == record.source_row:
                    continue
                batch_hits.setdefault(other.source_row, (other, []))[1].append(field)

        if not db_hits and not batch_hits:
            continue

        flags.append(
            DuplicateFlag(
                row=record.source_row,
                name=record.name or None,
                ic_no=record.ic_no,
                phone=record.phone,
                database_duplicates=[
                    DatabaseDuplicate(
                        member_id=member.id,
                        name=member.name,
                        ic_no=member.ic_no,
                        phone=member.phone,
                        status=member.status,
                        matched_fields=fields,
                    )
                    for member, fields in sorted(
                        db_hits.values(), key=lambda hit: (hit[0].id or "", hit[0].name)
                    )
                ],
                import_duplicates=[
                    ImportDuplicate(row=row, name=other.name or None, matched_fields=fields)
                    for row, (other, fields) in sorted(batch_hits.items())
                ],
            )
        )
    return flags


def detect_duplicates(records: Sequence[CanonicalMember], repo: Optional[MemberLookup]) -> List[DuplicateFlag]:
    """Look up persisted members sharing any key with ``records`` and flag duplicates."""

    existing: List[Member] = []
    if repo is not None and records:
        keys = [match_keys(r.name, r.ic_no, r.phone) for r in records]
        existing = repo.find_matching(
            name_keys=[k["name"] for k in keys if "name" in k],
            ic_numbers=[k["ic_no"] for k in keys if "ic_no" in k],
            phones=[k["phone"] for k in keys if "phone" in k],
        )
    return find_duplicates(records, existing)


def duplicate_info(flag: DuplicateFlag) -> dict:
    """Compact annotation stored on an imported member for the approval queue."""

    return {
        "matched_fields": flag.matched_fields,
        "database_duplicates": [d.model_dump(exclude_none=True) for d in flag.database_duplicates],
        "import_duplicates": [d.model_dump(exclude_none=True) for d in flag.import_duplicates],
    }
