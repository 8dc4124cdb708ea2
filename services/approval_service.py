"""Approval queue for imported members: list pending, approve, reject, delete."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from pymongo.errors import PyMongoError

from domain.models.member import MemberStatus
from middleware.errors import ValidationError
from repositories.member_repository import MemberRepository

MAX_NOTES_LENGTH = 1000
DEFAULT_PER_PAGE = 15
MAX_PER_PAGE = 100


@dataclass
class BulkActionResult:
    count: int = 0
    errors: List[str] = field(default_factory=list)


def _check_ids(member_ids: Optional[Iterable[Any]]) -> List[str]:
    ids = [str(i).strip() for i in (member_ids or []) if str(i).strip()]
    if not ids:
        raise ValidationError("member_ids must be a non-empty list")
    return ids


def _check_notes(notes: Optional[str]) -> Optional[str]:
    if notes is None:
        return None
    notes = str(notes).strip()
    if len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(f"notes must be at most {MAX_NOTES_LENGTH} characters")
    return notes or None


def list_pending(
    *,
    page: int = 1,
    per_page: int = DEFAULT_PER_PAGE,
    repo: Optional[MemberRepository] = None,
) -> Dict[str, Any]:
    """Pending members (newest first) with pagination meta and queue stats."""

    repo = repo or MemberRepository()
    page = max(int(page or 1), 1)
    per_page = min(max(int(per_page or DEFAULT_PER_PAGE), 1), MAX_PER_PAGE)

    total = repo.count({"status": MemberStatus.pending.value})
    members = repo.find_by_status(
        MemberStatus.pending, skip=(page - 1) * per_page, limit=per_page
    )
    with_duplicates = repo.count({"status": MemberStatus.pending.value, "has_duplicates": True})

    return {
        "data": [m.to_display_dict() for m in members],
        "meta": {
            "current_page": page,
            "per_page": per_page,
            "total": total,
            "last_page": max(math.ceil(total / per_page), 1),
        },
        "stats": {
            "total_pending": total,
            "with_duplicates": with_duplicates,
        },
    }


def _set_status(
    member_ids: Optional[Iterable[Any]],
    status: MemberStatus,
    *,
    acted_by: str,
    notes: Optional[str],
    repo: Optional[MemberRepository],
) -> BulkActionResult:
    ids = _check_ids(member_ids)
    notes = _check_notes(notes)
    repo = repo or MemberRepository()

    result = BulkActionResult()
    verb = "approve" if status == MemberStatus.approved else "reject"
    for member_id in ids:
        try:
            if repo.set_status_if_pending(member_id, status, approved_by=acted_by, notes=notes):
                result.count += 1
            elif repo.find_by_id(member_id) is None:
                result.errors.append(f"Member ID {member_id} not found")
        except PyMongoError as exc:
            result.errors.append(f"Failed to {verb} member ID {member_id}: {exc}")
    return result


def approve_members(
    member_ids: Optional[Iterable[Any]],
    *,
    approved_by: str,
    notes: Optional[str] = None,
    repo: Optional[MemberRepository] = None,
) -> BulkActionResult:
    """Approve pending members. Members that are not pending are left untouched."""
    return _set_status(member_ids, MemberStatus.approved, acted_by=approved_by, notes=notes, repo=repo)


def reject_members(
    member_ids: Optional[Iterable[Any]],
    *,
    rejected_by: str,
    notes: Optional[str] = None,
    repo: Optional[MemberRepository] = None,
) -> BulkActionResult:
    """Reject pending members. Members that are not pending are left untouched."""
    return _set_status(member_ids, MemberStatus.rejected, acted_by=rejected_by, notes=notes, repo=repo)


def delete_members(
    member_ids: Optional[Iterable[Any]],
    *,
    repo: Optional[MemberRepository] = None,
) -> BulkActionResult:
    """Delete members by id (used to clear duplicates from the queue)."""

    ids = _check_ids(member_ids)
    repo = repo or MemberRepository()

    result = BulkActionResult()
    for member_id in ids:
        try:
            if repo.delete(member_id):
                result.count += 1
            else:
                result.errors.append(f"Member ID {member_id} not found")
        except PyMongoError as exc:
            result.errors.append(f"Failed to delete member ID {member_id}: {exc}")
    return result
