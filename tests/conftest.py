import sys
from datetime import datetime, timezone
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from bson import ObjectId
from openpyxl import Workbook

# Ensure project root is on sys.path
sys.path.append(str(Path(__file__).resolve().parents[1]))

from domain.models.member import Member, MemberStatus, name_key  # noqa: E402


class FakeMemberRepository:
    """In-memory stand-in for MemberRepository."""

    def __init__(self, members: Optional[List[Member]] = None):
        self.members: Dict[str, Member] = {}
        self.ping_error: Optional[Exception] = None
        self.insert_errors: Dict[str, Exception] = {}
        self.find_calls = 0
        for member in members or []:
            self.add(member)

    def add(self, member: Member) -> Member:
        member.id = member.id or str(ObjectId())
        member.created_at = member.created_at or datetime.now(timezone.utc)
        self.members[member.id] = member
        return member

    def ping(self) -> None:
        if self.ping_error is not None:
            raise self.ping_error

    def insert(self, member: Member) -> str:
        error = self.insert_errors.get(member.name)
        if error is not None:
            raise error
        stored = member.model_copy()
        return self.add(stored).id

    def find_by_id(self, member_id: str) -> Optional[Member]:
        return self.members.get(member_id)

    def find_matching(self, *, name_keys=(), ic_numbers=(), phones=()) -> List[Member]:
        self.find_calls += 1
        names, ics, tels = set(name_keys), set(ic_numbers), set(phones)
        return [
            m for m in self.members.values()
            if (m.name_key and m.name_key in names)
            or (m.ic_no and m.ic_no in ics)
            or (m.phone and m.phone in tels)
        ]

    def find_by_status(self, status, *, skip: int = 0, limit: int = 0) -> List[Member]:
        matches = [m for m in self.members.values() if m.status == MemberStatus(status).value]
        matches.sort(key=lambda m: m.created_at, reverse=True)
        matches = matches[skip:]
        return matches[:limit] if limit else matches

    def count(self, query: Optional[Dict[str, Any]] = None) -> int:
        query = query or {}
        return sum(
            1 for m in self.members.values()
            if all(getattr(m, key) == value for key, value in query.items())
        )

    def count_by_status(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in MemberStatus}
        for m in self.members.values():
            counts[m.status] += 1
        return counts

    def set_status_if_pending(self, member_id, status, *, approved_by, notes=None) -> int:
        member = self.members.get(member_id)
        if member is None or member.status != MemberStatus.pending.value:
            return 0
        member.status = MemberStatus(status).value
        member.approved_by = approved_by
        member.approval_notes = notes
        member.approved_at = datetime.now(timezone.utc)
        return 1

    def delete(self, member_id: str) -> int:
        return 1 if self.members.pop(member_id, None) is not None else 0


class FakeUploadSessionRepository:
    def __init__(self):
        self.docs: Dict[str, Dict[str, Any]] = {}
        self.counter = 0

    def save(self, payload, *, ttl_seconds, created_by=None) -> str:
        self.counter += 1
        token = f"tok-{self.counter}"
        self.docs[token] = {
            "token": token,
            "payload": payload,
            "created_by": created_by,
            "ttl_seconds": ttl_seconds,
        }
        return token

    def load(self, token):
        return self.docs.get(token)

    def discard(self, token) -> int:
        return 1 if self.docs.pop(token, None) is not None else 0


def make_member(name: str, ic_no: Optional[str] = None, phone: Optional[str] = None, **extra) -> Member:
    return Member(
        name=name,
        name_key=name_key(name),
        ic_no=ic_no,
        phone=phone,
        uploaded_by=extra.pop("uploaded_by", "seed"),
        **extra,
    )


def csv_bytes(rows: List[List[Any]]) -> bytes:
    lines = [",".join("" if c is None else str(c) for c in row) for row in rows]
    return ("\n".join(lines) + "\n").encode("utf-8")


def xlsx_bytes(rows: List[List[Any]]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Members"
    for row in rows:
        ws.append(row)
    stream = BytesIO()
    wb.save(stream)
    return stream.getvalue()


@pytest.fixture
def member_repo():
    return FakeMemberRepository()


@pytest.fixture
def session_repo():
    return FakeUploadSessionRepository()
