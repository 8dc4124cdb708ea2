# services/upload_session.py
"""
The staging contract between the ``process`` and ``import`` calls.

Nothing here writes members. An :class:`UploadSession` is what the reviewer
holds between the two calls (usually on the client); it can optionally be
parked server-side under an opaque token with a TTL so the import call does
not have to trust a resubmitted payload.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from config import settings
from domain.models.member import CanonicalMember, DuplicateFlag
from middleware.errors import UploadSessionNotFoundError
from repositories.upload_session_repository import UploadSessionRepository


@dataclass
class UploadSession:
    filename: str
    all_data: List[CanonicalMember]
    duplicates: List[DuplicateFlag] = field(default_factory=list)
    excluded_rows: Set[int] = field(default_factory=set)
    token: Optional[str] = None
    created_by: Optional[str] = None

    @property
    def source_rows(self) -> Set[int]:
        return {m.source_row for m in self.all_data}

    @property
    def duplicate_rows(self) -> Set[int]:
        return {flag.row for flag in self.duplicates}

    def _check_row(self, row: int) -> int:
        row = int(row)
        if row not in self.source_rows:
            raise KeyError(f"row {row} is not part of this upload")
        return row

    def exclude(self, row: int) -> None:
        self.excluded_rows.add(self._check_row(row))

    def include(self, row: int) -> None:
        self.excluded_rows.discard(self._check_row(row))

    def toggle(self, row: int) -> bool:
        """Flip exclusion for ``row``; returns True if the row is now excluded."""
        row = self._check_row(row)
        if row in self.excluded_rows:
            self.excluded_rows.discard(row)
            return False
        self.excluded_rows.add(row)
        return True

    def exclude_all_duplicates(self) -> None:
        self.excluded_rows |= self.duplicate_rows

    def clear_exclusions(self) -> None:
        self.excluded_rows.clear()

    def to_import_payload(self) -> Dict[str, Any]:
        """Body for the import call, in the same shape the client would send."""
        payload: Dict[str, Any] = {
            "members_data": [m.to_payload() for m in self.all_data],
            "filename": self.filename,
            "excluded_rows": sorted(self.excluded_rows),
        }
        if self.token:
            payload["session_token"] = self.token
        return payload

    def to_staging(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "all_data": [m.to_payload() for m in self.all_data],
            "duplicates": [d.model_dump(mode="json") for d in self.duplicates],
        }

    @classmethod
    def from_staging(cls, doc: Mapping[str, Any]) -> "UploadSession":
        payload = doc.get("payload") or {}
        return cls(
            filename=payload.get("filename") or "",
            all_data=[CanonicalMember.model_validate(m) for m in payload.get("all_data") or []],
            duplicates=[DuplicateFlag.model_validate(d) for d in payload.get("duplicates") or []],
            token=doc.get("token"),
            created_by=doc.get("created_by"),
        )


def stage_session(
    session: UploadSession,
    *,
    repo: Optional[UploadSessionRepository] = None,
    created_by: Optional[str] = None,
    ttl_seconds: Optional[int] = None,
) -> str:
    """Park ``session`` server-side and return its token."""

    repo = repo or UploadSessionRepository()
    token = repo.save(
        session.to_staging(),
        ttl_seconds=ttl_seconds or settings.UPLOAD_SESSION_TTL_SECONDS,
        created_by=created_by,
    )
    session.token = token
    return token


def load_session(
    token: str,
    *,
    repo: Optional[UploadSessionRepository] = None,
    excluded_rows: Iterable[int] = (),
    owner: Optional[str] = None,
) -> UploadSession:
    """
    Load a staged session; raises :class:`UploadSessionNotFoundError` when
    missing, expired, or (when ``owner`` is given) staged by someone else.
    """

    repo = repo or UploadSessionRepository()
    doc = repo.load(token) if token else None
    if not doc:
        raise UploadSessionNotFoundError(details={"session_token": token})
    session = UploadSession.from_staging(doc)
    if owner is not None and session.created_by != owner:
        # Reported as an unknown token.
        raise UploadSessionNotFoundError(details={"session_token": token})
    session.excluded_rows = {int(r) for r in excluded_rows}
    return session


def discard_session(token: str, *, repo: Optional[UploadSessionRepository] = None) -> bool:
    repo = repo or UploadSessionRepository()
    return repo.discard(token) > 0
