# services/member_import_service.py
"""
================================================================================
Member Upload: process + import
================================================================================

Two calls make up an upload:

1. ``process_upload``: read the file, normalize headers, parse every row and
   flag duplicates. No member is written. The caller gets the full parsed
   batch (``all_data``) back and hands it to the reviewer.
2. ``import_members``: take that batch plus the reviewer's excluded rows and
   persist each remaining record on its own. A bad row is recorded in the
   report and the import moves on; only an unreachable store or a missing
   caller identity aborts the call.

Rows are always referenced by ``source_row`` (1-based position under the
header), never by database id.
================================================================================
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Union

from email_validator import EmailNotValidError, validate_email
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import ConnectionFailure, PyMongoError

from config import settings
from domain.models.member import CanonicalMember, ImportResult, Member, MemberStatus, RowError
from middleware.errors import (
    DatabaseConnectionError,
    FatalImportError,
    ImportValidationError,
    InvalidImportPayloadError,
)
from repositories.member_repository import MemberRepository
from services.duplicate_detector import detect_duplicates, duplicate_info
from services.file_reader import read_member_file
from services.member_parser import parse_sheet
from utils.ic import IC_LENGTH
from utils.normalize_phones import is_local_mobile

logger = logging.getLogger(__name__)

RecordSource = Union[CanonicalMember, Mapping[str, Any]]


# ==============================================================================
# 1. Process (parse + detect, no writes)
# ==============================================================================

def process_upload(
    data: bytes,
    filename: str,
    *,
    repo: Optional[MemberRepository] = None,
    sample_size: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Parse an uploaded member file and flag duplicates.

    Raises :class:`~middleware.errors.FileFormatError` if the file cannot be
    read or has no name column. Calling this twice on the same bytes yields
    the same ``all_data`` and ``duplicates``.
    """

    repo = repo if repo is not None else MemberRepository()
    sample_size = settings.UPLOAD_SAMPLE_SIZE if sample_size is None else sample_size

    sheet = read_member_file(data, filename)
    members = parse_sheet(sheet)

    try:
        duplicates = detect_duplicates(members, repo)
    except ConnectionFailure as exc:
        raise DatabaseConnectionError("Member store is unavailable", details={"reason": str(exc)}) from exc

    duplicate_rows = {flag.row for flag in duplicates}
    parse_errors = [
        RowError(row=m.source_row, name=m.name or None, error=m.parse_error)
        for m in members
        if not m.is_valid
    ]
    valid_records = sum(1 for m in members if m.is_valid and m.source_row not in duplicate_rows)

    logger.info(
        "Processed %s: %d records, %d duplicates, %d parse errors",
        filename, len(members), len(duplicates), len(parse_errors),
    )

    all_data = [m.to_payload() for m in members]
    return {
        "total_records": len(members),
        "valid_records": valid_records,
        "duplicates_count": len(duplicates),
        "duplicates": [d.model_dump(mode="json") for d in duplicates],
        "parse_errors": [e.model_dump() for e in parse_errors],
        "sample_data": all_data[:sample_size],
        "all_data": all_data,
        "filename": filename,
    }


# ==============================================================================
# 2. Import-time validation
# ==============================================================================

def validate_for_import(record: CanonicalMember) -> None:
    """
    Stricter checks than parsing. Raises :class:`ImportValidationError` with a
    human readable reason for the first failed rule.
    """

    row = record.source_row
    if record.parse_error:
        raise ImportValidationError(record.parse_error, row=row)
    if not record.name:
        raise ImportValidationError("missing name", row=row)
    if record.ic_no:
        if not record.ic_no.isdigit() or len(record.ic_no) != IC_LENGTH:
            raise ImportValidationError(
                f"IC number must be exactly {IC_LENGTH} digits (got {len(record.ic_no)})",
                row=row,
            )
    if record.phone and not is_local_mobile(record.phone):
        raise ImportValidationError(
            f"phone number '{record.phone}' is not a valid mobile number (expected 01XXXXXXXX)",
            row=row,
        )
    if record.email:
        try:
            validate_email(record.email, check_deliverability=False)
        except EmailNotValidError as exc:
            raise ImportValidationError(f"invalid email address: {exc}", row=row) from exc


# ==============================================================================
# 3. Payload coercion
# ==============================================================================

def _row_of(source: RecordSource) -> int:
    if not isinstance(source, (CanonicalMember, Mapping)):
        raise InvalidImportPayloadError("Each record in members_data must be an object")
    raw = source.source_row if isinstance(source, CanonicalMember) else source.get("source_row")
    try:
        row = int(raw)
    except (TypeError, ValueError):
        raise InvalidImportPayloadError(
            "Every record must carry the source_row it was given by the process step",
            details={"source_row": raw},
        ) from None
    if row < 1:
        raise InvalidImportPayloadError("source_row must be a positive integer", details={"source_row": raw})
    return row


def coerce_excluded_rows(excluded_rows: Optional[Iterable[Any]]) -> Set[int]:
    rows: Set[int] = set()
    for value in excluded_rows or ():
        try:
            rows.add(int(value))
        except (TypeError, ValueError):
            raise InvalidImportPayloadError(
                "excluded_rows must contain row numbers", details={"value": value}
            ) from None
    return rows


def _name_of(source: RecordSource) -> Optional[str]:
    name = source.name if isinstance(source, CanonicalMember) else source.get("name")
    if name is None:
        return None
    return str(name).strip() or None


def _validation_message(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "invalid record"


# ==============================================================================
# 4. Import (per-row commit)
# ==============================================================================

def import_members(
    all_data: Sequence[RecordSource],
    filename: str,
    excluded_rows: Optional[Iterable[Any]] = None,
    *,
    uploaded_by: Optional[str],
    repo: Optional[MemberRepository] = None,
    batch_id: Optional[int] = None,
) -> ImportResult:
    """
    Persist every non-excluded record of ``all_data`` as a pending member.

    Rows are handled in ascending ``source_row`` order and independently: a
    failing row increments ``failed`` and is reported in ``errors``; it never
    rolls back or stops the others. Excluded rows are not processed at all.

    Raises :class:`FatalImportError` when ``uploaded_by`` is missing or the
    store is unreachable, and :class:`InvalidImportPayloadError` when rows
    lack a usable or unique ``source_row``.
    """

    if not uploaded_by or not str(uploaded_by).strip():
        raise FatalImportError("Cannot import without the uploading user's identity")
    if all_data is None:
        raise InvalidImportPayloadError("members_data is required")

    excluded = coerce_excluded_rows(excluded_rows)

    indexed: Dict[int, RecordSource] = {}
    for source in all_data:
        row = _row_of(source)
        if row in indexed:
            raise InvalidImportPayloadError(
                "source_row values must be unique within an upload", details={"source_row": row}
            )
        indexed[row] = source

    repo = repo if repo is not None else MemberRepository()
    try:
        repo.ping()
    except PyMongoError as exc:
        raise FatalImportError("Member store is unavailable", details={"reason": str(exc)}) from exc

    result = ImportResult(batch_id=batch_id if batch_id is not None else int(time.time()))
    result.excluded = len(excluded & indexed.keys())

    to_import: List[tuple[int, Optional[CanonicalMember], Optional[str]]] = []
    for row in sorted(indexed):
        if row in excluded:
            continue
        source = indexed[row]
        if isinstance(source, CanonicalMember):
            to_import.append((row, source, None))
            continue
        try:
            to_import.append((row, CanonicalMember.model_validate(dict(source)), None))
        except PydanticValidationError as exc:
            to_import.append((row, None, _validation_message(exc)))

    # Annotate what is about to be written so reviewers see duplicates in the approval queue.
    candidates = [m for _, m, _ in to_import if m is not None and m.is_valid]
    try:
        flags = {flag.row: flag for flag in detect_duplicates(candidates, repo)}
    except ConnectionFailure as exc:
        raise FatalImportError("Member store is unavailable", details={"reason": str(exc)}) from exc

    for row, record, coerce_error in to_import:
        name = record.name if record is not None else _name_of(indexed[row])
        try:
            if record is None:
                raise ImportValidationError(coerce_error, row=row)
            validate_for_import(record)

            flag = flags.get(row)
            member = Member(
                **record.model_dump(exclude={"source_row", "parse_error"}),
                source_row=row,
                uploaded_by=str(uploaded_by),
                status=MemberStatus.pending,
                original_filename=filename,
                import_batch_id=result.batch_id,
                has_duplicates=flag is not None,
                duplicate_info=duplicate_info(flag) if flag else None,
            )
            member_id = repo.insert(member)
        except ImportValidationError as exc:
            result.failed += 1
            result.errors.append(RowError(row=row, name=name or None, error=exc.message))
            continue
        except PydanticValidationError as exc:
            result.failed += 1
            result.errors.append(RowError(row=row, name=name or None, error=_validation_message(exc)))
            continue
        except ConnectionFailure as exc:
            logger.error("Import of %s aborted at row %d: %s", filename, row, exc)
            raise FatalImportError(
                "Member store became unavailable during import",
                details={
                    "reason": str(exc),
                    "row": row,
                    "successful_before_abort": result.successful,
                },
            ) from exc
        except PyMongoError as exc:
            result.failed += 1
            result.errors.append(RowError(row=row, name=name or None, error=f"could not save record: {exc}"))
            continue

        result.successful += 1
        result.created_members.append(
            {"id": member_id, "name": member.name, "ic_no": member.ic_no, "row": row}
        )

    result.total_processed = result.successful + result.failed
    logger.info(
        "Imported %s (batch %s) by %s: %d successful, %d failed, %d excluded",
        filename, result.batch_id, uploaded_by, result.successful, result.failed, result.excluded,
    )
    return result
