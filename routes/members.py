# routes/members.py
"""JSON API for the member upload flow and the pending-approval queue."""

from __future__ import annotations

from typing import Any

from flask import Blueprint, current_app, jsonify, request
from pymongo.errors import PyMongoError
from werkzeug.utils import secure_filename

from config import settings
from domain.models.member import CanonicalMember, DuplicateFlag
from middleware.auth import current_username, login_required
from middleware.errors import FatalImportError, FileFormatError, InvalidImportPayloadError, ValidationError
from repositories.member_repository import MemberRepository
from repositories.upload_session_repository import UploadSessionRepository
from services.approval_service import (
    DEFAULT_PER_PAGE,
    approve_members,
    delete_members,
    list_pending,
    reject_members,
)
from services.file_reader import allowed_file
from services.member_import_service import import_members, process_upload
from services.upload_session import (
    UploadSession,
    discard_session,
    load_session,
    stage_session,
)

members_bp = Blueprint("members", __name__, url_prefix="/api/members")


def get_member_repository() -> MemberRepository:
    return MemberRepository()


def get_upload_session_repository() -> UploadSessionRepository:
    return UploadSessionRepository()


def _json_body() -> dict[str, Any]:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("Expected a JSON object body")
    return body


@members_bp.post("/upload/process")
@login_required
def upload_process():
    """
    Parse the uploaded spreadsheet and report duplicates. Writes no members.

    The parsed batch is also staged server-side; the returned
    ``session_token`` may be sent to ``/upload/import`` instead of the data.
    """
    f = request.files.get("file")
    if not f or not f.filename:
        raise FileFormatError("No file selected")
    if not allowed_file(f.filename):
        raise FileFormatError(
            "Unsupported file type. Please upload a .csv or .xlsx file.",
            details={"filename": f.filename},
        )

    data = f.read(settings.UPLOAD_MAX_BYTES + 1)
    if len(data) > settings.UPLOAD_MAX_BYTES:
        raise FileFormatError(
            "File is too large",
            details={"max_bytes": settings.UPLOAD_MAX_BYTES},
        )

    filename = secure_filename(f.filename) or f.filename
    result = process_upload(data, filename, repo=get_member_repository())

    session = UploadSession(
        filename=filename,
        all_data=[CanonicalMember.model_validate(m) for m in result["all_data"]],
        duplicates=[DuplicateFlag.model_validate(d) for d in result["duplicates"]],
    )
    try:
        result["session_token"] = stage_session(
            session,
            repo=get_upload_session_repository(),
            created_by=current_username(),
        )
    except PyMongoError:
        # The client still holds all_data and can import without a token.
        current_app.logger.warning("Could not stage upload %s", filename, exc_info=True)
        result["session_token"] = None

    return jsonify({"success": True, "data": result})


@members_bp.post("/upload/import")
@login_required
def upload_import():
    """Import the reviewed batch; excluded rows are skipped."""
    body = _json_body()
    excluded_rows = body.get("excluded_rows") or []
    if not isinstance(excluded_rows, list):
        raise InvalidImportPayloadError("excluded_rows must be a list of row numbers")

    username = current_username()
    if username is None:
        raise FatalImportError("Cannot import without the uploading user's identity")

    token = body.get("session_token")
    if token:
        session = load_session(str(token), repo=get_upload_session_repository(), owner=username)
        members_data: Any = session.all_data
        filename = session.filename or body.get("filename") or ""
    else:
        members_data = body.get("members_data", body.get("all_data"))
        filename = body.get("filename") or ""
        if not isinstance(members_data, list):
            raise InvalidImportPayloadError("members_data must be a list of parsed records")
    if not filename:
        raise InvalidImportPayloadError("filename is required")

    result = import_members(
        members_data,
        filename,
        excluded_rows,
        uploaded_by=username,
        repo=get_member_repository(),
    )

    if token:
        discard_session(str(token), repo=get_upload_session_repository())

    return jsonify({
        "success": True,
        "message": "Import completed",
        "data": result.model_dump(mode="json"),
    })


@members_bp.delete("/upload/session/<token>")
@login_required
def upload_discard(token: str):
    """Drop a staged upload the reviewer abandoned."""
    removed = discard_session(token, repo=get_upload_session_repository())
    return jsonify({"success": True, "discarded": removed})


@members_bp.get("/pending")
@login_required
def pending_members():
    page = request.args.get("page", 1, type=int)
    per_page = request.args.get("per_page", DEFAULT_PER_PAGE, type=int)
    payload = list_pending(page=page, per_page=per_page, repo=get_member_repository())
    return jsonify({"success": True, **payload})


def _acting_user() -> str:
    return current_username() or "system"


@members_bp.post("/approve")
@login_required
def approve():
    body = _json_body()
    outcome = approve_members(
        body.get("member_ids"),
        approved_by=_acting_user(),
        notes=body.get("notes"),
        repo=get_member_repository(),
    )
    current_app.logger.info("%s approved %d members", _acting_user(), outcome.count)
    return jsonify({
        "success": True,
        "message": f"Successfully approved {outcome.count} members",
        "approved_count": outcome.count,
        "errors": outcome.errors,
    })


@members_bp.post("/reject")
@login_required
def reject():
    body = _json_body()
    outcome = reject_members(
        body.get("member_ids"),
        rejected_by=_acting_user(),
        notes=body.get("notes"),
        repo=get_member_repository(),
    )
    current_app.logger.info("%s rejected %d members", _acting_user(), outcome.count)
    return jsonify({
        "success": True,
        "message": f"Successfully rejected {outcome.count} members",
        "rejected_count": outcome.count,
        "errors": outcome.errors,
    })


@members_bp.post("/delete-duplicates")
@login_required
def delete_duplicates():
    body = _json_body()
    outcome = delete_members(body.get("member_ids"), repo=get_member_repository())
    return jsonify({
        "success": True,
        "message": f"Successfully deleted {outcome.count} members",
        "deleted_count": outcome.count,
        "errors": outcome.errors,
    })
