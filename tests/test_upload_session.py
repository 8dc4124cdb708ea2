import pytest

from domain.models.member import CanonicalMember, DuplicateFlag, ImportDuplicate
from middleware.errors import UploadSessionNotFoundError
from services.upload_session import UploadSession, discard_session, load_session, stage_session


def _session():
    return UploadSession(
        filename="members.csv",
        all_data=[
            CanonicalMember(source_row=1, name="Ali"),
            CanonicalMember(source_row=2, name="ali"),
            CanonicalMember(source_row=3, name="Bob"),
        ],
        duplicates=[
            DuplicateFlag(row=1, name="Ali", import_duplicates=[ImportDuplicate(row=2, matched_fields=["name"])]),
            DuplicateFlag(row=2, name="ali", import_duplicates=[ImportDuplicate(row=1, matched_fields=["name"])]),
        ],
    )


def test_exclusion_editing():
    session = _session()

    session.exclude(2)
    assert session.excluded_rows == {2}
    assert session.toggle(2) is False
    assert session.toggle(3) is True
    session.include(3)
    assert session.excluded_rows == set()

    session.exclude_all_duplicates()
    assert session.excluded_rows == {1, 2}
    session.clear_exclusions()
    assert session.excluded_rows == set()


def test_exclusion_rejects_unknown_rows():
    with pytest.raises(KeyError):
        _session().exclude(9)


def test_import_payload_references_rows_not_ids():
    session = _session()
    session.exclude(2)
    payload = session.to_import_payload()

    assert payload["filename"] == "members.csv"
    assert payload["excluded_rows"] == [2]
    assert [m["source_row"] for m in payload["members_data"]] == [1, 2, 3]
    assert "session_token" not in payload


def test_stage_and_load_round_trip(session_repo):
    session = _session()
    token = stage_session(session, repo=session_repo, created_by="clerk", ttl_seconds=120)

    assert session.token == token
    assert session_repo.docs[token]["ttl_seconds"] == 120
    assert session_repo.docs[token]["created_by"] == "clerk"

    loaded = load_session(token, repo=session_repo, excluded_rows=["2"])
    assert loaded.filename == "members.csv"
    assert loaded.token == token
    assert loaded.excluded_rows == {2}
    assert [m.name for m in loaded.all_data] == ["Ali", "ali", "Bob"]
    assert loaded.duplicate_rows == {1, 2}
    assert loaded.to_import_payload()["session_token"] == token


def test_load_missing_session(session_repo):
    with pytest.raises(UploadSessionNotFoundError) as exc:
        load_session("nope", repo=session_repo)
    assert exc.value.code == 404


def test_load_session_checks_owner(session_repo):
    token = stage_session(_session(), repo=session_repo, created_by="clerk")

    assert load_session(token, repo=session_repo, owner="clerk").created_by == "clerk"
    with pytest.raises(UploadSessionNotFoundError):
        load_session(token, repo=session_repo, owner="someone-else")


def test_discard_session(session_repo):
    token = stage_session(_session(), repo=session_repo)
    assert discard_session(token, repo=session_repo) is True
    assert discard_session(token, repo=session_repo) is False
