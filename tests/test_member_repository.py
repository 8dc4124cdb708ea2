from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from bson import ObjectId

import repositories.member_repository as member_repo_module
import repositories.upload_session_repository as session_repo_module
from domain.models.member import Member, MemberStatus


class DummyCollection:
    def __init__(self, docs=None):
        self.docs = list(docs or [])
        self.queries = []
        self.indexes = []

    def _matches(self, doc, query):
        for key, value in query.items():
            if key == "$or":
                if not any(self._matches(doc, clause) for clause in value):
                    return False
            elif isinstance(value, dict) and "$in" in value:
                if doc.get(key) not in value["$in"]:
                    return False
            elif doc.get(key) != value:
                return False
        return True

    def find(self, query, projection=None):
        self.queries.append((query, projection))
        return [doc for doc in self.docs if self._matches(doc, query)]

    def find_one(self, query):
        return next(iter(self.find(query)), None)

    def insert_one(self, doc):
        doc.setdefault("_id", ObjectId())
        self.docs.append(doc)
        return SimpleNamespace(inserted_id=doc["_id"])

    def update_one(self, query, update):
        doc = self.find_one(query)
        if doc is None:
            return SimpleNamespace(modified_count=0)
        doc.update(update["$set"])
        return SimpleNamespace(modified_count=1)

    def delete_one(self, query):
        doc = self.find_one(query)
        if doc is None:
            return SimpleNamespace(deleted_count=0)
        self.docs.remove(doc)
        return SimpleNamespace(deleted_count=1)

    def count_documents(self, query):
        return len(self.find(query))

    def create_index(self, keys, **kwargs):
        self.indexes.append((keys, kwargs))


class DummyMongo:
    def __init__(self, docs=None):
        self._collection = DummyCollection(docs)

    def collection(self, name):  # noqa: ARG002 - name unused
        return self._collection


def _build_repo(monkeypatch, docs=None):
    monkeypatch.setattr(member_repo_module, "mongodb", DummyMongo(docs))
    return member_repo_module.MemberRepository()


def _doc(name, **extra):
    doc = {
        "_id": ObjectId(),
        "name": name,
        "name_key": name.lower(),
        "uploaded_by": "seed",
        "status": "pending",
    }
    doc.update(extra)
    return doc


def test_insert_stores_name_key_and_created_at(monkeypatch):
    repo = _build_repo(monkeypatch)

    member_id = repo.insert(Member(name="Siti  Aminah", uploaded_by="clerk", ic_no="850505105678"))

    stored = repo.collection.docs[0]
    assert str(stored["_id"]) == member_id
    assert stored["name_key"] == "siti aminah"
    assert stored["status"] == "pending"
    assert isinstance(stored["created_at"], datetime)
    assert "email" not in stored


def test_find_matching_builds_single_or_query(monkeypatch):
    docs = [
        _doc("Ali", ic_no="900101145679"),
        _doc("Bob", phone="0123456789"),
        _doc("Chong"),
    ]
    repo = _build_repo(monkeypatch, docs)

    found = repo.find_matching(name_keys=["ali", ""], ic_numbers=[], phones=["0123456789"])

    assert sorted(m.name for m in found) == ["Ali", "Bob"]
    assert all(isinstance(m.id, str) for m in found)
    query, projection = repo.collection.queries[-1]
    assert query == {"$or": [{"name_key": {"$in": ["ali"]}}, {"phone": {"$in": ["0123456789"]}}]}
    assert projection["status"] == 1


def test_find_matching_without_keys_does_not_query(monkeypatch):
    repo = _build_repo(monkeypatch, [_doc("Ali")])

    assert repo.find_matching(name_keys=[""], ic_numbers=[], phones=[]) == []
    assert repo.collection.queries == []


def test_find_by_id_handles_invalid_ids(monkeypatch):
    doc = _doc("Ali")
    repo = _build_repo(monkeypatch, [doc])

    assert repo.find_by_id(str(doc["_id"])).name == "Ali"
    assert repo.find_by_id("not-an-object-id") is None
    assert repo.delete("not-an-object-id") == 0


def test_set_status_only_moves_pending_members(monkeypatch):
    pending = _doc("Ali")
    approved = _doc("Bob", status="approved")
    repo = _build_repo(monkeypatch, [pending, approved])

    assert repo.set_status_if_pending(str(pending["_id"]), MemberStatus.rejected, approved_by="boss") == 1
    assert pending["status"] == "rejected"
    assert pending["approved_by"] == "boss"

    assert repo.set_status_if_pending(str(approved["_id"]), MemberStatus.rejected, approved_by="boss") == 0
    assert approved["status"] == "approved"


def test_ensure_indexes(monkeypatch):
    repo = _build_repo(monkeypatch)
    repo.ensure_indexes()

    keys = [keys for keys, _ in repo.collection.indexes]
    assert [("name_key", 1)] in keys
    assert [("ic_no", 1)] in keys
    assert [("phone", 1)] in keys


def test_upload_session_round_trip_and_expiry(monkeypatch):
    monkeypatch.setattr(session_repo_module, "mongodb", DummyMongo())
    repo = session_repo_module.UploadSessionRepository()

    token = repo.save({"filename": "m.csv"}, ttl_seconds=60, created_by="clerk")
    assert repo.load(token)["payload"] == {"filename": "m.csv"}
    assert repo.load("unknown") is None

    repo.collection.docs[0]["expires_at"] = datetime.now(timezone.utc) - timedelta(seconds=1)
    assert repo.load(token) is None

    assert repo.discard(token) == 1
    assert repo.discard(token) == 0


def test_upload_session_indexes_expire_documents(monkeypatch):
    monkeypatch.setattr(session_repo_module, "mongodb", DummyMongo())
    repo = session_repo_module.UploadSessionRepository()
    repo.ensure_indexes()

    assert ([("token", 1)], {"unique": True}) in repo.collection.indexes
    assert ([("expires_at", 1)], {"expireAfterSeconds": 0}) in repo.collection.indexes
