from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection

from config.database import mongodb
from domain.models.member import Member, MemberStatus


def _object_id(member_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(member_id)
    except (InvalidId, TypeError):
        return None


class MemberRepository:
    """Repository for persisted members (``members`` collection)."""

    def __init__(self) -> None:
        self.collection: Collection = mongodb.collection("members")

    def ensure_indexes(self) -> None:
        """Create indexes used by duplicate lookups and the approval queue."""
        self.collection.create_index([("name_key", ASCENDING)])
        self.collection.create_index([("ic_no", ASCENDING)])
        self.collection.create_index([("phone", ASCENDING)])
        self.collection.create_index([("status", ASCENDING), ("created_at", DESCENDING)])

    def ping(self) -> None:
        """Raise a pymongo error if the store is unreachable."""
        self.collection.database.client.admin.command("ping")

    def insert(self, member: Member) -> str:
        """Insert a new member document and return its id."""
        payload = member.to_mongo()
        payload.setdefault("created_at", datetime.now(timezone.utc))
        result = self.collection.insert_one(payload)
        return str(result.inserted_id)

    def find_by_id(self, member_id: str) -> Optional[Member]:
        oid = _object_id(member_id)
        if oid is None:
            return None
        return Member.from_mongo(self.collection.find_one({"_id": oid}))

    def find_matching(
        self,
        *,
        name_keys: Iterable[str] = (),
        ic_numbers: Iterable[str] = (),
        phones: Iterable[str] = (),
    ) -> List[Member]:
        """
        Return every member whose name key, IC number or phone is in the given
        sets. Empty values are never queried.
        """
        clauses: List[Dict[str, Any]] = []
        for field, values in (
            ("name_key", name_keys),
            ("ic_no", ic_numbers),
            ("phone", phones),
        ):
            wanted = sorted({v for v in values if v})
            if wanted:
                clauses.append({field: {"$in": wanted}})
        if not clauses:
            return []

        projection = {"name": 1, "name_key": 1, "ic_no": 1, "phone": 1, "status": 1, "uploaded_by": 1}
        cursor = self.collection.find({"$or": clauses}, projection)
        return [Member.from_mongo(doc) for doc in cursor]

    def find_by_status(self, status: MemberStatus, *, skip: int = 0, limit: int = 0) -> List[Member]:
        """Members with ``status``, newest first."""
        cursor = (
            self.collection.find({"status": MemberStatus(status).value})
            .sort("created_at", DESCENDING)
            .skip(skip)
        )
        if limit:
            cursor = cursor.limit(limit)
        return [Member.from_mongo(doc) for doc in cursor]

    def count(self, query: Optional[Dict[str, Any]] = None) -> int:
        return self.collection.count_documents(query or {})

    def count_by_status(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in MemberStatus}
        for row in self.collection.aggregate([{"$group": {"_id": "$status", "count": {"$sum": 1}}}]):
            if row.get("_id") in counts:
                counts[row["_id"]] = row["count"]
        return counts

    def set_status_if_pending(
        self,
        member_id: str,
        status: MemberStatus,
        *,
        approved_by: str,
        notes: Optional[str] = None,
    ) -> int:
        """Move a pending member to ``status``; returns 1 if it was updated."""
        oid = _object_id(member_id)
        if oid is None:
            return 0
        result = self.collection.update_one(
            {"_id": oid, "status": MemberStatus.pending.value},
            {
                "$set": {
                    "status": MemberStatus(status).value,
                    "approved_by": approved_by,
                    "approved_at": datetime.now(timezone.utc),
                    "approval_notes": notes,
                }
            },
        )
        return result.modified_count

    def delete(self, member_id: str) -> int:
        """Delete a member by id."""
        oid = _object_id(member_id)
        if oid is None:
            return 0
        result = self.collection.delete_one({"_id": oid})
        return result.deleted_count
