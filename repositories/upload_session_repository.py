from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from pymongo import ASCENDING
from pymongo.collection import Collection

from config.database import mongodb


class UploadSessionRepository:
    """Short-lived server-side staging of parsed uploads, keyed by an opaque token."""

    def __init__(self) -> None:
        self.collection: Collection = mongodb.collection("upload_sessions")

    def ensure_indexes(self) -> None:
        """Unique token lookup plus a TTL index so abandoned sessions expire."""
        self.collection.create_index([("token", ASCENDING)], unique=True)
        self.collection.create_index([("expires_at", ASCENDING)], expireAfterSeconds=0)

    def save(self, payload: Dict[str, Any], *, ttl_seconds: int, created_by: Optional[str] = None) -> str:
        """Store ``payload`` and return the new token."""
        token = secrets.token_urlsafe(24)
        now = datetime.now(timezone.utc)
        self.collection.insert_one(
            {
                "token": token,
                "created_by": created_by,
                "created_at": now,
                "expires_at": now + timedelta(seconds=ttl_seconds),
                "payload": payload,
            }
        )
        return token

    def load(self, token: str) -> Optional[Dict[str, Any]]:
        """Return the staged document, or ``None`` if unknown or expired."""
        doc = self.collection.find_one({"token": token})
        if not doc:
            return None
        expires_at = doc.get("expires_at")
        if isinstance(expires_at, datetime):
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            # The TTL monitor only runs once a minute.
            if expires_at <= datetime.now(timezone.utc):
                return None
        return doc

    def discard(self, token: str) -> int:
        result = self.collection.delete_one({"token": token})
        return result.deleted_count
