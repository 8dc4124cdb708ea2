# config/database.py
from __future__ import annotations

import os
from typing import Optional
from urllib.parse import quote_plus

from pymongo import MongoClient
from pymongo.server_api import ServerApi

from middleware.errors import ConfigurationError


def _build_mongo_uri() -> str:
    """
    Build the MongoDB URI.
    Precedence:
      1. TEST_MONGODB_URI (for CI/tests)
      2. MONGODB_URI (full connection string)
      3. Individual parts: DB_USER / DB_PASSWORD / DB_HOST / DB_NAME
    """
    test_uri = os.getenv("TEST_MONGODB_URI")
    if test_uri:
        return test_uri

    uri = os.getenv("MONGODB_URI")
    if uri:
        return uri

    user = os.getenv("DB_USER", "").strip()
    pwd = os.getenv("DB_PASSWORD", "").strip()
    host = os.getenv("DB_HOST", "").strip()
    dbname = os.getenv("DB_NAME", "branch_office").strip()

    if not (user and pwd and host):
        raise ConfigurationError(
            "Missing Mongo credentials. Set TEST_MONGODB_URI, MONGODB_URI or "
            "DB_USER/DB_PASSWORD/DB_HOST (and optionally DB_NAME)."
        )

    return (
        f"mongodb+srv://{user}:{quote_plus(pwd)}@{host}/{dbname}"
        f"?retryWrites=true&w=majority&tls=true"
    )


class MongoConnection:
    """
    Singleton MongoDB client & DB accessor.
    - Holds a single pooled client for the process, created on first use.
    - Offers helpers to get the DB and collections.
    """

    _instance: Optional["MongoConnection"] = None

    def __new__(cls) -> "MongoConnection":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._client = None
            cls._instance._db_name = os.getenv("DB_NAME", "branch_office")
        return cls._instance

    def _init_client(self) -> None:
        uri = _build_mongo_uri()
        kwargs = {}
        if uri.startswith("mongodb+srv://"):
            kwargs = {"server_api": ServerApi("1"), "tls": True}
        timeout_ms = int(os.getenv("DB_TIMEOUT_MS", "5000"))
        self._client = MongoClient(uri, serverSelectionTimeoutMS=timeout_ms, **kwargs)

    @property
    def client(self) -> MongoClient:
        """Return the shared MongoClient instance."""
        if self._client is None:
            self._init_client()
        return self._client

    def db(self):
        """Return the default database handle."""
        return self.client[self._db_name]

    def collection(self, name: str):
        """Return a collection handle from the default DB."""
        return self.db()[name]

    def ping(self) -> None:
        """Raise if the server cannot be reached."""
        self.client.admin.command("ping")

    def close(self) -> None:
        """Close the client and reset the singleton (used in tests/shutdown)."""
        if getattr(self, "_client", None) is not None:
            self._client.close()
        type(self)._instance = None


# Module-level singleton accessor
mongodb = MongoConnection()


def bootstrap_indexes() -> None:
    """
    Create the indexes the import pipeline relies on.
    Only runs when DB_BOOTSTRAP_INDEXES=1.
    """
    if os.getenv("DB_BOOTSTRAP_INDEXES", "0") != "1":
        return

    from repositories.member_repository import MemberRepository
    from repositories.upload_session_repository import UploadSessionRepository

    MemberRepository().ensure_indexes()
    UploadSessionRepository().ensure_indexes()
