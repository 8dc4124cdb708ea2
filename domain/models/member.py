from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any, List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from utils.helpers import _normalize, empty_to_none


class Gender(StrEnum):
    male = "M"
    female = "F"


class MemberStatus(StrEnum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


def name_key(name: Optional[str]) -> str:
    """Case-insensitive lookup key for a member name."""
    return _normalize(name).casefold()


class CanonicalMember(BaseModel):
    """
    One normalized spreadsheet row.

    Partial IC/phone values are kept here; the importer applies the strict
    rules.
    """

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    source_row: int = Field(..., ge=1, description="1-based row number in the uploaded file")
    name: str = ""
    ic_no: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None

    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postcode: Optional[str] = None

    gender: Optional[Gender] = None
    age: Optional[int] = None
    date_of_birth: Optional[str] = None

    member_no: Optional[str] = None
    race: Optional[str] = None
    branch: Optional[str] = None
    occupation: Optional[str] = None
    membership_type: Optional[str] = None
    join_date: Optional[str] = None
    remarks: Optional[str] = None

    parse_error: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _clean_name(cls, v):
        return _normalize(str(v)) if v is not None else ""

    @field_validator(
        "ic_no", "phone", "email", "address", "city", "state", "postcode",
        "date_of_birth", "member_no", "race", "branch", "occupation",
        "membership_type", "join_date", "remarks", "parse_error",
        mode="before",
    )
    @classmethod
    def _empty_to_none(cls, v):
        return empty_to_none(v)

    @field_validator("gender", mode="before")
    @classmethod
    def _blank_gender(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return v

    @field_validator("age", mode="before")
    @classmethod
    def _blank_age(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return v

    @property
    def is_valid(self) -> bool:
        return self.parse_error is None

    def to_payload(self) -> dict:
        """JSON-ready dict as handed to the client for the import round-trip."""
        return self.model_dump(mode="json")


class DatabaseDuplicate(BaseModel):
    member_id: Optional[str] = None
    name: Optional[str] = None
    ic_no: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[str] = None
    matched_fields: List[str] = Field(default_factory=list)


class ImportDuplicate(BaseModel):
    row: int
    name: Optional[str] = None
    matched_fields: List[str] = Field(default_factory=list)


class DuplicateFlag(BaseModel):
    """Duplicate annotation for one batch row; never built with both lists empty."""

    row: int
    name: Optional[str] = None
    ic_no: Optional[str] = None
    phone: Optional[str] = None
    database_duplicates: List[DatabaseDuplicate] = Field(default_factory=list)
    import_duplicates: List[ImportDuplicate] = Field(default_factory=list)

    @property
    def matched_fields(self) -> List[str]:
        fields: set[str] = set()
        for match in [*self.database_duplicates, *self.import_duplicates]:
            fields.update(match.matched_fields)
        return sorted(fields)


class RowError(BaseModel):
    row: int
    name: Optional[str] = None
    error: str


class ImportResult(BaseModel):
    successful: int = 0
    failed: int = 0
    total_processed: int = 0
    excluded: int = 0
    batch_id: Optional[int] = None
    errors: List[RowError] = Field(default_factory=list)
    created_members: List[dict[str, Any]] = Field(default_factory=list)


class Member(BaseModel):
    """Persisted member document (``members`` collection)."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    id: Optional[str] = Field(default=None, alias="_id", description="MongoDB identifier")

    name: str = Field(..., min_length=1)
    name_key: str = ""
    ic_no: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postcode: Optional[str] = None
    gender: Optional[Gender] = None
    age: Optional[int] = None
    date_of_birth: Optional[str] = None
    member_no: Optional[str] = None
    race: Optional[str] = None
    branch: Optional[str] = None
    occupation: Optional[str] = None
    membership_type: Optional[str] = None
    join_date: Optional[str] = None
    remarks: Optional[str] = None

    # Import / approval trail
    uploaded_by: str = Field(..., min_length=1)
    status: MemberStatus = MemberStatus.pending
    is_active: bool = True
    original_filename: Optional[str] = None
    import_batch_id: Optional[int] = None
    source_row: Optional[int] = None
    has_duplicates: bool = False
    duplicate_info: Optional[dict[str, Any]] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    approval_notes: Optional[str] = None
    created_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _default_name_key(self) -> "Member":
        if not self.name_key:
            self.name_key = name_key(self.name)
        return self

    def to_mongo(self) -> dict:
        data = self.model_dump(exclude_none=True, by_alias=True)
        if isinstance(data.get("_id"), str):
            data["_id"] = ObjectId(data["_id"])
        return data

    @classmethod
    def from_mongo(cls, doc: dict | None) -> "Member | None":
        if not doc:
            return None
        doc = dict(doc)
        if doc.get("_id") is not None:
            doc["_id"] = str(doc["_id"])
        return cls.model_validate(doc)

    def to_display_dict(self) -> dict:
        data = self.model_dump(mode="json", exclude_none=True)
        data.pop("name_key", None)
        return data
