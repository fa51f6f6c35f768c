"""
Locally persisted records that are queued for upload to Monica.

Each record kind is its own table sharing the TrackableRecord columns. A
record is created locally as "pending", pushed by the sync engine, and
becomes "synced" (with a remote_id) or "failed" (with a sync_error).
"""
import json
import uuid
from datetime import date, datetime, timezone
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from monica.models.api import (
    CallLog,
    Contact,
    Conversation,
    DayEntry,
    Debt,
    Relationship,
    UNKNOWN_NAME,
    resolve_display_name,
)

# sync_status values. "syncing" only ever exists in memory inside the engine.
PENDING = "pending"
SYNCED = "synced"
FAILED = "failed"
SYNC_STATUSES = (PENDING, SYNCED, FAILED)


def new_local_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    """Current UTC time as a naive datetime; every timestamp column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _wire_date(value: datetime) -> str:
    return value.strftime("%Y-%m-%d")


class TrackableRecord(SQLModel):
    """Columns shared by every record kind (not a table itself)."""

    local_id: str = Field(default_factory=new_local_id, primary_key=True)
    remote_id: Optional[int] = Field(default=None, index=True)
    sync_status: str = Field(default=PENDING, index=True)
    sync_error: Optional[str] = None
    last_sync_attempt: Optional[datetime] = Field(default=None, sa_type=DateTime)
    is_marked_deleted: bool = False
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)

    # API resource path, e.g. "calls" -> POST /calls
    resource: ClassVar[str] = ""
    # Column used for newest-first listing
    sort_field: ClassVar[str] = "created_at"
    # Columns the server formats; its value replaces ours after a push
    server_owned: ClassVar[Tuple[str, ...]] = ()

    def to_payload(self, for_update: bool = False) -> Dict[str, Any]:
        raise NotImplementedError

    @classmethod
    def fields_from_remote(cls, obj: Any) -> Dict[str, Any]:
        raise NotImplementedError

    @property
    def has_error(self) -> bool:
        return self.sync_status == FAILED


class CallLogRecord(TrackableRecord, table=True):
    """A phone call with a contact."""

    resource: ClassVar[str] = "calls"
    sort_field: ClassVar[str] = "called_at"

    contact_id: int = Field(index=True)
    called_at: datetime = Field(sa_type=DateTime)
    content: Optional[str] = None
    contact_called: bool = False  # True = they called me
    emotions_json: Optional[str] = None  # JSON list of emotion ids

    @property
    def emotion_ids(self) -> List[int]:
        return json.loads(self.emotions_json) if self.emotions_json else []

    def to_payload(self, for_update: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "contact_id": self.contact_id,
            "called_at": _wire_date(self.called_at),
            "content": self.content or "",
            "contact_called": self.contact_called,
        }
        if self.emotion_ids:
            payload["emotions"] = self.emotion_ids
        return payload

    @classmethod
    def fields_from_remote(cls, obj: CallLog) -> Dict[str, Any]:
        emotion_ids = [e.id for e in obj.emotions]
        return {
            "contact_id": obj.contact_id,
            "called_at": obj.called_at.replace(tzinfo=None),
            "content": obj.content,
            "contact_called": obj.contact_called,
            "emotions_json": json.dumps(emotion_ids) if emotion_ids else None,
        }


class DebtRecord(TrackableRecord, table=True):
    """Money owed between the user and a contact."""

    resource: ClassVar[str] = "debts"
    server_owned: ClassVar[Tuple[str, ...]] = ("amount_with_currency",)

    contact_id: int = Field(index=True)
    in_debt: str = "yes"  # "yes" = they owe me, "no" = I owe them
    status: str = "inprogress"  # "inprogress", "completed"
    amount: float
    amount_with_currency: Optional[str] = None
    reason: Optional[str] = None
    contact_name: Optional[str] = None

    @property
    def is_outstanding(self) -> bool:
        return self.status == "inprogress"

    def to_payload(self, for_update: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "contact_id": self.contact_id,
            "in_debt": self.in_debt,
            "status": self.status,
            "amount": self.amount,
        }
        if self.reason:
            payload["reason"] = self.reason
        return payload

    @classmethod
    def fields_from_remote(cls, obj: Debt) -> Dict[str, Any]:
        fields = {
            "contact_id": obj.contact_id,
            "in_debt": obj.in_debt,
            "status": obj.status,
            "amount": obj.amount,
            "amount_with_currency": obj.amount_with_currency,
            "reason": obj.reason,
        }
        if obj.contact is not None:
            fields["contact_name"] = resolve_display_name(obj.contact)
        return fields


class ConversationRecord(TrackableRecord, table=True):
    """A logged conversation; content is sent as the first message."""

    resource: ClassVar[str] = "conversations"
    sort_field: ClassVar[str] = "happened_at"

    contact_id: int = Field(index=True)
    happened_at: datetime = Field(sa_type=DateTime)
    contact_field_type_id: Optional[int] = None
    content: Optional[str] = None

    @property
    def has_notes(self) -> bool:
        return bool(self.content and self.content.strip())

    def to_payload(self, for_update: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"happened_at": _wire_date(self.happened_at)}
        if not for_update:
            payload["contact_id"] = self.contact_id
        if self.contact_field_type_id is not None:
            payload["contact_field_type_id"] = self.contact_field_type_id
        # new conversations get their notes as the first message instead
        if for_update and self.has_notes:
            payload["content"] = self.content
        return payload

    @classmethod
    def fields_from_remote(cls, obj: Conversation) -> Dict[str, Any]:
        return {
            "contact_id": obj.contact_id,
            "happened_at": obj.happened_at.replace(tzinfo=None),
            "contact_field_type_id": obj.contact_field_type_id,
            "content": obj.text,
        }


class RelationshipRecord(TrackableRecord, table=True):
    """A typed link from contact_id to of_contact_id."""

    resource: ClassVar[str] = "relationships"

    contact_id: int = Field(index=True)  # contact_is
    of_contact_id: int
    relationship_type_id: int
    relationship_type_name: Optional[str] = None
    of_contact_name: Optional[str] = None

    def to_payload(self, for_update: bool = False) -> Dict[str, Any]:
        if for_update:
            return {"relationship_type_id": self.relationship_type_id}
        return {
            "contact_is": self.contact_id,
            "of_contact": self.of_contact_id,
            "relationship_type_id": self.relationship_type_id,
        }

    @classmethod
    def fields_from_remote(cls, obj: Relationship) -> Dict[str, Any]:
        return {
            "contact_id": obj.contact_is.id,
            "of_contact_id": obj.of_contact.id,
            "relationship_type_id": obj.relationship_type.id,
            "relationship_type_name": obj.relationship_type.name,
            "of_contact_name": resolve_display_name(obj.of_contact),
        }


class DayEntryRecord(TrackableRecord, table=True):
    """A day's mood rating."""

    resource: ClassVar[str] = "days"
    sort_field: ClassVar[str] = "entry_date"

    entry_date: date = Field(index=True)
    rate: int  # 1 = bad, 2 = okay, 3 = great
    comment: Optional[str] = None

    def to_payload(self, for_update: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"rate": self.rate, "comment": self.comment}
        if not for_update:
            payload["date"] = self.entry_date.isoformat()
        return payload

    @classmethod
    def fields_from_remote(cls, obj: DayEntry) -> Dict[str, Any]:
        return {"entry_date": obj.entry_date, "rate": obj.rate, "comment": obj.comment}


class ContactRecord(SQLModel, table=True):
    """Read-only mirror of a Monica contact."""

    id: Optional[int] = Field(default=None, primary_key=True)
    remote_id: int = Field(unique=True, index=True)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    nickname: Optional[str] = None
    complete_name: Optional[str] = None
    gender: Optional[str] = None
    is_starred: bool = False
    synced_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)

    @property
    def display_name(self) -> str:
        if self.complete_name:
            return self.complete_name
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else UNKNOWN_NAME

    def to_contact(self) -> Contact:
        return Contact(
            id=self.remote_id,
            first_name=self.first_name,
            last_name=self.last_name,
            nickname=self.nickname,
            complete_name=self.complete_name,
            gender=self.gender,
            is_starred=self.is_starred,
        )


RECORD_KINDS = {
    cls.resource: cls
    for cls in (CallLogRecord, DebtRecord, ConversationRecord, RelationshipRecord, DayEntryRecord)
}
