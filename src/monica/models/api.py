"""
Wire models for the Monica REST API.

Objects arrive wrapped as {"data": {...}} or {"data": [...], "meta": {...}};
the client unwraps them and validates each object with one of these models.
Unknown fields are ignored so newer server versions don't break decoding.
"""
from datetime import date, datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

T = TypeVar("T")

UNKNOWN_NAME = "Unknown"


class WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ContactRef(WireModel):
    """The short contact object Monica nests inside other resources."""

    id: int
    complete_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


def resolve_contact_id(raw: Dict[str, Any]) -> Optional[int]:
    """Return the contact id of a wire object, flat or nested, or None."""
    if raw.get("contact_id") is not None:
        return int(raw["contact_id"])
    contact = raw.get("contact")
    if isinstance(contact, dict) and contact.get("id") is not None:
        return int(contact["id"])
    return None


def resolve_display_name(contact: Optional[ContactRef]) -> str:
    """Single place where a missing contact name falls back to a default."""
    if contact is None:
        return UNKNOWN_NAME
    if contact.complete_name:
        return contact.complete_name
    parts = [p for p in (contact.first_name, contact.last_name) if p]
    return " ".join(parts) if parts else UNKNOWN_NAME


class _ContactScoped(WireModel):
    """Resources that belong to one contact; accepts flat or nested contact id."""

    contact_id: int
    contact: Optional[ContactRef] = None

    @model_validator(mode="before")
    @classmethod
    def _flatten_contact(cls, data: Any) -> Any:
        if isinstance(data, dict) and "contact_id" not in data:
            contact_id = resolve_contact_id(data)
            if contact_id is not None:
                data = {**data, "contact_id": contact_id}
        return data


class Contact(WireModel):
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    nickname: Optional[str] = None
    complete_name: Optional[str] = None
    gender: Optional[str] = None
    is_starred: bool = False
    updated_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return resolve_display_name(
            ContactRef(
                id=self.id,
                complete_name=self.complete_name,
                first_name=self.first_name,
                last_name=self.last_name,
            )
        )


class Emotion(WireModel):
    id: int
    name: Optional[str] = None


class CallLog(_ContactScoped):
    id: int
    called_at: datetime
    content: Optional[str] = None
    contact_called: bool = False
    emotions: List[Emotion] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Debt(_ContactScoped):
    id: int
    in_debt: str
    status: str = "inprogress"
    amount: float
    amount_with_currency: Optional[str] = None
    reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("in_debt", mode="before")
    @classmethod
    def _normalize_in_debt(cls, value: Any) -> Any:
        # Older servers send a boolean instead of "yes"/"no"
        if isinstance(value, bool):
            return "yes" if value else "no"
        return value


class ConversationMessage(WireModel):
    id: int
    content: Optional[str] = None
    written_by_me: bool = True
    written_at: Optional[datetime] = None


class Conversation(_ContactScoped):
    id: int
    happened_at: datetime
    contact_field_type_id: Optional[int] = None
    content: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("content", "notes")
    )
    messages: List[ConversationMessage] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def _flatten_field_type(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("contact_field_type_id") is None:
            field_type = data.get("contact_field_type")
            if isinstance(field_type, dict) and field_type.get("id") is not None:
                data = {**data, "contact_field_type_id": field_type["id"]}
        return data

    @property
    def text(self) -> Optional[str]:
        """Conversation notes, falling back to the first message body."""
        if self.content:
            return self.content
        for message in self.messages:
            if message.content:
                return message.content
        return None


class RelationshipType(WireModel):
    id: int
    name: str
    name_reverse_relationship: Optional[str] = None
    relationship_type_group_id: Optional[int] = None


class RelationshipTypeGroup(WireModel):
    id: int
    name: str


class Relationship(WireModel):
    id: int
    contact_is: ContactRef
    of_contact: ContactRef
    relationship_type: RelationshipType
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DayEntry(WireModel):
    id: int
    rate: int
    comment: Optional[str] = None
    entry_date: date = Field(validation_alias=AliasChoices("entry_date", "date", "day"))
    created_at: Optional[datetime] = None

    @field_validator("entry_date", mode="before")
    @classmethod
    def _strip_time(cls, value: Any) -> Any:
        if isinstance(value, str) and "T" in value:
            return value.split("T", 1)[0]
        return value


class Activity(WireModel):
    id: int
    summary: Optional[str] = None
    description: Optional[str] = None
    happened_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class Note(WireModel):
    id: int
    body: str = ""
    is_favorited: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Task(WireModel):
    id: int
    title: str = ""
    description: Optional[str] = None
    completed: bool = False
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class PageMeta(WireModel):
    current_page: Optional[int] = None
    last_page: Optional[int] = None
    per_page: Optional[int] = None
    total: Optional[int] = None


class Page(BaseModel, Generic[T]):
    """One page of a list endpoint."""

    items: List[T]
    page: int = 1
    per_page: int
    last_page: Optional[int] = None

    @property
    def has_more_pages(self) -> bool:
        # Without a last_page hint, a full page suggests there may be another
        if self.last_page is not None:
            return self.page < self.last_page
        return len(self.items) >= self.per_page
