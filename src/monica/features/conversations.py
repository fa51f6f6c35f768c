"""Conversation log for one contact."""
from datetime import datetime
from typing import List, Optional, Tuple

from monica.features.base import RecordViewModel
from monica.models.records import ConversationRecord

MAX_NOTES_LENGTH = 10_000


class ConversationViewModel(RecordViewModel):
    record_cls = ConversationRecord
    noun = "conversation"

    def __init__(self, contact_id: int, client, engine, sync_engine=None):
        super().__init__(client, engine, sync_engine)
        self.contact_id = contact_id
        self.reset_form()

    @property
    def conversations(self) -> List[ConversationRecord]:
        return self.items

    @property
    def sorted_conversations(self) -> List[ConversationRecord]:
        return sorted(self.items, key=lambda c: c.happened_at, reverse=True)

    @property
    def is_editing(self) -> bool:
        return self.editing_conversation is not None

    # ── Form state ────────────────────────────────────────────────────────────

    def reset_form(self) -> None:
        self.happened_at: datetime = datetime.now()
        self.notes = ""
        self.selected_conversation_type: Optional[int] = None
        self.editing_conversation: Optional[ConversationRecord] = None

    def load_for_editing(self, conversation: ConversationRecord) -> None:
        self.editing_conversation = conversation
        self.happened_at = conversation.happened_at
        self.notes = conversation.content or ""
        self.selected_conversation_type = conversation.contact_field_type_id

    def validate_form(self) -> bool:
        if self.happened_at > datetime.now():
            self.error_message = "Conversation date cannot be in the future"
            return False
        if len(self.notes) > MAX_NOTES_LENGTH:
            self.error_message = f"Notes cannot exceed {MAX_NOTES_LENGTH:,} characters"
            return False
        return True

    # ── Operations ────────────────────────────────────────────────────────────

    async def load_conversations(self) -> None:
        await self._fetch(
            lambda: self.client.list_conversations(self.contact_id), contact_id=self.contact_id
        )

    async def save_conversation(self) -> bool:
        if not self.validate_form():
            return False
        record = await self._create(
            contact_id=self.contact_id,
            happened_at=self.happened_at,
            contact_field_type_id=self.selected_conversation_type,
            content=self.notes or None,
        )
        if record is None:
            return False
        self.reset_form()
        return True

    async def update_conversation(self) -> bool:
        if self.editing_conversation is None or not self.validate_form():
            return False
        ok = await self._update(
            self.editing_conversation,
            happened_at=self.happened_at,
            contact_field_type_id=self.selected_conversation_type,
            content=self.notes or None,
        )
        if ok:
            self.reset_form()
        return ok

    async def quick_log(self) -> bool:
        """Log a conversation that happened just now, without notes."""
        record = await self._create(contact_id=self.contact_id, happened_at=datetime.now())
        return record is not None

    async def delete_conversation(self, conversation: ConversationRecord) -> bool:
        return await self._delete(conversation)

    def statistics(self) -> Tuple[int, int]:
        """(total, with notes)"""
        return len(self.items), sum(1 for c in self.items if c.has_notes)


def notes_character_level(notes: str) -> str:
    """Severity of the notes length: "ok", "notice" (60%), "warning" (80%), "limit"."""
    count = len(notes)
    if count >= MAX_NOTES_LENGTH:
        return "limit"
    if count >= MAX_NOTES_LENGTH * 8 // 10:
        return "warning"
    if count >= MAX_NOTES_LENGTH * 6 // 10:
        return "notice"
    return "ok"
