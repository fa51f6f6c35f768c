"""Call logging for one contact, with an editable form."""
import json
from datetime import datetime
from enum import Enum
from typing import Set, Tuple

from monica.features.base import RecordViewModel
from monica.models.records import SYNCED, CallLogRecord


class CallDirection(str, Enum):
    ME = "me"  # I called them
    CONTACT = "contact"  # they called me

    @classmethod
    def from_contact_called(cls, contact_called: bool) -> "CallDirection":
        return cls.CONTACT if contact_called else cls.ME

    @property
    def contact_called(self) -> bool:
        return self is CallDirection.CONTACT


class CallLogViewModel(RecordViewModel):
    record_cls = CallLogRecord
    noun = "call log"

    def __init__(self, contact_id: int, client, engine, sync_engine=None):
        super().__init__(client, engine, sync_engine)
        self.contact_id = contact_id
        self.reset_form()

    @property
    def call_logs(self):
        return self.items

    # ── Form state ────────────────────────────────────────────────────────────

    def reset_form(self) -> None:
        self.selected_date: datetime = datetime.now()
        self.selected_emotion_ids: Set[int] = set()
        self.call_description = ""
        self.who_initiated = CallDirection.ME

    def load_for_editing(self, call_log: CallLogRecord) -> None:
        self.selected_date = call_log.called_at
        self.selected_emotion_ids = set(call_log.emotion_ids)
        self.call_description = call_log.content or ""
        self.who_initiated = CallDirection.from_contact_called(call_log.contact_called)

    def _form_fields(self) -> dict:
        emotion_ids = sorted(self.selected_emotion_ids)
        return {
            "content": self.call_description or None,
            "contact_called": self.who_initiated.contact_called,
            "emotions_json": json.dumps(emotion_ids) if emotion_ids else None,
        }

    # ── Operations ────────────────────────────────────────────────────────────

    async def load_call_logs(self) -> None:
        await self._fetch(
            lambda: self.client.list_call_logs(self.contact_id), contact_id=self.contact_id
        )

    async def save_call_log(self) -> bool:
        """Create a call log from the form; the form resets on success."""
        record = await self._create(
            contact_id=self.contact_id, called_at=self.selected_date, **self._form_fields()
        )
        if record is None:
            return False
        self.reset_form()
        return True

    async def update_call_log(self, call_log: CallLogRecord) -> bool:
        return await self._update(call_log, called_at=self.selected_date, **self._form_fields())

    async def delete_call_log(self, call_log: CallLogRecord) -> bool:
        return await self._delete(call_log)

    def statistics(self) -> Tuple[int, int]:
        """(total, with emotions or notes)"""
        with_details = sum(1 for c in self.items if c.emotion_ids or c.content)
        return len(self.items), with_details

    def pending_count(self) -> int:
        return sum(1 for c in self.items if c.sync_status != SYNCED)
