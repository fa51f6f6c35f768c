"""Daily mood ratings (day entries)."""
from datetime import date
from enum import IntEnum
from typing import Optional

from monica.features.base import RecordViewModel
from monica.models.records import DayEntryRecord


class MoodRating(IntEnum):
    BAD = 1
    OKAY = 2
    GREAT = 3

    @property
    def label(self) -> str:
        return self.name.capitalize()


class DayEntryViewModel(RecordViewModel):
    record_cls = DayEntryRecord
    noun = "day entry"

    def __init__(self, client, engine, sync_engine=None):
        super().__init__(client, engine, sync_engine)
        self.is_saved = False
        self.reset_form()

    @property
    def entries(self):
        return self.items

    @property
    def is_edit_mode(self) -> bool:
        return self.editing_entry is not None

    # ── Form state ────────────────────────────────────────────────────────────

    def reset_form(self) -> None:
        self.selected_mood: Optional[MoodRating] = None
        self.comment = ""
        self.selected_date: date = date.today()
        self.editing_entry: Optional[DayEntryRecord] = None
        self.error_message = None
        self.is_saved = False

    def load_entry(self, entry: DayEntryRecord) -> None:
        self.editing_entry = entry
        self.selected_mood = MoodRating(entry.rate)
        self.comment = entry.comment or ""
        self.selected_date = entry.entry_date

    @property
    def is_date_in_future(self) -> bool:
        return self.selected_date > date.today()

    @property
    def validation_error(self) -> Optional[str]:
        if self.selected_mood is None:
            return "Please select a mood rating"
        if self.is_date_in_future:
            return "Cannot rate a future date"
        return None

    @property
    def is_valid(self) -> bool:
        return self.validation_error is None

    # ── Operations ────────────────────────────────────────────────────────────

    async def fetch(self) -> None:
        await self._fetch(self.client.list_day_entries)

    async def save(self) -> Optional[DayEntryRecord]:
        """Create a new entry, or update the one loaded with load_entry()."""
        if not self.is_valid:
            self.error_message = self.validation_error
            return None

        comment = self.comment or None
        if self.editing_entry is not None:
            entry = self.editing_entry
            ok = await self._update(entry, rate=int(self.selected_mood), comment=comment)
            saved = entry if ok else None
        else:
            saved = await self._create(
                entry_date=self.selected_date, rate=int(self.selected_mood), comment=comment
            )

        self.is_saved = saved is not None
        return saved

    async def delete(self, entry: DayEntryRecord) -> bool:
        return await self._delete(entry)
