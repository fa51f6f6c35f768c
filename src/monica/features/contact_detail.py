"""
Contact detail: the contact plus its activities, notes and tasks.

The three sections load concurrently after the contact itself. Each section
keeps its own page counter, has_more flag and error, so one failing section
never blanks the others.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional

from monica.client.errors import MonicaAPIError, sanitize_for_log
from monica.models.api import Contact, Page
from monica.models.records import utcnow

logger = logging.getLogger(__name__)

SECTIONS = ("activities", "notes", "tasks")
DETAIL_PAGE_SIZE = 20
RECENT_ACTIVITY_DAYS = 30


@dataclass
class Section:
    items: List[Any] = field(default_factory=list)
    current_page: int = 1
    has_more: bool = False
    is_loading_more: bool = False
    error: Optional[MonicaAPIError] = None


class ContactDetailViewModel:
    def __init__(self, contact_id: int, client, per_page: int = DETAIL_PAGE_SIZE):
        self.contact_id = contact_id
        self.client = client
        self.per_page = per_page
        self.contact: Optional[Contact] = None
        self.is_loading = False
        self.error: Optional[MonicaAPIError] = None
        self.sections: Dict[str, Section] = {name: Section() for name in SECTIONS}

    @property
    def activities(self) -> List[Any]:
        return self.sections["activities"].items

    @property
    def notes(self) -> List[Any]:
        return self.sections["notes"].items

    @property
    def tasks(self) -> List[Any]:
        return self.sections["tasks"].items

    @property
    def pending_tasks_count(self) -> int:
        return sum(1 for t in self.tasks if not t.completed)

    @property
    def recent_activities_count(self) -> int:
        cutoff = utcnow() - timedelta(days=RECENT_ACTIVITY_DAYS)
        return sum(
            1
            for a in self.activities
            if a.happened_at is not None and a.happened_at.replace(tzinfo=None) >= cutoff
        )

    def _fetch_page(self, name: str, page: int):
        fetch = getattr(self.client, f"list_{name}")
        return fetch(self.contact_id, page=page, per_page=self.per_page)

    async def _load_section(self, name: str) -> None:
        section = self.sections[name]
        section.error = None
        try:
            result: Page = await self._fetch_page(name, 1)
        except MonicaAPIError as exc:
            section.error = exc
            logger.warning("Loading %s for contact %d failed: %s", name, self.contact_id, sanitize_for_log(exc.message))
            return
        section.items = list(result.items)
        section.current_page = 1
        section.has_more = result.has_more_pages

    async def load_contact(self) -> None:
        """Load the contact, then every section concurrently."""
        self.is_loading = True
        self.error = None
        try:
            try:
                self.contact = await self.client.get_contact(self.contact_id)
            except MonicaAPIError as exc:
                self.error = exc
                return
            await asyncio.gather(*(self._load_section(name) for name in SECTIONS))
        finally:
            self.is_loading = False

    async def refresh(self) -> None:
        await self.load_contact()

    async def load_more(self, name: str) -> None:
        """Append the next page of one section."""
        section = self.sections[name]
        if section.is_loading_more or not section.has_more:
            return
        section.is_loading_more = True
        try:
            next_page = section.current_page + 1
            try:
                result: Page = await self._fetch_page(name, next_page)
            except MonicaAPIError as exc:
                section.error = exc
                logger.warning("Loading more %s failed: %s", name, sanitize_for_log(exc.message))
                return
            section.items.extend(result.items)
            section.current_page = next_page
            section.has_more = result.has_more_pages
        finally:
            section.is_loading_more = False

    def section_error(self, name: str) -> Optional[str]:
        error = self.sections[name].error
        return error.message if error is not None else None
