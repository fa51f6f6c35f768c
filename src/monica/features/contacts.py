"""
Contact list: paginated server listing backed by the local contact mirror.

Every fetched page is imported into the mirror; when the server cannot be
reached the list falls back to the mirrored contacts.
"""
import logging
from typing import Awaitable, Callable, List, Optional

from monica.client.errors import MonicaAPIError, sanitize_for_log, user_message
from monica.db.store import LocalRecordStore
from monica.models.api import Contact

logger = logging.getLogger(__name__)


class ContactListViewModel:
    def __init__(self, client, engine, store: Optional[LocalRecordStore] = None):
        self.client = client
        self.store = store or LocalRecordStore(engine)
        self.contacts: List[Contact] = []
        self.is_loading = False
        self.error_message: Optional[str] = None
        self.last_error: Optional[Exception] = None
        self.retry_action: Optional[Callable[[], Awaitable[None]]] = None
        self.current_page = 1
        self.has_more_pages = False
        self.search_query = ""

    def load_local(self) -> None:
        """Show mirrored contacts (filtered by the current query) without the network."""
        self.contacts = [row.to_contact() for row in self.store.list_contacts(self.search_query)]

    async def refresh(self) -> None:
        """Reload the first page from the server."""
        if not self.contacts:
            self.load_local()
        self.is_loading = True
        self.clear_error()
        try:
            page = await self.client.list_contacts(page=1)
        except MonicaAPIError as exc:
            self.handle_error(exc, retry=self.refresh)
            self.load_local()
            return
        finally:
            self.is_loading = False

        self.store.import_contacts(page.items)
        self.contacts = list(page.items)
        self.current_page = page.page
        self.has_more_pages = page.has_more_pages

    async def load_more(self) -> None:
        if self.is_loading or not self.has_more_pages or self.search_query:
            return
        self.is_loading = True
        try:
            page = await self.client.list_contacts(page=self.current_page + 1)
        except MonicaAPIError as exc:
            self.handle_error(exc, retry=self.load_more)
            return
        finally:
            self.is_loading = False

        self.store.import_contacts(page.items)
        known = {c.id for c in self.contacts}
        self.contacts.extend(c for c in page.items if c.id not in known)
        self.current_page = page.page
        self.has_more_pages = page.has_more_pages

    async def search(self, query: str) -> None:
        self.search_query = query.strip()
        if not self.search_query:
            await self.refresh()
            return

        self.is_loading = True
        self.clear_error()
        try:
            self.contacts = await self.client.search_contacts(self.search_query)
            self.has_more_pages = False
        except MonicaAPIError as exc:
            self.handle_error(exc, retry=lambda: self.search(query))
            self.load_local()
        finally:
            self.is_loading = False

    # ── Errors ────────────────────────────────────────────────────────────────

    def handle_error(self, exc: Exception, retry: Optional[Callable[[], Awaitable[None]]] = None) -> None:
        self.last_error = exc
        self.error_message = user_message(exc)
        self.retry_action = retry
        logger.warning("Contact list error: %s", sanitize_for_log(self.error_message))

    def clear_error(self) -> None:
        self.error_message = None
        self.last_error = None
        self.retry_action = None

    async def retry(self) -> None:
        action = self.retry_action
        self.clear_error()
        if action is not None:
            await action()
