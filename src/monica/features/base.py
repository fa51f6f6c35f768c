"""
Shared state holder for record-backed feature view-models.

Every record kind follows the same offline-first flow:

  fetch   -> show local rows, fetch the server listing, reconcile, reload
  create  -> write a pending row, push it immediately
  update  -> update the row (synced rows re-arm to pending), push
  delete  -> soft-delete the row, push the delete

A failed push never loses data: the row stays queued as "failed" and the
next sync sweep retries it. Operations report failure through their return
value and error_message; they do not raise.
"""
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Type

from monica.client.errors import MonicaAPIError, sanitize_for_log
from monica.db.store import LocalRecordStore
from monica.models.records import FAILED, TrackableRecord
from monica.sync.engine import SyncEngine

logger = logging.getLogger(__name__)


class RecordViewModel:
    record_cls: Type[TrackableRecord] = TrackableRecord
    noun = "record"

    def __init__(self, client, engine, sync_engine: Optional[SyncEngine] = None):
        """
        Args:
            client: MonicaClient instance (or AsyncMock in tests).
            engine: SQLAlchemy engine backing the local store.
            sync_engine: shared SyncEngine; built from client/engine if omitted.
        """
        self.client = client
        self.sync_engine = sync_engine or SyncEngine(client, engine)
        self.store: LocalRecordStore = self.sync_engine.store
        self.items: List[TrackableRecord] = []
        self.is_loading = False
        self.error_message: Optional[str] = None

    def _set_items(self, items: Iterable[TrackableRecord]) -> None:
        self.items = list(items)
        self._items_changed()

    def _items_changed(self) -> None:
        """Hook for derived state that must follow every list change."""

    def clear_error(self) -> None:
        self.error_message = None

    async def _fetch(
        self,
        fetch_remote: Callable[[], Awaitable[Iterable[Any]]],
        contact_id: Optional[int] = None,
    ) -> None:
        self.is_loading = True
        self.error_message = None
        try:
            self._set_items(self.store.list(self.record_cls, contact_id=contact_id))
            try:
                remote = await fetch_remote()
            except MonicaAPIError as exc:
                self.error_message = f"Failed to load {self.noun}s: {exc.message}"
                logger.warning("Loading %ss failed: %s", self.noun, sanitize_for_log(exc.message))
                return
            self.store.reconcile(self.record_cls, remote, contact_id=contact_id)
            self._set_items(self.store.list(self.record_cls, contact_id=contact_id))
        finally:
            self.is_loading = False

    async def _create(self, **fields: Any) -> Optional[TrackableRecord]:
        """Queue a new row and push it. Returns the row, or None if the push failed."""
        self.is_loading = True
        self.error_message = None
        try:
            record = self.store.create(self.record_cls, **fields)
            self._set_items([record] + self.items)
            if not await self._push(record, "create"):
                return None
            return record
        finally:
            self.is_loading = False

    async def _update(self, record: TrackableRecord, **fields: Any) -> bool:
        self.is_loading = True
        self.error_message = None
        try:
            record = self.store.update(record, **fields)
            self._set_items(record if r.local_id == record.local_id else r for r in self.items)
            return await self._push(record, "update")
        finally:
            self.is_loading = False

    async def _delete(self, record: TrackableRecord) -> bool:
        self.is_loading = True
        self.error_message = None
        try:
            record = self.store.soft_delete(record)
            self._set_items(r for r in self.items if r.local_id != record.local_id)
            return await self._push(record, "delete")
        finally:
            self.is_loading = False

    async def _push(self, record: TrackableRecord, verb: str) -> bool:
        status = await self.sync_engine.sync_record(record)
        if status == FAILED:
            self.error_message = (
                f"Failed to {verb} {self.noun}: {record.sync_error}. "
                "Saved locally; it will be retried on the next sync."
            )
            return False
        return True
