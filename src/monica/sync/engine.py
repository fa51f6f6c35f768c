"""
SyncEngine: pushes queued local records to Monica.

For each pending or failed record:
  1. Marked deleted   -> DELETE /{resource}/{remote_id}, then remove the row
                         (no remote_id: the row is removed without a request)
  2. No remote_id     -> POST /{resource}, store the new remote_id
  3. Otherwise        -> PUT /{resource}/{remote_id}

Any failure is recorded on the record (status "failed", sync_error) and the
sweep moves on to the next record. There is no retry or backoff: the next
sweep is started by the scheduler, the CLI, the local API or a view-model.

sync_all() writes one SyncLog row per sweep.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set, Tuple, Type

from sqlmodel import Session

from monica.client.errors import NotFoundError, sanitize_for_log, user_message
from monica.db.store import LocalRecordStore
from monica.models.records import FAILED, SYNCED, ConversationRecord, TrackableRecord, utcnow
from monica.models.sync import SyncLog

logger = logging.getLogger(__name__)


@dataclass
class SyncSummary:
    attempted: int = 0
    synced: int = 0
    failed: int = 0
    purged: int = 0


class SyncEngine:
    """Offline queue → Monica sync for every record kind."""

    def __init__(self, client, engine, store: Optional[LocalRecordStore] = None):
        """
        Args:
            client: MonicaClient instance (or AsyncMock in tests).
            engine: SQLAlchemy engine (SQLModel create_engine result).
            store: LocalRecordStore to use; built from engine if omitted.
        """
        self.client = client
        self.engine = engine
        self.store = store or LocalRecordStore(engine)
        # Records currently being pushed; this is the only "syncing" state
        self._syncing: Set[Tuple[str, str]] = set()

    def is_syncing(self, record: TrackableRecord) -> bool:
        return (record.resource, record.local_id) in self._syncing

    async def sync_record(self, record: TrackableRecord) -> Optional[str]:
        """
        Push one record.

        Returns:
            The record's resulting sync_status, or None if the row was removed.
        """
        key = (record.resource, record.local_id)
        if key in self._syncing:
            logger.debug("%s %s already syncing; skipped", record.resource, record.local_id)
            return record.sync_status

        self._syncing.add(key)
        try:
            return await self._push(record)
        except Exception as exc:
            message = user_message(exc)
            logger.warning(
                "Sync of %s %s failed: %s",
                record.resource,
                record.local_id,
                sanitize_for_log(message),
            )
            self.store.mark_failed(record, message)
            return FAILED
        finally:
            self._syncing.discard(key)

    async def sync_all(self, cls: Optional[Type[TrackableRecord]] = None) -> SyncSummary:
        """
        Push every pending or failed record, oldest first.

        A failing record never stops the sweep. Purges any deleted rows the
        server already confirmed.

        Raises:
            Any exception that breaks the sweep itself (after recording the
            error in SyncLog).
        """
        log = self._create_sync_log()
        try:
            records = self.store.fetch_pending(cls)
            summary = SyncSummary(attempted=len(records))
            for record in records:
                status = await self.sync_record(record)
                if status is None:
                    summary.purged += 1
                elif status == SYNCED:
                    summary.synced += 1
                elif status == FAILED:
                    summary.failed += 1
            summary.purged += self.store.purge_deleted()

            self._finish_sync_log(
                log, status="partial" if summary.failed else "success", summary=summary
            )
            logger.info(
                "Sync sweep: %d attempted, %d synced, %d failed, %d purged",
                summary.attempted,
                summary.synced,
                summary.failed,
                summary.purged,
            )
            return summary

        except Exception as exc:
            self._finish_sync_log(log, status="error", error_message=str(exc))
            raise

    # ─── Internal helpers ─────────────────────────────────────────────────────

    async def _push(self, record: TrackableRecord) -> Optional[str]:
        cls = type(record)

        if record.is_marked_deleted:
            if record.remote_id is not None:
                try:
                    await self.client.delete(cls.resource, record.remote_id)
                except NotFoundError:
                    logger.info("%s %s already gone on server", cls.resource, record.remote_id)
            self.store.hard_delete(record)
            return None

        if record.remote_id is None:
            remote = await self.client.create(cls.resource, record.to_payload())
            await self._after_create(record, remote)
        else:
            remote = await self.client.update(
                cls.resource, record.remote_id, record.to_payload(for_update=True)
            )

        self.store.mark_synced(record, remote.id, **self._server_fields(record, remote))
        return SYNCED

    async def _after_create(self, record: TrackableRecord, remote: Any) -> None:
        """Conversation text is stored server-side as the first message."""
        if not isinstance(record, ConversationRecord) or not record.has_notes:
            return
        try:
            await self.client.add_conversation_message(
                conversation_id=remote.id,
                contact_id=record.contact_id,
                content=record.content,
                written_by_me=True,
                written_at=record.happened_at,
            )
        except Exception as exc:
            # The conversation itself exists; keep it synced without the message
            logger.warning(
                "Conversation %s created but message failed: %s",
                remote.id,
                sanitize_for_log(user_message(exc)),
            )

    @staticmethod
    def _server_fields(record: TrackableRecord, remote: Any) -> Dict[str, Any]:
        """Server-derived values: ones the local row is missing, plus server-owned columns."""
        try:
            fields = type(record).fields_from_remote(remote)
        except (AttributeError, TypeError, ValueError) as exc:
            logger.warning("Could not read %s response: %s", record.resource, exc)
            return {}
        return {
            k: v
            for k, v in fields.items()
            if v is not None and (getattr(record, k) is None or k in record.server_owned)
        }

    def _create_sync_log(self) -> SyncLog:
        log = SyncLog(started_at=utcnow(), status="running")
        with Session(self.engine) as s:
            s.add(log)
            s.commit()
            s.refresh(log)
        return log

    def _finish_sync_log(
        self,
        log: SyncLog,
        *,
        status: str,
        summary: Optional[SyncSummary] = None,
        error_message: Optional[str] = None,
    ) -> None:
        summary = summary or SyncSummary()
        with Session(self.engine) as s:
            db_log = s.get(SyncLog, log.id)
            db_log.status = status
            db_log.finished_at = utcnow()
            db_log.records_synced = summary.synced
            db_log.records_failed = summary.failed
            db_log.records_purged = summary.purged
            db_log.error_message = error_message
            s.add(db_log)
            s.commit()


async def run_sweep(engine, credentials=None) -> SyncSummary:
    """
    Connect with the saved credentials and push everything queued.

    Shared by the scheduler, the CLI and the local API.

    Raises:
        NoCredentialsError / CredentialsRejectedError: if not authenticated.
    """
    from monica.client.auth import CredentialStore

    credentials = credentials or CredentialStore()
    client = await credentials.connect()
    try:
        return await SyncEngine(client=client, engine=engine).sync_all()
    finally:
        await client.aclose()
