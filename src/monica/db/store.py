"""
Local record store: the offline queue and read cache for every record kind.

All mutations of TrackableRecord rows go through this class so the sync
status rules hold in one place:

  * create          -> pending
  * update          -> synced rows become pending again
  * soft_delete     -> is_marked_deleted, synced rows become pending
  * mark_synced     -> synced, remote_id set, error cleared
  * mark_failed     -> failed, error stored
  * hard_delete     -> row removed (only after the server confirmed a delete)

Rows returned from here are detached from their session; pass them back into
the store (or the sync engine) to change them.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Type

from sqlalchemy import or_
from sqlmodel import Session, select

from monica.models.api import Contact
from monica.models.records import (
    FAILED,
    PENDING,
    RECORD_KINDS,
    SYNCED,
    ContactRecord,
    TrackableRecord,
    utcnow,
)

logger = logging.getLogger(__name__)


class LocalRecordStore:
    def __init__(self, engine):
        self._engine = engine

    def _session(self) -> Session:
        return Session(self._engine, expire_on_commit=False)

    # ── Reads ─────────────────────────────────────────────────────────────────

    def get(self, cls: Type[TrackableRecord], local_id: str) -> Optional[TrackableRecord]:
        with self._session() as session:
            return session.get(cls, local_id)

    def get_by_remote_id(self, cls: Type[TrackableRecord], remote_id: int) -> Optional[TrackableRecord]:
        with self._session() as session:
            return session.exec(select(cls).where(cls.remote_id == remote_id)).first()

    def list(
        self,
        cls: Type[TrackableRecord],
        contact_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> List[TrackableRecord]:
        """Visible rows (not soft-deleted), newest first by the kind's date column."""
        stmt = select(cls).where(cls.is_marked_deleted == False)  # noqa: E712
        if contact_id is not None:
            stmt = stmt.where(cls.contact_id == contact_id)
        if status is not None:
            stmt = stmt.where(cls.sync_status == status)
        stmt = stmt.order_by(getattr(cls, cls.sort_field).desc(), cls.created_at.desc())
        with self._session() as session:
            return list(session.exec(stmt).all())

    def fetch_pending(self, cls: Optional[Type[TrackableRecord]] = None) -> List[TrackableRecord]:
        """Rows still to push (pending or failed, deleted included), oldest first."""
        kinds: Sequence[Type[TrackableRecord]] = [cls] if cls else list(RECORD_KINDS.values())
        rows: List[TrackableRecord] = []
        with self._session() as session:
            for kind in kinds:
                stmt = select(kind).where(kind.sync_status.in_([PENDING, FAILED]))
                rows.extend(session.exec(stmt).all())
        rows.sort(key=lambda r: r.created_at)
        return rows

    def statistics(self, cls: Type[TrackableRecord]) -> Tuple[int, int, int]:
        """Return (total visible, pending, failed) for one kind."""
        with self._session() as session:
            rows = session.exec(select(cls)).all()
        total = sum(1 for r in rows if not r.is_marked_deleted)
        pending = sum(1 for r in rows if r.sync_status == PENDING)
        failed = sum(1 for r in rows if r.sync_status == FAILED)
        return total, pending, failed

    # ── Local mutations ───────────────────────────────────────────────────────

    def create(self, cls: Type[TrackableRecord], **fields: Any) -> TrackableRecord:
        now = utcnow()
        fields.setdefault("created_at", now)
        fields.setdefault("updated_at", now)
        record = cls(sync_status=PENDING, **fields)
        with self._session() as session:
            session.add(record)
            session.commit()
        logger.debug("Queued new %s %s", cls.resource, record.local_id)
        return record

    def update(self, record: TrackableRecord, **fields: Any) -> TrackableRecord:
        with self._session() as session:
            session.add(record)
            for name, value in fields.items():
                setattr(record, name, value)
            record.updated_at = utcnow()
            if record.sync_status == SYNCED:
                record.sync_status = PENDING
            session.commit()
        return record

    def soft_delete(self, record: TrackableRecord) -> TrackableRecord:
        with self._session() as session:
            session.add(record)
            record.is_marked_deleted = True
            record.updated_at = utcnow()
            if record.sync_status == SYNCED:
                record.sync_status = PENDING
            session.commit()
        return record

    def hard_delete(self, record: TrackableRecord) -> None:
        with self._session() as session:
            row = session.get(type(record), record.local_id)
            if row is not None:
                session.delete(row)
                session.commit()

    def purge_deleted(self) -> int:
        """Remove deleted rows whose delete the server already confirmed."""
        purged = 0
        with self._session() as session:
            for kind in RECORD_KINDS.values():
                stmt = select(kind).where(
                    kind.is_marked_deleted == True,  # noqa: E712
                    kind.sync_status == SYNCED,
                )
                for row in session.exec(stmt).all():
                    session.delete(row)
                    purged += 1
            session.commit()
        return purged

    # ── Sync outcomes ─────────────────────────────────────────────────────────

    def mark_synced(self, record: TrackableRecord, remote_id: int, **server_fields: Any) -> TrackableRecord:
        with self._session() as session:
            session.add(record)
            for name, value in server_fields.items():
                setattr(record, name, value)
            record.remote_id = remote_id
            record.sync_status = SYNCED
            record.sync_error = None
            record.last_sync_attempt = utcnow()
            session.commit()
        return record

    def mark_failed(self, record: TrackableRecord, error: str) -> TrackableRecord:
        with self._session() as session:
            session.add(record)
            record.sync_status = FAILED
            record.sync_error = error
            record.last_sync_attempt = utcnow()
            session.commit()
        return record

    # ── Server refresh ────────────────────────────────────────────────────────

    def reconcile(
        self,
        cls: Type[TrackableRecord],
        remote_objects: Iterable[Any],
        contact_id: Optional[int] = None,
    ) -> int:
        """
        Merge a server listing into the local table.

        Server rows are upserted as synced. Rows with unpushed local changes
        (pending, failed or soft-deleted) are left alone. Synced rows in the
        same scope that the server no longer returns are removed.

        Returns:
            Number of rows inserted or updated.
        """
        changed = 0
        seen: set = set()
        with self._session() as session:
            for obj in remote_objects:
                seen.add(obj.id)
                fields = cls.fields_from_remote(obj)
                existing = session.exec(select(cls).where(cls.remote_id == obj.id)).first()
                if existing is None:
                    session.add(cls(remote_id=obj.id, sync_status=SYNCED, **fields))
                    changed += 1
                elif existing.sync_status == SYNCED and not existing.is_marked_deleted:
                    for name, value in fields.items():
                        setattr(existing, name, value)
                    changed += 1

            stale = select(cls).where(cls.sync_status == SYNCED, cls.remote_id != None)  # noqa: E711
            if contact_id is not None:
                stale = stale.where(cls.contact_id == contact_id)
            for row in session.exec(stale).all():
                if row.remote_id not in seen:
                    session.delete(row)
            session.commit()
        return changed

    # ── Contact mirror ────────────────────────────────────────────────────────

    def import_contacts(self, contacts: Iterable[Contact]) -> int:
        count = 0
        now = utcnow()
        with self._session() as session:
            for contact in contacts:
                row = session.exec(
                    select(ContactRecord).where(ContactRecord.remote_id == contact.id)
                ).first()
                if row is None:
                    row = ContactRecord(remote_id=contact.id)
                row.first_name = contact.first_name
                row.last_name = contact.last_name
                row.nickname = contact.nickname
                row.complete_name = contact.complete_name
                row.gender = contact.gender
                row.is_starred = contact.is_starred
                row.synced_at = now
                session.add(row)
                count += 1
            session.commit()
        return count

    def list_contacts(self, query: Optional[str] = None) -> List[ContactRecord]:
        stmt = select(ContactRecord)
        if query and query.strip():
            pattern = f"%{query.strip()}%"
            stmt = stmt.where(
                or_(
                    ContactRecord.complete_name.ilike(pattern),
                    ContactRecord.first_name.ilike(pattern),
                    ContactRecord.last_name.ilike(pattern),
                    ContactRecord.nickname.ilike(pattern),
                )
            )
        stmt = stmt.order_by(ContactRecord.first_name, ContactRecord.last_name)
        with self._session() as session:
            return list(session.exec(stmt).all())

    # ── Reset ─────────────────────────────────────────────────────────────────

    def clear_all(self) -> Dict[str, int]:
        """Delete every record and mirrored contact. Returns counts per table."""
        counts: Dict[str, int] = {}
        with self._session() as session:
            for name, kind in list(RECORD_KINDS.items()) + [("contacts", ContactRecord)]:
                rows = session.exec(select(kind)).all()
                for row in rows:
                    session.delete(row)
                counts[name] = len(rows)
            session.commit()
        logger.info("Cleared local data: %s", counts)
        return counts
