"""
Integration tests for SyncEngine.

Uses in-memory SQLite and a mocked MonicaClient (see conftest.mock_client),
so no network calls are made.
"""
from datetime import date, datetime
from unittest.mock import AsyncMock

import pytest
from sqlmodel import Session, select

from monica.client.errors import NetworkError, NotFoundError, ServerError
from monica.models.records import (
    FAILED,
    PENDING,
    SYNCED,
    CallLogRecord,
    ConversationRecord,
    DayEntryRecord,
    DebtRecord,
    RelationshipRecord,
)
from monica.models.sync import SyncLog
from monica.sync.engine import SyncEngine, run_sweep


@pytest.fixture(name="sync_engine")
def sync_engine_fixture(mock_client, engine, store):
    return SyncEngine(client=mock_client, engine=engine, store=store)


class TestSyncRecord:
    @pytest.mark.asyncio
    async def test_new_record_created_and_synced(self, sync_engine, store, mock_client):
        record = store.create(DebtRecord, contact_id=42, amount=50, reason="Lunch")

        status = await sync_engine.sync_record(record)

        assert status == SYNCED
        mock_client.create.assert_awaited_once_with(
            "debts",
            {"contact_id": 42, "in_debt": "yes", "status": "inprogress", "amount": 50, "reason": "Lunch"},
        )
        loaded = store.get(DebtRecord, record.local_id)
        assert loaded.sync_status == SYNCED
        assert loaded.remote_id == 1000
        assert loaded.sync_error is None

    @pytest.mark.asyncio
    async def test_server_fills_missing_fields_only(self, sync_engine, store):
        record = store.create(DebtRecord, contact_id=42, amount=50)

        await sync_engine.sync_record(record)

        loaded = store.get(DebtRecord, record.local_id)
        assert loaded.amount_with_currency == "$50.00"
        assert loaded.amount == 50

    @pytest.mark.asyncio
    async def test_local_date_not_overwritten(self, sync_engine, store):
        called_at = datetime(2025, 3, 5, 18, 45)
        record = store.create(CallLogRecord, contact_id=42, called_at=called_at)

        await sync_engine.sync_record(record)

        assert store.get(CallLogRecord, record.local_id).called_at == called_at

    @pytest.mark.asyncio
    async def test_synced_record_with_remote_id_is_updated(self, sync_engine, store, mock_client):
        record = store.create(DebtRecord, contact_id=42, amount=50)
        await sync_engine.sync_record(record)
        store.update(record, amount=75)

        status = await sync_engine.sync_record(record)

        assert status == SYNCED
        mock_client.update.assert_awaited_once()
        resource, remote_id, payload = mock_client.update.await_args.args
        assert (resource, remote_id, payload["amount"]) == ("debts", 1000, 75)

    @pytest.mark.asyncio
    async def test_failure_marks_failed_with_message(self, sync_engine, store, mock_client):
        mock_client.create.side_effect = ServerError(500)
        record = store.create(DebtRecord, contact_id=42, amount=50)

        status = await sync_engine.sync_record(record)

        assert status == FAILED
        loaded = store.get(DebtRecord, record.local_id)
        assert loaded.sync_status == FAILED
        assert "HTTP 500" in loaded.sync_error
        assert loaded.remote_id is None
        assert loaded.last_sync_attempt is not None

    @pytest.mark.asyncio
    async def test_failed_record_recovers_on_retry(self, sync_engine, store, mock_client):
        record = store.create(DebtRecord, contact_id=42, amount=50)
        original = mock_client.create.side_effect
        mock_client.create.side_effect = NetworkError()
        await sync_engine.sync_record(record)

        mock_client.create.side_effect = original
        status = await sync_engine.sync_record(record)

        assert status == SYNCED
        assert store.get(DebtRecord, record.local_id).sync_error is None

    @pytest.mark.asyncio
    async def test_not_syncing_after_push(self, sync_engine, store):
        record = store.create(DebtRecord, contact_id=42, amount=50)
        await sync_engine.sync_record(record)
        assert not sync_engine.is_syncing(record)

    @pytest.mark.asyncio
    async def test_concurrent_push_of_same_record_skipped(self, sync_engine, store, mock_client):
        record = store.create(DebtRecord, contact_id=42, amount=50)
        sync_engine._syncing.add((record.resource, record.local_id))

        status = await sync_engine.sync_record(record)

        assert status == PENDING
        mock_client.create.assert_not_awaited()


class TestDeleteLifecycle:
    @pytest.mark.asyncio
    async def test_delete_of_synced_record(self, sync_engine, store, mock_client):
        record = store.create(DebtRecord, contact_id=42, amount=50)
        await sync_engine.sync_record(record)
        store.soft_delete(record)

        status = await sync_engine.sync_record(record)

        assert status is None
        mock_client.delete.assert_awaited_once_with("debts", 1000)
        assert store.get(DebtRecord, record.local_id) is None

    @pytest.mark.asyncio
    async def test_delete_of_never_pushed_record(self, sync_engine, store, mock_client):
        record = store.create(DebtRecord, contact_id=42, amount=50)
        store.soft_delete(record)

        assert await sync_engine.sync_record(record) is None
        mock_client.delete.assert_not_awaited()
        mock_client.create.assert_not_awaited()
        assert store.get(DebtRecord, record.local_id) is None

    @pytest.mark.asyncio
    async def test_delete_already_gone_on_server(self, sync_engine, store, mock_client):
        record = store.create(DebtRecord, contact_id=42, amount=50)
        await sync_engine.sync_record(record)
        store.soft_delete(record)
        mock_client.delete.side_effect = NotFoundError()

        assert await sync_engine.sync_record(record) is None
        assert store.get(DebtRecord, record.local_id) is None

    @pytest.mark.asyncio
    async def test_failed_delete_stays_hidden_and_queued(self, sync_engine, store, mock_client):
        record = store.create(DebtRecord, contact_id=42, amount=50)
        await sync_engine.sync_record(record)
        store.soft_delete(record)
        mock_client.delete.side_effect = ServerError(500)

        assert await sync_engine.sync_record(record) == FAILED
        assert store.list(DebtRecord) == []
        loaded = store.get(DebtRecord, record.local_id)
        assert loaded.is_marked_deleted
        assert loaded.sync_status == FAILED


class TestRecordKinds:
    @pytest.mark.asyncio
    async def test_conversation_posts_first_message(self, sync_engine, store, mock_client):
        record = store.create(
            ConversationRecord, contact_id=42, happened_at=datetime(2025, 3, 2), content="Trip plans"
        )

        assert await sync_engine.sync_record(record) == SYNCED

        mock_client.add_conversation_message.assert_awaited_once_with(
            conversation_id=1000,
            contact_id=42,
            content="Trip plans",
            written_by_me=True,
            written_at=datetime(2025, 3, 2),
        )

    @pytest.mark.asyncio
    async def test_conversation_without_notes_has_no_message(self, sync_engine, store, mock_client):
        record = store.create(ConversationRecord, contact_id=42, happened_at=datetime(2025, 3, 2))

        await sync_engine.sync_record(record)

        mock_client.add_conversation_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_message_failure_keeps_conversation_synced(self, sync_engine, store, mock_client):
        mock_client.add_conversation_message.side_effect = ServerError(500)
        record = store.create(
            ConversationRecord, contact_id=42, happened_at=datetime(2025, 3, 2), content="Notes"
        )

        assert await sync_engine.sync_record(record) == SYNCED
        assert store.get(ConversationRecord, record.local_id).remote_id == 1000

    @pytest.mark.asyncio
    async def test_relationship_names_filled(self, sync_engine, store):
        record = store.create(RelationshipRecord, contact_id=1, of_contact_id=2, relationship_type_id=5)

        await sync_engine.sync_record(record)

        loaded = store.get(RelationshipRecord, record.local_id)
        assert loaded.of_contact_name == "Sam Roe"
        assert loaded.relationship_type_name == "friend"

    @pytest.mark.asyncio
    async def test_day_entry(self, sync_engine, store, mock_client):
        record = store.create(DayEntryRecord, entry_date=date(2025, 3, 1), rate=3)

        assert await sync_engine.sync_record(record) == SYNCED
        mock_client.create.assert_awaited_once_with(
            "days", {"rate": 3, "comment": None, "date": "2025-03-01"}
        )


class TestSyncAll:
    @pytest.mark.asyncio
    async def test_pushes_every_kind(self, sync_engine, store, mock_client):
        store.create(DebtRecord, contact_id=42, amount=10)
        store.create(CallLogRecord, contact_id=42, called_at=datetime(2025, 3, 1))
        store.create(DayEntryRecord, entry_date=date(2025, 3, 1), rate=2)

        summary = await sync_engine.sync_all()

        assert summary.attempted == 3
        assert summary.synced == 3
        assert summary.failed == 0
        assert store.fetch_pending() == []

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_sweep(self, sync_engine, store, mock_client):
        original = mock_client.create.side_effect
        calls = []

        async def flaky(resource, payload):
            calls.append(resource)
            if resource == "debts":
                raise ServerError(500)
            return await original(resource, payload)

        mock_client.create.side_effect = flaky
        store.create(DebtRecord, contact_id=42, amount=10, created_at=datetime(2025, 1, 1))
        store.create(CallLogRecord, contact_id=42, called_at=datetime(2025, 3, 1), created_at=datetime(2025, 1, 2))

        summary = await sync_engine.sync_all()

        assert calls == ["debts", "calls"]
        assert summary.synced == 1
        assert summary.failed == 1

    @pytest.mark.asyncio
    async def test_failed_records_retried(self, sync_engine, store, mock_client):
        record = store.create(DebtRecord, contact_id=42, amount=10)
        store.mark_failed(record, "offline")

        summary = await sync_engine.sync_all()

        assert summary.synced == 1
        assert store.get(DebtRecord, record.local_id).sync_status == SYNCED

    @pytest.mark.asyncio
    async def test_synced_records_skipped(self, sync_engine, store, mock_client):
        record = store.create(DebtRecord, contact_id=42, amount=10)
        await sync_engine.sync_record(record)
        mock_client.create.reset_mock()

        summary = await sync_engine.sync_all()

        assert summary.attempted == 0
        mock_client.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_deletes_counted_as_purged(self, sync_engine, store):
        record = store.create(DebtRecord, contact_id=42, amount=10)
        await sync_engine.sync_record(record)
        store.soft_delete(record)

        summary = await sync_engine.sync_all()

        assert summary.purged == 1

    @pytest.mark.asyncio
    async def test_only_one_kind(self, sync_engine, store, mock_client):
        store.create(DebtRecord, contact_id=42, amount=10)
        store.create(CallLogRecord, contact_id=42, called_at=datetime(2025, 3, 1))

        summary = await sync_engine.sync_all(DebtRecord)

        assert summary.attempted == 1
        assert len(store.fetch_pending(CallLogRecord)) == 1


class TestSyncLog:
    @pytest.mark.asyncio
    async def test_success_logged(self, sync_engine, store, engine):
        store.create(DebtRecord, contact_id=42, amount=10)

        await sync_engine.sync_all()

        with Session(engine) as s:
            log = s.exec(select(SyncLog)).one()
        assert log.status == "success"
        assert log.records_synced == 1
        assert log.finished_at is not None

    @pytest.mark.asyncio
    async def test_partial_when_some_fail(self, sync_engine, store, engine, mock_client):
        mock_client.create.side_effect = ServerError(500)
        store.create(DebtRecord, contact_id=42, amount=10)

        await sync_engine.sync_all()

        with Session(engine) as s:
            log = s.exec(select(SyncLog)).one()
        assert log.status == "partial"
        assert log.records_failed == 1

    @pytest.mark.asyncio
    async def test_error_logged_and_reraised(self, sync_engine, engine, monkeypatch):
        def broken(cls=None):
            raise RuntimeError("database is locked")

        monkeypatch.setattr(sync_engine.store, "fetch_pending", broken)

        with pytest.raises(RuntimeError):
            await sync_engine.sync_all()

        with Session(engine) as s:
            log = s.exec(select(SyncLog)).one()
        assert log.status == "error"
        assert log.error_message == "database is locked"


class TestRunSweep:
    @pytest.mark.asyncio
    async def test_connects_syncs_and_closes(self, engine, store, mock_client):
        store.create(DebtRecord, contact_id=42, amount=10)
        credentials = AsyncMock()
        credentials.connect = AsyncMock(return_value=mock_client)

        summary = await run_sweep(engine, credentials=credentials)

        assert summary.synced == 1
        mock_client.aclose.assert_awaited_once()
