"""Tests for the call log view-model."""
from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from monica.client.errors import NetworkError
from monica.features.call_logs import CallDirection, CallLogViewModel
from monica.models.api import CallLog
from monica.models.records import FAILED, SYNCED, CallLogRecord


@pytest.fixture(name="vm")
def vm_fixture(mock_client, engine):
    return CallLogViewModel(42, mock_client, engine)


class TestCallDirection:
    def test_round_trip_with_flag(self):
        assert CallDirection.from_contact_called(True) is CallDirection.CONTACT
        assert CallDirection.from_contact_called(False) is CallDirection.ME
        assert CallDirection.CONTACT.contact_called


class TestForm:
    def test_defaults(self, vm):
        assert vm.call_description == ""
        assert vm.selected_emotion_ids == set()
        assert vm.who_initiated is CallDirection.ME

    def test_load_for_editing(self, vm):
        record = CallLogRecord(
            contact_id=42, called_at=datetime(2025, 3, 1, 9), content="Birthday call",
            contact_called=True, emotions_json="[2, 5]",
        )
        vm.load_for_editing(record)

        assert vm.selected_date == datetime(2025, 3, 1, 9)
        assert vm.selected_emotion_ids == {2, 5}
        assert vm.call_description == "Birthday call"
        assert vm.who_initiated is CallDirection.CONTACT


class TestSaveCallLog:
    @pytest.mark.asyncio
    async def test_save_pushes_and_resets_form(self, vm, mock_client):
        vm.selected_date = datetime(2025, 3, 1, 9)
        vm.call_description = "Caught up"
        vm.selected_emotion_ids = {3, 1}
        vm.who_initiated = CallDirection.CONTACT

        assert await vm.save_call_log()

        resource, payload = mock_client.create.await_args.args
        assert resource == "calls"
        assert payload == {
            "contact_id": 42,
            "called_at": "2025-03-01",
            "content": "Caught up",
            "contact_called": True,
            "emotions": [1, 3],
        }
        assert vm.call_logs[0].sync_status == SYNCED
        assert vm.call_description == ""
        assert vm.selected_emotion_ids == set()

    @pytest.mark.asyncio
    async def test_failed_save_keeps_form(self, vm, mock_client):
        mock_client.create.side_effect = NetworkError()
        vm.call_description = "Offline call"

        assert not await vm.save_call_log()

        assert vm.call_description == "Offline call"
        assert vm.call_logs[0].sync_status == FAILED
        assert vm.pending_count() == 1

    @pytest.mark.asyncio
    async def test_update_from_form(self, vm, mock_client):
        await vm.save_call_log()
        record = vm.call_logs[0]
        vm.load_for_editing(record)
        vm.call_description = "Edited"

        assert await vm.update_call_log(record)

        assert mock_client.update.await_args.args[2]["content"] == "Edited"
        assert vm.call_logs[0].content == "Edited"

    @pytest.mark.asyncio
    async def test_delete(self, vm, mock_client):
        await vm.save_call_log()

        assert await vm.delete_call_log(vm.call_logs[0])

        assert vm.call_logs == []
        mock_client.delete.assert_awaited_once_with("calls", 1000)


class TestLoadCallLogs:
    @pytest.mark.asyncio
    async def test_loads_newest_first(self, vm, mock_client):
        mock_client.list_call_logs = AsyncMock(return_value=[
            CallLog(id=1, contact_id=42, called_at=datetime(2025, 1, 1), content="old"),
            CallLog(id=2, contact_id=42, called_at=datetime(2025, 2, 1)),
        ])

        await vm.load_call_logs()

        mock_client.list_call_logs.assert_awaited_once_with(42)
        assert [c.remote_id for c in vm.call_logs] == [2, 1]
        assert vm.statistics() == (2, 1)
        assert vm.pending_count() == 0
