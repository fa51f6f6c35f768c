"""Shared test fixtures."""
import itertools
from typing import Generator
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# Import all models so SQLModel.metadata knows about them
from monica.models.records import (  # noqa: F401
    CallLogRecord,
    ContactRecord,
    ConversationRecord,
    DayEntryRecord,
    DebtRecord,
    RelationshipRecord,
)
from monica.models.sync import SyncLog  # noqa: F401
from monica.client.client import RESOURCE_MODELS
from monica.db.store import LocalRecordStore


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine. Tables recreated fresh for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="test_session")
def test_session_fixture(engine) -> Generator[Session, None, None]:
    """Provides a DB session connected to in-memory SQLite."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="store")
def store_fixture(engine) -> LocalRecordStore:
    return LocalRecordStore(engine)


@pytest.fixture(name="mock_client")
def mock_client_fixture():
    """
    AsyncMock standing in for MonicaClient.

    Generic writes succeed and echo the payload back as the wire object the
    server would return, with fresh remote ids starting at 1000.
    """
    remote_ids = itertools.count(1000)

    async def create(resource, payload):
        return server_echo(resource, next(remote_ids), payload)

    async def update(resource, remote_id, payload):
        return server_echo(resource, remote_id, payload)

    client = AsyncMock()
    client.create = AsyncMock(side_effect=create)
    client.update = AsyncMock(side_effect=update)
    client.delete = AsyncMock(return_value=None)
    return client


def server_echo(resource, remote_id, payload):
    """Build the wire object Monica returns for a create or update."""
    if resource == "relationships":
        data = {
            "id": remote_id,
            "contact_is": {"id": payload.get("contact_is", 1)},
            "of_contact": {"id": payload.get("of_contact", 2), "complete_name": "Sam Roe"},
            "relationship_type": {"id": payload["relationship_type_id"], "name": "friend"},
        }
    else:
        data = {"id": remote_id, "contact_id": 42, "amount": 0, "in_debt": "yes", **payload}
        for key in ("called_at", "happened_at"):
            data[key] = f"{data.get(key, '2025-03-01')}T00:00:00Z"
        if resource == "calls":
            data["emotions"] = [{"id": i} for i in payload.get("emotions") or []]
        if resource == "debts":
            data["amount_with_currency"] = f"${float(data['amount']):.2f}"
        if resource == "days":
            data.setdefault("date", "2025-03-01")
    return RESOURCE_MODELS[resource].model_validate(data)
