"""Sync audit log model."""
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from monica.models.records import utcnow


class SyncLog(SQLModel, table=True):
    """Records each sync sweep for audit and debugging."""

    id: Optional[int] = Field(default=None, primary_key=True)
    started_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    finished_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    status: str = "running"  # "running", "success", "partial", "error"
    records_synced: int = 0
    records_failed: int = 0
    records_purged: int = 0
    error_message: Optional[str] = None
