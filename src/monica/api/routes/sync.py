"""Sync trigger and status routes."""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel
from sqlmodel import Session, select

from monica.client.errors import sanitize_for_log
from monica.db.engine import get_engine, get_session
from monica.models.sync import SyncLog
from monica.sync.engine import run_sweep

logger = logging.getLogger(__name__)

router = APIRouter()


class SyncStatusResponse(BaseModel):
    status: str
    started_at: Optional[datetime]
    finished_at: Optional[datetime]
    records_synced: Optional[int]
    records_failed: Optional[int]
    records_purged: Optional[int]
    error_message: Optional[str]


async def _do_sync() -> None:
    """Background task: connect with saved credentials and run one sweep."""
    try:
        await run_sweep(get_engine())
    except Exception as exc:
        logger.error("Triggered sync failed: %s", sanitize_for_log(str(exc)))


@router.post("/trigger")
async def trigger_sync(background_tasks: BackgroundTasks):
    """
    Push every queued record to Monica.
    Returns immediately; the sweep runs in background.
    """
    background_tasks.add_task(_do_sync)
    return {"message": "Sync started"}


@router.get("/status", response_model=SyncStatusResponse)
def sync_status(session: Session = Depends(get_session)):
    """Return the status of the most recent sync sweep."""
    log = session.exec(
        select(SyncLog).order_by(SyncLog.started_at.desc())
    ).first()
    if not log:
        return SyncStatusResponse(
            status="never_run",
            started_at=None,
            finished_at=None,
            records_synced=None,
            records_failed=None,
            records_purged=None,
            error_message=None,
        )
    return SyncStatusResponse(
        status=log.status,
        started_at=log.started_at,
        finished_at=log.finished_at,
        records_synced=log.records_synced,
        records_failed=log.records_failed,
        records_purged=log.records_purged,
        error_message=log.error_message,
    )
