"""Read-only views of the local record store."""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from monica.db.engine import get_session
from monica.models.records import FAILED, PENDING, RECORD_KINDS, SYNC_STATUSES

router = APIRouter()


@router.get("/stats")
def record_stats(session: Session = Depends(get_session)) -> Dict[str, Dict[str, int]]:
    """Per-kind counts: visible rows, pending and failed uploads."""
    stats = {}
    for kind, cls in RECORD_KINDS.items():
        rows = session.exec(select(cls)).all()
        stats[kind] = {
            "total": sum(1 for r in rows if not r.is_marked_deleted),
            "pending": sum(1 for r in rows if r.sync_status == PENDING),
            "failed": sum(1 for r in rows if r.sync_status == FAILED),
        }
    return stats


@router.get("/{kind}")
def list_records(
    kind: str,
    status: Optional[str] = None,
    contact_id: Optional[int] = None,
    limit: int = 100,
    offset: int = 0,
    session: Session = Depends(get_session),
) -> List[Dict[str, Any]]:
    """List local rows of one kind, newest first. Soft-deleted rows are hidden."""
    cls = RECORD_KINDS.get(kind)
    if cls is None:
        raise HTTPException(status_code=404, detail=f"Unknown record kind: {kind}")
    if status is not None and status not in SYNC_STATUSES:
        raise HTTPException(status_code=422, detail=f"Unknown sync status: {status}")

    stmt = select(cls).where(cls.is_marked_deleted == False)  # noqa: E712
    if status is not None:
        stmt = stmt.where(cls.sync_status == status)
    if contact_id is not None:
        if not hasattr(cls, "contact_id"):
            raise HTTPException(status_code=422, detail=f"{kind} are not scoped to a contact")
        stmt = stmt.where(cls.contact_id == contact_id)
    stmt = stmt.order_by(getattr(cls, cls.sort_field).desc()).offset(offset).limit(limit)
    return [row.model_dump(mode="json") for row in session.exec(stmt).all()]
