"""In-app notifications (monitor matches) for the X-User-Id caller, with persisted read state."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from tablewatch.api.deps import get_user_id
from tablewatch.core.dates import utcnow
from tablewatch.db.session import get_db
from tablewatch.models.user_notification import UserNotification

router = APIRouter()
logger = logging.getLogger(__name__)


def _serialize(row: UserNotification) -> dict:
    return {
        "id": row.id,
        "type": row.type,
        "read": row.read_at is not None,
        "read_at": row.read_at.isoformat() if row.read_at else None,
        "created_at": row.created_at.isoformat() if row.created_at else None,
        "metadata": row.payload or {},
    }


@router.get("/notifications")
def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    """Newest first, plus the unread count for a badge."""
    mine = db.query(UserNotification).filter(UserNotification.recipient_id == user_id)
    unread = mine.filter(UserNotification.read_at.is_(None))
    rows = (unread if unread_only else mine).order_by(
        UserNotification.created_at.desc(), UserNotification.id.desc()
    ).limit(limit)
    unread_count = unread.with_entities(func.count(UserNotification.id)).scalar() or 0
    return {"notifications": [_serialize(r) for r in rows], "unread_count": unread_count}


@router.patch("/notifications/{notification_id}/read")
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    """Idempotent; the first read time is kept."""
    row = db.get(UserNotification, notification_id)
    if row is None or row.recipient_id != user_id:
        raise HTTPException(status_code=404, detail="Notification not found")
    if row.read_at is None:
        row.read_at = utcnow()
        db.commit()
        db.refresh(row)
    return {"ok": True, "notification": _serialize(row)}
