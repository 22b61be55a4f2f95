from datetime import datetime

from sqlalchemy.orm import Session

from . import models

LOG_LIMIT = 100


def log_action(db: Session, user_id: int, action: str, details: str | None = None):
    log = models.LogEntry(
        user_id=user_id,
        action=action,
        details=details,
        created_at=datetime.now(),
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    return log


def recent_logs(db: Session, limit: int = LOG_LIMIT):
    """Newest log rows joined with the author's username.

    Rows whose user no longer exists are dropped by the inner join.
    """
    rows = (
        db.query(models.LogEntry, models.User.username)
        .join(models.User, models.LogEntry.user_id == models.User.id)
        .order_by(models.LogEntry.created_at.desc(), models.LogEntry.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": log.id,
            "user_id": log.user_id,
            "action": log.action,
            "details": log.details,
            "created_at": log.created_at,
            "username": username,
        }
        for log, username in rows
    ]
