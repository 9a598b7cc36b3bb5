import json
import logging
from datetime import datetime, timedelta
from sqlalchemy import func
from sqlalchemy.orm import Session
from hdfhr.core import config
from hdfhr.core.security import hash_password, generate_reset_token
from hdfhr.models.models import (
    ActivityLog, ActivityLogArchive, ActivityType, User, UserStatus,
)

log = logging.getLogger(__name__)

_ARCHIVED_COLUMNS = (
    "id", "user_id", "company_id", "activity_type", "description",
    "ip_address", "user_agent", "details", "old_value", "new_value", "created_at",
)


def _dump(value):
    if value is None:
        return None
    return json.dumps(value, default=str)


def log_activity(db: Session, user_id: str, activity_type: ActivityType | str, description: str,
                 company_id: str | None = None, metadata: dict | None = None,
                 old_value=None, new_value=None, ip_address: str | None = None,
                 user_agent: str | None = None) -> ActivityLog:
    """Queue an activity log row on ``db``; the caller commits."""
    entry = ActivityLog(
        user_id=user_id,
        company_id=company_id,
        activity_type=activity_type.value if isinstance(activity_type, ActivityType) else activity_type,
        description=description,
        details=_dump(metadata),
        old_value=_dump(old_value),
        new_value=_dump(new_value),
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(entry)
    return entry


def get_system_user(db: Session) -> User:
    user = db.query(User).filter(User.email == config.SYSTEM_USER_EMAIL).first()
    if user is None:
        # never signs in: random password, inactive
        user = User(
            email=config.SYSTEM_USER_EMAIL,
            password_hash=hash_password(generate_reset_token()),
            status=UserStatus.INACTIVE,
        )
        db.add(user)
        db.flush()
    return user


def _archive(db: Session, rows, now: datetime) -> int:
    if not rows:
        return 0
    for row in rows:
        values = {col: getattr(row, col) for col in _ARCHIVED_COLUMNS}
        db.add(ActivityLogArchive(archived_at=now, **values))
    ids = [row.id for row in rows]
    db.query(ActivityLog).filter(ActivityLog.id.in_(ids)).delete(synchronize_session=False)
    db.flush()
    return len(ids)


def archive_logs_older_than(db: Session, cutoff: datetime, now: datetime | None = None) -> int:
    now = now or datetime.utcnow()
    rows = db.query(ActivityLog).filter(ActivityLog.created_at < cutoff).all()
    return _archive(db, rows, now)


def archive_overflow(db: Session, threshold: int, now: datetime | None = None) -> int:
    now = now or datetime.utcnow()
    count = db.query(func.count(ActivityLog.id)).scalar() or 0
    if count <= threshold:
        return 0
    overflow = min(count, count - threshold + config.LOG_OVERFLOW_HEADROOM)
    rows = db.query(ActivityLog).order_by(ActivityLog.created_at.asc()).limit(overflow).all()
    return _archive(db, rows, now)


def prune_archive_overflow(db: Session, threshold: int) -> int:
    count = db.query(func.count(ActivityLogArchive.id)).scalar() or 0
    if count <= threshold:
        return 0
    overflow = min(count, count - threshold + config.LOG_OVERFLOW_HEADROOM)
    ids = [r.id for r in db.query(ActivityLogArchive.id)
           .order_by(ActivityLogArchive.created_at.asc()).limit(overflow).all()]
    db.query(ActivityLogArchive).filter(ActivityLogArchive.id.in_(ids)).delete(synchronize_session=False)
    db.flush()
    return len(ids)


def run_log_maintenance(db: Session, now: datetime | None = None) -> dict:
    """Archive old or excess activity logs and prune the archive."""
    now = now or datetime.utcnow()
    system_user = get_system_user(db)

    archived = archive_logs_older_than(db, now - timedelta(days=config.LOG_ARCHIVE_AFTER_DAYS), now)
    main_overflow = archive_overflow(db, config.LOG_MAIN_TABLE_THRESHOLD, now)
    archive_overflow_deleted = prune_archive_overflow(db, config.LOG_ARCHIVE_TABLE_THRESHOLD)
    old_deleted = db.query(ActivityLogArchive).filter(
        ActivityLogArchive.created_at < now - timedelta(days=config.LOG_ARCHIVE_DELETE_AFTER_DAYS)
    ).delete(synchronize_session=False)

    summary = {
        "time_based_archived_count": archived,
        "main_table_overflow_archived": main_overflow,
        "archive_table_overflow_deleted": archive_overflow_deleted,
        "old_archive_deleted_count": old_deleted,
        "system_user_id": system_user.id,
    }
    log_activity(
        db, system_user.id, ActivityType.SYSTEM_MAINTENANCE, "Log maintenance summary",
        metadata={**summary, "maintenance_date": now.isoformat()},
    )
    db.commit()
    log.info("Log maintenance finished: %s", summary)
    return summary


def cleanup_expired_reset_tokens(db: Session, now: datetime | None = None) -> dict:
    now = now or datetime.utcnow()
    cleared = db.query(User).filter(
        User.reset_token.isnot(None),
        User.reset_token_expires < now,
    ).update({User.reset_token: None, User.reset_token_expires: None}, synchronize_session=False)
    db.commit()
    log.info("Cleared %d expired reset tokens", cleared)
    return {"expired_tokens_removed": cleared, "timestamp": now.isoformat()}
