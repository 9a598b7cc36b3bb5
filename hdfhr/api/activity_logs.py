import json
from datetime import datetime
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from hdfhr.db.session import get_db
from hdfhr.core.auth import get_current_principal
from hdfhr.core.policies import Principal, scope_query
from hdfhr.models.models import ActivityLog
from hdfhr.schemas.schemas import ActivityLogResponse

router = APIRouter(prefix="/api/activity-logs", tags=["activity-logs"])


def _serialize_log(entry: ActivityLog) -> ActivityLogResponse:
    return ActivityLogResponse(
        id=entry.id, user_id=entry.user_id, company_id=entry.company_id,
        activity_type=entry.activity_type, description=entry.description,
        metadata=json.loads(entry.details) if entry.details else None,
        created_at=entry.created_at,
    )


@router.get("", response_model=list[ActivityLogResponse])
def list_activity_logs(
    activity_type: str = Query(None),
    user_id: str = Query(None),
    company_id: str = Query(None),
    since: datetime = Query(None),
    limit: int = Query(100, ge=1, le=500),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    q = scope_query(db.query(ActivityLog), ActivityLog, principal)
    if activity_type:
        q = q.filter(ActivityLog.activity_type == activity_type)
    if user_id:
        q = q.filter(ActivityLog.user_id == user_id)
    if company_id:
        q = q.filter(ActivityLog.company_id == company_id)
    if since:
        q = q.filter(ActivityLog.created_at >= since)
    entries = q.order_by(ActivityLog.created_at.desc()).limit(limit).all()
    return [_serialize_log(e) for e in entries]
