from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from hdfhr.db.session import get_db
from hdfhr.core.auth import require_super_admin
from hdfhr.core.policies import Principal
from hdfhr.schemas.schemas import LogMaintenanceResponse, TokenCleanupResponse
from hdfhr.services.activity_service import run_log_maintenance, cleanup_expired_reset_tokens

router = APIRouter(prefix="/api/maintenance", tags=["maintenance"])


@router.post("/logs", response_model=LogMaintenanceResponse)
def maintain_logs(principal: Principal = Depends(require_super_admin), db: Session = Depends(get_db)):
    return run_log_maintenance(db)


@router.post("/reset-tokens", response_model=TokenCleanupResponse)
def cleanup_reset_tokens(principal: Principal = Depends(require_super_admin), db: Session = Depends(get_db)):
    return cleanup_expired_reset_tokens(db)
