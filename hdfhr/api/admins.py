from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from hdfhr.db.session import get_db
from hdfhr.core.auth import require_super_admin
from hdfhr.core.errors import HDFHRError, to_http
from hdfhr.core.policies import Principal
from hdfhr.models.models import Admin, User, UserRole, UserStatus, ActivityType
from hdfhr.schemas.schemas import AdminCreate, AdminUpdate, AdminResponse
from hdfhr.services.account_service import create_account, send_invite
from hdfhr.services.activity_service import log_activity
from hdfhr.services.email_service import EmailSender, get_email_sender

router = APIRouter(prefix="/api/admins", tags=["admins"])


def _get_admin_or_404(admin_id: str, db: Session) -> Admin:
    admin = db.query(Admin).filter(Admin.id == admin_id, Admin.deleted_at.is_(None)).first()
    if not admin:
        raise HTTPException(status_code=404, detail="Admin not found")
    return admin


@router.get("", response_model=list[AdminResponse])
def list_admins(principal: Principal = Depends(require_super_admin), db: Session = Depends(get_db)):
    return db.query(Admin).filter(Admin.deleted_at.is_(None)).order_by(Admin.name.asc()).all()


@router.post("", response_model=AdminResponse)
def create_admin(
    data: AdminCreate,
    principal: Principal = Depends(require_super_admin),
    db: Session = Depends(get_db),
    email_sender: EmailSender = Depends(get_email_sender),
):
    try:
        user, invite_token = create_account(db, data.email, data.password)
    except HDFHRError as e:
        db.rollback()
        raise to_http(e)

    admin = Admin(id=user.id, name=data.name, email=user.email,
                  role=UserRole.SUPER_ADMIN.value, status=True)
    db.add(admin)
    log_activity(db, principal.user_id, ActivityType.ACCOUNT_CREATION, f"Created admin {data.name}",
                 metadata={"entity_type": "admin", "entity_id": user.id})
    db.commit()
    db.refresh(admin)
    send_invite(email_sender, user, admin.name, invite_token)
    return admin


@router.put("/{admin_id}", response_model=AdminResponse)
def update_admin(admin_id: str, data: AdminUpdate,
                 principal: Principal = Depends(require_super_admin),
                 db: Session = Depends(get_db)):
    admin = _get_admin_or_404(admin_id, db)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("status") is False and admin.id == principal.user_id:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    old = {key: getattr(admin, key) for key in changes}
    for key, value in changes.items():
        setattr(admin, key, value)
    log_activity(db, principal.user_id, ActivityType.PERMISSION_CHANGE, f"Updated admin {admin.name}",
                 old_value=old, new_value=changes)
    db.commit()
    db.refresh(admin)
    return admin


@router.delete("/{admin_id}")
def delete_admin(admin_id: str, principal: Principal = Depends(require_super_admin),
                 db: Session = Depends(get_db)):
    admin = _get_admin_or_404(admin_id, db)
    if admin.id == principal.user_id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    admin.deleted_at = datetime.utcnow()
    admin.status = False
    user = db.query(User).filter(User.id == admin.id).first()
    if user:
        user.status = UserStatus.INACTIVE
    log_activity(db, principal.user_id, ActivityType.ACCOUNT_DELETION, f"Removed admin {admin.name}",
                 metadata={"entity_type": "admin", "entity_id": admin.id})
    db.commit()
    return {"ok": True, "id": admin.id}
