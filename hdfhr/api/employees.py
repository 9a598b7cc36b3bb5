from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from hdfhr.db.session import get_db
from hdfhr.core.auth import get_current_principal, require_admin
from hdfhr.core.errors import HDFHRError, to_http, user_message
from hdfhr.core.policies import Principal, scope_query
from hdfhr.models.models import Company, CompanyUser, User, UserRole, UserStatus, ActivityType
from hdfhr.schemas.schemas import (
    EmployeeCreate, EmployeeUpdate, EmployeeResponse, EmployeeBulkCreate, EmployeeBulkResponse,
)
from hdfhr.services.account_service import create_account, send_invite
from hdfhr.services.activity_service import log_activity
from hdfhr.services.auth_service import COMPANY_ADMIN_ROLES
from hdfhr.services.email_service import EmailSender, get_email_sender

router = APIRouter(prefix="/api/employees", tags=["employees"])


def _normalize_role(role: str | None) -> str:
    role = (role or "").lower()
    return UserRole.COMPANY_ADMIN.value if role in COMPANY_ADMIN_ROLES else role


def _get_member_or_404(employee_id: str, principal: Principal, db: Session) -> CompanyUser:
    q = scope_query(db.query(CompanyUser), CompanyUser, principal)
    member = q.filter(CompanyUser.id == employee_id, CompanyUser.deleted_at.is_(None)).first()
    if not member:
        raise HTTPException(status_code=404, detail="Employee not found")
    return member


def _target_company(data: EmployeeCreate, principal: Principal, db: Session) -> str:
    if principal.is_super_admin:
        if not data.company_id:
            raise HTTPException(status_code=400, detail="company_id is required")
        company_id = data.company_id
    else:
        if data.company_id and data.company_id != principal.company_id:
            raise HTTPException(status_code=403, detail="No access to this company")
        company_id = principal.company_id
    company = db.query(Company).filter(Company.id == company_id).first()
    if not company:
        raise HTTPException(status_code=404, detail="Company not found")
    if not company.active:
        raise HTTPException(status_code=400, detail="Company is not active")
    return company_id


def _add_member(data: EmployeeCreate, principal: Principal, db: Session) -> tuple[CompanyUser, User, str | None]:
    """Create the account and its company_user row. Nothing is committed."""
    if data.role == UserRole.COMPANY_ADMIN.value and not principal.is_super_admin:
        raise HTTPException(status_code=403, detail="Only super admins can create company admins")
    company_id = _target_company(data, principal, db)
    user, invite_token = create_account(db, data.email, data.password)

    member = CompanyUser(
        id=user.id,
        company_id=company_id,
        first_name=data.first_name,
        last_name=data.last_name,
        email=user.email,
        phone_number=data.phone_number,
        role=data.role,
        active_status=UserStatus.ACTIVE.value,
        job_title=data.job_title,
        employment_type=data.employment_type,
        employment_start_date=data.employment_start_date,
        workload_percentage=data.workload_percentage,
        created_by=principal.user_id,
    )
    db.add(member)
    db.flush()
    log_activity(db, principal.user_id, ActivityType.ACCOUNT_CREATION,
                 f"Created {data.role} {member.full_name}", company_id=company_id,
                 metadata={"entity_type": "company_user", "entity_id": user.id, "role": data.role})
    return member, user, invite_token


@router.get("", response_model=list[EmployeeResponse])
def list_employees(
    company_id: str = Query(None),
    role: str = Query(None),
    search: str = Query(None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    q = scope_query(db.query(CompanyUser), CompanyUser, principal).filter(CompanyUser.deleted_at.is_(None))
    if company_id:
        q = q.filter(CompanyUser.company_id == company_id)
    if role:
        q = q.filter(CompanyUser.role == role)
    if search:
        pattern = f"%{search}%"
        q = q.filter(
            CompanyUser.first_name.ilike(pattern)
            | CompanyUser.last_name.ilike(pattern)
            | CompanyUser.email.ilike(pattern)
        )
    return q.order_by(CompanyUser.last_name.asc(), CompanyUser.first_name.asc()).all()


@router.post("", response_model=EmployeeResponse)
def create_employee(
    data: EmployeeCreate,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
    email_sender: EmailSender = Depends(get_email_sender),
):
    try:
        member, user, invite_token = _add_member(data, principal, db)
    except HDFHRError as e:
        db.rollback()
        raise to_http(e)
    db.commit()
    db.refresh(member)
    send_invite(email_sender, user, member.full_name, invite_token)
    return member


@router.post("/bulk", response_model=EmployeeBulkResponse)
def create_employees_bulk(
    data: EmployeeBulkCreate,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
    email_sender: EmailSender = Depends(get_email_sender),
):
    """Create several employees; a failing row is reported and skipped."""
    created, errors = [], []
    for row in data.employees:
        savepoint = db.begin_nested()
        try:
            created.append(_add_member(row, principal, db))
        except HDFHRError as e:
            savepoint.rollback()
            errors.append({"email": row.email, "error": user_message(e)})
            continue
        except HTTPException as e:
            savepoint.rollback()
            errors.append({"email": row.email, "error": str(e.detail)})
            continue
        savepoint.commit()
    db.commit()

    for member, user, invite_token in created:
        db.refresh(member)
        send_invite(email_sender, user, member.full_name, invite_token)
    return {"results": [member for member, _, _ in created], "errors": errors}


@router.get("/{employee_id}", response_model=EmployeeResponse)
def get_employee(employee_id: str, principal: Principal = Depends(get_current_principal),
                 db: Session = Depends(get_db)):
    return _get_member_or_404(employee_id, principal, db)


@router.put("/{employee_id}", response_model=EmployeeResponse)
def update_employee(employee_id: str, data: EmployeeUpdate,
                    principal: Principal = Depends(require_admin),
                    db: Session = Depends(get_db)):
    member = _get_member_or_404(employee_id, principal, db)
    changes = data.model_dump(exclude_unset=True)
    current_role = _normalize_role(member.role)
    if not principal.is_super_admin:
        if "role" in changes and changes["role"] != current_role:
            raise HTTPException(status_code=403, detail="Only super admins can change roles")
        if current_role != UserRole.EMPLOYEE.value and member.id != principal.user_id:
            raise HTTPException(status_code=403, detail="Only super admins can modify company admins")
    if changes.get("active_status") == UserStatus.INACTIVE.value and member.id == principal.user_id:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    if changes.get("role") == current_role:
        # keep legacy spellings such as "companyadmin" untouched
        del changes["role"]

    old = {key: getattr(member, key) for key in changes}
    for key, value in changes.items():
        setattr(member, key, value)

    if "active_status" in changes:
        user = db.query(User).filter(User.id == member.id).first()
        if user:
            user.status = UserStatus(changes["active_status"])

    activity = ActivityType.PERMISSION_CHANGE if "role" in changes else ActivityType.PROFILE_UPDATE
    log_activity(db, principal.user_id, activity, f"Updated employee {member.full_name}",
                 company_id=member.company_id, old_value=old, new_value=changes)
    db.commit()
    db.refresh(member)
    return member


@router.delete("/{employee_id}")
def delete_employee(employee_id: str, principal: Principal = Depends(require_admin),
                    db: Session = Depends(get_db)):
    member = _get_member_or_404(employee_id, principal, db)
    if member.id == principal.user_id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    if _normalize_role(member.role) != UserRole.EMPLOYEE.value and not principal.is_super_admin:
        raise HTTPException(status_code=403, detail="Only super admins can remove company admins")

    member.deleted_at = datetime.utcnow()
    member.active_status = UserStatus.INACTIVE.value
    user = db.query(User).filter(User.id == member.id).first()
    if user:
        user.status = UserStatus.INACTIVE
    log_activity(db, principal.user_id, ActivityType.ACCOUNT_DELETION,
                 f"Removed employee {member.full_name}", company_id=member.company_id,
                 metadata={"entity_type": "company_user", "entity_id": member.id})
    db.commit()
    return {"ok": True, "id": member.id}
