import json
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from sqlalchemy import func
from hdfhr.db.session import get_db
from hdfhr.core.auth import get_current_principal, require_super_admin
from hdfhr.core.policies import Principal, scope_query
from hdfhr.models.models import Company, CompanyUser, ActivityType
from hdfhr.schemas.schemas import CompanyCreate, CompanyUpdate, CompanyResponse
from hdfhr.services.activity_service import log_activity

router = APIRouter(prefix="/api/companies", tags=["companies"])


def _loads(raw, default):
    if not raw:
        return default
    try:
        return json.loads(raw)
    except ValueError:
        return default


def company_to_response(company: Company, db: Session) -> CompanyResponse:
    employee_count = db.query(func.count(CompanyUser.id)).filter(
        CompanyUser.company_id == company.id, CompanyUser.deleted_at.is_(None)
    ).scalar() or 0
    return CompanyResponse(
        id=company.id, company_name=company.company_name,
        registration_number=company.registration_number,
        industry_type=company.industry_type,
        contact_email=company.contact_email, contact_number=company.contact_number,
        address=_loads(company.address, None), vat_type=company.vat_type,
        stakeholders=_loads(company.stakeholders, []), active=company.active,
        employee_count=employee_count,
        created_at=company.created_at, updated_at=company.updated_at,
    )


def _get_company_or_404(company_id: str, principal: Principal, db: Session) -> Company:
    q = scope_query(db.query(Company), Company, principal)
    company = q.filter(Company.id == company_id).first()
    if not company:
        raise HTTPException(status_code=404, detail="Company not found")
    return company


@router.get("", response_model=list[CompanyResponse])
def list_companies(
    active: bool = Query(None),
    search: str = Query(None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    q = scope_query(db.query(Company), Company, principal)
    if active is not None:
        q = q.filter(Company.active == active)
    if search:
        q = q.filter(Company.company_name.ilike(f"%{search}%"))
    companies = q.order_by(Company.company_name.asc()).all()
    return [company_to_response(c, db) for c in companies]


@router.post("", response_model=CompanyResponse)
def create_company(data: CompanyCreate, principal: Principal = Depends(require_super_admin),
                   db: Session = Depends(get_db)):
    company = Company(
        company_name=data.company_name,
        registration_number=data.registration_number,
        industry_type=data.industry_type,
        contact_email=data.contact_email,
        contact_number=data.contact_number,
        address=json.dumps(data.address.model_dump()) if data.address else None,
        vat_type=data.vat_type,
        stakeholders=json.dumps([s.model_dump() for s in data.stakeholders]),
        active=True,
        created_by=principal.user_id,
    )
    db.add(company)
    db.flush()
    log_activity(db, principal.user_id, ActivityType.DATA_MODIFICATION,
                 f"Created company {company.company_name}", company_id=company.id,
                 metadata={"entity_type": "company", "entity_id": company.id})
    db.commit()
    db.refresh(company)
    return company_to_response(company, db)


@router.get("/{company_id}", response_model=CompanyResponse)
def get_company(company_id: str, principal: Principal = Depends(get_current_principal),
                db: Session = Depends(get_db)):
    return company_to_response(_get_company_or_404(company_id, principal, db), db)


@router.put("/{company_id}", response_model=CompanyResponse)
def update_company(company_id: str, data: CompanyUpdate,
                   principal: Principal = Depends(require_super_admin),
                   db: Session = Depends(get_db)):
    company = _get_company_or_404(company_id, principal, db)
    changes = data.model_dump(exclude_unset=True)
    for key, value in changes.items():
        if key == "address":
            value = json.dumps(value) if value else None
        elif key == "stakeholders":
            value = json.dumps(value or [])
        setattr(company, key, value)
    log_activity(db, principal.user_id, ActivityType.DATA_MODIFICATION,
                 f"Updated company {company.company_name}", company_id=company.id,
                 metadata={"entity_type": "company", "fields": sorted(changes)})
    db.commit()
    db.refresh(company)
    return company_to_response(company, db)


@router.delete("/{company_id}")
def deactivate_company(company_id: str, principal: Principal = Depends(require_super_admin),
                       db: Session = Depends(get_db)):
    company = _get_company_or_404(company_id, principal, db)
    company.active = False
    log_activity(db, principal.user_id, ActivityType.DATA_MODIFICATION,
                 f"Deactivated company {company.company_name}", company_id=company.id)
    db.commit()
    return {"ok": True, "id": company.id}
