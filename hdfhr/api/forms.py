import json
from datetime import datetime, date
from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.orm import Session
from hdfhr.db.session import get_db
from hdfhr.core.auth import get_current_principal
from hdfhr.core.policies import Principal, scope_query, can_review_report
from hdfhr.models.models import (
    AccidentReport, IllnessReport, StaffDepartureReport, CompanyUser, FormStatus, ActivityType,
)
from hdfhr.schemas.schemas import (
    AccidentReportCreate, IllnessReportCreate, StaffDepartureReportCreate, FormStatusUpdate,
)
from hdfhr.services.activity_service import log_activity

router = APIRouter(prefix="/api/forms", tags=["forms"])

FORM_TYPES = {
    "accident": (AccidentReport, AccidentReportCreate),
    "illness": (IllnessReport, IllnessReportCreate),
    "staff_departure": (StaffDepartureReport, StaffDepartureReportCreate),
}
JSON_LIST_FIELDS = ("documents_required", "documents_submitted")


def _form_type(form_type: str):
    if form_type not in FORM_TYPES:
        raise HTTPException(status_code=404, detail=f"Unknown form type: {form_type}")
    return FORM_TYPES[form_type]


def _serialize_report(report) -> dict:
    data = {}
    for column in report.__table__.columns:
        value = getattr(report, column.key)
        if column.key in JSON_LIST_FIELDS:
            value = json.loads(value) if value else []
        elif isinstance(value, FormStatus):
            value = value.value
        elif isinstance(value, (datetime, date)):
            value = value.isoformat()
        data[column.key] = value
    return data


def _get_report_or_404(model, report_id: str, principal: Principal, db: Session):
    report = scope_query(db.query(model), model, principal).filter(model.id == report_id).first()
    if not report:
        raise HTTPException(status_code=404, detail="Report not found")
    return report


def _subject_employee(employee_id: str | None, principal: Principal, db: Session) -> CompanyUser:
    """Employees file for themselves; admins name the employee."""
    if principal.is_employee:
        if employee_id and employee_id != principal.user_id:
            raise HTTPException(status_code=403, detail="Employees can only submit their own reports")
        employee_id = principal.user_id
    elif principal.role is None:
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    elif not employee_id:
        raise HTTPException(status_code=400, detail="employee_id is required")

    q = scope_query(db.query(CompanyUser), CompanyUser, principal)
    member = q.filter(CompanyUser.id == employee_id, CompanyUser.deleted_at.is_(None)).first()
    if not member:
        raise HTTPException(status_code=404, detail="Employee not found")
    return member


@router.get("/{form_type}")
def list_reports(
    form_type: str,
    status: str = Query(None),
    employee_id: str = Query(None),
    company_id: str = Query(None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    model, _ = _form_type(form_type)
    q = scope_query(db.query(model), model, principal)
    if status:
        try:
            q = q.filter(model.status == FormStatus(status))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid status: {status}")
    if employee_id:
        q = q.filter(model.employee_id == employee_id)
    if company_id:
        q = q.filter(model.company_id == company_id)
    return [_serialize_report(r) for r in q.order_by(model.created_at.desc()).all()]


@router.post("/{form_type}")
def create_report(
    form_type: str,
    payload: dict = Body(...),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    model, schema = _form_type(form_type)
    try:
        data = schema(**payload)
    except SchemaValidationError as e:
        raise HTTPException(status_code=422, detail=json.loads(e.json()))

    member = _subject_employee(data.employee_id, principal, db)
    values = data.model_dump(exclude={"employee_id"})
    for key in JSON_LIST_FIELDS:
        if key in values:
            values[key] = json.dumps(values[key])

    report = model(
        company_id=member.company_id,
        employee_id=member.id,
        submitted_by=principal.user_id,
        status=FormStatus.PENDING,
        **values,
    )
    db.add(report)
    db.flush()
    log_activity(db, principal.user_id, ActivityType.DATA_MODIFICATION,
                 f"Submitted {form_type} report for {member.full_name}",
                 company_id=member.company_id,
                 metadata={"form_type": form_type, "report_id": report.id})
    db.commit()
    db.refresh(report)
    return _serialize_report(report)


@router.get("/{form_type}/{report_id}")
def get_report(form_type: str, report_id: str,
               principal: Principal = Depends(get_current_principal),
               db: Session = Depends(get_db)):
    model, _ = _form_type(form_type)
    return _serialize_report(_get_report_or_404(model, report_id, principal, db))


@router.patch("/{form_type}/{report_id}/status")
def update_report_status(form_type: str, report_id: str, data: FormStatusUpdate,
                         principal: Principal = Depends(get_current_principal),
                         db: Session = Depends(get_db)):
    model, _ = _form_type(form_type)
    report = _get_report_or_404(model, report_id, principal, db)
    if not can_review_report(principal, report):
        raise HTTPException(status_code=403, detail="Insufficient permissions")

    old_status = report.status
    report.status = data.status
    if data.comments is not None:
        report.comments = data.comments
    report.modified_by = principal.user_id
    report.modified_at = datetime.utcnow()
    log_activity(db, principal.user_id, ActivityType.UPDATE_STATUS,
                 f"Changed {form_type} report status to {data.status.value}",
                 company_id=report.company_id,
                 metadata={"form_type": form_type, "report_id": report.id},
                 old_value={"status": old_status.value}, new_value={"status": data.status.value})
    db.commit()
    db.refresh(report)
    return _serialize_report(report)
