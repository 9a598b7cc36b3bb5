"""Row-level access rules.

The same rules are installed as PostgreSQL RLS policies by
``hdfhr/migrations/002_rls_policies.sql``. The functions here apply them to
ORM queries so every backend (including SQLite in tests) enforces tenant
isolation, and ``apply_jwt_claims`` hands the verified claims to the
database so the SQL policies can see them.
"""
import json
from dataclasses import dataclass
from sqlalchemy import event, text, false, select
from sqlalchemy.orm import Session
from hdfhr.core.errors import PermissionDenied
from hdfhr.models.models import (
    UserRole, Admin, Company, CompanyUser, Task, TaskComment, ActivityLog,
    AccidentReport, IllnessReport, StaffDepartureReport,
)

REPORT_MODELS = (AccidentReport, IllnessReport, StaffDepartureReport)
CLAIMS_KEY = "jwt_claims"
CLAIMS_DIALECTS = ("postgresql",)
SET_CLAIMS_SQL = text("SELECT set_config('request.jwt.claims', :claims, true)")


@dataclass(frozen=True)
class Principal:
    user_id: str
    email: str
    role: UserRole | None
    company_id: str | None = None

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN

    @property
    def is_company_admin(self) -> bool:
        return self.role == UserRole.COMPANY_ADMIN

    @property
    def is_employee(self) -> bool:
        return self.role == UserRole.EMPLOYEE

    def claims(self) -> dict:
        return {
            "sub": self.user_id,
            "email": self.email,
            "role": self.role.value if self.role else None,
            "company_id": self.company_id,
        }


def _set_claims(connection, claims: str) -> None:
    if connection.dialect.name in CLAIMS_DIALECTS:
        connection.execute(SET_CLAIMS_SQL, {"claims": claims})


def apply_jwt_claims(db: Session, principal: Principal) -> None:
    """Expose the caller to PostgreSQL RLS via ``request.jwt.claims``.

    ``set_config(..., true)`` only lasts for the current transaction, so the
    claims are kept on the session and re-issued whenever it begins a new one.
    """
    connection = db.connection()
    claims = json.dumps(principal.claims())
    db.info[CLAIMS_KEY] = claims
    _set_claims(connection, claims)


@event.listens_for(Session, "after_begin")
def _reapply_jwt_claims(session, transaction, connection):
    claims = session.info.get(CLAIMS_KEY)
    if claims is not None:
        _set_claims(connection, claims)


def scope_query(query, model, principal: Principal):
    """Filter ``query`` on ``model`` down to the rows ``principal`` may read."""
    if principal.is_super_admin:
        return query
    if principal.role is None or principal.company_id is None:
        if model is Admin:
            return query.filter(Admin.id == principal.user_id)
        return query.filter(false())

    if model is Admin:
        return query.filter(Admin.id == principal.user_id)
    if model is Company:
        return query.filter(Company.id == principal.company_id)
    if model is CompanyUser:
        q = query.filter(CompanyUser.company_id == principal.company_id)
        if principal.is_employee:
            q = q.filter(CompanyUser.id == principal.user_id)
        return q
    if model is Task:
        if principal.is_employee:
            return query.filter(Task.assigned_to == principal.user_id)
        return query.filter(Task.company_id == principal.company_id)
    if model is TaskComment:
        visible_tasks = scope_query(select(Task.id), Task, principal)
        return query.filter(TaskComment.task_id.in_(visible_tasks))
    if model in REPORT_MODELS:
        q = query.filter(model.company_id == principal.company_id)
        if principal.is_employee:
            q = q.filter(model.employee_id == principal.user_id)
        return q
    if model is ActivityLog:
        if principal.is_employee:
            return query.filter(ActivityLog.user_id == principal.user_id)
        return query.filter(ActivityLog.company_id == principal.company_id)
    raise PermissionDenied("No access policy for this resource")


def can_write_task(principal: Principal, task: Task) -> bool:
    if principal.is_super_admin:
        return True
    return principal.is_company_admin and task.company_id == principal.company_id


def can_update_task_status(principal: Principal, task: Task) -> bool:
    if can_write_task(principal, task):
        return True
    return task.assigned_to == principal.user_id


def can_review_report(principal: Principal, report) -> bool:
    if principal.is_super_admin:
        return True
    return principal.is_company_admin and report.company_id == principal.company_id
