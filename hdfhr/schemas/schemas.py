from pydantic import BaseModel, Field, field_validator
from datetime import datetime, date
from typing import Optional, Literal
from hdfhr.models.models import TaskStatus, TaskPriority, FormStatus


def _not_null(value):
    # update fields may be omitted, but an explicit null would clear a NOT NULL column
    if value is None:
        raise ValueError("may not be null")
    return value


class LoginRequest(BaseModel):
    email: str
    password: str


class SessionUser(BaseModel):
    id: str
    email: str
    status: str
    role: Optional[str] = None
    company_id: Optional[str] = None
    name: Optional[str] = None
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: SessionUser


class RegisterRequest(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    id: str
    email: str
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    token: str = ""
    new_password: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class MessageResponse(BaseModel):
    message: str


class Address(BaseModel):
    line1: str = ""
    line2: Optional[str] = None
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""


class Stakeholder(BaseModel):
    name: str
    percentage: float = Field(ge=0, le=100)


class CompanyCreate(BaseModel):
    company_name: str
    registration_number: Optional[str] = None
    industry_type: Optional[str] = None
    contact_email: Optional[str] = None
    contact_number: Optional[str] = None
    address: Optional[Address] = None
    vat_type: Optional[str] = None
    stakeholders: list[Stakeholder] = []


class CompanyUpdate(BaseModel):
    company_name: Optional[str] = None
    registration_number: Optional[str] = None
    industry_type: Optional[str] = None
    contact_email: Optional[str] = None
    contact_number: Optional[str] = None
    address: Optional[Address] = None
    vat_type: Optional[str] = None
    stakeholders: Optional[list[Stakeholder]] = None
    active: Optional[bool] = None

    @field_validator("company_name", "active")
    @classmethod
    def not_null(cls, value):
        return _not_null(value)


class CompanyResponse(BaseModel):
    id: str
    company_name: str
    registration_number: Optional[str]
    industry_type: Optional[str]
    contact_email: Optional[str]
    contact_number: Optional[str]
    address: Optional[dict] = None
    vat_type: Optional[str]
    stakeholders: list[dict] = []
    active: bool
    employee_count: Optional[int] = 0
    created_at: datetime
    updated_at: datetime


class EmployeeCreate(BaseModel):
    email: str
    first_name: str
    last_name: str
    company_id: Optional[str] = None
    password: Optional[str] = None
    role: Literal["employee", "admin"] = "employee"
    phone_number: Optional[str] = None
    job_title: Optional[str] = None
    employment_type: Optional[str] = None
    employment_start_date: Optional[date] = None
    workload_percentage: Optional[float] = Field(default=None, ge=0, le=100)


class EmployeeUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    role: Optional[Literal["employee", "admin"]] = None
    active_status: Optional[Literal["active", "inactive"]] = None
    job_title: Optional[str] = None
    employment_type: Optional[str] = None
    employment_start_date: Optional[date] = None
    workload_percentage: Optional[float] = Field(default=None, ge=0, le=100)

    @field_validator("first_name", "last_name", "role", "active_status")
    @classmethod
    def not_null(cls, value):
        return _not_null(value)


class EmployeeBulkCreate(BaseModel):
    employees: list[EmployeeCreate] = Field(min_length=1, max_length=200)


class EmployeeResponse(BaseModel):
    id: str
    company_id: str
    first_name: str
    last_name: str
    email: str
    phone_number: Optional[str]
    role: str
    active_status: str
    job_title: Optional[str]
    employment_type: Optional[str]
    employment_start_date: Optional[date]
    workload_percentage: Optional[float]
    created_at: datetime

    class Config:
        from_attributes = True


class BulkCreateError(BaseModel):
    email: str
    error: str


class EmployeeBulkResponse(BaseModel):
    results: list[EmployeeResponse]
    errors: list[BulkCreateError]


class AdminCreate(BaseModel):
    name: str
    email: str
    password: Optional[str] = None


class AdminUpdate(BaseModel):
    name: Optional[str] = None
    status: Optional[bool] = None

    @field_validator("name", "status")
    @classmethod
    def not_null(cls, value):
        return _not_null(value)


class AdminResponse(BaseModel):
    id: str
    name: str
    email: str
    role: str
    status: bool
    created_at: datetime

    class Config:
        from_attributes = True


class TaskCreate(BaseModel):
    title: str
    description: Optional[str] = None
    company_id: Optional[str] = None
    assigned_to: Optional[str] = None
    deadline: datetime
    priority: TaskPriority = TaskPriority.MEDIUM
    reminder_days_before: Literal[2, 3, 5, 10] = 2


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    assigned_to: Optional[str] = None
    deadline: Optional[datetime] = None
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None
    reminder_days_before: Optional[Literal[2, 3, 5, 10]] = None

    @field_validator("title", "deadline", "priority", "status", "reminder_days_before")
    @classmethod
    def not_null(cls, value):
        return _not_null(value)


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


class TaskResponse(BaseModel):
    id: str
    title: str
    description: Optional[str]
    company_id: str
    created_by: str
    assigned_to: Optional[str]
    assigned_user_email: Optional[str] = None
    deadline: datetime
    priority: TaskPriority
    status: TaskStatus
    reminder_days_before: int
    comment_count: int = 0
    created_at: datetime
    updated_at: datetime


class TaskCommentCreate(BaseModel):
    message: str = Field(min_length=1)
    attachment_path: Optional[str] = None


class TaskCommentResponse(BaseModel):
    id: str
    task_id: str
    sender_id: str
    message: str
    attachment_path: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class AccidentReportCreate(BaseModel):
    employee_id: Optional[str] = None
    accident_address: Optional[str] = None
    city: Optional[str] = None
    date_of_accident: date
    time_of_accident: Optional[str] = None
    accident_description: str
    objects_involved: Optional[str] = None
    injuries: Optional[str] = None
    accident_type: Optional[str] = None
    medical_certificate: Optional[str] = None
    comments: Optional[str] = None


class IllnessReportCreate(BaseModel):
    employee_id: Optional[str] = None
    leave_description: str
    date_of_onset_leave: date
    medical_certificate: Optional[str] = None
    comments: Optional[str] = None


class StaffDepartureReportCreate(BaseModel):
    employee_id: Optional[str] = None
    exit_date: date
    documents_required: list[str] = []
    comments: Optional[str] = None


class FormStatusUpdate(BaseModel):
    status: FormStatus
    comments: Optional[str] = None


class ActivityLogResponse(BaseModel):
    id: str
    user_id: str
    company_id: Optional[str]
    activity_type: str
    description: str
    metadata: Optional[dict] = None
    created_at: datetime


class LogMaintenanceResponse(BaseModel):
    time_based_archived_count: int
    main_table_overflow_archived: int
    archive_table_overflow_deleted: int
    old_archive_deleted_count: int
    system_user_id: str


class TokenCleanupResponse(BaseModel):
    expired_tokens_removed: int
    timestamp: str
