import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, Integer, Float, Boolean, Text, DateTime, Date, ForeignKey,
    Enum as SAEnum, Index, CheckConstraint, Uuid
)
from sqlalchemy.orm import relationship
from hdfhr.models.base import Base
import enum

__all__ = [
    "UserStatus", "UserRole", "TaskStatus", "TaskPriority", "FormStatus",
    "ActivityType", "User", "Admin", "Company", "CompanyUser", "Task",
    "TaskComment", "ActivityLog", "ActivityLogArchive", "AccidentReport",
    "IllnessReport", "StaffDepartureReport",
]


def _values(enum_cls):
    return [member.value for member in enum_cls]


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING_CONFIRMATION = "pending_confirmation"


class UserRole(str, enum.Enum):
    SUPER_ADMIN = "superadmin"
    COMPANY_ADMIN = "admin"
    EMPLOYEE = "employee"


class TaskStatus(str, enum.Enum):
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    AWAITING_RESPONSE = "Awaiting Response"
    COMPLETED = "Completed"
    OVERDUE = "Overdue"


class TaskPriority(str, enum.Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class FormStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    APPROVED = "approved"
    DECLINED = "declined"


class ActivityType(str, enum.Enum):
    LOGIN = "login"
    LOGOUT = "logout"
    PROFILE_UPDATE = "profile_update"
    PASSWORD_CHANGE = "password_change"
    ACCOUNT_CREATION = "account_creation"
    ACCOUNT_DELETION = "account_deletion"
    DATA_ACCESS = "data_access"
    DATA_MODIFICATION = "data_modification"
    PERMISSION_CHANGE = "permission_change"
    SYSTEM_ERROR = "system_error"
    SYSTEM_MAINTENANCE = "system_maintenance"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    UPDATE_STATUS = "UPDATE_STATUS"
    ADD_COMMENT = "ADD_COMMENT"
    DELETE = "DELETE"


def gen_uuid():
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=False), primary_key=True, default=gen_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    status = Column(
        SAEnum(UserStatus, name="user_status_enum", values_callable=_values, native_enum=False),
        nullable=False, default=UserStatus.PENDING_CONFIRMATION
    )
    last_login = Column(DateTime, nullable=True)
    reset_token = Column(String(255), unique=True, nullable=True)
    reset_token_expires = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    admin = relationship("Admin", back_populates="user", uselist=False, cascade="all, delete-orphan")
    company_user = relationship(
        "CompanyUser", back_populates="user", uselist=False, cascade="all, delete-orphan",
        foreign_keys="CompanyUser.id"
    )


class Admin(Base):
    __tablename__ = "admin"

    id = Column(Uuid(as_uuid=False), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False, default=UserRole.SUPER_ADMIN.value)
    status = Column(Boolean, default=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="admin")

    __table_args__ = (
        Index("idx_admin_role", "role"),
    )


class Company(Base):
    __tablename__ = "company"

    id = Column(Uuid(as_uuid=False), primary_key=True, default=gen_uuid)
    company_name = Column(String(255), nullable=False)
    registration_number = Column(String(100), nullable=True)
    industry_type = Column(String(100), nullable=True)
    contact_email = Column(String(255), nullable=True)
    contact_number = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    vat_type = Column(String(50), nullable=True)
    stakeholders = Column(Text, nullable=True)
    active = Column(Boolean, default=True)
    created_by = Column(Uuid(as_uuid=False), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    members = relationship("CompanyUser", back_populates="company", cascade="all, delete-orphan")


class CompanyUser(Base):
    __tablename__ = "company_user"

    id = Column(Uuid(as_uuid=False), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    company_id = Column(Uuid(as_uuid=False), ForeignKey("company.id", ondelete="CASCADE"), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    phone_number = Column(String(50), nullable=True)
    role = Column(String(50), nullable=False, default=UserRole.EMPLOYEE.value)
    active_status = Column(String(20), nullable=False, default=UserStatus.ACTIVE.value)
    job_title = Column(String(255), nullable=True)
    employment_type = Column(String(50), nullable=True)
    employment_start_date = Column(Date, nullable=True)
    workload_percentage = Column(Float, nullable=True)
    created_by = Column(Uuid(as_uuid=False), ForeignKey("users.id"), nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="company_user", foreign_keys=[id])
    company = relationship("Company", back_populates="members")

    __table_args__ = (
        Index("idx_company_user_company_id", "company_id"),
        Index("idx_company_user_role", "role"),
    )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Uuid(as_uuid=False), primary_key=True, default=gen_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    company_id = Column(Uuid(as_uuid=False), ForeignKey("company.id", ondelete="CASCADE"), nullable=False)
    created_by = Column(Uuid(as_uuid=False), ForeignKey("users.id"), nullable=False)
    assigned_to = Column(Uuid(as_uuid=False), ForeignKey("users.id"), nullable=True)
    deadline = Column(DateTime, nullable=False)
    priority = Column(
        SAEnum(TaskPriority, name="task_priority_enum", values_callable=_values, native_enum=False),
        nullable=False, default=TaskPriority.MEDIUM
    )
    status = Column(
        SAEnum(TaskStatus, name="task_status_enum", values_callable=_values, native_enum=False),
        nullable=False, default=TaskStatus.OPEN
    )
    reminder_days_before = Column(Integer, default=2)
    reminder_sent_on = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    company = relationship("Company")
    creator = relationship("User", foreign_keys=[created_by])
    assignee = relationship("User", foreign_keys=[assigned_to])
    comments = relationship(
        "TaskComment", back_populates="task", cascade="all, delete-orphan",
        order_by="TaskComment.created_at"
    )

    __table_args__ = (
        CheckConstraint("reminder_days_before IN (2, 3, 5, 10)", name="ck_tasks_reminder_days"),
        Index("idx_tasks_company_id", "company_id"),
        Index("idx_tasks_assigned_to", "assigned_to"),
        Index("idx_tasks_status", "status"),
        Index("idx_tasks_deadline", "deadline"),
    )


class TaskComment(Base):
    __tablename__ = "task_comments"

    id = Column(Uuid(as_uuid=False), primary_key=True, default=gen_uuid)
    task_id = Column(Uuid(as_uuid=False), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    company_id = Column(Uuid(as_uuid=False), ForeignKey("company.id"), nullable=False)
    sender_id = Column(Uuid(as_uuid=False), ForeignKey("users.id"), nullable=False)
    message = Column(Text, nullable=False)
    attachment_path = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    task = relationship("Task", back_populates="comments")
    sender = relationship("User")

    __table_args__ = (
        Index("idx_task_comments_task_id", "task_id"),
    )


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(Uuid(as_uuid=False), primary_key=True, default=gen_uuid)
    user_id = Column(Uuid(as_uuid=False), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    company_id = Column(Uuid(as_uuid=False), ForeignKey("company.id", ondelete="SET NULL"), nullable=True)
    activity_type = Column(String(50), nullable=False)
    description = Column(Text, nullable=False)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    details = Column("metadata", Text, nullable=True)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User")

    __table_args__ = (
        Index("idx_activity_logs_user_id", "user_id"),
        Index("idx_activity_logs_created_at", "created_at"),
        Index("idx_activity_logs_company_id", "company_id"),
    )


class ActivityLogArchive(Base):
    __tablename__ = "activity_logs_archive"

    id = Column(Uuid(as_uuid=False), primary_key=True)
    user_id = Column(Uuid(as_uuid=False), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    company_id = Column(Uuid(as_uuid=False), ForeignKey("company.id", ondelete="SET NULL"), nullable=True)
    activity_type = Column(String(50), nullable=False)
    description = Column(Text, nullable=False)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    details = Column("metadata", Text, nullable=True)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=True)
    archived_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_activity_logs_archive_created_at", "created_at"),
        Index("idx_activity_logs_archive_company_id", "company_id"),
    )


class _ReportColumns:
    """Columns shared by every report form."""

    id = Column(Uuid(as_uuid=False), primary_key=True, default=gen_uuid)
    status = Column(
        SAEnum(FormStatus, name="form_status_enum", values_callable=_values, native_enum=False),
        nullable=False, default=FormStatus.PENDING
    )
    comments = Column(Text, nullable=True)
    medical_certificate = Column(String(255), nullable=True)
    modified_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class AccidentReport(_ReportColumns, Base):
    __tablename__ = "accident_report"

    company_id = Column(Uuid(as_uuid=False), ForeignKey("company.id", ondelete="CASCADE"), nullable=False)
    employee_id = Column(Uuid(as_uuid=False), ForeignKey("company_user.id", ondelete="CASCADE"), nullable=False)
    submitted_by = Column(Uuid(as_uuid=False), ForeignKey("users.id"), nullable=True)
    modified_by = Column(Uuid(as_uuid=False), ForeignKey("users.id"), nullable=True)
    accident_address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    date_of_accident = Column(Date, nullable=False)
    time_of_accident = Column(String(10), nullable=True)
    accident_description = Column(Text, nullable=False)
    objects_involved = Column(Text, nullable=True)
    injuries = Column(Text, nullable=True)
    accident_type = Column(String(100), nullable=True)

    __table_args__ = (
        Index("idx_accident_report_company", "company_id"),
        Index("idx_accident_report_employee", "employee_id"),
    )


class IllnessReport(_ReportColumns, Base):
    __tablename__ = "illness_report"

    company_id = Column(Uuid(as_uuid=False), ForeignKey("company.id", ondelete="CASCADE"), nullable=False)
    employee_id = Column(Uuid(as_uuid=False), ForeignKey("company_user.id", ondelete="CASCADE"), nullable=False)
    submitted_by = Column(Uuid(as_uuid=False), ForeignKey("users.id"), nullable=True)
    modified_by = Column(Uuid(as_uuid=False), ForeignKey("users.id"), nullable=True)
    leave_description = Column(Text, nullable=False)
    date_of_onset_leave = Column(Date, nullable=False)

    __table_args__ = (
        Index("idx_illness_report_company", "company_id"),
        Index("idx_illness_report_employee", "employee_id"),
    )


class StaffDepartureReport(_ReportColumns, Base):
    __tablename__ = "staff_departure_report"

    company_id = Column(Uuid(as_uuid=False), ForeignKey("company.id", ondelete="CASCADE"), nullable=False)
    employee_id = Column(Uuid(as_uuid=False), ForeignKey("company_user.id", ondelete="CASCADE"), nullable=False)
    submitted_by = Column(Uuid(as_uuid=False), ForeignKey("users.id"), nullable=True)
    modified_by = Column(Uuid(as_uuid=False), ForeignKey("users.id"), nullable=True)
    exit_date = Column(Date, nullable=False)
    documents_required = Column(Text, nullable=True)
    documents_submitted = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_staff_departure_company", "company_id"),
        Index("idx_staff_departure_employee", "employee_id"),
    )
