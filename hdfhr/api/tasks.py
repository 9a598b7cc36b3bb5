from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from sqlalchemy import func
from hdfhr.db.session import get_db
from hdfhr.core.auth import get_current_principal, require_admin
from hdfhr.core.policies import Principal, scope_query, can_write_task, can_update_task_status
from hdfhr.models.models import Task, TaskStatus, TaskComment, Company, CompanyUser, ActivityType
from hdfhr.schemas.schemas import (
    TaskCreate, TaskUpdate, TaskStatusUpdate, TaskResponse,
    TaskCommentCreate, TaskCommentResponse,
)
from hdfhr.services.activity_service import log_activity

router = APIRouter(prefix="/api/tasks", tags=["tasks"])

VALID_TASK_STATUSES = [s.value for s in TaskStatus]


def _get_task_or_404(task_id: str, principal: Principal, db: Session) -> Task:
    task = scope_query(db.query(Task), Task, principal).filter(Task.id == task_id).first()
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


def _check_assignee(db: Session, company_id: str, user_id: str | None):
    if not user_id:
        return
    member = db.query(CompanyUser).filter(
        CompanyUser.id == user_id,
        CompanyUser.company_id == company_id,
        CompanyUser.deleted_at.is_(None),
    ).first()
    if not member:
        raise HTTPException(status_code=400, detail="Assignee must belong to the task's company")


def task_to_response(task: Task, db: Session) -> TaskResponse:
    comment_count = db.query(func.count(TaskComment.id)).filter(TaskComment.task_id == task.id).scalar() or 0
    return TaskResponse(
        id=task.id, title=task.title, description=task.description,
        company_id=task.company_id, created_by=task.created_by,
        assigned_to=task.assigned_to,
        assigned_user_email=task.assignee.email if task.assignee else None,
        deadline=task.deadline, priority=task.priority, status=task.status,
        reminder_days_before=task.reminder_days_before,
        comment_count=comment_count,
        created_at=task.created_at, updated_at=task.updated_at,
    )


@router.get("", response_model=list[TaskResponse])
def list_tasks(
    status: str = Query(None),
    company_id: str = Query(None),
    assigned_to: str = Query(None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    q = scope_query(db.query(Task), Task, principal)
    if status and status in VALID_TASK_STATUSES:
        q = q.filter(Task.status == TaskStatus(status))
    if company_id:
        q = q.filter(Task.company_id == company_id)
    if assigned_to:
        q = q.filter(Task.assigned_to == assigned_to)
    tasks = q.order_by(Task.deadline.asc()).all()
    return [task_to_response(t, db) for t in tasks]


@router.post("", response_model=TaskResponse)
def create_task(data: TaskCreate, principal: Principal = Depends(require_admin),
                db: Session = Depends(get_db)):
    if principal.is_super_admin:
        if not data.company_id:
            raise HTTPException(status_code=400, detail="company_id is required")
        company_id = data.company_id
    else:
        if data.company_id and data.company_id != principal.company_id:
            raise HTTPException(status_code=403, detail="No access to this company")
        company_id = principal.company_id
    if not db.query(Company).filter(Company.id == company_id).first():
        raise HTTPException(status_code=404, detail="Company not found")
    _check_assignee(db, company_id, data.assigned_to)

    task = Task(
        title=data.title,
        description=data.description,
        company_id=company_id,
        created_by=principal.user_id,
        assigned_to=data.assigned_to,
        deadline=data.deadline,
        priority=data.priority,
        status=TaskStatus.OPEN,
        reminder_days_before=data.reminder_days_before,
    )
    db.add(task)
    db.flush()
    log_activity(db, principal.user_id, ActivityType.CREATE, f"Created task {task.title}",
                 company_id=company_id, metadata={"task_id": task.id},
                 new_value={"title": task.title, "assigned_to": task.assigned_to})
    db.commit()
    db.refresh(task)
    return task_to_response(task, db)


@router.get("/{task_id}", response_model=TaskResponse)
def get_task(task_id: str, principal: Principal = Depends(get_current_principal),
             db: Session = Depends(get_db)):
    return task_to_response(_get_task_or_404(task_id, principal, db), db)


@router.put("/{task_id}", response_model=TaskResponse)
def update_task(task_id: str, data: TaskUpdate,
                principal: Principal = Depends(get_current_principal),
                db: Session = Depends(get_db)):
    task = _get_task_or_404(task_id, principal, db)
    if not can_write_task(principal, task):
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    changes = data.model_dump(exclude_unset=True)
    if "assigned_to" in changes:
        _check_assignee(db, task.company_id, changes["assigned_to"])

    old = {key: getattr(task, key) for key in changes}
    for key, value in changes.items():
        setattr(task, key, value)
    log_activity(db, principal.user_id, ActivityType.UPDATE, f"Updated task {task.title}",
                 company_id=task.company_id, metadata={"task_id": task.id},
                 old_value=old, new_value=changes)
    db.commit()
    db.refresh(task)
    return task_to_response(task, db)


@router.patch("/{task_id}/status", response_model=TaskResponse)
def update_task_status(task_id: str, data: TaskStatusUpdate,
                       principal: Principal = Depends(get_current_principal),
                       db: Session = Depends(get_db)):
    task = _get_task_or_404(task_id, principal, db)
    if not can_update_task_status(principal, task):
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    old_status = task.status
    task.status = data.status
    log_activity(db, principal.user_id, ActivityType.UPDATE_STATUS,
                 f"Changed status of task {task.title} to {data.status.value}",
                 company_id=task.company_id, metadata={"task_id": task.id},
                 old_value={"status": old_status.value}, new_value={"status": data.status.value})
    db.commit()
    db.refresh(task)
    return task_to_response(task, db)


@router.delete("/{task_id}")
def delete_task(task_id: str, principal: Principal = Depends(get_current_principal),
                db: Session = Depends(get_db)):
    task = _get_task_or_404(task_id, principal, db)
    if not can_write_task(principal, task):
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    log_activity(db, principal.user_id, ActivityType.DELETE, f"Deleted task {task.title}",
                 company_id=task.company_id, metadata={"task_id": task.id},
                 old_value={"title": task.title, "status": task.status.value})
    db.delete(task)
    db.commit()
    return {"ok": True}


@router.get("/{task_id}/comments", response_model=list[TaskCommentResponse])
def list_comments(task_id: str, principal: Principal = Depends(get_current_principal),
                  db: Session = Depends(get_db)):
    _get_task_or_404(task_id, principal, db)
    q = scope_query(db.query(TaskComment), TaskComment, principal)
    return q.filter(TaskComment.task_id == task_id).order_by(TaskComment.created_at.asc()).all()


@router.post("/{task_id}/comments", response_model=TaskCommentResponse)
def add_comment(task_id: str, data: TaskCommentCreate,
                principal: Principal = Depends(get_current_principal),
                db: Session = Depends(get_db)):
    task = _get_task_or_404(task_id, principal, db)
    comment = TaskComment(
        task_id=task.id,
        company_id=task.company_id,
        sender_id=principal.user_id,
        message=data.message,
        attachment_path=data.attachment_path,
    )
    db.add(comment)
    db.flush()
    log_activity(db, principal.user_id, ActivityType.ADD_COMMENT, f"Commented on task {task.title}",
                 company_id=task.company_id, metadata={"task_id": task.id, "comment_id": comment.id})
    db.commit()
    db.refresh(comment)
    return comment
