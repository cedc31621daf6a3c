import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..auth.security import require_admin, get_password_hash
from ..db import get_db
from ..logging import structlog
from ..models.models import Task, User
from ..schemas.auth import StaffCreateRequest
from ..schemas.tasks import (
    TaskCreateRequest,
    TaskUpdateRequest,
    OverrideClockInRequest,
    OverrideClockOutRequest,
)
from ..services import attendance
from ..services.activity import log_activity, get_activity_logs
from ..services.time_rules import ensure_utc
from .tasks import serialize_task, get_task_or_404


router = APIRouter(prefix="/admin", tags=["admin"])
logger = structlog.get_logger(__name__)


def _serialize_staff(user: User) -> dict:
    return {
        "id": str(user.id),
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "isActive": user.is_active,
        "createdAt": ensure_utc(user.created_at).isoformat() if user.created_at else None,
        "lastLoginAt": ensure_utc(user.last_login_at).isoformat() if user.last_login_at else None,
    }


def _get_staff_or_404(staff_id: str, db: Session) -> User:
    try:
        staff_uuid = uuid.UUID(str(staff_id))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid staff id") from exc
    staff = db.query(User).filter(User.id == staff_uuid, User.role == "staff").first()
    if not staff:
        raise HTTPException(status_code=404, detail="Staff member not found")
    return staff


# ---------- Tasks ----------

@router.post("/tasks", status_code=201)
def create_task(payload: TaskCreateRequest, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    assignee = _get_staff_or_404(payload.staff_id, db) if payload.staff_id else None
    task = Task(
        title=payload.title,
        description=payload.description,
        location=payload.location,
        latitude=payload.latitude,
        longitude=payload.longitude,
        contact_person=payload.contact_person,
        scheduled_start_time=ensure_utc(payload.scheduled_start_time),
        scheduled_end_time=ensure_utc(payload.scheduled_end_time),
        total_hours=payload.total_hours,
        created_by=admin.id,
        assigned_to=assignee.id if assignee else None,
        status="assigned" if assignee else "pending",
    )
    db.add(task)
    db.commit()
    db.refresh(task)
    logger.info("task_created", task_id=str(task.id), assigned_to=str(task.assigned_to) if task.assigned_to else None)
    return serialize_task(task)


@router.get("/tasks")
def list_tasks(
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    q = db.query(Task)
    if status:
        q = q.filter(Task.status == status)
    rows = q.order_by(Task.scheduled_start_time.desc()).all()
    return [serialize_task(t) for t in rows]


@router.get("/tasks/{task_id}")
def get_task(task_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return serialize_task(get_task_or_404(task_id, db))


@router.put("/tasks/{task_id}")
def update_task(
    task_id: str,
    payload: TaskUpdateRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    task = get_task_or_404(task_id, db)
    changes = payload.model_dump(exclude_unset=True)

    for field in ("title", "description", "location", "contact_person", "total_hours"):
        if field in changes:
            setattr(task, field, changes[field])

    start = ensure_utc(changes.get("scheduled_start_time", task.scheduled_start_time))
    end = ensure_utc(changes.get("scheduled_end_time", task.scheduled_end_time))
    if start and end and end <= start:
        raise HTTPException(status_code=400, detail="scheduledEndTime must be after scheduledStartTime")
    task.scheduled_start_time = start
    task.scheduled_end_time = end

    if changes.get("staff_id"):
        if task.clock_in_time is not None:
            raise HTTPException(status_code=400, detail="Cannot reassign a task that has been clocked in")
        staff = _get_staff_or_404(changes["staff_id"], db)
        task.assigned_to = staff.id
        if task.status == "pending":
            attendance.transition_status(task, "assigned")

    if changes.get("status"):
        if changes["status"] == "assigned" and task.assigned_to is None:
            raise HTTPException(status_code=400, detail="Assign a staff member before marking the task assigned")
        attendance.transition_status(task, changes["status"])

    db.commit()
    db.refresh(task)
    logger.info("task_updated", task_id=str(task.id), fields=sorted(changes.keys()))
    return serialize_task(task)


@router.delete("/tasks/{task_id}")
def delete_task(task_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    task = get_task_or_404(task_id, db)
    db.delete(task)
    db.commit()
    logger.info("task_deleted", task_id=task_id)
    return {"status": "ok"}


@router.post("/tasks/{task_id}/override-clock-in")
def override_clock_in(
    task_id: str,
    payload: OverrideClockInRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    task = get_task_or_404(task_id, db)
    task = attendance.override_clock_in(db, task, admin, payload.reason)
    return serialize_task(task)


@router.post("/tasks/{task_id}/override-clock-out")
def override_clock_out(
    task_id: str,
    payload: OverrideClockOutRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    task = get_task_or_404(task_id, db)
    task = attendance.override_clock_out(db, task, admin, payload.reason, payload.work_summary)
    return serialize_task(task)


# ---------- Staff ----------

@router.post("/staff", status_code=201)
def create_staff(payload: StaffCreateRequest, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    email = payload.email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=409, detail="A user with this email already exists")
    staff = User(
        name=payload.name.strip(),
        email=email,
        password_hash=get_password_hash(payload.password),
        role="staff",
        is_active=True,
    )
    db.add(staff)
    db.commit()
    db.refresh(staff)
    logger.info("staff_created", user_id=str(staff.id))
    return _serialize_staff(staff)


@router.get("/staff")
def list_staff(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    rows = db.query(User).filter(User.role == "staff").order_by(User.name.asc()).all()
    return [_serialize_staff(u) for u in rows]


@router.put("/staff/{staff_id}/toggle-status")
def toggle_staff_status(staff_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    staff = _get_staff_or_404(staff_id, db)
    staff.is_active = not staff.is_active
    log_activity(
        db,
        admin.id,
        "staff_status_changed",
        f"{'Activated' if staff.is_active else 'Deactivated'} account {staff.email}",
        context={"target_user_id": str(staff.id), "is_active": staff.is_active},
    )
    db.commit()
    db.refresh(staff)
    logger.info("staff_status_changed", user_id=str(staff.id), is_active=staff.is_active)
    return _serialize_staff(staff)


# ---------- Activity ----------

@router.get("/activity-logs")
def activity_logs(
    user_id: Optional[str] = Query(None, alias="userId"),
    activity_type: Optional[str] = Query(None, alias="activityType"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user_uuid = None
    if user_id:
        try:
            user_uuid = uuid.UUID(user_id)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid user id") from exc
    rows = get_activity_logs(db, user_id=user_uuid, activity_type=activity_type, limit=limit, offset=offset)
    return [
        {
            "id": str(r.id),
            "userId": str(r.user_id) if r.user_id else None,
            "activityType": r.activity_type,
            "description": r.description,
            "context": r.context,
            "createdAt": ensure_utc(r.created_at).isoformat() if r.created_at else None,
        }
        for r in rows
    ]
