import uuid
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..auth.security import get_current_user
from ..db import get_db
from ..models.models import Task, User
from ..schemas.tasks import ClockInRequest, ClockOutRequest
from ..services import attendance
from ..services.permissions import can_view_task
from ..services.time_rules import ensure_utc


router = APIRouter(prefix="/tasks", tags=["tasks"])


def _iso(dt):
    return ensure_utc(dt).isoformat() if dt else None


def serialize_task(task: Task) -> Dict[str, Any]:
    return {
        "id": str(task.id),
        "title": task.title,
        "description": task.description,
        "location": task.location,
        "coordinates": task.coordinates,
        "contactPerson": task.contact_person,
        "status": task.status,
        "scheduledStartTime": _iso(task.scheduled_start_time),
        "scheduledEndTime": _iso(task.scheduled_end_time),
        "clockInTime": _iso(task.clock_in_time),
        "clockOutTime": _iso(task.clock_out_time),
        "hoursSpent": task.hours_spent,
        "totalHours": task.total_hours,
        "workSummary": task.work_summary,
        "createdBy": str(task.created_by) if task.created_by else None,
        "assignedTo": {
            "id": str(task.assigned_to),
            "name": task.assignee.name if task.assignee else None,
            "email": task.assignee.email if task.assignee else None,
        } if task.assigned_to else None,
        "overrideClockIn": task.override_clock_in,
        "overrideClockOut": task.override_clock_out,
        "overrideReason": task.override_reason,
        "createdAt": _iso(task.created_at),
        "updatedAt": _iso(task.updated_at),
    }


def get_task_or_404(task_id: str, db: Session) -> Task:
    try:
        task_uuid = uuid.UUID(str(task_id))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid task id") from exc
    task = db.query(Task).filter(Task.id == task_uuid).first()
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.get("/my-tasks")
def my_tasks(db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    rows = (
        db.query(Task)
        .filter(or_(Task.assigned_to == me.id, Task.created_by == me.id))
        .order_by(Task.scheduled_start_time.desc())
        .all()
    )
    return [serialize_task(t) for t in rows]


@router.get("/{task_id}")
def get_task(task_id: str, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    task = get_task_or_404(task_id, db)
    if not can_view_task(me, task):
        raise HTTPException(status_code=403, detail="Access denied")
    return serialize_task(task)


@router.post("/{task_id}/clock-in")
def clock_in(
    task_id: str,
    payload: ClockInRequest,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    task = get_task_or_404(task_id, db)
    task = attendance.clock_in(
        db,
        task,
        me,
        latitude=payload.latitude,
        longitude=payload.longitude,
        accuracy=payload.accuracy,
    )
    return {
        "message": "Clocked in successfully",
        "taskId": str(task.id),
        "status": task.status,
        "clockInTime": _iso(task.clock_in_time),
    }


@router.post("/{task_id}/clock-out")
def clock_out(
    task_id: str,
    payload: ClockOutRequest,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    task = get_task_or_404(task_id, db)
    task = attendance.clock_out(
        db,
        task,
        me,
        latitude=payload.latitude,
        longitude=payload.longitude,
        work_summary=payload.work_summary,
        accuracy=payload.accuracy,
    )
    return {
        "message": "Clocked out successfully",
        "taskId": str(task.id),
        "status": task.status,
        "clockInTime": _iso(task.clock_in_time),
        "clockOutTime": _iso(task.clock_out_time),
        "hoursSpent": task.hours_spent,
    }
