"""
Task attendance service.
Owns the task status lifecycle and the clock-in / clock-out rules:
assignee check, GPS accuracy, the scheduled-start window, the site geofence
and the derived worked hours. Times are always taken from the server clock.
"""
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..config import settings
from ..logging import structlog
from ..models.models import Task, User, TASK_STATUSES
from .activity import log_activity
from .geofence import inside_geofence, accuracy_acceptable
from .permissions import ensure_task_assignee
from .time_rules import utcnow, ensure_utc, is_within_tolerance, hours_between


logger = structlog.get_logger(__name__)


ALLOWED_TRANSITIONS = {
    "pending": {"assigned", "cancelled"},
    "assigned": {"pending", "in-progress", "cancelled"},
    "in-progress": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}

CLOSED_STATUSES = ("completed", "cancelled")
# pending tasks must be assigned before anyone can clock in
CLOCK_IN_STATUSES = ("assigned", "in-progress")


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def transition_status(task: Task, target: str) -> None:
    """
    Apply an admin status change.

    Raises:
        HTTPException 400 if the move is not in ALLOWED_TRANSITIONS
    """
    if target == task.status:
        return
    if target not in TASK_STATUSES:
        raise HTTPException(status_code=400, detail=f"Unknown status: {target}")
    if not can_transition(task.status, target):
        raise HTTPException(
            status_code=400,
            detail=f"Cannot change task status from {task.status} to {target}",
        )
    task.status = target


def _ensure_can_clock_in(task: Task) -> None:
    # Repeat calls are always rejected this way, whatever the location or time
    if task.clock_in_time is not None:
        raise HTTPException(status_code=409, detail="Already clocked in")
    if task.status not in CLOCK_IN_STATUSES:
        raise HTTPException(status_code=400, detail="Task is not open for clock-in")


def _ensure_can_clock_out(task: Task, work_summary: Optional[str]) -> str:
    if task.clock_in_time is None:
        raise HTTPException(status_code=400, detail="Not clocked in yet")
    if task.clock_out_time is not None:
        raise HTTPException(status_code=409, detail="Already clocked out")
    if task.status in CLOSED_STATUSES:
        raise HTTPException(status_code=400, detail="Task is not open for clock-out")
    summary = (work_summary or "").strip()
    if not summary:
        raise HTTPException(status_code=400, detail="Work summary is required to clock out")
    return summary


def _check_accuracy(task: Task, accuracy: Optional[float], event: str) -> None:
    if not accuracy_acceptable(accuracy):
        logger.info(event, task_id=str(task.id), reason="accuracy", accuracy=accuracy)
        raise HTTPException(
            status_code=400,
            detail=f"Location is not precise enough (accuracy {accuracy:.0f}m, max {settings.gps_accuracy_max_m:.0f}m)",
        )


def _check_distance(task: Task, latitude: float, longitude: float, event: str) -> float:
    coords = task.coordinates
    if coords is None:
        logger.info(event, task_id=str(task.id), reason="no_site_coordinates")
        raise HTTPException(status_code=400, detail="No assigned location configured for this task")
    inside, distance = inside_geofence(latitude, longitude, coords["latitude"], coords["longitude"])
    if not inside:
        logger.info(event, task_id=str(task.id), reason="geofence", distance_m=round(distance, 1))
        raise HTTPException(
            status_code=400,
            detail=f"Too far from the task site ({distance:.0f}m away, max {settings.geofence_radius_m:.0f}m)",
        )
    return distance


def clock_in(
    db: Session,
    task: Task,
    user: User,
    latitude: float,
    longitude: float,
    accuracy: Optional[float] = None,
    now: Optional[datetime] = None,
) -> Task:
    """
    Record the assignee's arrival at the task site.

    Check order: assignee, already clocked in, open status, GPS accuracy,
    scheduled-start window, site coordinates, geofence distance.
    """
    ensure_task_assignee(user, task)
    _ensure_can_clock_in(task)

    now = ensure_utc(now) if now is not None else utcnow()

    _check_accuracy(task, accuracy, "clock_in_rejected")

    if task.scheduled_start_time is not None:
        if not is_within_tolerance(now, task.scheduled_start_time):
            logger.info(
                "clock_in_rejected",
                task_id=str(task.id),
                reason="window",
                scheduled_start=ensure_utc(task.scheduled_start_time).isoformat(),
            )
            raise HTTPException(
                status_code=400,
                detail=f"Outside the check-in window. Clock-in is allowed within {settings.clock_in_window_min} minutes of the scheduled start time",
            )

    distance = _check_distance(task, latitude, longitude, "clock_in_rejected")

    task.clock_in_time = now
    task.status = "in-progress"
    log_activity(
        db,
        user.id,
        "clock_in",
        f"Clocked in to task: {task.title}",
        context={
            "task_id": str(task.id),
            "latitude": latitude,
            "longitude": longitude,
            "accuracy": accuracy,
            "distance_m": round(distance, 1),
        },
    )
    db.commit()
    db.refresh(task)
    logger.info("clock_in_recorded", task_id=str(task.id), user_id=str(user.id), distance_m=round(distance, 1))
    return task


def clock_out(
    db: Session,
    task: Task,
    user: User,
    latitude: float,
    longitude: float,
    work_summary: Optional[str],
    accuracy: Optional[float] = None,
    now: Optional[datetime] = None,
) -> Task:
    """
    Record the assignee leaving the task and close it.
    Worked hours are derived from the stored clock-in time.
    """
    ensure_task_assignee(user, task)
    summary = _ensure_can_clock_out(task, work_summary)

    if settings.enforce_geofence_on_clock_out:
        _check_accuracy(task, accuracy, "clock_out_rejected")
        _check_distance(task, latitude, longitude, "clock_out_rejected")

    now = ensure_utc(now) if now is not None else utcnow()

    task.clock_out_time = now
    task.work_summary = summary
    task.status = "completed"
    task.hours_spent = hours_between(task.clock_in_time, now)
    log_activity(
        db,
        user.id,
        "clock_out",
        f"Clocked out of task: {task.title}",
        context={
            "task_id": str(task.id),
            "latitude": latitude,
            "longitude": longitude,
            "hours_spent": task.hours_spent,
        },
    )
    db.commit()
    db.refresh(task)
    logger.info("clock_out_recorded", task_id=str(task.id), user_id=str(user.id), hours_spent=task.hours_spent)
    return task


def _append_reason(task: Task, label: str, reason: str) -> None:
    line = f"[{label}] {reason}"
    task.override_reason = f"{task.override_reason}\n{line}" if task.override_reason else line


def override_clock_in(
    db: Session,
    task: Task,
    admin: User,
    reason: str,
    now: Optional[datetime] = None,
) -> Task:
    """Admin-forced clock-in. Skips assignee, accuracy, window and geofence checks."""
    reason = (reason or "").strip()
    if not reason:
        raise HTTPException(status_code=400, detail="Override reason is required")
    _ensure_can_clock_in(task)

    now = ensure_utc(now) if now is not None else utcnow()
    task.clock_in_time = now
    task.status = "in-progress"
    task.override_clock_in = True
    _append_reason(task, "clock-in", reason)
    log_activity(
        db,
        admin.id,
        "override_clock_in",
        f"Admin override clock-in for task: {task.title}",
        context={"task_id": str(task.id), "reason": reason, "assigned_to": str(task.assigned_to) if task.assigned_to else None},
    )
    db.commit()
    db.refresh(task)
    logger.info("clock_in_overridden", task_id=str(task.id), admin_id=str(admin.id))
    return task


def override_clock_out(
    db: Session,
    task: Task,
    admin: User,
    reason: str,
    work_summary: Optional[str],
    now: Optional[datetime] = None,
) -> Task:
    """Admin-forced clock-out. Same state preconditions as a staff clock-out."""
    reason = (reason or "").strip()
    if not reason:
        raise HTTPException(status_code=400, detail="Override reason is required")
    summary = _ensure_can_clock_out(task, work_summary)

    now = ensure_utc(now) if now is not None else utcnow()
    task.clock_out_time = now
    task.work_summary = summary
    task.status = "completed"
    task.hours_spent = hours_between(task.clock_in_time, now)
    task.override_clock_out = True
    _append_reason(task, "clock-out", reason)
    log_activity(
        db,
        admin.id,
        "override_clock_out",
        f"Admin override clock-out for task: {task.title}",
        context={"task_id": str(task.id), "reason": reason, "hours_spent": task.hours_spent},
    )
    db.commit()
    db.refresh(task)
    logger.info("clock_out_overridden", task_id=str(task.id), admin_id=str(admin.id))
    return task
