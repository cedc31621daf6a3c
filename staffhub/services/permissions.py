"""
Authorization predicates, evaluated per operation.
"""
from fastapi import HTTPException

from ..models.models import User, Task


def is_admin(user: User) -> bool:
    """Check if user has the admin role."""
    return user.role == "admin"


def is_task_assignee(user: User, task: Task) -> bool:
    """Only the assigned staff member may clock in or out of a task."""
    return task.assigned_to is not None and str(task.assigned_to) == str(user.id)


def can_view_task(user: User, task: Task) -> bool:
    """
    Check if user can see a task.
    - Admin can see any task
    - Assignee and creator can see their own tasks
    """
    if is_admin(user):
        return True
    if is_task_assignee(user, task):
        return True
    return task.created_by is not None and str(task.created_by) == str(user.id)


def ensure_task_assignee(user: User, task: Task) -> None:
    if not is_task_assignee(user, task):
        raise HTTPException(status_code=403, detail="You are not assigned to this task")
