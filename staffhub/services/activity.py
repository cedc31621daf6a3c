"""
Activity logging service.
Append-only activity trail with integrity hashing.
"""
import hashlib
import json
from datetime import datetime, timezone
from typing import Optional, Dict
from sqlalchemy.orm import Session

from ..models.models import ActivityLog
from ..config import settings


ACTIVITY_TYPES = (
    "clock_in",
    "clock_out",
    "override_clock_in",
    "override_clock_out",
    "review_link_issued",
    "review_link_redeemed",
    "staff_status_changed",
)


def compute_integrity_hash(entry: Dict, secret: Optional[str] = None) -> Optional[str]:
    if secret is None:
        secret = settings.jwt_secret
    if not secret:
        return None
    # Remove None values and sort keys for consistency
    canonical = {k: v for k, v in entry.items() if v is not None}
    canonical_json = json.dumps(canonical, sort_keys=True, default=str)
    return hashlib.sha256(f"{canonical_json}:{secret}".encode()).hexdigest()


def log_activity(
    db: Session,
    user_id,
    activity_type: str,
    description: str,
    context: Optional[Dict] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    commit: bool = False,
) -> ActivityLog:
    """
    Add an activity log entry to the session.

    Args:
        db: Database session
        user_id: Acting user (staff member or admin)
        activity_type: One of ACTIVITY_TYPES
        description: Human readable summary
        context: Additional context (task_id, latitude, longitude, reason, ...)
        ip_address: Caller IP if known
        user_agent: Caller user agent if known
        commit: Commit immediately instead of riding the caller's transaction

    Returns:
        Created ActivityLog object
    """
    if activity_type not in ACTIVITY_TYPES:
        raise ValueError(f"Unknown activity type: {activity_type}")

    created_at = datetime.now(timezone.utc)
    integrity_hash = compute_integrity_hash({
        "user_id": str(user_id) if user_id else None,
        "activity_type": activity_type,
        "description": description,
        "context": context,
        "created_at": created_at.isoformat(),
    })

    entry = ActivityLog(
        user_id=user_id,
        activity_type=activity_type,
        description=description,
        context=context,
        ip_address=ip_address,
        user_agent=user_agent[:512] if user_agent else None,
        integrity_hash=integrity_hash,
        created_at=created_at,
    )
    db.add(entry)
    if commit:
        db.commit()
        db.refresh(entry)
    return entry


def get_activity_logs(
    db: Session,
    user_id=None,
    activity_type: Optional[str] = None,
    limit: int = 100,
    offset: int = 0
) -> list:
    """Get activity logs, newest first, with optional filtering."""
    query = db.query(ActivityLog)

    if user_id:
        query = query.filter(ActivityLog.user_id == user_id)

    if activity_type:
        query = query.filter(ActivityLog.activity_type == activity_type)

    query = query.order_by(ActivityLog.created_at.desc())
    query = query.limit(limit).offset(offset)

    return query.all()
