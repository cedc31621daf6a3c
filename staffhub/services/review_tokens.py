"""
One-time review access links.

A link carries a signed JWT naming a ReviewToken row by its jti. Redeeming
it claims the row with a single conditional UPDATE, so at most one request
ever wins, then hands out a short session and deactivates the account.
"""
import uuid
from datetime import datetime, timedelta
from typing import Optional, Tuple
from urllib.parse import quote

import jwt
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..auth.security import create_access_token, create_review_link_token
from ..config import settings
from ..logging import structlog
from ..models.models import ReviewToken, User
from .activity import log_activity
from .time_rules import utcnow, ensure_utc


logger = structlog.get_logger(__name__)

MIN_LINK_TTL_SECONDS = 60


def effective_link_ttl(ttl_seconds: Optional[int] = None) -> int:
    """Requested TTL (or the default), capped at the configured maximum."""
    if ttl_seconds is not None and ttl_seconds < MIN_LINK_TTL_SECONDS:
        raise HTTPException(status_code=422, detail=f"ttlSeconds must be at least {MIN_LINK_TTL_SECONDS}")
    ttl = ttl_seconds or settings.review_link_ttl_seconds
    return min(ttl, settings.review_max_link_ttl_seconds)


def build_review_link(token: str) -> str:
    base = (settings.public_base_url or "").rstrip("/")
    return f"{base}/review-access?token={quote(token, safe='')}"


def _find_target_user(db: Session, email: Optional[str], user_id: Optional[str]) -> User:
    if bool(email) == bool(user_id):
        raise HTTPException(status_code=400, detail="Provide exactly one of email or userId")
    if email:
        user = db.query(User).filter(User.email == email.strip().lower()).first()
    else:
        try:
            user_uuid = uuid.UUID(str(user_id))
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid user id")
        user = db.query(User).filter(User.id == user_uuid).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def issue_review_link(
    db: Session,
    issued_by: Optional[User] = None,
    email: Optional[str] = None,
    user_id: Optional[str] = None,
    ttl_seconds: Optional[int] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Mint a one-time review link for an active user.

    Args:
        db: Database session
        issued_by: Admin issuing the link (None from the CLI)
        email: Target user's email (exclusive with user_id)
        user_id: Target user's id (exclusive with email)
        ttl_seconds: Requested lifetime, at least 60, capped at REVIEW_MAX_LINK_TTL_SECONDS
        now: Issue time, defaults to the server clock

    Returns:
        Dict with message, link, expiresInSeconds and the target user summary
    """
    ttl = effective_link_ttl(ttl_seconds)
    user = _find_target_user(db, email, user_id)
    if not user.is_active:
        raise HTTPException(status_code=400, detail="User is not active. Reactivate the account before issuing a link")

    now = ensure_utc(now) if now is not None else utcnow()
    expires_at = now + timedelta(seconds=ttl)
    jti = str(uuid.uuid4())

    db.add(ReviewToken(jti=jti, user_id=user.id, expires_at=expires_at, created_at=now))
    log_activity(
        db,
        issued_by.id if issued_by else None,
        "review_link_issued",
        f"Review link issued for {user.email}",
        context={"target_user_id": str(user.id), "jti": jti, "expires_in_seconds": ttl},
    )
    db.commit()

    token = create_review_link_token(str(user.id), jti, now, expires_at)
    logger.info("review_link_issued", user_id=str(user.id), jti=jti, expires_in_seconds=ttl)
    return {
        "message": "Review link generated",
        "link": build_review_link(token),
        "expiresInSeconds": ttl,
        "user": {"id": str(user.id), "email": user.email, "role": user.role},
    }


def claim_review_token(db: Session, jti: str, now: Optional[datetime] = None) -> bool:
    """
    Mark the token used if it is still unused and unexpired.
    Returns True only for the single caller whose UPDATE touched the row.
    """
    now = ensure_utc(now) if now is not None else utcnow()
    updated = (
        db.query(ReviewToken)
        .filter(
            ReviewToken.jti == jti,
            ReviewToken.used_at.is_(None),
            ReviewToken.expires_at > now,
        )
        .update({ReviewToken.used_at: now}, synchronize_session=False)
    )
    db.commit()
    return updated == 1


def decode_review_link_token(token: Optional[str]) -> dict:
    if not token:
        raise HTTPException(status_code=400, detail="Missing token")
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=400, detail="Invalid or expired link")
    if payload.get("typ") != "review" or not payload.get("jti"):
        raise HTTPException(status_code=400, detail="Invalid or expired link")
    return payload


def redeem_review_token(db: Session, token: Optional[str], now: Optional[datetime] = None) -> Tuple[str, int, User]:
    """
    Exchange a review link token for a session token.

    Returns:
        Tuple of (session_token, expires_in_seconds, user). The user is left deactivated.
    """
    payload = decode_review_link_token(token)
    jti = payload["jti"]

    if not claim_review_token(db, jti, now):
        logger.info("review_link_rejected", jti=jti, reason="used_or_expired")
        raise HTTPException(status_code=410, detail="Link already used or expired")

    record = db.query(ReviewToken).filter(ReviewToken.jti == jti).first()
    user = db.get(User, record.user_id) if record else None
    if user is None:
        logger.error("review_link_user_missing", jti=jti)
        raise HTTPException(status_code=500, detail="Associated user not found")

    ttl = settings.review_session_ttl_seconds
    session_token = create_access_token(str(user.id), role=user.role, ttl_seconds=ttl, extra={"rvw": jti})

    user.is_active = False
    log_activity(
        db,
        user.id,
        "review_link_redeemed",
        f"Review link redeemed by {user.email}; account deactivated",
        context={"jti": jti},
    )
    db.commit()
    db.refresh(user)
    logger.info("review_link_redeemed", user_id=str(user.id), jti=jti)
    return session_token, ttl, user


def purge_expired_review_tokens(db: Session, now: Optional[datetime] = None) -> int:
    """Delete review tokens past their expiry. Returns the number removed."""
    now = ensure_utc(now) if now is not None else utcnow()
    removed = (
        db.query(ReviewToken)
        .filter(ReviewToken.expires_at <= now)
        .delete(synchronize_session=False)
    )
    db.commit()
    if removed:
        logger.info("review_tokens_purged", count=removed)
    return removed
