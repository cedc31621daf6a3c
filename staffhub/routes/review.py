from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..auth.security import require_admin
from ..config import settings
from ..db import get_db
from ..models.models import User
from ..schemas.review import GenerateReviewLinkRequest, ReviewSessionResponse
from ..services.review_tokens import (
    issue_review_link,
    redeem_review_token,
    purge_expired_review_tokens,
)


router = APIRouter(tags=["review"])


@router.post("/review/generate-link")
def generate_link(
    payload: GenerateReviewLinkRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return issue_review_link(
        db,
        issued_by=admin,
        email=payload.email,
        user_id=payload.user_id,
        ttl_seconds=payload.ttl_seconds,
    )


@router.get("/review-access")
def review_access(token: Optional[str] = Query(None), db: Session = Depends(get_db)):
    session_token, expires_in, _user = redeem_review_token(db, token)
    if settings.client_base_url:
        target = f"{settings.client_base_url.rstrip('/')}/review#token={quote(session_token, safe='')}"
        return RedirectResponse(url=target, status_code=302)
    return ReviewSessionResponse(
        message="Review access granted",
        token=session_token,
        expires_in_seconds=expires_in,
    ).model_dump(by_alias=True)


@router.post("/review/purge-expired")
def purge_expired(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    removed = purge_expired_review_tokens(db)
    return {"removed": removed}
