from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class GenerateReviewLinkRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[EmailStr] = None
    user_id: Optional[str] = Field(default=None, alias="userId")
    ttl_seconds: Optional[int] = Field(default=None, ge=60, alias="ttlSeconds")


class ReviewSessionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    token: str
    expires_in_seconds: int = Field(alias="expiresInSeconds")
