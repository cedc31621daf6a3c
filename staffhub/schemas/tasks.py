from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ClockInRequest(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy: Optional[float] = Field(default=None, ge=0)  # metres, as reported by the device


class ClockOutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy: Optional[float] = Field(default=None, ge=0)
    work_summary: Optional[str] = Field(default=None, alias="workSummary")


class OverrideClockInRequest(BaseModel):
    reason: str


class OverrideClockOutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reason: str
    work_summary: Optional[str] = Field(default=None, alias="workSummary")


class TaskCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    location: str = Field(min_length=1)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    contact_person: Optional[str] = Field(default=None, alias="contactPerson")
    scheduled_start_time: datetime = Field(alias="scheduledStartTime")
    scheduled_end_time: datetime = Field(alias="scheduledEndTime")
    total_hours: float = Field(ge=0.1, alias="totalHours")
    staff_id: Optional[str] = Field(default=None, alias="staffId")

    @field_validator("title", "location")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @model_validator(mode="after")
    def check_schedule(self):
        if self.scheduled_end_time <= self.scheduled_start_time:
            raise ValueError("scheduledEndTime must be after scheduledStartTime")
        return self


class TaskUpdateRequest(BaseModel):
    """Partial update. Site coordinates and attendance fields are not editable here."""
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    location: Optional[str] = None
    contact_person: Optional[str] = Field(default=None, alias="contactPerson")
    scheduled_start_time: Optional[datetime] = Field(default=None, alias="scheduledStartTime")
    scheduled_end_time: Optional[datetime] = Field(default=None, alias="scheduledEndTime")
    total_hours: Optional[float] = Field(default=None, ge=0.1, alias="totalHours")
    staff_id: Optional[str] = Field(default=None, alias="staffId")
    status: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_null(cls, v: Optional[str]) -> str:
        if v is None or not v.strip():
            raise ValueError("title cannot be empty")
        return v.strip()
