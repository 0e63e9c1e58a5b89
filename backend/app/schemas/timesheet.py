from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional
from datetime import date, datetime
from uuid import UUID

from app.schemas.common import CamelModel


class TimesheetEntryWrite(CamelModel):
    type: Literal["estimate", "tracked"]
    task_id: str = Field(min_length=1)
    task_name: Optional[str] = None
    date: date
    hours: float = Field(ge=0, le=24, allow_inf_nan=False)
    note: Optional[str] = None
    sync_to_workspace: bool = False


class TimesheetEntryResponse(BaseModel):
    user_id: UUID
    task_id: str
    task_name: Optional[str] = None
    date: date
    estimate_hours: Optional[float] = None
    estimate_locked: bool = False
    tracked_hours: Optional[float] = None
    tracked_note: Optional[str] = None

    model_config = {"from_attributes": True}


class WeekSubmit(CamelModel):
    week_start: date


class WeekStatusResponse(BaseModel):
    user_id: UUID
    week_start: date
    status: str
    submitted_at: Optional[datetime] = None
    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[UUID] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    model_config = {"from_attributes": True}


class EstimateUnlock(CamelModel):
    user_id: UUID
    start: date
    end: date


class WeeklyEstimateWrite(CamelModel):
    week_start: date
    hours: float = Field(ge=0, le=168, allow_inf_nan=False)
    user_id: Optional[UUID] = None


class WeeklyEstimateUnlock(CamelModel):
    user_id: UUID
    week_start: date


class WeeklyEstimateResponse(BaseModel):
    user_id: UUID
    week_start: date
    hours: float
    locked: bool
    created_by: Optional[UUID] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ApprovalActionRequest(CamelModel):
    user_id: UUID
    week_start: date
    action: Literal["approve", "reject"]
    reason: Optional[str] = None

    @field_validator("action", mode="before")
    @classmethod
    def _lower(cls, v):
        return v.lower() if isinstance(v, str) else v


class ApprovalHistoryResponse(BaseModel):
    id: UUID
    user_id: UUID
    week_start: date
    action: str
    action_by: UUID
    reason: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
