from pydantic import BaseModel, field_validator
from typing import Literal, Optional
from datetime import date
from uuid import UUID

from app.schemas.common import CamelModel


class LeaveTypeResponse(BaseModel):
    id: UUID
    code: str
    name: str
    paid: bool

    model_config = {"from_attributes": True}


class LeaveApply(CamelModel):
    leave_type_id: UUID
    start_date: date
    end_date: date
    reason: Optional[str] = None


class LeaveDecision(CamelModel):
    request_id: UUID
    action: Literal["APPROVE", "REJECT"]

    @field_validator("action", mode="before")
    @classmethod
    def _upper(cls, v):
        return v.upper() if isinstance(v, str) else v
