from pydantic import field_validator
from typing import Literal, Optional
from uuid import UUID

from app.schemas.common import CamelModel


class RoleChange(CamelModel):
    user_id: UUID
    role: str
    action: Literal["add", "remove"]

    @field_validator("action", mode="before")
    @classmethod
    def _lower(cls, v):
        return v.lower() if isinstance(v, str) else v


class StatusChange(CamelModel):
    user_id: UUID
    is_active: bool


class CountryChange(CamelModel):
    user_id: UUID
    country: Optional[str] = None


class ManagerChange(CamelModel):
    user_id: UUID
    manager_user_id: Optional[UUID] = None


class TeamCreate(CamelModel):
    name: str


class TeamManagerAssign(CamelModel):
    team_id: UUID
    manager_user_id: UUID


class TeamMemberAssign(CamelModel):
    team_id: Optional[UUID] = None
    user_id: UUID


class ProjectCreate(CamelModel):
    name: str
    assignee_id: Optional[str] = None
    description: Optional[str] = None
