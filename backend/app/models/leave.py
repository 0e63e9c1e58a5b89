import enum
import uuid

from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Date, Numeric, ForeignKey, UniqueConstraint, Uuid,
)
from sqlalchemy.sql import func

from app.database import Base


class LeaveStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


# Holiday.country value that applies to every country
ALL_COUNTRIES = "BOTH"

HOURS_PER_LEAVE_DAY = 8

# task_id of the timesheet rows written for approved leave
LEAVE_TASK_ID = "LEAVE"


class LeaveType(Base):
    __tablename__ = "leave_types"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    code = Column(String(20), nullable=False, unique=True)
    name = Column(String(100), nullable=False)
    paid = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    user_id = Column(Uuid, ForeignKey("org_users.id", ondelete="CASCADE"), nullable=False, index=True)
    leave_type_id = Column(Uuid, ForeignKey("leave_types.id"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=LeaveStatus.PENDING.value, index=True)
    decided_by = Column(Uuid, nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class LeaveBalance(Base):
    __tablename__ = "leave_balances"
    __table_args__ = (
        UniqueConstraint("user_id", "leave_type_id", "year", name="uq_leave_balances_user_type_year"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    user_id = Column(Uuid, ForeignKey("org_users.id", ondelete="CASCADE"), nullable=False, index=True)
    leave_type_id = Column(Uuid, ForeignKey("leave_types.id"), nullable=False)
    year = Column(Integer, nullable=False)
    accrued_hours = Column(Numeric(7, 2), nullable=False, default=0)
    used_hours = Column(Numeric(7, 2), nullable=False, default=0)
    balance_hours = Column(Numeric(7, 2), nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Holiday(Base):
    __tablename__ = "holidays"
    __table_args__ = (
        UniqueConstraint("date", "country", name="uq_holidays_date_country"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    date = Column(Date, nullable=False, index=True)
    year = Column(Integer, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    country = Column(String(20), nullable=False, default=ALL_COUNTRIES)
