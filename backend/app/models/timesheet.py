import enum
import uuid

from sqlalchemy import (
    Column, String, Text, Boolean, DateTime, Date, Numeric, ForeignKey, UniqueConstraint, Uuid,
)
from sqlalchemy.sql import func

from app.database import Base


class WeekStatus(str, enum.Enum):
    OPEN = "OPEN"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    LOCKED = "LOCKED"


# Week states in which entries and estimates may still change
EDITABLE_WEEK_STATUSES = (WeekStatus.OPEN.value, WeekStatus.REJECTED.value)

# Week states a consultant may submit from
SUBMITTABLE_WEEK_STATUSES = (WeekStatus.OPEN.value, WeekStatus.REJECTED.value, WeekStatus.LOCKED.value)


class ApprovalAction(str, enum.Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


class TimesheetEntry(Base):
    __tablename__ = "timesheet_entries"
    __table_args__ = (
        UniqueConstraint("user_id", "task_id", "date", name="uq_timesheet_entries_user_task_date"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    user_id = Column(Uuid, ForeignKey("org_users.id", ondelete="CASCADE"), nullable=False, index=True)
    task_id = Column(String(64), nullable=False)
    task_name = Column(String(500), nullable=True)
    date = Column(Date, nullable=False)
    estimate_hours = Column(Numeric(6, 2), nullable=True)
    estimate_locked = Column(Boolean, nullable=False, default=False)
    tracked_hours = Column(Numeric(6, 2), nullable=True)
    tracked_note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class WeeklyEstimate(Base):
    __tablename__ = "weekly_estimates"
    __table_args__ = (
        UniqueConstraint("user_id", "week_start", name="uq_weekly_estimates_user_week"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    user_id = Column(Uuid, ForeignKey("org_users.id", ondelete="CASCADE"), nullable=False, index=True)
    week_start = Column(Date, nullable=False)
    hours = Column(Numeric(6, 2), nullable=False)
    locked = Column(Boolean, nullable=False, default=False)
    created_by = Column(Uuid, nullable=True)
    unlocked_by = Column(Uuid, nullable=True)
    unlocked_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class WeeklyTimesheetStatus(Base):
    __tablename__ = "weekly_timesheet_status"
    __table_args__ = (
        UniqueConstraint("user_id", "week_start", name="uq_weekly_status_user_week"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    user_id = Column(Uuid, ForeignKey("org_users.id", ondelete="CASCADE"), nullable=False, index=True)
    week_start = Column(Date, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=WeekStatus.OPEN.value)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    approved_by = Column(Uuid, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by = Column(Uuid, nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    locked_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class TimesheetApproval(Base):
    """Append-only trail of approve/reject decisions on a week."""

    __tablename__ = "timesheet_approvals"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    user_id = Column(Uuid, ForeignKey("org_users.id", ondelete="CASCADE"), nullable=False, index=True)
    week_start = Column(Date, nullable=False)
    action = Column(String(20), nullable=False)
    action_by = Column(Uuid, nullable=False)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
