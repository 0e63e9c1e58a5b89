"""
Weekly timesheet workflow.

    OPEN -> SUBMITTED -> APPROVED | REJECTED
    OPEN -> LOCKED (cron) -> SUBMITTED

Every transition is a single ``UPDATE ... WHERE status IN (...)``; a zero
row count means someone else moved the week first and the caller gets 409.
"""

import logging
from datetime import date, datetime

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.timesheet import (
    EDITABLE_WEEK_STATUSES,
    SUBMITTABLE_WEEK_STATUSES,
    ApprovalAction,
    TimesheetApproval,
    WeeklyTimesheetStatus,
    WeekStatus,
)
from app.models.user import OrgUser
from app.services.manager_scope import can_act_on

logger = logging.getLogger(__name__)


def get_status_row(db: Session, user_id, week_start: date) -> WeeklyTimesheetStatus | None:
    return db.query(WeeklyTimesheetStatus).filter(
        WeeklyTimesheetStatus.user_id == user_id,
        WeeklyTimesheetStatus.week_start == week_start,
    ).first()


def current_status(db: Session, user_id, week_start: date) -> str:
    row = get_status_row(db, user_id, week_start)
    return row.status if row else WeekStatus.OPEN.value


def status_to_dict(user_id, week_start: date, row: WeeklyTimesheetStatus | None) -> dict:
    if row is None:
        return {"user_id": str(user_id), "week_start": str(week_start), "status": WeekStatus.OPEN.value}
    return {
        "user_id": str(row.user_id),
        "week_start": str(row.week_start),
        "status": row.status,
        "submitted_at": row.submitted_at.isoformat() if row.submitted_at else None,
        "approved_by": str(row.approved_by) if row.approved_by else None,
        "approved_at": row.approved_at.isoformat() if row.approved_at else None,
        "rejected_by": str(row.rejected_by) if row.rejected_by else None,
        "rejected_at": row.rejected_at.isoformat() if row.rejected_at else None,
        "rejection_reason": row.rejection_reason,
    }


def assert_week_editable(db: Session, user_id, week_start: date) -> None:
    status = current_status(db, user_id, week_start)
    if status not in EDITABLE_WEEK_STATUSES:
        raise HTTPException(403, {
            "error": "Timesheet week is not editable",
            "reason": f"Week of {week_start} is {status}",
            "status": status,
        })


def submit_week(db: Session, user_id, week_start: date, now: datetime) -> WeeklyTimesheetStatus:
    if get_status_row(db, user_id, week_start) is None:
        db.add(WeeklyTimesheetStatus(user_id=user_id, week_start=week_start, status=WeekStatus.OPEN.value))
        db.commit()

    updated = (
        db.query(WeeklyTimesheetStatus)
        .filter(
            WeeklyTimesheetStatus.user_id == user_id,
            WeeklyTimesheetStatus.week_start == week_start,
            WeeklyTimesheetStatus.status.in_(SUBMITTABLE_WEEK_STATUSES),
        )
        .update(
            {
                WeeklyTimesheetStatus.status: WeekStatus.SUBMITTED.value,
                WeeklyTimesheetStatus.submitted_at: now,
                WeeklyTimesheetStatus.rejection_reason: None,
            },
            synchronize_session=False,
        )
    )
    db.commit()

    row = get_status_row(db, user_id, week_start)
    db.refresh(row)
    if updated == 0:
        raise HTTPException(409, {"error": "Timesheet cannot be submitted", "status": row.status})
    logger.info("Week %s submitted by %s", week_start, user_id)
    return row


def decide_week(
    db: Session,
    actor,
    user_id,
    week_start: date,
    action: str,
    reason: str | None,
    now: datetime,
) -> WeeklyTimesheetStatus:
    """Approve or reject a SUBMITTED week and append the approval trail row."""
    row = get_status_row(db, user_id, week_start)
    if row is None:
        raise HTTPException(404, "No timesheet submitted for this week")
    if not can_act_on(db, actor, user_id):
        raise HTTPException(403, "Not allowed to act on this user")

    if action == "approve":
        values = {
            WeeklyTimesheetStatus.status: WeekStatus.APPROVED.value,
            WeeklyTimesheetStatus.approved_by: actor.id,
            WeeklyTimesheetStatus.approved_at: now,
        }
        audit_action = ApprovalAction.APPROVE.value
    else:
        values = {
            WeeklyTimesheetStatus.status: WeekStatus.REJECTED.value,
            WeeklyTimesheetStatus.rejected_by: actor.id,
            WeeklyTimesheetStatus.rejected_at: now,
            WeeklyTimesheetStatus.rejection_reason: reason,
        }
        audit_action = ApprovalAction.REJECT.value

    updated = (
        db.query(WeeklyTimesheetStatus)
        .filter(
            WeeklyTimesheetStatus.id == row.id,
            WeeklyTimesheetStatus.status == WeekStatus.SUBMITTED.value,
        )
        .update(values, synchronize_session=False)
    )
    db.commit()
    db.refresh(row)
    if updated == 0:
        raise HTTPException(409, {"error": "Timesheet is not awaiting approval", "status": row.status})

    db.add(TimesheetApproval(
        user_id=user_id,
        week_start=week_start,
        action=audit_action,
        action_by=actor.id,
        reason=reason,
    ))
    db.commit()
    logger.info("Week %s of %s: %s by %s", week_start, user_id, audit_action, actor.id)
    return row


def lock_open_weeks(db: Session, through_week_start: date, now: datetime) -> int:
    """Lock every OPEN week up to ``through_week_start``.

    Active users with no status row for ``through_week_start`` read as OPEN,
    so a LOCKED row is created for them too.
    """
    locked = (
        db.query(WeeklyTimesheetStatus)
        .filter(
            WeeklyTimesheetStatus.status == WeekStatus.OPEN.value,
            WeeklyTimesheetStatus.week_start <= through_week_start,
        )
        .update(
            {WeeklyTimesheetStatus.status: WeekStatus.LOCKED.value, WeeklyTimesheetStatus.locked_at: now},
            synchronize_session=False,
        )
    )

    has_row = select(WeeklyTimesheetStatus.user_id).where(
        WeeklyTimesheetStatus.week_start == through_week_start,
    )
    missing = db.query(OrgUser.id).filter(
        OrgUser.is_active == True,  # noqa: E712
        OrgUser.id.notin_(has_row),
    ).all()
    for (user_id,) in missing:
        db.add(WeeklyTimesheetStatus(
            user_id=user_id,
            week_start=through_week_start,
            status=WeekStatus.LOCKED.value,
            locked_at=now,
        ))
    db.commit()
    return locked + len(missing)
