"""Timesheet approvals: pending queue, approve/reject, decision history."""

import logging
import uuid
from datetime import date, datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_actor, get_now
from app.models.timesheet import TimesheetApproval, TimesheetEntry, WeeklyTimesheetStatus, WeekStatus
from app.models.user import OrgUser
from app.schemas.timesheet import ApprovalActionRequest, ApprovalHistoryResponse
from app.services.dates import week_start_of
from app.services.iam import Actor
from app.services.manager_scope import can_view, get_report_ids
from app.services.week_status import decide_week, status_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/approvals", tags=["Approvals"])


@router.get("/pending")
def pending(
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    q = (
        db.query(WeeklyTimesheetStatus, OrgUser)
        .join(OrgUser, OrgUser.id == WeeklyTimesheetStatus.user_id)
        .filter(WeeklyTimesheetStatus.status == WeekStatus.SUBMITTED.value)
    )
    if not actor.is_owner:
        if not actor.is_manager:
            raise HTTPException(403, "Only owners and managers can review timesheets")
        report_ids = get_report_ids(db, actor.id)
        if not report_ids:
            return {"pending": []}
        q = q.filter(WeeklyTimesheetStatus.user_id.in_(report_ids))

    rows = q.order_by(WeeklyTimesheetStatus.week_start, OrgUser.name).all()

    result = []
    for status_row, user in rows:
        week_end = status_row.week_start + timedelta(days=6)
        totals = db.query(TimesheetEntry).filter(
            TimesheetEntry.user_id == user.id,
            TimesheetEntry.date >= status_row.week_start,
            TimesheetEntry.date <= week_end,
        ).all()
        result.append({
            **status_to_dict(user.id, status_row.week_start, status_row),
            "user_name": user.name,
            "user_email": user.email,
            "clickup_user_id": user.clickup_user_id,
            "estimate_hours": sum(float(t.estimate_hours or 0) for t in totals),
            "tracked_hours": sum(float(t.tracked_hours or 0) for t in totals),
        })
    return {"pending": result}


@router.post("/action")
def act(
    body: ApprovalActionRequest,
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    week_start = week_start_of(body.week_start)
    row = decide_week(db, actor, body.user_id, week_start, body.action, body.reason, now)
    return {"ok": True, **status_to_dict(body.user_id, week_start, row)}


@router.get("/history")
def history(
    user_id: uuid.UUID = Query(..., alias="userId"),
    week_start: date = Query(..., alias="weekStart"),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    if not can_view(db, actor, user_id):
        raise HTTPException(403, "Not allowed to view this user")

    rows = (
        db.query(TimesheetApproval)
        .filter(
            TimesheetApproval.user_id == user_id,
            TimesheetApproval.week_start == week_start_of(week_start),
        )
        .order_by(TimesheetApproval.created_at)
        .all()
    )
    return {"history": [ApprovalHistoryResponse.model_validate(r).model_dump(mode="json") for r in rows]}
