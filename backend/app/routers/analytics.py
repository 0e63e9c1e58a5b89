"""Utilization, availability and the admin estimate/tracked summary."""

import uuid
from collections import defaultdict
from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_actor, require_roles
from app.models.timesheet import TimesheetEntry
from app.models.user import OrgUser, Role
from app.services.dates import week_start_of
from app.services.iam import Actor
from app.services.manager_scope import can_view

router = APIRouter(prefix="/api", tags=["Analytics"])

CAPACITY_HOURS = 40


def _tracked_for_week(db: Session, actor: Actor, user_id: Optional[uuid.UUID], week_start: date):
    subject = user_id or actor.id
    if not can_view(db, actor, subject):
        raise HTTPException(403, "Not allowed to view this user")

    week_start = week_start_of(week_start)
    friday = week_start + timedelta(days=4)
    rows = db.query(TimesheetEntry.tracked_hours).filter(
        TimesheetEntry.user_id == subject,
        TimesheetEntry.date >= week_start,
        TimesheetEntry.date <= friday,
    ).all()
    return subject, week_start, sum(float(r[0] or 0) for r in rows)


@router.get("/analytics/utilization")
def utilization(
    week_start: date = Query(..., alias="weekStart"),
    user_id: Optional[uuid.UUID] = Query(None, alias="userId"),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    subject, week_start, tracked = _tracked_for_week(db, actor, user_id, week_start)
    return {
        "userId": str(subject),
        "weekStart": str(week_start),
        "trackedHours": tracked,
        "utilizationPercent": round(tracked / CAPACITY_HOURS * 100, 1),
    }


@router.get("/analytics/availability")
def availability(
    week_start: date = Query(..., alias="weekStart"),
    user_id: Optional[uuid.UUID] = Query(None, alias="userId"),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    subject, week_start, tracked = _tracked_for_week(db, actor, user_id, week_start)
    return {
        "userId": str(subject),
        "weekStart": str(week_start),
        "capacityHours": CAPACITY_HOURS,
        "trackedHours": tracked,
        "availableHours": max(0.0, CAPACITY_HOURS - tracked),
    }


@router.get("/admin/summary")
def admin_summary(
    start: date = Query(...),
    end: date = Query(...),
    actor: Actor = Depends(require_roles(Role.OWNER, Role.ADMIN)),
    db: Session = Depends(get_db),
):
    if end < start:
        raise HTTPException(400, "end must not be before start")

    rows = (
        db.query(TimesheetEntry, OrgUser)
        .join(OrgUser, OrgUser.id == TimesheetEntry.user_id)
        .filter(TimesheetEntry.date >= start, TimesheetEntry.date <= end)
        .all()
    )
    totals: dict = defaultdict(lambda: {"est": 0.0, "tracked": 0.0})
    names: dict = {}
    for entry, user in rows:
        totals[user.id]["est"] += float(entry.estimate_hours or 0)
        totals[user.id]["tracked"] += float(entry.tracked_hours or 0)
        names[user.id] = user.name or user.email or user.clickup_user_id

    summary = [
        {"userId": str(uid), "name": names[uid], "est": round(t["est"], 2), "tracked": round(t["tracked"], 2)}
        for uid, t in totals.items()
    ]
    return {"rows": sorted(summary, key=lambda r: (r["name"] or "").lower())}
