"""Timesheets router: daily entries, weekly status and submission."""

import logging
import uuid
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_actor, get_now, get_workspace_client, require_roles
from app.models.timesheet import TimesheetEntry
from app.models.user import Role
from app.schemas.timesheet import EstimateUnlock, TimesheetEntryResponse, TimesheetEntryWrite, WeekSubmit
from app.services import time_sync
from app.services.audit import log_action
from app.services.dates import week_start_of
from app.services.iam import Actor
from app.services.manager_scope import can_view
from app.services.week_status import assert_week_editable, get_status_row, status_to_dict, submit_week
from app.services.workspace import WorkspaceClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Timesheets"])


def _subject_id(db: Session, actor: Actor, user_id: Optional[uuid.UUID]) -> uuid.UUID:
    if user_id is None or user_id == actor.id:
        return actor.id
    if not can_view(db, actor, user_id):
        raise HTTPException(403, "Not allowed to view this user")
    return user_id


# ── Entries ──


def _find_entry(db: Session, user_id, task_id: str, on: date) -> Optional[TimesheetEntry]:
    return db.query(TimesheetEntry).filter(
        TimesheetEntry.user_id == user_id,
        TimesheetEntry.task_id == task_id,
        TimesheetEntry.date == on,
    ).first()


def _get_or_create_entry(db: Session, user_id, task_id: str, on: date) -> TimesheetEntry:
    entry = _find_entry(db, user_id, task_id, on)
    if entry is not None:
        return entry

    entry = TimesheetEntry(user_id=user_id, task_id=task_id, date=on, estimate_locked=False)
    db.add(entry)
    try:
        db.flush()
    except IntegrityError:
        # another request inserted the same (user, task, date) first
        db.rollback()
        entry = _find_entry(db, user_id, task_id, on)
    return entry


@router.get("/timesheet")
def list_entries(
    start: date = Query(...),
    end: date = Query(...),
    user_id: Optional[uuid.UUID] = Query(None, alias="userId"),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    if end < start:
        raise HTTPException(400, "end must not be before start")
    subject = _subject_id(db, actor, user_id)

    rows = (
        db.query(TimesheetEntry)
        .filter(
            TimesheetEntry.user_id == subject,
            TimesheetEntry.date >= start,
            TimesheetEntry.date <= end,
        )
        .order_by(TimesheetEntry.task_name, TimesheetEntry.date)
        .all()
    )
    return {"entries": [TimesheetEntryResponse.model_validate(r).model_dump(mode="json") for r in rows]}


@router.post("/timesheet")
def write_entry(
    body: TimesheetEntryWrite,
    actor: Actor = Depends(get_actor),
    client: WorkspaceClient = Depends(get_workspace_client),
    db: Session = Depends(get_db),
):
    assert_week_editable(db, actor.id, week_start_of(body.date))

    entry = _get_or_create_entry(db, actor.id, body.task_id, body.date)
    if body.type == "estimate" and entry.estimate_locked:
        raise HTTPException(409, "Estimate already locked")

    if body.task_name is not None:
        entry.task_name = body.task_name

    if body.type == "estimate":
        entry.estimate_hours = body.hours
        entry.estimate_locked = True
    else:
        entry.tracked_hours = body.hours
        entry.tracked_note = body.note
    db.commit()

    result = {"ok": True}
    if body.sync_to_workspace:
        if body.type == "estimate":
            result["sync"] = time_sync.sync_task_estimate(db, client, body.task_id)
        else:
            result["sync"] = time_sync.push_tracked_time(
                client, actor.user, body.task_id, body.date, body.hours, body.note,
            )
    return result


# ── Weekly status ──


@router.get("/timesheet/status")
def week_status(
    week_start: date = Query(..., alias="weekStart"),
    user_id: Optional[uuid.UUID] = Query(None, alias="userId"),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    subject = _subject_id(db, actor, user_id)
    week_start = week_start_of(week_start)
    return status_to_dict(subject, week_start, get_status_row(db, subject, week_start))


@router.post("/timesheet/submit")
def submit(
    body: WeekSubmit,
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    week_start = week_start_of(body.week_start)
    row = submit_week(db, actor.id, week_start, now)
    return {"ok": True, **status_to_dict(actor.id, week_start, row)}


# ── Admin ──


@router.post("/admin/unlock-estimates")
def unlock_estimates(
    body: EstimateUnlock,
    actor: Actor = Depends(require_roles(Role.OWNER, Role.ADMIN)),
    db: Session = Depends(get_db),
):
    if body.end < body.start:
        raise HTTPException(400, "end must not be before start")

    unlocked = (
        db.query(TimesheetEntry)
        .filter(
            TimesheetEntry.user_id == body.user_id,
            TimesheetEntry.date >= body.start,
            TimesheetEntry.date <= body.end,
            TimesheetEntry.estimate_locked == True,  # noqa: E712
        )
        .update({TimesheetEntry.estimate_locked: False}, synchronize_session=False)
    )
    db.commit()
    log_action(db, actor.id, "timesheet.unlock_estimates", "org_user", body.user_id,
               {"start": str(body.start), "end": str(body.end), "count": unlocked})
    return {"ok": True, "unlocked": unlocked}
