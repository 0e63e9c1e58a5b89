"""Weekly hour estimates: one per user and week, locked once saved."""

import logging
import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_actor, get_now, get_workspace_client, require_roles
from app.models.timesheet import WeeklyEstimate
from app.models.user import Role
from app.schemas.timesheet import WeeklyEstimateResponse, WeeklyEstimateUnlock, WeeklyEstimateWrite
from app.services import time_sync
from app.services.audit import log_action
from app.services.dates import allowed_week_starts, week_start_of
from app.services.iam import Actor, get_user_or_404
from app.services.week_status import assert_week_editable
from app.services.workspace import WorkspaceClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/weekly-estimates", tags=["Weekly estimates"])


def _to_dict(e: WeeklyEstimate) -> dict:
    return WeeklyEstimateResponse.model_validate(e).model_dump(mode="json")


@router.get("")
def list_estimates(
    user_id: Optional[uuid.UUID] = Query(None, alias="userId"),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    subject = actor.id
    if user_id is not None and user_id != actor.id:
        if not actor.is_admin:
            raise HTTPException(403, "Only admins can view other users' estimates")
        subject = user_id

    rows = (
        db.query(WeeklyEstimate)
        .filter(WeeklyEstimate.user_id == subject)
        .order_by(WeeklyEstimate.week_start.desc())
        .all()
    )
    return {"estimates": [_to_dict(r) for r in rows]}


@router.post("")
def save_estimate(
    body: WeeklyEstimateWrite,
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
    client: WorkspaceClient = Depends(get_workspace_client),
    db: Session = Depends(get_db),
):
    subject = actor.id
    if body.user_id is not None and body.user_id != actor.id:
        if not actor.is_admin:
            raise HTTPException(403, "Only admins can set other users' estimates")
        subject = body.user_id
    subject_user = get_user_or_404(db, subject)

    week_start = week_start_of(body.week_start)
    if week_start not in allowed_week_starts(now.date()):
        raise HTTPException(409, "Estimates can only be set for the current or next week")
    assert_week_editable(db, subject, week_start)

    estimate = db.query(WeeklyEstimate).filter(
        WeeklyEstimate.user_id == subject,
        WeeklyEstimate.week_start == week_start,
    ).first()
    if estimate is not None and estimate.locked:
        raise HTTPException(409, "Estimate already locked")

    if estimate is None:
        estimate = WeeklyEstimate(user_id=subject, week_start=week_start, created_by=actor.id)
        db.add(estimate)
    estimate.hours = body.hours
    estimate.locked = True
    db.commit()
    db.refresh(estimate)

    return {
        "ok": True,
        "estimate": _to_dict(estimate),
        "sync": time_sync.sync_week_tracked(db, client, subject_user, week_start),
    }


@router.post("/unlock")
def unlock_estimate(
    body: WeeklyEstimateUnlock,
    actor: Actor = Depends(require_roles(Role.OWNER, Role.ADMIN)),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    week_start = week_start_of(body.week_start)
    estimate = db.query(WeeklyEstimate).filter(
        WeeklyEstimate.user_id == body.user_id,
        WeeklyEstimate.week_start == week_start,
    ).first()
    if not estimate:
        raise HTTPException(404, "Estimate not found")

    estimate.locked = False
    estimate.unlocked_by = actor.id
    estimate.unlocked_at = now
    db.commit()
    log_action(db, actor.id, "estimate.unlock", "weekly_estimate", estimate.id,
               {"user_id": str(body.user_id), "week_start": str(week_start)})
    return {"ok": True, "estimate": _to_dict(estimate)}
