"""Scheduled jobs: weekly timesheet lock and workspace user sync."""

import logging
import os
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_now, get_sync_client, verify_cron_secret
from app.models.user import OrgUser, Role
from app.services.dates import is_past_cutoff, lock_cutoff
from app.services.iam import ensure_owner_by_env, get_user_roles, upsert_workspace_user
from app.services.week_status import lock_open_weeks
from app.services.workspace import WorkspaceClient, WorkspaceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["Cron"], dependencies=[Depends(verify_cron_secret)])


@router.post("/lock-timesheets")
def lock_timesheets(
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    offset = float(os.getenv("LOCK_UTC_OFFSET_HOURS", "-6"))
    cutoff_hour = int(os.getenv("LOCK_CUTOFF_HOUR", "16"))

    week_start, cutoff = lock_cutoff(now, offset, cutoff_hour)
    result = {"ok": True, "week_start": str(week_start), "cutoff": cutoff.isoformat()}

    if not is_past_cutoff(now, offset, cutoff_hour):
        logger.info("Lock skipped: before cutoff %s", cutoff)
        return {**result, "skipped": True, "locked": 0}

    locked = lock_open_weeks(db, week_start, now)
    logger.info("Locked %s open timesheet weeks through %s", locked, week_start)
    return {**result, "skipped": False, "locked": locked}


@router.post("/sync-users")
def sync_users(
    client: WorkspaceClient = Depends(get_sync_client),
    db: Session = Depends(get_db),
):
    team_id = os.getenv("CLICKUP_TEAM_ID")
    if not team_id:
        raise HTTPException(500, "Missing CLICKUP_TEAM_ID")

    try:
        members = client.get_team_members(team_id)
    except WorkspaceError as e:
        logger.error("User sync failed: %s", e)
        raise HTTPException(500, {"error": "User sync failed", "details": e.message})

    seen = set()
    for m in members:
        if not m.get("id"):
            continue
        user = upsert_workspace_user(db, m["id"], m.get("email"), m.get("username"))
        ensure_owner_by_env(db, user)
        seen.add(user.clickup_user_id)

    deactivated = 0
    for user in db.query(OrgUser).filter(OrgUser.is_active == True).all():  # noqa: E712
        if user.clickup_user_id not in seen:
            if Role.OWNER.value in get_user_roles(db, user.id):
                logger.warning("OWNER %s missing from workspace; left active", user.email)
                continue
            user.is_active = False
            deactivated += 1
    db.commit()

    logger.info("Synced %s workspace users, deactivated %s", len(seen), deactivated)
    return {"ok": True, "synced_users": len(seen), "deactivated": deactivated}
