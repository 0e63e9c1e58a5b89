"""
Best-effort pushes of locally recorded hours to the workspace.

Failures are logged and reported back in the response; the local write has
already been committed and stays.
"""

import logging
import os
from collections import defaultdict
from datetime import date, timedelta

from sqlalchemy.orm import Session

from app.models.leave import LEAVE_TASK_ID
from app.models.timesheet import TimesheetEntry
from app.models.user import OrgUser
from app.services.dates import noon_utc_ms
from app.services.workspace import WorkspaceClient, WorkspaceError

logger = logging.getLogger(__name__)

MS_PER_HOUR = 3_600_000


def _assignee(user: OrgUser):
    try:
        return int(user.clickup_user_id)
    except (TypeError, ValueError):
        return None


def _team_id() -> str | None:
    return os.getenv("CLICKUP_TEAM_ID") or None


def sync_task_estimate(db: Session, client: WorkspaceClient, task_id: str) -> dict:
    """Set the task's time estimate to the sum of every estimate recorded for it."""
    rows = db.query(TimesheetEntry.estimate_hours).filter(
        TimesheetEntry.task_id == task_id,
        TimesheetEntry.estimate_hours.isnot(None),
    ).all()
    total_hours = sum(float(r[0] or 0) for r in rows)
    try:
        client.update_time_estimate(task_id, int(total_hours * MS_PER_HOUR))
    except WorkspaceError as e:
        logger.error("Estimate sync for task %s failed: %s", task_id, e)
        return {"ok": False, "error": e.message}
    return {"ok": True, "estimate_hours": total_hours}


def push_tracked_time(
    client: WorkspaceClient,
    user: OrgUser,
    task_id: str,
    on: date,
    hours: float,
    note: str | None = None,
) -> dict:
    team_id = _team_id()
    if not team_id:
        logger.warning("CLICKUP_TEAM_ID not set; skipping time entry for task %s", task_id)
        return {"ok": False, "error": "CLICKUP_TEAM_ID not set"}
    try:
        client.create_time_entry(
            team_id,
            task_id,
            start_ms=noon_utc_ms(on),
            duration_ms=int(hours * MS_PER_HOUR),
            description=note,
            assignee=_assignee(user),
        )
    except WorkspaceError as e:
        logger.error("Time entry for task %s failed: %s", task_id, e)
        return {"ok": False, "error": e.message}
    return {"ok": True}


def sync_week_tracked(db: Session, client: WorkspaceClient, user: OrgUser, week_start: date) -> dict:
    """One workspace time entry per task with the Monday to Friday tracked total."""
    friday = week_start + timedelta(days=4)
    rows = db.query(TimesheetEntry).filter(
        TimesheetEntry.user_id == user.id,
        TimesheetEntry.date >= week_start,
        TimesheetEntry.date <= friday,
        TimesheetEntry.tracked_hours.isnot(None),
        TimesheetEntry.task_id != LEAVE_TASK_ID,
    ).all()

    by_task: dict[str, float] = defaultdict(float)
    for r in rows:
        by_task[r.task_id] += float(r.tracked_hours or 0)

    pushed, failed = 0, []
    for task_id, hours in by_task.items():
        if hours <= 0:
            continue
        result = push_tracked_time(client, user, task_id, week_start, hours, note=f"Week of {week_start}")
        if result["ok"]:
            pushed += 1
        else:
            failed.append({"task_id": task_id, "error": result["error"]})
    return {"ok": not failed, "pushed": pushed, "failed": failed}
