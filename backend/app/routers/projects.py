"""Workspace-backed routes: active projects, project creation, teams, consultants."""

import logging
import os
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_actor, get_workspace_client, require_roles
from app.models.user import OrgUser, Role
from app.schemas.iam import ProjectCreate
from app.services.iam import Actor
from app.services.manager_scope import get_report_ids
from app.services.rollup import projects_for_assignee, top_level_tasks
from app.services.workspace import WorkspaceClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Projects"])

require_admin = require_roles(Role.OWNER, Role.ADMIN)


def _view_id(view_id: Optional[str]) -> str:
    view_id = view_id or os.getenv("CLICKUP_ACTIVE_VIEW_ID", "")
    if not view_id:
        raise HTTPException(400, "Missing viewId. Set CLICKUP_ACTIVE_VIEW_ID or pass ?viewId=")
    return view_id


# ── Active projects ──


@router.get("/active-projects")
def active_projects(
    assignee_id: Optional[str] = Query(None, alias="assigneeId"),
    view_id: Optional[str] = Query(None, alias="viewId"),
    actor: Actor = Depends(get_actor),
    client: WorkspaceClient = Depends(get_workspace_client),
):
    view_id = _view_id(view_id)
    view = client.get_view(view_id)
    tasks = client.get_view_tasks(view_id)

    if assignee_id:
        projects = projects_for_assignee(tasks, assignee_id)
    else:
        projects = top_level_tasks(tasks)

    return {
        "source": "view+parents",
        "view": {"id": view_id, "name": view.get("name")},
        "assigneeId": assignee_id,
        "count": len(projects),
        "tasks": projects,
    }


def _resolve_assignee(client: WorkspaceClient, assignee: str) -> int:
    """Workspace member id from a numeric id, an email or a username."""
    assignee = assignee.strip()
    if assignee.isdigit():
        return int(assignee)

    team_id = os.getenv("CLICKUP_TEAM_ID")
    if not team_id:
        raise HTTPException(400, "Assignee must be a numeric id when CLICKUP_TEAM_ID is not set")

    wanted = assignee.lower()
    for member in client.get_team_members(team_id):
        if wanted in ((member.get("email") or "").lower(), (member.get("username") or "").lower()):
            return int(member["id"])
    raise HTTPException(404, f"Assignee not found: {assignee}")


@router.post("/projects/create")
def create_project(
    body: ProjectCreate,
    actor: Actor = Depends(require_admin),
    client: WorkspaceClient = Depends(get_workspace_client),
):
    list_id = os.getenv("CLICKUP_CREATE_TASK_LIST_ID")
    if not list_id:
        raise HTTPException(500, "Missing CLICKUP_CREATE_TASK_LIST_ID")

    name = body.name.strip()
    if not name:
        raise HTTPException(400, "Name is required")

    assignees = [_resolve_assignee(client, body.assignee_id)] if body.assignee_id else None
    data = client.create_task(list_id, name, description=body.description, assignees=assignees)
    task = data.get("task") or data
    logger.info("Project %s created in list %s by %s", task.get("id"), list_id, actor.id)
    return {
        "ok": True,
        "task": {
            "id": str(task.get("id") or ""),
            "name": str(task.get("name") or name),
            "url": task.get("url"),
        },
    }


# ── Teams / people ──


@router.get("/teams")
def workspace_teams(
    actor: Actor = Depends(get_actor),
    client: WorkspaceClient = Depends(get_workspace_client),
):
    return {"teams": [{"id": str(t.get("id")), "name": t.get("name")} for t in client.list_teams()]}


@router.get("/consultants")
def consultants(
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    q = db.query(OrgUser).filter(OrgUser.is_active == True)  # noqa: E712
    if not actor.is_admin:
        visible = {actor.id}
        if actor.is_manager:
            visible |= get_report_ids(db, actor.id)
        q = q.filter(OrgUser.id.in_(visible))

    users = q.order_by(OrgUser.name, OrgUser.email).all()
    return {
        "consultants": [
            {"id": str(u.id), "clickup_user_id": u.clickup_user_id, "name": u.name, "email": u.email}
            for u in users
        ]
    }


# ── Debug (admin only) ──


@router.get("/debug/view-info")
def view_info(
    view_id: Optional[str] = Query(None, alias="viewId"),
    actor: Actor = Depends(require_admin),
    client: WorkspaceClient = Depends(get_workspace_client),
):
    view_id = _view_id(view_id)
    return {"ok": True, "viewId": view_id, "view": client.get_view(view_id)}


@router.get("/debug/find-list")
def find_list(
    name: Optional[str] = Query(None),
    actor: Actor = Depends(require_admin),
    client: WorkspaceClient = Depends(get_workspace_client),
):
    needle = (name or "").strip().lower()
    found = []
    for team in client.list_teams():
        for space in client.list_spaces(str(team["id"])):
            candidates = [(None, lst) for lst in client.list_lists(space_id=str(space["id"]))]
            for folder in client.list_folders(str(space["id"])):
                candidates += [(folder, lst) for lst in client.list_lists(folder_id=str(folder["id"]))]

            for folder, lst in candidates:
                if needle and needle not in (lst.get("name") or "").lower():
                    continue
                found.append({
                    "id": str(lst.get("id")),
                    "name": lst.get("name"),
                    "team": team.get("name"),
                    "space": space.get("name"),
                    "folder": folder.get("name") if folder else None,
                })
    return {"count": len(found), "lists": found}


# ── Deprecated ──


@router.get("/members/{team_id}")
def members_gone(team_id: str):
    raise HTTPException(410, "Deprecated: use /api/consultants")


@router.get("/tasks/{team_id}")
def tasks_gone(team_id: str):
    raise HTTPException(410, "Deprecated: use /api/active-projects")
