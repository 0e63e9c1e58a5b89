"""IAM router: users, roles, reporting managers and teams."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_actor, require_roles
from app.models.team import Team, TeamMember
from app.models.user import OrgReportingManager, OrgRole, OrgUser, Role
from app.schemas.iam import (
    CountryChange,
    ManagerChange,
    RoleChange,
    StatusChange,
    TeamCreate,
    TeamManagerAssign,
    TeamMemberAssign,
)
from app.services import iam
from app.services.iam import Actor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/iam", tags=["IAM"])

require_iam_admin = require_roles(Role.OWNER, Role.ADMIN)


def _user_to_dict(u: OrgUser, roles: list[str], manager_id=None, team_id=None) -> dict:
    return {
        "id": str(u.id),
        "clickup_user_id": u.clickup_user_id,
        "email": u.email,
        "name": u.name,
        "country": u.country,
        "is_active": u.is_active,
        "roles": roles,
        "primary_role": iam.primary_role(roles),
        "manager_user_id": str(manager_id) if manager_id else None,
        "team_id": str(team_id) if team_id else None,
    }


def _team_to_dict(t: Team, member_ids: list) -> dict:
    return {
        "id": str(t.id),
        "name": t.name,
        "manager_user_id": str(t.manager_user_id) if t.manager_user_id else None,
        "member_user_ids": [str(m) for m in member_ids],
    }


# ── Users ──


@router.get("/users")
def list_users(
    actor: Actor = Depends(require_iam_admin),
    db: Session = Depends(get_db),
):
    users = db.query(OrgUser).order_by(OrgUser.name, OrgUser.email).all()

    roles_by_user: dict = {}
    for r in db.query(OrgRole).all():
        roles_by_user.setdefault(r.user_id, []).append(r.role)
    managers = {m.user_id: m.manager_user_id for m in db.query(OrgReportingManager).all()}
    teams = {m.user_id: m.team_id for m in db.query(TeamMember).all()}

    return {
        "users": [
            _user_to_dict(u, sorted(roles_by_user.get(u.id, [])), managers.get(u.id), teams.get(u.id))
            for u in users
        ]
    }


@router.post("/users/role")
def change_role(
    body: RoleChange,
    actor: Actor = Depends(require_iam_admin),
    db: Session = Depends(get_db),
):
    if body.action == "add":
        roles = iam.grant_role(db, actor, body.user_id, body.role)
    else:
        roles = iam.revoke_role(db, actor, body.user_id, body.role)
    return {"ok": True, "user_id": str(body.user_id), "roles": roles}


@router.post("/users/status")
def change_status(
    body: StatusChange,
    actor: Actor = Depends(require_iam_admin),
    db: Session = Depends(get_db),
):
    user = iam.set_user_active(db, actor, body.user_id, body.is_active)
    return {"ok": True, "user_id": str(user.id), "is_active": user.is_active}


@router.post("/users/country")
def change_country(
    body: CountryChange,
    actor: Actor = Depends(require_iam_admin),
    db: Session = Depends(get_db),
):
    user = iam.set_user_country(db, actor, body.user_id, body.country)
    return {"ok": True, "user_id": str(user.id), "country": user.country}


@router.post("/users/manager")
def change_manager(
    body: ManagerChange,
    actor: Actor = Depends(require_iam_admin),
    db: Session = Depends(get_db),
):
    manager_id = iam.set_reporting_manager(db, actor, body.user_id, body.manager_user_id)
    return {"ok": True, "user_id": str(body.user_id), "manager_user_id": str(manager_id) if manager_id else None}


# ── Teams ──


@router.get("/teams")
def list_teams(
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    q = db.query(Team)
    if not actor.is_admin:
        if actor.is_manager:
            q = q.filter(Team.manager_user_id == actor.id)
        else:
            own_team = iam.get_team_id_for_user(db, actor.id)
            if own_team is None:
                return {"teams": []}
            q = q.filter(Team.id == own_team)

    teams = q.order_by(Team.name).all()
    members: dict = {}
    if teams:
        rows = db.query(TeamMember).filter(TeamMember.team_id.in_([t.id for t in teams])).all()
        for m in rows:
            members.setdefault(m.team_id, []).append(m.user_id)
    return {"teams": [_team_to_dict(t, members.get(t.id, [])) for t in teams]}


@router.post("/teams/create")
def create_team(
    body: TeamCreate,
    actor: Actor = Depends(require_iam_admin),
    db: Session = Depends(get_db),
):
    team = iam.create_team(db, actor, body.name)
    return {"ok": True, "team": _team_to_dict(team, [])}


@router.post("/teams/assign-manager")
def assign_manager(
    body: TeamManagerAssign,
    actor: Actor = Depends(require_iam_admin),
    db: Session = Depends(get_db),
):
    iam.assign_team_manager(db, actor, body.team_id, body.manager_user_id)
    return {"ok": True}


@router.post("/teams/assign-member")
def assign_member(
    body: TeamMemberAssign,
    actor: Actor = Depends(require_iam_admin),
    db: Session = Depends(get_db),
):
    iam.assign_team_member(db, actor, body.team_id, body.user_id)
    return {"ok": True}
