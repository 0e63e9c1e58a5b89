"""
Identity and access management: org users, roles, reporting managers, teams.

Mutations commit immediately and leave an audit_log row behind. Guard
violations raise HTTPException with the status the routers answer with.
"""

import logging
import os
import uuid
from dataclasses import dataclass, field
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.team import Team, TeamMember
from app.models.user import COUNTRIES, ROLE_PRECEDENCE, OrgReportingManager, OrgRole, OrgUser, Role
from app.services.audit import log_action

logger = logging.getLogger(__name__)


@dataclass
class Actor:
    """The signed-in org user together with their roles."""

    user: OrgUser
    roles: list[str] = field(default_factory=list)

    @property
    def id(self) -> uuid.UUID:
        return self.user.id

    @property
    def is_owner(self) -> bool:
        return Role.OWNER.value in self.roles

    @property
    def is_admin(self) -> bool:
        return self.is_owner or Role.ADMIN.value in self.roles

    @property
    def is_manager(self) -> bool:
        return Role.MANAGER.value in self.roles

    @property
    def primary_role(self) -> Optional[str]:
        return primary_role(self.roles)


# ---------------------------------------------------
# Users
# ---------------------------------------------------

def get_user(db: Session, user_id) -> Optional[OrgUser]:
    return db.query(OrgUser).filter(OrgUser.id == user_id).first()


def get_user_or_404(db: Session, user_id, label: str = "User") -> OrgUser:
    user = get_user(db, user_id)
    if not user:
        raise HTTPException(404, f"{label} not found")
    return user


def get_user_by_workspace_id(db: Session, workspace_user_id) -> Optional[OrgUser]:
    return db.query(OrgUser).filter(OrgUser.clickup_user_id == str(workspace_user_id)).first()


def upsert_workspace_user(db: Session, workspace_user_id, email: Optional[str], name: Optional[str]) -> OrgUser:
    """Create the org user for a workspace account or refresh its profile."""
    user = get_user_by_workspace_id(db, workspace_user_id)
    if user is None:
        user = OrgUser(clickup_user_id=str(workspace_user_id), email=email, name=name, is_active=True)
        db.add(user)
        logger.info("Provisioned org user for workspace account %s", workspace_user_id)
    else:
        if email:
            user.email = email
        if name:
            user.name = name
        user.is_active = True
    db.commit()
    db.refresh(user)
    return user


# ---------------------------------------------------
# Roles
# ---------------------------------------------------

def get_user_roles(db: Session, user_id) -> list[str]:
    rows = db.query(OrgRole.role).filter(OrgRole.user_id == user_id).all()
    return [r[0] for r in rows]


def primary_role(roles) -> Optional[str]:
    for role in ROLE_PRECEDENCE:
        if role.value in roles:
            return role.value
    return None


def _has_role(db: Session, user_id, role: str) -> bool:
    return db.query(OrgRole).filter(OrgRole.user_id == user_id, OrgRole.role == role).first() is not None


def count_active_owners(db: Session) -> int:
    return (
        db.query(OrgRole)
        .join(OrgUser, OrgUser.id == OrgRole.user_id)
        .filter(OrgRole.role == Role.OWNER.value, OrgUser.is_active == True)  # noqa: E712
        .count()
    )


def _add_role(db: Session, user_id, role: str) -> bool:
    if _has_role(db, user_id, role):
        return False
    db.add(OrgRole(user_id=user_id, role=role))
    return True


def ensure_owner_by_env(db: Session, user: OrgUser) -> bool:
    """Grant OWNER to the user whose email matches OWNER_EMAIL."""
    owner_email = os.getenv("OWNER_EMAIL", "").strip().lower()
    if not owner_email or not user.email or user.email.strip().lower() != owner_email:
        return False
    if not _add_role(db, user.id, Role.OWNER.value):
        return False
    db.commit()
    logger.info("Granted OWNER to %s from OWNER_EMAIL", user.email)
    return True


def bootstrap_roles(db: Session, user: OrgUser) -> list[str]:
    """First-login role assignment.

    While nobody holds OWNER, the user matching IAM_BOOTSTRAP_OWNER_EMAIL
    becomes OWNER and ADMIN. Anyone else without roles becomes CONSULTANT.
    """
    bootstrap_email = os.getenv("IAM_BOOTSTRAP_OWNER_EMAIL", "").strip().lower()
    owner_exists = db.query(OrgRole).filter(OrgRole.role == Role.OWNER.value).first() is not None

    if not owner_exists and bootstrap_email and (user.email or "").strip().lower() == bootstrap_email:
        _add_role(db, user.id, Role.OWNER.value)
        _add_role(db, user.id, Role.ADMIN.value)
        db.commit()
        logger.info("Bootstrapped first OWNER: %s", user.email)
    elif not get_user_roles(db, user.id):
        _add_role(db, user.id, Role.CONSULTANT.value)
        db.commit()

    return get_user_roles(db, user.id)


def _check_role_value(role: str) -> str:
    role = (role or "").upper()
    if role not in {r.value for r in Role}:
        raise HTTPException(400, f"Invalid role: {role}")
    return role


def grant_role(db: Session, actor: Actor, user_id, role: str) -> list[str]:
    role = _check_role_value(role)
    if role == Role.OWNER.value and not actor.is_owner:
        raise HTTPException(403, "Only an OWNER can grant OWNER")
    get_user_or_404(db, user_id)

    if _add_role(db, user_id, role):
        db.commit()
        log_action(db, actor.id, "role.grant", "org_user", user_id, {"role": role})
    return get_user_roles(db, user_id)


def revoke_role(db: Session, actor: Actor, user_id, role: str) -> list[str]:
    role = _check_role_value(role)
    if role == Role.OWNER.value:
        if not actor.is_owner:
            raise HTTPException(403, "Only an OWNER can revoke OWNER")
        target = get_user(db, user_id)
        last_active = target is not None and target.is_active and count_active_owners(db) <= 1
        if last_active and _has_role(db, user_id, role):
            raise HTTPException(409, "Cannot remove the last OWNER")

    deleted = db.query(OrgRole).filter(OrgRole.user_id == user_id, OrgRole.role == role).delete()
    db.commit()
    if deleted:
        log_action(db, actor.id, "role.revoke", "org_user", user_id, {"role": role})
    return get_user_roles(db, user_id)


# ---------------------------------------------------
# Profile fields
# ---------------------------------------------------

def set_user_active(db: Session, actor: Actor, user_id, is_active: bool) -> OrgUser:
    user = get_user_or_404(db, user_id)
    if not is_active and user.is_active and _has_role(db, user.id, Role.OWNER.value):
        if count_active_owners(db) <= 1:
            raise HTTPException(409, "Cannot deactivate the last OWNER")

    user.is_active = bool(is_active)
    db.commit()
    log_action(db, actor.id, "user.status", "org_user", user_id, {"is_active": bool(is_active)})
    return user


def set_user_country(db: Session, actor: Actor, user_id, country: Optional[str]) -> OrgUser:
    if country is not None:
        country = country.strip().upper()
        if country not in COUNTRIES:
            raise HTTPException(400, "Country must be US, INDIA or null")
    user = get_user_or_404(db, user_id)
    user.country = country
    db.commit()
    log_action(db, actor.id, "user.country", "org_user", user_id, {"country": country})
    return user


def set_reporting_manager(db: Session, actor: Actor, user_id, manager_user_id) -> Optional[uuid.UUID]:
    """Point a user at their reporting manager; ``None`` clears the mapping."""
    get_user_or_404(db, user_id)

    if manager_user_id is None:
        db.query(OrgReportingManager).filter(OrgReportingManager.user_id == user_id).delete()
        db.commit()
        log_action(db, actor.id, "user.manager", "org_user", user_id, {"manager_user_id": None})
        return None

    if str(manager_user_id) == str(user_id):
        raise HTTPException(400, "A user cannot be their own reporting manager")
    get_user_or_404(db, manager_user_id, label="Manager")

    row = db.query(OrgReportingManager).filter(OrgReportingManager.user_id == user_id).first()
    if row is None:
        db.add(OrgReportingManager(user_id=user_id, manager_user_id=manager_user_id))
    else:
        row.manager_user_id = manager_user_id
    db.commit()
    log_action(db, actor.id, "user.manager", "org_user", user_id, {"manager_user_id": str(manager_user_id)})
    return manager_user_id


def get_reporting_manager_id(db: Session, user_id) -> Optional[uuid.UUID]:
    row = db.query(OrgReportingManager).filter(OrgReportingManager.user_id == user_id).first()
    return row.manager_user_id if row else None


# ---------------------------------------------------
# Teams
# ---------------------------------------------------

def create_team(db: Session, actor: Actor, name: str) -> Team:
    name = (name or "").strip()
    if not name:
        raise HTTPException(400, "Team name is required")
    if db.query(Team).filter(Team.name == name).first():
        raise HTTPException(409, "Team already exists")

    team = Team(name=name)
    db.add(team)
    db.commit()
    db.refresh(team)
    log_action(db, actor.id, "team.create", "team", team.id, {"name": name})
    return team


def assign_team_manager(db: Session, actor: Actor, team_id, manager_user_id) -> Team:
    team = db.query(Team).filter(Team.id == team_id).first()
    if not team:
        raise HTTPException(404, "Team not found")
    get_user_or_404(db, manager_user_id)

    roles = get_user_roles(db, manager_user_id)
    if Role.OWNER.value in roles:
        raise HTTPException(409, "Cannot assign OWNER as team manager")
    if Role.MANAGER.value not in roles:
        raise HTTPException(409, "User must have MANAGER role")

    team.manager_user_id = manager_user_id
    db.commit()
    log_action(db, actor.id, "team.manager", "team", team_id, {"manager_user_id": str(manager_user_id)})
    return team


def assign_team_member(db: Session, actor: Actor, team_id, user_id) -> Optional[TeamMember]:
    """Move a user into a team (``team_id`` None removes them from any team)."""
    get_user_or_404(db, user_id)
    if team_id is not None:
        if not db.query(Team).filter(Team.id == team_id).first():
            raise HTTPException(404, "Team not found")
        if _has_role(db, user_id, Role.OWNER.value):
            raise HTTPException(400, "An OWNER cannot be a team member")

    db.query(TeamMember).filter(TeamMember.user_id == user_id).delete()
    member = None
    if team_id is not None:
        member = TeamMember(team_id=team_id, user_id=user_id)
        db.add(member)
    db.commit()
    log_action(db, actor.id, "team.member", "org_user", user_id, {"team_id": str(team_id) if team_id else None})
    return member


def get_team_id_for_user(db: Session, user_id) -> Optional[uuid.UUID]:
    row = db.query(TeamMember).filter(TeamMember.user_id == user_id).first()
    return row.team_id if row else None
