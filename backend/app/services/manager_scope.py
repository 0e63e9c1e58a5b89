"""
Manager scope resolution: which users a manager may see and act on.

A manager's reports are the users mapped to them in org_reporting_managers
plus the members of every team they manage. Reports of reports are included,
so the set is the transitive closure of both relations.
"""

import logging
import uuid

from sqlalchemy.orm import Session

from app.models.team import Team, TeamMember
from app.models.user import OrgReportingManager

logger = logging.getLogger(__name__)


def _direct_reports(db: Session, manager_id) -> set[uuid.UUID]:
    mapped = db.query(OrgReportingManager.user_id).filter(
        OrgReportingManager.manager_user_id == manager_id,
    ).all()
    members = (
        db.query(TeamMember.user_id)
        .join(Team, Team.id == TeamMember.team_id)
        .filter(Team.manager_user_id == manager_id)
        .all()
    )
    return {r[0] for r in mapped} | {r[0] for r in members}


def get_report_ids(db: Session, manager_id) -> set[uuid.UUID]:
    visited: set[uuid.UUID] = set()
    frontier = [manager_id]
    while frontier:
        current = frontier.pop()
        for uid in _direct_reports(db, current):
            if uid == manager_id or uid in visited:
                continue
            visited.add(uid)
            frontier.append(uid)
    return visited


def can_act_on(db: Session, actor, subject_id) -> bool:
    """OWNER acts on anyone; a MANAGER only on their reports, never on themselves."""
    if actor.is_owner:
        return True
    if not actor.is_manager or str(subject_id) == str(actor.id):
        return False
    return any(str(uid) == str(subject_id) for uid in get_report_ids(db, actor.id))


def can_view(db: Session, actor, subject_id) -> bool:
    """Read access: self, admins, and managers of the subject."""
    if str(subject_id) == str(actor.id) or actor.is_admin:
        return True
    return can_act_on(db, actor, subject_id)
