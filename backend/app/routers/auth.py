"""
Authentication router: workspace OAuth login, callback, logout and /me.
"""

import logging
import os

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_actor, get_session_data
from app.services.auth import SESSION_COOKIE_NAME, encode_session, session_cookie_kwargs
from app.services.iam import (
    Actor,
    bootstrap_roles,
    ensure_owner_by_env,
    get_reporting_manager_id,
    get_team_id_for_user,
    upsert_workspace_user,
)
from app.services.workspace import WorkspaceClient, WorkspaceError, build_authorize_url, exchange_oauth_code

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])

APP_BASE_URL = os.getenv("APP_BASE_URL", "").rstrip("/")


def _redirect(path: str) -> RedirectResponse:
    return RedirectResponse(f"{APP_BASE_URL}{path}", status_code=302)


# ---------- endpoints ----------

@router.get("/auth/login")
def login():
    return RedirectResponse(build_authorize_url(), status_code=302)


@router.get("/auth/callback")
def callback(code: str | None = None, db: Session = Depends(get_db)):
    if not code:
        return _redirect("/login?error=missing_code")

    try:
        access_token = exchange_oauth_code(code)
        profile = WorkspaceClient(access_token).get_authorized_user()
        if not profile.get("id"):
            raise WorkspaceError("Workspace profile has no id")

        user = upsert_workspace_user(db, profile["id"], profile.get("email"), profile.get("username"))
        bootstrap_roles(db, user)
        ensure_owner_by_env(db, user)
    except WorkspaceError as e:
        logger.error("OAuth callback failed: %s", e)
        return _redirect("/login?error=oauth_failed")

    session = {
        "access_token": access_token,
        "user": {
            "id": str(profile["id"]),
            "email": profile.get("email"),
            "username": profile.get("username"),
        },
    }
    response = _redirect("/dashboard")
    response.set_cookie(value=encode_session(session), **session_cookie_kwargs())
    logger.info("User %s signed in", user.email or user.clickup_user_id)
    return response


@router.post("/auth/logout")
def logout():
    response = JSONResponse({"ok": True})
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
    return response


@router.get("/me")
def me(
    session: dict = Depends(get_session_data),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    user = actor.user
    manager_id = get_reporting_manager_id(db, user.id)
    team_id = get_team_id_for_user(db, user.id)
    return {
        "id": str(user.id),
        "clickupUserId": user.clickup_user_id,
        "email": user.email,
        "name": user.name or (session.get("user") or {}).get("username"),
        "country": user.country,
        "isActive": user.is_active,
        "roles": actor.roles,
        "primaryRole": actor.primary_role,
        "isOwner": actor.is_owner,
        "isAdmin": actor.is_admin,
        "isManager": actor.is_manager,
        "reportingManagerId": str(manager_id) if manager_id else None,
        "teamId": str(team_id) if team_id else None,
    }
