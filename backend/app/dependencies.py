"""
Authentication and authorization dependencies.

The browser holds an encrypted session cookie (see services/auth.py) with
the workspace access token and the workspace profile. Handlers resolve it
to the provisioned org user and that user's roles.
"""

import os
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import OrgUser
from app.services.auth import SESSION_COOKIE_NAME, decode_session
from app.services.iam import Actor, ensure_owner_by_env, get_user_by_workspace_id, get_user_roles
from app.services.workspace import WorkspaceClient


def get_session_data(request: Request) -> dict:
    data = decode_session(request.cookies.get(SESSION_COOKIE_NAME))
    if not data or not (data.get("user") or {}).get("id"):
        raise HTTPException(status_code=401, detail="Not authenticated")
    return data


def get_current_user(
    session: dict = Depends(get_session_data),
    db: Session = Depends(get_db),
) -> OrgUser:
    user = get_user_by_workspace_id(db, session["user"]["id"])
    if not user:
        raise HTTPException(status_code=403, detail="Not provisioned")
    if user.is_active is False:
        raise HTTPException(status_code=403, detail="User disabled")
    return user


def get_actor(
    user: OrgUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Actor:
    ensure_owner_by_env(db, user)
    return Actor(user=user, roles=get_user_roles(db, user.id))


def require_roles(*roles: str):
    """Dependency factory: the caller must hold at least one of ``roles``."""
    allowed = {getattr(r, "value", r) for r in roles}

    def _require(actor: Actor = Depends(get_actor)) -> Actor:
        if not allowed.intersection(actor.roles):
            raise HTTPException(status_code=403, detail="Forbidden")
        return actor

    return _require


def get_workspace_client(session: dict = Depends(get_session_data)) -> WorkspaceClient:
    token = session.get("access_token")
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return WorkspaceClient(token)


def get_sync_client() -> WorkspaceClient:
    """Client authenticated with the static workspace token, used by the user sync job."""
    token = os.getenv("CLICKUP_SYNC_TOKEN") or os.getenv("CLICKUP_API_TOKEN")
    if not token:
        raise HTTPException(status_code=500, detail="Missing CLICKUP_SYNC_TOKEN")
    return WorkspaceClient(token)


def get_now() -> datetime:
    return datetime.now(timezone.utc)


def verify_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    secret = os.getenv("CRON_SECRET")
    if not secret:
        return
    if (authorization or "").strip() != f"Bearer {secret}":
        raise HTTPException(status_code=401, detail="Invalid cron secret")
