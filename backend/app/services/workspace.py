"""
Workspace provider (ClickUp v2) REST client.

Only the handful of calls the portal needs: the authorized user, teams and
their members, view tasks, the space/folder/list tree, task creation and
time tracking. Every non-2xx answer raises WorkspaceError carrying the
status code and the response body.
"""

import logging
import os
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

CLICKUP_API_BASE = os.getenv("CLICKUP_API_BASE", "https://api.clickup.com/api/v2").rstrip("/")
CLICKUP_CLIENT_ID = os.getenv("CLICKUP_CLIENT_ID", "")
CLICKUP_CLIENT_SECRET = os.getenv("CLICKUP_CLIENT_SECRET", "")
CLICKUP_REDIRECT_URI = os.getenv("CLICKUP_REDIRECT_URI", "http://localhost:8000/api/auth/callback")
CLICKUP_AUTHORIZE_URL = "https://app.clickup.com/api"
OAUTH_SCOPES = "task:read,user:read,time_tracking:read"

MAX_VIEW_PAGES = 100
REQUEST_TIMEOUT = 30


class WorkspaceError(Exception):
    """Raised when the workspace API answers with a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


def make_auth_header(token: str) -> str:
    # Personal tokens are sent raw; OAuth access tokens as Bearer
    token = (token or "").strip()
    if token.startswith("pk_") or token.lower().startswith("bearer "):
        return token
    return f"Bearer {token}"


def build_authorize_url(state: Optional[str] = None) -> str:
    params = {"client_id": CLICKUP_CLIENT_ID, "redirect_uri": CLICKUP_REDIRECT_URI, "scope": OAUTH_SCOPES}
    if state:
        params["state"] = state
    return str(httpx.URL(CLICKUP_AUTHORIZE_URL, params=params))


def exchange_oauth_code(code: str, transport: Optional[httpx.BaseTransport] = None) -> str:
    """Trade an OAuth authorization code for an access token."""
    try:
        with httpx.Client(transport=transport, timeout=REQUEST_TIMEOUT) as client:
            r = client.post(
                f"{CLICKUP_API_BASE}/oauth/token",
                params={
                    "client_id": CLICKUP_CLIENT_ID,
                    "client_secret": CLICKUP_CLIENT_SECRET,
                    "code": code,
                },
            )
    except httpx.HTTPError as e:
        logger.error("OAuth token exchange failed: %s", e)
        raise WorkspaceError("OAuth token exchange failed", None, str(e)) from e
    if r.status_code >= 400:
        logger.error("OAuth token exchange failed: %s %s", r.status_code, r.text[:300])
        raise WorkspaceError("OAuth token exchange failed", r.status_code, r.text)

    try:
        token = (r.json() or {}).get("access_token")
    except ValueError as e:
        raise WorkspaceError("OAuth token exchange returned invalid JSON", r.status_code, r.text) from e
    if not token:
        raise WorkspaceError("OAuth token exchange returned no access_token", r.status_code, r.text)
    return token


class WorkspaceClient:
    def __init__(
        self,
        token: str,
        base_url: str = CLICKUP_API_BASE,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    def _request(self, method: str, path: str, params: Optional[dict] = None, json: Any = None) -> Any:
        headers = {
            "Authorization": make_auth_header(self.token),
            "Content-Type": "application/json",
        }
        url = f"{self.base_url}{path}"
        try:
            with httpx.Client(transport=self._transport, timeout=REQUEST_TIMEOUT) as client:
                r = client.request(method, url, headers=headers, params=params, json=json)
        except httpx.HTTPError as e:
            logger.error("Workspace %s %s failed: %s", method, path, e)
            raise WorkspaceError(f"Workspace request failed: {method} {path}", None, str(e)) from e

        if r.status_code >= 400:
            logger.error("Workspace %s %s -> %s: %s", method, path, r.status_code, r.text[:300])
            raise WorkspaceError(f"Workspace {method} {path} failed ({r.status_code})", r.status_code, r.text)

        if not r.content:
            return {}
        try:
            return r.json()
        except ValueError as e:
            raise WorkspaceError(f"Workspace {method} {path} returned invalid JSON", r.status_code, r.text) from e

    # ── Users / teams ──

    def get_authorized_user(self) -> dict:
        return (self._request("GET", "/user") or {}).get("user") or {}

    def list_teams(self) -> list[dict]:
        return (self._request("GET", "/team") or {}).get("teams") or []

    def get_team_members(self, team_id: str) -> list[dict]:
        """Member user dicts (id, username, email) of one workspace team."""
        for team in self.list_teams():
            if str(team.get("id")) == str(team_id):
                return [m.get("user") or {} for m in team.get("members") or []]
        raise WorkspaceError(f"Workspace team {team_id} not visible to this token", 404)

    # ── Views ──

    def get_view(self, view_id: str) -> dict:
        data = self._request("GET", f"/view/{view_id}") or {}
        return data.get("view") or data

    def get_view_tasks(self, view_id: str) -> list[dict]:
        """Every task the view shows, page by page until an empty page."""
        by_id: dict[str, dict] = {}
        for page in range(MAX_VIEW_PAGES):
            data = self._request("GET", f"/view/{view_id}/task", params={"page": page})
            if isinstance(data, list):
                batch = data
            else:
                batch = data.get("tasks") or data.get("data") or []
            if not batch:
                break
            for t in batch:
                task_id = str(t.get("id") or "")
                if not task_id:
                    continue
                by_id[task_id] = {
                    "id": task_id,
                    "name": str(t.get("name") or task_id),
                    "parent": t.get("parent"),
                    "assignees": t.get("assignees") or [],
                }
        return list(by_id.values())

    # ── Hierarchy ──

    def list_spaces(self, team_id: str) -> list[dict]:
        return (self._request("GET", f"/team/{team_id}/space", params={"archived": "false"}) or {}).get("spaces") or []

    def list_folders(self, space_id: str) -> list[dict]:
        return (self._request("GET", f"/space/{space_id}/folder", params={"archived": "false"}) or {}).get("folders") or []

    def list_lists(self, space_id: Optional[str] = None, folder_id: Optional[str] = None) -> list[dict]:
        if folder_id:
            path = f"/folder/{folder_id}/list"
        elif space_id:
            path = f"/space/{space_id}/list"
        else:
            raise ValueError("space_id or folder_id is required")
        return (self._request("GET", path, params={"archived": "false"}) or {}).get("lists") or []

    # ── Tasks / time ──

    def create_task(self, list_id: str, name: str, description: Optional[str] = None,
                    assignees: Optional[list[int]] = None) -> dict:
        payload: dict[str, Any] = {"name": name}
        if description:
            payload["description"] = description
        if assignees:
            payload["assignees"] = assignees
        return self._request("POST", f"/list/{list_id}/task", json=payload)

    def update_time_estimate(self, task_id: str, estimate_ms: int) -> dict:
        return self._request("PUT", f"/task/{task_id}", json={"time_estimate": int(estimate_ms)})

    def create_time_entry(
        self,
        team_id: str,
        task_id: str,
        start_ms: int,
        duration_ms: int,
        description: Optional[str] = None,
        assignee: Optional[int] = None,
        billable: bool = True,
    ) -> dict:
        payload: dict[str, Any] = {
            "tid": task_id,
            "start": int(start_ms),
            "duration": max(1, int(duration_ms)),
            "billable": billable,
        }
        if description:
            payload["description"] = description
        if assignee is not None:
            payload["assignee"] = assignee
        return self._request("POST", f"/team/{team_id}/time_entries", json=payload)
