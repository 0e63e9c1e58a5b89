import json

import httpx
import pytest

from app.services.auth import decode_session, encode_session
from app.services.workspace import (
    WorkspaceClient,
    WorkspaceError,
    build_authorize_url,
    exchange_oauth_code,
    make_auth_header,
)


def test_auth_header_personal_token_sent_raw():
    assert make_auth_header("pk_123_ABC") == "pk_123_ABC"
    assert make_auth_header("oauth-token") == "Bearer oauth-token"


def test_view_tasks_paginate_until_empty_and_dedupe():
    pages = {
        "0": [{"id": "1", "name": "One"}, {"id": "2", "name": "Two", "parent": "1"}],
        "1": [{"id": "2", "name": "Two", "parent": "1"}, {"id": "3", "name": "Three"}],
        "2": [],
    }
    seen_pages = []

    def handler(request: httpx.Request):
        assert request.headers["Authorization"] == "pk_token"
        page = request.url.params["page"]
        seen_pages.append(page)
        return httpx.Response(200, json={"tasks": pages.get(page, [])})

    client = WorkspaceClient("pk_token", transport=httpx.MockTransport(handler))
    tasks = client.get_view_tasks("view-1")

    assert seen_pages == ["0", "1", "2"]
    assert [t["id"] for t in tasks] == ["1", "2", "3"]
    assert tasks[1]["parent"] == "1"


def test_non_2xx_raises_workspace_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(401, text="Token invalid"))
    client = WorkspaceClient("bad", transport=transport)

    with pytest.raises(WorkspaceError) as exc:
        client.list_teams()
    assert exc.value.status_code == 401
    assert exc.value.details == "Token invalid"


def test_create_time_entry_payload():
    captured = {}

    def handler(request: httpx.Request):
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": {"id": "te-1"}})

    client = WorkspaceClient("tok", transport=httpx.MockTransport(handler))
    client.create_time_entry("team-1", "task-9", start_ms=1000, duration_ms=0, assignee=42)

    assert captured["path"].endswith("/team/team-1/time_entries")
    assert captured["body"] == {"tid": "task-9", "start": 1000, "duration": 1, "billable": True, "assignee": 42}


def test_session_round_trip_and_tamper():
    token = encode_session({"access_token": "t", "user": {"id": "42"}})

    assert decode_session(token)["user"]["id"] == "42"
    assert decode_session(token[:-4] + "AAAA") is None
    assert decode_session(token, secret="another-secret") is None
    assert decode_session(token, max_age_seconds=-1) is None
    assert decode_session(None) is None


def test_authorize_url_carries_scopes():
    url = httpx.URL(build_authorize_url(state="xyz"))

    assert url.params["scope"] == "task:read,user:read,time_tracking:read"
    assert url.params["state"] == "xyz"


def test_token_exchange_wraps_transport_and_decode_errors():
    def _down(request):
        raise httpx.ConnectError("down", request=request)

    with pytest.raises(WorkspaceError):
        exchange_oauth_code("abc", transport=httpx.MockTransport(_down))

    html = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>maintenance</html>"))
    with pytest.raises(WorkspaceError) as exc:
        exchange_oauth_code("abc", transport=html)
    assert exc.value.status_code == 200
