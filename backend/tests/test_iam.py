from app.models.audit_log import AuditLog
from app.models.team import Team, TeamMember
from app.models.user import OrgReportingManager, OrgUser
from app.services.iam import get_user_roles


def _role(client, user, role, action):
    return client.post("/api/iam/users/role", json={"userId": str(user.id), "role": role, "action": action})


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


def test_removing_last_owner_is_rejected(client, make_user, login, db):
    owner = make_user("Olga", roles=("OWNER",))
    login(owner)

    r = _role(client, owner, "OWNER", "remove")

    assert r.status_code == 409
    assert "last OWNER" in r.json()["error"]
    assert "OWNER" in get_user_roles(db, owner.id)


def test_owner_can_be_removed_when_another_exists(client, make_user, login, db):
    owner = make_user("Olga", roles=("OWNER",))
    other = make_user("Otto", roles=("OWNER",))
    login(owner)

    r = _role(client, other, "OWNER", "remove")

    assert r.status_code == 200
    assert r.json()["roles"] == []
    assert db.query(AuditLog).filter(AuditLog.action == "role.revoke").count() == 1


def test_inactive_owner_can_lose_owner_role(client, make_user, login, db):
    owner = make_user("Olga", roles=("OWNER",))
    retired = make_user("Otto", roles=("OWNER",), is_active=False)
    login(owner)

    r = _role(client, retired, "OWNER", "remove")

    assert r.status_code == 200
    assert "OWNER" not in get_user_roles(db, retired.id)
    assert "OWNER" in get_user_roles(db, owner.id)


def test_admin_cannot_grant_owner(client, make_user, login):
    admin = make_user("Ada", roles=("ADMIN",))
    target = make_user("Tom")
    login(admin)

    assert _role(client, target, "OWNER", "add").status_code == 403
    r = _role(client, target, "MANAGER", "add")
    assert r.status_code == 200
    assert sorted(r.json()["roles"]) == ["CONSULTANT", "MANAGER"]


def test_consultant_cannot_change_roles(client, make_user, login):
    consultant = make_user("Cal")
    login(consultant)

    r = _role(client, consultant, "ADMIN", "add")

    assert r.status_code == 403
    assert r.json() == {"error": "Forbidden"}


def test_invalid_role_and_action(client, make_user, login):
    owner = make_user("Olga", roles=("OWNER",))
    login(owner)

    assert _role(client, owner, "EMPEROR", "add").status_code == 400
    assert _role(client, owner, "ADMIN", "toggle").status_code == 400


def test_deactivating_last_owner_is_rejected(client, make_user, login):
    owner = make_user("Olga", roles=("OWNER",))
    login(owner)

    r = client.post("/api/iam/users/status", json={"userId": str(owner.id), "isActive": False})

    assert r.status_code == 409


def test_deactivate_consultant(client, make_user, login, db):
    owner = make_user("Olga", roles=("OWNER",))
    target = make_user("Tom")
    login(owner)

    r = client.post("/api/iam/users/status", json={"userId": str(target.id), "isActive": False})

    assert r.status_code == 200
    db.expire_all()
    assert db.get(OrgUser, target.id).is_active is False


# ---------------------------------------------------------------------------
# Country / manager
# ---------------------------------------------------------------------------


def test_country_must_be_known(client, make_user, login, db):
    admin = make_user("Ada", roles=("ADMIN",))
    target = make_user("Tom", country=None)
    login(admin)

    bad = client.post("/api/iam/users/country", json={"userId": str(target.id), "country": "FR"})
    ok = client.post("/api/iam/users/country", json={"userId": str(target.id), "country": "india"})
    cleared = client.post("/api/iam/users/country", json={"userId": str(target.id), "country": None})

    assert bad.status_code == 400
    assert ok.json()["country"] == "INDIA"
    assert cleared.json()["country"] is None


def test_user_cannot_report_to_themselves(client, make_user, login):
    admin = make_user("Ada", roles=("ADMIN",))
    target = make_user("Tom")
    login(admin)

    r = client.post("/api/iam/users/manager", json={"userId": str(target.id), "managerUserId": str(target.id)})

    assert r.status_code == 400


def test_unknown_manager_is_404(client, make_user, login):
    admin = make_user("Ada", roles=("ADMIN",))
    target = make_user("Tom")
    login(admin)

    r = client.post(
        "/api/iam/users/manager",
        json={"userId": str(target.id), "managerUserId": "00000000-0000-0000-0000-000000000001"},
    )

    assert r.status_code == 404


def test_set_and_clear_reporting_manager(client, make_user, login, db):
    admin = make_user("Ada", roles=("ADMIN",))
    manager = make_user("Max", roles=("MANAGER",))
    target = make_user("Tom")
    login(admin)

    r = client.post("/api/iam/users/manager", json={"userId": str(target.id), "managerUserId": str(manager.id)})
    assert r.status_code == 200
    assert db.query(OrgReportingManager).filter(OrgReportingManager.user_id == target.id).one().manager_user_id == manager.id

    r = client.post("/api/iam/users/manager", json={"userId": str(target.id), "managerUserId": None})
    assert r.status_code == 200
    assert db.query(OrgReportingManager).count() == 0


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------


def _create_team(client, name="Delivery"):
    r = client.post("/api/iam/teams/create", json={"name": name})
    assert r.status_code == 200
    return r.json()["team"]["id"]


def test_team_manager_must_hold_manager_and_not_owner(client, make_user, login):
    owner = make_user("Olga", roles=("OWNER",))
    consultant = make_user("Cal")
    manager = make_user("Max", roles=("MANAGER",))
    login(owner)
    team_id = _create_team(client)

    not_manager = client.post("/api/iam/teams/assign-manager", json={"teamId": team_id, "managerUserId": str(consultant.id)})
    is_owner = client.post("/api/iam/teams/assign-manager", json={"teamId": team_id, "managerUserId": str(owner.id)})
    ok = client.post("/api/iam/teams/assign-manager", json={"teamId": team_id, "managerUserId": str(manager.id)})

    assert not_manager.status_code == 409
    assert is_owner.status_code == 409
    assert ok.status_code == 200


def test_duplicate_team_name_conflicts(client, make_user, login):
    login(make_user("Olga", roles=("OWNER",)))
    _create_team(client, "Ops")

    assert client.post("/api/iam/teams/create", json={"name": "Ops"}).status_code == 409


def test_owner_cannot_join_a_team(client, make_user, login):
    owner = make_user("Olga", roles=("OWNER",))
    login(owner)
    team_id = _create_team(client)

    r = client.post("/api/iam/teams/assign-member", json={"teamId": team_id, "userId": str(owner.id)})

    assert r.status_code == 400


def test_member_moves_between_teams(client, make_user, login, db):
    login(make_user("Olga", roles=("OWNER",)))
    member = make_user("Tom")
    first = _create_team(client, "First")
    second = _create_team(client, "Second")

    client.post("/api/iam/teams/assign-member", json={"teamId": first, "userId": str(member.id)})
    client.post("/api/iam/teams/assign-member", json={"teamId": second, "userId": str(member.id)})

    rows = db.query(TeamMember).filter(TeamMember.user_id == member.id).all()
    assert len(rows) == 1
    assert str(rows[0].team_id) == second


def test_teams_visibility_by_role(client, make_user, login, db):
    owner = make_user("Olga", roles=("OWNER",))
    manager = make_user("Max", roles=("MANAGER",))
    member = make_user("Tom")
    outsider = make_user("Uma")
    login(owner)
    managed = _create_team(client, "Managed")
    _create_team(client, "Other")
    client.post("/api/iam/teams/assign-manager", json={"teamId": managed, "managerUserId": str(manager.id)})
    client.post("/api/iam/teams/assign-member", json={"teamId": managed, "userId": str(member.id)})

    assert len(client.get("/api/iam/teams").json()["teams"]) == 2

    login(manager)
    names = [t["name"] for t in client.get("/api/iam/teams").json()["teams"]]
    assert names == ["Managed"]

    login(member)
    teams = client.get("/api/iam/teams").json()["teams"]
    assert [t["name"] for t in teams] == ["Managed"]
    assert teams[0]["member_user_ids"] == [str(member.id)]

    login(outsider)
    assert client.get("/api/iam/teams").json()["teams"] == []
    assert db.query(Team).count() == 2


def test_list_users_requires_admin(client, make_user, login):
    admin = make_user("Ada", roles=("ADMIN",))
    consultant = make_user("Cal")

    login(consultant)
    assert client.get("/api/iam/users").status_code == 403

    login(admin)
    users = client.get("/api/iam/users").json()["users"]
    assert {u["name"] for u in users} == {"Ada", "Cal"}
    assert next(u for u in users if u["name"] == "Ada")["primary_role"] == "ADMIN"
