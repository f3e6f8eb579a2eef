"""Project, membership, task and favorite endpoints."""

from tally_api.db.models import RecurringEntry, TimeTemplate


def _create(client, headers, name="Alpha", **extra):
    response = client.post("/v1/projects", json={"name": name, **extra}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_project_seeds_defaults(test_client, db_session, make_user, auth_headers):
    ann = make_user("ann@example.com")
    project = _create(test_client, auth_headers(ann), color="#FF0000", hourly_rate=80)

    assert project["color"] == "#FF0000"
    assert project["organization_id"] is None
    names = {t.name for t in db_session.query(TimeTemplate).filter(TimeTemplate.project_id == project["id"])}
    assert names == {"Meeting", "Quick Sync"}
    standup = db_session.query(RecurringEntry).filter(RecurringEntry.project_id == project["id"]).one()
    assert standup.frequency == "WEEKLY"
    assert standup.days_of_week == [1, 2, 3, 4, 5]


def test_project_joins_owner_org(test_client, make_user, make_org, auth_headers):
    ann = make_user("ann@example.com")
    org = make_org(ann)
    project = _create(test_client, auth_headers(ann))
    assert project["organization_id"] == org.id


def test_invite_existing_user_and_member_permissions(test_client, make_user, auth_headers):
    """A (no org) owns Alpha; B is added and can read but not modify."""
    a = make_user("a@example.com")
    b = make_user("b@example.com")
    a_headers, b_headers = auth_headers(a), auth_headers(b)
    alpha = _create(test_client, a_headers)

    assert test_client.get(f"/v1/projects/{alpha['id']}", headers=b_headers).status_code == 404

    added = test_client.post(f"/v1/projects/{alpha['id']}/invite", json={"email": "b@example.com"}, headers=a_headers)
    assert added.status_code == 200
    assert added.json()["message"] == "Member added successfully"
    assert test_client.post(
        f"/v1/projects/{alpha['id']}/invite", json={"email": "b@example.com"}, headers=a_headers
    ).status_code == 409

    detail = test_client.get(f"/v1/projects/{alpha['id']}", headers=b_headers)
    assert detail.status_code == 200
    assert detail.json()["is_owner"] is False
    assert {m["role"] for m in detail.json()["members"]} == {"OWNER", "MEMBER"}

    assert test_client.put(f"/v1/projects/{alpha['id']}", json={"name": "Hijack"}, headers=b_headers).status_code == 403
    assert test_client.delete(f"/v1/projects/{alpha['id']}", headers=b_headers).status_code == 403

    entry = test_client.post(
        "/v1/time-entries/manual", json={"project_id": alpha["id"], "duration": 1800}, headers=b_headers
    )
    assert entry.status_code == 201

    assert test_client.delete(f"/v1/projects/{alpha['id']}", headers=a_headers).status_code == 200
    assert test_client.get(f"/v1/time-entries?project_id={alpha['id']}", headers=b_headers).json() == []


def test_invite_new_email_then_accept(test_client, make_user, auth_headers):
    a = make_user("a@example.com")
    a_headers = auth_headers(a)
    alpha = _create(test_client, a_headers)

    invited = test_client.post(
        f"/v1/projects/{alpha['id']}/invite", json={"email": "new@example.com"}, headers=a_headers
    )
    assert invited.status_code == 200
    token = invited.json()["invite_url"].rsplit("/", 1)[-1]
    assert test_client.get(f"/v1/invitations/{token}").json()["project_name"] == "Alpha"

    newcomer = make_user("new@example.com")
    accepted = test_client.post(f"/v1/invitations/{token}/accept", headers=auth_headers(newcomer))
    assert accepted.status_code == 200
    assert accepted.json()["project_id"] == alpha["id"]
    assert test_client.post(f"/v1/invitations/{token}/accept", headers=auth_headers(newcomer)).status_code == 409


def test_owner_membership_cannot_be_removed(test_client, make_user, auth_headers):
    a = make_user("a@example.com")
    b = make_user("b@example.com")
    a_headers = auth_headers(a)
    alpha = _create(test_client, a_headers)
    test_client.post(f"/v1/projects/{alpha['id']}/invite", json={"email": "b@example.com"}, headers=a_headers)
    members = test_client.get(f"/v1/projects/{alpha['id']}", headers=a_headers).json()["members"]
    owner_row = next(m for m in members if m["role"] == "OWNER")
    member_row = next(m for m in members if m["role"] == "MEMBER")

    assert test_client.delete(
        f"/v1/projects/{alpha['id']}/members/{owner_row['id']}", headers=a_headers
    ).status_code == 403
    assert test_client.delete(
        f"/v1/projects/{alpha['id']}/members/{member_row['id']}", headers=a_headers
    ).status_code == 200
    assert test_client.get(f"/v1/projects/{alpha['id']}", headers=auth_headers(b)).status_code == 404


def test_archived_filter(test_client, make_user, auth_headers):
    a = make_user("a@example.com")
    headers = auth_headers(a)
    alpha = _create(test_client, headers)
    _create(test_client, headers, name="Beta")
    test_client.put(f"/v1/projects/{alpha['id']}", json={"archived": True}, headers=headers)

    assert len(test_client.get("/v1/projects", headers=headers).json()) == 2
    active = test_client.get("/v1/projects?include_archived=false", headers=headers).json()
    assert [p["name"] for p in active] == ["Beta"]


def test_tasks_owner_only(test_client, make_user, make_org, auth_headers):
    a = make_user("a@example.com")
    c = make_user("c@example.com")
    make_org(a, members=[(c, "MEMBER")])
    a_headers = auth_headers(a)
    alpha = _create(test_client, a_headers)

    task = test_client.post(f"/v1/projects/{alpha['id']}/tasks", json={"name": "Spec"}, headers=a_headers)
    assert task.status_code == 201
    task_id = task.json()["id"]
    assert test_client.post(
        f"/v1/projects/{alpha['id']}/tasks", json={"name": "Nope"}, headers=auth_headers(c)
    ).status_code == 403

    done = test_client.put(
        f"/v1/projects/{alpha['id']}/tasks/{task_id}", json={"completed": True}, headers=a_headers
    )
    assert done.json()["completed"] is True
    assert test_client.delete(f"/v1/projects/{alpha['id']}/tasks/{task_id}", headers=a_headers).status_code == 200


def test_favorites_toggle(test_client, make_user, auth_headers):
    a = make_user("a@example.com")
    headers = auth_headers(a)
    alpha = _create(test_client, headers)

    first = test_client.post("/v1/favorites", json={"project_id": alpha["id"]}, headers=headers)
    assert first.json() == {"project_id": alpha["id"], "favorited": True}
    assert [p["id"] for p in test_client.get("/v1/favorites", headers=headers).json()] == [alpha["id"]]

    second = test_client.post("/v1/favorites", json={"project_id": alpha["id"]}, headers=headers)
    assert second.json()["favorited"] is False
    assert test_client.get("/v1/favorites", headers=headers).json() == []

    stranger = make_user("x@example.com")
    assert test_client.post(
        "/v1/favorites", json={"project_id": alpha["id"]}, headers=auth_headers(stranger)
    ).status_code == 404


def test_update_with_null_required_field_is_400(test_client, make_user, auth_headers):
    headers = auth_headers(make_user("a@example.com"))
    alpha = _create(test_client, headers, description="Main project")
    url = f"/v1/projects/{alpha['id']}"

    for body in ({"name": None}, {"archived": None}, {"color": None}):
        response = test_client.put(url, json=body, headers=headers)
        assert response.status_code == 400, body
        assert response.headers["content-type"].startswith("application/problem+json")

    cleared = test_client.put(url, json={"description": None, "hourly_rate": None}, headers=headers)
    assert cleared.status_code == 200
    assert cleared.json()["name"] == "Alpha"
    assert cleared.json()["description"] is None


def test_task_update_with_null_required_field_is_400(test_client, make_user, auth_headers):
    headers = auth_headers(make_user("a@example.com"))
    alpha = _create(test_client, headers)
    task = test_client.post(f"/v1/projects/{alpha['id']}/tasks", json={"name": "Spec"}, headers=headers).json()
    url = f"/v1/projects/{alpha['id']}/tasks/{task['id']}"

    assert test_client.put(url, json={"name": None}, headers=headers).status_code == 400
    assert test_client.put(url, json={"completed": None}, headers=headers).status_code == 400
