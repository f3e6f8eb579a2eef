"""Time entry endpoints: timer, manual/bulk entry, edits, search, comments."""

import pytest

from tally_api.tracking import entries as entries_service

MONDAY = "2026-03-02"


@pytest.fixture
def alpha_setup(make_user, make_project, auth_headers):
    owner = make_user("owner@example.com")
    project = make_project(owner)
    return owner, project, auth_headers(owner)


def _manual(client, headers, project_id, **body):
    payload = {"project_id": project_id, "duration": 3600, "date": MONDAY, **body}
    response = client.post("/v1/time-entries/manual", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_timer_lifecycle(test_client, alpha_setup):
    _, project, headers = alpha_setup

    assert test_client.get("/v1/time-entries/active", headers=headers).json() is None

    started = test_client.post("/v1/time-entries", json={"project_id": project.id}, headers=headers)
    assert started.status_code == 201
    assert started.json()["end_time"] is None

    second = test_client.post("/v1/time-entries", json={"project_id": project.id}, headers=headers)
    assert second.status_code == 409

    active = test_client.get("/v1/time-entries/active", headers=headers).json()
    assert active["id"] == started.json()["id"]

    stopped = test_client.post("/v1/time-entries/stop", headers=headers)
    assert stopped.status_code == 200
    assert stopped.json()["end_time"] is not None
    assert stopped.json()["duration"] >= 0

    assert test_client.post("/v1/time-entries/stop", headers=headers).status_code == 404


def test_concurrent_start_rejected_by_running_timer_index(test_client, alpha_setup, monkeypatch):
    _, project, headers = alpha_setup
    started = test_client.post("/v1/time-entries", json={"project_id": project.id}, headers=headers)
    assert started.status_code == 201

    # Both requests pass the read check; only the unique index can tell them apart
    monkeypatch.setattr(entries_service, "get_active_entry", lambda db, user_id: None)
    second = test_client.post("/v1/time-entries", json={"project_id": project.id}, headers=headers)
    assert second.status_code == 409
    assert second.headers["content-type"].startswith("application/problem+json")
    monkeypatch.undo()

    active = test_client.get("/v1/time-entries/active", headers=headers).json()
    assert active["id"] == started.json()["id"]
    assert test_client.post("/v1/time-entries/stop", headers=headers).status_code == 200


def test_start_timer_on_invisible_project_is_404(test_client, alpha_setup, make_user, auth_headers):
    _, project, _ = alpha_setup
    stranger = make_user("x@example.com")
    response = test_client.post(
        "/v1/time-entries", json={"project_id": project.id}, headers=auth_headers(stranger)
    )
    assert response.status_code == 404


def test_manual_entry_by_duration_starts_at_nine(test_client, alpha_setup):
    _, project, headers = alpha_setup
    entry = _manual(test_client, headers, project.id, tags=["meeting", "not-a-tag"])

    assert entry["start_time"].startswith("2026-03-02T09:00:00")
    assert entry["duration"] == 3600
    assert entry["tags"] == ["meeting"]


def test_manual_entry_with_times(test_client, alpha_setup):
    _, project, headers = alpha_setup
    entry = _manual(
        test_client,
        headers,
        project.id,
        duration=None,
        start_time="2026-03-02T10:00:00Z",
        end_time="2026-03-02T11:30:00Z",
    )
    assert entry["duration"] == 5400

    backwards = test_client.post(
        "/v1/time-entries/manual",
        json={
            "project_id": project.id,
            "start_time": "2026-03-02T11:00:00Z",
            "end_time": "2026-03-02T10:00:00Z",
        },
        headers=headers,
    )
    assert backwards.status_code == 400

    neither = test_client.post("/v1/time-entries/manual", json={"project_id": project.id}, headers=headers)
    assert neither.status_code == 400


def test_bulk_entries(test_client, alpha_setup):
    _, project, headers = alpha_setup
    body = {
        "entries": [
            {"project_id": project.id, "duration": 1800, "date": MONDAY},
            {"project_id": project.id, "duration": 2700, "date": "2026-03-03", "activity": "Review"},
        ]
    }
    response = test_client.post("/v1/time-entries/bulk", json=body, headers=headers)
    assert response.status_code == 201
    assert [e["duration"] for e in response.json()] == [1800, 2700]

    too_many = {"entries": [{"project_id": project.id, "duration": 60}] * 51}
    assert test_client.post("/v1/time-entries/bulk", json=too_many, headers=headers).status_code == 422


def test_bulk_with_invisible_project_creates_nothing(test_client, alpha_setup, make_user, make_project):
    _, project, headers = alpha_setup
    other = make_project(make_user("y@example.com"), name="Hidden")
    body = {
        "entries": [
            {"project_id": project.id, "duration": 1800},
            {"project_id": other.id, "duration": 1800},
        ]
    }
    assert test_client.post("/v1/time-entries/bulk", json=body, headers=headers).status_code == 404
    assert test_client.get("/v1/time-entries", headers=headers).json() == []


def test_list_date_window(test_client, alpha_setup):
    _, project, headers = alpha_setup
    _manual(test_client, headers, project.id, date="2026-03-01")
    _manual(test_client, headers, project.id, date=MONDAY)
    _manual(test_client, headers, project.id, date="2026-03-03")

    listed = test_client.get(
        f"/v1/time-entries?start_date={MONDAY}&end_date={MONDAY}", headers=headers
    ).json()
    assert len(listed) == 1
    assert listed[0]["start_time"].startswith(MONDAY)


def test_search_text_and_tags(test_client, alpha_setup):
    _, project, headers = alpha_setup
    _manual(test_client, headers, project.id, activity="Design review", tags=["review"])
    _manual(test_client, headers, project.id, notes="fixed login bug", tags=["bug"])
    _manual(test_client, headers, project.id, description="planning", tags=["planning"])

    by_text = test_client.get("/v1/time-entries/search?q=LOGIN", headers=headers).json()
    assert [e["notes"] for e in by_text] == ["fixed login bug"]

    by_tags = test_client.get("/v1/time-entries/search?tags=review,planning", headers=headers).json()
    assert len(by_tags) == 2

    limited = test_client.get("/v1/time-entries/search?limit=1", headers=headers).json()
    assert len(limited) == 1


def test_edit_rules(test_client, make_user, make_org, make_project, add_project_member, auth_headers):
    """Owner of the project can edit a member's entry; an org peer can only read it."""
    a = make_user("a@example.com")
    b = make_user("b@example.com")
    c = make_user("c@example.com")
    make_org(a, members=[(b, "MEMBER"), (c, "ADMIN")])
    alpha = make_project(a)
    add_project_member(alpha, b)

    entry = _manual(test_client, auth_headers(b), alpha.id)
    url = f"/v1/time-entries/{entry['id']}"

    edited = test_client.put(url, json={"description": "checked"}, headers=auth_headers(a))
    assert edited.status_code == 200
    assert edited.json()["description"] == "checked"

    c_headers = auth_headers(c)
    assert test_client.get(url, headers=c_headers).status_code == 200
    assert test_client.put(url, json={"description": "nope"}, headers=c_headers).status_code == 403
    assert test_client.delete(url, headers=c_headers).status_code == 403

    outsider = make_user("z@example.com")
    assert test_client.get(url, headers=auth_headers(outsider)).status_code == 404

    assert test_client.delete(url, headers=auth_headers(b)).status_code == 200
    assert test_client.get(url, headers=auth_headers(b)).status_code == 404


def test_update_recomputes_duration(test_client, alpha_setup):
    _, project, headers = alpha_setup
    entry = _manual(test_client, headers, project.id)
    url = f"/v1/time-entries/{entry['id']}"

    updated = test_client.put(url, json={"end_time": "2026-03-02T09:45:00Z"}, headers=headers)
    assert updated.json()["duration"] == 2700

    bad = test_client.put(url, json={"end_time": "2026-03-02T08:00:00Z"}, headers=headers)
    assert bad.status_code == 400


def test_duplicate_own_entry_only(test_client, make_user, make_org, make_project, auth_headers):
    a = make_user("a@example.com")
    b = make_user("b@example.com")
    make_org(a, members=[(b, "MEMBER")])
    alpha = make_project(a)
    a_headers = auth_headers(a)
    entry = _manual(test_client, a_headers, alpha.id, activity="Deep work", tags=["development"])

    copy = test_client.post(
        f"/v1/time-entries/{entry['id']}/duplicate", json={"date": "2026-03-05"}, headers=a_headers
    )
    assert copy.status_code == 201
    assert copy.json()["id"] != entry["id"]
    assert copy.json()["start_time"].startswith("2026-03-05T09:00:00")
    assert copy.json()["activity"] == "Deep work"
    assert copy.json()["tags"] == ["development"]

    assert test_client.post(
        f"/v1/time-entries/{entry['id']}/duplicate", headers=auth_headers(b)
    ).status_code == 403


def test_comments_follow_project_visibility(test_client, make_user, make_project, add_project_member, auth_headers):
    a = make_user("a@example.com")
    b = make_user("b@example.com")
    alpha = make_project(a)
    add_project_member(alpha, b)
    entry = _manual(test_client, auth_headers(a), alpha.id)
    url = f"/v1/time-entries/{entry['id']}/comments"

    posted = test_client.post(url, json={"content": "  Looks good  "}, headers=auth_headers(b))
    assert posted.status_code == 201
    assert posted.json()["content"] == "Looks good"

    thread = test_client.get(url, headers=auth_headers(a)).json()
    assert [c["user_id"] for c in thread] == [b.id]

    stranger = make_user("x@example.com")
    assert test_client.get(url, headers=auth_headers(stranger)).status_code == 404


def test_update_with_null_required_field_is_400(test_client, alpha_setup):
    _, project, headers = alpha_setup
    entry = _manual(test_client, headers, project.id, description="Review")
    url = f"/v1/time-entries/{entry['id']}"

    for body in ({"billable": None}, {"project_id": None}, {"start_time": None}):
        response = test_client.put(url, json=body, headers=headers)
        assert response.status_code == 400, body
        assert response.headers["content-type"].startswith("application/problem+json")

    cleared = test_client.put(url, json={"description": None, "notes": None}, headers=headers)
    assert cleared.status_code == 200
    assert cleared.json()["billable"] is True
    assert cleared.json()["description"] is None
