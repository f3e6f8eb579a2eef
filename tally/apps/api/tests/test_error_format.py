"""
Error format gate (RFC 9457 Problem Details).

Every error response:
- Content-Type: application/problem+json
- Required fields: type, title, status, detail, instance
- instance is opaque (urn:tally:trace:...), never a path or primary key
- X-Request-ID echoed on every response

Status codes covered: 400, 401, 403, 404, 409, 410, 422
"""

import re
from datetime import timedelta

import pytest

from tally_api.db.models import OrgInvitation
from tally_api.enums import InvitationStatus
from tally_api.utils.timeutil import utcnow


def assert_problem_details(resp, expected_status: int):
    content_type = resp.headers.get("content-type", "")
    assert content_type.startswith("application/problem+json"), \
        f"Expected application/problem+json, got: {content_type}"

    data = resp.json()
    for field in ["type", "title", "status", "detail", "instance"]:
        assert field in data, f"Missing required field: {field}"

    assert data["status"] == expected_status
    assert data["type"].startswith("https://tally.dev/problems/")

    instance = data["instance"]
    assert re.match(r"^urn:tally:trace:[A-Za-z0-9._:-]{8,}$", instance), \
        f"Invalid instance format: {instance}"
    assert "/" not in instance
    assert not instance.split(":")[-1].isdigit()


class TestErrorFormat:

    def test_401_missing_session(self, test_client):
        response = test_client.get("/v1/projects")
        assert response.status_code == 401
        assert_problem_details(response, 401)
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_401_malformed_token(self, test_client):
        response = test_client.get("/v1/projects", headers={"Authorization": "Bearer not-a-token"})
        assert_problem_details(response, 401)

    def test_403_forbidden(self, test_client, make_user, make_org, auth_headers):
        owner = make_user("a@example.com")
        member = make_user("b@example.com")
        make_org(owner, members=[(member, "MEMBER")])

        response = test_client.delete("/v1/organization", headers=auth_headers(member))
        assert response.status_code == 403
        assert_problem_details(response, 403)

    def test_404_invisible_project(self, test_client, make_user, make_project, auth_headers):
        project = make_project(make_user("a@example.com"))
        stranger = make_user("x@example.com")

        response = test_client.get(f"/v1/projects/{project.id}", headers=auth_headers(stranger))
        assert_problem_details(response, 404)
        # The instance never carries the resource id
        assert project.id not in response.json()["instance"]

    def test_404_unknown_route(self, test_client):
        response = test_client.get("/v1/does-not-exist")
        assert_problem_details(response, 404)

    def test_409_conflict(self, test_client, make_user, auth_headers):
        make_user("dup@example.com")
        response = test_client.post(
            "/v1/auth/signup",
            json={"email": "dup@example.com", "password": "long-enough-pw", "name": "Dup"},
        )
        assert_problem_details(response, 409)

    def test_410_expired_invitation(self, test_client, db_session, make_user, make_org):
        owner = make_user("a@example.com")
        org = make_org(owner)
        invitation = OrgInvitation(
            email="late@example.com",
            role="MEMBER",
            token="ab" * 32,
            status=InvitationStatus.PENDING.value,
            expires_at=utcnow() - timedelta(days=1),
            organization_id=org.id,
            sender_id=owner.id,
        )
        db_session.add(invitation)
        db_session.commit()

        response = test_client.get(f"/v1/org-invites/{invitation.token}")
        assert_problem_details(response, 410)

    def test_400_bad_request(self, test_client, make_user, make_project, auth_headers):
        owner = make_user("a@example.com")
        project = make_project(owner)
        response = test_client.post(
            "/v1/time-entries/manual",
            json={"project_id": project.id},
            headers=auth_headers(owner),
        )
        assert_problem_details(response, 400)

    def test_422_validation(self, test_client, make_user, auth_headers):
        response = test_client.post(
            "/v1/projects",
            json={"name": "Bad color", "color": "red"},
            headers=auth_headers(make_user("a@example.com")),
        )
        assert response.status_code == 422
        assert_problem_details(response, 422)
        assert "color" in response.json()["detail"]


class TestRequestId:

    def test_request_id_generated(self, test_client):
        response = test_client.get("/health")
        assert len(response.headers["X-Request-ID"]) >= 8

    @pytest.mark.parametrize("path", ["/health", "/v1/projects"])
    def test_request_id_echoed(self, test_client, path):
        response = test_client.get(path, headers={"X-Request-ID": "req-test-12345"})
        assert response.headers["X-Request-ID"] == "req-test-12345"

    def test_instance_uses_request_id(self, test_client):
        response = test_client.get("/v1/projects", headers={"X-Request-ID": "req-trace-abcdef"})
        assert response.json()["instance"] == "urn:tally:trace:req-trace-abcdef"
