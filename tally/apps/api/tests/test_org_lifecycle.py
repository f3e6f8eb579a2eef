"""Organization lifecycle against a real (in-memory) database.

Covers the single-OWNER invariant, invitation single-use/deadline and the
ADMIN-versus-ADMIN authority rule.
"""

from datetime import timedelta

import pytest

from tally_api.access.errors import Conflict, Expired, Forbidden, NotFound
from tally_api.db.models import OrgInvitation, Project, User
from tally_api.orgs import lifecycle
from tally_api.utils.timeutil import utcnow


def _owners(db_session, org_id):
    return db_session.query(User).filter(User.organization_id == org_id, User.org_role == "OWNER").all()


class TestCreateOrganization:
    def test_creator_becomes_sole_owner_and_projects_move(self, db_session, make_user, make_project):
        ann = make_user("ann@example.com", "Ann")
        project = make_project(ann, "Solo")

        org = lifecycle.create_organization(db_session, ann.id, "  Acme  ")

        assert org.name == "Acme"
        assert org.owner_id == ann.id
        assert [u.id for u in _owners(db_session, org.id)] == [ann.id]
        db_session.refresh(project)
        assert project.organization_id == org.id

    def test_second_organization_conflicts(self, db_session, make_user, make_org):
        ann = make_user("ann@example.com")
        make_org(ann)
        with pytest.raises(Conflict):
            lifecycle.create_organization(db_session, ann.id, "Another")


class TestInvitations:
    def test_admin_cannot_invite_admin_but_owner_can(self, db_session, make_user, make_org):
        """OWNER=A, ADMIN=B, MEMBER=C; B invites D as ADMIN -> Forbidden, A -> ok."""
        a = make_user("a@example.com")
        b = make_user("b@example.com")
        c = make_user("c@example.com")
        make_org(a, members=[(b, "ADMIN"), (c, "MEMBER")])

        with pytest.raises(Forbidden):
            lifecycle.invite_member(db_session, b.id, "d@example.com", "ADMIN")

        result = lifecycle.invite_member(db_session, a.id, "D@Example.com", "ADMIN")
        assert result.invitation.email == "d@example.com"
        assert result.invitation.role == "ADMIN"
        assert result.invite_url.endswith(f"/org-invite/{result.invitation.token}")
        assert result.email.success is False  # no RESEND_API_KEY in tests

    def test_member_cannot_invite(self, db_session, make_user, make_org):
        a = make_user("a@example.com")
        c = make_user("c@example.com")
        make_org(a, members=[(c, "MEMBER")])
        with pytest.raises(Forbidden):
            lifecycle.invite_member(db_session, c.id, "d@example.com", "MEMBER")

    def test_duplicate_pending_invitation_conflicts(self, db_session, make_user, make_org):
        a = make_user("a@example.com")
        make_org(a)
        lifecycle.invite_member(db_session, a.id, "d@example.com")
        with pytest.raises(Conflict):
            lifecycle.invite_member(db_session, a.id, "d@example.com")

    def test_inviting_existing_member_conflicts(self, db_session, make_user, make_org):
        a = make_user("a@example.com")
        c = make_user("c@example.com")
        make_org(a, members=[(c, "MEMBER")])
        with pytest.raises(Conflict):
            lifecycle.invite_member(db_session, a.id, "c@example.com")

    def test_accept_is_single_use(self, db_session, make_user, make_org, make_project):
        a = make_user("a@example.com")
        org = make_org(a)
        d = make_user("d@example.com")
        d_project = make_project(d, "D's project")
        token = lifecycle.invite_member(db_session, a.id, "d@example.com", "ADMIN").invitation.token

        joined = lifecycle.accept_invitation(db_session, d.id, token)

        db_session.refresh(d)
        db_session.refresh(d_project)
        assert joined.id == org.id
        assert d.organization_id == org.id
        assert d.org_role == "ADMIN"
        assert d_project.organization_id == org.id

        e = make_user("e@example.com")
        with pytest.raises(Conflict):
            lifecycle.accept_invitation(db_session, e.id, token)

    def test_accept_after_deadline_marks_expired(self, db_session, make_user, make_org):
        a = make_user("a@example.com")
        make_org(a)
        d = make_user("d@example.com")
        invitation = lifecycle.invite_member(db_session, a.id, "d@example.com").invitation
        invitation.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        with pytest.raises(Expired):
            lifecycle.accept_invitation(db_session, d.id, invitation.token)

        db_session.refresh(invitation)
        db_session.refresh(d)
        assert invitation.status == "EXPIRED"
        assert d.organization_id is None

    def test_accept_while_in_another_org_conflicts(self, db_session, make_user, make_org):
        a = make_user("a@example.com")
        make_org(a, name="Acme")
        z = make_user("z@example.com")
        make_org(z, name="Zeta")
        token = lifecycle.invite_member(db_session, a.id, "z@example.com").invitation.token
        with pytest.raises(Conflict):
            lifecycle.accept_invitation(db_session, z.id, token)

    def test_unknown_token_not_found(self, db_session, make_user):
        u = make_user("u@example.com")
        with pytest.raises(NotFound):
            lifecycle.accept_invitation(db_session, u.id, "0" * 64)

    def test_cancel_invitation_from_other_org_not_found(self, db_session, make_user, make_org):
        a = make_user("a@example.com")
        make_org(a, name="Acme")
        z = make_user("z@example.com")
        make_org(z, name="Zeta")
        invitation = lifecycle.invite_member(db_session, a.id, "d@example.com").invitation
        with pytest.raises(NotFound):
            lifecycle.cancel_invitation(db_session, z.id, invitation.id)
        lifecycle.cancel_invitation(db_session, a.id, invitation.id)
        assert db_session.get(OrgInvitation, invitation.id) is None


class TestMembership:
    def test_admin_cannot_demote_other_admin(self, db_session, make_user, make_org):
        a = make_user("a@example.com")
        b = make_user("b@example.com")
        b2 = make_user("b2@example.com")
        make_org(a, members=[(b, "ADMIN"), (b2, "ADMIN")])
        with pytest.raises(Forbidden):
            lifecycle.change_member_role(db_session, b.id, b2.id, "MEMBER")
        assert lifecycle.change_member_role(db_session, a.id, b2.id, "MEMBER").org_role == "MEMBER"

    def test_owner_role_never_transferred(self, db_session, make_user, make_org):
        a = make_user("a@example.com")
        b = make_user("b@example.com")
        org = make_org(a, members=[(b, "MEMBER")])
        with pytest.raises(Forbidden):
            lifecycle.change_member_role(db_session, a.id, b.id, "OWNER")
        with pytest.raises(Forbidden):
            lifecycle.change_member_role(db_session, a.id, a.id, "MEMBER")
        assert [u.id for u in _owners(db_session, org.id)] == [a.id]

    def test_role_change_on_outsider_not_found(self, db_session, make_user, make_org):
        a = make_user("a@example.com")
        make_org(a)
        outsider = make_user("x@example.com")
        with pytest.raises(NotFound):
            lifecycle.change_member_role(db_session, a.id, outsider.id, "ADMIN")

    def test_member_leaves_owner_cannot(self, db_session, make_user, make_org):
        a = make_user("a@example.com")
        c = make_user("c@example.com")
        make_org(a, members=[(c, "MEMBER")])

        lifecycle.remove_member(db_session, c.id, c.id)
        db_session.refresh(c)
        assert c.organization_id is None
        assert c.org_role == "MEMBER"

        with pytest.raises(Forbidden):
            lifecycle.remove_member(db_session, a.id, a.id)

    def test_admin_removes_member_not_admin(self, db_session, make_user, make_org):
        a = make_user("a@example.com")
        b = make_user("b@example.com")
        b2 = make_user("b2@example.com")
        c = make_user("c@example.com")
        make_org(a, members=[(b, "ADMIN"), (b2, "ADMIN"), (c, "MEMBER")])
        with pytest.raises(Forbidden):
            lifecycle.remove_member(db_session, b.id, b2.id)
        lifecycle.remove_member(db_session, b.id, c.id)
        db_session.refresh(c)
        assert c.organization_id is None

    def test_members_sorted_by_role(self, db_session, make_user, make_org):
        a = make_user("a@example.com", "Zed")
        b = make_user("b@example.com", "Bea")
        c = make_user("c@example.com", "Al")
        make_org(a, members=[(c, "MEMBER"), (b, "ADMIN")])
        assert [u.id for u in lifecycle.list_members(db_session, c.id)] == [a.id, b.id, c.id]


class TestDeleteOrganization:
    def test_owner_only(self, db_session, make_user, make_org):
        a = make_user("a@example.com")
        b = make_user("b@example.com")
        make_org(a, members=[(b, "ADMIN")])
        with pytest.raises(Forbidden):
            lifecycle.delete_organization(db_session, b.id)

    def test_resets_members_and_detaches_projects(self, db_session, make_user, make_org, make_project):
        a = make_user("a@example.com")
        b = make_user("b@example.com")
        org = make_org(a, members=[(b, "ADMIN")])
        project = make_project(a)
        lifecycle.invite_member(db_session, a.id, "d@example.com")

        lifecycle.delete_organization(db_session, a.id)

        for user in (a, b):
            db_session.refresh(user)
            assert user.organization_id is None
            assert user.org_role == "MEMBER"
        assert db_session.get(Project, project.id).organization_id is None
        assert db_session.query(OrgInvitation).filter(OrgInvitation.organization_id == org.id).count() == 0
