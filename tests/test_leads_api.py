"""Tests for branch-scoped lead endpoints."""
import pytest

from crm_api.models.lead import Lead

CRUD = [{"module": "leads", "access_level": "CRUD"}]


@pytest.fixture
def director(make_user):
    return make_user(role="Branch Director", branch="NYC", grants=CRUD)


@pytest.fixture
def super_admin(make_user):
    return make_user(role="Super Admin")


def _names(response):
    return sorted(lead["first_name"] for lead in response.json()["leads"])


class TestListLeads:

    def test_non_top_user_sees_own_branch(self, client, leads, director, auth_headers):
        response = client.get("/api/leads/", headers=auth_headers(director))
        assert response.status_code == 200
        assert _names(response) == ["Ana", "Ben"]
        assert response.json()["total"] == 2

    def test_own_branch_override_allowed(self, client, leads, director, auth_headers):
        response = client.get("/api/leads/", params={"branch": "NYC"}, headers=auth_headers(director))
        assert _names(response) == ["Ana", "Ben"]

    def test_other_branch_override_forbidden(self, client, leads, director, auth_headers):
        response = client.get("/api/leads/", params={"branch": "LA"}, headers=auth_headers(director))
        assert response.status_code == 403
        assert response.json() == {"error": "Cannot access data from other branches"}

    def test_top_rank_sees_everything(self, client, leads, super_admin, auth_headers):
        response = client.get("/api/leads/", headers=auth_headers(super_admin))
        assert _names(response) == ["Ana", "Ben", "Cal"]

    def test_top_rank_branch_override(self, client, leads, super_admin, auth_headers):
        response = client.get("/api/leads/", params={"branch": "LA"}, headers=auth_headers(super_admin))
        assert _names(response) == ["Cal"]

    def test_empty_override_means_none(self, client, leads, super_admin, auth_headers):
        response = client.get("/api/leads/", params={"branch": ""}, headers=auth_headers(super_admin))
        assert _names(response) == ["Ana", "Ben", "Cal"]

    def test_no_branch_assigned(self, client, leads, make_user, auth_headers):
        user = make_user(role="Manager", grants=CRUD)
        response = client.get("/api/leads/", headers=auth_headers(user))
        assert response.status_code == 403
        assert response.json() == {"error": "No branch assigned"}

    def test_without_module(self, client, leads, make_user, auth_headers):
        user = make_user(role="Admin", branch="NYC")
        response = client.get("/api/leads/", headers=auth_headers(user))
        assert response.status_code == 403
        assert response.json() == {"error": "No access to leads module"}

    def test_search(self, client, leads, director, auth_headers):
        response = client.get("/api/leads/", params={"search": "ben"}, headers=auth_headers(director))
        assert _names(response) == ["Ben"]

    def test_requires_authentication(self, client, leads):
        assert client.get("/api/leads/").status_code == 401


class TestGetLead:

    def test_in_scope(self, client, leads, director, auth_headers):
        response = client.get(f"/api/leads/{leads[0].id}", headers=auth_headers(director))
        assert response.status_code == 200
        assert response.json()["first_name"] == "Ana"

    def test_out_of_scope_is_not_found(self, client, leads, director, auth_headers):
        response = client.get(f"/api/leads/{leads[2].id}", headers=auth_headers(director))
        assert response.status_code == 404


class TestCreateLead:

    def test_created_in_own_branch(self, client, db, director, auth_headers):
        response = client.post("/api/leads/", json={"first_name": "Dee", "email": "DEE@example.com"},
                               headers=auth_headers(director))
        assert response.status_code == 201
        data = response.json()
        assert data["branch"] == "NYC"
        assert data["email"] == "dee@example.com"
        assert data["created_by_email"] == director.email

    def test_other_branch_forbidden(self, client, db, director, auth_headers):
        response = client.post("/api/leads/", json={"first_name": "Dee", "email": "dee@example.com", "branch": "LA"},
                               headers=auth_headers(director))
        assert response.status_code == 403
        assert db.query(Lead).count() == 0

    def test_top_rank_picks_branch(self, client, super_admin, auth_headers):
        response = client.post("/api/leads/", json={"first_name": "Dee", "email": "dee@example.com", "branch": "LA"},
                               headers=auth_headers(super_admin))
        assert response.status_code == 201
        assert response.json()["branch"] == "LA"

    def test_legacy_module_is_read_only(self, client, leads, make_user, auth_headers):
        user = make_user(role="Staff", branch="NYC", modules=["leads"])
        headers = auth_headers(user)

        assert client.get("/api/leads/", headers=headers).status_code == 200
        response = client.post("/api/leads/", json={"first_name": "Dee", "email": "dee@example.com"}, headers=headers)
        assert response.status_code == 403
        assert response.json() == {"error": "Cannot add in leads module"}


class TestUpdateAndDelete:

    def test_update_in_scope(self, client, db, leads, director, auth_headers):
        leads[0].assigned_to_email = director.email
        db.commit()
        response = client.put(f"/api/leads/{leads[0].id}", json={"status": "contacted"},
                              headers=auth_headers(director))
        assert response.status_code == 200
        assert response.json()["status"] == "contacted"

    def test_update_other_branch_is_not_found(self, client, db, leads, director, auth_headers):
        response = client.put(f"/api/leads/{leads[2].id}", json={"status": "lost"},
                              headers=auth_headers(director))
        assert response.status_code == 404
        db.refresh(leads[2])
        assert leads[2].status == "new"

    def test_delete_other_branch_is_not_found(self, client, db, leads, director, auth_headers):
        response = client.delete(f"/api/leads/{leads[2].id}", headers=auth_headers(director))
        assert response.status_code == 404
        assert db.query(Lead).filter(Lead.id == leads[2].id).count() == 1

    def test_delete_in_scope(self, client, db, leads, director, auth_headers):
        leads[0].created_by_email = director.email
        db.commit()
        response = client.delete(f"/api/leads/{leads[0].id}", headers=auth_headers(director))
        assert response.status_code == 200
        assert db.query(Lead).count() == 2

    def test_explicit_flag_denies_edit(self, client, leads, make_user, auth_headers):
        user = make_user(role="Counsellor", branch="NYC", grants=[
            {"module": "leads", "access_level": "CRUD", "can_add": True, "can_edit": False, "can_delete": False},
        ])
        headers = auth_headers(user)
        response = client.put(f"/api/leads/{leads[0].id}", json={"status": "lost"}, headers=headers)
        assert response.status_code == 403
        assert response.json() == {"error": "Cannot edit in leads module"}
        assert client.delete(f"/api/leads/{leads[0].id}", headers=headers).status_code == 403

    def test_view_level_cannot_delete(self, client, leads, make_user, auth_headers):
        user = make_user(role="Manager", branch="NYC", grants=[{"module": "leads", "access_level": "View"}])
        response = client.delete(f"/api/leads/{leads[0].id}", headers=auth_headers(user))
        assert response.status_code == 403


class TestOwnership:

    def test_assignee_can_edit(self, client, db, leads, make_user, auth_headers):
        counsellor = make_user(role="Counsellor", branch="NYC", grants=CRUD)
        leads[0].assigned_to_email = counsellor.email.upper()
        db.commit()
        response = client.put(f"/api/leads/{leads[0].id}", json={"status": "contacted"},
                              headers=auth_headers(counsellor))
        assert response.status_code == 200

    def test_creator_can_delete(self, client, db, make_user, auth_headers):
        counsellor = make_user(role="Counsellor", branch="NYC", grants=CRUD)
        headers = auth_headers(counsellor)
        created = client.post("/api/leads/", json={"first_name": "Dee", "email": "dee@example.com"}, headers=headers)
        response = client.delete(f"/api/leads/{created.json()['id']}", headers=headers)
        assert response.status_code == 200
        assert db.query(Lead).count() == 0

    def test_non_owner_cannot_edit(self, client, db, leads, director, make_user, auth_headers):
        leads[0].assigned_to_email = "someone.else@example.com"
        leads[0].created_by_email = "another@example.com"
        db.commit()
        response = client.put(f"/api/leads/{leads[0].id}", json={"status": "lost"},
                              headers=auth_headers(director))
        assert response.status_code == 403
        assert response.json() == {"error": "Cannot modify this resource"}
        db.refresh(leads[0])
        assert leads[0].status == "new"

    def test_non_owner_cannot_delete(self, client, db, leads, director, auth_headers):
        response = client.delete(f"/api/leads/{leads[1].id}", headers=auth_headers(director))
        assert response.status_code == 403
        assert response.json() == {"error": "Cannot modify this resource"}
        assert db.query(Lead).count() == 3

    def test_admin_skips_ownership(self, client, db, leads, make_user, auth_headers):
        admin = make_user(role="Admin", branch="NYC", grants=CRUD)
        headers = auth_headers(admin)
        response = client.put(f"/api/leads/{leads[0].id}", json={"status": "qualified"}, headers=headers)
        assert response.status_code == 200
        assert client.delete(f"/api/leads/{leads[1].id}", headers=headers).status_code == 200
        assert db.query(Lead).count() == 2

    def test_top_rank_skips_ownership(self, client, leads, super_admin, auth_headers):
        response = client.put(f"/api/leads/{leads[2].id}", json={"status": "lost"},
                              headers=auth_headers(super_admin))
        assert response.status_code == 200

    def test_scope_checked_before_ownership(self, client, db, leads, director, auth_headers):
        leads[2].assigned_to_email = director.email
        db.commit()
        response = client.put(f"/api/leads/{leads[2].id}", json={"status": "lost"},
                              headers=auth_headers(director))
        assert response.status_code == 404
