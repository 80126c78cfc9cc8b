"""Tests for login, current user and admin-managed users."""
from conftest import make_headers, make_user


class TestLogin:
    def test_login_success(self, client, admin_user):
        response = client.post("/auth/login", json={"email": "admin@example.com", "password": "admin123"})
        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["access_token"]

    def test_login_wrong_password(self, client, admin_user):
        response = client.post("/auth/login", json={"email": "admin@example.com", "password": "nope"})
        assert response.status_code == 401

    def test_login_unknown_user(self, client, db_session):
        response = client.post("/auth/login", json={"email": "ghost@example.com", "password": "x"})
        assert response.status_code == 401

    def test_login_disabled_user(self, client, db_session, admin_user):
        admin_user.is_active = False
        db_session.commit()
        response = client.post("/auth/login", json={"email": "admin@example.com", "password": "admin123"})
        assert response.status_code == 403

    def test_token_from_login_works(self, client, admin_user):
        token = client.post(
            "/auth/login", json={"email": "admin@example.com", "password": "admin123"}
        ).json()["access_token"]
        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["email"] == "admin@example.com"


class TestCurrentUser:
    def test_me(self, client, risk_owner, owner_headers):
        response = client.get("/auth/me", headers=owner_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["role"] == "RISK_OWNER"
        assert data["role_display"] == "Risk Owner"
        assert data["unit"]["code"] == "OPS"

    def test_missing_token(self, client, db_session):
        assert client.get("/auth/me").status_code == 401

    def test_invalid_token(self, client, db_session):
        response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_inactive_user_token_rejected(self, client, db_session, risk_owner, owner_headers):
        risk_owner.is_active = False
        db_session.commit()
        assert client.get("/auth/me", headers=owner_headers).status_code == 401


class TestUserManagement:
    def test_admin_creates_user(self, client, admin_headers, org_units):
        response = client.post("/auth/users", headers=admin_headers, json={
            "email": "manager@example.com",
            "full_name": "Rina Manager",
            "password": "manager123",
            "role": "RISK_MANAGER",
            "unit_id": org_units["fin"].unit_id,
        })
        assert response.status_code == 201
        data = response.json()
        assert data["role"] == "RISK_MANAGER"
        assert "password_hash" not in data

    def test_duplicate_email(self, client, admin_headers, admin_user):
        response = client.post("/auth/users", headers=admin_headers, json={
            "email": "admin@example.com",
            "full_name": "Again",
            "password": "whatever1",
            "role": "AUDITOR",
        })
        assert response.status_code == 400

    def test_invalid_role(self, client, admin_headers):
        response = client.post("/auth/users", headers=admin_headers, json={
            "email": "x@example.com",
            "full_name": "X",
            "password": "whatever1",
            "role": "SUPERUSER",
        })
        assert response.status_code == 400
        assert response.json()["error"] == "Validation error"

    def test_non_admin_cannot_create(self, client, owner_headers):
        response = client.post("/auth/users", headers=owner_headers, json={
            "email": "x@example.com",
            "full_name": "X",
            "password": "whatever1",
            "role": "AUDITOR",
        })
        assert response.status_code == 403

    def test_list_users_filtered_by_role(self, client, admin_headers, risk_owner, auditor_user):
        response = client.get("/auth/users?role=AUDITOR", headers=admin_headers)
        assert response.status_code == 200
        assert [u["email"] for u in response.json()] == ["auditor@example.com"]

    def test_update_user_role(self, client, admin_headers, risk_owner):
        response = client.patch(
            f"/auth/users/{risk_owner.user_id}", headers=admin_headers, json={"role": "DIRECTOR"}
        )
        assert response.status_code == 200
        assert response.json()["role"] == "DIRECTOR"

    def test_deactivate_user(self, client, db_session, admin_headers, risk_owner):
        response = client.delete(f"/auth/users/{risk_owner.user_id}", headers=admin_headers)
        assert response.status_code == 204
        db_session.refresh(risk_owner)
        assert risk_owner.is_active is False

    def test_cannot_deactivate_self(self, client, admin_headers, admin_user):
        response = client.delete(f"/auth/users/{admin_user.user_id}", headers=admin_headers)
        assert response.status_code == 400

    def test_get_unknown_user(self, client, admin_headers):
        assert client.get("/auth/users/9999", headers=admin_headers).status_code == 404

    def test_director_can_read_users(self, client, db_session, org_units, admin_user):
        director = make_user(db_session, "director@example.com", "DIRECTOR", org_units["ops"].unit_id)
        response = client.get("/auth/users", headers=make_headers(director))
        assert response.status_code == 200
        assert len(response.json()) == 2

    def test_update_rejects_null_email(self, client, admin_headers, risk_owner):
        response = client.patch(f"/auth/users/{risk_owner.user_id}", headers=admin_headers, json={"email": None})
        assert response.status_code == 400

    def test_update_allows_clearing_unit(self, client, admin_headers, risk_owner):
        response = client.patch(f"/auth/users/{risk_owner.user_id}", headers=admin_headers, json={"unit_id": None})
        assert response.status_code == 200
        assert response.json()["unit_id"] is None


class TestUserStats:
    def test_counts_by_role(self, client, admin_headers, risk_owner, auditor_user):
        client.delete(f"/auth/users/{risk_owner.user_id}", headers=admin_headers)

        data = client.get("/auth/users/stats", headers=admin_headers).json()
        assert data["total_users"] == 3
        assert data["active_users"] == 2
        assert data["total_admins"] == 1
        assert data["total_regular_users"] == 2
        by_role = {row["role"]: row for row in data["users_by_role"]}
        assert by_role["RISK_OWNER"]["count"] == 1
        assert by_role["DIRECTOR"]["count"] == 0
        assert by_role["RISK_MANAGER"]["role_display"] == "Risk Manager"
        assert {u["email"] for u in data["recent_users"]} == {
            "admin@example.com", "owner@example.com", "auditor@example.com"
        }

    def test_admin_only(self, client, owner_headers):
        assert client.get("/auth/users/stats", headers=owner_headers).status_code == 403
