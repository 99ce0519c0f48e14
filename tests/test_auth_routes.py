from unittest.mock import patch

from fastapi.testclient import TestClient

from lms_backend.main import app
from lms_backend.models.role import RoleName
from lms_backend.models.user import UserStatus


def _signup(client, email="alice@example.com", password="secret1", name="Alice"):
    return client.post("/api/auth/signup", json={"name": name, "email": email, "password": password})


class TestSignup:
    def test_signup_then_login(self, client, codec):
        response = _signup(client)
        assert response.status_code == 201
        data = response.json()
        assert data["user"]["role"] == "student"
        assert data["user"]["email"] == "alice@example.com"
        assert data["user"]["status"] == "active"
        assert codec.verify_access(data["accessToken"]).role_name is RoleName.student
        assert codec.verify_refresh(data["refreshToken"]) is not None

        login = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "secret1"})
        assert login.status_code == 200
        assert login.json()["user"]["id"] == data["user"]["id"]
        assert login.json()["user"]["role"] == "student"

    def test_email_is_case_insensitive(self, client):
        assert _signup(client, email="Alice@Example.COM").status_code == 201
        login = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "secret1"})
        assert login.status_code == 200
        assert _signup(client, email="ALICE@example.com").status_code == 409

    def test_duplicate_email(self, client):
        _signup(client)
        response = _signup(client)
        assert response.status_code == 409
        assert response.json()["error"] == "Email already registered"

    def test_concurrent_duplicate_hits_unique_index(self, client):
        assert _signup(client).status_code == 201
        # The lookup misses, as it would for a signup racing the first one
        with patch(
            "lms_backend.services.auth_service.AuthService.get_user_by_email", return_value=None,
        ):
            response = _signup(client)
        assert response.status_code == 409
        assert response.json()["error"] == "Email already registered"

    def test_invalid_input(self, client):
        response = _signup(client, email="not-an-email", password="123")
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Invalid input"
        fields = {err["loc"][-1] for err in body["details"]}
        assert {"email", "password"} <= fields


class TestLogin:
    def test_wrong_password_and_unknown_email_look_alike(self, client, make_user):
        make_user(RoleName.tutor, email="tutor@example.com")
        wrong = client.post("/api/auth/login", json={"email": "tutor@example.com", "password": "nope"})
        unknown = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "nope"})

        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()
        assert wrong.json()["error"] == "Invalid credentials"

    def test_inactive_account_with_right_password(self, client, make_user):
        make_user(RoleName.tutor, email="idle@example.com", status=UserStatus.inactive)
        response = client.post("/api/auth/login", json={"email": "idle@example.com", "password": "password123"})
        assert response.status_code == 403
        assert response.json()["error"] == "Account inactive"

    def test_inactive_account_with_wrong_password(self, client, make_user):
        make_user(RoleName.tutor, email="idle@example.com", status=UserStatus.inactive)
        response = client.post("/api/auth/login", json={"email": "idle@example.com", "password": "wrong"})
        assert response.status_code == 401

    def test_login_returns_role_claims(self, client, make_user, codec):
        admin = make_user(RoleName.admin, email="boss@example.com")
        response = client.post("/api/auth/login", json={"email": "boss@example.com", "password": "password123"})
        claims = codec.verify_access(response.json()["accessToken"])
        assert claims.user_id == admin.id
        assert claims.role_name is RoleName.admin


class TestRefresh:
    def test_refresh_issues_new_pair(self, client, codec):
        tokens = _signup(client).json()
        response = client.post("/api/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
        assert response.status_code == 200
        data = response.json()
        assert codec.verify_access(data["accessToken"]) is not None
        assert codec.verify_refresh(data["refreshToken"]) is not None

    def test_missing_refresh_token(self, client):
        response = client.post("/api/auth/refresh", json={})
        assert response.status_code == 400
        assert response.json()["error"] == "Missing refresh token"

    def test_access_token_is_not_accepted(self, client):
        tokens = _signup(client).json()
        response = client.post("/api/auth/refresh", json={"refreshToken": tokens["accessToken"]})
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid token"

    def test_inactive_user_cannot_refresh(self, client, make_user, codec):
        user = make_user(RoleName.student, status=UserStatus.inactive)
        pair = codec.issue(user, user.role)
        response = client.post("/api/auth/refresh", json={"refreshToken": pair.refresh_token})
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid user"


class TestLogoutAndProfile:
    def test_logout_requires_token(self, client):
        response = client.post("/api/auth/logout")
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_logout(self, client, make_user, auth_headers):
        user = make_user(RoleName.student)
        response = client.post("/api/auth/logout", headers=auth_headers(user))
        assert response.status_code == 200

    def test_profile(self, client, make_user, auth_headers):
        user = make_user(RoleName.tutor, email="me@example.com", name="Me")
        response = client.get("/api/users/profile", headers=auth_headers(user))
        assert response.status_code == 200
        assert response.json()["email"] == "me@example.com"
        assert response.json()["role"] == "tutor"

    def test_profile_without_token(self, client):
        response = client.get("/api/users/profile")
        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"

    def test_profile_of_deleted_user(self, client, make_user, auth_headers, db):
        user = make_user(RoleName.student)
        headers = auth_headers(user)
        db.delete(user)
        db.commit()

        response = client.get("/api/users/profile", headers=headers)
        assert response.status_code == 404


class TestApp:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert response.headers["x-request-id"]

    def test_request_id_is_echoed(self, client):
        response = client.get("/api/health", headers={"X-Request-Id": "abc-123"})
        assert response.headers["x-request-id"] == "abc-123"

    def test_unsafe_request_id_is_replaced(self, client):
        response = client.get("/api/health", headers={"X-Request-Id": "x" * 100})
        request_id = response.headers["x-request-id"]
        assert request_id != "x" * 100
        assert len(request_id) == 32

    def test_unknown_route_uses_error_body(self, client):
        response = client.get("/api/nope")
        assert response.status_code == 404
        assert response.json()["error"] == "Not Found"

    def test_unexpected_error_uses_error_body(self, client, make_user, auth_headers):
        headers = auth_headers(make_user(RoleName.student))
        quiet = TestClient(app, raise_server_exceptions=False)
        with patch(
            "lms_backend.api.users.user_service.get_user", side_effect=RuntimeError("database is down"),
        ):
            response = quiet.get("/api/users/profile", headers=headers)
        assert response.status_code == 500
        assert response.headers["content-type"].startswith("application/json")
        assert response.json() == {
            "error": "Internal server error",
            "message": "An unexpected error occurred",
        }

    def test_anonymous_root(self, client):
        assert client.get("/").json()["authenticated"] is False

    def test_root_recognises_token(self, client, make_user, auth_headers):
        user = make_user(RoleName.tutor)
        body = client.get("/", headers=auth_headers(user)).json()
        assert body["authenticated"] is True
        assert body["userId"] == user.id
