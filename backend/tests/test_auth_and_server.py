"""
Login, token guard, and app-level behaviour: /health, /me, the /api prefix,
CORS origin blocking and the dev-only test user route.
"""
from datetime import timedelta

from auth import create_access_token, decode_access_token
from models import UserRole


class TestLogin:

    def test_login_returns_token_with_user_claims(self, client, user_factory, fake_db):
        user, _ = user_factory(UserRole.CREATOR, email="anna@example.com", password="pw-123456")
        response = client.post("/auth/login", json={"email": " Anna@Example.com ", "password": "pw-123456"})
        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["role"] == "creator"
        claims = decode_access_token(body["token"])
        assert claims["userId"] == user["user_id"]
        assert claims["email"] == "anna@example.com"
        assert claims["role"] == "creator"
        assert "USER_LOGIN_SUCCESS" in [d["action"] for d in fake_db.audit_logs.docs]

    def test_wrong_password(self, client, user_factory, fake_db):
        user_factory(email="anna@example.com", password="pw-123456")
        response = client.post("/auth/login", json={"email": "anna@example.com", "password": "nope"})
        assert response.status_code == 401
        assert response.json() == {"ok": False, "error": "Invalid credentials"}
        assert "USER_LOGIN_FAILED" in [d["action"] for d in fake_db.audit_logs.docs]

    def test_unknown_email(self, client):
        response = client.post("/auth/login", json={"email": "ghost@example.com", "password": "x"})
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid credentials"

    def test_missing_credentials(self, client):
        response = client.post("/auth/login", json={"email": "anna@example.com"})
        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": "Missing credentials"}

    def test_placeholder_hash_never_verifies(self, client, fake_db):
        created = client.post("/test/create-user").json()["user"]
        response = client.post("/auth/login", json={"email": created["email"], "password": "not-real-hash"})
        assert response.status_code == 401


class TestTokenGuard:

    def test_me_returns_token_payload(self, client, user_factory):
        user, headers = user_factory()
        response = client.get("/me", headers=headers)
        assert response.status_code == 200
        assert response.json()["user"]["userId"] == user["user_id"]

    def test_expired_token_is_401(self, client):
        token = create_access_token({"userId": "u1", "role": "user", "email": "a@b.se"},
                                    expires_delta=timedelta(seconds=-1))
        response = client.get("/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid token"

    def test_non_bearer_scheme_is_missing_token(self, client):
        response = client.get("/me", headers={"Authorization": "Basic abc"})
        assert response.status_code == 401
        assert response.json()["error"] == "Missing token"


class TestApp:

    def test_health(self, client):
        assert client.get("/health").json() == {"ok": True, "app": "Valoris API"}

    def test_api_prefix(self, client):
        assert client.get("/api/health").json() == {"ok": True, "app": "Valoris API"}

    def test_unknown_route_uses_error_envelope(self, client):
        response = client.get("/nope")
        assert response.status_code == 404
        assert response.json()["ok"] is False

    def test_disallowed_origin_is_blocked(self, client):
        response = client.get("/health", headers={"Origin": "https://evil.example.com"})
        assert response.status_code == 403
        assert response.json() == {"ok": False, "error": "CORS blocked for origin: https://evil.example.com"}

    def test_local_and_vercel_origins_are_allowed(self, client):
        for origin in ("http://localhost:5173", "https://valoris-git-main.vercel.app"):
            response = client.get("/health", headers={"Origin": origin})
            assert response.status_code == 200
            assert response.headers["access-control-allow-origin"] == origin

    def test_create_test_user(self, client, fake_db):
        response = client.post("/test/create-user")
        assert response.status_code == 200
        user = response.json()["user"]
        assert user["role"] == "user"
        assert "passwordHash" not in user
        assert fake_db.users.docs[0]["user_id"] == user["userId"]
