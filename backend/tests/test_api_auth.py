"""Tests for API authentication."""

from datetime import datetime, timedelta, timezone

from jose import jwt

from app.auth import AUTH_COOKIE_NAME, create_access_token, decode_token
from app.config import get_settings


class TestAuthentication:
    """Tests for bearer token and cookie authentication."""

    def test_missing_token(self, client):
        response = client.get("/api/jobs/applied", params={"offset": 0, "limit": 5})

        assert response.status_code == 401
        body = response.json()
        assert body["error"] is True
        assert "Not authenticated" in body["message"]

    def test_garbage_token(self, client):
        response = client.get(
            "/api/jobs/applied",
            params={"offset": 0, "limit": 5},
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid or expired token"

    def test_expired_token(self, client):
        token = create_access_token("usr_TEST_ONLY_000000", get_settings(), timedelta(minutes=-5))
        response = client.get(
            "/api/jobs/applied",
            params={"offset": 0, "limit": 5},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 401

    def test_token_signed_with_other_secret(self, client):
        settings = get_settings()
        token = jwt.encode(
            {"sub": "usr_TEST_ONLY_000000", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            "some-other-secret",
            algorithm=settings.jwt_algorithm,
        )
        response = client.get(
            "/api/jobs/applied",
            params={"offset": 0, "limit": 5},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 401

    def test_non_access_token_rejected(self, client):
        settings = get_settings()
        token = jwt.encode(
            {
                "sub": "usr_TEST_ONLY_000000",
                "type": "refresh",
                "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
            },
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )
        response = client.get(
            "/api/jobs/applied",
            params={"offset": 0, "limit": 5},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid token payload"

    def test_cookie_auth(self, client, driver_id):
        token = create_access_token(driver_id, get_settings())
        client.cookies.set(AUTH_COOKIE_NAME, token)

        response = client.get("/api/jobs/applied", params={"offset": 0, "limit": 5})

        assert response.status_code == 200
        assert response.json()["jobs"] == []

    def test_caller_identity_comes_from_token(self, client, owner_headers, driver_headers, driver_id, create_job):
        job_id = create_job()

        response = client.patch(f"/api/jobs/{job_id}/apply", headers=driver_headers)

        assert response.json()["userId"] == driver_id


class TestTokens:
    def test_round_trip(self):
        settings = get_settings()
        payload = decode_token(create_access_token("usr_TEST_ONLY_000000", settings), settings)

        assert payload["sub"] == "usr_TEST_ONLY_000000"
        assert payload["type"] == "access"
        assert payload["exp"] > payload["iat"]
