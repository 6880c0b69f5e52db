"""
tests/test_admin_auth.py -- Integration tests for the admin login flow.

These tests exercise the full stack: FastAPI routing -> rate limiter ->
authenticate_admin() -> TokenService -> require_admin dependency ->
AdminStore -> response model serialization.

Coverage:
  - Login happy path: token, expires_at ~ now + configured expiry, no-store
  - Login failures: wrong password, unknown email and inactive admin are
    byte-for-byte indistinguishable
  - Protected route: missing / malformed / foreign / expired / wrong-scheme
    tokens all get the same generic 401
  - Rate limiting on login (429 + Retry-After)
  - Store outage -> 503 store_unavailable, not 401, and recovery without restart
  - Health endpoint is public

Fixtures used (from conftest.py):
  - api_client: (client, token, admin_id) -- admin "admin" / "correct-horse"
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from auth.errors import StoreUnavailable
from auth.models import AdminCredential
from api.main import create_app
from auth.tokens import TokenService
from conftest import ADMIN_IDENTIFIER, ADMIN_PASSWORD, TEST_SECRET_KEY, make_settings

ApiClient = tuple[TestClient, str, int]


def _login(client: TestClient, email: str, password: str):
    return client.post("/api/admin/login", json={"email": email, "password": password})


@pytest.fixture
def store_outage(api_client: ApiClient):
    """Swap the app's store for one that always fails, then restore it."""
    client, _token, _uid = api_client
    real_store = client.app.state.admin_store
    broken = MagicMock()
    broken.find_by_identifier.side_effect = StoreUnavailable("db down")
    broken.get_by_id.side_effect = StoreUnavailable("db down")
    client.app.state.admin_store = broken
    yield client
    client.app.state.admin_store = real_store


class TestLogin:
    def test_valid_credentials(self, api_client: ApiClient) -> None:
        """admin / correct-horse gets a bearer token expiring ~ now + configured expiry."""
        client, _token, uid = api_client
        before = datetime.now(timezone.utc)
        resp = _login(client, ADMIN_IDENTIFIER, ADMIN_PASSWORD)
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["token"]
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == 3600
        assert data["admin"] == {"id": uid, "email": "admin", "name": "Admin User", "role": "SUPER_ADMIN"}

        expires_at = datetime.fromisoformat(data["expires_at"].replace("Z", "+00:00"))
        expected = before + timedelta(seconds=3600)
        assert abs((expires_at - expected).total_seconds()) < 5

    def test_login_token_opens_protected_route(self, api_client: ApiClient) -> None:
        client, _token, uid = api_client
        token = _login(client, ADMIN_IDENTIFIER, ADMIN_PASSWORD).json()["token"]
        resp = client.get("/api/admin/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200, resp.text
        assert resp.json()["admin"]["id"] == uid
        assert resp.json()["admin"]["email"] == "admin"

    def test_login_response_not_cached(self, api_client: ApiClient) -> None:
        client, _token, _uid = api_client
        ok = _login(client, ADMIN_IDENTIFIER, ADMIN_PASSWORD)
        bad = _login(client, ADMIN_IDENTIFIER, "wrong")
        assert ok.headers["cache-control"] == "no-store"
        assert bad.headers["cache-control"] == "no-store"

    def test_login_records_last_login(self, api_client: ApiClient) -> None:
        client, _token, uid = api_client
        _login(client, ADMIN_IDENTIFIER, ADMIN_PASSWORD)
        assert client.app.state.admin_store.get_by_id(uid).last_login

    def test_password_never_in_response(self, api_client: ApiClient) -> None:
        client, _token, _uid = api_client
        resp = _login(client, ADMIN_IDENTIFIER, ADMIN_PASSWORD)
        assert ADMIN_PASSWORD not in resp.text
        assert "$2b$" not in resp.text


class TestLoginFailuresIndistinguishable:
    """Wrong password, unknown identifier and inactive account look identical."""

    @pytest.fixture(scope="class")
    def inactive_admin(self, api_client: ApiClient) -> int:
        client, _token, _uid = api_client
        app = client.app
        return app.state.admin_store.create_admin(
            AdminCredential(
                identifier="retired@carz.com",
                secret_hash=app.state.hasher.hash(ADMIN_PASSWORD),
                name="Retired",
                is_active=False,
            )
        )

    def test_wrong_password(self, api_client: ApiClient) -> None:
        client, _token, _uid = api_client
        resp = _login(client, ADMIN_IDENTIFIER, "wrong")
        assert resp.status_code == 401
        assert resp.json() == {"error": {"code": "unauthorized", "message": "Invalid credentials."}}

    def test_unknown_vs_wrong_password_identical(self, api_client: ApiClient) -> None:
        client, _token, _uid = api_client
        wrong = _login(client, ADMIN_IDENTIFIER, "wrong")
        unknown = _login(client, "nobody", "anything")
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.content == unknown.content

    def test_inactive_admin_identical(self, api_client: ApiClient, inactive_admin: int) -> None:
        client, _token, _uid = api_client
        wrong = _login(client, ADMIN_IDENTIFIER, "wrong")
        inactive = _login(client, "retired@carz.com", ADMIN_PASSWORD)
        assert inactive.status_code == 401
        assert inactive.content == wrong.content

    def test_validation_error_does_not_echo_password(self, api_client: ApiClient) -> None:
        client, _token, _uid = api_client
        secret = "x" * 80  # over the 72-character cap
        resp = _login(client, ADMIN_IDENTIFIER, secret)
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"
        assert secret not in resp.text


class TestProtectedRoute:
    GENERIC_401 = {"error": {"code": "unauthorized", "message": "Authentication required."}}

    def test_fixture_token_accepted(self, api_client: ApiClient) -> None:
        client, token, _uid = api_client
        resp = client.get("/api/admin/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.json()["admin"]["role"] == "SUPER_ADMIN"

    def test_bearer_scheme_case_insensitive(self, api_client: ApiClient) -> None:
        client, token, _uid = api_client
        resp = client.get("/api/admin/me", headers={"Authorization": f"bearer {token}"})
        assert resp.status_code == 200

    def test_missing_header(self, api_client: ApiClient) -> None:
        client, _token, _uid = api_client
        resp = client.get("/api/admin/me")
        assert resp.status_code == 401
        assert resp.json() == self.GENERIC_401
        assert resp.headers["www-authenticate"] == "Bearer"

    @pytest.mark.parametrize(
        "header",
        [
            "Bearer",
            "Bearer not-a-token",
            "Basic YWRtaW46Y29ycmVjdC1ob3JzZQ==",
            "Token abc.def.ghi",
        ],
    )
    def test_bad_headers_get_generic_401(self, api_client: ApiClient, header: str) -> None:
        client, _token, _uid = api_client
        resp = client.get("/api/admin/me", headers={"Authorization": header})
        assert resp.status_code == 401
        assert resp.json() == self.GENERIC_401

    def test_expired_token(self, api_client: ApiClient) -> None:
        client, _token, uid = api_client
        yesterday = datetime.now(timezone.utc) - timedelta(days=2)
        old = TokenService(TEST_SECRET_KEY, expire_seconds=86400, clock=lambda: yesterday)
        resp = client.get("/api/admin/me", headers={"Authorization": f"Bearer {old.issue(str(uid)).token}"})
        assert resp.status_code == 401
        assert resp.json() == self.GENERIC_401

    def test_foreign_key_token(self, api_client: ApiClient) -> None:
        client, _token, uid = api_client
        forged = TokenService("attacker-controlled-signing-key-0123456789").issue(str(uid)).token
        resp = client.get("/api/admin/me", headers={"Authorization": f"Bearer {forged}"})
        assert resp.status_code == 401
        assert resp.json() == self.GENERIC_401

    def test_token_for_unknown_admin(self, api_client: ApiClient) -> None:
        """Validly signed, but the subject was deprovisioned."""
        client, _token, _uid = api_client
        token = client.app.state.tokens.issue("99999").token
        resp = client.get("/api/admin/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_token_for_inactive_admin(self, api_client: ApiClient) -> None:
        client, _token, _uid = api_client
        app = client.app
        inactive_id = app.state.admin_store.create_admin(
            AdminCredential(identifier="suspended@carz.com", secret_hash="x", name="Suspended", is_active=False)
        )
        token = app.state.tokens.issue(str(inactive_id)).token
        resp = client.get("/api/admin/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json() == self.GENERIC_401


class TestRateLimit:
    def test_login_rate_limited_per_ip(self, api_client: ApiClient) -> None:
        """Five attempts per window; the sixth is refused before credentials are checked."""
        client, _token, _uid = api_client
        for _ in range(5):
            assert _login(client, ADMIN_IDENTIFIER, "wrong").status_code == 401
        resp = _login(client, ADMIN_IDENTIFIER, ADMIN_PASSWORD)
        assert resp.status_code == 429
        assert resp.json()["error"]["code"] == "rate_limited"
        assert "retry-after" in resp.headers

    def test_protected_routes_not_login_limited(self, api_client: ApiClient) -> None:
        client, token, _uid = api_client
        headers = {"Authorization": f"Bearer {token}"}
        for _ in range(10):
            assert client.get("/api/admin/me", headers=headers).status_code == 200


class TestStoreOutage:
    """A failing store is a 503, never a credential failure."""

    def test_login_during_outage(self, store_outage: TestClient) -> None:
        resp = _login(store_outage, ADMIN_IDENTIFIER, ADMIN_PASSWORD)
        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "store_unavailable"
        assert "retry-after" in resp.headers

    def test_protected_route_during_outage(self, api_client: ApiClient, store_outage: TestClient) -> None:
        _client, token, _uid = api_client
        resp = store_outage.get("/api/admin/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "store_unavailable"

    def test_database_down_at_startup_recovers(self, tmp_path) -> None:
        """503 while the database is unreachable, normal service once it is back."""
        db_dir = tmp_path / "late"
        app = create_app(make_settings(database_url=f"sqlite:///{db_dir / 'admins.db'}"))

        with TestClient(app) as client:
            down = _login(client, ADMIN_IDENTIFIER, ADMIN_PASSWORD)
            assert down.status_code == 503
            assert down.json()["error"]["code"] == "store_unavailable"

            db_dir.mkdir()
            app.state.admin_store.create_admin(
                AdminCredential(
                    identifier=ADMIN_IDENTIFIER,
                    secret_hash=app.state.hasher.hash(ADMIN_PASSWORD),
                    name="Admin User",
                )
            )
            up = _login(client, ADMIN_IDENTIFIER, ADMIN_PASSWORD)
            assert up.status_code == 200, up.text
            me = client.get("/api/admin/me", headers={"Authorization": f"Bearer {up.json()['token']}"})
            assert me.status_code == 200


class TestHealth:
    def test_health_public(self, api_client: ApiClient) -> None:
        client, _token, _uid = api_client
        resp = client.get("/api/health", headers={})
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert "version" in data
