"""
Tests for accounts, JWT issuing and the per-request AuthSession.
"""

import pytest

from expense_pwa import auth
from expense_pwa.auth import AuthSession, safe_return_url, validate_credentials
from expense_pwa.errors import ValidationError
from expense_pwa.models import AuthUser

from .conftest import TEST_PASSWORD


class TestAuthSession:
    """Tests for the session lifecycle."""

    def test_lifecycle(self):
        """Test loading -> resolved -> torn down."""
        session = AuthSession()
        assert session.is_loading
        assert not session.is_authenticated
        assert session.level == "basic"

        user = AuthUser(7, "ana@example.com", "Ana", "premium")
        session.resolve(user)
        assert session.is_resolved
        assert session.is_authenticated
        assert session.level == "premium"

        session.teardown()
        assert session.is_loading
        assert session.user is None

    def test_resolved_without_user(self):
        """Test resolving to no user is not authenticated."""
        session = AuthSession().start().resolve(None)
        assert session.is_resolved
        assert not session.is_authenticated


class TestHelpers:
    """Tests for credential and redirect helpers."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("/history", "/history"),
            ("/settings/account?tab=1", "/settings/account?tab=1"),
            ("https://evil.example.com/", "/"),
            ("//evil.example.com", "/"),
            ("history", "/"),
            ("", "/"),
            (None, "/"),
        ],
    )
    def test_safe_return_url(self, value, expected):
        """Test only local paths are honoured."""
        assert safe_return_url(value) == expected

    def test_validate_credentials(self):
        """Test email normalization and registration rules."""
        email, errors = validate_credentials(" Ana@Example.com ", "short", "", is_register=True)
        assert email == "ana@example.com"
        assert set(errors) == {"password", "name"}

    def test_duplicate_email(self, app):
        """Test an email can only be registered once."""
        with app.app_context():
            auth.create_user("ana@example.com", TEST_PASSWORD, "Ana")
            with pytest.raises(ValidationError) as exc:
                auth.create_user("ANA@example.com", TEST_PASSWORD, "Ana")
        assert "email" in exc.value.errors

    def test_change_password(self, app):
        """Test the current password is checked."""
        with app.app_context():
            user = auth.create_user("ana@example.com", TEST_PASSWORD, "Ana")
            with pytest.raises(ValidationError):
                auth.change_password(user.id, "wrong-pass", "new-password")
            auth.change_password(user.id, TEST_PASSWORD, "new-password")
            assert auth.authenticate("ana@example.com", "new-password").id == user.id
            assert auth.authenticate("ana@example.com", TEST_PASSWORD) is None


class TestAuthPages:
    """Tests for the login/register flow."""

    def test_register_redirects_to_return_url(self, client, register):
        """Test registering signs in and follows returnUrl."""
        resp = register(return_url="/settings/account")
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/settings/account")

        page = client.get("/settings/account")
        assert page.status_code == 200
        assert b"ana@example.com" in page.data

    def test_login_page_keeps_return_url(self, client):
        """Test the login form carries the return target."""
        resp = client.get("/auth/login?returnUrl=%2Fhistory")
        assert resp.status_code == 200
        assert b'name="returnUrl" value="/history"' in resp.data

    def test_wrong_password(self, client, register):
        """Test a failed login returns 401 and no cookie."""
        register()
        client.post("/auth/logout")
        resp = client.post("/auth/login", data={"email": "ana@example.com", "password": "wrong-pass"})
        assert resp.status_code == 401
        assert b"Incorrect email or password" in resp.data

    def test_login_ignores_external_return_url(self, client, register):
        """Test an absolute returnUrl falls back to home."""
        register()
        client.post("/auth/logout")
        resp = client.post(
            "/auth/login",
            data={"email": "ana@example.com", "password": TEST_PASSWORD,
                  "returnUrl": "https://evil.example.com/"},
        )
        assert resp.status_code == 302
        assert resp.headers["Location"] in ("/", "http://localhost/")

    def test_logout(self, client, register):
        """Test logging out drops the session."""
        register()
        client.post("/auth/logout")
        resp = client.get("/test-auth")
        assert b'<dd id="auth-user">no</dd>' in resp.data

    def test_invalid_token_resolves_to_anonymous(self, client):
        """Test a garbage token is treated as no user, not an error."""
        resp = client.get("/test-auth", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 200
        assert b'<dd id="auth-status">resolved</dd>' in resp.data
        assert b'<dd id="auth-user">no</dd>' in resp.data

    def test_delete_account(self, client, register, app):
        """Test deleting the account after confirming the email."""
        register()
        resp = client.post(
            "/settings/account", data={"action": "delete", "confirm": "ana@example.com"}
        )
        assert resp.status_code == 302
        with app.app_context():
            assert auth.get_user_by_email("ana@example.com") is None


class TestTokenApi:
    """Tests for the JSON token endpoints."""

    def test_token_and_me(self, client, register):
        """Test a bearer token identifies the user."""
        register()
        resp = client.post("/auth/token", json={"email": "ana@example.com", "password": TEST_PASSWORD})
        assert resp.status_code == 200
        token = resp.get_json()["access_token"]

        me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.get_json()["email"] == "ana@example.com"
        assert me.get_json()["level"] == "registered"

    def test_token_bad_credentials(self, client):
        """Test unknown users get 401."""
        resp = client.post("/auth/token", json={"email": "nobody@example.com", "password": "whatever1"})
        assert resp.status_code == 401

    def test_me_requires_token(self, app):
        """Test /auth/me without credentials is 401."""
        assert app.test_client().get("/auth/me").status_code == 401
