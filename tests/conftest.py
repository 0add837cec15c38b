import pytest

from expense_pwa import create_app
from expense_pwa.db import get_store

TEST_PASSWORD = "s3cret-pass"


def make_config(tmp_path, **overrides):
    config = {
        "TESTING": True,
        "APP_ENV": "testing",
        "DB_PATH": str(tmp_path / "expense_pwa.db"),
        "SECRET_KEY": "test-secret-key",
        "JWT_SECRET_KEY": "test-jwt-secret-key-with-enough-length-for-hs256",
        "JWT_COOKIE_SECURE": False,
    }
    config.update(overrides)
    return config


@pytest.fixture
def app(tmp_path):
    return create_app(make_config(tmp_path))


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    """Store bound to a live app context (default account and categories seeded)."""
    with app.app_context():
        yield get_store()


@pytest.fixture
def register(client):
    """Register a user through the auth pages; the client keeps the JWT cookie."""

    def _register(email="ana@example.com", name="Ana", password=TEST_PASSWORD, return_url=""):
        return client.post(
            "/auth/register",
            data={"email": email, "name": name, "password": password, "returnUrl": return_url},
        )

    return _register
