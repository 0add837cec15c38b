"""
Tests for the server-rendered pages and layout.
"""

import re

from expense_pwa.db import get_store
from expense_pwa.transactions import list_transactions


class TestLayout:
    """Tests for base.html composition."""

    def test_home_sections(self, client):
        """Test the dashboard shows balance, spend and recent transactions."""
        resp = client.get("/")
        assert resp.status_code == 200
        for heading in (b"Quick actions", b"Current balance", b"Monthly spend", b"Recent transactions"):
            assert heading in resp.data

    def test_single_modal_handler(self, client):
        """Test the add-transaction modal is included exactly once."""
        for path in ("/", "/history", "/settings"):
            assert client.get(path).data.count(b'id="expense-modal"') == 1

    def test_bottom_nav_marks_active(self, client):
        """Test the current page is highlighted in the bottom navigation."""
        resp = client.get("/history")
        assert b'class="nav-item active"' in resp.data
        assert resp.data.count(b'aria-current="page"') == 1

    def test_unknown_page(self, client):
        """Test 404s render inside the layout."""
        resp = client.get("/nowhere")
        assert resp.status_code == 404
        assert b"Page not found" in resp.data


class TestTransactionForms:
    """Tests for the form posts behind the modal."""

    def test_add_from_modal(self, client, app):
        """Test a valid form creates an expense and returns to the page."""
        resp = client.post(
            "/transactions/new",
            data={"amount": "18.40", "type": "expense", "category": "Food & Dining",
                  "accountId": "1", "description": "Tacos", "tags": ["Impulse"], "next": "/history"},
        )
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/history")

        page = client.get("/history")
        assert b"Tacos" in page.data
        with app.app_context():
            (tx,) = list_transactions(get_store())
        assert tx["amount"] == 18.4
        assert tx["tags"] == ["Impulse"]

    def test_invalid_form_flashes(self, client):
        """Test validation errors are flashed instead of raised."""
        client.post("/transactions/new", data={"amount": "0", "type": "expense", "accountId": "1"})
        page = client.get("/")
        assert b"Amount must be positive" in page.data
        assert b"Category is required" in page.data

    def test_delete(self, client, app):
        """Test deleting from the history page."""
        client.post(
            "/transactions/new",
            data={"amount": "5", "type": "expense", "category": "Shopping", "accountId": "1"},
        )
        with app.app_context():
            tx_id = list_transactions(get_store())[0]["id"]
        client.post(f"/transactions/{tx_id}/delete")
        with app.app_context():
            assert list_transactions(get_store()) == []


class TestManagementPages:
    """Tests for accounts, categories, notifications and settings pages."""

    def test_accounts_page(self, client):
        """Test creating an account from the page."""
        client.post("/accounts", data={"name": "Checking", "type": "bank", "balance": "25"})
        page = client.get("/accounts")
        assert b"Checking" in page.data
        assert b"$25.00" in page.data

    def test_categories_page(self, client):
        """Test creating and listing a custom category."""
        client.post("/categories", data={"name": "Pets", "type": "expense", "color": "#aa5500", "icon": "paw"})
        assert b"Pets" in client.get("/categories").data

    def test_theme_cookie(self, client):
        """Test the theme choice is stored and applied."""
        client.post("/settings/theme", data={"theme": "light"})
        assert b'data-theme="light"' in client.get("/settings").data

    def test_notifications_after_register(self, client, register):
        """Test new users get a welcome notification they can mark read."""
        register()
        page = client.get("/notifications")
        assert page.status_code == 200
        assert b"Welcome!" in page.data
        assert b"Mark as read" in page.data

    def test_unread_badge(self, client, register):
        """Test the Alerts tab counts unread notifications until marked read."""
        register()
        assert b'aria-label="1 unread"' in client.get("/").data

        page = client.get("/notifications").get_data(as_text=True)
        (read_url,) = re.findall(r"/notifications/\d+/read", page)
        client.post(read_url)
        assert b"unread" not in client.get("/").data

    def test_notification_preference(self, client, register):
        """Test notifications can be switched off per browser, hiding the unread badge."""
        register()
        page = client.get("/settings").get_data(as_text=True)
        assert "Coming soon.</p>" not in page
        assert 'aria-checked="true"' in page

        resp = client.post("/settings/notifications")
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/settings#notifications")
        page = client.get("/settings").get_data(as_text=True)
        assert 'aria-checked="false"' in page
        assert "Turn on" in page
        assert b"unread" not in client.get("/").data

        client.post("/settings/notifications")
        assert b'aria-label="1 unread"' in client.get("/").data
