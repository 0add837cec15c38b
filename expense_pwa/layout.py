# expense_pwa/layout.py
"""
Layout composition shared by every page.

``base.html`` fixes the arrangement (header, scrollable main, activities bar,
bottom navigation, global modal handler); this module feeds it the values it
needs through one context processor installed by the app factory.
"""

from flask import current_app, request, url_for
from flask import session as browser_session

from .accounts import get_default_account, list_accounts
from .activities import activities_state
from .auth import get_auth_session
from .categories import DEFAULT_TAGS, get_categories_by_type
from .db import get_store
from .errors import StorageError
from .guards import current_gate_allows, login_url
from .notifications import unread_count
from .pwa import get_pwa_config

THEME_COOKIE = "theme-preference"
THEMES = ("dark", "light", "system")
DEFAULT_THEME = "dark"
NOTIFICATIONS_KEY = "notificationsEnabled"

BOTTOM_NAV = [
    {"endpoint": "views.home", "label": "Home", "icon": "home"},
    {"endpoint": "views.history", "label": "History", "icon": "history"},
    {"endpoint": "views.notifications", "label": "Alerts", "icon": "bell"},
    {"endpoint": "views.settings", "label": "Settings", "icon": "settings"},
]


def current_theme():
    theme = request.cookies.get(THEME_COOKIE, DEFAULT_THEME)
    return theme if theme in THEMES else DEFAULT_THEME


def format_amount(amount, currency=None):
    """Currency with two decimals, e.g. -$1,234.50."""
    currency = currency if currency is not None else current_app.config.get("CURRENCY", "$")
    amount = float(amount or 0)
    sign = "-" if amount < 0 else ""
    return f"{sign}{currency}{abs(amount):,.2f}"


def format_date(value, fmt="%b %d, %Y"):
    return value.strftime(fmt) if value else ""


def nav_items():
    items = []
    for item in BOTTOM_NAV:
        href = url_for(item["endpoint"])
        items.append(dict(item, href=href, active=request.path == href))
    return items


def notifications_enabled():
    return bool(browser_session.get(NOTIFICATIONS_KEY, True))


def toggle_notifications():
    """Flip the per-browser notifications preference and return the new value."""
    enabled = not notifications_enabled()
    browser_session[NOTIFICATIONS_KEY] = enabled
    return enabled


def unread_notifications(session):
    if not session.is_authenticated or not notifications_enabled():
        return 0
    try:
        return unread_count(session.user.id)
    except StorageError:
        return 0


def inject_layout():
    session = get_auth_session()
    return {
        "auth_session": session,
        "current_user": session.user,
        "theme": current_theme(),
        "nav_items": nav_items(),
        "unread_notifications": unread_notifications(session),
        "notifications_enabled": notifications_enabled(),
        "activities": activities_state(),
        "pwa": get_pwa_config(),
        "storage_error": current_app.config.get("DB_INIT_ERROR"),
        "feature_allowed": current_gate_allows,
        "login_url_for": login_url,
        "modal_options": modal_options,
    }


def register_layout(app):
    app.context_processor(inject_layout)
    app.add_template_filter(format_amount, "currency")
    app.add_template_filter(format_date, "date")


def modal_options():
    """Choices for the global add-transaction modal; empty when storage is down."""
    try:
        store = get_store()
        return {
            "accounts": list_accounts(store),
            "default_account_id": (get_default_account(store) or {}).get("id"),
            "expense_categories": get_categories_by_type(store, "expense"),
            "income_categories": get_categories_by_type(store, "income"),
            "tags": DEFAULT_TAGS,
        }
    except StorageError:
        return {
            "accounts": [],
            "default_account_id": None,
            "expense_categories": [],
            "income_categories": [],
            "tags": DEFAULT_TAGS,
        }
