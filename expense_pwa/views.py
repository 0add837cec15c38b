# expense_pwa/views.py
"""Server-rendered pages. Every page extends base.html."""

import logging

from flask import (
    Blueprint,
    current_app,
    flash,
    g,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_jwt_extended import unset_jwt_cookies

from . import auth, notifications
from .accounts import ACCOUNT_TYPES, create_account, delete_account, list_accounts
from .auth import safe_return_url
from .categories import (
    CATEGORY_TYPES,
    create_custom_category,
    delete_category,
    get_categories_by_type,
)
from .db import get_store
from .errors import StorageError, StorageUnavailableError, ValidationError
from .guards import protected
from .layout import THEME_COOKIE, THEMES, toggle_notifications
from .overview import build_overview, empty_overview
from .transactions import TRANSACTION_TYPES, add_transaction, delete_transaction, list_transactions

logger = logging.getLogger("expense-pwa")

bp = Blueprint("views", __name__)

SETTINGS_SECTIONS = [
    {"id": "notifications", "title": "Notification Preferences"},
    {"id": "display", "title": "Display Settings"},
    {"id": "data", "title": "Data Management"},
    {"id": "accounts", "title": "Account Settings", "endpoint": "views.account_settings"},
    {"id": "about", "title": "About"},
]


def _store_or_none():
    try:
        return get_store()
    except StorageUnavailableError as e:
        logger.warning(f"Rendering without storage: {e}")
        return None


def _back(default_endpoint="views.home"):
    return redirect(safe_return_url(request.form.get("next"), url_for(default_endpoint)))


def _flash_errors(e):
    for message in e.errors.values():
        flash(message, "error")


def _run(action, success_message):
    """Run a store write, turning typed failures into flash messages."""
    try:
        result = action()
    except ValidationError as e:
        _flash_errors(e)
        return None
    except StorageError as e:
        logger.warning(f"Write failed: {e}")
        if isinstance(e, StorageUnavailableError):
            flash("Storage is unavailable, changes cannot be saved", "error")
        else:
            flash(str(e), "error")
        return None
    flash(success_message, "success")
    return result


# ---------------- Pages ----------------
@bp.route("/")
def home():
    store = _store_or_none()
    budget = current_app.config["MONTHLY_BUDGET"]
    overview = build_overview(store, budget) if store else empty_overview(budget)
    return render_template("home.html", overview=overview)


@bp.route("/history")
def history():
    store = _store_or_none()
    filters = {
        "account_id": request.args.get("accountId", type=int),
        "tx_type": request.args.get("type") or None,
        "category": request.args.get("category") or None,
    }
    rows, accounts_list = [], []
    if store:
        rows = list_transactions(store, **filters)
        accounts_list = list_accounts(store)
    return render_template(
        "history.html",
        transactions=rows,
        accounts={a["id"]: a for a in accounts_list},
        filters=filters,
        types=TRANSACTION_TYPES,
    )


@bp.route("/transactions/new", methods=["POST"])
def add_transaction_view():
    data = request.form.to_dict()
    data["tags"] = request.form.getlist("tags") or data.get("tags")
    _run(lambda: add_transaction(get_store(), data), f"{data.get('type', 'expense').capitalize()} saved")
    return _back()


@bp.route("/transactions/<int:tx_id>/delete", methods=["POST"])
def delete_transaction_view(tx_id):
    _run(lambda: delete_transaction(get_store(), tx_id), "Transaction deleted")
    return _back("views.history")


@bp.route("/accounts", methods=["GET", "POST"])
def accounts():
    if request.method == "POST":
        _run(lambda: create_account(get_store(), request.form.to_dict()), "Account created")
        return redirect(url_for("views.accounts"))
    store = _store_or_none()
    return render_template(
        "accounts.html", accounts=list_accounts(store) if store else [], types=ACCOUNT_TYPES
    )


@bp.route("/accounts/<int:account_id>/delete", methods=["POST"])
def delete_account_view(account_id):
    _run(lambda: delete_account(get_store(), account_id), "Account deleted")
    return redirect(url_for("views.accounts"))


@bp.route("/categories", methods=["GET", "POST"])
def categories():
    if request.method == "POST":
        _run(lambda: create_custom_category(get_store(), request.form.to_dict()), "Category created")
        return redirect(url_for("views.categories"))
    store = _store_or_none()
    return render_template(
        "categories.html",
        categories=get_categories_by_type(store) if store else [],
        types=CATEGORY_TYPES,
    )


@bp.route("/categories/<int:category_id>/delete", methods=["POST"])
def delete_category_view(category_id):
    _run(lambda: delete_category(get_store(), category_id), "Category deleted")
    return redirect(url_for("views.categories"))


@bp.route("/notifications", endpoint="notifications")
@protected
def notifications_page():
    items = notifications.get_notifications(g.auth_session.user.id)
    return render_template("notifications.html", notifications=items)


@bp.route("/notifications/<int:notification_id>/read", methods=["POST"])
@protected
def mark_notification_read(notification_id):
    notifications.mark_notification_as_read(g.auth_session.user.id, notification_id)
    return redirect(url_for("views.notifications"))


@bp.route("/notifications/clear", methods=["POST"])
@protected
def clear_notifications():
    notifications.clear_all_notifications(g.auth_session.user.id)
    flash("Notifications cleared", "success")
    return redirect(url_for("views.notifications"))


@bp.route("/settings")
def settings():
    return render_template("settings.html", sections=SETTINGS_SECTIONS, themes=THEMES)


@bp.route("/settings/theme", methods=["POST"])
def set_theme():
    theme = request.form.get("theme")
    resp = redirect(url_for("views.settings"))
    if theme in THEMES:
        resp.set_cookie(THEME_COOKIE, theme, max_age=60 * 60 * 24 * 365, samesite="Lax")
    return resp


@bp.route("/settings/notifications", methods=["POST"])
def set_notifications():
    enabled = toggle_notifications()
    flash(f"Notifications {'on' if enabled else 'off'}", "success")
    return redirect(url_for("views.settings") + "#notifications")


@bp.route("/settings/account", methods=["GET", "POST"])
@protected
def account_settings():
    user = g.auth_session.user
    if request.method == "POST":
        action = request.form.get("action")
        try:
            if action == "profile":
                auth.update_profile(user.id, request.form.get("name"))
                flash("Profile updated", "success")
            elif action == "password":
                auth.change_password(
                    user.id, request.form.get("current_password"), request.form.get("new_password")
                )
                flash("Password changed", "success")
            elif action == "delete":
                if request.form.get("confirm") != user.email:
                    raise ValidationError({"confirm": "Type your email to confirm"})
                auth.delete_user(user.id)
                resp = redirect(url_for("views.home"))
                unset_jwt_cookies(resp)
                flash("Account deleted", "success")
                return resp
        except ValidationError as e:
            _flash_errors(e)
        return redirect(url_for("views.account_settings"))
    return render_template("account_settings.html", user=user)


@bp.route("/test-auth")
def test_auth():
    return render_template("test_auth.html")
