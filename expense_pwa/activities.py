# expense_pwa/activities.py
"""Activities bar: quick-action catalogue and the per-browser selection."""

from flask import Blueprint, redirect, request, session, url_for

from .auth import safe_return_url

bp = Blueprint("activities", __name__, url_prefix="/activities")

PERSONAL_ACTIVITIES = [
    {"icon": "receipt", "label": "Log Transactions", "endpoint": "views.history"},
    {"icon": "bar-chart-3", "label": "View Stats", "endpoint": "views.home"},
    {"icon": "piggy-bank", "label": "Set Budget", "endpoint": "views.settings"},
    {"icon": "bell", "label": "Notifications", "endpoint": "views.notifications"},
    {"icon": "wallet", "label": "Manage Virtual Accounts", "endpoint": "views.accounts"},
    {"icon": "file-text", "label": "View Loan Accounts", "endpoint": "views.accounts"},
    {"icon": "file-up", "label": "Analyze Bank Statement", "endpoint": None},
    {"icon": "award", "label": "View Awards & Achievements", "endpoint": None},
    {"icon": "target", "label": "Manage Goals", "endpoint": None},
    {"icon": "clock", "label": "Manage Recurring Expenses", "endpoint": None},
    {"icon": "tags", "label": "Create/Edit Categories", "endpoint": "views.categories"},
    {"icon": "file-down", "label": "Export/Import Data", "endpoint": None},
    {"icon": "history", "label": "View Budget History", "endpoint": "views.history"},
]

GROUP_ACTIVITIES = [
    {"icon": "receipt", "label": "Log Group Transactions", "endpoint": None},
    {"icon": "bar-chart-3", "label": "View Group Stats", "endpoint": None},
    {"icon": "settings", "label": "Manage Group Settings", "endpoint": None},
    {"icon": "piggy-bank", "label": "Set Group Budget", "endpoint": None},
    {"icon": "bell", "label": "Notifications", "endpoint": "views.notifications"},
    {"icon": "file-text", "label": "Generate Reports", "endpoint": None},
    {"icon": "split-square-horizontal", "label": "Settle Balances", "endpoint": None},
    {"icon": "activity", "label": "View Split History", "endpoint": None},
    {"icon": "users", "label": "Manage Split Requests", "endpoint": None},
    {"icon": "file-down", "label": "Export Group Data", "endpoint": None},
    {"icon": "activity", "label": "View Group Activity", "endpoint": None},
    {"icon": "tags", "label": "Manage Group Categories", "endpoint": None},
]

QUICK_ACTION_COUNT = 6


def _catalogue(group_mode):
    return GROUP_ACTIVITIES if group_mode else PERSONAL_ACTIVITIES


def _session_key(group_mode):
    return "groupActions" if group_mode else "personalActions"


def is_group_mode():
    return bool(session.get("isGroupMode", False))


def selected_quick_actions(group_mode=None):
    """Saved quick actions rebuilt from their labels; defaults when none survive."""
    group_mode = is_group_mode() if group_mode is None else group_mode
    catalogue = _catalogue(group_mode)
    labels = session.get(_session_key(group_mode))
    if labels:
        by_label = {a["label"]: a for a in catalogue}
        hydrated = [by_label[label] for label in labels if label in by_label]
        if hydrated:
            return hydrated
    return catalogue[:QUICK_ACTION_COUNT]


def toggle_quick_action(label, group_mode=None):
    group_mode = is_group_mode() if group_mode is None else group_mode
    if label not in {a["label"] for a in _catalogue(group_mode)}:
        return False
    labels = [a["label"] for a in selected_quick_actions(group_mode)]
    if label in labels:
        labels.remove(label)
    else:
        labels.append(label)
    session[_session_key(group_mode)] = labels
    return True


def toggle_mode():
    session["isGroupMode"] = not is_group_mode()
    return session["isGroupMode"]


def activities_state():
    group_mode = is_group_mode()
    return {
        "is_group_mode": group_mode,
        "actions": _catalogue(group_mode),
        "quick_actions": selected_quick_actions(group_mode),
    }


def _back():
    return redirect(safe_return_url(request.form.get("next"), url_for("views.home")))


@bp.route("/mode", methods=["POST"])
def toggle_mode_route():
    toggle_mode()
    return _back()


@bp.route("/quick-actions", methods=["POST"])
def toggle_quick_action_route():
    toggle_quick_action(request.form.get("label", ""))
    return _back()
