# expense_pwa/guards.py
"""
Presentation guards over an AuthSession.

``protected_route`` and ``feature_gate`` are plain functions of the session so
they can be used from views, templates and tests alike. ``protected`` adapts
``protected_route`` into a Flask view decorator.
"""

import logging
from functools import wraps
from urllib.parse import quote

from flask import current_app, redirect, request

from .auth import get_auth_session

logger = logging.getLogger("expense-pwa")

LOGIN_PATH = "/auth/login"
FEATURE_LEVELS = ("registered", "premium")


def login_url(return_path):
    return f"{LOGIN_PATH}?returnUrl={quote(return_path, safe='')}"


def protected_route(session, path, render, navigate):
    """
    Render children for an authenticated session.

    Returns None while the session is loading. Once resolved without a user,
    calls ``navigate`` once with the login URL carrying ``path`` and returns
    its result; otherwise returns ``render()``.
    """
    if session.is_loading:
        return None
    if not session.is_authenticated:
        logger.info(f"Redirecting unauthenticated request for {path} to login")
        return navigate(login_url(path))
    return render()


def gate_allows(level, session, enforce_premium=False):
    if level not in FEATURE_LEVELS:
        raise ValueError(f"Unknown feature level: {level}")
    if not session.is_authenticated:
        return False
    if level == "premium" and enforce_premium:
        return session.user.is_premium
    return True


def feature_gate(level, session, children, fallback=None, enforce_premium=False):
    """Children when ``session`` meets ``level``, else the fallback (or None)."""
    if gate_allows(level, session, enforce_premium):
        return children
    return fallback


def protected(view):
    @wraps(view)
    def wrapped_view(**kwargs):
        result = protected_route(
            get_auth_session(),
            request.path,
            render=lambda: view(**kwargs),
            navigate=redirect,
        )
        if result is None:
            return "", 204
        return result

    return wrapped_view


def current_gate_allows(level):
    """Template helper bound to the current request's session."""
    return gate_allows(
        level, get_auth_session(), current_app.config.get("ENFORCE_PREMIUM_TIER", False)
    )
