# expense_pwa/auth.py
"""
Authentication: user records, JWT issuing, and the per-request AuthSession.

Every request gets its own AuthSession on ``g.auth_session``. It starts in the
loading state and is resolved once the identity check has run; a failed check
resolves to "no user" rather than surfacing an error.
"""

import logging
import re
import sqlite3
from datetime import datetime
from urllib.parse import urlsplit

from flask import (
    Blueprint,
    flash,
    g,
    jsonify,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_jwt_extended import (
    create_access_token,
    get_jwt_identity,
    jwt_required,
    set_access_cookies,
    unset_jwt_cookies,
    verify_jwt_in_request,
)
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from werkzeug.security import check_password_hash, generate_password_hash

from . import db
from . import notifications
from .features import clear_feature_overrides
from .errors import StorageError, ValidationError
from .models import AuthUser, USER_LEVELS

logger = logging.getLogger("expense-pwa")

auth_bp = Blueprint("auth", __name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 8


class AuthSession:
    """Current user plus loading flag for one request."""

    LOADING = "loading"
    RESOLVED = "resolved"

    def __init__(self):
        self.status = self.LOADING
        self.user = None

    def start(self):
        self.status = self.LOADING
        self.user = None
        return self

    def resolve(self, user=None):
        self.user = user
        self.status = self.RESOLVED
        return self

    def teardown(self):
        self.user = None
        self.status = self.LOADING

    @property
    def is_loading(self):
        return self.status == self.LOADING

    @property
    def is_resolved(self):
        return self.status == self.RESOLVED

    @property
    def is_authenticated(self):
        return self.is_resolved and self.user is not None

    @property
    def level(self):
        return self.user.level if self.is_authenticated else "basic"

    def __repr__(self):
        return f"AuthSession(status={self.status!r}, user={self.user!r})"


# ---------------- User store ----------------
def validate_credentials(email, password, name=None, is_register=False):
    errors = {}
    email = (email or "").strip().lower()
    if not EMAIL_RE.match(email):
        errors["email"] = "Enter a valid email address"
    if not password:
        errors["password"] = "Password is required"
    elif is_register and len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if is_register and not (name or "").strip():
        errors["name"] = "Name is required"
    return email, errors


def get_user(user_id):
    row = db.query_db(
        "SELECT id, email, name, level, created_at FROM users WHERE id=?", (user_id,), one=True
    )
    return AuthUser.from_row(row) if row else None


def get_user_by_email(email):
    row = db.query_db(
        "SELECT id, email, name, level, created_at FROM users WHERE email=?",
        ((email or "").strip().lower(),),
        one=True,
    )
    return AuthUser.from_row(row) if row else None


def create_user(email, password, name, level="registered"):
    email, errors = validate_credentials(email, password, name, is_register=True)
    if level not in USER_LEVELS:
        errors["level"] = f"Unknown level: {level}"
    if errors:
        raise ValidationError(errors)
    if get_user_by_email(email):
        raise ValidationError({"email": "An account with this email already exists"})

    user_id = db.execute_db(
        "INSERT INTO users (email, name, password_hash, level, created_at) VALUES (?,?,?,?,?)",
        (email, name.strip(), generate_password_hash(password), level, datetime.now().isoformat()),
    )
    logger.info(f"Registered user {user_id} ({email})")
    notifications.add_notification(
        user_id, "Welcome!", "Your account is ready. Your local data stays on this device.", "system"
    )
    return get_user(user_id)


def authenticate(email, password):
    row = db.query_db(
        "SELECT id, password_hash FROM users WHERE email=?",
        ((email or "").strip().lower(),),
        one=True,
    )
    if not row or not check_password_hash(row["password_hash"], password or ""):
        return None
    return get_user(row["id"])


def update_profile(user_id, name):
    name = (name or "").strip()
    if not name:
        raise ValidationError({"name": "Name is required"})
    db.execute_db("UPDATE users SET name=? WHERE id=?", (name[:100], user_id))
    return get_user(user_id)


def change_password(user_id, current_password, new_password):
    row = db.query_db("SELECT password_hash FROM users WHERE id=?", (user_id,), one=True)
    if not row or not check_password_hash(row["password_hash"], current_password or ""):
        raise ValidationError({"current_password": "Current password is incorrect"})
    if not new_password or len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            {"new_password": f"Password must be at least {MIN_PASSWORD_LENGTH} characters"}
        )
    db.execute_db(
        "UPDATE users SET password_hash=? WHERE id=?", (generate_password_hash(new_password), user_id)
    )
    logger.info(f"Password changed for user {user_id}")


def delete_user(user_id):
    db.execute_db("DELETE FROM notifications WHERE user_id=?", (user_id,))
    clear_feature_overrides(user_id)
    db.execute_db("DELETE FROM users WHERE id=?", (user_id,))
    logger.info(f"Deleted user {user_id}")


# ---------------- Session lifecycle ----------------
def check_identity():
    """Look up the user named by the request's JWT, if any."""
    verify_jwt_in_request(optional=True)
    identity = get_jwt_identity()
    if not identity:
        return None
    return get_user(int(identity))


def resolve_auth_session():
    session = AuthSession().start()
    g.auth_session = session
    try:
        user = check_identity()
    except (JWTExtendedException, PyJWTError, StorageError, sqlite3.Error, ValueError) as e:
        logger.warning(f"Identity check failed, continuing unauthenticated: {e}")
        user = None
    session.resolve(user)


def teardown_auth_session(exception=None):
    session = g.pop("auth_session", None)
    if session is not None:
        session.teardown()


def get_auth_session():
    session = g.get("auth_session")
    return session if session is not None else AuthSession()


def safe_return_url(value, default="/"):
    """Only local absolute paths are honoured as return targets."""
    if not value:
        return default
    parts = urlsplit(value)
    if parts.scheme or parts.netloc or not value.startswith("/") or value.startswith("//"):
        return default
    return value


def _login_response(user, target):
    resp = redirect(target)
    set_access_cookies(resp, create_access_token(identity=str(user.id)))
    return resp


# ---------------- Routes ----------------
@auth_bp.route("/login", methods=["GET", "POST"])
def login():
    return_url = request.values.get("returnUrl", "")
    if request.method == "POST":
        email, errors = validate_credentials(request.form.get("email"), request.form.get("password"))
        user = None
        if not errors:
            try:
                user = authenticate(email, request.form.get("password"))
            except StorageError as e:
                logger.error(f"Login failed, storage unavailable: {e}")
                errors["form"] = "Login is unavailable right now"
            else:
                if user is None:
                    errors["form"] = "Incorrect email or password"
        if not errors:
            logger.info(f"Login successful for user {user.id}")
            return _login_response(user, safe_return_url(return_url, url_for("views.home")))
        for message in errors.values():
            flash(message, "error")
        return render_template("login.html", mode="login", return_url=return_url, email=email), 401
    return render_template("login.html", mode="login", return_url=return_url, email="")


@auth_bp.route("/register", methods=["GET", "POST"])
def register():
    return_url = request.values.get("returnUrl", "")
    if request.method == "POST":
        try:
            user = create_user(
                request.form.get("email"), request.form.get("password"), request.form.get("name")
            )
        except ValidationError as e:
            for message in e.errors.values():
                flash(message, "error")
            return render_template(
                "login.html", mode="register", return_url=return_url, email=request.form.get("email", "")
            ), 400
        flash("Account created", "success")
        return _login_response(user, safe_return_url(return_url, url_for("views.home")))
    return render_template("login.html", mode="register", return_url=return_url, email="")


@auth_bp.route("/logout", methods=["POST"])
def logout():
    resp = redirect(url_for("views.home"))
    unset_jwt_cookies(resp)
    flash("Signed out", "success")
    return resp


@auth_bp.route("/token", methods=["POST"])
def issue_token():
    data = request.get_json(force=True, silent=True) or {}
    email, errors = validate_credentials(data.get("email"), data.get("password"))
    if errors:
        return jsonify({"msg": "invalid credentials", "errors": errors}), 400
    user = authenticate(email, data.get("password"))
    if user is None:
        return jsonify({"msg": "Incorrect email or password"}), 401
    return jsonify({"access_token": create_access_token(identity=str(user.id)), "user": user.to_dict()})


@auth_bp.route("/me", methods=["GET"])
@jwt_required()
def me():
    user = get_user(int(get_jwt_identity()))
    if user is None:
        return jsonify({"msg": "user not found"}), 404
    return jsonify(user.to_dict())
