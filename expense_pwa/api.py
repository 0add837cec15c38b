# expense_pwa/api.py
"""JSON API. Typed service errors are mapped to status codes here."""

import logging
import platform
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import get_jwt_identity, jwt_required

from . import accounts, categories, transactions
from .auth import get_auth_session
from .db import get_db_health, get_store, serialize_record
from .errors import (
    IntegrityError,
    NotFoundError,
    StorageError,
    StorageUnavailableError,
    ValidationError,
)
from .features import clear_feature_overrides, load_feature_gates, save_feature_overrides
from .initialization import get_initialization_status
from .overview import build_overview

logger = logging.getLogger("expense-pwa")

api_bp = Blueprint("api", __name__, url_prefix="/api")
api_bp.register_blueprint(transactions.bp)
api_bp.register_blueprint(accounts.bp)
api_bp.register_blueprint(categories.bp)


def hello_payload():
    return {
        "message": "Hello from expense-pwa functions!",
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "runtimeVersion": platform.python_version(),
    }


# ---------------- Error mapping ----------------
@api_bp.errorhandler(ValidationError)
def handle_validation_error(e):
    return jsonify({"msg": "validation failed", "errors": e.errors}), 400


@api_bp.errorhandler(NotFoundError)
def handle_not_found(e):
    return jsonify({"msg": str(e)}), 404


@api_bp.errorhandler(IntegrityError)
def handle_integrity_error(e):
    return jsonify({"msg": str(e)}), 409


@api_bp.errorhandler(StorageUnavailableError)
def handle_storage_unavailable(e):
    logger.warning(f"Storage unavailable: {e}")
    return jsonify({"msg": "storage unavailable", "error": str(e)}), 503


@api_bp.errorhandler(StorageError)
def handle_storage_error(e):
    logger.exception("Storage operation failed")
    return jsonify({"msg": "storage error", "error": str(e)}), 500


# ---------------- Endpoints ----------------
@api_bp.route("/hello")
def hello():
    return jsonify(hello_payload())


@api_bp.route("/health")
def health():
    error = current_app.config.get("DB_INIT_ERROR")
    if error:
        return jsonify({"status": "degraded", "storage": {"ok": False, "error": error}}), 503
    return jsonify(
        {
            "status": "ok",
            "storage": get_db_health(),
            "data": get_initialization_status(get_store()),
        }
    )


@api_bp.route("/overview")
def overview():
    data = build_overview(get_store(), current_app.config["MONTHLY_BUDGET"])
    data["recent"] = [serialize_record(t) for t in data["recent"]]
    data["accounts"] = [serialize_record(a) for a in data["accounts"]]
    return jsonify(data)


@api_bp.route("/features")
def list_features():
    session = get_auth_session()
    gates = load_feature_gates(session.user.id if session.is_authenticated else None)
    features = []
    for feature in gates.to_list():
        feature["accessible"] = gates.check_feature_access(feature["id"], session.level)
        features.append(feature)
    return jsonify({"level": session.level, "features": features})


@api_bp.route("/features/<feature_id>", methods=["PUT"])
@jwt_required()
def update_feature(feature_id):
    user_id = int(get_jwt_identity())
    gates = load_feature_gates(user_id)
    if gates.get(feature_id) is None:
        return jsonify({"msg": "feature not found"}), 404
    data = request.get_json(force=True, silent=True) or {}
    gates.update_feature(feature_id, bool(data.get("is_enabled")))
    save_feature_overrides(user_id, gates)
    return jsonify(gates.get(feature_id).to_dict())


@api_bp.route("/features", methods=["DELETE"])
@jwt_required()
def reset_features():
    user_id = int(get_jwt_identity())
    gates = load_feature_gates(user_id)
    gates.reset()
    clear_feature_overrides(user_id)
    logger.info(f"Feature flags reset for user {user_id}")
    return jsonify({"features": gates.to_list()})
