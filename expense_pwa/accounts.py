# expense_pwa/accounts.py

import logging
import math
from datetime import datetime

from flask import Blueprint, jsonify, request

from .db import get_store, serialize_record
from .errors import IntegrityError, NotFoundError, ValidationError

logger = logging.getLogger("expense-pwa")

bp = Blueprint("accounts", __name__, url_prefix="/accounts")

ACCOUNT_TYPES = ("cash", "bank", "credit", "savings")
MAX_NAME_LENGTH = 50

# Created on first launch so the add-transaction form always has an account
DEFAULT_ACCOUNT = {"name": "Cash", "type": "cash", "balance": 0, "isDefault": True}


def validate_account(data, partial=False):
    """Normalize account input. Returns (account, errors)."""
    account, errors = {}, {}

    if not partial or "name" in data:
        name = str(data.get("name") or "").strip()
        if not name:
            errors["name"] = "Account name is required"
        elif len(name) > MAX_NAME_LENGTH:
            errors["name"] = "Account name too long"
        account["name"] = name

    if not partial or "type" in data:
        acc_type = data.get("type") or "cash"
        if acc_type not in ACCOUNT_TYPES:
            errors["type"] = f"Account type must be one of {', '.join(ACCOUNT_TYPES)}"
        account["type"] = acc_type

    if "balance" in data:
        if partial:
            errors["balance"] = "Balance is maintained from transactions"
        else:
            try:
                balance = float(data.get("balance") or 0)
            except (TypeError, ValueError, OverflowError):
                balance = None
            if balance is None or not math.isfinite(balance):
                errors["balance"] = "Invalid balance"
            else:
                account["balance"] = round(balance, 2)
    elif not partial:
        account["balance"] = 0.0

    if "isDefault" in data:
        account["isDefault"] = str(data.get("isDefault")).lower() in ("1", "true", "on", "yes")

    return account, errors


def get_account(store, account_id):
    account = store.accounts.get(account_id)
    if account is None:
        raise NotFoundError(f"Account {account_id} not found")
    return account


def list_accounts(store):
    return store.accounts.to_list()


def get_default_account(store):
    defaults = store.accounts.where("isDefault", True)
    return defaults[0] if defaults else None


def _clear_default(store, keep_id=None):
    for account in store.accounts.where("isDefault", True):
        if account["id"] != keep_id:
            store.accounts.update(account["id"], {"isDefault": False})


def create_account(store, data):
    account, errors = validate_account(data)
    if errors:
        raise ValidationError(errors)
    record = {
        "name": account["name"],
        "type": account["type"],
        "balance": account["balance"],
        "openingBalance": account["balance"],
        "isDefault": account.get("isDefault", False),
        "createdAt": datetime.now(),
    }
    with store.transaction():
        account_id = store.accounts.add(record)
        if record["isDefault"]:
            _clear_default(store, keep_id=account_id)
    logger.info(f"Created account {account_id} ({record['name']})")
    return store.accounts.get(account_id)


def update_account(store, account_id, changes):
    get_account(store, account_id)
    account, errors = validate_account(changes, partial=True)
    if errors:
        raise ValidationError(errors)
    with store.transaction():
        store.accounts.update(account_id, account)
        if account.get("isDefault"):
            _clear_default(store, keep_id=account_id)
    return store.accounts.get(account_id)


def delete_account(store, account_id):
    account = get_account(store, account_id)
    owned = store.transactions.where("accountId", account_id)
    if owned:
        raise IntegrityError(
            f"Cannot delete account \"{account['name']}\" - it is used by {len(owned)} transaction(s)"
        )
    store.accounts.delete(account_id)
    logger.info(f"Deleted account {account_id}")


def initialize_default_account(store):
    """Create the default Cash account if no accounts exist. Returns its id or None."""
    if store.accounts.count() > 0:
        return None
    record = dict(DEFAULT_ACCOUNT, openingBalance=0, createdAt=datetime.now())
    account_id = store.accounts.add(record)
    logger.info(f"Created default account \"Cash\" with ID: {account_id}")
    return account_id


# ---------------- Routes ----------------
@bp.route("", methods=["GET"])
def list_accounts_route():
    store = get_store()
    return jsonify([serialize_record(a) for a in list_accounts(store)])


@bp.route("", methods=["POST"])
def create_account_route():
    data = request.get_json(force=True, silent=True) or {}
    account = create_account(get_store(), data)
    return jsonify(serialize_record(account)), 201


@bp.route("/<int:account_id>", methods=["GET"])
def get_account_route(account_id):
    return jsonify(serialize_record(get_account(get_store(), account_id)))


@bp.route("/<int:account_id>", methods=["PUT"])
def update_account_route(account_id):
    data = request.get_json(force=True, silent=True) or {}
    return jsonify(serialize_record(update_account(get_store(), account_id, data)))


@bp.route("/<int:account_id>", methods=["DELETE"])
def delete_account_route(account_id):
    delete_account(get_store(), account_id)
    return jsonify({"msg": "deleted", "id": account_id})
