# expense_pwa/transactions.py
"""
Transactions service.

Account balances are maintained, not derived on read: every write applies the
signed amount of the transaction to its account inside the same database
transaction. ``reconcile_account`` recomputes a balance from the ledger as
opening balance + incomes - expenses.
"""

import logging
import math
import re
from datetime import datetime, time

from flask import Blueprint, jsonify, request

from .db import get_store, serialize_record
from .errors import IntegrityError, NotFoundError, ValidationError

logger = logging.getLogger("expense-pwa")

bp = Blueprint("transactions", __name__, url_prefix="/transactions")

TRANSACTION_TYPES = ("expense", "income")
MAX_AMOUNT = 1000000
MAX_CATEGORY_LENGTH = 50
MAX_DESCRIPTION_LENGTH = 200
MAX_TAG_LENGTH = 30
DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M", "%d-%m-%Y", "%Y/%m/%d", "%d/%m/%Y"]


# ---------------- Helpers ----------------
def parse_date(s):
    """Try multiple date formats"""
    if not s:
        return None
    if isinstance(s, datetime):
        return s
    s = str(s).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        return None


def parse_amount(value):
    """Strip currency formatting and round to cents. None if unparseable or not finite."""
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (int, float)):
        value = re.sub(r"[^\d.-]", "", str(value))
    try:
        amount = float(value)
    except (ValueError, OverflowError):
        return None
    if not math.isfinite(amount):
        return None
    return round(amount, 2)


def parse_tags(value):
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(t).strip() for t in value if str(t).strip()]


def validate_transaction(data, now=None):
    """Normalize expense/income input. Returns (transaction, errors)."""
    now = now or datetime.now()
    tx, errors = {}, {}

    amount = parse_amount(data.get("amount"))
    if amount is None:
        errors["amount"] = "Amount is required and must be positive"
    elif amount <= 0:
        errors["amount"] = "Amount must be positive"
    elif amount > MAX_AMOUNT:
        errors["amount"] = "Amount cannot exceed 1,000,000"
    tx["amount"] = amount

    tx_type = data.get("type")
    if tx_type not in TRANSACTION_TYPES:
        errors["type"] = "Transaction type is required"
    tx["type"] = tx_type

    category = str(data.get("category") or "").strip()
    if not category:
        errors["category"] = "Category is required"
    elif len(category) > MAX_CATEGORY_LENGTH:
        errors["category"] = "Category name too long"
    tx["category"] = category

    description = str(data.get("description") or "").strip()
    if len(description) > MAX_DESCRIPTION_LENGTH:
        errors["description"] = "Description too long"
    tx["description"] = description

    try:
        account_id = int(data.get("accountId"))
    except (TypeError, ValueError):
        account_id = 0
    if account_id <= 0:
        errors["accountId"] = "Please select an account"
    tx["accountId"] = account_id

    date_val = parse_date(data.get("date")) if data.get("date") else now
    if date_val is not None and date_val.tzinfo is not None:
        date_val = date_val.astimezone().replace(tzinfo=None)
    if date_val is None:
        errors["date"] = "Invalid date"
    elif date_val > datetime.combine(now.date(), time.max):
        errors["date"] = "Date cannot be in the future"
    tx["date"] = date_val

    tags = parse_tags(data.get("tags"))
    if any(len(t) > MAX_TAG_LENGTH for t in tags):
        errors["tags"] = "Tag name too long"
    tx["tags"] = tags

    return tx, errors


def signed_amount(tx):
    """Effect of a transaction on its account balance."""
    return tx["amount"] if tx["type"] == "income" else -tx["amount"]


def _adjust_balance(store, account_id, delta):
    account = store.accounts.get(account_id)
    if account is None:
        raise IntegrityError(f"Transaction references missing account {account_id}")
    store.accounts.update(account_id, {"balance": round(account["balance"] + delta, 2)})


# ---------------- Service ----------------
def get_transaction(store, tx_id):
    tx = store.transactions.get(tx_id)
    if tx is None:
        raise NotFoundError(f"Transaction {tx_id} not found")
    return tx


def list_transactions(store, account_id=None, tx_type=None, category=None, limit=None,
                      start=None, end=None):
    """Transactions newest first, optionally filtered. ``start <= date < end``."""
    if account_id is not None:
        rows = store.transactions.where("accountId", int(account_id))
    elif start is not None or end is not None:
        rows = store.transactions.between("date", start or datetime.min, end or datetime.max)
    elif tx_type is not None:
        rows = store.transactions.where("type", tx_type)
    elif category is not None:
        rows = store.transactions.where("category", category)
    else:
        rows = store.transactions.to_list()

    if tx_type is not None:
        rows = [t for t in rows if t.get("type") == tx_type]
    if category is not None:
        rows = [t for t in rows if t.get("category") == category]
    if start is not None:
        rows = [t for t in rows if t.get("date") and t["date"] >= start]
    if end is not None:
        rows = [t for t in rows if t.get("date") and t["date"] < end]

    rows.sort(key=lambda t: (t.get("date") or datetime.min, t["id"]), reverse=True)
    return rows[:limit] if limit else rows


def recent_transactions(store, limit=5):
    return store.transactions.to_list(order_by="date", reverse=True, limit=limit)


def add_transaction(store, data):
    tx, errors = validate_transaction(data)
    if errors:
        raise ValidationError(errors)
    now = datetime.now()
    tx["createdAt"] = now
    tx["updatedAt"] = now
    with store.transaction():
        # the store itself accepts orphans; the account must exist here
        _adjust_balance(store, tx["accountId"], signed_amount(tx))
        tx_id = store.transactions.add(tx)
    logger.info(f"Added {tx['type']} {tx_id}: {tx['amount']} ({tx['category']})")
    return store.transactions.get(tx_id)


def update_transaction(store, tx_id, changes):
    existing = get_transaction(store, tx_id)
    merged = dict(existing)
    merged.update({k: v for k, v in changes.items() if k != "id"})
    tx, errors = validate_transaction(merged)
    if errors:
        raise ValidationError(errors)
    tx["updatedAt"] = datetime.now()
    with store.transaction():
        if store.accounts.get(existing["accountId"]) is not None:
            _adjust_balance(store, existing["accountId"], -signed_amount(existing))
        _adjust_balance(store, tx["accountId"], signed_amount(tx))
        store.transactions.update(tx_id, tx)
    logger.info(f"Updated transaction {tx_id}")
    return store.transactions.get(tx_id)


def delete_transaction(store, tx_id):
    existing = get_transaction(store, tx_id)
    with store.transaction():
        if store.accounts.get(existing["accountId"]) is not None:
            _adjust_balance(store, existing["accountId"], -signed_amount(existing))
        store.transactions.delete(tx_id)
    logger.info(f"Deleted transaction {tx_id}")


def reconcile_account(store, account_id):
    """Recompute an account balance from its transactions and store it."""
    account = store.accounts.get(account_id)
    if account is None:
        raise NotFoundError(f"Account {account_id} not found")
    ledger = sum(signed_amount(t) for t in store.transactions.where("accountId", account_id))
    balance = round(account.get("openingBalance", 0) + ledger, 2)
    if balance != account["balance"]:
        logger.warning(
            f"Account {account_id} balance drifted: stored {account['balance']}, ledger {balance}"
        )
        store.accounts.update(account_id, {"balance": balance})
    return balance


def find_orphans(store):
    """Transactions whose accountId names no existing account."""
    account_ids = {a["id"] for a in store.accounts.to_list()}
    return [t for t in store.transactions.to_list() if t.get("accountId") not in account_ids]


# ---------------- Routes ----------------
def _date_arg(name):
    value = parse_date(request.args.get(name))
    if value is not None and value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value


@bp.route("", methods=["GET"])
def list_transactions_route():
    limit = request.args.get("limit", type=int)
    rows = list_transactions(
        get_store(),
        account_id=request.args.get("accountId", type=int),
        tx_type=request.args.get("type"),
        category=request.args.get("category"),
        start=_date_arg("from"),
        end=_date_arg("to"),
        limit=limit,
    )
    return jsonify([serialize_record(t) for t in rows])


@bp.route("", methods=["POST"])
def add_transaction_route():
    data = request.get_json(force=True, silent=True) or {}
    tx = add_transaction(get_store(), data)
    return jsonify(serialize_record(tx)), 201


@bp.route("/<int:tx_id>", methods=["GET"])
def get_transaction_route(tx_id):
    return jsonify(serialize_record(get_transaction(get_store(), tx_id)))


@bp.route("/<int:tx_id>", methods=["PUT"])
def update_transaction_route(tx_id):
    data = request.get_json(force=True, silent=True) or {}
    return jsonify(serialize_record(update_transaction(get_store(), tx_id, data)))


@bp.route("/<int:tx_id>", methods=["DELETE"])
def delete_transaction_route(tx_id):
    delete_transaction(get_store(), tx_id)
    return jsonify({"msg": "deleted", "id": tx_id})


@bp.route("/reconcile/<int:account_id>", methods=["POST"])
def reconcile_account_route(account_id):
    balance = reconcile_account(get_store(), account_id)
    return jsonify({"accountId": account_id, "balance": balance})
