# expense_pwa/categories.py

import logging
import re
from datetime import datetime

from flask import Blueprint, jsonify, request

from .db import get_store, serialize_record
from .errors import IntegrityError, NotFoundError, ValidationError

logger = logging.getLogger("expense-pwa")

bp = Blueprint("categories", __name__, url_prefix="/categories")

CATEGORY_TYPES = ("expense", "income", "both")
COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")

DEFAULT_EXPENSE_CATEGORIES = [
    {"name": "Food & Dining", "icon": "utensils", "color": "#ef4444", "type": "expense"},
    {"name": "Transportation", "icon": "car", "color": "#3b82f6", "type": "expense"},
    {"name": "Entertainment", "icon": "film", "color": "#8b5cf6", "type": "expense"},
    {"name": "Shopping", "icon": "shopping-bag", "color": "#ec4899", "type": "expense"},
    {"name": "Bills & Utilities", "icon": "receipt", "color": "#f59e0b", "type": "expense"},
    {"name": "Healthcare", "icon": "heart", "color": "#10b981", "type": "expense"},
    {"name": "Education", "icon": "book-open", "color": "#0891b2", "type": "expense"},
    {"name": "Personal Care", "icon": "user", "color": "#84cc16", "type": "expense"},
]

DEFAULT_INCOME_CATEGORIES = [
    {"name": "Salary", "icon": "briefcase", "color": "#059669", "type": "income"},
    {"name": "Freelance", "icon": "laptop", "color": "#0891b2", "type": "income"},
    {"name": "Investment", "icon": "trending-up", "color": "#7c3aed", "type": "income"},
    {"name": "Other Income", "icon": "plus-circle", "color": "#0891b2", "type": "income"},
]

DEFAULT_TAGS = ["Essential", "Optional", "Planned", "Impulse", "Recurring", "One-time"]


def initialize_default_categories(store):
    """Add the default categories when the collection is empty. Returns how many were added."""
    if store.categories.count() > 0:
        return 0
    now = datetime.now()
    defaults = [
        dict(c, isDefault=True, createdAt=now)
        for c in DEFAULT_EXPENSE_CATEGORIES + DEFAULT_INCOME_CATEGORIES
    ]
    store.categories.bulk_add(defaults)
    logger.info(f"Initialized {len(defaults)} default categories")
    return len(defaults)


def get_categories_by_type(store, cat_type="both"):
    """Categories usable for ``cat_type``; custom "both" categories match either."""
    if cat_type == "both":
        return store.categories.to_list()
    if cat_type not in CATEGORY_TYPES:
        raise ValidationError({"type": f"Unknown category type: {cat_type}"})
    rows = store.categories.where("type", cat_type) + store.categories.where("type", "both")
    return sorted(rows, key=lambda c: c["id"])


def get_category_by_name(store, name):
    rows = store.categories.where("name", name)
    return rows[0] if rows else None


def _get_category(store, category_id):
    category = store.categories.get(category_id)
    if category is None:
        raise NotFoundError("Category not found")
    return category


def validate_category(data, partial=False):
    category, errors = {}, {}
    if not partial or "name" in data:
        name = str(data.get("name") or "").strip()
        if not name:
            errors["name"] = "Category name is required"
        elif len(name) > 50:
            errors["name"] = "Category name too long"
        category["name"] = name
    if not partial or "icon" in data:
        category["icon"] = str(data.get("icon") or "tag").strip()
    if not partial or "color" in data:
        color = data.get("color") or "#64748b"
        if not COLOR_RE.match(color):
            errors["color"] = "Color must be a hex value like #aabbcc"
        category["color"] = color
    if not partial:
        cat_type = data.get("type") or "expense"
        if cat_type not in CATEGORY_TYPES:
            errors["type"] = f"Category type must be one of {', '.join(CATEGORY_TYPES)}"
        category["type"] = cat_type
    return category, errors


def create_custom_category(store, data):
    category, errors = validate_category(data)
    if not errors and get_category_by_name(store, category["name"]):
        errors["name"] = "A category with this name already exists"
    if errors:
        raise ValidationError(errors)
    category.update(isDefault=False, createdAt=datetime.now())
    category_id = store.categories.add(category)
    return store.categories.get(category_id)


def update_category(store, category_id, updates):
    """Rename or restyle a custom category (default categories cannot be updated)."""
    category = _get_category(store, category_id)
    if category.get("isDefault"):
        raise IntegrityError("Cannot update default categories")
    changes, errors = validate_category(updates, partial=True)
    if errors:
        raise ValidationError(errors)
    store.categories.update(category_id, changes)
    return store.categories.get(category_id)


def delete_category(store, category_id):
    """Delete a custom category that no transaction uses."""
    category = _get_category(store, category_id)
    if category.get("isDefault"):
        raise IntegrityError("Cannot delete default categories")
    used = len(store.transactions.where("category", category["name"]))
    if used > 0:
        raise IntegrityError(
            f"Cannot delete category \"{category['name']}\" - it is used by {used} transaction(s)"
        )
    store.categories.delete(category_id)


# ---------------- Routes ----------------
@bp.route("", methods=["GET"])
def list_categories_route():
    rows = get_categories_by_type(get_store(), request.args.get("type", "both"))
    return jsonify({"categories": [serialize_record(c) for c in rows], "tags": DEFAULT_TAGS})


@bp.route("", methods=["POST"])
def create_category_route():
    data = request.get_json(force=True, silent=True) or {}
    return jsonify(serialize_record(create_custom_category(get_store(), data))), 201


@bp.route("/<int:category_id>", methods=["PUT"])
def update_category_route(category_id):
    data = request.get_json(force=True, silent=True) or {}
    return jsonify(serialize_record(update_category(get_store(), category_id, data)))


@bp.route("/<int:category_id>", methods=["DELETE"])
def delete_category_route(category_id):
    delete_category(get_store(), category_id)
    return jsonify({"msg": "deleted", "id": category_id})
