# expense_pwa/features.py
"""
Available features and their access requirements.

Flags start from ``APP_FEATURES``. A signed-in user's toggles are stored as
overrides in the ``feature_overrides`` table and only apply to that user.
"""

import logging

from . import db
from .models import LEVEL_WEIGHT, Feature

logger = logging.getLogger("expense-pwa")

APP_FEATURES = {
    "group-expenses": Feature("group-expenses", "Group Expenses", "registered", False),
    "cloud-sync": Feature("cloud-sync", "Cloud Sync", "registered", False),
    "receipt-scanning": Feature("receipt-scanning", "Receipt Scanning", "premium", False),
}


class FeatureGates:
    """Feature flags plus the level check that decides who may use them."""

    def __init__(self, features=None, overrides=None):
        self._initial = dict(features if features is not None else APP_FEATURES)
        self.features = dict(self._initial)
        for feature_id, is_enabled in (overrides or {}).items():
            feature = self.get(feature_id)
            if feature is not None:
                self.features[feature_id] = feature.copy(is_enabled=bool(is_enabled))

    def get(self, feature_id):
        return self.features.get(feature_id)

    def is_enabled(self, feature_id):
        feature = self.get(feature_id)
        return feature.is_enabled if feature else False

    def required_level(self, feature_id):
        feature = self.get(feature_id)
        return feature.required_level if feature else None

    def update_feature(self, feature_id, is_enabled):
        feature = self.get(feature_id)
        if feature is None:
            raise KeyError(f"Unknown feature: {feature_id}")
        self.features[feature_id] = feature.copy(is_enabled=bool(is_enabled))
        logger.info(f"Feature {feature_id} {'enabled' if is_enabled else 'disabled'}")

    def check_feature_access(self, feature_id, user_level):
        if not self.is_enabled(feature_id):
            return False
        return LEVEL_WEIGHT.get(user_level, 0) >= LEVEL_WEIGHT[self.required_level(feature_id)]

    def overrides(self):
        """Flags whose state differs from the defaults."""
        return {
            feature_id: feature.is_enabled
            for feature_id, feature in self.features.items()
            if feature.is_enabled != self._initial[feature_id].is_enabled
        }

    def reset(self):
        self.features = dict(self._initial)

    def to_list(self):
        return [f.to_dict() for f in self.features.values()]


# ---------------- Per-user overrides ----------------
def load_feature_gates(user_id=None):
    """Default flags with ``user_id``'s own overrides applied."""
    if user_id is None:
        return FeatureGates()
    rows = db.query_db(
        "SELECT feature_id, is_enabled FROM feature_overrides WHERE user_id=?", (user_id,)
    )
    return FeatureGates(overrides={r["feature_id"]: bool(r["is_enabled"]) for r in rows})


def save_feature_overrides(user_id, gates):
    """Store the user's overrides, dropping any that match the defaults again."""
    clear_feature_overrides(user_id)
    for feature_id, is_enabled in gates.overrides().items():
        db.execute_db(
            "INSERT INTO feature_overrides (user_id, feature_id, is_enabled) VALUES (?,?,?)",
            (user_id, feature_id, int(is_enabled)),
        )


def clear_feature_overrides(user_id):
    db.execute_db("DELETE FROM feature_overrides WHERE user_id=?", (user_id,))
