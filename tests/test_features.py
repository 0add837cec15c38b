"""
Tests for feature flags and their access check.
"""

import pytest

from expense_pwa.features import APP_FEATURES, FeatureGates
from expense_pwa.models import Feature

from .conftest import TEST_PASSWORD


class TestFeatureGates:
    """Tests for FeatureGates."""

    def test_all_disabled_by_default(self):
        """Test shipped features start switched off."""
        gates = FeatureGates()
        assert not any(gates.is_enabled(fid) for fid in APP_FEATURES)
        assert not gates.check_feature_access("group-expenses", "premium")

    def test_access_by_level(self):
        """Test level weights once a feature is enabled."""
        gates = FeatureGates()
        gates.update_feature("group-expenses", True)
        gates.update_feature("receipt-scanning", True)

        assert not gates.check_feature_access("group-expenses", "basic")
        assert gates.check_feature_access("group-expenses", "registered")
        assert gates.check_feature_access("group-expenses", "premium")
        assert not gates.check_feature_access("receipt-scanning", "registered")
        assert gates.check_feature_access("receipt-scanning", "premium")

    def test_unknown_feature(self):
        """Test unknown ids are never accessible and cannot be updated."""
        gates = FeatureGates()
        assert not gates.check_feature_access("teleport", "premium")
        assert gates.required_level("teleport") is None
        with pytest.raises(KeyError):
            gates.update_feature("teleport", True)

    def test_reset(self):
        """Test reset restores the initial flags without touching the catalogue."""
        gates = FeatureGates()
        gates.update_feature("cloud-sync", True)
        gates.reset()
        assert not gates.is_enabled("cloud-sync")
        assert not APP_FEATURES["cloud-sync"].is_enabled

    def test_overrides_apply_and_report(self):
        """Test stored overrides are applied and only real differences are reported."""
        gates = FeatureGates(overrides={"cloud-sync": True, "teleport": True})
        assert gates.is_enabled("cloud-sync")
        assert gates.get("teleport") is None
        gates.update_feature("group-expenses", False)
        assert gates.overrides() == {"cloud-sync": True}

    def test_feature_level_validated(self):
        """Test features only accept registered or premium."""
        with pytest.raises(ValueError):
            Feature("x", "X", "basic")


class TestFeaturesApi:
    """Tests for /api/features."""

    def test_anonymous_listing(self, client):
        """Test the listing reports the basic level and no access."""
        data = client.get("/api/features").get_json()
        assert data["level"] == "basic"
        assert {f["id"] for f in data["features"]} == set(APP_FEATURES)
        assert not any(f["accessible"] for f in data["features"])

    def test_update_requires_token(self, client):
        """Test toggling a feature needs a JWT."""
        assert client.put("/api/features/cloud-sync", json={"is_enabled": True}).status_code == 401

    def test_update_and_access(self, client, register):
        """Test an enabled feature becomes accessible to the signed-in user."""
        register()
        token = client.post(
            "/auth/token", json={"email": "ana@example.com", "password": TEST_PASSWORD}
        ).get_json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}

        resp = client.put("/api/features/cloud-sync", json={"is_enabled": True}, headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["is_enabled"] is True

        features = client.get("/api/features", headers=headers).get_json()["features"]
        assert {f["id"]: f["accessible"] for f in features}["cloud-sync"] is True

    def test_update_unknown(self, client, register):
        """Test unknown features are 404."""
        register()
        token = client.post(
            "/auth/token", json={"email": "ana@example.com", "password": TEST_PASSWORD}
        ).get_json()["access_token"]
        resp = client.put(
            "/api/features/teleport", json={"is_enabled": True},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 404

    def test_toggle_is_per_user(self, app, client, register):
        """Test one user's toggle is invisible to anonymous visitors and other users."""
        register()
        headers = {"Authorization": f"Bearer {token_for(client)}"}
        client.put("/api/features/cloud-sync", json={"is_enabled": True}, headers=headers)

        anonymous = app.test_client()
        assert flags(anonymous.get("/api/features"))["cloud-sync"] is False

        other = app.test_client()
        other.post(
            "/auth/register",
            data={"email": "ben@example.com", "name": "Ben", "password": TEST_PASSWORD},
        )
        resp = other.get("/api/features")
        assert resp.get_json()["level"] == "registered"
        assert flags(resp)["cloud-sync"] is False

        assert flags(client.get("/api/features", headers=headers))["cloud-sync"] is True

    def test_reset_clears_own_overrides(self, client, register):
        """Test DELETE restores the default flags for the signed-in user."""
        register()
        headers = {"Authorization": f"Bearer {token_for(client)}"}
        client.put("/api/features/group-expenses", json={"is_enabled": True}, headers=headers)

        resp = client.delete("/api/features", headers=headers)
        assert resp.status_code == 200
        assert not any(f["is_enabled"] for f in resp.get_json()["features"])
        assert not any(flags(client.get("/api/features", headers=headers)).values())

    def test_reset_requires_token(self, client):
        """Test resetting flags needs a JWT."""
        assert client.delete("/api/features").status_code == 401


def token_for(client, email="ana@example.com"):
    return client.post(
        "/auth/token", json={"email": email, "password": TEST_PASSWORD}
    ).get_json()["access_token"]


def flags(resp):
    return {f["id"]: f["is_enabled"] for f in resp.get_json()["features"]}
