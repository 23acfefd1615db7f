"""
Integration tests for admin subscriber management.
"""

from bson import ObjectId


def _create(test_client, headers, **body):
    body.setdefault("mobile", "9876543210")
    return test_client.post("/api/admin/users", json=body, headers=headers)


class TestUsers:
    def test_create_with_tier(self, test_client, admin_headers):
        r = _create(test_client, admin_headers, fullName="Asha", accessDays=7, planTier="Regular")
        assert r.status_code == 201
        user = r.json()["data"]["user"]
        assert user["subscription"]["planTier"] == "Regular"
        assert user["subscription"]["isActive"] is True
        assert user["subscription"]["endDate"] is not None

    def test_duplicate_mobile_is_conflict(self, test_client, admin_headers):
        assert _create(test_client, admin_headers).status_code == 201
        r = _create(test_client, admin_headers)
        assert r.status_code == 409
        assert r.json()["error_code"] == "CONFLICT"

    def test_conflicting_durations_rejected(self, test_client, admin_headers):
        r = _create(test_client, admin_headers, accessDays=7, isUnlimited=True)
        assert r.status_code == 400

    def test_bad_mobile_rejected(self, test_client, admin_headers):
        assert _create(test_client, admin_headers, mobile="12345").status_code == 400

    def test_update_mobile_conflict(self, test_client, admin_headers):
        _create(test_client, admin_headers, mobile="9000000001")
        other = _create(test_client, admin_headers, mobile="9000000002").json()["data"]["user"]
        r = test_client.put(f"/api/admin/users/{other['_id']}", json={"mobile": "9000000001"}, headers=admin_headers)
        assert r.status_code == 409

    def test_upgrade_tier_and_unlimited(self, test_client, admin_headers):
        user = _create(test_client, admin_headers, accessDays=1, planTier="Regular").json()["data"]["user"]
        r = test_client.put(
            f"/api/admin/users/{user['_id']}",
            json={"isUnlimited": True, "planTier": "Premium"},
            headers=admin_headers,
        )
        sub = r.json()["data"]["user"]["subscription"]
        assert sub["planTier"] == "Premium"
        assert sub["isUnlimited"] is True
        assert sub["endDate"] is None

    def test_empty_update_rejected(self, test_client, admin_headers):
        user = _create(test_client, admin_headers).json()["data"]["user"]
        assert test_client.put(f"/api/admin/users/{user['_id']}", json={}, headers=admin_headers).status_code == 400

    def test_list_search_and_status(self, test_client, admin_headers):
        _create(test_client, admin_headers, mobile="9111111111", fullName="Ravi", city="Pune", accessDays=3)
        _create(test_client, admin_headers, mobile="9222222222", fullName="Meera", city="Surat")

        r = test_client.get("/api/admin/users", params={"search": "pun"}, headers=admin_headers)
        assert [u["fullName"] for u in r.json()["data"]["users"]] == ["Ravi"]

        r = test_client.get("/api/admin/users", params={"subscriptionStatus": "active"}, headers=admin_headers)
        assert [u["fullName"] for u in r.json()["data"]["users"]] == ["Ravi"]

        r = test_client.get("/api/admin/users", params={"subscriptionStatus": "inactive"}, headers=admin_headers)
        assert [u["fullName"] for u in r.json()["data"]["users"]] == ["Meera"]

    def test_activate_status_and_delete(self, test_client, admin_headers):
        user = _create(test_client, admin_headers).json()["data"]["user"]
        uid = user["_id"]

        r = test_client.post(f"/api/admin/users/{uid}/activate-subscription", json={"plan": "weekly"}, headers=admin_headers)
        assert r.json()["data"]["user"]["subscription"]["plan"] == "weekly"

        r = test_client.patch(f"/api/admin/users/{uid}/status", json={"isActive": False}, headers=admin_headers)
        assert r.json()["data"]["user"]["isActive"] is False
        assert test_client.get("/api/calls", headers={"X-User-Id": uid}).status_code == 403

        assert test_client.delete(f"/api/admin/users/{uid}", headers=admin_headers).status_code == 200
        assert test_client.get(f"/api/admin/users/{uid}", headers=admin_headers).status_code == 404

    def test_unknown_user(self, test_client, admin_headers):
        assert test_client.get(f"/api/admin/users/{ObjectId()}", headers=admin_headers).status_code == 404
        assert test_client.get("/api/admin/users/xyz", headers=admin_headers).status_code == 404
