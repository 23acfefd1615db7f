"""
Integration tests for the subscriber call feed: today, history, stats and
tier-gated target visibility.
"""

import asyncio
import datetime as dt

from bson import ObjectId

from greencandle.mongo_collections import USERS
from greencandle.services.calendar import today


def _orders(call):
    return [t["order"] for t in call["targetPrices"]]


class TestTodayCalls:
    def test_only_today_and_later(self, test_client, create_call, create_subscriber):
        headers = create_subscriber(plan_tier="Premium")
        d = today()
        create_call(day=(d - 1).isoformat(), commodity="YESTERDAY")
        create_call(day=d.isoformat(), commodity="TODAY")
        create_call(day=(d + 1).isoformat(), commodity="TOMORROW")

        r = test_client.get("/api/calls", headers=headers)
        assert r.status_code == 200
        commodities = sorted(c["commodity"] for c in r.json()["data"]["calls"])
        assert commodities == ["TODAY", "TOMORROW"]

    def test_trade_type_filter_and_creator_hidden(self, test_client, create_call, create_subscriber):
        headers = create_subscriber()
        create_call(tradeType="positional")
        create_call()

        calls = test_client.get("/api/calls", params={"tradeType": "positional"}, headers=headers).json()["data"]["calls"]
        assert len(calls) == 1
        assert calls[0]["tradeType"] == "positional"
        assert "createdBy" not in calls[0]

    def test_regular_tier_sees_two_targets(self, test_client, create_call, create_subscriber):
        create_call(n_targets=6)
        regular = test_client.get("/api/calls", headers=create_subscriber(plan_tier="Regular")).json()
        premium = test_client.get("/api/calls", headers=create_subscriber(plan_tier="Premium")).json()
        assert _orders(regular["data"]["calls"][0]) == [1, 2]
        assert _orders(premium["data"]["calls"][0]) == [1, 2, 3, 4, 5, 6]

    def test_override_beats_tier(self, test_client, create_call, create_subscriber):
        create_call(n_targets=6)
        headers = create_subscriber(plan_tier="Regular", max_targets_visible=4)
        calls = test_client.get("/api/calls", headers=headers).json()["data"]["calls"]
        assert _orders(calls[0]) == [1, 2, 3, 4]

    def test_projection_is_read_time_only(self, test_client, admin_headers, create_call, create_subscriber):
        call = create_call(n_targets=6)
        test_client.get("/api/calls", headers=create_subscriber(plan_tier="Regular"))
        stored = test_client.get(f"/api/admin/calls/{call['_id']}", headers=admin_headers).json()["data"]["call"]
        assert len(stored["targetPrices"]) == 6

    def test_requires_subscriber(self, test_client):
        assert test_client.get("/api/calls").status_code == 401
        assert test_client.get("/api/calls", headers={"X-User-Id": "64b000000000000000000000"}).status_code == 404


class TestHistory:
    def test_default_window_is_last_seven_days(self, test_client, create_call, create_subscriber):
        headers = create_subscriber()
        d = today()
        create_call(day=(d - 8).isoformat(), commodity="OLD")
        create_call(day=(d - 7).isoformat(), commodity="EDGE")
        create_call(day=(d - 2).isoformat(), commodity="RECENT")
        create_call(day=d.isoformat(), commodity="TODAY")
        create_call(day=(d + 1).isoformat(), commodity="FUTURE")

        body = test_client.get("/api/calls/history", headers=headers).json()
        assert [c["commodity"] for c in body["data"]["calls"]] == ["TODAY", "RECENT", "EDGE"]
        assert body["pagination"]["total"] == 3

    def test_explicit_range_and_projection_after_paging(self, test_client, create_call, create_subscriber):
        headers = create_subscriber(plan_tier="Regular")
        for day in ("2026-01-05", "2026-01-06", "2026-01-07"):
            create_call(day=day, n_targets=4)

        body = test_client.get(
            "/api/calls/history",
            params={"startDate": "2026-01-05", "endDate": "2026-01-06", "limit": 1},
            headers=headers,
        ).json()
        assert body["pagination"]["total"] == 2
        assert body["results"] == 1
        assert body["data"]["calls"][0]["tradingDate"] == "2026-01-06"
        assert _orders(body["data"]["calls"][0]) == [1, 2]

    def test_bad_date_is_400(self, test_client, create_subscriber):
        r = test_client.get("/api/calls/history", params={"startDate": "31/01/2026"}, headers=create_subscriber())
        assert r.status_code == 400
        assert r.json()["error_code"] == "INVALID_DATE"


class TestStatsEndpoints:
    def test_stats_and_by_commodity(self, test_client, admin_headers, create_call, create_subscriber):
        gold = create_call(commodity="GOLD", n_targets=1)
        create_call(commodity="GOLD")
        silver = create_call(commodity="SILVER")
        test_client.patch(
            f"/api/admin/calls/{gold['_id']}/targets/{gold['targetPrices'][0]['_id']}/status",
            json={"isAchieved": True},
            headers=admin_headers,
        )
        test_client.put(f"/api/admin/calls/{silver['_id']}", json={"status": "hit_stoploss"}, headers=admin_headers)

        headers = create_subscriber()
        stats = test_client.get("/api/calls/history/stats", headers=headers).json()["data"]
        assert stats["totalCalls"] == 3
        assert stats["hitTarget"] == 1
        assert stats["allTargetsHit"] == 1
        assert stats["hitStoploss"] == 1
        assert stats["activeCalls"] == 1
        assert stats["accuracy"] == 50.0

        rows = test_client.get("/api/calls/history/stats/by-commodity", headers=headers).json()["data"]["stats"]
        assert [(r["commodity"], r["accuracy"]) for r in rows] == [("GOLD", 100.0), ("SILVER", 0.0)]


class TestSubscriptionGate:
    def _user(self, test_client, admin_headers, **body):
        body = {"mobile": "9000000001", **body}
        response = test_client.post("/api/admin/users", json=body, headers=admin_headers)
        assert response.status_code == 201, response.text
        return response.json()["data"]["user"]["_id"]

    def test_no_subscription_is_403(self, test_client, admin_headers, create_call):
        create_call(n_targets=6)
        uid = self._user(test_client, admin_headers)
        for path in ("/api/calls", "/api/calls/history", "/api/calls/history/stats"):
            r = test_client.get(path, headers={"X-User-Id": uid})
            assert r.status_code == 403, path

    def test_expired_subscription_is_403(self, test_client, admin_headers, create_call, db):
        create_call()
        uid = self._user(test_client, admin_headers, accessDays=3, planTier="Regular")
        past = dt.datetime.now(dt.timezone.utc).replace(tzinfo=None) - dt.timedelta(days=1)
        asyncio.run(db[USERS].update_one({"_id": ObjectId(uid)}, {"$set": {"subscription.endDate": past}}))

        assert test_client.get("/api/calls", headers={"X-User-Id": uid}).status_code == 403

    def test_unlimited_subscription_is_allowed(self, test_client, admin_headers, create_call):
        create_call()
        uid = self._user(test_client, admin_headers, isUnlimited=True, planTier="Regular")
        r = test_client.get("/api/calls", headers={"X-User-Id": uid})
        assert r.status_code == 200
        assert len(r.json()["data"]["calls"][0]["targetPrices"]) == 2


class TestPagingLimit:
    def test_oversized_limit_is_clamped(self, test_client, create_call, create_subscriber):
        create_call()
        r = test_client.get("/api/calls/history", params={"limit": 500}, headers=create_subscriber())
        assert r.status_code == 200
        assert r.json()["pagination"]["limit"] == 100
