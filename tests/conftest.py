"""
Shared pytest fixtures for the Green Candle test suite.

API tests run the real FastAPI app against an in-memory Motor database
(mongomock-motor); the lifespan is not entered, so no Mongo server or
scheduler is needed.
"""

import uuid

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from greencandle.dependencies import get_db
from greencandle.main import app
from greencandle.services.calendar import today

ADMIN_HEADERS = {"X-Admin-Id": "admin-1"}


@pytest.fixture(scope="function")
def db():
    """Fresh in-memory database per test."""
    client = AsyncMongoMockClient()
    return client[f"greencandle_test_{uuid.uuid4().hex[:8]}"]


@pytest.fixture(scope="function")
def test_client(db):
    app.dependency_overrides[get_db] = lambda: db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return dict(ADMIN_HEADERS)


def make_call_payload(day=None, n_targets=3, **overrides):
    payload = {
        "commodity": "GOLD",
        "type": "buy",
        "entryPrice": 62000,
        "targetPrices": [{"price": 62000 + 100 * i, "order": i} for i in range(1, n_targets + 1)],
        "stopLoss": 61800,
        "analysis": "Breakout above resistance",
        "tradingDay": day or today().isoformat(),
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def create_call(test_client, admin_headers):
    """POST a call through the admin API and return the response body's call."""
    def _create(**kwargs):
        response = test_client.post("/api/admin/calls", json=make_call_payload(**kwargs), headers=admin_headers)
        assert response.status_code == 201, response.text
        return response.json()["data"]["call"]
    return _create


@pytest.fixture
def create_subscriber(test_client, admin_headers):
    """Create a subscriber and return headers identifying them."""
    counter = {"n": 0}

    def _create(plan_tier=None, max_targets_visible=None):
        counter["n"] += 1
        body = {"mobile": f"98765{counter['n']:05d}", "fullName": "Test User", "accessDays": 7}
        if plan_tier:
            body["planTier"] = plan_tier
        if max_targets_visible:
            body["maxTargetsVisible"] = max_targets_visible
        response = test_client.post("/api/admin/users", json=body, headers=admin_headers)
        assert response.status_code == 201, response.text
        return {"X-User-Id": response.json()["data"]["user"]["_id"]}
    return _create
