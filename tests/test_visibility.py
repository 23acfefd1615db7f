"""
Tests for tier-gated target visibility.
"""

import pytest

from greencandle.services.visibility import (
    DEFAULT_TARGET_LIMIT,
    TierDescriptor,
    max_visible_targets,
    project_call,
    visible_targets,
)


def _call(orders):
    return {"_id": "c1", "targetPrices": [{"_id": f"t{i}", "price": 100 + i, "order": o} for i, o in enumerate(orders)]}


class TestMaxVisible:
    @pytest.mark.parametrize("tier,expected", [
        (TierDescriptor("Regular"), 2),
        (TierDescriptor("Premium"), 6),
        (TierDescriptor("International"), 6),
        (TierDescriptor(None), DEFAULT_TARGET_LIMIT),
        (TierDescriptor("Gold"), DEFAULT_TARGET_LIMIT),
        (TierDescriptor("Regular", 4), 4),
        (TierDescriptor("Premium", 1), 1),
        (TierDescriptor("Regular", 0), 2),  # falsy override falls back to the ladder
    ])
    def test_tier_ladder_and_override(self, tier, expected):
        assert max_visible_targets(tier) == expected

    def test_from_subscription(self):
        tier = TierDescriptor.from_subscription({"planTier": "Regular", "maxTargetsVisible": None})
        assert tier == TierDescriptor("Regular", None)
        assert TierDescriptor.from_subscription(None) == TierDescriptor()


class TestProjection:
    def test_regular_sees_first_two_of_six(self):
        call = _call([1, 2, 3, 4, 5, 6])
        view = project_call(call, TierDescriptor("Regular"))
        assert [t["order"] for t in view["targetPrices"]] == [1, 2]

    def test_premium_sees_all_six(self):
        call = _call([1, 2, 3, 4, 5, 6])
        view = project_call(call, TierDescriptor("Premium"))
        assert [t["order"] for t in view["targetPrices"]] == [1, 2, 3, 4, 5, 6]

    def test_sorts_by_order_not_storage(self):
        call = _call([3, 1, 2])
        view = project_call(call, TierDescriptor("Regular"))
        assert [t["order"] for t in view["targetPrices"]] == [1, 2]

    def test_ties_and_missing_order_keep_stored_sequence(self):
        targets = [
            {"_id": "a", "order": 1},
            {"_id": "b"},
            {"_id": "c", "order": 1},
            {"_id": "d", "order": None},
        ]
        assert [t["_id"] for t in visible_targets(targets, 10)] == ["b", "d", "a", "c"]

    def test_does_not_mutate_stored_call(self):
        call = _call([2, 1, 3])
        before = [dict(t) for t in call["targetPrices"]]
        project_call(call, TierDescriptor("Regular"))
        assert call["targetPrices"] == before

    def test_fewer_targets_than_limit_returns_all(self):
        call = _call([1])
        assert len(project_call(call, TierDescriptor("Premium"))["targetPrices"]) == 1

    @pytest.mark.parametrize("limit", [0, -3])
    def test_non_positive_limit_yields_empty(self, limit):
        assert visible_targets(_call([1, 2])["targetPrices"], limit) == []

    def test_never_exceeds_limit(self):
        for n in range(0, 9):
            for limit in range(0, 9):
                out = visible_targets(_call(list(range(n)))["targetPrices"], limit)
                assert len(out) == min(n, max(limit, 0))
