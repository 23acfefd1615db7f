# greencandle/services/visibility.py
"""
Read-time target visibility per subscription tier.

Lower tiers see only the highest-priority targets. Nothing here writes to the
stored call, so a tier upgrade reveals the full list immediately.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

# New tiers only need a row here.
TIER_TARGET_LIMITS: Dict[str, int] = {
    "Regular": 2,
}
DEFAULT_TARGET_LIMIT = 6


@dataclass(frozen=True)
class TierDescriptor:
    plan_tier: Optional[str] = None
    max_targets_visible: Optional[int] = None

    @classmethod
    def from_subscription(cls, subscription: Optional[Mapping[str, Any]]) -> "TierDescriptor":
        subscription = subscription or {}
        return cls(
            plan_tier=subscription.get("planTier"),
            max_targets_visible=subscription.get("maxTargetsVisible"),
        )


def max_visible_targets(tier: TierDescriptor) -> int:
    # a 0 / None override falls back to the tier ladder
    if tier.max_targets_visible:
        return int(tier.max_targets_visible)
    return TIER_TARGET_LIMITS.get(tier.plan_tier or "", DEFAULT_TARGET_LIMIT)


def visible_targets(targets: List[Dict[str, Any]], limit: int) -> List[Dict[str, Any]]:
    if limit <= 0:
        return []
    # sorted() is stable, so equal orders keep their stored sequence
    ordered = sorted(targets, key=lambda t: t.get("order") or 0)
    return ordered[:limit]


def project_call(call: Dict[str, Any], tier: TierDescriptor) -> Dict[str, Any]:
    """Shallow copy of `call` with targetPrices cut down for `tier`."""
    view = dict(call)
    view["targetPrices"] = visible_targets(list(call.get("targetPrices") or []), max_visible_targets(tier))
    return view


def project_calls(calls: List[Dict[str, Any]], tier: TierDescriptor) -> List[Dict[str, Any]]:
    return [project_call(c, tier) for c in calls]
