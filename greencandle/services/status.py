# greencandle/services/status.py
from enum import Enum
from typing import Any, Dict, Iterable, List


class CallStatus(str, Enum):
    ACTIVE = "active"
    PARTIAL_HIT = "partial_hit"
    ALL_HIT = "all_hit"
    HIT_STOPLOSS = "hit_stoploss"
    EXPIRED = "expired"


# Set from outside the achievement rule (manual stop-loss mark, expiry sweep).
# Target toggles are refused once a call is in one of these.
TERMINAL_STATUSES = frozenset({CallStatus.HIT_STOPLOSS, CallStatus.EXPIRED})

# Statuses an admin may write directly; anything else is derived from targets.
WRITABLE_STATUSES = frozenset({CallStatus.ACTIVE, CallStatus.HIT_STOPLOSS, CallStatus.EXPIRED})


def status_from_achievements(achieved: Iterable[bool]) -> CallStatus:
    """
    Pure status rule over a call's target flags, in any order.

    none achieved -> active, some -> partial_hit, all (of at least one) -> all_hit.
    A call with no targets is active.
    """
    flags = [bool(a) for a in achieved]
    hit = sum(flags)
    if hit == 0:
        return CallStatus.ACTIVE
    if hit < len(flags):
        return CallStatus.PARTIAL_HIT
    return CallStatus.ALL_HIT


def status_for_targets(targets: List[Dict[str, Any]]) -> CallStatus:
    return status_from_achievements(t.get("isAchieved", False) for t in targets)


def is_terminal(status: Any) -> bool:
    try:
        return CallStatus(status) in TERMINAL_STATUSES
    except ValueError:
        return False
