# scripts/fix_max_targets.py
"""
Cap subscription.maxTargetsVisible to what each tier allows.

- the old hard-coded 99 becomes the default limit
- Premium / International above the default are capped to it
- Regular above its tier limit is capped to it

  python scripts/fix_max_targets.py
"""

import os
import sys

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from pymongo import MongoClient

from greencandle.mongo_collections import USERS
from greencandle.services.visibility import DEFAULT_TARGET_LIMIT, TIER_TARGET_LIMITS
from greencandle.settings import settings

LEGACY_UNLIMITED = 99


def fix_max_targets(db) -> dict:
    users = db[USERS]
    out = {}
    out["legacy"] = users.update_many(
        {"subscription.maxTargetsVisible": LEGACY_UNLIMITED},
        {"$set": {"subscription.maxTargetsVisible": DEFAULT_TARGET_LIMIT}},
    ).modified_count
    out["default_tiers"] = users.update_many(
        {
            "subscription.planTier": {"$nin": list(TIER_TARGET_LIMITS)},
            "subscription.maxTargetsVisible": {"$gt": DEFAULT_TARGET_LIMIT},
        },
        {"$set": {"subscription.maxTargetsVisible": DEFAULT_TARGET_LIMIT}},
    ).modified_count
    for tier, limit in TIER_TARGET_LIMITS.items():
        out[tier] = users.update_many(
            {"subscription.planTier": tier, "subscription.maxTargetsVisible": {"$gt": limit}},
            {"$set": {"subscription.maxTargetsVisible": limit}},
        ).modified_count
    return out


def main() -> None:
    client = MongoClient(settings.mongodb_uri)
    try:
        result = fix_max_targets(client[settings.mongodb_db])
    finally:
        client.close()
    for bucket, n in result.items():
        print(f"{bucket}: {n} user(s) updated")
    print("Migration completed successfully.")


if __name__ == "__main__":
    main()
