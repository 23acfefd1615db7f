# scripts/create_indexes.py
"""
Create/ensure MongoDB indexes for the Green Candle API.

Run from project root:
  - python scripts/create_indexes.py
  - OR: python -m scripts.create_indexes
"""

import asyncio
import os
import sys

# --- Make sure 'greencandle' package is importable when running this file directly ---
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from motor.motor_asyncio import AsyncIOMotorClient  # type: ignore

from greencandle.settings import settings
from greencandle.mongo_collections import CALLS, USERS


async def ensure_indexes() -> None:
    client = AsyncIOMotorClient(settings.mongodb_uri)
    db = client[settings.mongodb_db]

    # CALLS (today / history range scans, admin filters, stats grouping)
    await db[CALLS].create_index([("tradingDay", -1), ("_id", -1)])
    await db[CALLS].create_index([("tradeType", 1), ("tradingDay", -1)])
    await db[CALLS].create_index([("commodity", 1), ("tradingDay", -1)])
    await db[CALLS].create_index([("status", 1)])
    await db[CALLS].create_index([("createdAt", -1)])
    await db[CALLS].create_index([("targetPrices._id", 1)])

    # USERS (mobile is the natural key)
    await db[USERS].create_index("mobile", unique=True)
    await db[USERS].create_index([("createdAt", -1)])
    await db[USERS].create_index([("subscription.isActive", 1), ("subscription.endDate", 1)])

    client.close()


def main() -> None:
    try:
        asyncio.run(ensure_indexes())
        print("✅ Indexes ensured.")
    except Exception as e:
        print(f"❌ Failed to create indexes: {e}")
        raise


if __name__ == "__main__":
    main()
