import asyncio
import datetime as dt

import pytz

from greencandle.mongo_collections import CALLS
from greencandle.scheduler import expire_stale_calls


def test_expiry_sweep_only_touches_stale_active_calls(db):
    now = dt.datetime(2026, 2, 6, 20, 0, tzinfo=pytz.utc)  # 7 Feb IST
    yesterday = dt.datetime(2026, 2, 5, 18, 30)              # IST midnight 6 Feb
    today_ist = dt.datetime(2026, 2, 6, 18, 30)              # IST midnight 7 Feb
    asyncio.run(db[CALLS].insert_many([
        {"commodity": "A", "status": "active", "tradingDay": yesterday},
        {"commodity": "B", "status": "partial_hit", "tradingDay": yesterday},
        {"commodity": "C", "status": "active", "tradingDay": today_ist},
    ]))

    assert asyncio.run(expire_stale_calls(db, now=now)) == 1

    rows = asyncio.run(db[CALLS].find({}, {"commodity": 1, "status": 1}).sort("commodity", 1).to_list(length=None))
    assert [(r["commodity"], r["status"]) for r in rows] == [("A", "expired"), ("B", "partial_hit"), ("C", "active")]
