# greencandle/services/queries.py
"""
Filters and aggregations over the calls collection.

Filter builders are pure (they return Mongo query dicts with naive-UTC
bounds); the async functions run them against Motor. Stats are recomputed
on every request.
"""
from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from greencandle.mongo_collections import CALLS
from greencandle.services.calendar import (
    as_mongo_datetime,
    days_ago,
    normalize_to_trading_day,
    today,
)
from greencandle.services.status import CallStatus

logger = logging.getLogger(__name__)

HISTORY_DEFAULT_DAYS = 7

ADMIN_SORT_FIELDS = ("tradingDay", "createdAt", "updatedAt", "entryPrice", "commodity", "status")


def today_filter(trade_type: Optional[str] = None, *, now: dt.datetime | None = None) -> Dict[str, Any]:
    """
    tradingDay >= start of today (IST). No upper bound: a call entered for a
    later day shows up as soon as it is created.
    """
    f: Dict[str, Any] = {"tradingDay": {"$gte": as_mongo_datetime(today(now).start())}}
    if trade_type:
        f["tradeType"] = trade_type
    return f


def history_window(
    start_date: Any = None,
    end_date: Any = None,
    *,
    now: dt.datetime | None = None,
) -> Tuple[dt.datetime, dt.datetime]:
    """Inclusive [start-of-day, end-of-day] bounds; defaults to the trailing 7 trading days."""
    start = normalize_to_trading_day(start_date) if start_date else days_ago(HISTORY_DEFAULT_DAYS, now)
    end = normalize_to_trading_day(end_date) if end_date else today(now)
    return as_mongo_datetime(start.start()), as_mongo_datetime(end.end())


def history_filter(
    commodity: Optional[str] = None,
    trade_type: Optional[str] = None,
    start_date: Any = None,
    end_date: Any = None,
    *,
    now: dt.datetime | None = None,
) -> Dict[str, Any]:
    lo, hi = history_window(start_date, end_date, now=now)
    f: Dict[str, Any] = {"tradingDay": {"$gte": lo, "$lte": hi}}
    if commodity:
        f["commodity"] = commodity
    if trade_type:
        f["tradeType"] = trade_type
    return f


def admin_filter(
    commodity: Optional[str] = None,
    status: Optional[str] = None,
    call_type: Optional[str] = None,
    trade_type: Optional[str] = None,
    start_date: Any = None,
    end_date: Any = None,
) -> Dict[str, Any]:
    f: Dict[str, Any] = {}
    if commodity:
        f["commodity"] = commodity
    if status:
        f["status"] = status
    if call_type:
        f["type"] = call_type
    if trade_type:
        f["tradeType"] = trade_type
    if start_date or end_date:
        f["tradingDay"] = {}
        if start_date:
            f["tradingDay"]["$gte"] = as_mongo_datetime(normalize_to_trading_day(start_date).start())
        if end_date:
            f["tradingDay"]["$lte"] = as_mongo_datetime(normalize_to_trading_day(end_date).end())
    return f


def admin_sort(sort_by: Optional[str], sort_order: Optional[str]) -> List[Tuple[str, int]]:
    field = sort_by if sort_by in ADMIN_SORT_FIELDS else "tradingDay"
    # _id as tiebreaker keeps pages stable when many calls share a day
    direction = 1 if sort_order == "asc" else -1
    return [(field, direction), ("_id", direction)]


async def find_page(
    db: AsyncIOMotorDatabase,
    query: Dict[str, Any],
    sort: List[Tuple[str, int]],
    skip: int,
    limit: int,
) -> Tuple[List[Dict[str, Any]], int]:
    col = db[CALLS]
    docs = await col.find(query).sort(sort).skip(skip).limit(limit).to_list(length=limit)
    total = await col.count_documents(query)
    return docs, total


async def find_today(db: AsyncIOMotorDatabase, trade_type: Optional[str] = None) -> List[Dict[str, Any]]:
    query = today_filter(trade_type)
    return await db[CALLS].find(query).sort([("createdAt", -1), ("_id", -1)]).to_list(length=None)


# ---------- stats ----------

def accuracy(hit_target: int, hit_stoploss: int) -> float:
    """hit / (hit + stoploss) as a percentage, 2 dp; 0 when nothing has resolved."""
    completed = hit_target + hit_stoploss
    if completed <= 0:
        return 0
    return round(hit_target / completed * 100, 2)


def _count_if(*statuses: CallStatus) -> Dict[str, Any]:
    cond = {"$or": [{"$eq": ["$status", s.value]} for s in statuses]}
    return {"$sum": {"$cond": [cond, 1, 0]}}


def overall_stats_pipeline() -> List[Dict[str, Any]]:
    return [
        {
            "$group": {
                "_id": None,
                "totalCalls": {"$sum": 1},
                "hitTarget": _count_if(CallStatus.PARTIAL_HIT, CallStatus.ALL_HIT),
                "allTargetsHit": _count_if(CallStatus.ALL_HIT),
                "hitStoploss": _count_if(CallStatus.HIT_STOPLOSS),
                "activeCalls": _count_if(CallStatus.ACTIVE),
                "expiredCalls": _count_if(CallStatus.EXPIRED),
            }
        }
    ]


def commodity_stats_pipeline() -> List[Dict[str, Any]]:
    return [
        {
            "$group": {
                "_id": "$commodity",
                "totalCalls": {"$sum": 1},
                "hitTarget": _count_if(CallStatus.PARTIAL_HIT, CallStatus.ALL_HIT),
                "hitStoploss": _count_if(CallStatus.HIT_STOPLOSS),
            }
        },
        {"$sort": {"_id": 1}},
    ]


EMPTY_STATS = {
    "totalCalls": 0,
    "hitTarget": 0,
    "allTargetsHit": 0,
    "hitStoploss": 0,
    "activeCalls": 0,
    "expiredCalls": 0,
}


def shape_overall_stats(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    row = rows[0] if rows else {}
    out = {k: int(row.get(k, 0)) for k in EMPTY_STATS}
    out["accuracy"] = accuracy(out["hitTarget"], out["hitStoploss"])
    return out


def shape_commodity_stats(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    out = []
    for row in rows:
        hit, sl = int(row.get("hitTarget", 0)), int(row.get("hitStoploss", 0))
        out.append({
            "commodity": row.get("_id"),
            "totalCalls": int(row.get("totalCalls", 0)),
            "hitTarget": hit,
            "hitStoploss": sl,
            "accuracy": accuracy(hit, sl),
        })
    # Mongo already sorts; re-sort so None groups cannot break ordering
    out.sort(key=lambda r: (r["commodity"] is None, r["commodity"] or ""))
    return out


async def compute_stats(db: AsyncIOMotorDatabase) -> Dict[str, Any]:
    rows = await db[CALLS].aggregate(overall_stats_pipeline()).to_list(length=None)
    stats = shape_overall_stats(rows)
    logger.debug("call stats: %s", stats)
    return stats


async def compute_commodity_stats(db: AsyncIOMotorDatabase) -> List[Dict[str, Any]]:
    rows = await db[CALLS].aggregate(commodity_stats_pipeline()).to_list(length=None)
    return shape_commodity_stats(rows)
