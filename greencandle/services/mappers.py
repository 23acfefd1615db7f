# greencandle/services/mappers.py
from __future__ import annotations
from typing import Any, Dict, List, Optional
import datetime as dt
from decimal import Decimal
from enum import Enum

from bson import ObjectId

from greencandle.services.calendar import TradingDay


def to_mongo_safe(value: Any) -> Any:
    """
    Recursively convert values so MongoDB can encode them.
    - TradingDay -> its IST-midnight instant (naive UTC)
    - tz-aware datetime -> naive UTC datetime
    - Decimal -> float
    - Enum -> value
    - dict/list -> recurse
    """
    if isinstance(value, TradingDay):
        value = value.instant

    if isinstance(value, dt.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(dt.timezone.utc).replace(tzinfo=None)
        return value

    if isinstance(value, Decimal):
        return float(value)

    if isinstance(value, Enum):
        return value.value

    if isinstance(value, dict):
        return {k: to_mongo_safe(v) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        return [to_mongo_safe(v) for v in value]

    return value


def _iso(ts: Optional[dt.datetime]) -> Optional[str]:
    if ts is None:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=dt.timezone.utc)
    return ts.astimezone(dt.timezone.utc).isoformat().replace("+00:00", "Z")


def map_target(t: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "_id": str(t["_id"]) if t.get("_id") is not None else None,
        "price": t.get("price"),
        "order": t.get("order", 0),
        "isAchieved": bool(t.get("isAchieved", False)),
    }


def map_call(doc: Dict[str, Any], *, include_creator: bool = True) -> Dict[str, Any]:
    """Stored call -> JSON-ready dict. `tradingDate` is the IST calendar date of `tradingDay`."""
    trading_day = doc.get("tradingDay")
    out = {
        "_id": str(doc["_id"]),
        "commodity": doc.get("commodity"),
        "customCommodity": doc.get("customCommodity"),
        "type": doc.get("type"),
        "entryPrice": doc.get("entryPrice"),
        "targetPrices": [map_target(t) for t in doc.get("targetPrices") or []],
        "stopLoss": doc.get("stopLoss"),
        "analysis": doc.get("analysis"),
        "tradingDay": _iso(trading_day),
        "tradingDate": TradingDay.from_instant(trading_day).isoformat() if trading_day else None,
        "status": doc.get("status"),
        "tradeType": doc.get("tradeType"),
        "createdAt": _iso(doc.get("createdAt")),
        "updatedAt": _iso(doc.get("updatedAt")),
    }
    if include_creator:
        out["createdBy"] = doc.get("createdBy")
    return out


def map_calls(docs: List[Dict[str, Any]], *, include_creator: bool = True) -> List[Dict[str, Any]]:
    return [map_call(d, include_creator=include_creator) for d in docs]


def map_user(doc: Dict[str, Any]) -> Dict[str, Any]:
    sub = doc.get("subscription") or {}
    return {
        "_id": str(doc["_id"]),
        "mobile": doc.get("mobile"),
        "fullName": doc.get("fullName"),
        "city": doc.get("city"),
        "isActive": doc.get("isActive", True),
        "subscription": {
            "plan": sub.get("plan"),
            "planTier": sub.get("planTier"),
            "maxTargetsVisible": sub.get("maxTargetsVisible"),
            "startDate": _iso(sub.get("startDate")),
            "endDate": _iso(sub.get("endDate")),
            "isActive": sub.get("isActive", False),
            "isUnlimited": sub.get("isUnlimited", False),
        },
        "createdAt": _iso(doc.get("createdAt")),
        "updatedAt": _iso(doc.get("updatedAt")),
    }


def map_users(docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [map_user(d) for d in docs]


def parse_object_id(value: Any) -> Optional[ObjectId]:
    """ObjectId for a valid id string, else None (callers turn None into NotFound)."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None
