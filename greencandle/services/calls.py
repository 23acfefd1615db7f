# greencandle/services/calls.py
"""
Call aggregate: create / read / update / delete and target achievement.

Every write that touches `targetPrices` also writes the status derived from
them in the same single-document `$set`, so no reader sees one without the
other. Target toggles hold a per-call lock within the process and write
with a compare-and-set on the targets they read, which also covers other
workers.
"""
from __future__ import annotations

import asyncio
import datetime as dt
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from greencandle.errors import Conflict, NotFound, TargetNotFound, ValidationFailed
from greencandle.mongo_collections import CALLS
from greencandle.services.calendar import normalize_to_trading_day
from greencandle.services.mappers import parse_object_id, to_mongo_safe
from greencandle.services.status import (
    WRITABLE_STATUSES,
    CallStatus,
    is_terminal,
    status_for_targets,
)

logger = logging.getLogger(__name__)

DEFAULT_TRADE_TYPE = "intraday"

# fields update_call may overwrite as-is; only the optional ones may be cleared
_PLAIN_FIELDS = ("commodity", "customCommodity", "type", "entryPrice", "stopLoss", "analysis", "tradeType")
_NULLABLE_FIELDS = ("customCommodity", "stopLoss", "analysis")


# ---------- per-call locks ----------

_locks: Dict[str, asyncio.Lock] = {}
_lock_users: Dict[str, int] = {}


@asynccontextmanager
async def call_lock(call_id: ObjectId):
    """Serialize read-modify-write on one call. Entries are dropped when idle."""
    key = str(call_id)
    lock = _locks.setdefault(key, asyncio.Lock())
    _lock_users[key] = _lock_users.get(key, 0) + 1
    try:
        async with lock:
            yield
    finally:
        _lock_users[key] -= 1
        if _lock_users[key] == 0:
            del _lock_users[key]
            _locks.pop(key, None)


# ---------- helpers ----------

def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def build_targets(raw: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Give each target an id, an order (1-based position if missing) and a
    boolean flag. A supplied `_id` is kept unless it repeats within `raw`.
    """
    out = []
    seen = set()
    for i, t in enumerate(raw, start=1):
        order = t.get("order")
        tid = parse_object_id(t.get("_id"))
        if tid is None or tid in seen:
            tid = ObjectId()
        seen.add(tid)
        out.append({
            "_id": tid,
            "price": t["price"],
            "order": i if order is None else int(order),
            "isAchieved": bool(t.get("isAchieved", False)),
        })
    return out


def _require_id(call_id: Any) -> ObjectId:
    oid = parse_object_id(call_id)
    if oid is None:
        raise NotFound("Call", str(call_id))
    return oid


# ---------- CRUD ----------

async def create_call(db: AsyncIOMotorDatabase, data: Dict[str, Any], created_by: Optional[str]) -> Dict[str, Any]:
    """
    Insert a new call.

    `data` uses the API field names; the trading day may arrive as `tradingDay`
    or the legacy `date`. The date is normalized before anything is written,
    so an unparseable date never produces a document.
    """
    raw_day = data.get("tradingDay") or data.get("date")
    trading_day = normalize_to_trading_day(raw_day)

    targets = build_targets(data.get("targetPrices") or [])
    status = status_for_targets(targets)

    requested = data.get("status")
    if requested:
        requested = CallStatus(requested)
        if requested in WRITABLE_STATUSES and requested != CallStatus.ACTIVE:
            status = requested

    now = _now()
    doc = to_mongo_safe({
        "commodity": data["commodity"],
        "customCommodity": data.get("customCommodity"),
        "type": data["type"],
        "entryPrice": data["entryPrice"],
        "targetPrices": targets,
        "stopLoss": data.get("stopLoss"),
        "analysis": data.get("analysis"),
        "tradingDay": trading_day,
        "status": status,
        "tradeType": data.get("tradeType") or DEFAULT_TRADE_TYPE,
        "createdBy": created_by,
        "createdAt": now,
        "updatedAt": now,
    })
    result = await db[CALLS].insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info("call %s created by %s for %s (%s)", doc["_id"], created_by, trading_day.isoformat(), status.value)
    return doc


async def get_call(db: AsyncIOMotorDatabase, call_id: Any) -> Dict[str, Any]:
    oid = _require_id(call_id)
    doc = await db[CALLS].find_one({"_id": oid})
    if not doc:
        raise NotFound("Call", str(call_id))
    return doc


async def update_call(db: AsyncIOMotorDatabase, call_id: Any, changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Overwrite the given fields.

    Plain fields are written as-is with no effect on status. A new trading
    day is normalized first. Replacing `targetPrices` recomputes status
    unless the call is stopped-out/expired. A direct `status` write accepts
    `hit_stoploss`, `expired` or `active`; `active` reopens the call and
    re-derives status from its targets.
    """
    oid = _require_id(call_id)
    update: Dict[str, Any] = {
        k: changes[k]
        for k in _PLAIN_FIELDS
        if k in changes and (changes[k] is not None or k in _NULLABLE_FIELDS)
    }

    raw_day = changes.get("tradingDay") or changes.get("date")
    if raw_day:
        update["tradingDay"] = normalize_to_trading_day(raw_day)

    requested = changes.get("status")
    if requested is not None:
        requested = CallStatus(requested)
        if requested not in WRITABLE_STATUSES:
            raise ValidationFailed(
                f"status '{requested.value}' is derived from targets and cannot be set directly",
                details={"allowed": sorted(s.value for s in WRITABLE_STATUSES)},
            )

    new_targets = changes.get("targetPrices")

    async with call_lock(oid):
        current = await db[CALLS].find_one({"_id": oid})
        if not current:
            raise NotFound("Call", str(call_id))

        targets = current.get("targetPrices") or []
        if new_targets is not None:
            targets = build_targets(new_targets)
            update["targetPrices"] = targets

        if requested is not None and requested != CallStatus.ACTIVE:
            update["status"] = requested
        elif requested == CallStatus.ACTIVE:
            update["status"] = status_for_targets(targets)
        elif new_targets is not None and not is_terminal(current.get("status")):
            update["status"] = status_for_targets(targets)

        update["updatedAt"] = _now()
        doc = await db[CALLS].find_one_and_update(
            {"_id": oid},
            {"$set": to_mongo_safe(update)},
            return_document=ReturnDocument.AFTER,
        )
    if not doc:
        raise NotFound("Call", str(call_id))
    logger.info("call %s updated: %s", oid, sorted(k for k in update if k != "updatedAt"))
    return doc


async def delete_call(db: AsyncIOMotorDatabase, call_id: Any) -> None:
    oid = _require_id(call_id)
    result = await db[CALLS].delete_one({"_id": oid})
    if result.deleted_count == 0:
        raise NotFound("Call", str(call_id))
    logger.info("call %s deleted", oid)


# ---------- target achievement ----------

# compare-and-set attempts before a toggle gives up with Conflict
TOGGLE_ATTEMPTS = 5


async def _read_call(db: AsyncIOMotorDatabase, oid: ObjectId) -> Optional[Dict[str, Any]]:
    return await db[CALLS].find_one({"_id": oid})


async def set_target_achieved(
    db: AsyncIOMotorDatabase,
    call_id: Any,
    target_id: Any,
    achieved: bool,
) -> Dict[str, Any]:
    """
    Flip one target's `isAchieved` and re-derive the call status.

    The write only applies if the call's targets and status are still what
    was read, so toggles from other processes are never overwritten; on a
    mismatch the call is re-read and the toggle retried.

    Raises:
        NotFound: unknown call.
        TargetNotFound: `target_id` is not one of this call's targets.
        Conflict: the call is stopped-out or expired (reopen it first), or
            it kept changing underneath every attempt.
    """
    oid = _require_id(call_id)
    tid = parse_object_id(target_id)

    async with call_lock(oid):
        for attempt in range(1, TOGGLE_ATTEMPTS + 1):
            call = await _read_call(db, oid)
            if not call:
                raise NotFound("Call", str(call_id))

            seen_targets = call.get("targetPrices") or []
            targets = [dict(t) for t in seen_targets]
            hit = next((t for t in targets if tid is not None and t.get("_id") == tid), None)
            if hit is None:
                raise TargetNotFound(str(target_id), str(oid))

            if is_terminal(call.get("status")):
                raise Conflict(
                    f"Call is {call['status']}; reopen it before changing targets",
                    details={"status": call["status"]},
                )

            hit["isAchieved"] = bool(achieved)
            status = status_for_targets(targets)

            doc = await db[CALLS].find_one_and_update(
                {"_id": oid, "targetPrices": seen_targets, "status": call.get("status")},
                {"$set": {
                    "targetPrices": targets,
                    "status": status.value,
                    "updatedAt": to_mongo_safe(_now()),
                }},
                return_document=ReturnDocument.AFTER,
            )
            if doc:
                logger.info("call %s target %s achieved=%s -> %s", oid, tid, bool(achieved), status.value)
                return doc
            logger.warning("call %s changed during target toggle (attempt %d)", oid, attempt)

    raise Conflict(
        "Call was modified concurrently; retry the request",
        details={"callId": str(oid), "targetId": str(target_id)},
    )
