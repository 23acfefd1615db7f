"""
Subscriber management for admins.

Mobile number is the natural unique key. Subscriptions are embedded in the
user document; the `planTier` / `maxTargetsVisible` pair is what the call
feed reads to decide how many targets a subscriber sees.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from greencandle.errors import Conflict, NotFound, ValidationFailed
from greencandle.mongo_collections import USERS
from greencandle.services.mappers import parse_object_id, to_mongo_safe
from greencandle.services.visibility import TierDescriptor

logger = logging.getLogger(__name__)

PLAN_DURATION_DAYS = {"daily": 1, "weekly": 7}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _require_id(user_id: Any) -> ObjectId:
    oid = parse_object_id(user_id)
    if oid is None:
        raise NotFound("User", str(user_id))
    return oid


def _custom_subscription(
    access_days: Optional[int],
    is_unlimited: bool,
    plan_tier: Optional[str],
    max_targets_visible: Optional[int],
    start: datetime,
) -> Dict[str, Any]:
    return {
        "plan": "custom",
        "planTier": plan_tier,
        "maxTargetsVisible": max_targets_visible,
        "startDate": start,
        "endDate": None if is_unlimited else _now() + timedelta(days=access_days or 0),
        "isActive": True,
        "isUnlimited": is_unlimited,
    }


async def get_user_by_id(db: AsyncIOMotorDatabase, user_id: Any) -> Dict[str, Any]:
    """Get user by ObjectId (or its string form)."""
    oid = _require_id(user_id)
    user = await db[USERS].find_one({"_id": oid})
    if not user:
        raise NotFound("User", str(user_id))
    return user


async def get_user_by_mobile(db: AsyncIOMotorDatabase, mobile: str) -> Optional[Dict[str, Any]]:
    """Get user by mobile number."""
    return await db[USERS].find_one({"mobile": mobile})


async def list_users(
    db: AsyncIOMotorDatabase,
    *,
    search: Optional[str] = None,
    subscription_status: Optional[str] = None,
    skip: int = 0,
    limit: int = 10,
) -> Tuple[List[Dict[str, Any]], int]:
    """
    Page through users, newest first.

    Args:
        search: case-insensitive match on mobile, fullName or city
        subscription_status: "active" (live, not past endDate) or "inactive"
    """
    clauses: List[Dict[str, Any]] = []
    if search:
        rx = {"$regex": re.escape(search), "$options": "i"}
        clauses.append({"$or": [{"mobile": rx}, {"fullName": rx}, {"city": rx}]})

    now = _now().replace(tzinfo=None)
    if subscription_status == "active":
        clauses.append({
            "subscription.isActive": True,
            "$or": [{"subscription.isUnlimited": True}, {"subscription.endDate": {"$gt": now}}],
        })
    elif subscription_status == "inactive":
        clauses.append({"$or": [
            {"subscription.isActive": {"$ne": True}},
            {"subscription.isUnlimited": {"$ne": True}, "subscription.endDate": {"$lte": now}},
        ]})

    query: Dict[str, Any] = {"$and": clauses} if clauses else {}
    col = db[USERS]
    users = await col.find(query).sort([("createdAt", -1), ("_id", -1)]).skip(skip).limit(limit).to_list(length=limit)
    total = await col.count_documents(query)
    return users, total


async def create_user(db: AsyncIOMotorDatabase, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a subscriber. A subscription is attached only when `accessDays`
    or `isUnlimited` is given.

    Raises:
        Conflict: the mobile number is already registered.
        ValidationFailed: both accessDays and isUnlimited were given.
    """
    mobile = data["mobile"]
    access_days = data.get("accessDays")
    is_unlimited = bool(data.get("isUnlimited", False))
    if access_days and is_unlimited:
        raise ValidationFailed("Cannot set both accessDays and isUnlimited")

    if await get_user_by_mobile(db, mobile):
        raise Conflict("A user with this mobile number already exists", details={"mobile": mobile})

    now = _now()
    new_user: Dict[str, Any] = {
        "mobile": mobile,
        "fullName": data.get("fullName") or None,
        "city": data.get("city") or None,
        "isActive": data.get("isActive", True),
        "createdAt": now,
        "updatedAt": now,
        "subscription": {"isActive": False, "isUnlimited": False},
    }
    if access_days or is_unlimited:
        new_user["subscription"] = _custom_subscription(
            access_days, is_unlimited, data.get("planTier"), data.get("maxTargetsVisible"), now
        )

    new_user = to_mongo_safe(new_user)
    result = await db[USERS].insert_one(new_user)
    new_user["_id"] = result.inserted_id
    logger.info("user %s created (mobile=%s)", new_user["_id"], mobile)
    return new_user


async def update_user(db: AsyncIOMotorDatabase, user_id: Any, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Partial update. `accessDays` replaces the subscription window from today,
    or extends it from the later of now / current end when
    `extendSubscription` is set. `isUnlimited=True` removes the end date.
    """
    user = await get_user_by_id(db, user_id)
    updates: Dict[str, Any] = {}

    mobile = data.get("mobile")
    if mobile and mobile != user.get("mobile"):
        if await get_user_by_mobile(db, mobile):
            raise Conflict("A user with this mobile number already exists", details={"mobile": mobile})
        updates["mobile"] = mobile

    if "fullName" in data:
        updates["fullName"] = data["fullName"] or None
    if "city" in data:
        updates["city"] = data["city"] or None
    if isinstance(data.get("isActive"), bool):
        updates["isActive"] = data["isActive"]

    current = user.get("subscription") or {}
    plan_tier = data.get("planTier", current.get("planTier"))
    max_visible = data.get("maxTargetsVisible", current.get("maxTargetsVisible"))
    access_days = data.get("accessDays")
    is_unlimited = data.get("isUnlimited")
    extend = bool(data.get("extendSubscription", False))
    now = _now()

    if access_days and is_unlimited:
        raise ValidationFailed("Cannot set both accessDays and isUnlimited")

    if is_unlimited:
        start = current.get("startDate") if current.get("isActive") and current.get("startDate") else now
        updates["subscription"] = _custom_subscription(None, True, plan_tier, max_visible, start)
    elif access_days:
        end = current.get("endDate")
        if end is not None and end.tzinfo is None:
            end = end.replace(tzinfo=timezone.utc)
        if extend and current.get("isActive") and end:
            base = end if end > now else now
        else:
            base = now
        updates["subscription"] = {
            "plan": "custom",
            "planTier": plan_tier,
            "maxTargetsVisible": max_visible,
            "startDate": current.get("startDate") if extend and current.get("startDate") else now,
            "endDate": base + timedelta(days=access_days),
            "isActive": True,
            "isUnlimited": False,
        }
    else:
        if "planTier" in data:
            updates["subscription.planTier"] = plan_tier
        if "maxTargetsVisible" in data:
            updates["subscription.maxTargetsVisible"] = max_visible

    updates["updatedAt"] = now
    doc = await db[USERS].find_one_and_update(
        {"_id": user["_id"]},
        {"$set": to_mongo_safe(updates)},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise NotFound("User", str(user_id))
    return doc


async def update_user_status(db: AsyncIOMotorDatabase, user_id: Any, is_active: bool) -> Dict[str, Any]:
    oid = _require_id(user_id)
    doc = await db[USERS].find_one_and_update(
        {"_id": oid},
        {"$set": {"isActive": is_active, "updatedAt": to_mongo_safe(_now())}},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise NotFound("User", str(user_id))
    return doc


async def activate_subscription(
    db: AsyncIOMotorDatabase,
    user_id: Any,
    plan: str,
    plan_tier: Optional[str] = None,
) -> Dict[str, Any]:
    """Manual daily / weekly grant starting now."""
    user = await get_user_by_id(db, user_id)
    if plan not in PLAN_DURATION_DAYS:
        raise ValidationFailed("Plan must be either daily or weekly")
    current = user.get("subscription") or {}
    now = _now()
    subscription = {
        "plan": plan,
        "planTier": plan_tier or current.get("planTier"),
        "maxTargetsVisible": current.get("maxTargetsVisible"),
        "startDate": now,
        "endDate": now + timedelta(days=PLAN_DURATION_DAYS[plan]),
        "isActive": True,
        "isUnlimited": False,
    }
    doc = await db[USERS].find_one_and_update(
        {"_id": user["_id"]},
        {"$set": to_mongo_safe({"subscription": subscription, "updatedAt": now})},
        return_document=ReturnDocument.AFTER,
    )
    logger.info("user %s: %s subscription activated", user["_id"], plan)
    return doc


async def delete_user(db: AsyncIOMotorDatabase, user_id: Any) -> None:
    oid = _require_id(user_id)
    result = await db[USERS].delete_one({"_id": oid})
    if result.deleted_count == 0:
        raise NotFound("User", str(user_id))
    logger.info("user %s deleted", oid)


def tier_for_user(user: Dict[str, Any]) -> TierDescriptor:
    """Resolve the visibility tier a subscriber's read requests are projected with."""
    return TierDescriptor.from_subscription(user.get("subscription"))


def has_live_subscription(user: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    """Same rule as the "active" filter in list_users: activated and unlimited or not yet past endDate."""
    sub = user.get("subscription") or {}
    if not sub.get("isActive"):
        return False
    if sub.get("isUnlimited"):
        return True
    end = sub.get("endDate")
    if end is None:
        return False
    if end.tzinfo is None:
        end = end.replace(tzinfo=timezone.utc)
    return end > (now or _now())
