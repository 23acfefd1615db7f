"""FastAPI dependencies"""
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from greencandle.services.user_management import get_user_by_id, has_live_subscription, tier_for_user
from greencandle.services.visibility import TierDescriptor


def get_db(request: Request) -> AsyncIOMotorDatabase:
    """DB handle opened in the app lifespan"""
    return request.app.state.mongodb


# Identity is resolved upstream (gateway / auth service); these only read the result.

def get_admin_id(x_admin_id: Optional[str] = Header(default=None)) -> str:
    if not x_admin_id:
        raise HTTPException(status_code=401, detail="Admin identity required")
    return x_admin_id


async def get_subscriber_tier(
    x_user_id: Optional[str] = Header(default=None),
    db: AsyncIOMotorDatabase = Depends(get_db),
) -> TierDescriptor:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Subscriber identity required")
    user = await get_user_by_id(db, x_user_id)
    if user.get("isActive") is False:
        raise HTTPException(status_code=403, detail="Account disabled")
    if not has_live_subscription(user):
        raise HTTPException(status_code=403, detail="Active subscription required")
    return tier_for_user(user)
