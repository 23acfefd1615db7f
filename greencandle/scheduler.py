# greencandle/scheduler.py
import datetime as dt
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from motor.motor_asyncio import AsyncIOMotorDatabase

from greencandle.mongo_collections import CALLS
from greencandle.services.calendar import IST, as_mongo_datetime, today
from greencandle.services.status import CallStatus
from greencandle.settings import settings

logger = logging.getLogger(__name__)


async def expire_stale_calls(db: AsyncIOMotorDatabase, now=None) -> int:
    """
    Mark calls from earlier trading days that never hit a target as expired.
    Calls with partial or full hits keep their status.
    """
    cutoff = as_mongo_datetime(today(now).start())
    result = await db[CALLS].update_many(
        {"tradingDay": {"$lt": cutoff}, "status": CallStatus.ACTIVE.value},
        {"$set": {
            "status": CallStatus.EXPIRED.value,
            "updatedAt": as_mongo_datetime(dt.datetime.now(dt.timezone.utc)),
        }},
    )
    return result.modified_count


class Scheduler:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        # cron fields are read on the IST clock so "just after midnight" means the trading-day rollover
        self.scheduler = AsyncIOScheduler(timezone=IST)

    def start(self):
        self.scheduler.add_job(
            self.expire_calls_job,
            CronTrigger(hour=settings.expiry_sweep_hour, minute=settings.expiry_sweep_minute, timezone=IST),
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()

    def shutdown(self):
        if getattr(self.scheduler, "running", False):
            self.scheduler.shutdown(wait=False)

    async def expire_calls_job(self):
        try:
            n = await expire_stale_calls(self.db)
            logger.info("expiry sweep: %d call(s) expired", n)
        except Exception:
            logger.exception("expiry sweep failed")
