# greencandle/db.py
import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from greencandle.settings import settings

logger = logging.getLogger(__name__)

mongo_client: AsyncIOMotorClient | None = None

async def connect_to_mongo() -> AsyncIOMotorDatabase:
    """
    Open the shared client and return the calls database handle.
    Datetimes come back naive UTC; the calendar module relies on that.
    """
    global mongo_client
    mongo_client = AsyncIOMotorClient(
        settings.mongodb_uri,
        appname="greencandle",
        serverSelectionTimeoutMS=5000,
    )
    logger.info("Mongo client opened (db=%s)", settings.mongodb_db)
    return mongo_client[settings.mongodb_db]

async def ping(db: AsyncIOMotorDatabase) -> bool:
    try:
        await db.command("ping")
        return True
    except Exception as e:
        logger.warning("Mongo health ping failed: %r", e)
        return False

async def close_mongo_connection():
    global mongo_client
    if mongo_client:
        mongo_client.close()
        mongo_client = None
        logger.info("Mongo client closed")
