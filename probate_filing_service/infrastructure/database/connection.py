# Motor client lifecycle and collection layout for the probate filing store
import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from probate_filing_service.app.config import settings

logger = logging.getLogger(__name__)

APPLICATIONS_COLLECTION = "probate_applications"
APPLICATION_SUMMARIES_COLLECTION = "application_summaries"

client: Optional[AsyncIOMotorClient] = None
db: Optional[AsyncIOMotorDatabase] = None


async def connect_to_mongo():
    global client, db
    if db is not None:
        return

    logger.info(f"Connecting to MongoDB at {settings.MONGO_DETAILS} (database {settings.DB_NAME})")
    # tz_aware so stored datetimes compare with the clock's UTC values
    candidate = AsyncIOMotorClient(settings.MONGO_DETAILS, tz_aware=True)
    try:
        await candidate.admin.command('ping')
    except Exception as e:
        candidate.close()
        logger.error(f"MongoDB unreachable at {settings.MONGO_DETAILS}: {e}", exc_info=True)
        raise ConnectionError(f"Failed to connect to MongoDB: {e}")
    client = candidate
    db = client[settings.DB_NAME]


async def ensure_indexes(database: AsyncIOMotorDatabase):
    applications = database[APPLICATIONS_COLLECTION]
    await applications.create_index([("id", ASCENDING)], unique=True)
    await applications.create_index([("estate_id", ASCENDING)])

    summaries = database[APPLICATION_SUMMARIES_COLLECTION]
    await summaries.create_index([("id", ASCENDING)], unique=True)
    await summaries.create_index([("status", ASCENDING), ("created_at", DESCENDING)])
    logger.info("Probate application indexes in place.")


def close_mongo_connection():
    global client, db
    if client is not None:
        client.close()
    client = None
    db = None


async def get_db():
    if db is None:
        logger.warning("MongoDB not connected yet; connecting on first request.")
        await connect_to_mongo()
    yield db


def get_client() -> Optional[AsyncIOMotorClient]:
    return client
