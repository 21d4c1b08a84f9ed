# Functions for Interacting with the application_summaries Read Model
import logging
import datetime
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from .connection import APPLICATION_SUMMARIES_COLLECTION
from .schemas import ApplicationSummaryDB

logger = logging.getLogger(__name__)

async def upsert_application_summary(db: AsyncIOMotorDatabase, summary: ApplicationSummaryDB) -> ApplicationSummaryDB:
    """Creates or replaces an application summary in the read model."""
    summary_dict = summary.model_dump(exclude={"progress_percentage"})

    await db[APPLICATION_SUMMARIES_COLLECTION].replace_one(
        {"id": summary.id},
        summary_dict,
        upsert=True
    )
    logger.info(f"Application summary upserted for ID: {summary.id}")
    return summary

async def update_application_summary(
    db: AsyncIOMotorDatabase,
    application_id: str,
    set_fields: Dict[str, Any],
    inc_fields: Optional[Dict[str, int]] = None,
    only_if_status_in: Optional[List[str]] = None,
) -> bool:
    """
    Applies a partial update to an application summary.

    When `only_if_status_in` is given the update is skipped unless the summary
    currently holds one of those statuses. Returns True if a summary was modified.
    """
    query: Dict[str, Any] = {"id": application_id}
    if only_if_status_in:
        query["status"] = {"$in": only_if_status_in}

    update: Dict[str, Any] = {"$set": {**set_fields, "updated_at": datetime.datetime.now(datetime.UTC)}}
    if inc_fields:
        update["$inc"] = inc_fields

    result = await db[APPLICATION_SUMMARIES_COLLECTION].update_one(query, update)
    if result.matched_count == 0:
        logger.debug(f"Application summary {application_id} not updated (missing or status filter {only_if_status_in}).")
        return False
    logger.info(f"Application summary updated for ID: {application_id}")
    return True

async def get_application_summary(db: AsyncIOMotorDatabase, application_id: str) -> Optional[ApplicationSummaryDB]:
    summary_doc = await db[APPLICATION_SUMMARIES_COLLECTION].find_one({"id": application_id})
    return ApplicationSummaryDB(**summary_doc) if summary_doc else None

async def list_application_summaries(
    db: AsyncIOMotorDatabase,
    status: Optional[str] = None,
    limit: int = 10,
    skip: int = 0,
) -> List[ApplicationSummaryDB]:
    query = {"status": status} if status else {}
    cursor = db[APPLICATION_SUMMARIES_COLLECTION].find(query).sort("created_at", -1).skip(skip).limit(limit)
    summary_docs = await cursor.to_list(length=limit)
    return [ApplicationSummaryDB(**doc) for doc in summary_docs]
