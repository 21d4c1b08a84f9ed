# API Router for Health Checks
from fastapi import APIRouter, Depends
import logging

from motor.motor_asyncio import AsyncIOMotorDatabase

from probate_filing_service.infrastructure.database.connection import get_db
from probate_filing_service.infrastructure.kafka import producer as kafka_producer_module
from probate_filing_service.app.config import settings

logger = logging.getLogger(__name__)
router = APIRouter()

@router.get("/health", tags=["Monitoring"])
async def health_check(db: AsyncIOMotorDatabase = Depends(get_db)):
    mongodb_status = "connected"
    try:
        await db.command('ping')
    except Exception as e:
        logger.error(f"MongoDB health check ping failed: {e}")
        mongodb_status = "disconnected"

    kafka_status = "initialized" if kafka_producer_module.is_kafka_producer_initialized() else "not_initialized"
    overall = "ok" if mongodb_status == "connected" else "degraded"
    return {
        "status": overall,
        "components": {"mongodb": mongodb_status, "kafka_producer": kafka_status},
        "service_name": settings.SERVICE_NAME_API,
    }
