# FastAPI Application Entry Point
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import httpx

# Configuration and Observability
from probate_filing_service.app.config import settings
from probate_filing_service.app.observability import setup_opentelemetry, logger
from probate_filing_service.app.service.exceptions import InvalidContextError

# Initialize OpenTelemetry
setup_opentelemetry(service_name=settings.SERVICE_NAME_API)

# Import instrumentors after OTel SDK is initialized
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.pymongo import PymongoInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

# Database connection
from probate_filing_service.infrastructure.database.connection import connect_to_mongo, close_mongo_connection, ensure_indexes, get_db
# Kafka Producer lifecycle
from probate_filing_service.infrastructure.kafka.producer import startup_kafka_producer, shutdown_kafka_producer

# API Routers
from probate_filing_service.app.api.v1.endpoints import health as health_router
from probate_filing_service.app.api.v1.endpoints import applications as applications_router
from probate_filing_service.app.api.v1.endpoints import documents as documents_router
from probate_filing_service.app.api.v1.endpoints import consents as consents_router

# --- FastAPI Application Instance ---
app = FastAPI(
    title="Probate Filing Service",
    description="Tracks probate applications from document preparation and family consent through court filing and grant.",
    version="0.1.0"
)

# --- Event Handlers for DB Connection & OTel Instrumentation ---
@app.on_event("startup")
async def startup_event():
    logger.info("FastAPI application startup...")
    try:
        app.state.http_client = httpx.AsyncClient(timeout=settings.DEFAULT_HTTP_TIMEOUT)
        HTTPXClientInstrumentor().instrument()
        logger.info(f"HTTPX AsyncClient initialized with timeout {settings.DEFAULT_HTTP_TIMEOUT} and instrumented.")

        PymongoInstrumentor().instrument()
        await connect_to_mongo()
        async for database in get_db():
            await ensure_indexes(database)
            break
        logger.info("MongoDB connection established and indexes ensured.")

        await startup_kafka_producer()
        logger.info("Kafka Producer polling started.")

    except Exception as e:
        logger.error(f"Failed during startup: {e}", exc_info=True)

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("FastAPI application shutdown...")

    if hasattr(app.state, 'http_client') and app.state.http_client:
        await app.state.http_client.aclose()
        logger.info("HTTPX AsyncClient closed.")

    await shutdown_kafka_producer()
    logger.info("Kafka Producer shutdown initiated and flushed.")

    close_mongo_connection()
    logger.info("MongoDB connection closed.")

# Succession context checks run while FastAPI parses request bodies.
@app.exception_handler(InvalidContextError)
async def invalid_context_exception_handler(request: Request, exc: InvalidContextError) -> JSONResponse:
    logger.warning(f"Rejected succession context on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "field": exc.field},
    )

FastAPIInstrumentor.instrument_app(app)
logger.info("FastAPI instrumentation complete.")

# Include API Routers
app.include_router(health_router.router)
app.include_router(applications_router.router, prefix="/api/v1")
app.include_router(documents_router.router, prefix="/api/v1")
app.include_router(consents_router.router, prefix="/api/v1")

logger.info("API routers included. Application setup complete.")

# To run: uvicorn probate_filing_service.app.main:app --reload --port 8000
