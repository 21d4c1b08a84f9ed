# Application Configuration using Pydantic BaseSettings
import logging
from typing import Optional

from pydantic_settings import BaseSettings


class AppSettings(BaseSettings):
    # MongoDB
    MONGO_DETAILS: str = "mongodb://mongo:27017"
    DB_NAME: str = "probate_filing_db"
    MONGO_USE_TRANSACTIONS: bool = False  # requires a replica set

    # Kafka
    KAFKA_BOOTSTRAP_SERVERS: str = "kafka:29092"
    PROBATE_EVENTS_TOPIC: str = "probate_application_events"

    # Observability
    LOG_LEVEL: str = "INFO"
    OTEL_EXPORTER_OTLP_TRACES_ENDPOINT: Optional[str] = None
    OTEL_EXPORTER_OTLP_METRICS_ENDPOINT: Optional[str] = None
    SERVICE_NAME_API: str = "probate-filing-api"

    # Downstream services
    RENDERING_SERVICE_URL: Optional[str] = None  # e.g. http://localhost:8082/api/v1
    COMMUNICATION_SERVICE_URL: Optional[str] = None
    DEFAULT_HTTP_TIMEOUT: float = 10.0

    # Consent requests
    CONSENT_REQUEST_EXPIRY_DAYS: int = 30

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


# Instantiate settings to be imported by other modules
settings = AppSettings()

logger = logging.getLogger(__name__)
logger.info("Application settings module initialized.")
