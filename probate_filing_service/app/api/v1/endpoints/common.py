# Shared helpers for the probate application routers
import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException
from pydantic import ValidationError

from probate_filing_service.app.domain.application import ProbateApplication
from probate_filing_service.app.domain.readiness import ReadinessReport
from probate_filing_service.app.service.exceptions import (
    ApplicationNotFoundError,
    ChildNotFoundError,
    ConcurrencyConflictError,
    ConfigurationError,
    ConsentDeliveryError,
    DocumentRenderingError,
    InvalidTransitionError,
    InvariantViolationError,
    KafkaProducerError,
    NotReadyToFileError,
)

logger = logging.getLogger(__name__)


def readiness_view(report: ReadinessReport) -> Dict[str, Any]:
    return {
        "is_ready": report.is_ready,
        "failed_conditions": [c.value for c in report.failed_conditions],
        "blocking_reasons": report.blocking_reasons,
        "unapproved_document_ids": list(report.unapproved_document_ids),
        "outstanding_consent_ids": list(report.outstanding_consent_ids),
        "declined_consent_ids": list(report.declined_consent_ids),
        "unsigned_document_ids": list(report.unsigned_document_ids),
    }


def application_view(application: ProbateApplication) -> Dict[str, Any]:
    return {
        "application_id": application.id,
        "status": application.status.value,
        "version": application.version,
        "progress_percentage": application.progress_percentage(),
        "readiness": readiness_view(application.readiness()),
    }


def to_http_exception(exc: Exception, action: str) -> HTTPException:
    """Maps a service-layer exception raised while performing `action` to an HTTP error."""
    if isinstance(exc, HTTPException):
        return exc
    if isinstance(exc, (ApplicationNotFoundError, ChildNotFoundError)):
        logger.info(f"{action}: {exc}")
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConcurrencyConflictError):
        logger.warning(f"Concurrency conflict during {action}: {exc}")
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, NotReadyToFileError):
        logger.warning(f"{action} refused: {exc}")
        return HTTPException(
            status_code=422,
            detail={
                "message": str(exc),
                "current_state": exc.current_state,
                "failed_conditions": [c.value for c in exc.failed_conditions],
                "blocking_reasons": exc.blocking_reasons,
            },
        )
    if isinstance(exc, (InvariantViolationError, InvalidTransitionError)):
        logger.warning(f"{action} refused: {exc}")
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ValidationError):
        logger.warning(f"Validation error during {action}: {exc}")
        return HTTPException(status_code=422, detail=exc.errors(include_url=False))
    if isinstance(exc, ValueError):
        logger.warning(f"Validation error during {action}: {exc}")
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, KafkaProducerError):
        logger.error(f"Kafka producer error during {action}: {exc}", exc_info=True)
        return HTTPException(status_code=502, detail=f"Failed to publish essential notification event: {exc}")
    if isinstance(exc, (DocumentRenderingError, ConsentDeliveryError)):
        logger.error(f"Upstream service error during {action}: {exc}", exc_info=True)
        return HTTPException(status_code=502, detail=str(exc))
    if isinstance(exc, ConfigurationError):
        logger.error(f"Configuration error during {action}: {exc}", exc_info=True)
        return HTTPException(status_code=503, detail=str(exc))
    logger.error(f"Unexpected error during {action}: {exc}", exc_info=True)
    return HTTPException(status_code=500, detail=f"An unexpected error occurred during {action}.")


async def run_command(handler, command_cls, application_id: str, request_data: Optional[Dict[str, Any]], action: str,
                      db, repository, kafka_producer, *collaborators):
    """Builds `command_cls` for the application and runs `handler`, translating failures to HTTP errors."""
    try:
        command = command_cls(application_id=application_id, **(request_data or {}))
        return await handler(db, command, repository, kafka_producer, *collaborators)
    except Exception as e:
        raise to_http_exception(e, f"{action} for application {application_id}") from e
