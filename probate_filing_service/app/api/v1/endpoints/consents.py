# API Router for family consents on a probate application
from fastapi import APIRouter, Depends, Body
import logging
from typing import Any, Dict, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from probate_filing_service.app.service.commands import handlers
from probate_filing_service.app.service.commands import models as commands
from probate_filing_service.app.service.interfaces.application_repository import AbstractProbateApplicationRepository
from probate_filing_service.app.service.interfaces.consent_communicator import AbstractConsentCommunicator
from probate_filing_service.infrastructure.communication_service_client import get_consent_communicator
from probate_filing_service.infrastructure.database.application_repository import get_application_repository
from probate_filing_service.infrastructure.database.connection import get_db
from probate_filing_service.infrastructure.kafka.producer import ProbateEventProducer, get_kafka_producer
from .common import application_view, run_command, to_http_exception

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/applications/{application_id}/consents", tags=["Consents"])
async def list_consents(
    application_id: str,
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository)
):
    """Lists consents ordered by follow-up priority, most urgent first."""
    try:
        application = await handlers.load_application(repository, application_id)
    except Exception as e:
        raise to_http_exception(e, f"loading consents for application {application_id}") from e
    now = application.clock.now()
    return [
        {**consent.model_dump(mode="json"), "days_until_expiry": consent.days_until_expiry(now)}
        for consent in application.consents_by_priority()
    ]


@router.post("/applications/{application_id}/consents", status_code=201, tags=["Consents"])
async def add_consent(
    application_id: str,
    request_data: Dict[str, Any] = Body(...),
    db: AsyncIOMotorDatabase = Depends(get_db),
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository),
    kafka_producer: ProbateEventProducer = Depends(get_kafka_producer)
):
    consent = await run_command(
        handlers.handle_add_consent, commands.AddConsentCommand, application_id, request_data,
        "adding consent", db, repository, kafka_producer,
    )
    return {"consent_id": consent.id, "family_member_id": consent.family_member_id, "status": consent.status.value}


@router.post("/applications/{application_id}/consents/{consent_id}/requests", status_code=202, tags=["Consents"])
async def send_consent_request(
    application_id: str,
    consent_id: str,
    request_data: Dict[str, Any] = Body(...),
    db: AsyncIOMotorDatabase = Depends(get_db),
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository),
    kafka_producer: ProbateEventProducer = Depends(get_kafka_producer),
    communicator: AbstractConsentCommunicator = Depends(get_consent_communicator)
):
    """Records the consent request and then delivers it; delivery failures are reported, not rolled back."""
    return await run_command(
        handlers.handle_send_consent_request, commands.SendConsentRequestCommand, application_id,
        {**request_data, "consent_id": consent_id}, "sending consent request",
        db, repository, kafka_producer, communicator,
    )


@router.post("/applications/{application_id}/consents/{consent_id}/grant", tags=["Consents"])
async def record_consent_granted(
    application_id: str,
    consent_id: str,
    request_data: Optional[Dict[str, Any]] = Body(None),
    db: AsyncIOMotorDatabase = Depends(get_db),
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository),
    kafka_producer: ProbateEventProducer = Depends(get_kafka_producer)
):
    application = await run_command(
        handlers.handle_record_consent_granted, commands.RecordConsentGrantedCommand, application_id,
        {**(request_data or {}), "consent_id": consent_id}, "recording consent grant", db, repository, kafka_producer,
    )
    return application_view(application)


@router.post("/applications/{application_id}/consents/{consent_id}/decline", tags=["Consents"])
async def record_consent_declined(
    application_id: str,
    consent_id: str,
    request_data: Dict[str, Any] = Body(...),
    db: AsyncIOMotorDatabase = Depends(get_db),
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository),
    kafka_producer: ProbateEventProducer = Depends(get_kafka_producer)
):
    application = await run_command(
        handlers.handle_record_consent_declined, commands.RecordConsentDeclinedCommand, application_id,
        {**request_data, "consent_id": consent_id}, "recording consent decline", db, repository, kafka_producer,
    )
    return application_view(application)


@router.post("/applications/{application_id}/consents/{consent_id}/withdrawal", tags=["Consents"])
async def withdraw_consent(
    application_id: str,
    consent_id: str,
    request_data: Dict[str, Any] = Body(...),
    db: AsyncIOMotorDatabase = Depends(get_db),
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository),
    kafka_producer: ProbateEventProducer = Depends(get_kafka_producer)
):
    application = await run_command(
        handlers.handle_withdraw_consent, commands.WithdrawConsentCommand, application_id,
        {**request_data, "consent_id": consent_id}, "withdrawing consent", db, repository, kafka_producer,
    )
    return application_view(application)


@router.post("/applications/{application_id}/consents/{consent_id}/not-required", tags=["Consents"])
async def mark_consent_not_required(
    application_id: str,
    consent_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository),
    kafka_producer: ProbateEventProducer = Depends(get_kafka_producer)
):
    application = await run_command(
        handlers.handle_mark_consent_not_required, commands.MarkConsentNotRequiredCommand, application_id,
        {"consent_id": consent_id}, "marking consent not required", db, repository, kafka_producer,
    )
    return application_view(application)
