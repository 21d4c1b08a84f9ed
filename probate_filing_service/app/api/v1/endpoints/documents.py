# API Router for the court documents attached to a probate application
from fastapi import APIRouter, Depends, Body
import logging
from typing import Any, Dict, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from probate_filing_service.app.service.commands import handlers
from probate_filing_service.app.service.commands import models as commands
from probate_filing_service.app.service.interfaces.application_repository import AbstractProbateApplicationRepository
from probate_filing_service.app.service.interfaces.document_renderer import AbstractDocumentRenderer
from probate_filing_service.infrastructure.database.application_repository import get_application_repository
from probate_filing_service.infrastructure.database.connection import get_db
from probate_filing_service.infrastructure.kafka.producer import ProbateEventProducer, get_kafka_producer
from probate_filing_service.infrastructure.rendering_service_client import get_document_renderer
from .common import application_view, run_command, to_http_exception

logger = logging.getLogger(__name__)
router = APIRouter()


def _document_view(document) -> Dict[str, Any]:
    return {
        "document_id": document.id,
        "form_type": document.form_type.value,
        "status": document.status.value,
        "current_version": document.current_version,
        "suggested_filename": document.suggested_filename(),
    }


@router.get("/applications/{application_id}/documents", tags=["Documents"])
async def list_documents(
    application_id: str,
    include_superseded: bool = False,
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository)
):
    try:
        application = await handlers.load_application(repository, application_id)
    except Exception as e:
        raise to_http_exception(e, f"loading documents for application {application_id}") from e
    documents = application.documents if include_superseded else application.current_documents
    return [document.model_dump(mode="json") for document in documents]


@router.post("/applications/{application_id}/documents", status_code=201, tags=["Documents"])
async def generate_document(
    application_id: str,
    request_data: Dict[str, Any] = Body(...),
    db: AsyncIOMotorDatabase = Depends(get_db),
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository),
    kafka_producer: ProbateEventProducer = Depends(get_kafka_producer),
    renderer: AbstractDocumentRenderer = Depends(get_document_renderer)
):
    """Renders a court form and attaches it; pass `supersedes_document_id` to replace a current document."""
    document = await run_command(
        handlers.handle_generate_document, commands.GenerateDocumentCommand, application_id, request_data,
        "generating document", db, repository, kafka_producer, renderer,
    )
    return _document_view(document)


@router.post("/applications/{application_id}/documents/approval", tags=["Documents"])
async def approve_documents(
    application_id: str,
    request_data: Dict[str, Any] = Body(...),
    db: AsyncIOMotorDatabase = Depends(get_db),
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository),
    kafka_producer: ProbateEventProducer = Depends(get_kafka_producer)
):
    approved_ids = await run_command(
        handlers.handle_approve_documents, commands.ApproveDocumentsCommand, application_id, request_data,
        "approving documents", db, repository, kafka_producer,
    )
    return {"application_id": application_id, "approved_document_ids": approved_ids}


@router.post("/applications/{application_id}/documents/{document_id}/signature-requests", tags=["Documents"])
async def request_document_signatures(
    application_id: str,
    document_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository),
    kafka_producer: ProbateEventProducer = Depends(get_kafka_producer)
):
    application = await run_command(
        handlers.handle_request_document_signatures, commands.RequestDocumentSignaturesCommand, application_id,
        {"document_id": document_id}, "requesting signatures", db, repository, kafka_producer,
    )
    return application_view(application)


@router.post("/applications/{application_id}/documents/{document_id}/signatures", tags=["Documents"])
async def record_document_signature(
    application_id: str,
    document_id: str,
    request_data: Dict[str, Any] = Body(...),
    db: AsyncIOMotorDatabase = Depends(get_db),
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository),
    kafka_producer: ProbateEventProducer = Depends(get_kafka_producer)
):
    application = await run_command(
        handlers.handle_record_document_signature, commands.RecordDocumentSignatureCommand, application_id,
        {**request_data, "document_id": document_id}, "recording signature", db, repository, kafka_producer,
    )
    return application_view(application)


@router.post("/applications/{application_id}/documents/{document_id}/court-outcome", tags=["Documents"])
async def record_document_court_outcome(
    application_id: str,
    document_id: str,
    request_data: Dict[str, Any] = Body(...),
    db: AsyncIOMotorDatabase = Depends(get_db),
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository),
    kafka_producer: ProbateEventProducer = Depends(get_kafka_producer)
):
    application = await run_command(
        handlers.handle_record_document_court_outcome, commands.RecordDocumentCourtOutcomeCommand, application_id,
        {**request_data, "document_id": document_id}, "recording document court outcome", db, repository, kafka_producer,
    )
    return application_view(application)


@router.post("/applications/{application_id}/documents/{document_id}/amendments", tags=["Documents"])
async def amend_document(
    application_id: str,
    document_id: str,
    request_data: Optional[Dict[str, Any]] = Body(None),
    db: AsyncIOMotorDatabase = Depends(get_db),
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository),
    kafka_producer: ProbateEventProducer = Depends(get_kafka_producer),
    renderer: AbstractDocumentRenderer = Depends(get_document_renderer)
):
    document = await run_command(
        handlers.handle_amend_document, commands.AmendDocumentCommand, application_id,
        {**(request_data or {}), "document_id": document_id}, "amending document",
        db, repository, kafka_producer, renderer,
    )
    return _document_view(document)
